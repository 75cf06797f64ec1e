from __future__ import annotations

import io
import json
import subprocess
import urllib.error
from datetime import timedelta

import pytest

from slimify import settings
from slimify.api import client as client_module
from slimify.api.client import APIError, DurationNotFound, GitHubClient, find_job, resolve_token
from slimify.api.models import RunJob, WorkflowRun
from slimify.git_facts import git
from slimify.git_facts.git import RepoInfo, RepoInfoError, api_base_url, get_repo_info, parse_remote_url

REPO = RepoInfo(host="github.com", owner="octo", repo="app")


def _job(name, started="2024-05-01T12:00:00Z", completed="2024-05-01T12:04:30Z"):
    return {"name": name, "status": "completed", "started_at": started, "completed_at": completed}


def _run(run_id, status="completed", conclusion="success"):
    return {"id": run_id, "status": status, "conclusion": conclusion}


def make_client(monkeypatch, runs, jobs_by_run, failing_runs=()):
    """GitHubClient whose _get answers from canned payloads."""
    client = GitHubClient(REPO, token="t0ken")
    requests = []

    def fake_get(path, params=None):
        requests.append((path, params))
        if path.endswith("/runs"):
            return {"workflow_runs": runs}
        run_id = int(path.split("/")[-2])
        if run_id in failing_runs:
            raise APIError("API request failed: 502 Bad Gateway. ")
        return {"jobs": jobs_by_run.get(run_id, [])}

    monkeypatch.setattr(client, "_get", fake_get)
    client.requests = requests
    return client


# ---------------------------------------------------------------------
# get_job_duration
# ---------------------------------------------------------------------

def test_duration_from_latest_successful_run(monkeypatch):
    client = make_client(
        monkeypatch,
        runs=[_run(3, conclusion="failure"), _run(2, status="in_progress", conclusion=None), _run(1)],
        jobs_by_run={1: [_job("build")], 3: [_job("build", completed="2024-05-01T12:00:05Z")]},
    )

    assert client.get_job_duration(".github/workflows/ci.yml", "build", "build") == timedelta(minutes=4, seconds=30)
    # runs that did not succeed are never queried for jobs
    assert [p for p, _ in client.requests] == [
        "repos/octo/app/actions/workflows/ci.yml/runs",
        "repos/octo/app/actions/runs/1/jobs",
    ]
    assert client.requests[0][1] == {"per_page": 10}


def test_display_name_matched_before_id(monkeypatch):
    client = make_client(
        monkeypatch,
        runs=[_run(1)],
        jobs_by_run={1: [
            _job("build", completed="2024-05-01T12:00:10Z"),
            _job("Build Linux", completed="2024-05-01T12:01:00Z"),
        ]},
    )
    assert client.get_job_duration("ci.yml", "build", "Build Linux") == timedelta(minutes=1)


def test_falls_back_to_job_id_case_insensitive(monkeypatch):
    client = make_client(monkeypatch, runs=[_run(1)], jobs_by_run={1: [_job("BUILD")]})
    assert client.get_job_duration("ci.yml", "build", "Build (ubuntu)") == timedelta(minutes=4, seconds=30)


def test_skips_runs_without_the_job(monkeypatch):
    client = make_client(
        monkeypatch,
        runs=[_run(5), _run(4)],
        jobs_by_run={5: [_job("lint")], 4: [_job("test", completed="2024-05-01T12:00:45Z")]},
    )
    assert client.get_job_duration("ci.yml", "test", "test") == timedelta(seconds=45)


def test_no_runs(monkeypatch):
    client = make_client(monkeypatch, runs=[], jobs_by_run={})
    with pytest.raises(DurationNotFound):
        client.get_job_duration("ci.yml", "build", "build")


def test_no_successful_run_with_job(monkeypatch):
    client = make_client(
        monkeypatch,
        runs=[_run(2, conclusion="cancelled"), _run(1)],
        jobs_by_run={1: [_job("other")]},
    )
    with pytest.raises(DurationNotFound):
        client.get_job_duration("ci.yml", "build", "build")


def test_incomplete_timing_falls_back_to_older_run(monkeypatch):
    client = make_client(
        monkeypatch,
        runs=[_run(2), _run(1)],
        jobs_by_run={
            2: [_job("build", completed=None)],
            1: [_job("build", completed="2024-05-01T12:01:00Z")],
        },
    )
    assert client.get_job_duration("ci.yml", "build", "build") == timedelta(minutes=1)


def test_unparseable_timing_falls_back_to_older_run(monkeypatch):
    client = make_client(
        monkeypatch,
        runs=[_run(2), _run(1)],
        jobs_by_run={2: [_job("build", started="yesterday")], 1: [_job("build")]},
    )
    assert client.get_job_duration("ci.yml", "build", "build") == timedelta(minutes=4, seconds=30)


def test_failed_jobs_fetch_falls_back_to_older_run(monkeypatch):
    client = make_client(
        monkeypatch,
        runs=[_run(2), _run(1)],
        jobs_by_run={1: [_job("build")]},
        failing_runs={2},
    )
    assert client.get_job_duration("ci.yml", "build", "build") == timedelta(minutes=4, seconds=30)


def test_no_run_with_usable_timing(monkeypatch):
    client = make_client(
        monkeypatch,
        runs=[_run(3), _run(2), _run(1)],
        jobs_by_run={
            3: [_job("build", completed=None)],
            2: [_job("build", started="yesterday")],
        },
        failing_runs={1},
    )
    with pytest.raises(DurationNotFound):
        client.get_job_duration("ci.yml", "build", "build")


def test_workflow_runs_failure_is_raised(monkeypatch):
    client = GitHubClient(REPO)

    def fail(path, params=None):
        raise APIError("Network error: timed out")

    monkeypatch.setattr(client, "_get", fail)
    with pytest.raises(APIError, match="timed out"):
        client.get_job_duration("ci.yml", "build", "build")


def test_workflow_id_is_file_name(monkeypatch):
    client = make_client(monkeypatch, runs=[], jobs_by_run={})
    with pytest.raises(DurationNotFound):
        client.get_job_duration("/home/me/repo/.github/workflows/release build.yaml", "a", "a")
    assert client.requests[0][0] == "repos/octo/app/actions/workflows/release%20build.yaml/runs"


def test_find_job_none():
    assert find_job([RunJob("a", "completed", None, None)], "b", "B") is None


# ---------------------------------------------------------------------
# HTTP layer
# ---------------------------------------------------------------------

class FakeResponse(io.BytesIO):
    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


def test_get_sends_headers_and_decodes_json(monkeypatch):
    seen = {}

    def fake_urlopen(req, timeout):
        seen["url"] = req.full_url
        seen["auth"] = req.get_header("Authorization")
        seen["accept"] = req.get_header("Accept")
        seen["timeout"] = timeout
        return FakeResponse(json.dumps({"workflow_runs": []}).encode())

    monkeypatch.setattr(client_module.urllib.request, "urlopen", fake_urlopen)

    client = GitHubClient(REPO, token="abc", timeout=3)
    assert client._get("repos/octo/app/actions/workflows/ci.yml/runs", {"per_page": 10}) == {"workflow_runs": []}
    assert seen == {
        "url": "https://api.github.com/repos/octo/app/actions/workflows/ci.yml/runs?per_page=10",
        "auth": "Bearer abc",
        "accept": "application/vnd.github+json",
        "timeout": 3,
    }


def test_get_without_token_sends_no_authorization(monkeypatch):
    seen = {}

    def fake_urlopen(req, timeout):
        seen["auth"] = req.get_header("Authorization")
        return FakeResponse(b"{}")

    monkeypatch.setattr(client_module.urllib.request, "urlopen", fake_urlopen)
    assert GitHubClient(REPO)._get("rate_limit") == {}
    assert seen["auth"] is None


def test_get_http_error(monkeypatch):
    def fake_urlopen(req, timeout):
        raise urllib.error.HTTPError(req.full_url, 404, "Not Found", {}, io.BytesIO(b'{"message":"Not Found"}'))

    monkeypatch.setattr(client_module.urllib.request, "urlopen", fake_urlopen)
    with pytest.raises(APIError, match="404"):
        GitHubClient(REPO)._get("repos/octo/app/actions/workflows/ci.yml/runs")


def test_get_network_error(monkeypatch):
    def fake_urlopen(req, timeout):
        raise urllib.error.URLError("connection refused")

    monkeypatch.setattr(client_module.urllib.request, "urlopen", fake_urlopen)
    with pytest.raises(APIError, match="Network error"):
        GitHubClient(REPO)._get("x")


def test_get_invalid_json(monkeypatch):
    monkeypatch.setattr(client_module.urllib.request, "urlopen", lambda req, timeout: FakeResponse(b"<html>"))
    with pytest.raises(APIError, match="Invalid JSON"):
        GitHubClient(REPO)._get("x")


# ---------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------

def test_workflow_run_succeeded():
    assert WorkflowRun.from_dict(_run(1)).succeeded
    assert not WorkflowRun.from_dict(_run(1, conclusion="failure")).succeeded
    assert not WorkflowRun.from_dict(_run(1, status="queued", conclusion=None)).succeeded


def test_run_job_duration():
    assert RunJob.from_dict(_job("a")).duration() == timedelta(minutes=4, seconds=30)
    assert RunJob.from_dict(_job("a", started=None)).duration() is None
    assert RunJob.from_dict({"name": "a"}).duration() is None


# ---------------------------------------------------------------------
# Token and repository discovery
# ---------------------------------------------------------------------

def test_resolve_token_prefers_environment(monkeypatch):
    monkeypatch.setattr(settings, "GITHUB_TOKEN", "env-token")
    monkeypatch.setattr(client_module.subprocess, "check_output", lambda *a, **k: pytest.fail("gh called"))
    assert resolve_token() == "env-token"


def test_resolve_token_from_gh_cli(monkeypatch):
    monkeypatch.setattr(settings, "GITHUB_TOKEN", None)
    monkeypatch.setattr(client_module.subprocess, "check_output", lambda *a, **k: "gho_123\n")
    assert resolve_token() == "gho_123"


def test_resolve_token_missing(monkeypatch):
    monkeypatch.setattr(settings, "GITHUB_TOKEN", None)

    def no_gh(*args, **kwargs):
        raise FileNotFoundError("gh")

    monkeypatch.setattr(client_module.subprocess, "check_output", no_gh)
    assert resolve_token() is None


@pytest.mark.parametrize(
    "error",
    [
        subprocess.TimeoutExpired(["gh", "auth", "token"], 10),
        subprocess.CalledProcessError(1, ["gh", "auth", "token"]),
        PermissionError("gh"),
    ],
)
def test_resolve_token_gh_failures(monkeypatch, error):
    monkeypatch.setattr(settings, "GITHUB_TOKEN", None)

    def failing_gh(*args, **kwargs):
        raise error

    monkeypatch.setattr(client_module.subprocess, "check_output", failing_gh)
    assert resolve_token() is None


def test_resolve_token_bounds_gh_call(monkeypatch):
    monkeypatch.setattr(settings, "GITHUB_TOKEN", None)
    monkeypatch.setattr(settings, "API_TIMEOUT", 2.5)
    seen = {}

    def fake_gh(cmd, **kwargs):
        seen["timeout"] = kwargs.get("timeout")
        return "gho_123\n"

    monkeypatch.setattr(client_module.subprocess, "check_output", fake_gh)
    assert resolve_token() == "gho_123"
    assert seen["timeout"] == 2.5


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://github.com/octo/app.git", RepoInfo("github.com", "octo", "app")),
        ("https://github.com/octo/app", RepoInfo("github.com", "octo", "app")),
        ("git@github.com:octo/app.git", RepoInfo("github.com", "octo", "app")),
        ("ssh://git@github.com/octo/app.git", RepoInfo("github.com", "octo", "app")),
        ("ssh://git@ghe.example.com:2222/team/svc.git", RepoInfo("ghe.example.com", "team", "svc")),
        ("https://user:pw@ghe.example.com/team/svc", RepoInfo("ghe.example.com", "team", "svc")),
    ],
)
def test_parse_remote_url(url, expected):
    assert parse_remote_url(url) == expected


@pytest.mark.parametrize("url", ["", "https://github.com/octo", "not a url", "git@github.com:"])
def test_parse_remote_url_invalid(url):
    with pytest.raises(RepoInfoError):
        parse_remote_url(url)


def test_api_base_url():
    assert api_base_url("github.com") == "https://api.github.com"
    assert api_base_url("ghe.example.com") == "https://ghe.example.com/api/v3"
    assert RepoInfo("ghe.example.com", "a", "b").api_base_url == "https://ghe.example.com/api/v3"


def test_get_repo_info_without_remote(monkeypatch):
    def fail(*args, **kwargs):
        raise subprocess.CalledProcessError(2, args[0])

    monkeypatch.setattr(git.subprocess, "check_output", fail)
    with pytest.raises(RepoInfoError):
        get_repo_info()
