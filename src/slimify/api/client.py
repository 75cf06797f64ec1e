# api/client.py
from __future__ import annotations

import json
import subprocess
import urllib.error
import urllib.request
from datetime import timedelta
from pathlib import PurePosixPath
from typing import List, Optional
from urllib.parse import quote, urlencode

from slimify import settings
from slimify.git_facts.git import RepoInfo

from .models import RunJob, WorkflowRun

RUNS_PER_PAGE = 10


class APIError(Exception):
    """Raised when API requests fail."""
    pass


class DurationNotFound(APIError):
    """No successful run has usable timing for the job."""
    pass


def resolve_token() -> Optional[str]:
    """
    GH_TOKEN / GITHUB_TOKEN, falling back to the GitHub CLI's stored login.

    Returns None when neither is available; requests then go out
    unauthenticated.
    """
    if settings.GITHUB_TOKEN:
        return settings.GITHUB_TOKEN
    try:
        token = subprocess.check_output(
            ["gh", "auth", "token"],
            text=True,
            stderr=subprocess.DEVNULL,
            timeout=settings.API_TIMEOUT,
        ).strip()
    except (subprocess.SubprocessError, OSError):
        return None
    return token or None


class GitHubClient:
    """HTTP client for the GitHub Actions run history API."""

    def __init__(
        self,
        repo: RepoInfo,
        token: Optional[str] = None,
        timeout: float = settings.API_TIMEOUT,
    ):
        """
        Initialize API client.

        Args:
            repo: Repository the workflows belong to
            token: Optional bearer token
            timeout: Per-request timeout in seconds
        """
        self.repo = repo
        self.base_url = repo.api_base_url.rstrip("/")
        self.token = token
        self.timeout = timeout

    def _get(self, path: str, params: Optional[dict] = None) -> dict:
        """
        GET a JSON document from the API.

        Raises:
            APIError: If the request fails or the body is not JSON
        """
        url = f"{self.base_url}/{path.lstrip('/')}"
        if params:
            url = f"{url}?{urlencode(params)}"

        req_headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self.token:
            req_headers["Authorization"] = f"Bearer {self.token}"

        req = urllib.request.Request(url, headers=req_headers, method="GET")

        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as response:
                response_data = response.read().decode("utf-8")
                if response_data:
                    return json.loads(response_data)
                return {}
        except urllib.error.HTTPError as e:
            error_body = e.read().decode("utf-8") if e.fp else ""
            raise APIError(f"API request failed: {e.code} {e.reason}. {error_body}")
        except urllib.error.URLError as e:
            raise APIError(f"Network error: {e.reason}")
        except TimeoutError as e:
            raise APIError(f"Request timed out: {e}")
        except json.JSONDecodeError as e:
            raise APIError(f"Invalid JSON response: {e}")

    def get_workflow_runs(self, workflow_path: str) -> List[WorkflowRun]:
        """Most recent runs of a workflow, newest first."""
        # the workflow id may be given as the file name
        workflow_file = quote(PurePosixPath(workflow_path.replace("\\", "/")).name, safe="")
        data = self._get(
            f"repos/{self.repo.owner}/{self.repo.repo}/actions/workflows/{workflow_file}/runs",
            params={"per_page": RUNS_PER_PAGE},
        )
        try:
            return [WorkflowRun.from_dict(r) for r in data.get("workflow_runs", [])]
        except (KeyError, TypeError, ValueError) as e:
            raise APIError(f"Invalid workflow runs response: {e}")

    def get_run_jobs(self, run_id: int) -> List[RunJob]:
        data = self._get(
            f"repos/{self.repo.owner}/{self.repo.repo}/actions/runs/{run_id}/jobs",
        )
        try:
            return [RunJob.from_dict(j) for j in data.get("jobs", [])]
        except (AttributeError, TypeError) as e:
            raise APIError(f"Invalid jobs response: {e}")

    def get_job_duration(self, workflow_path: str, job_id: str, job_name: str) -> timedelta:
        """
        Execution time of the job in the latest successful run that contains it.

        Jobs are matched by display name first, then by job id (both
        case-insensitive). A run whose jobs cannot be fetched, or whose
        timing for the job is incomplete, is skipped in favour of older
        runs.

        Raises:
            APIError: if the workflow runs cannot be fetched
            DurationNotFound: if no successful run has usable timing for the job
        """
        runs = self.get_workflow_runs(workflow_path)
        if not runs:
            raise DurationNotFound("no workflow runs found")

        for run in runs:
            if not run.succeeded:
                continue
            try:
                duration = self._run_job_duration(run.id, job_id, job_name)
            except APIError:
                continue
            if duration is not None:
                return duration

        raise DurationNotFound(f"no successful run found with job {job_name} (ID: {job_id})")

    def _run_job_duration(self, run_id: int, job_id: str, job_name: str) -> Optional[timedelta]:
        """Duration of the job in one run, None if the job is absent or timing is incomplete."""
        job = find_job(self.get_run_jobs(run_id), job_id, job_name)
        if job is None:
            return None
        try:
            return job.duration()
        except ValueError as e:
            raise APIError(f"failed to parse job timing for run {run_id}: {e}")


def find_job(jobs: List[RunJob], job_id: str, job_name: str) -> Optional[RunJob]:
    """Match by display name, falling back to the job id."""
    for wanted in (job_name, job_id):
        for job in jobs:
            if job.name.casefold() == wanted.casefold():
                return job
    return None
