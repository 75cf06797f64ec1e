from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from slimify.model import Job, RunsOn, Step
from slimify.ui.console import Console, set_console


@pytest.fixture(autouse=True)
def quiet_console():
    """Fresh non-verbose console for every test."""
    console = Console(verbose=False)
    set_console(console)
    return console


@pytest.fixture
def write_workflow(tmp_path):
    """Write a dedented workflow file under tmp_path/.github/workflows."""
    wf_dir = tmp_path / ".github" / "workflows"
    wf_dir.mkdir(parents=True)

    def _write(name: str, content: str) -> Path:
        path = wf_dir / name
        path.write_text(textwrap.dedent(content).lstrip("\n"), encoding="utf-8")
        return path

    return _write


def make_job(runs_on="ubuntu-latest", steps=None, services=None, container=None, job_id="job", name=""):
    """Build a Job the way the loader would, from raw YAML-ish values."""
    return Job(
        id=job_id,
        name=name,
        runs_on=RunsOn.parse(runs_on),
        steps=[Step(**s) for s in (steps or [])],
        services=services,
        container=container,
    )
