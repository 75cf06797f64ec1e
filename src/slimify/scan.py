# scan.py
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Iterable, List, Optional, Sequence

from .api.client import GitHubClient, resolve_token
from .commands import missing_commands
from .eligibility import check_eligibility
from .git_facts.git import RepoInfoError, get_repo_info
from .model import Candidate, IneligibleJob, ScanResult, Workflow
from .settings import MAX_WORKERS, WORKFLOW_DIR
from .ui.console import get_console
from .workflow import load_workflow, load_workflows


def _default_client() -> GitHubClient:
    return GitHubClient(get_repo_info(), token=resolve_token())


def build_result(workflows: Iterable[Workflow]) -> ScanResult:
    """
    Classify every job of every workflow.

    Eligible jobs become Candidates (with missing commands, no duration
    yet); the rest become IneligibleJobs with their reasons.
    """
    result = ScanResult()
    for wf in workflows:
        for job_id, job in wf.jobs.items():
            eligible, reasons = check_eligibility(job)
            if eligible:
                result.candidates.append(Candidate(
                    workflow_path=wf.path,
                    job_id=job_id,
                    job_name=job.name,
                    line=job.line,
                    missing_commands=missing_commands(job),
                ))
            else:
                result.ineligible_jobs.append(IneligibleJob(
                    workflow_path=wf.path,
                    job_id=job_id,
                    job_name=job.name,
                    line=job.line,
                    reasons=reasons,
                ))
    return result


def fetch_durations(
    candidates: Sequence[Candidate],
    client: GitHubClient,
    max_workers: int = MAX_WORKERS,
) -> None:
    """
    Fill in Candidate.duration from the run history API.

    Calls run in parallel (bounded by max_workers). A failure for one
    candidate leaves its duration unset and never stops the others.
    """
    if not candidates:
        return

    console = get_console()

    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
        futures = {
            pool.submit(client.get_job_duration, c.workflow_path, c.job_id, c.job_name): c
            for c in candidates
        }
        for future in as_completed(futures):
            c = futures[future]
            try:
                c.duration = future.result()
            except Exception as e:
                console.print_debug(
                    f"failed to get duration for job {c.job_name} (ID: {c.job_id}) "
                    f"in {c.workflow_path}: {e}"
                )


def scan(
    paths: Sequence[str] = (),
    *,
    skip_duration: bool = False,
    client_factory: Optional[Callable[[], GitHubClient]] = None,
    max_workers: int = MAX_WORKERS,
) -> ScanResult:
    """
    Scan workflows and return migration candidates and ineligible jobs.

    If paths are given only those files are scanned and any load failure
    is raised. Otherwise every workflow in the workflow directory is
    scanned and unreadable files are skipped.

    Raises:
        WorkflowLoadError: an explicitly named file failed to load
        WorkflowDirectoryNotFound: no paths given and no workflow directory
    """
    console = get_console()

    if paths:
        workflows: List[Workflow] = [load_workflow(p) for p in paths]
    else:
        workflows = load_workflows()
        if not workflows:
            console.print_warning(f"No workflow files found in {WORKFLOW_DIR}")
            return ScanResult()

    result = build_result(workflows)

    if skip_duration or not result.candidates:
        return result

    try:
        client = (client_factory or _default_client)()
    except RepoInfoError as e:
        console.print_debug(f"failed to fetch job durations from GitHub API: {e}")
        return result

    fetch_durations(result.candidates, client, max_workers=max_workers)
    return result
