# cli.py
from __future__ import annotations

import sys
from typing import List, Tuple

import click

from slimify.eligibility import check_eligibility
from slimify.model import Candidate, ScanResult
from slimify.scan import scan
from slimify.settings import TARGET_RUNNER, WORKFLOW_DIR
from slimify.ui.console import Console, get_console, set_console
from slimify.workflow import (
    WorkflowDirectoryNotFound,
    WorkflowError,
    WorkflowLoadError,
    load_workflow,
    update_runs_on,
)


def workflow_options(fn):
    """Options shared by `scan` and `fix`."""
    fn = click.argument("workflow_files", nargs=-1, type=click.Path())(fn)
    fn = click.option(
        "-f", "--file", "files",
        multiple=True,
        type=click.Path(),
        help="Workflow file to process. Can be given multiple times.",
    )(fn)
    fn = click.option(
        "--all", "scan_all",
        is_flag=True,
        default=False,
        help=f"Scan all workflow files in {WORKFLOW_DIR}",
    )(fn)
    fn = click.option(
        "--skip-duration",
        is_flag=True,
        default=False,
        help="Skip fetching job execution durations from the GitHub API",
    )(fn)
    return fn


def collect_files(command: str, workflow_files: Tuple[str, ...], files: Tuple[str, ...], scan_all: bool) -> List[str]:
    """
    Files to scan: positional arguments plus --file. Empty means all.

    Exits when no file is given and --all is not set.
    """
    selected = list(workflow_files) + list(files)
    if scan_all:
        return []
    if not selected:
        prefix = f"slimify {command}"
        get_console().print_error(
            "No workflow files specified",
            "Use --all to scan all workflows, or specify workflow file(s) as arguments or with --file.",
            suggestion=f"Example: {prefix} {WORKFLOW_DIR}/ci.yml\nExample: {prefix} --all",
        )
        sys.exit(1)
    return selected


def run_scan(paths: List[str], skip_duration: bool) -> ScanResult:
    """Run a scan, exiting with a structured error on fatal load failures."""
    console = get_console()
    try:
        return scan(paths, skip_duration=skip_duration)
    except WorkflowDirectoryNotFound as e:
        console.print_error(
            "Workflow directory not found",
            str(e),
            suggestion="Run slimify from the repository root, or pass workflow files explicitly.",
        )
        sys.exit(1)
    except WorkflowLoadError as e:
        console.print_error("Failed to load workflow", str(e))
        sys.exit(1)


@click.group()
@click.option(
    "-v", "--verbose",
    is_flag=True,
    default=False,
    help="Enable verbose output including debug warnings and stack traces",
)
def cli(verbose):
    """Scan GitHub Actions workflows for ubuntu-slim migration candidates."""
    set_console(Console(verbose=verbose))


@cli.command(name="scan")
@workflow_options
def scan_command(workflow_files, files, scan_all, skip_duration):
    """Report which ubuntu-latest jobs can move to ubuntu-slim."""
    console = get_console()
    paths = collect_files("scan", workflow_files, files, scan_all)
    try:
        result = run_scan(paths, skip_duration)
        console.print_scan_report(result)
    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)


@cli.command()
@workflow_options
@click.option(
    "--force",
    is_flag=True,
    default=False,
    help="Also update jobs with warnings (missing commands or unknown execution time)",
)
def fix(workflow_files, files, scan_all, skip_duration, force):
    """
    Replace runs-on: ubuntu-latest with ubuntu-slim for eligible jobs.

    By default only safe jobs (no missing commands and known execution
    time) are updated. Use --force to also update jobs with warnings.
    """
    console = get_console()
    paths = collect_files("fix", workflow_files, files, scan_all)
    try:
        errors = run_fix(paths, skip_duration, force)
    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)

    if errors:
        console.print_error("Update failed", f"Encountered {errors} error(s) during update.")
        sys.exit(1)


def run_fix(paths: List[str], skip_duration: bool, force: bool) -> int:
    """Scan, pick the jobs to update and rewrite them. Returns the error count."""
    console = get_console()
    result = run_scan(paths, skip_duration)

    if not result.candidates:
        console.print_info(f"No jobs found that can be safely migrated to {TARGET_RUNNER}.")
        return 0

    to_update = [c for c in result.candidates if c.is_safe or force]
    skipped = [c for c in result.candidates if not (c.is_safe or force)]

    if not to_update:
        console.print_info(f"No safe jobs to update. {len(skipped)} job(s) have warnings and were skipped.")
        console.print_info("Use --force to update jobs with warnings.")
        return 0

    if force:
        console.print_info(f"Updating workflows to use {TARGET_RUNNER} (including jobs with warnings)...")
    else:
        console.print_info(f"Updating workflows to use {TARGET_RUNNER} (safe jobs only)...")
        if skipped:
            console.print_info(f"Skipping {len(skipped)} job(s) with warnings. Use --force to update them.")
    console.print_info("")

    updated, errors = apply_updates(to_update)

    console.print_info(f"Successfully updated {updated} job(s) to use {TARGET_RUNNER}.")
    return errors


def apply_updates(candidates: List[Candidate]) -> Tuple[int, int]:
    """
    Rewrite runs-on for each candidate. Returns (updated, errors).

    Each workflow is reloaded right before its update so a job that was
    removed or changed since the scan is not touched.
    """
    console = get_console()
    updated = 0
    errors = 0

    by_path: dict[str, List[Candidate]] = {}
    for c in candidates:
        by_path.setdefault(c.workflow_path, []).append(c)

    for path in sorted(by_path):
        console.print_info(f"Updating {path}")
        for c in sorted(by_path[path], key=lambda c: c.job_id):
            try:
                wf = load_workflow(path)
            except WorkflowLoadError as e:
                console.print_warning(f"error loading workflow {path}: {e}")
                errors += 1
                continue

            job = wf.jobs.get(c.job_id)
            if job is None:
                console.print_warning(f"job {c.job_name} (ID: {c.job_id}) not found in {path}")
                continue
            eligible, reasons = check_eligibility(job)
            if not eligible:
                console.print_warning(
                    f"job {c.job_name} (ID: {c.job_id}) in {path} is no longer eligible: {', '.join(reasons)}"
                )
                continue

            try:
                update_runs_on(path, c.job_id, TARGET_RUNNER)
            except WorkflowError as e:
                console.print_warning(f"error updating job {c.job_name} (ID: {c.job_id}) in {path}: {e}")
                errors += 1
                continue

            console.print_job_updated(c, TARGET_RUNNER)
            updated += 1
        console.print_info("")

    return updated, errors


if __name__ == "__main__":
    cli()
