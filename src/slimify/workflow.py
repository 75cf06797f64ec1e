# workflow.py
from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .model import Job, RunsOn, Step, Workflow
from .settings import SOURCE_RUNNER, WORKFLOW_DIR
from .ui.console import get_console


class WorkflowError(Exception):
    """Base error for reading or editing workflow files."""
    pass


class WorkflowLoadError(WorkflowError):
    """A workflow file could not be read or parsed."""
    pass


class WorkflowDirectoryNotFound(WorkflowError):
    pass


class JobNotFoundError(WorkflowError):
    """The job (or its runs-on declaration) is not in the file."""
    pass


_JOBS_HEADER = re.compile(r"^jobs:\s*(#.*)?$")
_TRAILING_COMMENT = re.compile(r"\s+#.*$")


# ----------------------------------------------------------------------
# Loading
# ----------------------------------------------------------------------

def load_workflows(directory: str | Path | None = None) -> List[Workflow]:
    """
    Load every *.yml / *.yaml file in the workflow directory.

    Files that fail to load are reported as warnings and skipped.

    Raises:
        WorkflowDirectoryNotFound: if the directory does not exist
    """
    wf_dir = Path(directory if directory is not None else WORKFLOW_DIR)
    if not wf_dir.is_dir():
        raise WorkflowDirectoryNotFound(f"workflow directory not found: {wf_dir}")

    console = get_console()
    files = sorted(p for p in wf_dir.iterdir() if p.is_file() and p.suffix in (".yml", ".yaml"))

    workflows: List[Workflow] = []
    for path in files:
        try:
            workflows.append(load_workflow(path))
        except WorkflowLoadError as e:
            console.print_warning(f"failed to load {path}: {e}")
    return workflows


def load_workflow(path: str | Path) -> Workflow:
    """
    Load a single workflow file into a Workflow with one Job per `jobs:` entry.

    Raises:
        WorkflowLoadError: if the file cannot be read or is not valid YAML
    """
    path_str = str(path)
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise WorkflowLoadError(f"failed to read file {path_str}: {e}") from e

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise WorkflowLoadError(f"failed to parse YAML {path_str}: {e}") from e

    if data is None:
        return Workflow(path=path_str)
    if not isinstance(data, dict):
        raise WorkflowLoadError(f"failed to parse YAML {path_str}: top level is not a mapping")

    jobs: Dict[str, Job] = {}
    jobs_data = data.get("jobs")
    if isinstance(jobs_data, dict):
        lines = text.splitlines()
        for raw_id, job_data in jobs_data.items():
            job = _parse_job(str(raw_id), job_data)
            if job is None:
                continue
            job.line = find_runs_on_line(lines, job.id)
            jobs[job.id] = job

    return Workflow(path=path_str, jobs=jobs)


def _parse_job(job_id: str, data: Any) -> Optional[Job]:
    if not isinstance(data, dict):
        return None

    steps: List[Step] = []
    for raw in data.get("steps") or []:
        if not isinstance(raw, dict):
            continue
        steps.append(Step(
            uses=_as_text(raw.get("uses")),
            run=_as_text(raw.get("run")),
            name=_as_text(raw.get("name")),
        ))

    return Job(
        id=job_id,
        name=_as_text(data.get("name")),
        runs_on=RunsOn.parse(data.get("runs-on")),
        steps=steps,
        services=data.get("services"),
        container=data.get("container"),
    )


def _as_text(value: Any) -> str:
    return "" if value is None else str(value)


# ----------------------------------------------------------------------
# Line-level lookup
# ----------------------------------------------------------------------

def _indent(line: str) -> int:
    return len(line) - len(line.lstrip(" \t"))


def _is_content(line: str) -> bool:
    stripped = line.strip()
    return bool(stripped) and not stripped.startswith("#")


def _key_of(stripped: str) -> Optional[str]:
    if ":" not in stripped:
        return None
    return stripped.split(":", 1)[0].strip().strip("'\"")


def _job_block(lines: List[str], job_id: str) -> Optional[Tuple[int, int, int]]:
    """
    Locate a job under the top-level `jobs:` key.

    Returns (header_index, end_index, body_indent) or None. end_index is
    exclusive.
    """
    start = next((i for i, l in enumerate(lines) if _JOBS_HEADER.match(l.rstrip())), None)
    if start is None:
        return None

    job_indent: Optional[int] = None
    header: Optional[int] = None

    for i in range(start + 1, len(lines)):
        line = lines[i]
        if not _is_content(line):
            continue
        indent = _indent(line)
        if indent == 0:
            # next top-level key: jobs section is over
            break
        if job_indent is None:
            job_indent = indent
        if header is None:
            if indent == job_indent and _key_of(line.strip()) == job_id:
                header = i
            continue
        if indent <= job_indent:
            return _with_body_indent(lines, header, i)
    else:
        i = len(lines)

    if header is None:
        return None
    return _with_body_indent(lines, header, i)


def _with_body_indent(lines: List[str], header: int, end: int) -> Optional[Tuple[int, int, int]]:
    body = next((_indent(lines[k]) for k in range(header + 1, end) if _is_content(lines[k])), None)
    if body is None:
        return None
    return header, end, body


def _runs_on_index(lines: List[str], job_id: str) -> Optional[int]:
    block = _job_block(lines, job_id)
    if block is None:
        return None
    header, end, body = block
    for i in range(header + 1, end):
        line = lines[i]
        if _indent(line) == body and line.strip().startswith("runs-on:"):
            return i
    return None


def find_runs_on_line(lines: List[str], job_id: str) -> int:
    """1-based line number of the job's runs-on declaration, 0 if not found."""
    idx = _runs_on_index(lines, job_id)
    return 0 if idx is None else idx + 1


# ----------------------------------------------------------------------
# In-place editing
# ----------------------------------------------------------------------

def update_runs_on(path: str | Path, job_id: str, new_runs_on: str) -> None:
    """
    Replace `runs-on: ubuntu-latest` with `runs-on: <new_runs_on>` for one job.

    The file is re-read and the job is located by id, so edits made since
    the scan are respected. Only that line changes; indentation, line
    endings and a trailing comment are kept. A flow list
    (`[ubuntu-22.04, ubuntu-latest]`) or a block list under runs-on is
    replaced by the single new value.

    Raises:
        WorkflowLoadError: if the file cannot be read
        JobNotFoundError: if the job or an ubuntu-latest runs-on is not found
        WorkflowError: if the file cannot be written
    """
    file_path = Path(path)
    try:
        with file_path.open("r", encoding="utf-8", newline="") as f:
            text = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise WorkflowLoadError(f"failed to read file {path}: {e}") from e

    lines = text.splitlines(keepends=True)
    idx = _runs_on_index([l.rstrip("\r\n") for l in lines], job_id)
    if idx is None:
        raise JobNotFoundError(f"failed to find runs-on for job {job_id} in {path}")

    line = lines[idx]
    content = line.rstrip("\r\n")
    eol = line[len(content):]
    indent = content[: _indent(content)]

    value = content.strip()[len("runs-on:"):]
    comment_match = _TRAILING_COMMENT.search(value)
    comment = comment_match.group(0) if comment_match else ""
    value = _TRAILING_COMMENT.sub("", value).strip()

    end = idx + 1
    if value:
        labels = [v.strip().strip("'\"") for v in value.strip("[]").split(",")]
    else:
        # block sequence: "- label" items below runs-on
        labels = []
        for k in range(idx + 1, len(lines)):
            item = lines[k].rstrip("\r\n")
            if not _is_content(item):
                continue
            stripped = item.strip()
            if _indent(item) < len(indent):
                break
            if _indent(item) == len(indent) and not stripped.startswith("- "):
                break
            if stripped.startswith("- "):
                labels.append(_TRAILING_COMMENT.sub("", stripped[2:]).strip().strip("'\""))
            end = k + 1

    if SOURCE_RUNNER not in labels:
        raise JobNotFoundError(
            f"job {job_id} in {path} does not declare runs-on: {SOURCE_RUNNER}"
        )

    lines[idx:end] = [f"{indent}runs-on: {new_runs_on}{comment}{eol}"]

    try:
        with file_path.open("w", encoding="utf-8", newline="") as f:
            f.write("".join(lines))
    except OSError as e:
        raise WorkflowError(f"failed to write file {path}: {e}") from e
