# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class RunsOn:
    """
    The `runs-on:` value of a job.

    kind is one of:
      - "scalar"      runs-on: ubuntu-latest
      - "sequence"    runs-on: [ubuntu-22.04, ubuntu-latest]
      - "absent"      no runs-on key (or null)
      - "unsupported" anything else (mappings such as `group:` / `labels:`)
    """
    kind: str
    values: Tuple[str, ...] = ()

    SCALAR = "scalar"
    SEQUENCE = "sequence"
    ABSENT = "absent"
    UNSUPPORTED = "unsupported"

    @classmethod
    def parse(cls, raw: Any) -> RunsOn:
        if raw is None:
            return cls(cls.ABSENT)
        if isinstance(raw, str):
            return cls(cls.SCALAR, (raw,))
        if isinstance(raw, list):
            # non-string items (e.g. nested lists) are never a label match
            return cls(cls.SEQUENCE, tuple(v for v in raw if isinstance(v, str)))
        return cls(cls.UNSUPPORTED)

    def matches(self, label: str) -> bool:
        if self.kind == self.SCALAR:
            return self.values[0] == label
        if self.kind == self.SEQUENCE:
            return label in self.values
        return False


@dataclass(frozen=True)
class Step:
    """A single step inside a workflow job: either `uses:` or `run:`."""
    uses: str = ""
    run: str = ""
    name: str = ""


@dataclass
class Job:
    """
    A job from a workflow document.

    `id` is the key under `jobs:`, `name` the display name (defaults to id).
    `services` and `container` keep the raw YAML value; None means absent.
    `line` is the 1-based line of the runs-on declaration (0 if not found).
    """
    id: str
    name: str = ""
    runs_on: RunsOn = field(default_factory=lambda: RunsOn(RunsOn.ABSENT))
    steps: List[Step] = field(default_factory=list)
    services: Any = None
    container: Any = None
    line: int = 0

    def __post_init__(self) -> None:
        if not self.name:
            self.name = self.id


@dataclass
class Workflow:
    path: str
    jobs: Dict[str, Job] = field(default_factory=dict)


@dataclass
class Candidate:
    """A job that passed every hard migration criterion."""
    workflow_path: str
    job_id: str
    job_name: str
    line: int
    missing_commands: List[str] = field(default_factory=list)
    duration: Optional[timedelta] = None  # populated from the run history API

    @property
    def is_safe(self) -> bool:
        # safe: nothing to install and a known last execution time
        return not self.missing_commands and self.duration is not None

    @property
    def needs_attention(self) -> bool:
        return not self.is_safe


@dataclass
class IneligibleJob:
    """A job that cannot be migrated, with the reasons why."""
    workflow_path: str
    job_id: str
    job_name: str
    line: int
    reasons: List[str]


@dataclass
class ScanResult:
    candidates: List[Candidate] = field(default_factory=list)
    ineligible_jobs: List[IneligibleJob] = field(default_factory=list)

    @property
    def safe(self) -> List[Candidate]:
        return [c for c in self.candidates if c.is_safe]

    @property
    def warnings(self) -> List[Candidate]:
        return [c for c in self.candidates if c.needs_attention]

    def workflow_paths(self) -> List[str]:
        paths = {c.workflow_path for c in self.candidates}
        paths.update(j.workflow_path for j in self.ineligible_jobs)
        return sorted(paths)

    def candidates_for(self, path: str) -> List[Candidate]:
        return [c for c in self.candidates if c.workflow_path == path]

    def ineligible_for(self, path: str) -> List[IneligibleJob]:
        return [j for j in self.ineligible_jobs if j.workflow_path == path]
