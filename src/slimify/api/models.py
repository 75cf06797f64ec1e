# api/models.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional


@dataclass
class WorkflowRun:
    """One entry of the workflow runs API response."""
    id: int
    status: str
    conclusion: Optional[str]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> WorkflowRun:
        return cls(
            id=int(data["id"]),
            status=data.get("status") or "",
            conclusion=data.get("conclusion"),
        )

    @property
    def succeeded(self) -> bool:
        return self.status == "completed" and self.conclusion == "success"


@dataclass
class RunJob:
    """A job inside a workflow run (jobs API response)."""
    name: str
    status: str
    started_at: Optional[str]
    completed_at: Optional[str]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> RunJob:
        return cls(
            name=data.get("name") or "",
            status=data.get("status") or "",
            started_at=data.get("started_at"),
            completed_at=data.get("completed_at"),
        )

    def duration(self) -> Optional[timedelta]:
        """completed_at - started_at, or None if timing is incomplete."""
        if not self.started_at or not self.completed_at:
            return None
        return _parse_timestamp(self.completed_at) - _parse_timestamp(self.started_at)


def _parse_timestamp(value: str) -> datetime:
    # RFC 3339, e.g. 2024-05-01T12:00:00Z
    return datetime.fromisoformat(value.replace("Z", "+00:00"))
