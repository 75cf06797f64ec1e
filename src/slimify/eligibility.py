# eligibility.py
from __future__ import annotations

import re
from typing import List, Tuple

from .model import Job
from .settings import SOURCE_RUNNER

# ubuntu-slim runs inside a container and has no Docker daemon, so jobs
# that need Docker, service containers or a job container can never move.

CONTAINER_COMMAND_PATTERNS: Tuple[re.Pattern, ...] = (
    re.compile(r"\bdocker[\s-](?:build|run|exec|ps|pull|push|tag|login)\b"),
    re.compile(r"\bdocker-compose\b"),
    re.compile(r"\bdocker\s+compose\b"),
)

# docker://image references and docker/* organization actions
CONTAINER_ACTION_PREFIXES: Tuple[str, ...] = ("docker",)

REASON_RUNNER = f"does not run on {SOURCE_RUNNER}"
REASON_DOCKER_COMMANDS = "uses Docker commands"
REASON_CONTAINER_ACTIONS = "uses container-based GitHub Actions"
REASON_SERVICES = "uses service containers"
REASON_CONTAINER = "uses container syntax"


def matches_container_command(script: str) -> bool:
    """True if the script text invokes docker / docker compose (case-insensitive)."""
    text = script.lower()
    return any(p.search(text) for p in CONTAINER_COMMAND_PATTERNS)


def is_container_action(uses: str) -> bool:
    return uses.startswith(CONTAINER_ACTION_PREFIXES)


def is_ubuntu_latest(job: Job) -> bool:
    return job.runs_on.matches(SOURCE_RUNNER)


def has_docker_commands(job: Job) -> bool:
    return any(step.run and matches_container_command(step.run) for step in job.steps)


def has_container_actions(job: Job) -> bool:
    return any(step.uses and is_container_action(step.uses) for step in job.steps)


def has_services(job: Job) -> bool:
    # presence alone disqualifies, even `services: {}`
    return job.services is not None


def has_container(job: Job) -> bool:
    return job.container is not None


def check_eligibility(job: Job) -> Tuple[bool, List[str]]:
    """
    Check a job against the hard migration criteria.

    Criteria:
      1. runs on ubuntu-latest (checked first; failing it stops here)
      2. no Docker commands in run scripts
      3. no container-based actions
      4. no `services:`
      5. no `container:`

    Returns (eligible, reasons). Reasons are in criteria order and empty
    when eligible.
    """
    if not is_ubuntu_latest(job):
        return False, [REASON_RUNNER]

    reasons: List[str] = []
    if has_docker_commands(job):
        reasons.append(REASON_DOCKER_COMMANDS)
    if has_container_actions(job):
        reasons.append(REASON_CONTAINER_ACTIONS)
    if has_services(job):
        reasons.append(REASON_SERVICES)
    if has_container(job):
        reasons.append(REASON_CONTAINER)

    return not reasons, reasons
