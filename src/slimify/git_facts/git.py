# git.py
# Small, focused wrapper around the Git CLI.
# Repository discovery for the run history API goes through here so the
# rest of the codebase never calls subprocess("git ...") directly.

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from typing import Optional


class RepoInfoError(Exception):
    """Raised when the GitHub repository cannot be determined."""
    pass


@dataclass(frozen=True)
class RepoInfo:
    host: str
    owner: str
    repo: str

    @property
    def api_base_url(self) -> str:
        return api_base_url(self.host)


def _git(args: list[str], cwd: Optional[str] = None) -> str:
    """
    Execute a git command and return its stdout as a clean string.

    Args:
        args: List of git arguments (e.g. ["remote", "get-url", "origin"])
        cwd: Optional working directory in which to run the git command.

    Returns:
        Stdout from the git command with surrounding whitespace removed.
    """
    out = subprocess.check_output(
        ["git", *args],
        cwd=cwd,
        text=True,
        stderr=subprocess.DEVNULL,
    )
    return out.strip()


def get_remote_url(remote: str = "origin", cwd: Optional[str] = None) -> str:
    """Return the URL configured for a git remote."""
    return _git(["remote", "get-url", remote], cwd=cwd)


def parse_remote_url(url: str) -> RepoInfo:
    """
    Parse host/owner/repo from a git remote URL.

    Supported formats:
      - https://github.com/owner/repo(.git)
      - git@github.com:owner/repo(.git)
      - ssh://git@github.com/owner/repo(.git)

    Raises:
        RepoInfoError: if owner or repo cannot be extracted
    """
    url = url.strip()
    host = "github.com"
    path = ""

    if url.startswith(("https://", "http://", "ssh://")):
        rest = url.split("://", 1)[1]
        host, _, path = rest.partition("/")
        host = host.rsplit("@", 1)[-1]
        # ssh://git@host:22/owner/repo
        host = host.split(":", 1)[0]
    elif url.startswith("git@"):
        host, _, path = url[len("git@"):].partition(":")

    parts = [p for p in path.split("/") if p]
    if len(parts) < 2 or not host:
        raise RepoInfoError(f"failed to parse repository info from remote: {url}")

    owner = parts[0]
    repo = parts[1]
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]
    if not owner or not repo:
        raise RepoInfoError(f"failed to parse repository info from remote: {url}")

    return RepoInfo(host=host, owner=owner, repo=repo)


def get_repo_info(remote: str = "origin", cwd: Optional[str] = None) -> RepoInfo:
    """
    Determine the GitHub repository from the git remote.

    Raises:
        RepoInfoError: if git is unavailable, the remote is missing, or
            its URL cannot be parsed
    """
    try:
        url = get_remote_url(remote, cwd=cwd)
    except (subprocess.CalledProcessError, FileNotFoundError) as e:
        raise RepoInfoError(f"failed to get git remote: {e}") from e
    return parse_remote_url(url)


def api_base_url(host: str) -> str:
    # GitHub Enterprise Server serves the REST API under /api/v3
    if host == "github.com":
        return "https://api.github.com"
    return f"https://{host}/api/v3"
