# commands.py
from __future__ import annotations

from types import MappingProxyType
from typing import Dict, FrozenSet, List, Mapping, Set

from .model import Job
from .settings import SOURCE_RUNNER

# ---------------------------------------------------------------------
# Setup actions
# ---------------------------------------------------------------------
# A setup action installs a toolchain for the rest of the job, so the
# commands it provides are never reported as missing in that job.
# Keys are action prefixes without the @ref suffix.

SETUP_ACTION_COMMANDS: Mapping[str, FrozenSet[str]] = MappingProxyType({
    "actions/setup-go": frozenset({"go"}),
    "actions/setup-node": frozenset({"node", "npm", "npx"}),
    "actions/setup-python": frozenset({"python", "python3", "pip", "pip3"}),
    "actions/setup-java": frozenset({"java", "javac", "mvn", "gradle"}),
    "actions/setup-dotnet": frozenset({"dotnet"}),
    "actions/setup-ruby": frozenset({"ruby", "gem"}),
    "ruby/setup-ruby": frozenset({"ruby", "gem", "bundle", "bundler"}),
    "hashicorp/setup-terraform": frozenset({"terraform"}),
    "hashicorp/setup-packer": frozenset({"packer"}),
    "oven-sh/setup-bun": frozenset({"bun"}),
    "astral-sh/setup-uv": frozenset({"uv"}),
    "erlef/setup-beam": frozenset({"erl", "elixir", "mix", "rebar3", "hex"}),
    "microsoft/setup-msbuild": frozenset({"msbuild"}),
    "denoland/setup-deno": frozenset({"deno"}),
    "jfrog/setup-jfrog-cli": frozenset({"jfrog"}),
    "supabase/setup-cli": frozenset({"supabase"}),
    "aws-actions/setup-sam": frozenset({"sam"}),
    "gruntwork-io/setup-terragrunt": frozenset({"terragrunt"}),
    "pdm-project/setup-pdm": frozenset({"pdm"}),
})


# ---------------------------------------------------------------------
# Commands preinstalled on ubuntu-latest but not on ubuntu-slim
# ---------------------------------------------------------------------

MISSING_COMMANDS: FrozenSet[str] = frozenset({
    # containers / orchestration
    "docker", "docker-compose", "podman", "buildah", "skopeo",
    "kubectl", "helm", "kind", "minikube", "kustomize",
    # language toolchains
    "go", "gofmt",
    "java", "javac", "mvn", "gradle", "ant", "sbt", "kotlin",
    "dotnet", "mono", "msbuild",
    "ruby", "gem", "bundle", "bundler", "rake",
    "php", "composer",
    "rustc", "cargo", "rustup",
    "swift", "ghc", "cabal", "stack", "julia",
    "node", "npm", "npx", "yarn", "pnpm", "bun", "deno",
    "pipx", "conda", "poetry",
    "R", "Rscript",
    # build tools
    "cmake", "ninja", "bazel", "bazelisk", "clang", "clang++",
    # infrastructure / cloud CLIs
    "terraform", "packer", "ansible", "ansible-playbook", "pulumi",
    "az", "aws", "gcloud", "gsutil", "sam",
    # browsers and headless test tooling
    "google-chrome", "chromium", "chromium-browser", "firefox",
    "chromedriver", "geckodriver", "xvfb-run",
    # databases
    "mysql", "psql", "pg_dump", "sqlite3", "mongosh", "redis-cli",
    # network / process diagnostics
    "lsof", "netstat", "nmap", "tcpdump", "strace",
    # media
    "ffmpeg", "convert",
    # misc
    "pwsh", "shellcheck", "yamllint",
})

# Tokens that wrap another command; the wrapped command is what runs.
COMMAND_PREFIXES = ("sudo", "env", "time", "nohup", "setsid", "stdbuf")

# Matched literally, no quoting awareness.
_SEPARATORS = ("|", "&&", "||", ";", ">>", "<<", ">", "<")


def is_missing_in_slim(cmd: str) -> bool:
    return cmd in MISSING_COMMANDS


def split_command_line(line: str) -> List[str]:
    """Split one shell line on pipes, logical operators and redirects."""
    parts = [line]
    for sep in _SEPARATORS:
        next_parts: List[str] = []
        for part in parts:
            for piece in part.split(sep):
                piece = piece.strip()
                if piece:
                    next_parts.append(piece)
        parts = next_parts
    return parts


def extract_command_from_part(part: str) -> str:
    """
    Return the command name invoked by one command segment.

    Leading VAR=value assignments and wrapper prefixes (sudo, env, ...)
    are skipped. Returns "" if nothing is left.
    """
    fields = part.split()

    i = 0
    while i < len(fields) and "=" in fields[i]:
        i += 1
    while i < len(fields) and fields[i] in COMMAND_PREFIXES:
        i += 1

    if i >= len(fields):
        return ""
    return normalize_command(fields[i])


def normalize_command(cmd: str) -> str:
    # /usr/local/bin/go -> go
    return cmd.rsplit("/", 1)[-1].strip()


def extract_commands(script: str) -> List[str]:
    """
    Extract command names from a shell script, in execution order.

    This is a lexical approximation: quoting, subshells and heredocs are
    not understood.
    """
    commands: List[str] = []
    for line in script.split("\n"):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        for part in split_command_line(line):
            cmd = extract_command_from_part(part)
            if cmd:
                commands.append(cmd)
    return commands


def setup_provided_commands(job: Job) -> Set[str]:
    """Commands made available by setup actions anywhere in the job."""
    provided: Set[str] = set()
    for step in job.steps:
        if not step.uses:
            continue
        for prefix, cmds in SETUP_ACTION_COMMANDS.items():
            if step.uses.startswith(prefix):
                provided.update(cmds)
    return provided


def missing_commands(job: Job) -> List[str]:
    """
    Commands used in the job's run steps that ubuntu-slim may not have.

    De-duplicated, in first-seen order. Commands provided by a setup
    action in the same job are excluded. Only ubuntu-latest jobs are
    checked.
    """
    if not job.runs_on.matches(SOURCE_RUNNER):
        return []

    provided = setup_provided_commands(job)
    seen: Dict[str, None] = {}

    for step in job.steps:
        if not step.run:
            continue
        for cmd in extract_commands(step.run):
            if cmd in provided or cmd in seen:
                continue
            if is_missing_in_slim(cmd):
                seen[cmd] = None

    return list(seen)
