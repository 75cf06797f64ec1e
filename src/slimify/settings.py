from __future__ import annotations
import os

SOURCE_RUNNER = "ubuntu-latest"

TARGET_RUNNER = os.environ.get("SLIMIFY_TARGET_RUNNER", "ubuntu-slim")
WORKFLOW_DIR = os.environ.get("SLIMIFY_WORKFLOW_DIR", ".github/workflows")
API_TIMEOUT = float(os.environ.get("SLIMIFY_API_TIMEOUT", "10"))
MAX_WORKERS = int(os.environ.get("SLIMIFY_MAX_WORKERS", "4"))
GITHUB_TOKEN = os.environ.get("GH_TOKEN") or os.environ.get("GITHUB_TOKEN")
