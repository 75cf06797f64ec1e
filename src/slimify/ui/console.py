"""Console output formatting utilities for slimify."""

from __future__ import annotations

import os
import sys
from datetime import timedelta
from pathlib import Path
from typing import List, Optional

from slimify.model import Candidate, IneligibleJob, ScanResult
from slimify.settings import TARGET_RUNNER


def format_duration(d: timedelta) -> str:
    """Format a duration as 45s, 4m, 4m30s, 1h or 1h15m."""
    total = int(d.total_seconds())
    if total < 60:
        return f"{total}s"
    if total < 3600:
        minutes, seconds = divmod(total, 60)
        return f"{minutes}m" if seconds == 0 else f"{minutes}m{seconds}s"
    hours, rest = divmod(total, 3600)
    minutes = rest // 60
    return f"{hours}h" if minutes == 0 else f"{hours}h{minutes}m"


def format_local_link(file_path: str, line: int) -> str:
    """
    Format `path:line` relative to the current directory.

    Terminals (VS Code, iTerm2, ...) turn this into a clickable link.
    """
    try:
        rel = os.path.relpath(Path(file_path).resolve(), Path.cwd())
    except (OSError, ValueError):
        rel = file_path
    return f"{rel}:{line}"


class Console:
    """Centralized console output formatting."""

    def __init__(self, verbose: bool = False):
        """
        Initialize console formatter.

        Args:
            verbose: If True, show debug messages and stack traces
        """
        self.verbose = verbose

    # ------------------------------------------------------------------
    # Scan report
    # ------------------------------------------------------------------

    def print_scan_report(self, result: ScanResult) -> None:
        """Print candidates and ineligible jobs grouped by workflow file."""
        for path in result.workflow_paths():
            print(f"\n📄 {path}")
            jobs = sorted(result.candidates_for(path), key=lambda c: c.job_id)
            safe = [c for c in jobs if c.is_safe]
            warn = [c for c in jobs if c.needs_attention]
            ineligible = sorted(result.ineligible_for(path), key=lambda j: j.job_id)

            if safe:
                print(f"  ✅ Safe to migrate ({len(safe)} job(s)):")
                for c in safe:
                    self._print_safe(c)
            if warn:
                print(f"  ⚠️  Can migrate but requires attention ({len(warn)} job(s)):")
                for c in warn:
                    self._print_warning_job(c)
            if ineligible:
                print(f"  ❌ Cannot migrate ({len(ineligible)} job(s)):")
                for j in ineligible:
                    self._print_ineligible(j)

        self.print_scan_summary(result)

    def _print_safe(self, c: Candidate) -> None:
        print(f'     • "{c.job_name}" (L{c.line}) - Last execution time: {format_duration(c.duration)}')
        print(f"       {format_local_link(c.workflow_path, c.line)}")

    def _print_warning_job(self, c: Candidate) -> None:
        reasons: List[str] = []
        if c.missing_commands:
            reasons.append(f"Setup may be required ({', '.join(c.missing_commands)})")
        if c.duration is None:
            reasons.append("Last execution time: unknown")

        print(f'     • "{c.job_name}" (L{c.line})')
        if reasons:
            print(f"       ⚠️  {', '.join(reasons)}")
        if c.duration is not None:
            print(f"       Last execution time: {format_duration(c.duration)}")
        print(f"       {format_local_link(c.workflow_path, c.line)}")

    def _print_ineligible(self, j: IneligibleJob) -> None:
        print(f'     • "{j.job_name}" (L{j.line})')
        print(f"       ❌ {', '.join(j.reasons)}")
        print(f"       {format_local_link(j.workflow_path, j.line)}")

    def print_scan_summary(self, result: ScanResult) -> None:
        safe = len(result.safe)
        warn = len(result.warnings)
        print()
        if safe:
            print(f"✅ {safe} job(s) can be safely migrated")
        if warn:
            print(f"⚠️  {warn} job(s) can be migrated but require attention")
        if result.ineligible_jobs:
            print(f"❌ {len(result.ineligible_jobs)} job(s) cannot be migrated")
        if result.candidates:
            print(f"📊 Total: {len(result.candidates)} job(s) eligible for migration")
        if not result.candidates and not result.ineligible_jobs:
            print(f"No jobs found that can be safely migrated to {TARGET_RUNNER}.")

    # ------------------------------------------------------------------
    # Fix
    # ------------------------------------------------------------------

    def print_job_updated(self, c: Candidate, runner: str) -> None:
        if c.needs_attention:
            print(f'  ⚠️  Updated job "{c.job_name}" (L{c.line}) → {runner} (with warnings)')
        else:
            print(f'  ✓ Updated job "{c.job_name}" (L{c.line}) → {runner}')

    # ------------------------------------------------------------------
    # Generic
    # ------------------------------------------------------------------

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        print(f"\nERROR: {title}", file=sys.stderr)
        print(f"{message}", file=sys.stderr)
        if details:
            for detail in details:
                print(f"  {detail}", file=sys.stderr)
        if suggestion:
            print(f"\n{suggestion}", file=sys.stderr)

    def print_exception(self, exc: Exception) -> None:
        """Print exception, with full traceback only in verbose mode."""
        if self.verbose:
            import traceback
            traceback.print_exc()
        else:
            print(f"Error: {exc}", file=sys.stderr)

    def print_warning(self, message: str) -> None:
        print(f"Warning: {message}", file=sys.stderr)

    def print_info(self, message: str) -> None:
        """Print informational message."""
        print(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if verbose mode enabled)."""
        if self.verbose:
            print(f"[DEBUG] {message}", file=sys.stderr)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
