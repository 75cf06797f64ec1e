from .model import Candidate, IneligibleJob, Job, RunsOn, ScanResult, Step, Workflow
from .commands import extract_commands, missing_commands
from .eligibility import check_eligibility
from .scan import build_result, fetch_durations, scan
from .workflow import load_workflow, load_workflows, update_runs_on

__all__ = [
    "Candidate", "IneligibleJob", "Job", "RunsOn", "ScanResult", "Step", "Workflow",
    "extract_commands", "missing_commands", "check_eligibility",
    "build_result", "fetch_durations", "scan",
    "load_workflow", "load_workflows", "update_runs_on",
]
