"""milestonesuite - bulk milestone edits for Backlog issues driven by CSV exports.

High-level public API:

from milestonesuite import RunConfig, run_batch, AddMilestone

summary = run_batch(
    RunConfig(issue_key_column="Key", target_milestone="v1.0", dry_run=True),
    lambda row: AddMilestone("v1.0"),
    client=client,
    directory=client.fetch_milestone_directory(),
    rows=iter_rows("issues.csv"),
)
print(summary.processed_count)

The CLI (``milestonesuite add|delete|update|milestones|convert-csv``)
delegates to this library.
"""

from __future__ import annotations

from .config import SuiteConfig, load_config
from .csv_source import iter_rows
from .models import MilestoneDirectory, ReconciliationResult, RunConfig, RunSummary
from .orchestrator import run_batch
from .reconcile import AddMilestone, DeleteMilestone, SetExactMilestones, reconcile

__version__ = "0.2.0"

__all__ = [
    "AddMilestone",
    "DeleteMilestone",
    "MilestoneDirectory",
    "ReconciliationResult",
    "RunConfig",
    "RunSummary",
    "SetExactMilestones",
    "SuiteConfig",
    "iter_rows",
    "load_config",
    "reconcile",
    "run_batch",
    "__version__",
]
