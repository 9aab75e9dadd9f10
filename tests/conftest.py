"""Pytest configuration for milestonesuite tests.

Ensures the in-repo `src` directory is on `sys.path` so the package can be
imported without an editable install (`pip install -e .`), and provides an
in-memory Backlog client so no test talks to the network.
"""

from __future__ import annotations

import io
import sys
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from milestonesuite import logging as suite_logging  # noqa: E402
from milestonesuite.logging import StructuredLogger  # noqa: E402
from milestonesuite.models import IssueSnapshot, Milestone, MilestoneDirectory  # noqa: E402


class FakeBacklogClient:
    """Records every call; milestone updates are reflected in later fetches."""

    def __init__(
        self,
        directory: dict[str, int],
        issues: dict[str, list[tuple[int, str]]] | None = None,
        *,
        fetch_errors: dict[str, list[Exception]] | None = None,
        update_errors: dict[str, list[Exception]] | None = None,
        directory_error: Exception | None = None,
    ) -> None:
        self.directory = MilestoneDirectory.from_mapping(directory)
        self.issues: dict[str, list[tuple[int, str]]] = {k: list(v) for k, v in (issues or {}).items()}
        self.fetch_errors = fetch_errors or {}
        self.update_errors = update_errors or {}
        self.directory_error = directory_error
        self.fetches: list[str] = []
        self.updates: list[tuple[str, list[int]]] = []
        self.directory_calls = 0

    def fetch_milestone_directory(self) -> MilestoneDirectory:
        self.directory_calls += 1
        if self.directory_error is not None:
            raise self.directory_error
        return self.directory

    def fetch_issue(self, issue_key: str) -> IssueSnapshot:
        self.fetches.append(issue_key)
        errors = self.fetch_errors.get(issue_key)
        if errors:
            raise errors.pop(0)
        attached = self.issues[issue_key]
        return IssueSnapshot(
            key=issue_key,
            summary=f"Summary of {issue_key}",
            milestones=tuple(Milestone(id=i, name=n) for i, n in attached),
        )

    def update_issue_milestones(self, issue_key: str, milestone_ids: Iterable[int]) -> None:
        ids = list(milestone_ids)
        self.updates.append((issue_key, ids))
        errors = self.update_errors.get(issue_key)
        if errors:
            raise errors.pop(0)
        names = {mid: name for name, mid in self.directory.items()}
        names.update({mid: name for mid, name in self.issues.get(issue_key, [])})
        self.issues[issue_key] = [(mid, names[mid]) for mid in ids]


@pytest.fixture
def fake_client_cls() -> type[FakeBacklogClient]:
    return FakeBacklogClient


@pytest.fixture
def console() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def run_logger(tmp_path: Path, console: io.StringIO) -> Any:
    logger = StructuredLogger(
        name="milestonesuite.test", log_file=tmp_path / "run.log", stream=console
    )
    yield logger
    logger.close()


@pytest.fixture(autouse=True)
def fresh_global_logger(monkeypatch: pytest.MonkeyPatch) -> None:
    """Each test gets a global logger bound to its own captured stdout."""
    monkeypatch.setattr(suite_logging, "_GLOBAL", None)
