from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

CsvRow = Mapping[str, str]


@dataclass(frozen=True)
class Milestone:
    id: int
    name: str

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> Milestone:
        return cls(id=int(payload["id"]), name=str(payload["name"]))


class MilestoneDirectory(Mapping[str, int]):
    """Project-wide name -> id table, fetched once per run and read-only."""

    def __init__(self, milestones: Iterable[Milestone] = ()) -> None:
        self._milestones = tuple(milestones)
        self._by_name: dict[str, int] = {}
        for m in self._milestones:
            self._by_name[m.name] = m.id

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, int]) -> MilestoneDirectory:
        return cls(Milestone(id=mid, name=name) for name, mid in mapping.items())

    def __getitem__(self, name: str) -> int:
        return self._by_name[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._by_name)

    def __len__(self) -> int:
        return len(self._by_name)

    def resolve(self, name: str) -> int | None:
        return self._by_name.get(name)

    def entries(self) -> tuple[Milestone, ...]:
        return self._milestones

    def __repr__(self) -> str:
        return f"MilestoneDirectory({self._by_name!r})"


@dataclass(frozen=True)
class IssueSnapshot:
    key: str
    summary: str
    milestones: tuple[Milestone, ...] = ()

    @classmethod
    def from_payload(cls, key: str, payload: Mapping[str, Any]) -> IssueSnapshot:
        raw = payload.get("milestone") or []
        milestones = tuple(
            Milestone.from_payload(m) for m in raw if isinstance(m, Mapping)
        )
        summary = payload.get("summary")
        return cls(
            key=str(payload.get("issueKey") or key),
            summary=summary if isinstance(summary, str) else "",
            milestones=milestones,
        )


@dataclass(frozen=True)
class IssueMilestoneState:
    """Milestones attached to one issue, as seen at processing time.

    ``ids`` is built from the issue's own milestone objects, so it can hold
    names the project directory no longer lists (archived milestones).
    """

    names: tuple[str, ...]
    ids: Mapping[str, int]

    @classmethod
    def from_snapshot(cls, snapshot: IssueSnapshot) -> IssueMilestoneState:
        return cls(
            names=tuple(m.name for m in snapshot.milestones),
            ids={m.name: m.id for m in snapshot.milestones},
        )


@dataclass(frozen=True)
class ReconciliationResult:
    before_names: tuple[str, ...]
    after_names: tuple[str, ...]
    changed: bool
    skipped: bool = False
    skip_reason: str | None = None
    unknown_target: bool = False
    notes: tuple[str, ...] = ()


class OutcomeStatus(str, Enum):
    SKIPPED = "has-skip-milestone"
    NO_CHANGE = "no-change"
    DRY_RUN = "dry-run"
    APPLIED = "applied"
    UNKNOWN_MILESTONE = "unknown-milestone"
    FAILED = "failed"


@dataclass(frozen=True)
class IssueOutcome:
    issue_key: str
    status: OutcomeStatus
    result: ReconciliationResult | None = None
    error: str | None = None


@dataclass(frozen=True)
class RunConfig:
    """Immutable run parameters, built once at startup."""

    csv_file: Path | None = None
    issue_key_column: str = ""
    milestone_column: str = ""
    target_milestone: str = ""
    skip_milestones: frozenset[str] = frozenset()
    dry_run: bool = False
    delay_ms: int = 800
    retry_attempts: int = 3
    retry_base_delay_ms: int = 1000
    csv_encoding: str = "utf-8-sig"
    log_dir: Path = Path("logs")


@dataclass
class RunSummary:
    row_count: int = 0
    processed_count: int = 0
    skipped_count: int = 0
    tallies: dict[str, int] = field(default_factory=dict)
    outcomes: list[IssueOutcome] = field(default_factory=list)

    def record(self, outcome: IssueOutcome) -> None:
        self.outcomes.append(outcome)
        key = outcome.status.value
        self.tallies[key] = self.tallies.get(key, 0) + 1

    def count(self, status: OutcomeStatus) -> int:
        return self.tallies.get(status.value, 0)


__all__ = [
    "CsvRow",
    "Milestone",
    "MilestoneDirectory",
    "IssueSnapshot",
    "IssueMilestoneState",
    "ReconciliationResult",
    "OutcomeStatus",
    "IssueOutcome",
    "RunConfig",
    "RunSummary",
]
