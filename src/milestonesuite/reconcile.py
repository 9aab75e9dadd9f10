"""Milestone reconciliation policies.

Each policy turns an issue's current milestone names into a target set:

* ``AddMilestone``: current names plus the target; an unknown target leaves
  the issue untouched
* ``DeleteMilestone``: current names minus the target, judged against the
  issue's own attached milestones so archived ones can be removed too
* ``SetExactMilestones``: the names in the CSV cell, trimmed, filtered to the
  directory and deduplicated

Policies are pure: they never touch the issue state they are given and the
result's ``changed`` flag compares both sides as sets. The skip gate runs
before any policy and wins over every other outcome.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Union

from .diffing import dedupe, same_milestones
from .models import IssueMilestoneState, MilestoneDirectory, ReconciliationResult

UNKNOWN_MILESTONE_NOTE = "unknown milestone"
UNLISTED_DELETE_NOTE = "removing a milestone not currently listed in the project"
SKIP_REASON = "has-skip-milestone"


@dataclass(frozen=True)
class AddMilestone:
    name: str


@dataclass(frozen=True)
class DeleteMilestone:
    name: str


@dataclass(frozen=True)
class SetExactMilestones:
    raw_names: tuple[str, ...]

    @classmethod
    def from_cell(cls, cell: str | None) -> SetExactMilestones:
        return cls(tuple(parse_milestone_cell(cell)))


Policy = Union[AddMilestone, DeleteMilestone, SetExactMilestones]


def parse_milestone_cell(cell: str | None) -> list[str]:
    if not cell:
        return []
    return [part.strip() for part in cell.split(",")]


def parse_name_list(raw: str | Iterable[str] | None) -> frozenset[str]:
    """Comma separated string (or iterable) -> set of non-empty trimmed names."""
    if raw is None:
        return frozenset()
    parts = raw.split(",") if isinstance(raw, str) else list(raw)
    return frozenset(p.strip() for p in parts if p and p.strip())


def should_skip(current_names: Iterable[str], skip_set: Iterable[str]) -> bool:
    skip = set(skip_set)
    if not skip:
        return False
    return not skip.isdisjoint(current_names)


def skipped_result(state: IssueMilestoneState) -> ReconciliationResult:
    return ReconciliationResult(
        before_names=state.names,
        after_names=state.names,
        changed=False,
        skipped=True,
        skip_reason=SKIP_REASON,
    )


def _result(
    before: Sequence[str], after: Sequence[str], *, notes: tuple[str, ...] = ()
) -> ReconciliationResult:
    return ReconciliationResult(
        before_names=tuple(before),
        after_names=tuple(after),
        changed=not same_milestones(before, after),
        notes=notes,
    )


def _reconcile_add(
    policy: AddMilestone, state: IssueMilestoneState, directory: MilestoneDirectory
) -> ReconciliationResult:
    if policy.name not in directory:
        return ReconciliationResult(
            before_names=state.names,
            after_names=state.names,
            changed=False,
            unknown_target=True,
            notes=(f'{UNKNOWN_MILESTONE_NOTE}: "{policy.name}"',),
        )
    return _result(state.names, dedupe([*state.names, policy.name]))


def _reconcile_delete(
    policy: DeleteMilestone, state: IssueMilestoneState, directory: MilestoneDirectory
) -> ReconciliationResult:
    notes: tuple[str, ...] = ()
    if policy.name not in directory:
        notes = (f'{UNLISTED_DELETE_NOTE}: "{policy.name}"',)
    after = [name for name in state.names if name != policy.name]
    return _result(state.names, after, notes=notes)


def _reconcile_set_exact(
    policy: SetExactMilestones, state: IssueMilestoneState, directory: MilestoneDirectory
) -> ReconciliationResult:
    wanted = [n.strip() for n in policy.raw_names]
    valid = [n for n in wanted if n and n in directory]
    return _result(state.names, dedupe(valid))


def reconcile(
    policy: Policy, state: IssueMilestoneState, directory: MilestoneDirectory
) -> ReconciliationResult:
    """Compute the target milestone set for one issue under ``policy``."""
    if isinstance(policy, AddMilestone):
        return _reconcile_add(policy, state, directory)
    if isinstance(policy, DeleteMilestone):
        return _reconcile_delete(policy, state, directory)
    if isinstance(policy, SetExactMilestones):
        return _reconcile_set_exact(policy, state, directory)
    raise TypeError(f"unsupported policy: {policy!r}")


def target_ids(
    policy: Policy,
    result: ReconciliationResult,
    state: IssueMilestoneState,
    directory: MilestoneDirectory,
) -> list[int]:
    """Milestone ids to send for ``result.after_names``.

    Delete keeps exactly the ids already attached to the issue. The other
    policies prefer the issue's own id for a name and fall back to the
    directory; names that resolve nowhere are dropped.
    """
    if isinstance(policy, DeleteMilestone):
        return [state.ids[name] for name in result.after_names if name in state.ids]
    ids: list[int] = []
    for name in result.after_names:
        mid = state.ids.get(name)
        if mid is None:
            mid = directory.resolve(name)
        if mid is not None and mid not in ids:
            ids.append(mid)
    return ids


def describe_policy(policy: Policy) -> str:
    if isinstance(policy, AddMilestone):
        return f"add {policy.name}"
    if isinstance(policy, DeleteMilestone):
        return f"delete {policy.name}"
    return "set " + (", ".join(policy.raw_names) or "(none)")


__all__ = [
    "AddMilestone",
    "DeleteMilestone",
    "SetExactMilestones",
    "Policy",
    "describe_policy",
    "parse_milestone_cell",
    "parse_name_list",
    "reconcile",
    "should_skip",
    "skipped_result",
    "target_ids",
]
