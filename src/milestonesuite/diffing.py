from __future__ import annotations

from collections.abc import Iterable, Sequence
from enum import Enum
from typing import Any

NONE_TEXT = "(none)"


class DiffStatus(str, Enum):
    APPLY = "apply"
    NO_CHANGE = "no-change"
    SKIP = "skip"
    HAS_SKIP_MILESTONE = "has-skip-milestone"


def dedupe(names: Iterable[str]) -> list[str]:
    """Drop repeated names, keeping first occurrence order."""
    seen: set[str] = set()
    out: list[str] = []
    for name in names:
        if name not in seen:
            seen.add(name)
            out.append(name)
    return out


def same_milestones(before: Iterable[str], after: Iterable[str]) -> bool:
    return sorted(set(before)) == sorted(set(after))


def extract_milestone_names(issue: dict[str, Any]) -> list[str]:
    names: list[str] = []
    raw = issue.get("milestone")
    if isinstance(raw, list):
        for entry in raw:
            if isinstance(entry, dict):
                name_val = entry.get("name")
                if isinstance(name_val, str):
                    names.append(name_val)
    return names


def format_names(names: Sequence[str] | str, none_text: str = NONE_TEXT) -> str:
    if isinstance(names, str):
        return names or none_text
    return ", ".join(names) if names else none_text


def render_diff_line(before: Sequence[str], after: Sequence[str], changed: bool) -> str:
    """``changed: a, b -> a`` or ``unchanged: a, b``."""
    if changed:
        return f"changed: {format_names(before)} -> {format_names(after)}"
    return f"unchanged: {format_names(before)}"


def render_status_line(
    before: Sequence[str], after: Sequence[str], status: DiffStatus
) -> str:
    if status is DiffStatus.HAS_SKIP_MILESTONE:
        return f"skipped (has skip milestone): {format_names(before)}"
    if status is DiffStatus.SKIP:
        return f"skipped: {format_names(before)}"
    return render_diff_line(before, after, status is DiffStatus.APPLY)


def render_header(issue_key: str, summary: str, status: DiffStatus, dry_run: bool) -> str:
    if status in (DiffStatus.SKIP, DiffStatus.HAS_SKIP_MILESTONE):
        label = "SKIP"
    else:
        label = "DRY-RUN" if dry_run else "APPLY"
    return f"[{label}] {issue_key} {summary}".rstrip()


def compute_diff(before: Sequence[str], after: Sequence[str]) -> dict[str, Any]:
    before_set = set(before)
    after_set = set(after)
    d: dict[str, Any] = {}
    if before_set != after_set:
        d["milestones_added"] = sorted(after_set - before_set)
        d["milestones_removed"] = sorted(before_set - after_set)
    return d


__all__ = [
    "DiffStatus",
    "NONE_TEXT",
    "compute_diff",
    "dedupe",
    "extract_milestone_names",
    "format_names",
    "render_diff_line",
    "render_header",
    "render_status_line",
    "same_milestones",
]
