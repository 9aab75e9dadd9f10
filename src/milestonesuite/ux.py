"""Console helpers for CLI output - no external dependencies."""

from __future__ import annotations

import os
import sys
from collections.abc import Sequence
from typing import TextIO

from .models import OutcomeStatus, RunSummary


class Colors:
    """ANSI color codes for terminal output."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"


def _supports_color(stream: TextIO | None = None) -> bool:
    """Check if terminal supports color output."""
    stream = stream or sys.stdout
    if os.environ.get("NO_COLOR"):
        return False
    if not hasattr(stream, "isatty") or not stream.isatty():
        return False
    return os.environ.get("TERM") != "dumb"


def colorize(text: str, color: str, bold: bool = False, stream: TextIO | None = None) -> str:
    """Apply color to text if terminal supports it."""
    if not _supports_color(stream):
        return text
    prefix = (Colors.BOLD if bold else "") + color
    return f"{prefix}{text}{Colors.RESET}"


def print_success(message: str, stream: TextIO | None = None) -> None:
    stream = stream or sys.stdout
    print(colorize("✓", Colors.GREEN, bold=True, stream=stream) + " " + message, file=stream)


def print_error(message: str, stream: TextIO | None = None) -> None:
    stream = stream or sys.stderr
    print(colorize("✗", Colors.RED, bold=True, stream=stream) + " " + message, file=stream)


def print_summary_box(
    title: str, items: Sequence[tuple[str, str | int]], stream: TextIO | None = None
) -> None:
    """Print a formatted summary box with key-value pairs."""
    stream = stream or sys.stdout
    max_key_len = max((len(k) for k, _ in items), default=0)

    print(colorize(f"\n{title}", Colors.CYAN, bold=True, stream=stream), file=stream)
    print(colorize("─" * 60, Colors.DIM, stream=stream), file=stream)
    for key, value in items:
        value_str = str(value)
        if key == "failed" and isinstance(value, int) and value > 0:
            value_colored = colorize(value_str, Colors.RED, bold=True, stream=stream)
        elif isinstance(value, int) and value > 0:
            value_colored = colorize(value_str, Colors.GREEN, bold=True, stream=stream)
        elif value_str.lower() in ("true", "yes"):
            value_colored = colorize(value_str, Colors.YELLOW, stream=stream)
        else:
            value_colored = value_str
        print(f"  {key.ljust(max_key_len)}  {value_colored}", file=stream)
    print(colorize("─" * 60, Colors.DIM, stream=stream), file=stream)


def summary_items(summary: RunSummary, dry_run: bool) -> list[tuple[str, str | int]]:
    return [
        ("rows", summary.row_count),
        ("processed", summary.processed_count),
        ("skipped (empty key)", summary.skipped_count),
        ("applied", summary.count(OutcomeStatus.APPLIED)),
        ("would apply", summary.count(OutcomeStatus.DRY_RUN)),
        ("unchanged", summary.count(OutcomeStatus.NO_CHANGE)),
        ("has skip milestone", summary.count(OutcomeStatus.SKIPPED)),
        ("unknown milestone", summary.count(OutcomeStatus.UNKNOWN_MILESTONE)),
        ("failed", summary.count(OutcomeStatus.FAILED)),
        ("dry run", "yes" if dry_run else "no"),
    ]


__all__ = [
    "Colors",
    "colorize",
    "print_error",
    "print_success",
    "print_summary_box",
    "summary_items",
]
