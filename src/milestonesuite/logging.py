"""Structured logging for milestonesuite.

Every record goes to two channels: the console (stdout) and, when a run log
file is attached, an append-only audit file. Group headers (one per issue)
indent the file output so each issue's diff reads as a block.
"""

from __future__ import annotations

import json
import logging
import sys
import time
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TextIO

from .diffing import DiffStatus, render_status_line

RUN_LOG_TIMESTAMP = "%Y%m%d-%H%M%S"


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for attr in (
            "operation",
            "issue_key",
            "status",
            "duration_ms",
            "dry_run",
            "error",
        ):
            if hasattr(record, attr):
                entry[attr] = getattr(record, attr)
        # Include any extra (non-standard) attributes passed via extra kwargs
        reserved = set(entry.keys()) | set(
            logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
        ) | {"indent", "message", "asctime"}
        for k, v in record.__dict__.items():
            if k not in reserved and not k.startswith("_"):
                entry[k] = v
        return json.dumps(entry, ensure_ascii=False, default=str)


class RunLogFormatter(logging.Formatter):
    """Plain audit-file format: indented message, errors prefixed."""

    def format(self, record: logging.LogRecord) -> str:
        prefix = "ERROR: " if record.levelno >= logging.ERROR else ""
        return f"{getattr(record, 'indent', '')}{prefix}{record.getMessage()}"


class _IndentFilter(logging.Filter):
    def __init__(self, owner: StructuredLogger) -> None:
        super().__init__()
        self._owner = owner

    def filter(self, record: logging.LogRecord) -> bool:
        record.indent = "  " * self._owner.depth
        return True


class StructuredLogger:
    def __init__(
        self,
        name: str = "milestonesuite",
        json_logging: bool = False,
        level: str = "INFO",
        log_file: Path | None = None,
        stream: TextIO | None = None,
    ) -> None:
        self._logger = logging.getLogger(name)
        self._logger.setLevel(getattr(logging, level.upper(), logging.INFO))
        for h in list(self._logger.handlers):
            self._logger.removeHandler(h)
            h.close()
        self.depth = 0
        self.log_file = log_file
        indent = _IndentFilter(self)

        handler = logging.StreamHandler(stream or sys.stdout)
        handler.setFormatter(
            JSONFormatter()
            if json_logging
            else logging.Formatter("%(asctime)s %(levelname)s %(indent)s%(message)s")
        )
        handler.addFilter(indent)
        self._logger.addHandler(handler)

        if log_file is not None:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
            file_handler.setFormatter(JSONFormatter() if json_logging else RunLogFormatter())
            file_handler.addFilter(indent)
            self._logger.addHandler(file_handler)
        self._logger.propagate = False

    def log_operation(self, operation: str, **kw: Any) -> None:
        extra = {"operation": operation, **kw}
        self._logger.info(f"Operation: {operation}", extra=extra)

    def log_issue_action(
        self,
        action: str,
        issue_key: str,
        dry_run: bool = False,
        **kw: Any,
    ) -> None:
        extra: dict[str, Any] = {
            "operation": f"issue_{action}",
            "issue_key": issue_key,
            "dry_run": dry_run,
            **kw,
        }
        msg = f"issue {action} {issue_key}" + (" [DRY]" if dry_run else "")
        self._logger.info(msg, extra=extra)

    def emit_diff(
        self,
        issue_key: str,
        before: Sequence[str],
        after: Sequence[str],
        status: DiffStatus,
        dry_run: bool,
    ) -> None:
        extra = {
            "issue_key": issue_key,
            "status": status.value,
            "dry_run": dry_run,
            "before": list(before),
            "after": list(after),
        }
        self._logger.info(render_status_line(before, after, status), extra=extra)

    def log_performance(self, operation: str, duration_ms: float, **kw: Any) -> None:
        extra = {"operation": operation, "duration_ms": round(duration_ms, 2), **kw}
        self._logger.info(f"Performance: {operation} completed in {duration_ms:.2f}ms", extra=extra)

    def log_error(self, message: str, error: str | None = None, **kw: Any) -> None:
        extra = dict(kw)
        if error:
            extra["error"] = error
            message = f"{message} {error}"
        self._logger.error(message, extra=extra)

    def debug(self, message: str, **kw: Any) -> None:
        self._logger.debug(message, extra=kw)

    def info(self, message: str, **kw: Any) -> None:
        self._logger.info(message, extra=kw)

    def warning(self, message: str, **kw: Any) -> None:
        self._logger.warning(message, extra=kw)

    def error(self, message: str, **kw: Any) -> None:  # noqa: D401
        self._logger.error(message, extra=kw)

    def group(self, label: str, **kw: Any) -> None:
        self._logger.info("", extra=kw)
        self._logger.info(label, extra=kw)
        self.depth += 1

    def group_end(self) -> None:
        if self.depth > 0:
            self.depth -= 1

    @contextmanager
    def grouped(self, label: str, **kw: Any) -> Iterator[None]:
        self.group(label, **kw)
        try:
            yield
        finally:
            self.group_end()

    @contextmanager
    def timed_operation(self, operation: str, **kw: Any) -> Iterator[None]:  # noqa: D401
        start = time.perf_counter()
        self.log_operation(f"{operation}_start", **kw)
        try:
            yield
            self.log_performance(operation, (time.perf_counter() - start) * 1000, **kw)
        except Exception as exc:
            self.log_error(f"operation {operation} failed", error=str(exc), **kw)
            raise

    def close(self) -> None:
        for h in list(self._logger.handlers):
            h.flush()
            if isinstance(h, logging.FileHandler):
                self._logger.removeHandler(h)
                h.close()


_GLOBAL: StructuredLogger | None = None


def get_logger() -> StructuredLogger:
    global _GLOBAL  # noqa: PLW0603
    if _GLOBAL is None:
        _GLOBAL = StructuredLogger()
    return _GLOBAL


def configure_logging(
    json_logging: bool = False,
    level: str = "INFO",
    log_file: Path | None = None,
    stream: TextIO | None = None,
) -> StructuredLogger:
    global _GLOBAL  # noqa: PLW0603
    _GLOBAL = StructuredLogger(
        json_logging=json_logging, level=level, log_file=log_file, stream=stream
    )
    return _GLOBAL


def run_log_path(log_dir: str | Path, prefix: str = "run", now: datetime | None = None) -> Path:
    stamp = (now or datetime.now()).strftime(RUN_LOG_TIMESTAMP)
    return Path(log_dir) / f"{prefix}-{stamp}.log"


def create_run_logger(
    log_dir: str | Path,
    prefix: str = "run",
    *,
    json_logging: bool = False,
    level: str = "INFO",
    stream: TextIO | None = None,
) -> tuple[StructuredLogger, Path]:
    """Configure the global logger with a fresh timestamped run log file."""
    path = run_log_path(log_dir, prefix)
    logger = configure_logging(json_logging=json_logging, level=level, log_file=path, stream=stream)
    return logger, path


__all__ = [
    "JSONFormatter",
    "RunLogFormatter",
    "StructuredLogger",
    "configure_logging",
    "create_run_logger",
    "get_logger",
    "run_log_path",
]
