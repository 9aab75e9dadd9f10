"""Centralized retry / backoff helpers.

Provides ``call_with_retry`` which wraps one outbound Backlog call with
bounded retries and exponential backoff on rate-limit responses (HTTP 429).

Each attempt is first turned into an explicit outcome value
(``Ok`` / ``RetryableFailure`` / ``FatalFailure``) so the loop itself is a
plain decision over that value: return, sleep and retry, or re-raise the
original exception unchanged.

Environment overrides:
  MILESTONESUITE_RETRY_ATTEMPTS (default 3)
  MILESTONESUITE_RETRY_BASE_MS (milliseconds base, default 1000)
"""

from __future__ import annotations

import os
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Generic, TypeVar, Union

from .errors import RATE_LIMIT_STATUS, error_status
from .logging import get_logger

T = TypeVar("T")


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, str(default)))
    except ValueError:
        return default


@dataclass(frozen=True)
class RetryConfig:
    attempts: int = field(default_factory=lambda: _env_int("MILESTONESUITE_RETRY_ATTEMPTS", 3))
    base_delay_ms: int = field(
        default_factory=lambda: _env_int("MILESTONESUITE_RETRY_BASE_MS", 1000)
    )


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class RetryableFailure:
    error: Exception


@dataclass(frozen=True)
class FatalFailure:
    error: Exception


Outcome = Union[Ok[T], RetryableFailure, FatalFailure]


def is_rate_limited(exc: BaseException) -> bool:
    return error_status(exc) == RATE_LIMIT_STATUS


def classify_outcome(fn: Callable[[], T]) -> Outcome[T]:
    try:
        return Ok(fn())
    except Exception as exc:
        if is_rate_limited(exc):
            return RetryableFailure(exc)
        return FatalFailure(exc)


def backoff_ms(attempt: int, cfg: RetryConfig) -> int:
    """Wait before retrying after ``attempt`` failed: base, 2x base, 4x base..."""
    return cfg.base_delay_ms * (2 ** (attempt - 1))


def call_with_retry(
    fn: Callable[[], T],
    *,
    cfg: RetryConfig | None = None,
    sleep: Callable[[float], None] = time.sleep,
    label: str = "call",
) -> T:
    cfg = cfg or RetryConfig()
    attempts = max(1, cfg.attempts)
    for attempt in range(1, attempts + 1):
        outcome = classify_outcome(fn)
        if isinstance(outcome, Ok):
            return outcome.value
        if isinstance(outcome, FatalFailure) or attempt >= attempts:
            raise outcome.error
        wait_ms = backoff_ms(attempt, cfg)
        get_logger().warning(
            f"[retry] {label} rate limited, attempt {attempt}/{attempts}, "
            f"sleeping {wait_ms / 1000:.2f}s",
            operation="retry",
            attempt=attempt,
            wait_ms=wait_ms,
        )
        sleep(wait_ms / 1000)
    raise RuntimeError("retry logic exited unexpectedly")  # pragma: no cover


__all__ = [
    "RetryConfig",
    "Ok",
    "RetryableFailure",
    "FatalFailure",
    "Outcome",
    "backoff_ms",
    "call_with_retry",
    "classify_outcome",
    "is_rate_limited",
]
