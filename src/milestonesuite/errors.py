"""Error taxonomy & redaction helpers.

Every failure the batch can hit maps onto one of a handful of exception
types so the driver can decide, per issue, whether to retry, record a
failure, or abort the run:

- ``ConfigError``          -> missing/invalid run parameter (fatal, before any row)
- ``DirectoryFetchError``  -> milestone directory unavailable (fatal)
- ``IssueFetchError``      -> snapshot read failed (per issue)
- ``MutationError``        -> milestone update failed (per issue)

All API-derived errors carry the HTTP ``status`` when the service answered.

Public API:
- classify_error(exc) -> ErrorInfo
- redact(text) -> str
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

RATE_LIMIT_STATUS = 429
NOT_FOUND_STATUS = 404

# Backlog authenticates via an apiKey query parameter, which leaks into URLs
_SENSITIVE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"(apiKey=)[^&\s]+", re.IGNORECASE),
    re.compile(r"(BACKLOG_API_KEY=)\S+"),
]

_REDACTION_PLACEHOLDER = "<redacted>"


class MilestoneSuiteError(RuntimeError):
    """Base class for all errors raised by milestonesuite."""


class ConfigError(MilestoneSuiteError):
    pass


class BacklogAPIError(MilestoneSuiteError):
    """Raised when the Backlog REST API returns an error or is unreachable."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        response_text: str | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.response_text = response_text

    @property
    def rate_limited(self) -> bool:
        return self.status == RATE_LIMIT_STATUS


class DirectoryFetchError(BacklogAPIError):
    """Milestone directory could not be loaded; the run cannot continue."""


class IssueFetchError(BacklogAPIError):
    """Issue snapshot could not be loaded."""


class MutationError(BacklogAPIError):
    """Issue milestone update was rejected or failed in transit."""


@dataclass
class ErrorInfo:
    category: str
    message: str
    original_type: str
    transient: bool = False
    status: int | None = None
    details: dict[str, Any] | None = None


def redact(text: str) -> str:
    """Mask API keys in arbitrary text (URLs, env dumps, response bodies)."""
    if not text:
        return text
    redacted = text
    for pat in _SENSITIVE_PATTERNS:
        redacted = pat.sub(lambda m: m.group(1) + _REDACTION_PLACEHOLDER, redacted)
    return redacted


def error_status(exc: BaseException) -> int | None:
    status = getattr(exc, "status", None)
    return status if isinstance(status, int) else None


def classify_error(exc: BaseException) -> ErrorInfo:
    """Best-effort classification of an exception.

    - HTTP 429 -> 'backlog.rate_limit', transient
    - HTTP 404 -> 'backlog.not_found'
    - Network-y keywords -> 'network', transient
    - Fallback -> 'generic'
    """
    msg = redact(str(exc) if exc else "")
    low = msg.lower()
    status = error_status(exc)
    kind = exc.__class__.__name__

    if status == RATE_LIMIT_STATUS:
        return ErrorInfo("backlog.rate_limit", msg, kind, transient=True, status=status)
    if status == NOT_FOUND_STATUS:
        return ErrorInfo("backlog.not_found", msg, kind, status=status)
    if any(k in low for k in ("timeout", "timed out", "connection reset", "temporarily unavailable")):
        return ErrorInfo("network", msg, kind, transient=True, status=status)
    return ErrorInfo("generic", msg, kind, status=status)


def describe_error(exc: BaseException) -> str:
    """One-line, redacted description suitable for console and run log."""
    text = str(exc) or exc.__class__.__name__
    response_text = getattr(exc, "response_text", None)
    if isinstance(response_text, str) and response_text.strip():
        text = f"{text}: {response_text.strip()}"
    return redact(text)


__all__ = [
    "MilestoneSuiteError",
    "ConfigError",
    "BacklogAPIError",
    "DirectoryFetchError",
    "IssueFetchError",
    "MutationError",
    "ErrorInfo",
    "classify_error",
    "describe_error",
    "error_status",
    "redact",
]
