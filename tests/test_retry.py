from __future__ import annotations

import pytest

from milestonesuite import retry
from milestonesuite.errors import IssueFetchError, MutationError

# Constants for test expectations
BASE_DELAY_MS = 100
EXPECTED_CALLS_AFTER_TWO_429 = 3


def test_backoff_doubles_per_attempt():
    cfg = retry.RetryConfig(attempts=4, base_delay_ms=250)
    assert [retry.backoff_ms(n, cfg) for n in (1, 2, 3)] == [250, 500, 1000]


def test_classify_outcome_variants():
    assert retry.classify_outcome(lambda: 5) == retry.Ok(5)

    def limited():
        raise MutationError("slow down", status=429)

    def broken():
        raise MutationError("bad request", status=400)

    assert isinstance(retry.classify_outcome(limited), retry.RetryableFailure)
    assert isinstance(retry.classify_outcome(broken), retry.FatalFailure)


def test_two_rate_limits_then_success():
    calls: list[int] = []
    sleeps: list[float] = []

    def fn():
        calls.append(1)
        if len(calls) < EXPECTED_CALLS_AFTER_TWO_429:
            raise MutationError("rate limited", status=429)
        return "ok"

    cfg = retry.RetryConfig(attempts=3, base_delay_ms=BASE_DELAY_MS)
    result = retry.call_with_retry(fn, cfg=cfg, sleep=sleeps.append)

    assert result == "ok"
    assert len(calls) == EXPECTED_CALLS_AFTER_TWO_429
    assert sleeps == [0.1, 0.2]


def test_non_rate_limit_error_is_not_retried():
    calls: list[int] = []
    sleeps: list[float] = []
    error = IssueFetchError("not found", status=404)

    def fn():
        calls.append(1)
        raise error

    with pytest.raises(IssueFetchError) as excinfo:
        retry.call_with_retry(fn, cfg=retry.RetryConfig(attempts=5, base_delay_ms=10), sleep=sleeps.append)
    assert excinfo.value is error
    assert len(calls) == 1
    assert sleeps == []


def test_rate_limit_exhausts_and_propagates_original():
    calls: list[int] = []
    sleeps: list[float] = []

    def fn():
        calls.append(1)
        raise MutationError(f"attempt {len(calls)}", status=429)

    cfg = retry.RetryConfig(attempts=3, base_delay_ms=10)
    with pytest.raises(MutationError, match="attempt 3"):
        retry.call_with_retry(fn, cfg=cfg, sleep=sleeps.append)
    assert len(calls) == cfg.attempts
    assert sleeps == [0.01, 0.02]


def test_plain_exception_without_status_is_fatal():
    sleeps: list[float] = []

    def fn():
        raise ValueError("boom")

    with pytest.raises(ValueError):
        retry.call_with_retry(fn, cfg=retry.RetryConfig(attempts=3, base_delay_ms=1), sleep=sleeps.append)
    assert sleeps == []


def test_retry_config_env_overrides(monkeypatch):
    monkeypatch.setenv("MILESTONESUITE_RETRY_ATTEMPTS", "5")
    monkeypatch.setenv("MILESTONESUITE_RETRY_BASE_MS", "42")
    cfg = retry.RetryConfig()
    assert cfg.attempts == 5
    assert cfg.base_delay_ms == 42
