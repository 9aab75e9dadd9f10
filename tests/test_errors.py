from __future__ import annotations

from milestonesuite.errors import (
    BacklogAPIError,
    IssueFetchError,
    MutationError,
    classify_error,
    describe_error,
    redact,
)


def test_classify_rate_limit():
    info = classify_error(MutationError("too many", status=429))
    assert info.category == 'backlog.rate_limit'
    assert info.transient is True
    assert info.status == 429


def test_classify_not_found():
    info = classify_error(IssueFetchError("missing", status=404))
    assert info.category == 'backlog.not_found'
    assert info.transient is False


def test_classify_network():
    info = classify_error(BacklogAPIError('Connection reset by peer'))
    assert info.category == 'network'
    assert info.transient is True


def test_classify_generic():
    info = classify_error(RuntimeError('Something odd'))
    assert info.category == 'generic'
    assert info.original_type == 'RuntimeError'


def test_rate_limited_flag():
    assert MutationError("x", status=429).rate_limited
    assert not MutationError("x", status=500).rate_limited
    assert not MutationError("x").rate_limited


def test_redact_api_key_in_url():
    text = 'GET https://demo.backlog.jp/api/v2/issues/PRJ-1?apiKey=abc123&count=1'
    red = redact(text)
    assert 'abc123' not in red
    assert 'apiKey=<redacted>&count=1' in red


def test_redact_env_dump():
    red = redact('BACKLOG_API_KEY=supersecret BACKLOG_PROJECT_KEY=PRJ')
    assert 'supersecret' not in red
    assert 'BACKLOG_PROJECT_KEY=PRJ' in red


def test_describe_error_appends_response_body():
    exc = MutationError(
        "update failed for PRJ-1 (HTTP 400)",
        status=400,
        response_text='{"errors":[{"message":"No such milestone."}]}\n',
    )
    assert describe_error(exc) == (
        'update failed for PRJ-1 (HTTP 400): {"errors":[{"message":"No such milestone."}]}'
    )


def test_describe_error_falls_back_to_type_name():
    assert describe_error(RuntimeError()) == "RuntimeError"
