"""Tests for the submission pipeline."""

from unittest.mock import Mock

import pytest

from conftest import fake_response
from mailslot.clients.turnstile import VerificationResult
from mailslot.core.moderation import ContentModerator, ModerationSessionCache, ModerationVerdict
from mailslot.core.rate_limiter import RateLimiter
from mailslot.errors import (
    ModerationError,
    ModerationRejectedError,
    ModerationUnavailableError,
    RelayError,
    StorageError,
    ThrottledError,
    ValidationError,
    VerificationFailedError,
)
from mailslot.services.ingestion import IngestionPipeline

ORIGIN = "203.0.113.7"
WINDOW = 180


@pytest.fixture
def verifier():
    v = Mock()
    v.verify.return_value = VerificationResult(True)
    return v


@pytest.fixture
def moderator():
    m = Mock()
    m.check.return_value = ModerationVerdict(sensitive=False)
    return m


@pytest.fixture
def rate_limiter(kv, clock):
    return RateLimiter(kv, WINDOW, clock=clock)


@pytest.fixture
def pipeline(verifier, rate_limiter, moderator, kv_store):
    return IngestionPipeline(verifier, rate_limiter, moderator, kv_store)


def test_accepts_and_stores(pipeline, kv_store):
    receipt = pipeline.submit("  hello <b>world</b>  ", "tok", ORIGIN)
    assert receipt.relayed is None

    stored = kv_store.take_random()
    assert stored.id == receipt.id
    assert stored.content == "hello world"
    assert stored.title == "hello world"


def test_bot_check_runs_first(pipeline, verifier, moderator, kv_store):
    verifier.verify.return_value = VerificationResult(False, ["invalid-input-response"])
    with pytest.raises(VerificationFailedError):
        pipeline.submit("hi", "bad", ORIGIN)  # would also fail validation
    moderator.check.assert_not_called()
    assert kv_store.count() == 0
    verifier.verify.assert_called_once_with("bad", ORIGIN)


def test_invalid_input_does_not_consume_window(pipeline, rate_limiter, moderator):
    with pytest.raises(ValidationError):
        pipeline.submit("hi", "tok", ORIGIN)
    moderator.check.assert_not_called()
    assert rate_limiter.check(ORIGIN).allowed


def test_second_submission_throttled_until_window_passes(pipeline, clock, moderator):
    pipeline.submit("first message", "tok", ORIGIN)

    clock.advance(30)
    with pytest.raises(ThrottledError) as info:
        pipeline.submit("second message", "tok", ORIGIN)
    assert info.value.retry_after_seconds == WINDOW - 30
    assert info.value.status_code == 429
    # Throttled before the costly moderation call
    assert moderator.check.call_count == 1

    clock.advance(WINDOW)
    assert pipeline.submit("third message", "tok", ORIGIN).id


def test_rejected_content(pipeline, moderator, rate_limiter, kv_store):
    moderator.check.return_value = ModerationVerdict(sensitive=True, reasons=["badword"])
    with pytest.raises(ModerationRejectedError) as info:
        pipeline.submit("some badword here", "tok", ORIGIN)
    assert info.value.reasons == ["badword"]
    assert kv_store.count() == 0
    assert rate_limiter.check(ORIGIN).allowed


def test_moderation_failure_fails_closed(pipeline, moderator, rate_limiter, kv_store):
    moderator.check.side_effect = ModerationError("HTTP 500")
    with pytest.raises(ModerationUnavailableError) as info:
        pipeline.submit("hello there", "tok", ORIGIN)
    assert info.value.status_code == 503
    assert "500" not in info.value.public_message
    assert moderator.check.call_count == 1
    assert kv_store.count() == 0
    assert rate_limiter.check(ORIGIN).allowed


def test_auth_failure_retried_once(pipeline, moderator, kv_store):
    moderator.check.side_effect = [
        ModerationError("HTTP 403", auth_failure=True),
        ModerationVerdict(sensitive=False),
    ]
    pipeline.submit("hello there", "tok", ORIGIN)
    assert moderator.check.call_count == 2
    assert kv_store.count() == 1


def test_repeated_auth_failure_gives_up(pipeline, moderator):
    moderator.check.side_effect = ModerationError("HTTP 403", auth_failure=True)
    with pytest.raises(ModerationUnavailableError):
        pipeline.submit("hello there", "tok", ORIGIN)
    assert moderator.check.call_count == 2


def test_storage_failure_does_not_start_window(verifier, rate_limiter, moderator):
    store = Mock()
    store.enqueue.side_effect = StorageError()
    pipeline = IngestionPipeline(verifier, rate_limiter, moderator, store)
    with pytest.raises(StorageError):
        pipeline.submit("hello there", "tok", ORIGIN)
    assert rate_limiter.check(ORIGIN).allowed


def test_relay_failure_keeps_message(verifier, rate_limiter, moderator, kv_store):
    relay = Mock()
    relay.send.side_effect = RelayError("HTTP 502")
    pipeline = IngestionPipeline(verifier, rate_limiter, moderator, kv_store, relay=relay)

    receipt = pipeline.submit("hello there", "tok", ORIGIN)
    assert receipt.relayed is False
    assert kv_store.count() == 1
    assert not rate_limiter.check(ORIGIN).allowed


def test_relay_success(verifier, rate_limiter, moderator, kv_store):
    relay = Mock()
    pipeline = IngestionPipeline(verifier, rate_limiter, moderator, kv_store, relay=relay)
    receipt = pipeline.submit("hello there", "tok", ORIGIN)
    assert receipt.relayed is True
    sent = relay.send.call_args[0][0]
    assert sent.id == receipt.id


def test_trusted_submission_skips_bot_check(pipeline, verifier, kv_store):
    pipeline.submit_trusted("hello from a script", ORIGIN)
    verifier.verify.assert_not_called()
    assert kv_store.count() == 1


def test_forbidden_moderation_refetches_session(verifier, rate_limiter, kv, kv_store):
    http = Mock()
    http.get.side_effect = [
        fake_response(text='<meta name="csrf-token" content="old">', cookies={"sid": "1"}),
        fake_response(text='<meta name="csrf-token" content="new">', cookies={"sid": "2"}),
    ]
    http.post.side_effect = [
        fake_response(403),
        fake_response(json_data={"code": 0, "data": {"matchedTerms": []}}),
    ]
    sessions = ModerationSessionCache(kv, "https://moderation.example/", http=http)
    moderator = ContentModerator(sessions, "https://moderation.example/check", http=http)
    pipeline = IngestionPipeline(verifier, rate_limiter, moderator, kv_store)

    pipeline.submit("hello there", "tok", ORIGIN)

    assert http.get.call_count == 2
    assert http.post.call_args_list[1][1]["data"]["csrfToken"] == "new"
    assert http.post.call_args_list[1][1]["cookies"] == {"sid": "2"}
