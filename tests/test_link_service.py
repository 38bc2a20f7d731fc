from __future__ import annotations

import datetime as dt
import logging
from concurrent.futures import ThreadPoolExecutor
from threading import Barrier
from uuid import uuid4

import pytest
from pydantic import ValidationError

from onetime_link.core.config import Settings
from onetime_link.core.exceptions import DuplicateTokenError, InvalidInputError, StoreUnavailableError
from onetime_link.models.link_token import LinkToken
from onetime_link.services.links import LinkOptions, LinkService
from onetime_link.services.tokens import encoded_length
from onetime_link.stores.base import LinkRecord


def _token_of(url: str) -> str:
    return url.rsplit("/", 1)[1]


def test_issue_returns_url_with_token_and_persists_record(memory_service, memory_store, clock) -> None:  # noqa: ANN001
    url = memory_service.issue("https://x", "u1", "p1", dt.timedelta(hours=1))

    token = _token_of(url)
    assert url == f"https://x/{token}"
    assert len(token) == encoded_length(32)

    stored = memory_store.find_by_token(token)
    assert stored is not None
    assert stored.subject_id == "u1"
    assert stored.purpose == "p1"
    assert stored.used is False
    assert stored.created_at == clock.now
    assert stored.expires_at == clock.now + dt.timedelta(hours=1)


def test_issue_strips_trailing_slash_from_base_url(memory_service) -> None:  # noqa: ANN001
    url = memory_service.issue("https://example.com/verify/", "u1", "p1")

    assert url.startswith("https://example.com/verify/")
    assert "//" not in url.removeprefix("https://")


def test_issue_without_expiration_uses_configured_default(memory_store, clock) -> None:  # noqa: ANN001
    service = LinkService(memory_store, LinkOptions(default_expiration=dt.timedelta(hours=6)), clock=clock)

    record = service.issue_record("u1", "email-verification")

    assert record.expires_at - record.created_at == dt.timedelta(hours=6)


def test_default_options_expire_after_24_hours(memory_store) -> None:  # noqa: ANN001
    service = LinkService(memory_store)

    record = service.issue_record(None, "password-reset")

    assert record.expires_at - record.created_at == dt.timedelta(hours=24)
    assert record.subject_id is None


def test_empty_subject_is_stored_as_none(memory_service) -> None:  # noqa: ANN001
    assert memory_service.issue_record("", "p1").subject_id is None


@pytest.mark.parametrize(
    ("base_url", "purpose", "expiration", "field"),
    [
        ("https://x", "", None, "purpose"),
        ("https://x", "   ", None, "purpose"),
        ("", "p1", None, "base_url"),
        ("https://x", "p1", dt.timedelta(0), "expiration"),
        ("https://x", "p1", dt.timedelta(milliseconds=-1), "expiration"),
    ],
)
def test_invalid_input_is_rejected_before_touching_store(
    memory_service, memory_store, base_url, purpose, expiration, field  # noqa: ANN001
) -> None:
    with pytest.raises(InvalidInputError) as exc_info:
        memory_service.issue(base_url, "u1", purpose, expiration)

    assert exc_info.value.details == {"field": field}
    assert len(memory_store) == 0


def test_invalid_options_are_rejected() -> None:
    with pytest.raises(InvalidInputError):
        LinkOptions(default_expiration=dt.timedelta(0))
    with pytest.raises(InvalidInputError):
        LinkOptions(token_bytes=0)
    with pytest.raises(InvalidInputError):
        LinkOptions(max_issue_attempts=0)


def test_options_from_settings() -> None:
    class _Settings:
        LINK_DEFAULT_EXPIRATION_HOURS = 2
        LINK_TOKEN_BYTES = 16
        LINK_ISSUE_MAX_ATTEMPTS = 5

    options = LinkOptions.from_settings(_Settings())

    assert options == LinkOptions(default_expiration=dt.timedelta(hours=2), token_bytes=16, max_issue_attempts=5)


def test_issued_token_exists_until_consumed(memory_service) -> None:  # noqa: ANN001
    token = _token_of(memory_service.issue("https://x", "u1", "p1"))

    assert memory_service.exists(token) is True

    consumed = memory_service.consume(token)

    assert consumed is not None
    assert consumed.used is True
    assert consumed.subject_id == "u1"
    assert consumed.purpose == "p1"
    assert memory_service.exists(token) is False


def test_second_consume_is_rejected(memory_service) -> None:  # noqa: ANN001
    token = _token_of(memory_service.issue("https://x", "u1", "p1"))

    assert memory_service.consume(token) is not None
    assert memory_service.consume(token) is None


def test_unknown_used_and_expired_tokens_look_the_same(memory_service, clock) -> None:  # noqa: ANN001
    used = _token_of(memory_service.issue("https://x", "u1", "p1"))
    memory_service.consume(used)
    expired = _token_of(memory_service.issue("https://x", "u1", "p1", dt.timedelta(milliseconds=1)))
    clock.advance(dt.timedelta(milliseconds=2))

    outcomes = [memory_service.consume(token) for token in ("does-not-exist", used, expired)]

    assert outcomes == [None, None, None]
    assert [memory_service.exists(token) for token in ("does-not-exist", used, expired)] == [False, False, False]


def test_token_is_invalid_exactly_at_expiry(memory_service, clock) -> None:  # noqa: ANN001
    token = _token_of(memory_service.issue("https://x", "u1", "p1", dt.timedelta(minutes=5)))
    clock.advance(dt.timedelta(minutes=5))

    assert memory_service.exists(token) is False
    assert memory_service.consume(token) is None


def test_blank_token_is_rejected_without_store_call(memory_service, monkeypatch) -> None:  # noqa: ANN001
    def fail(*_args):  # noqa: ANN001, ANN202
        raise AssertionError("store should not be called")

    monkeypatch.setattr(memory_service.store, "conditional_mark_used", fail)
    monkeypatch.setattr(memory_service.store, "exists_valid", fail)

    assert memory_service.consume("") is None
    assert memory_service.consume("   ") is None
    assert memory_service.exists("") is False


def test_consume_for_purpose_spends_token_on_mismatch(memory_service) -> None:  # noqa: ANN001
    token = _token_of(memory_service.issue("https://x", "u1", "password-reset"))

    assert memory_service.consume_for_purpose(token, "email-verification") is None
    assert memory_service.consume(token) is None


def test_consume_for_purpose_returns_matching_record(memory_service) -> None:  # noqa: ANN001
    token = _token_of(memory_service.issue("https://x", "u1", "email-verification"))

    record = memory_service.consume_for_purpose(token, "email-verification")

    assert record is not None
    assert record.subject_id == "u1"


def test_find_keeps_history_until_swept(memory_service, clock) -> None:  # noqa: ANN001
    token = _token_of(memory_service.issue("https://x", "u1", "p1", dt.timedelta(hours=1)))
    memory_service.consume(token)
    clock.advance(dt.timedelta(hours=2))

    found = memory_service.find(token)
    assert found is not None
    assert found.used is True

    memory_service.cleanup()

    assert memory_service.find(token) is None


def test_cleanup_removes_only_expired_rows_and_is_idempotent(memory_service, memory_store, clock) -> None:  # noqa: ANN001
    short = _token_of(memory_service.issue("https://x", "u1", "p1", dt.timedelta(minutes=10)))
    used_short = _token_of(memory_service.issue("https://x", "u2", "p1", dt.timedelta(minutes=10)))
    memory_service.consume(used_short)
    long_lived = _token_of(memory_service.issue("https://x", "u3", "p1", dt.timedelta(hours=5)))
    used_long = _token_of(memory_service.issue("https://x", "u4", "p1", dt.timedelta(hours=5)))
    memory_service.consume(used_long)

    clock.advance(dt.timedelta(minutes=11))

    assert memory_service.cleanup() == 2
    assert memory_service.cleanup() == 0
    assert memory_store.find_by_token(short) is None
    assert memory_store.find_by_token(used_short) is None
    assert memory_store.find_by_token(long_lived) is not None
    assert memory_store.find_by_token(used_long) is not None
    assert len(memory_store) == 2


def test_cleanup_keeps_rows_expiring_exactly_now(memory_service, memory_store, clock) -> None:  # noqa: ANN001
    token = _token_of(memory_service.issue("https://x", "u1", "p1", dt.timedelta(minutes=1)))
    clock.advance(dt.timedelta(minutes=1))

    assert memory_service.cleanup() == 0
    assert memory_store.find_by_token(token) is not None


def test_used_then_expired_token_is_swept(memory_service, memory_store, clock) -> None:  # noqa: ANN001
    token = _token_of(memory_service.issue("https://x", "u1", "p1", dt.timedelta(hours=1)))
    assert memory_service.consume(token) is not None
    clock.advance(dt.timedelta(hours=1, seconds=1))

    assert memory_service.exists(token) is False
    assert memory_service.consume(token) is None

    memory_service.cleanup()

    assert memory_store.find_by_token(token) is None


def test_issue_retries_with_fresh_token_after_collision(memory_store, clock, caplog) -> None:  # noqa: ANN001
    tokens = iter(["taken", "taken", "fresh"])
    service = LinkService(memory_store, clock=clock, token_generator=lambda _length: next(tokens))
    service.issue("https://x", "u0", "p1")

    with caplog.at_level(logging.WARNING, logger="onetime_link.services.links"):
        url = service.issue("https://x", "u1", "p1")

    assert url == "https://x/fresh"
    assert "collision" in caplog.text
    assert "fresh" not in caplog.text


def test_issue_gives_up_after_max_attempts(memory_store, clock) -> None:  # noqa: ANN001
    calls: list[int] = []

    def always_taken(length: int) -> str:
        calls.append(length)
        return "taken"

    memory_store.insert(
        LinkRecord(
            id=uuid4(),
            token="taken",
            created_at=clock.now,
            expires_at=clock.now + dt.timedelta(hours=1),
            used=False,
            purpose="p1",
        )
    )
    service = LinkService(memory_store, LinkOptions(max_issue_attempts=3), clock=clock, token_generator=always_taken)

    with pytest.raises(StoreUnavailableError):
        service.issue("https://x", "u1", "p1")
    assert len(calls) == 3


def test_store_failures_propagate(memory_service, monkeypatch) -> None:  # noqa: ANN001
    def broken(*_args):  # noqa: ANN001, ANN202
        raise StoreUnavailableError(operation="conditional_mark_used")

    monkeypatch.setattr(memory_service.store, "conditional_mark_used", broken)

    with pytest.raises(StoreUnavailableError):
        memory_service.consume("anything")


def test_memory_store_rejects_duplicate_tokens(memory_service, memory_store) -> None:  # noqa: ANN001
    record = memory_service.issue_record("u1", "p1")

    with pytest.raises(DuplicateTokenError):
        memory_store.insert(record)


def test_concurrent_consumes_have_exactly_one_winner(memory_service) -> None:  # noqa: ANN001
    token = _token_of(memory_service.issue("https://x", "u1", "p1"))
    workers = 16
    barrier = Barrier(workers)

    def attempt(_: int):  # noqa: ANN202
        barrier.wait()
        return memory_service.consume(token)

    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(attempt, range(workers)))

    winners = [result for result in results if result is not None]
    assert len(winners) == 1
    assert winners[0].used is True


def test_token_bytes_must_fit_the_token_column() -> None:
    column_width = LinkToken.__table__.c.token.type.length

    assert encoded_length(LinkOptions(token_bytes=48).token_bytes) == column_width
    for too_wide in (49, 64):
        with pytest.raises(InvalidInputError) as exc_info:
            LinkOptions(token_bytes=too_wide)
        assert exc_info.value.details == {"field": "token_bytes"}


def test_token_bytes_setting_is_bounded_by_the_column() -> None:
    with pytest.raises(ValidationError):
        Settings(LINK_TOKEN_BYTES=64)

    assert Settings(LINK_TOKEN_BYTES=48).LINK_TOKEN_BYTES == 48
