from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from app.core.errors import RateLimitExceededError
from app.models.deck import Deck
from app.models.generation import Generation
from app.services.rate_limit.rate_limit_service import (
    RateLimitInfo,
    check_generation_limit,
    enforce_generation_limit,
    get_rate_limit_headers,
    get_retry_after_seconds,
)

pytestmark = pytest.mark.anyio

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


async def _seed_generations(db_session, user_id, count, start):
    deck = Deck(user_id=user_id, name="Deck")
    db_session.add(deck)
    await db_session.flush()
    for i in range(count):
        db_session.add(
            Generation(
                deck_id=deck.id,
                user_id=user_id,
                model="openai/gpt-4o-mini",
                generated_count=5,
                source_text_hash="0" * 64,
                source_text_length=1500,
                generation_duration=1200,
                created_at=start + timedelta(minutes=i),
            )
        )
    await db_session.commit()


async def test_no_generations_allows_full_quota(db_session, user_id):
    info = await check_generation_limit(db_session, user_id, now=NOW)

    assert info.allowed is True
    assert info.remaining == 10
    assert info.current_count == 0
    assert info.reset_at == NOW + timedelta(minutes=60)


async def test_limit_reached_after_ten_generations(db_session, user_id):
    first = NOW - timedelta(minutes=30)
    await _seed_generations(db_session, user_id, 10, first)

    info = await check_generation_limit(db_session, user_id, now=NOW)

    assert info.allowed is False
    assert info.remaining == 0
    assert info.current_count == 10
    # Earliest record in the window plus the window length
    assert info.reset_at == first + timedelta(minutes=60)


async def test_limit_recovers_once_window_passes_earliest_record(db_session, user_id):
    first = NOW - timedelta(minutes=30)
    await _seed_generations(db_session, user_id, 10, first)

    later = first + timedelta(minutes=60, seconds=30)
    info = await check_generation_limit(db_session, user_id, now=later)

    assert info.allowed is True
    assert info.current_count == 9
    assert info.remaining == 1


async def test_other_users_generations_do_not_count(db_session, user_id):
    await _seed_generations(db_session, uuid.uuid4(), 10, NOW - timedelta(minutes=5))

    info = await check_generation_limit(db_session, user_id, now=NOW)
    assert info.allowed is True
    assert info.remaining == 10


class _BrokenSession:
    async def execute(self, *args, **kwargs):
        raise OperationalError("SELECT ...", {}, Exception("connection refused"))

    async def rollback(self):
        return None


async def test_fails_open_when_database_errors(user_id):
    info = await check_generation_limit(_BrokenSession(), user_id, now=NOW)

    assert info.allowed is True
    assert info.remaining == info.limit == 10
    assert info.current_count == 0


async def test_enforce_raises_with_snapshot(db_session, user_id):
    await _seed_generations(db_session, user_id, 10, datetime.now(timezone.utc) - timedelta(minutes=10))

    with pytest.raises(RateLimitExceededError) as exc_info:
        await enforce_generation_limit(db_session, user_id)

    error = exc_info.value
    assert error.status_code == 429
    assert error.details["limit"] == 10
    assert error.details["current_count"] == 10
    headers = error.headers
    assert headers["X-RateLimit-Remaining"] == "0"
    assert 0 < int(headers["Retry-After"]) <= 3600


def test_rate_limit_headers():
    reset_at = datetime(2026, 1, 1, tzinfo=timezone.utc)
    info = RateLimitInfo(allowed=True, remaining=4, reset_at=reset_at, current_count=6, limit=10)

    assert get_rate_limit_headers(info) == {
        "X-RateLimit-Limit": "10",
        "X-RateLimit-Remaining": "4",
        "X-RateLimit-Reset": str(int(reset_at.timestamp())),
    }


def test_retry_after_rounds_up_and_never_goes_negative():
    assert get_retry_after_seconds(NOW + timedelta(seconds=90.2), now=NOW) == 91
    assert get_retry_after_seconds(NOW - timedelta(seconds=5), now=NOW) == 0
