"""Sliding-window limit on AI generations per user.

The window trails ``now``; ``reset_at`` is when the oldest generation in the
window falls out of it, so quota comes back one request at a time.
"""

import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import RateLimitExceededError
from app.models.generation import Generation
from app.utils.datetime_utils import ensure_utc, get_current_utc_datetime

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitInfo:
    allowed: bool
    remaining: int
    reset_at: datetime
    current_count: int
    limit: int

    def to_headers(self) -> Dict[str, str]:
        return get_rate_limit_headers(self)

    def retry_after_seconds(self, now: Optional[datetime] = None) -> int:
        return get_retry_after_seconds(self.reset_at, now)

    def to_dict(self) -> Dict[str, object]:
        return {
            "limit": self.limit,
            "remaining": self.remaining,
            "current_count": self.current_count,
            "reset_at": self.reset_at.isoformat(),
        }


def _window() -> timedelta:
    return timedelta(minutes=settings.RATE_LIMIT_WINDOW_MINUTES)


async def check_generation_limit(
    db: AsyncSession,
    user_id: uuid.UUID,
    now: Optional[datetime] = None,
    *,
    limit: Optional[int] = None,
    window: Optional[timedelta] = None,
) -> RateLimitInfo:
    """
    Count the user's generations inside the trailing window.

    Fails open: if the query errors, the user gets the full quota and the
    error is logged.
    """
    now = now or get_current_utc_datetime()
    limit = limit or settings.GENERATIONS_PER_HOUR
    window = window or _window()
    window_start = now - window

    try:
        result = await db.execute(
            select(func.count(Generation.id), func.min(Generation.created_at)).where(
                Generation.user_id == user_id,
                Generation.created_at >= window_start,
            )
        )
        current_count, earliest = result.one()
    except SQLAlchemyError as exc:
        logger.error("Rate limit check failed for user %s, allowing request: %s", user_id, exc)
        try:
            await db.rollback()
        except SQLAlchemyError:
            logger.warning("Rollback after failed rate limit check also failed")
        return RateLimitInfo(
            allowed=True,
            remaining=limit,
            reset_at=now + window,
            current_count=0,
            limit=limit,
        )

    current_count = current_count or 0
    if current_count and earliest is not None:
        reset_at = ensure_utc(earliest) + window
    else:
        reset_at = now + window

    return RateLimitInfo(
        allowed=current_count < limit,
        remaining=max(0, limit - current_count),
        reset_at=reset_at,
        current_count=current_count,
        limit=limit,
    )


async def enforce_generation_limit(
    db: AsyncSession, user_id: uuid.UUID, now: Optional[datetime] = None
) -> RateLimitInfo:
    """Return the snapshot, or raise RateLimitExceededError when the quota is used up."""
    info = await check_generation_limit(db, user_id, now)
    if not info.allowed:
        logger.info(
            "User %s hit generation limit (%s/%s), resets at %s",
            user_id,
            info.current_count,
            info.limit,
            info.reset_at.isoformat(),
        )
        raise RateLimitExceededError(
            f"Rate limit exceeded. You can generate {info.limit} times per hour. "
            f"Try again after {info.reset_at.isoformat()}.",
            info,
        )
    return info


def get_rate_limit_headers(info: RateLimitInfo) -> Dict[str, str]:
    return {
        "X-RateLimit-Limit": str(info.limit),
        "X-RateLimit-Remaining": str(info.remaining),
        "X-RateLimit-Reset": str(int(info.reset_at.timestamp())),
    }


def get_retry_after_seconds(reset_at: datetime, now: Optional[datetime] = None) -> int:
    now = now or get_current_utc_datetime()
    return max(0, math.ceil((ensure_utc(reset_at) - now).total_seconds()))
