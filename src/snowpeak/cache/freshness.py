"""Freshness evaluation for cached rows.

Timestamps coming back from the store are often "naive" (no zone offset),
either as ``datetime`` objects from ``TIMESTAMP`` columns or as ISO strings
such as ``"2026-01-12T03:19:40.195"``. Those are always interpreted as UTC,
never as the local time of the evaluating process.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union

logger = logging.getLogger(__name__)

TimestampLike = Union[datetime, str, None]


class CacheStatus(str, Enum):
    """Outcome of a freshness check."""

    HIT = "hit"
    MISS = "miss"
    STALE = "stale"


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_db_timestamp(value: datetime) -> datetime:
    """Convert a datetime to the naive UTC form stored in TIMESTAMP columns."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.replace(tzinfo=None)


def parse_timestamp(value: TimestampLike) -> Optional[datetime]:
    """Parse a stored timestamp into an aware UTC datetime.

    Args:
        value: datetime or ISO-8601 string, with or without zone offset

    Returns:
        Aware datetime in UTC, or None if missing/unparseable
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            logger.warning(f"Unparseable timestamp {value!r}, treating as stale")
            return None
    else:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def cache_age_seconds(
    timestamp: TimestampLike,
    now: Optional[datetime] = None,
) -> Optional[float]:
    """Age of a timestamp in seconds, or None if it can't be parsed."""
    parsed = parse_timestamp(timestamp)
    if parsed is None:
        return None
    reference = parse_timestamp(now) if now is not None else utcnow()
    return (reference - parsed).total_seconds()


def is_fresh(
    timestamp: TimestampLike,
    ttl_seconds: float,
    now: Optional[datetime] = None,
) -> bool:
    """Check whether a timestamp is within the TTL window.

    A timestamp slightly in the future (clock skew) counts as fresh.

    Args:
        timestamp: Stored timestamp (naive values are UTC)
        ttl_seconds: Maximum age in seconds
        now: Evaluation time, defaults to current UTC time

    Returns:
        True if fresh, False if stale, missing or unparseable
    """
    age = cache_age_seconds(timestamp, now)
    if age is None:
        return False
    return age <= ttl_seconds


def evaluate(
    timestamp: TimestampLike,
    ttl_seconds: float,
    now: Optional[datetime] = None,
) -> CacheStatus:
    """Classify a timestamp as HIT (fresh), STALE (too old) or MISS (absent)."""
    if parse_timestamp(timestamp) is None:
        return CacheStatus.MISS
    if is_fresh(timestamp, ttl_seconds, now):
        return CacheStatus.HIT
    return CacheStatus.STALE
