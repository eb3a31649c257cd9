"""
UTC timestamp utilities for Hyperchat.

All timestamps MUST be in UTC with explicit timezone markers.

This module provides:
- utc_now(): Current time as timezone-aware datetime
- utc_timestamp(): ISO 8601 timestamp string with 'Z' suffix
- seconds_since(): Elapsed seconds since a timezone-aware datetime

Examples:
    >>> from hyperchat.utils.time import utc_now, utc_timestamp
    >>> now = utc_now()
    >>> now.tzinfo
    datetime.timezone.utc
    >>> utc_timestamp()
    '2026-10-18T08:30:45Z'
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """
    Return current time in UTC with timezone info.

    This is the canonical way to get current time in the codebase.
    NEVER use datetime.now() without a timezone or datetime.utcnow().

    Returns:
        datetime: Current UTC time with tzinfo=timezone.utc
    """
    return datetime.now(UTC)


def utc_timestamp() -> str:
    """
    Return ISO 8601 timestamp string with 'Z' suffix.

    Format: YYYY-MM-DDTHH:MM:SSZ

    Returns:
        str: ISO 8601 formatted timestamp in UTC
    """
    return utc_now().strftime("%Y-%m-%dT%H:%M:%SZ")


def seconds_since(start: datetime) -> float:
    """
    Return elapsed seconds between a timezone-aware datetime and now.

    Args:
        start: Timezone-aware start time (e.g., from utc_now())

    Returns:
        float: Elapsed seconds, never negative

    Raises:
        ValueError: If start is naive (missing timezone)
    """
    if start.tzinfo is None:
        raise ValueError(
            "Datetime must be timezone-aware (use timezone.utc). "
            "Got naive datetime. Use utc_now() or ensure dt has tzinfo set."
        )

    return max(0.0, (utc_now() - start).total_seconds())
