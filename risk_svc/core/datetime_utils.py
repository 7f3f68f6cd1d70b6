"""
UTC-first datetime and timing utilities for Diabetes Risk Service.

All timestamps leaving the service are ISO 8601 strings in UTC with
millisecond precision and a 'Z' suffix, e.g. "2024-01-15T10:30:00.123Z".

Durations are measured with a monotonic clock and reported in whole
milliseconds.

Usage:
    from core.datetime_utils import iso_timestamp, monotonic_ms, elapsed_ms

    started = monotonic_ms()
    ...
    payload = {"processed_at": iso_timestamp(), "took_ms": elapsed_ms(started)}
"""
import time
from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Get current datetime in UTC with timezone info."""
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC.

    Naive datetimes are assumed to already be UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_iso(dt: datetime) -> str:
    """
    Format datetime as ISO 8601 UTC with millisecond precision.

    Example:
        >>> format_iso(datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc))
        '2024-01-15T10:30:00.000Z'
    """
    utc_dt = to_utc(dt)
    return utc_dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc_dt.microsecond // 1000:03d}Z"


def iso_timestamp(dt: Optional[datetime] = None) -> str:
    """Current (or given) time formatted for API responses."""
    return format_iso(dt or utc_now())


def monotonic_ms() -> float:
    """Monotonic clock reading in milliseconds, for measuring durations."""
    return time.perf_counter() * 1000


def elapsed_ms(started_ms: float) -> int:
    """Whole milliseconds elapsed since a monotonic_ms() reading."""
    return max(0, int(round(monotonic_ms() - started_ms)))
