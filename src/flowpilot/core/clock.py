"""
Injectable clock and UTC timestamp helpers.

Anything that compares a record's timestamps against "now" (staleness,
overdue schedules, running durations) takes a :class:`Clock` instead of
reading the wall clock, so the same inputs always give the same verdicts.

Examples:
    >>> clock = FixedClock(datetime(2025, 1, 15, 10, 0, tzinfo=UTC))
    >>> clock.now().isoformat()
    '2025-01-15T10:00:00+00:00'
    >>> clock.advance(timedelta(minutes=5)).isoformat()
    '2025-01-15T10:05:00+00:00'
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Source of the current instant."""

    def now(self) -> datetime:
        """Return the current timezone-aware UTC datetime."""
        ...


class SystemClock:
    """Wall clock."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class FixedClock:
    """Clock frozen at a given instant, moved only by :meth:`advance`."""

    def __init__(self, instant: datetime) -> None:
        self._instant = ensure_utc(instant)

    def now(self) -> datetime:
        return self._instant

    def advance(self, delta: timedelta) -> datetime:
        self._instant = self._instant + delta
        return self._instant

    def set(self, instant: datetime) -> None:
        self._instant = ensure_utc(instant)


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def to_iso8601(dt: datetime | None) -> str | None:
    """Convert datetime to ISO 8601 string."""
    if dt is None:
        return None
    return dt.isoformat()


def from_iso8601(s: str | datetime | None) -> datetime | None:
    """Parse an ISO 8601 string (``Z`` suffix accepted) to a UTC datetime."""
    if s is None or s == "":
        return None
    if isinstance(s, datetime):
        return ensure_utc(s)
    return ensure_utc(datetime.fromisoformat(s))


def duration_iso8601(delta: timedelta) -> str:
    """Format a timedelta as an ISO 8601 duration (``PT1H30M``)."""
    total = delta.total_seconds()
    sign = "-" if total < 0 else ""
    total = abs(total)
    hours, rem = divmod(total, 3600)
    minutes, seconds = divmod(rem, 60)
    out = f"{sign}PT"
    if hours:
        out += f"{int(hours)}H"
    if minutes:
        out += f"{int(minutes)}M"
    if seconds or out.endswith("T"):
        out += f"{seconds:g}S"
    return out
