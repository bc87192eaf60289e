"""
Domain time utilities (pure).

Centralized timestamp validation and IST calendar helpers.

Contract excerpts implemented here:
- Instants are stored and passed around as UTC timestamps.
- Elapsed days for lifecycle decay are counted on the Asia/Kolkata (IST) civil
  calendar: a day has elapsed when an IST midnight has been crossed, regardless
  of how many wall-clock hours passed.

Behavior and error messages must remain consistent across the domain model.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol
from zoneinfo import ZoneInfo

# IST has no daylight saving; the zone is used for its civil calendar only.
IST = ZoneInfo("Asia/Kolkata")


def require_utc_timestamp(name: str, value: datetime) -> None:
    """
    Enforces the contract requirement that timestamps are UTC.

    Invariants:
    - Timestamps must be timezone-aware.
    - Timestamps must have UTC offset 0.
    """

    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{name} must be timezone-aware (UTC)")
    if value.utcoffset() != timedelta(0):
        raise ValueError(f"{name} must be a UTC timestamp (offset 0)")


def to_ist(value: datetime) -> datetime:
    """Convert a timezone-aware instant to IST wall-clock time."""

    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError("value must be timezone-aware")
    return value.astimezone(IST)


def elapsed_ist_days(start: datetime, end: datetime) -> int:
    """
    Count IST midnights crossed between two instants.

    elapsed = (end as IST date) - (start as IST date), in days

    Examples:
    - 23:50 IST to 00:10 IST the next day -> 1 (only 20 minutes elapsed)
    - 00:10 IST to 23:50 IST the same day -> 0

    Raises ValueError if end is before start.
    """

    if end < start:
        raise ValueError("end must be >= start")
    return (to_ist(end).date() - to_ist(start).date()).days


def latest(*values: Optional[datetime]) -> datetime:
    """Return the most recent of the given instants, ignoring None."""

    present = [v for v in values if v is not None]
    if not present:
        raise ValueError("at least one timestamp is required")
    return max(present)


class Clock(Protocol):
    """Source of the current instant. Injected so tests can pin 'now'."""

    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """
    Clock pinned to a given UTC instant.

    Used by tests and by replays of a sweep "as of" a past instant.
    """

    def __init__(self, current: datetime) -> None:
        require_utc_timestamp("current", current)
        self._current = current

    def now(self) -> datetime:
        return self._current

    def set(self, current: datetime) -> None:
        require_utc_timestamp("current", current)
        self._current = current

    def advance(self, delta: timedelta) -> datetime:
        self._current = self._current + delta
        return self._current
