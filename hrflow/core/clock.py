"""
Clock and organisation-timezone helpers.

Stored instants are always UTC-aware.  Every date bucket ("today",
``work_date``, one-request-per-day checks) is computed in the single
fixed civil offset from ``settings.ORG_UTC_OFFSET``, never the server's
local zone.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime, time, timedelta, timezone

from hrflow.core.config import settings


class Clock(ABC):
    """Source of the current instant; injected so tests can pin time."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current UTC-aware instant."""


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(Clock):
    """Deterministic clock: returns a pinned instant until moved."""

    def __init__(self, instant: datetime) -> None:
        self._now = ensure_utc(instant)

    def now(self) -> datetime:
        return self._now

    def set(self, instant: datetime) -> None:
        self._now = ensure_utc(instant)

    def advance(self, **kwargs: float) -> datetime:
        self._now = self._now + timedelta(**kwargs)
        return self._now


# ── Timezone normalisation ──────────────────────────────────────────
def parse_utc_offset(tz_offset: str) -> timezone:
    """Turn ``"+08:00"`` / ``"-05"`` into a fixed ``timezone``."""
    sign = 1 if tz_offset[0] == "+" else -1
    offset_parts = tz_offset[1:].split(":")
    offset_hours = int(offset_parts[0])
    offset_mins = int(offset_parts[1]) if len(offset_parts) > 1 else 0
    return timezone(timedelta(hours=sign * offset_hours, minutes=sign * offset_mins))


ORG_TZ = parse_utc_offset(settings.ORG_UTC_OFFSET)


def ensure_utc(dt: datetime) -> datetime:
    """Normalise a potentially-naive timestamp (SQLite) to UTC-aware."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_local(instant: datetime) -> datetime:
    return ensure_utc(instant).astimezone(ORG_TZ)


def local_date(instant: datetime) -> date:
    """Civil date of *instant* in the organisation's zone."""
    return to_local(instant).date()


def local_today(clock: Clock) -> date:
    return local_date(clock.now())


def local_day_bounds(day: date) -> tuple[datetime, datetime]:
    """Half-open ``[start, end)`` UTC interval covering the local *day*."""
    start = datetime.combine(day, time.min, tzinfo=ORG_TZ)
    end = start + timedelta(days=1)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


system_clock = SystemClock()
