"""Calendar helpers in the platform timezone.

Streak dates and leaderboard period keys are local calendar dates, not UTC.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def local_now(now: datetime | None, tz: str) -> datetime:
    """``now`` (default: current time) converted to the platform timezone."""
    if now is None:
        now = utcnow()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(ZoneInfo(tz))


def local_today(now: datetime | None, tz: str) -> date:
    return local_now(now, tz).date()


def end_of_day(d: date, tz: str) -> datetime:
    """Last instant of local day ``d``, as an aware datetime."""
    next_midnight = datetime.combine(d + timedelta(days=1), time.min, tzinfo=ZoneInfo(tz))
    return next_midnight - timedelta(microseconds=1)


def week_start(d: date) -> date:
    """Monday of the week containing ``d``."""
    return d - timedelta(days=d.weekday())
