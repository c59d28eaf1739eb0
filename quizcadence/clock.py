"""Single source of "now" and the UTC calendar-day policy.

Timestamps are stored as naive UTC datetimes. Every day bucket used for
streaks, the contribution graph and yearly summaries is a UTC calendar day.
"""
import math
from datetime import date, datetime, time, timedelta, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def day_key(value: datetime) -> date:
    return to_utc_naive(value).date()


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min)


def end_of_day_exclusive(day: date) -> datetime:
    return start_of_day(day + timedelta(days=1))


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))
