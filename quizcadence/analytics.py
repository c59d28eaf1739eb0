"""Calendar-shaped engagement views over one user's attempt history.

All views bucket attempts by UTC calendar day and take an explicit
``today``/``end_date`` so results do not depend on the wall clock.
"""
import calendar
import logging
from datetime import date, timedelta
from functools import wraps
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from quizcadence.attempts import DailyAggregate, active_days, daily_aggregates
from quizcadence.clock import utcnow
from quizcadence.errors import AnalyticsFault, QuizCadenceError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_GRAPH_DAYS = 365
MAX_GRAPH_DAYS = 366 * 2
STREAK_LOOKBACK_DAYS = 730


def _analytics_view(func):
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except QuizCadenceError:
            raise
        except Exception as exc:
            logger.exception("Analytics view %s failed", func.__name__)
            raise AnalyticsFault(f"Could not compute {func.__name__.replace('_', ' ')}: {exc}") from exc

    return wrapper


def _today(today: Optional[date]) -> date:
    return today or utcnow().date()


def intensity_for(count: int) -> int:
    if count == 0:
        return 0
    if count <= 2:
        return 1
    if count <= 4:
        return 2
    if count <= 8:
        return 3
    return 4


def build_contribution_days(buckets: Dict[date, DailyAggregate], start_day: date, days: int) -> List[dict]:
    # Columns start on Monday, so the first column may be partial.
    leading = start_day.weekday()
    entries = []
    for offset in range(days):
        day = start_day + timedelta(days=offset)
        bucket = buckets.get(day) or DailyAggregate(day=day)
        entries.append(
            {
                "date": day,
                "count": bucket.count,
                "average_score": bucket.average_score,
                "best_score": bucket.best_score,
                "total_time": bucket.total_time,
                "intensity": intensity_for(bucket.count),
                "weekday": day.weekday(),
                "week": (offset + leading) // 7,
            }
        )
    return entries


@_analytics_view
def contribution_graph(
    db: Session, user_id: str, end_date: Optional[date] = None, days: int = DEFAULT_GRAPH_DAYS
) -> dict:
    if days < 1 or days > MAX_GRAPH_DAYS:
        raise ValidationError(f"days must be between 1 and {MAX_GRAPH_DAYS}")
    end_day = _today(end_date)
    if end_day == date.max or (end_day - date.min).days < days - 1:
        raise ValidationError(f"end_date {end_day.isoformat()} is too close to the calendar limits for {days} days")
    start_day = end_day - timedelta(days=days - 1)

    buckets = daily_aggregates(db, user_id, start_day, end_day)
    entries = build_contribution_days(buckets, start_day, days)
    return {
        "start_date": start_day,
        "end_date": end_day,
        "total_attempts": sum(e["count"] for e in entries),
        "active_days": sum(1 for e in entries if e["count"]),
        "days": entries,
    }


def current_streak(active: Iterable[date], today: date) -> int:
    """Consecutive active days ending today, or yesterday if today is still empty."""
    active = set(active)
    cursor = today if today in active else today - timedelta(days=1)
    streak = 0
    while cursor in active:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def longest_streak(active: Iterable[date]) -> int:
    longest = 0
    run = 0
    previous = None
    for day in sorted(set(active)):
        if previous is not None and (day - previous).days == 1:
            run += 1
        else:
            run = 1
        longest = max(longest, run)
        previous = day
    return longest


@_analytics_view
def streaks(db: Session, user_id: str, today: Optional[date] = None) -> dict:
    today = _today(today)
    window_start = today - timedelta(days=STREAK_LOOKBACK_DAYS - 1)
    active = active_days(db, user_id, window_start, today)
    return {
        "current_streak": current_streak(active, today),
        "longest_streak": longest_streak(active),
        "last_active_date": active[-1] if active else None,
        "lookback_days": STREAK_LOOKBACK_DAYS,
    }


def _argmax(rows: List[dict], key: str) -> Optional[int]:
    """Index of the largest ``key``; ties go to the lowest index."""
    best_index = None
    for index, row in enumerate(rows):
        if not row["count"]:
            continue
        if best_index is None or row[key] > rows[best_index][key]:
            best_index = index
    return best_index


def _breakdown_row(count: int, total_score: int) -> dict:
    return {"count": count, "average_score": round(total_score / count, 2) if count else 0.0}


def summarize_year(year: int, buckets: Dict[date, DailyAggregate]) -> dict:
    month_totals = [[0, 0] for _ in range(12)]
    weekday_totals = [[0, 0] for _ in range(7)]
    total_attempts = 0
    total_score = 0
    best_score = 0
    total_time = 0

    for day, bucket in buckets.items():
        if not bucket.count:
            continue
        total_attempts += bucket.count
        total_score += bucket.total_score
        best_score = max(best_score, bucket.best_score)
        total_time += bucket.total_time
        month_totals[day.month - 1][0] += bucket.count
        month_totals[day.month - 1][1] += bucket.total_score
        weekday_totals[day.weekday()][0] += bucket.count
        weekday_totals[day.weekday()][1] += bucket.total_score

    by_month = [
        {"month": index + 1, "name": calendar.month_name[index + 1], **_breakdown_row(*totals)}
        for index, totals in enumerate(month_totals)
    ]
    by_weekday = [
        {"weekday": index, "name": calendar.day_name[index], **_breakdown_row(*totals)}
        for index, totals in enumerate(weekday_totals)
    ]

    most_active_month = _argmax(by_month, "count")
    best_average_month = _argmax(by_month, "average_score")
    most_active_weekday = _argmax(by_weekday, "count")

    return {
        "year": year,
        "total_attempts": total_attempts,
        "average_score": round(total_score / total_attempts, 2) if total_attempts else 0.0,
        "best_score": best_score,
        "total_time": total_time,
        "active_days": sum(1 for b in buckets.values() if b.count),
        "by_month": by_month,
        "by_weekday": by_weekday,
        "most_active_month": by_month[most_active_month]["month"] if most_active_month is not None else None,
        "best_average_month": by_month[best_average_month]["month"] if best_average_month is not None else None,
        "most_active_weekday": (
            by_weekday[most_active_weekday]["weekday"] if most_active_weekday is not None else None
        ),
    }


@_analytics_view
def year_summary(db: Session, user_id: str, year: int) -> dict:
    if year < 1 or year >= 9999:
        raise ValidationError(f"Invalid year {year}")
    buckets = daily_aggregates(db, user_id, date(year, 1, 1), date(year, 12, 31))
    return summarize_year(year, buckets)
