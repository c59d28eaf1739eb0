"""Per-(user, quiz) spaced-repetition schedules."""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from quizcadence import telemetry
from quizcadence.attempts import get_attempt
from quizcadence.clock import round_half_up, utcnow
from quizcadence.errors import NotFoundError, ValidationError
from quizcadence.intervals import DEFAULT_INTERVAL, LADDER, Interval, next_interval
from quizcadence.models import Quiz, ReviewSchedule

logger = logging.getLogger(__name__)

PREVIOUS_AVERAGE_WEIGHT = 0.7
NEW_SCORE_WEIGHT = 0.3
RECENT_PERFORMANCE_LIMIT = 30


def _check_score(score: int):
    if score < 0 or score > 100:
        raise ValidationError(f"Score must be within [0, 100], got {score}")


def weighted_average(previous_average: int, score: int) -> int:
    return round_half_up(previous_average * PREVIOUS_AVERAGE_WEIGHT + score * NEW_SCORE_WEIGHT)


def find_schedule(db: Session, user_id: str, quiz_id: int) -> Optional[ReviewSchedule]:
    return (
        db.query(ReviewSchedule)
        .filter(ReviewSchedule.user_id == user_id, ReviewSchedule.quiz_id == quiz_id)
        .first()
    )


def _get_owned_schedule(db: Session, user_id: str, schedule_id: int) -> ReviewSchedule:
    schedule = (
        db.query(ReviewSchedule)
        .filter(ReviewSchedule.id == schedule_id, ReviewSchedule.user_id == user_id)
        .first()
    )
    if not schedule:
        raise NotFoundError("Review schedule not found")
    return schedule


def apply_review(schedule: ReviewSchedule, score: int, now: datetime) -> Interval:
    """Advance an existing schedule by one review and return the previous interval."""
    previous = Interval.parse(schedule.review_interval)
    updated = next_interval(previous, score)

    schedule.review_count += 1
    schedule.last_score = score
    if schedule.review_count == 1:
        schedule.average_score = score
    else:
        schedule.average_score = weighted_average(schedule.average_score, score)
    schedule.last_reviewed_at = now
    schedule.review_interval = int(updated)
    schedule.next_review_at = updated.due_after(now)
    return previous


def seed_schedule(user_id: str, quiz_id: int, score: int, now: datetime) -> ReviewSchedule:
    return ReviewSchedule(
        user_id=user_id,
        quiz_id=quiz_id,
        last_reviewed_at=now,
        next_review_at=DEFAULT_INTERVAL.due_after(now),
        review_interval=int(DEFAULT_INTERVAL),
        review_count=1,
        last_score=score,
        average_score=score,
        is_active=True,
    )


def create_or_update(
    db: Session, user_id: str, quiz_id: int, score: int, now: Optional[datetime] = None
) -> ReviewSchedule:
    """Record one reviewed attempt on the (user, quiz) schedule.

    The first attempt for a pair seeds the default three-day cadence whatever
    the score; later attempts go through the adaptive interval policy. The
    caller owns the transaction.
    """
    _check_score(score)
    now = now or utcnow()

    schedule = find_schedule(db, user_id, quiz_id)
    if schedule is None:
        schedule = seed_schedule(user_id, quiz_id, score, now)
        db.add(schedule)
        db.flush()
        telemetry.schedule_created(user_id, quiz_id, score, schedule.review_interval, schedule.next_review_at)
        return schedule

    previous = apply_review(schedule, score, now)
    db.flush()
    _report_review(schedule, previous, score)
    return schedule


def _report_review(schedule: ReviewSchedule, previous: Interval, score: int):
    telemetry.schedule_updated(
        schedule.user_id,
        schedule.quiz_id,
        score,
        int(previous),
        schedule.review_interval,
        schedule.next_review_at,
    )
    if schedule.review_interval == Interval.IMMEDIATE:
        telemetry.immediate_retry(schedule.user_id, schedule.quiz_id, score, schedule.next_review_at)


def due_for_review(db: Session, user_id: str, limit: int = 10, now: Optional[datetime] = None):
    now = now or utcnow()
    schedules = (
        db.query(ReviewSchedule)
        .filter(
            ReviewSchedule.user_id == user_id,
            ReviewSchedule.is_active.is_(True),
            ReviewSchedule.next_review_at <= now,
        )
        .order_by(ReviewSchedule.next_review_at.asc(), ReviewSchedule.id.asc())
        .limit(limit)
        .all()
    )
    telemetry.due_checked(user_id, len(schedules))
    return schedules


def create_schedule(
    db: Session,
    user_id: str,
    quiz_id: int,
    review_interval: int = int(DEFAULT_INTERVAL),
    now: Optional[datetime] = None,
) -> ReviewSchedule:
    now = now or utcnow()
    if not db.query(Quiz).filter(Quiz.id == quiz_id).first():
        raise NotFoundError("Quiz not found")
    if find_schedule(db, user_id, quiz_id):
        raise ValidationError("A review schedule already exists for this quiz")
    interval = _ladder_interval(review_interval)

    schedule = ReviewSchedule(
        user_id=user_id,
        quiz_id=quiz_id,
        last_reviewed_at=now,
        next_review_at=interval.due_after(now),
        review_interval=int(interval),
        review_count=0,
        last_score=0,
        average_score=0,
        is_active=True,
    )
    db.add(schedule)
    db.commit()
    db.refresh(schedule)
    logger.info("Manual review schedule created (user=%s, quiz=%s, interval=%s)", user_id, quiz_id, int(interval))
    return schedule


def _ladder_interval(days: int) -> Interval:
    try:
        interval = Interval.parse(days)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    if interval not in LADDER:
        raise ValidationError(f"Review interval must be one of {[int(i) for i in LADDER]}")
    return interval


def list_schedules(
    db: Session, user_id: str, page: int = 1, limit: int = 10, active: Optional[bool] = None
) -> dict:
    query = db.query(ReviewSchedule).filter(ReviewSchedule.user_id == user_id)
    if active is not None:
        query = query.filter(ReviewSchedule.is_active.is_(active))

    total = query.count()
    schedules = (
        query.order_by(ReviewSchedule.next_review_at.asc(), ReviewSchedule.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "schedules": schedules,
        "pagination": {
            "current_page": page,
            "total_pages": (total + limit - 1) // limit,
            "total_items": total,
            "items_per_page": limit,
        },
    }


def update_settings(
    db: Session,
    user_id: str,
    schedule_id: int,
    review_interval: Optional[int] = None,
    is_active: Optional[bool] = None,
) -> ReviewSchedule:
    """Apply user-editable settings; performance fields are left untouched."""
    schedule = _get_owned_schedule(db, user_id, schedule_id)
    if review_interval is not None:
        interval = _ladder_interval(review_interval)
        schedule.review_interval = int(interval)
        schedule.next_review_at = interval.due_after(schedule.last_reviewed_at)
    if is_active is not None:
        schedule.is_active = is_active
    db.commit()
    db.refresh(schedule)
    return schedule


def complete_review(
    db: Session, user_id: str, schedule_id: int, attempt_id: int, now: Optional[datetime] = None
) -> ReviewSchedule:
    """Advance a schedule using the score of one of the user's attempts on that quiz."""
    now = now or utcnow()
    schedule = _get_owned_schedule(db, user_id, schedule_id)
    attempt = get_attempt(db, user_id, attempt_id)
    if attempt.quiz_id != schedule.quiz_id:
        raise ValidationError(f"Attempt {attempt_id} does not belong to quiz {schedule.quiz_id}")
    _check_score(attempt.score)

    previous = apply_review(schedule, attempt.score, now)
    db.commit()
    db.refresh(schedule)
    _report_review(schedule, previous, attempt.score)
    return schedule


def delete_schedule(db: Session, user_id: str, schedule_id: int):
    schedule = _get_owned_schedule(db, user_id, schedule_id)
    db.delete(schedule)
    db.commit()
    logger.info("Review schedule %s deleted (user=%s)", schedule_id, user_id)


def review_statistics(db: Session, user_id: str, now: Optional[datetime] = None) -> dict:
    now = now or utcnow()
    base = db.query(ReviewSchedule).filter(ReviewSchedule.user_id == user_id)

    total = base.count()
    active = base.filter(ReviewSchedule.is_active.is_(True)).count()
    needs_review = base.filter(
        ReviewSchedule.is_active.is_(True), ReviewSchedule.next_review_at <= now
    ).count()
    average_score, total_reviews = (
        db.query(func.avg(ReviewSchedule.average_score), func.sum(ReviewSchedule.review_count))
        .filter(ReviewSchedule.user_id == user_id)
        .one()
    )
    recent = (
        base.order_by(ReviewSchedule.last_reviewed_at.desc(), ReviewSchedule.id.desc())
        .limit(RECENT_PERFORMANCE_LIMIT)
        .all()
    )

    return {
        "statistics": {
            "total_schedules": total,
            "active_schedules": active,
            "needs_review": needs_review,
            "average_score": round(float(average_score), 2) if average_score is not None else 0.0,
            "total_reviews": int(total_reviews or 0),
        },
        "recent_performance": [
            {
                "schedule_id": s.id,
                "quiz_id": s.quiz_id,
                "quiz_title": s.quiz.title if s.quiz else "",
                "last_score": s.last_score,
                "last_reviewed_at": s.last_reviewed_at,
            }
            for s in recent
        ],
    }
