"""Append-only attempt log and its day-bucketed aggregation."""
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from quizcadence.clock import day_key, end_of_day_exclusive, start_of_day, utcnow
from quizcadence.errors import NotFoundError
from quizcadence.models import Attempt, AttemptAnswer, Quiz
from quizcadence.scoring import ScoreResult

MAX_PAGE_SIZE = 50


@dataclass
class DailyAggregate:
    day: date
    count: int = 0
    total_score: int = 0
    best_score: int = 0
    total_time: int = 0

    @property
    def average_score(self) -> float:
        return round(self.total_score / self.count, 2) if self.count else 0.0

    def add(self, score: int, time_spent_seconds: Optional[int]):
        self.count += 1
        self.total_score += score
        self.best_score = max(self.best_score, score)
        self.total_time += time_spent_seconds or 0


def record_attempt(
    db: Session,
    *,
    user_id: str,
    quiz_id: int,
    result: ScoreResult,
    time_spent_seconds: Optional[int] = None,
    submitted_at: Optional[datetime] = None,
) -> Attempt:
    attempt = Attempt(
        user_id=user_id,
        quiz_id=quiz_id,
        score=result.score,
        correct_count=result.correct_count,
        total_questions=result.total_questions,
        time_spent_seconds=time_spent_seconds,
        submitted_at=submitted_at or utcnow(),
    )
    attempt.answers = [
        AttemptAnswer(
            question_index=a.question_index,
            selected_choice_index=a.selected_choice_index,
            is_correct=a.is_correct,
        )
        for a in result.answers
    ]
    db.add(attempt)
    db.commit()
    db.refresh(attempt)
    return attempt


def get_attempt(db: Session, user_id: str, attempt_id: int) -> Attempt:
    attempt = db.query(Attempt).filter(Attempt.id == attempt_id, Attempt.user_id == user_id).first()
    if not attempt:
        raise NotFoundError("Attempt not found")
    return attempt


def clamp_page(page: int, limit: int) -> tuple:
    return max(page, 1), min(max(limit, 1), MAX_PAGE_SIZE)


def list_attempts(
    db: Session, user_id: str, quiz_id: Optional[int] = None, page: int = 1, limit: int = 10
) -> dict:
    page, limit = clamp_page(page, limit)
    query = db.query(Attempt).filter(Attempt.user_id == user_id)
    if quiz_id is not None:
        query = query.filter(Attempt.quiz_id == quiz_id)

    total = query.count()
    attempts = (
        query.order_by(Attempt.submitted_at.desc(), Attempt.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {"attempts": attempts, "page": page, "limit": limit, "total": total}


def quiz_stats(db: Session, quiz_id: int) -> dict:
    quiz = db.query(Quiz).filter(Quiz.id == quiz_id).first()
    if not quiz:
        raise NotFoundError("Quiz not found")

    total, average_score, max_score, min_score, average_time = (
        db.query(
            func.count(Attempt.id),
            func.avg(Attempt.score),
            func.max(Attempt.score),
            func.min(Attempt.score),
            func.avg(Attempt.time_spent_seconds),
        )
        .filter(Attempt.quiz_id == quiz_id)
        .one()
    )
    return {
        "quiz_id": quiz.id,
        "title": quiz.title,
        "total_questions": len(quiz.questions),
        "total_submissions": total,
        "average_score": round(average_score or 0),
        "max_score": max_score or 0,
        "min_score": min_score or 0,
        "average_time": round(average_time or 0),
    }


def attempts_between(db: Session, user_id: str, start_day: date, end_day: date) -> List[Attempt]:
    """Attempts submitted on UTC days ``start_day`` through ``end_day`` inclusive."""
    return (
        db.query(Attempt)
        .filter(
            Attempt.user_id == user_id,
            Attempt.submitted_at >= start_of_day(start_day),
            Attempt.submitted_at < end_of_day_exclusive(end_day),
        )
        .order_by(Attempt.submitted_at.asc())
        .all()
    )


def aggregate_by_day(attempts) -> Dict[date, DailyAggregate]:
    buckets: Dict[date, DailyAggregate] = {}
    for attempt in attempts:
        day = day_key(attempt.submitted_at)
        bucket = buckets.get(day)
        if bucket is None:
            bucket = buckets[day] = DailyAggregate(day=day)
        bucket.add(attempt.score, attempt.time_spent_seconds)
    return buckets


def daily_aggregates(db: Session, user_id: str, start_day: date, end_day: date) -> Dict[date, DailyAggregate]:
    return aggregate_by_day(attempts_between(db, user_id, start_day, end_day))


def active_days(db: Session, user_id: str, start_day: date, end_day: date) -> List[date]:
    return sorted({day_key(a.submitted_at) for a in attempts_between(db, user_id, start_day, end_day)})
