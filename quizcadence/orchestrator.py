"""Submission flow: grade, record, then best-effort scheduling and stats.

The attempt is committed before any best-effort step runs, so a failure in
scheduling or user statistics can only leave those side records stale.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional, Sequence

from sqlalchemy.orm import Session

from quizcadence import scheduler, telemetry
from quizcadence.attempts import record_attempt
from quizcadence.clock import utcnow
from quizcadence.errors import NotFoundError, SchedulingFault
from quizcadence.models import Attempt, Quiz, ReviewSchedule, UserStats
from quizcadence.scoring import AnswerKey, ScoreResult, SubmittedAnswer, score_submission

logger = logging.getLogger(__name__)


@dataclass
class StepResult:
    ok: bool
    value: Any = None
    error: str = ""


@dataclass
class SubmissionOutcome:
    attempt: Attempt
    result: ScoreResult
    scheduling: StepResult = field(default_factory=lambda: StepResult(ok=False))
    stats: StepResult = field(default_factory=lambda: StepResult(ok=False))

    @property
    def schedule(self) -> Optional[ReviewSchedule]:
        return self.scheduling.value if self.scheduling.ok else None


def update_user_stats(db: Session, user_id: str, score: int) -> UserStats:
    stats = db.get(UserStats, user_id)
    if stats is None:
        stats = UserStats(user_id=user_id, total_quizzes_completed=0, average_score=0.0)
        db.add(stats)
    completed = stats.total_quizzes_completed + 1
    stats.average_score = round((stats.average_score * stats.total_quizzes_completed + score) / completed, 2)
    stats.total_quizzes_completed = completed
    db.flush()
    return stats


def _best_effort(db: Session, step: str, action: Callable[[], Any], *, user_id: str, quiz_id: int, score: int):
    try:
        value = action()
        db.commit()
        return StepResult(ok=True, value=value)
    except Exception as exc:  # noqa: BLE001
        db.rollback()
        fault = SchedulingFault(step, exc, user_id=user_id, quiz_id=quiz_id, score=score)
        telemetry.scheduling_error(fault)
        return StepResult(ok=False, error=str(fault))


def submit_attempt(
    db: Session,
    *,
    user_id: str,
    quiz_id: int,
    answers: Sequence[SubmittedAnswer],
    time_spent_seconds: Optional[int] = None,
    now: Optional[datetime] = None,
) -> SubmissionOutcome:
    now = now or utcnow()

    quiz = db.query(Quiz).filter(Quiz.id == quiz_id).first()
    if not quiz:
        raise NotFoundError("Quiz not found")
    result = score_submission([AnswerKey.from_question(q) for q in quiz.questions], answers)

    attempt = record_attempt(
        db,
        user_id=user_id,
        quiz_id=quiz_id,
        result=result,
        time_spent_seconds=time_spent_seconds,
        submitted_at=now,
    )
    logger.info(
        "Attempt %s recorded (user=%s, quiz=%s, score=%s, correct=%s/%s)",
        attempt.id,
        user_id,
        quiz_id,
        result.score,
        result.correct_count,
        result.total_questions,
    )

    context = {"user_id": user_id, "quiz_id": quiz_id, "score": result.score}
    scheduling = _best_effort(
        db,
        "review-schedule",
        lambda: scheduler.create_or_update(db, user_id, quiz_id, result.score, now=now),
        **context,
    )
    stats = _best_effort(
        db,
        "user-stats",
        lambda: update_user_stats(db, user_id, result.score),
        **context,
    )
    return SubmissionOutcome(attempt=attempt, result=result, scheduling=scheduling, stats=stats)
