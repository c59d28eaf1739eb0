"""Diagnostic events for the review scheduling pipeline.

Purely observational: nothing here may raise into the caller.
"""
import logging
from datetime import datetime

logger = logging.getLogger(__name__)


def interval_trend(old_interval: int, new_interval: int) -> str:
    if new_interval > old_interval:
        return "longer"
    if new_interval < old_interval:
        return "shorter"
    return "same"


def schedule_created(user_id: str, quiz_id: int, score: int, interval: int, next_review_at: datetime):
    logger.info(
        "Review schedule created (user=%s, quiz=%s, score=%s, interval=%sd, next_review_at=%s)",
        user_id,
        quiz_id,
        score,
        interval,
        next_review_at.isoformat(),
    )


def schedule_updated(
    user_id: str,
    quiz_id: int,
    score: int,
    old_interval: int,
    new_interval: int,
    next_review_at: datetime,
):
    logger.info(
        "Review schedule updated (user=%s, quiz=%s, score=%s, interval=%s->%s, trend=%s, next_review_at=%s)",
        user_id,
        quiz_id,
        score,
        old_interval,
        new_interval,
        interval_trend(old_interval, new_interval),
        next_review_at.isoformat(),
    )


def immediate_retry(user_id: str, quiz_id: int, score: int, retry_at: datetime):
    logger.warning(
        "Immediate retry triggered (user=%s, quiz=%s, score=%s below threshold, retry_at=%s)",
        user_id,
        quiz_id,
        score,
        retry_at.isoformat(),
    )


def due_checked(user_id: str, due_count: int):
    logger.info("Due review check (user=%s, due=%s)", user_id, due_count)


def scheduling_error(fault):
    logger.error(
        "Best-effort step failed, submission kept (step=%s, user=%s, quiz=%s, score=%s): %s",
        fault.step,
        fault.user_id,
        fault.quiz_id,
        fault.score,
        fault.cause,
        exc_info=fault.cause,
    )
