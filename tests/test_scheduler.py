import logging
from datetime import datetime, timedelta

import pytest

from quizcadence import scheduler
from quizcadence.errors import NotFoundError, ValidationError
from quizcadence.intervals import Interval
from quizcadence.models import Attempt, ReviewSchedule

NOW = datetime(2024, 5, 10, 9, 30)


def test_first_attempt_seeds_three_day_schedule_even_for_low_score(db, make_quiz):
    quiz = make_quiz()

    schedule = scheduler.create_or_update(db, "u1", quiz.id, 40, now=NOW)
    db.commit()

    assert schedule.review_interval == 3
    assert schedule.next_review_at == NOW + timedelta(days=3)
    assert schedule.review_count == 1
    assert schedule.last_score == 40
    assert schedule.average_score == 40
    assert schedule.is_active is True


def test_weighted_average_follows_recurrence(db, make_quiz):
    quiz = make_quiz()
    averages = []
    for offset, score in enumerate([40, 80, 70]):
        schedule = scheduler.create_or_update(db, "u1", quiz.id, score, now=NOW + timedelta(days=offset))
        db.commit()
        averages.append(schedule.average_score)

    assert averages == [40, 52, 57]
    assert schedule.review_count == 3
    assert schedule.last_score == 70


def test_moderate_score_keeps_existing_interval(db, make_quiz):
    quiz = make_quiz()
    db.add(
        ReviewSchedule(
            user_id="u1",
            quiz_id=quiz.id,
            last_reviewed_at=NOW - timedelta(days=5),
            next_review_at=NOW,
            review_interval=5,
            review_count=2,
            last_score=85,
            average_score=85,
        )
    )
    db.commit()

    schedule = scheduler.create_or_update(db, "u1", quiz.id, 75, now=NOW)

    assert schedule.review_interval == 5
    assert schedule.next_review_at == NOW + timedelta(days=5)
    assert schedule.last_reviewed_at == NOW


def test_low_score_schedules_retry_within_the_hour(db, make_quiz):
    quiz = make_quiz()
    scheduler.create_or_update(db, "u1", quiz.id, 90, now=NOW)

    schedule = scheduler.create_or_update(db, "u1", quiz.id, 30, now=NOW)

    assert schedule.review_interval == 0
    assert schedule.next_review_at == NOW + timedelta(hours=1)


def test_repeated_high_scores_climb_to_thirty_days(db, make_quiz):
    quiz = make_quiz()
    intervals = []
    for offset in range(7):
        schedule = scheduler.create_or_update(db, "u1", quiz.id, 100, now=NOW + timedelta(days=offset))
        intervals.append(schedule.review_interval)

    # The seed is 3 days, then the ladder climbs from there.
    assert intervals == [3, 5, 7, 15, 30, 30, 30]


def test_one_schedule_per_user_and_quiz(db, make_quiz):
    quiz = make_quiz()
    scheduler.create_or_update(db, "u1", quiz.id, 70, now=NOW)
    scheduler.create_or_update(db, "u1", quiz.id, 70, now=NOW)
    scheduler.create_or_update(db, "u2", quiz.id, 70, now=NOW)
    db.commit()

    assert db.query(ReviewSchedule).filter(ReviewSchedule.user_id == "u1").count() == 1
    assert db.query(ReviewSchedule).count() == 2


def test_score_outside_range_is_rejected(db, make_quiz):
    quiz = make_quiz()
    with pytest.raises(ValidationError):
        scheduler.create_or_update(db, "u1", quiz.id, 101, now=NOW)


def test_due_for_review_orders_by_due_date_and_respects_limit(db, make_quiz):
    quizzes = [make_quiz(title=f"Quiz {i}") for i in range(4)]
    due_offsets = [timedelta(hours=-1), timedelta(days=-3), timedelta(days=2), timedelta(minutes=-5)]
    for quiz, offset in zip(quizzes, due_offsets):
        db.add(
            ReviewSchedule(
                user_id="u1",
                quiz_id=quiz.id,
                last_reviewed_at=NOW - timedelta(days=7),
                next_review_at=NOW + offset,
                review_interval=3,
                review_count=1,
            )
        )
    db.add(
        ReviewSchedule(
            user_id="u1",
            quiz_id=make_quiz(title="Paused").id,
            last_reviewed_at=NOW - timedelta(days=7),
            next_review_at=NOW - timedelta(days=10),
            review_interval=3,
            review_count=1,
            is_active=False,
        )
    )
    db.commit()

    due = scheduler.due_for_review(db, "u1", limit=10, now=NOW)
    assert [s.quiz_id for s in due] == [quizzes[1].id, quizzes[0].id, quizzes[3].id]

    capped = scheduler.due_for_review(db, "u1", limit=2, now=NOW)
    assert [s.quiz_id for s in capped] == [quizzes[1].id, quizzes[0].id]

    assert scheduler.due_for_review(db, "someone-else", now=NOW) == []


def test_manual_creation_requires_quiz_and_no_existing_schedule(db, make_quiz):
    quiz = make_quiz()

    schedule = scheduler.create_schedule(db, "u1", quiz.id, review_interval=7, now=NOW)
    assert schedule.review_interval == 7
    assert schedule.review_count == 0
    assert schedule.next_review_at == NOW + timedelta(days=7)

    with pytest.raises(ValidationError):
        scheduler.create_schedule(db, "u1", quiz.id, now=NOW)
    with pytest.raises(NotFoundError):
        scheduler.create_schedule(db, "u1", 9999, now=NOW)
    with pytest.raises(ValidationError):
        scheduler.create_schedule(db, "u2", quiz.id, review_interval=0, now=NOW)


def test_first_review_on_manual_schedule_sets_average_to_score(db, make_quiz):
    quiz = make_quiz()
    scheduler.create_schedule(db, "u1", quiz.id, review_interval=3, now=NOW)

    schedule = scheduler.create_or_update(db, "u1", quiz.id, 90, now=NOW)

    assert schedule.review_count == 1
    assert schedule.average_score == 90
    assert schedule.review_interval == 5


def test_update_settings_and_delete(db, make_quiz):
    quiz = make_quiz()
    schedule = scheduler.create_or_update(db, "u1", quiz.id, 70, now=NOW)
    db.commit()

    updated = scheduler.update_settings(db, "u1", schedule.id, review_interval=15, is_active=False)
    assert updated.review_interval == 15
    assert updated.last_reviewed_at == NOW
    assert updated.next_review_at == NOW + timedelta(days=15)
    assert updated.is_active is False

    with pytest.raises(ValidationError):
        scheduler.update_settings(db, "u1", schedule.id, review_interval=4)
    with pytest.raises(NotFoundError):
        scheduler.update_settings(db, "u2", schedule.id, is_active=True)

    scheduler.delete_schedule(db, "u1", schedule.id)
    assert db.query(ReviewSchedule).count() == 0
    with pytest.raises(NotFoundError):
        scheduler.delete_schedule(db, "u1", schedule.id)


def test_list_schedules_paginates_and_filters(db, make_quiz):
    for i in range(3):
        quiz = make_quiz(title=f"Quiz {i}")
        scheduler.create_or_update(db, "u1", quiz.id, 70, now=NOW + timedelta(hours=i))
    db.commit()
    first = db.query(ReviewSchedule).order_by(ReviewSchedule.id).first()
    scheduler.update_settings(db, "u1", first.id, is_active=False)

    page = scheduler.list_schedules(db, "u1", page=1, limit=2)
    assert len(page["schedules"]) == 2
    assert page["pagination"] == {"current_page": 1, "total_pages": 2, "total_items": 3, "items_per_page": 2}

    active = scheduler.list_schedules(db, "u1", active=True)
    assert active["pagination"]["total_items"] == 2


def test_review_statistics(db, make_quiz):
    quiz_a = make_quiz(title="A")
    quiz_b = make_quiz(title="B")
    scheduler.create_or_update(db, "u1", quiz_a.id, 80, now=NOW - timedelta(days=10))
    scheduler.create_or_update(db, "u1", quiz_b.id, 60, now=NOW)
    scheduler.create_or_update(db, "u1", quiz_b.id, 60, now=NOW)
    db.commit()

    stats = scheduler.review_statistics(db, "u1", now=NOW)

    assert stats["statistics"] == {
        "total_schedules": 2,
        "active_schedules": 2,
        "needs_review": 1,
        "average_score": 70.0,
        "total_reviews": 3,
    }
    assert [row["quiz_title"] for row in stats["recent_performance"]] == ["B", "A"]


def test_lengthening_interval_pushes_due_date_out(db, make_quiz):
    quiz = make_quiz()
    schedule = scheduler.create_or_update(db, "u1", quiz.id, 70, now=NOW)
    db.commit()

    updated = scheduler.update_settings(db, "u1", schedule.id, review_interval=30)

    assert updated.next_review_at == updated.last_reviewed_at + timedelta(days=30)
    assert scheduler.due_for_review(db, "u1", now=NOW + timedelta(days=29)) == []
    assert len(scheduler.due_for_review(db, "u1", now=NOW + timedelta(days=30))) == 1


def add_attempt(db, quiz, score, user_id="u1"):
    attempt = Attempt(
        user_id=user_id, quiz_id=quiz.id, score=score, correct_count=0, total_questions=4, submitted_at=NOW
    )
    db.add(attempt)
    db.commit()
    return attempt


def test_complete_review_applies_attempt_score(db, make_quiz, caplog):
    quiz = make_quiz()
    schedule = scheduler.create_schedule(db, "u1", quiz.id, review_interval=5, now=NOW)
    attempt = add_attempt(db, quiz, 90)
    reviewed_at = NOW + timedelta(days=5)

    with caplog.at_level(logging.INFO, logger="quizcadence.telemetry"):
        completed = scheduler.complete_review(db, "u1", schedule.id, attempt.id, now=reviewed_at)

    assert completed.review_interval == 7
    assert completed.review_count == 1
    assert completed.last_score == 90
    assert completed.average_score == 90
    assert completed.last_reviewed_at == reviewed_at
    assert completed.next_review_at == reviewed_at + timedelta(days=7)
    assert "interval=5->7" in caplog.text


def test_complete_review_requires_owned_schedule_and_attempt(db, make_quiz):
    quiz = make_quiz()
    other_quiz = make_quiz(title="Other")
    schedule = scheduler.create_schedule(db, "u1", quiz.id, now=NOW)
    mine = add_attempt(db, quiz, 80)
    theirs = add_attempt(db, quiz, 80, user_id="u2")
    elsewhere = add_attempt(db, other_quiz, 80)

    with pytest.raises(NotFoundError):
        scheduler.complete_review(db, "u1", schedule.id, 9999, now=NOW)
    with pytest.raises(NotFoundError):
        scheduler.complete_review(db, "u1", schedule.id, theirs.id, now=NOW)
    with pytest.raises(NotFoundError):
        scheduler.complete_review(db, "u2", schedule.id, mine.id, now=NOW)
    with pytest.raises(ValidationError):
        scheduler.complete_review(db, "u1", schedule.id, elsewhere.id, now=NOW)

    db.refresh(schedule)
    assert schedule.review_count == 0


def test_schedule_created_event_names_interval(db, make_quiz, caplog, monkeypatch):
    quiz = make_quiz()
    monkeypatch.setattr(scheduler, "DEFAULT_INTERVAL", Interval.FIVE_DAYS)

    with caplog.at_level(logging.INFO, logger="quizcadence.telemetry"):
        scheduler.create_or_update(db, "u1", quiz.id, 40, now=NOW)

    assert "Review schedule created" in caplog.text
    assert "interval=5d" in caplog.text
