import datetime as dt
import json
import logging
import os
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from quizcadence import analytics, attempts, orchestrator, scheduler
from quizcadence.database import Base, engine, get_db
from quizcadence.errors import AnalyticsFault, NotFoundError, ValidationError
from quizcadence.models import Question, Quiz
from quizcadence.schemas import (
    AttemptListResponse,
    AttemptOut,
    CompleteReviewRequest,
    ContributionGraphResponse,
    CreateQuizRequest,
    CreateReviewScheduleRequest,
    DueReviewsResponse,
    QuizOut,
    QuizStatsResponse,
    ReviewScheduleListResponse,
    ReviewScheduleOut,
    ReviewStatisticsResponse,
    StreaksResponse,
    SubmissionResponse,
    SubmitQuizRequest,
    UpdateReviewScheduleRequest,
    YearSummaryResponse,
)
from quizcadence.scoring import SubmittedAnswer

app = FastAPI(title="Quizcadence")
logging.basicConfig(
    level=os.getenv("QUIZCADENCE_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

Base.metadata.create_all(bind=engine)


@app.exception_handler(ValidationError)
async def validation_error_handler(_request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(NotFoundError)
async def not_found_handler(_request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(AnalyticsFault)
async def analytics_fault_handler(_request, exc: AnalyticsFault):
    return JSONResponse(status_code=500, content={"detail": str(exc)})


def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id.strip()


def _quiz_response(quiz: Quiz) -> dict:
    return {
        "quiz_id": quiz.id,
        "title": quiz.title,
        "created_by": quiz.created_by,
        "created_at": quiz.created_at,
        "questions": [
            {
                "index": q.position,
                "prompt": q.prompt,
                "options": json.loads(q.options_json),
                "correct_option_index": q.correct_option_index,
                "explanation": q.explanation,
            }
            for q in quiz.questions
        ],
    }


@app.get("/api/health")
def health(db: Session = Depends(get_db)):
    db.execute(text("SELECT 1"))
    return {"status": "ok"}


@app.post("/api/quizzes", response_model=QuizOut, status_code=201)
def create_quiz(
    payload: CreateQuizRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    quiz = Quiz(title=payload.title, created_by=user_id)
    quiz.questions = [
        Question(
            position=idx,
            prompt=q.prompt,
            options_json=json.dumps(q.options),
            correct_option_index=q.correct_option_index,
            explanation=q.explanation,
        )
        for idx, q in enumerate(payload.questions)
    ]
    db.add(quiz)
    db.commit()
    db.refresh(quiz)
    logger.info("Quiz %s created by %s with %s questions", quiz.id, user_id, len(payload.questions))
    return _quiz_response(quiz)


@app.get("/api/quizzes/{quiz_id}", response_model=QuizOut)
def get_quiz(quiz_id: int, db: Session = Depends(get_db)):
    quiz = db.query(Quiz).filter(Quiz.id == quiz_id).first()
    if not quiz:
        raise NotFoundError("Quiz not found")
    return _quiz_response(quiz)


@app.post("/api/quizzes/{quiz_id}/submit", response_model=SubmissionResponse, status_code=201)
def submit_quiz(
    quiz_id: int,
    payload: SubmitQuizRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    outcome = orchestrator.submit_attempt(
        db,
        user_id=user_id,
        quiz_id=quiz_id,
        answers=[SubmittedAnswer(a.question_index, a.selected_choice_index) for a in payload.answers],
        time_spent_seconds=payload.time_spent_seconds,
    )
    return {
        "attempt": outcome.attempt,
        "score": outcome.result.score,
        "correct_count": outcome.result.correct_count,
        "total_questions": outcome.result.total_questions,
        "review_schedule": outcome.schedule,
    }


@app.get("/api/quizzes/{quiz_id}/stats", response_model=QuizStatsResponse)
def get_quiz_stats(quiz_id: int, db: Session = Depends(get_db)):
    return attempts.quiz_stats(db, quiz_id)


@app.get("/api/attempts", response_model=AttemptListResponse)
def list_attempts(
    quiz_id: Optional[int] = None,
    page: int = 1,
    limit: int = 10,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return attempts.list_attempts(db, user_id, quiz_id=quiz_id, page=page, limit=limit)


@app.get("/api/attempts/{attempt_id}", response_model=AttemptOut)
def get_attempt(attempt_id: int, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    return attempts.get_attempt(db, user_id, attempt_id)


@app.post("/api/reviews", response_model=ReviewScheduleOut, status_code=201)
def create_review_schedule(
    payload: CreateReviewScheduleRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return scheduler.create_schedule(db, user_id, payload.quiz_id, review_interval=payload.review_interval)


@app.get("/api/reviews/due", response_model=DueReviewsResponse)
def get_due_reviews(
    limit: int = Query(default=10, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    schedules = scheduler.due_for_review(db, user_id, limit=limit)
    return {"schedules": schedules, "total": len(schedules)}


@app.get("/api/reviews/my", response_model=ReviewScheduleListResponse)
def get_my_review_schedules(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    active: Optional[bool] = None,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return scheduler.list_schedules(db, user_id, page=page, limit=limit, active=active)


@app.get("/api/reviews/statistics", response_model=ReviewStatisticsResponse)
def get_review_statistics(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    return scheduler.review_statistics(db, user_id)


@app.patch("/api/reviews/{schedule_id}", response_model=ReviewScheduleOut)
def update_review_schedule(
    schedule_id: int,
    payload: UpdateReviewScheduleRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return scheduler.update_settings(
        db, user_id, schedule_id, review_interval=payload.review_interval, is_active=payload.is_active
    )


@app.patch("/api/reviews/{schedule_id}/complete", response_model=ReviewScheduleOut)
def complete_review(
    schedule_id: int,
    payload: CompleteReviewRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return scheduler.complete_review(db, user_id, schedule_id, payload.attempt_id)


@app.delete("/api/reviews/{schedule_id}")
def delete_review_schedule(
    schedule_id: int, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)
):
    scheduler.delete_schedule(db, user_id, schedule_id)
    return {"deleted": schedule_id}


@app.get("/api/analytics/contributions", response_model=ContributionGraphResponse)
def get_contribution_graph(
    end_date: Optional[dt.date] = None,
    days: int = analytics.DEFAULT_GRAPH_DAYS,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return analytics.contribution_graph(db, user_id, end_date=end_date, days=days)


@app.get("/api/analytics/streaks", response_model=StreaksResponse)
def get_streaks(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    return analytics.streaks(db, user_id)


@app.get("/api/analytics/summary/{year}", response_model=YearSummaryResponse)
def get_year_summary(year: int, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    return analytics.year_summary(db, user_id, year)
