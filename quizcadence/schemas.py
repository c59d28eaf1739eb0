import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class QuestionPayload(BaseModel):
    prompt: str
    options: List[str] = Field(min_length=2)
    correct_option_index: int = Field(ge=0)
    explanation: str = ""

    @model_validator(mode="after")
    def correct_option_in_range(self):
        if self.correct_option_index >= len(self.options):
            raise ValueError("correct_option_index must point at one of the options")
        return self


class CreateQuizRequest(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    questions: List[QuestionPayload] = Field(min_length=1)


class QuizQuestionOut(BaseModel):
    index: int
    prompt: str
    options: List[str]
    correct_option_index: int
    explanation: str


class QuizOut(BaseModel):
    quiz_id: int
    title: str
    created_by: str
    created_at: dt.datetime
    questions: List[QuizQuestionOut]


class AnswerIn(BaseModel):
    question_index: int = Field(ge=0)
    selected_choice_index: int = Field(ge=0)


class SubmitQuizRequest(BaseModel):
    answers: List[AnswerIn] = Field(min_length=1)
    time_spent_seconds: Optional[int] = Field(default=None, ge=0)


class AnswerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    question_index: int
    selected_choice_index: int
    is_correct: bool


class AttemptOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    quiz_id: int
    score: int
    correct_count: int
    total_questions: int
    time_spent_seconds: Optional[int]
    submitted_at: dt.datetime
    answers: List[AnswerOut] = Field(default_factory=list)


class AttemptListResponse(BaseModel):
    attempts: List[AttemptOut]
    page: int
    limit: int
    total: int


class ReviewScheduleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    quiz_id: int
    last_reviewed_at: dt.datetime
    next_review_at: dt.datetime
    review_interval: int
    review_count: int
    last_score: int
    average_score: int
    is_active: bool


class SubmissionResponse(BaseModel):
    attempt: AttemptOut
    score: int
    correct_count: int
    total_questions: int
    review_schedule: Optional[ReviewScheduleOut] = None


class QuizStatsResponse(BaseModel):
    quiz_id: int
    title: str
    total_questions: int
    total_submissions: int
    average_score: int
    max_score: int
    min_score: int
    average_time: int


class CreateReviewScheduleRequest(BaseModel):
    quiz_id: int
    review_interval: int = 3


class UpdateReviewScheduleRequest(BaseModel):
    review_interval: Optional[int] = Field(default=None, ge=1, le=30)
    is_active: Optional[bool] = None


class CompleteReviewRequest(BaseModel):
    attempt_id: int


class DueReviewsResponse(BaseModel):
    schedules: List[ReviewScheduleOut]
    total: int


class PaginationOut(BaseModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int


class ReviewScheduleListResponse(BaseModel):
    schedules: List[ReviewScheduleOut]
    pagination: PaginationOut


class ReviewStatisticsOut(BaseModel):
    total_schedules: int
    active_schedules: int
    needs_review: int
    average_score: float
    total_reviews: int


class RecentPerformanceOut(BaseModel):
    schedule_id: int
    quiz_id: int
    quiz_title: str
    last_score: int
    last_reviewed_at: dt.datetime


class ReviewStatisticsResponse(BaseModel):
    statistics: ReviewStatisticsOut
    recent_performance: List[RecentPerformanceOut]


class ContributionDayOut(BaseModel):
    date: dt.date
    count: int
    average_score: float
    best_score: int
    total_time: int
    intensity: int
    weekday: int
    week: int


class ContributionGraphResponse(BaseModel):
    start_date: dt.date
    end_date: dt.date
    total_attempts: int
    active_days: int
    days: List[ContributionDayOut]


class StreaksResponse(BaseModel):
    current_streak: int
    longest_streak: int
    last_active_date: Optional[dt.date]
    lookback_days: int


class MonthBreakdownOut(BaseModel):
    month: int
    name: str
    count: int
    average_score: float


class WeekdayBreakdownOut(BaseModel):
    weekday: int
    name: str
    count: int
    average_score: float


class YearSummaryResponse(BaseModel):
    year: int
    total_attempts: int
    average_score: float
    best_score: int
    total_time: int
    active_days: int
    by_month: List[MonthBreakdownOut]
    by_weekday: List[WeekdayBreakdownOut]
    most_active_month: Optional[int]
    best_average_month: Optional[int]
    most_active_weekday: Optional[int]
