import json
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest

from quizcadence.database import Base, SessionLocal, engine
from quizcadence.models import Question, Quiz


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_quiz(db):
    def _make_quiz(question_count=4, title="Networking basics", choices=("a", "b", "c", "d"), correct=0):
        quiz = Quiz(title=title, created_by="author")
        quiz.questions = [
            Question(
                position=idx,
                prompt=f"Question {idx + 1}",
                options_json=json.dumps(list(choices)),
                correct_option_index=correct,
                explanation="",
            )
            for idx in range(question_count)
        ]
        db.add(quiz)
        db.commit()
        db.refresh(quiz)
        return quiz

    return _make_quiz
