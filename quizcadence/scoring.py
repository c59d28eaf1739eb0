"""Grading of a single quiz submission against its answer key."""
import json
from dataclasses import dataclass, field
from typing import List, Sequence

from quizcadence.clock import round_half_up
from quizcadence.errors import NotFoundError, ValidationError


@dataclass(frozen=True)
class AnswerKey:
    choices: List[str]
    correct_choice_index: int

    @classmethod
    def from_question(cls, question) -> "AnswerKey":
        return cls(choices=json.loads(question.options_json), correct_choice_index=question.correct_option_index)


@dataclass(frozen=True)
class SubmittedAnswer:
    question_index: int
    selected_choice_index: int


@dataclass(frozen=True)
class GradedAnswer:
    question_index: int
    selected_choice_index: int
    is_correct: bool


@dataclass
class ScoreResult:
    score: int
    correct_count: int
    total_questions: int
    answers: List[GradedAnswer] = field(default_factory=list)


def score_submission(answer_keys: Sequence[AnswerKey], answers: Sequence[SubmittedAnswer]) -> ScoreResult:
    """Grade ``answers`` against ``answer_keys``.

    The whole submission is validated before anything is graded so callers
    never see a partially scored result. Quizzes are assumed to have at least
    one question.
    """
    total = len(answer_keys)
    if len(answers) != total:
        raise ValidationError(
            f"Submitted answer count ({len(answers)}) does not match question count ({total})"
        )

    seen = set()
    for answer in answers:
        if answer.question_index < 0 or answer.question_index >= total:
            raise NotFoundError(f"No question at index {answer.question_index}")
        if answer.question_index in seen:
            raise ValidationError(f"Question {answer.question_index} was answered more than once")
        seen.add(answer.question_index)

        key = answer_keys[answer.question_index]
        if answer.selected_choice_index < 0 or answer.selected_choice_index >= len(key.choices):
            raise NotFoundError(
                f"No choice at index {answer.selected_choice_index} for question {answer.question_index}"
            )

    graded = [
        GradedAnswer(
            question_index=answer.question_index,
            selected_choice_index=answer.selected_choice_index,
            is_correct=answer.selected_choice_index == answer_keys[answer.question_index].correct_choice_index,
        )
        for answer in answers
    ]
    correct_count = sum(1 for g in graded if g.is_correct)
    score = round_half_up(correct_count / total * 100)
    return ScoreResult(score=score, correct_count=correct_count, total_questions=total, answers=graded)
