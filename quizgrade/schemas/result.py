"""Scored result schemas."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict

from quizgrade.schemas.quiz import Marks, QuestionType


class Outcome(str, Enum):
    CORRECT = "correct"
    PARTIAL = "partial"
    INCORRECT = "incorrect"


class QuestionScore(BaseModel):
    """Marks awarded for one canonical question."""

    question_id: int
    question_type: QuestionType
    answered: bool
    marks_awarded: Marks
    max_marks: Marks
    outcome: Outcome

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @property
    def is_correct(self) -> bool:
        return self.outcome == Outcome.CORRECT

    @property
    def is_partial(self) -> bool:
        return self.outcome == Outcome.PARTIAL

    @property
    def is_incorrect(self) -> bool:
        return self.outcome == Outcome.INCORRECT


class ScoredResult(BaseModel):
    """Outcome of scoring one attempt against its question bank."""

    attempt_id: int
    quiz_id: int
    student_id: int
    batch_id: int | None = None
    auto_submitted: bool = False
    started_at: datetime | None = None
    submitted_at: datetime | None = None
    time_taken_minutes: int | None = None
    questions: tuple[QuestionScore, ...] = ()
    score: float
    max_score: float
    percentage: float

    model_config = ConfigDict(frozen=True)
