"""Attempt schemas."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict

from quizgrade.schemas.quiz import YesNo


def seed_for(attempt_id: int) -> str:
    """Presentation seed for an attempt; stable across reloads."""
    return f"attempt-{attempt_id}"


class AttemptStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    AUTO_SUBMITTED = "auto_submitted"
    GRADED = "graded"


class Answer(BaseModel):
    """A student's response to one question.

    Choice questions use ``selected_option_ids``, yes/no questions use
    ``value``. Leaving both empty is a valid, unanswered response.
    """

    question_id: int
    selected_option_ids: frozenset[int] = frozenset()
    value: YesNo | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_blank(self) -> bool:
        return not self.selected_option_ids and self.value is None


class Attempt(BaseModel):
    """One student's engagement with a quiz, from start to submission."""

    id: int
    quiz_id: int
    student_id: int
    batch_id: int | None = None
    status: AttemptStatus = AttemptStatus.IN_PROGRESS
    auto_submitted: bool = False
    started_at: datetime | None = None
    submitted_at: datetime | None = None
    seed: str | None = None
    answers: tuple[Answer, ...] = ()

    model_config = ConfigDict(frozen=True)

    @property
    def presentation_seed(self) -> str:
        """Seed used to derive question / option order for this attempt."""
        return self.seed if self.seed is not None else seed_for(self.id)


class PresentationOrder(BaseModel):
    """Per-attempt display order; never used for scoring."""

    question_ids: tuple[int, ...]
    option_ids: dict[int, tuple[int, ...]] = {}

    model_config = ConfigDict(frozen=True)
