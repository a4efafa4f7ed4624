"""Quiz authoring schemas.

Questions are a closed, tagged union on ``type``; every variant carries an
explicit correctness representation (``is_correct`` per option, or a
``correct_answer`` for yes/no). Legacy shapes are normalised before they
reach these records (see ``quizgrade.db.legacy``).
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from fractions import Fraction
from typing import Annotated, Literal, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, PlainSerializer


def _to_fraction(value: object) -> Fraction:
    """Coerce int / str / Decimal / float input into an exact Fraction.

    Floats go through their shortest repr so 2.5 becomes 5/2, not the
    binary expansion.
    """
    if isinstance(value, Fraction):
        return value
    if isinstance(value, bool):
        raise ValueError("marks must be a number")
    if isinstance(value, float):
        return Fraction(repr(value))
    if isinstance(value, (int, Decimal)):
        return Fraction(value)
    if isinstance(value, str):
        return Fraction(value.strip())
    raise ValueError(f"cannot interpret {value!r} as marks")


Marks = Annotated[
    Fraction,
    BeforeValidator(_to_fraction),
    PlainSerializer(float, return_type=float),
]


class QuestionType(str, Enum):
    SINGLE_CHOICE = "single_choice"
    MULTIPLE_CHOICE = "multiple_choice"
    YES_NO = "yes_no"


class YesNo(str, Enum):
    YES = "yes"
    NO = "no"


class QuizStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


class Option(BaseModel):
    """One selectable option, scoped to its question."""

    id: int
    text: str
    is_correct: bool = False

    model_config = ConfigDict(frozen=True)


class _QuestionBase(BaseModel):
    id: int
    text: str
    marks: Marks = Fraction(1)
    explanation: str | None = None

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)


class SingleChoiceQuestion(_QuestionBase):
    type: Literal["single_choice"] = "single_choice"
    options: tuple[Option, ...] = ()

    @property
    def correct_option_ids(self) -> frozenset[int]:
        return frozenset(o.id for o in self.options if o.is_correct)


class MultipleChoiceQuestion(_QuestionBase):
    type: Literal["multiple_choice"] = "multiple_choice"
    options: tuple[Option, ...] = ()

    @property
    def correct_option_ids(self) -> frozenset[int]:
        return frozenset(o.id for o in self.options if o.is_correct)


class YesNoQuestion(_QuestionBase):
    type: Literal["yes_no"] = "yes_no"
    correct_answer: YesNo


Question = Annotated[
    Union[SingleChoiceQuestion, MultipleChoiceQuestion, YesNoQuestion],
    Field(discriminator="type"),
]


class Quiz(BaseModel):
    """A quiz with its ordered questions.

    ``total_marks`` only changes scoring when ``equalize_marks`` is set; it
    then replaces every question's marks with ``total_marks / count``.
    """

    id: int | None = None
    title: str
    description: str | None = None
    instructions: str | None = None
    duration_minutes: int | None = None
    start_at: datetime | None = None
    end_at: datetime | None = None
    randomize_questions: bool = False
    randomize_options: bool = False
    auto_submit: bool = True
    status: QuizStatus = QuizStatus.DRAFT
    total_marks: Marks | None = None
    equalize_marks: bool = False
    questions: tuple[Question, ...] = ()

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @property
    def is_published(self) -> bool:
        return self.status == QuizStatus.PUBLISHED
