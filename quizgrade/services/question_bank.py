"""Validated, canonical question set for a quiz.

A ``QuestionBank`` is the only source of correctness the scoring engine
trusts. It is built once from authoring data, checked against the
authoring rules, and never mutated afterwards. Equalization replaces each
question's marks with ``total_marks / question_count`` for scoring only;
the stored per-question marks are left untouched.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from fractions import Fraction
from typing import Any

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from quizgrade.exceptions import IntegrityError, ValidationError
from quizgrade.schemas.quiz import (
    MultipleChoiceQuestion,
    Question,
    Quiz,
    SingleChoiceQuestion,
    YesNoQuestion,
)

logger = logging.getLogger(__name__)

_QUESTION_ADAPTER: TypeAdapter = TypeAdapter(Question)
_QUESTION_CLASSES = (SingleChoiceQuestion, MultipleChoiceQuestion, YesNoQuestion)


# ── Parsing ──────────────────────────────────────────────────────────────────


def parse_questions(questions: Iterable[Any]) -> tuple[Question, ...]:
    """Turn question records or raw mappings into typed question records.

    Structural problems (unknown type, missing fields) are collected and
    raised together as a single ``ValidationError``.
    """
    parsed: list[Question] = []
    problems: list[str] = []
    for position, item in enumerate(questions, start=1):
        if isinstance(item, _QUESTION_CLASSES):
            parsed.append(item)
            continue
        try:
            parsed.append(_QUESTION_ADAPTER.validate_python(item))
        except PydanticValidationError as exc:
            for err in exc.errors():
                loc = ".".join(str(part) for part in err["loc"])
                problems.append(f"Question {position}: {loc}: {err['msg']}" if loc else f"Question {position}: {err['msg']}")
    if problems:
        raise ValidationError(problems)
    return tuple(parsed)


# ── Authoring rules ──────────────────────────────────────────────────────────


def find_problems(questions: Iterable[Question]) -> list[str]:
    """Return every authoring rule the questions violate (empty when valid)."""
    problems: list[str] = []
    seen_ids: set[int] = set()

    for position, question in enumerate(questions, start=1):
        prefix = f"Question {position}"
        if question.id in seen_ids:
            problems.append(f"{prefix}: duplicate question id {question.id}")
        seen_ids.add(question.id)

        if not question.text or not question.text.strip():
            problems.append(f"{prefix}: text must not be empty")
        if question.marks <= 0:
            problems.append(f"{prefix}: marks must be positive")
        elif (question.marks * 2).denominator != 1:
            problems.append(f"{prefix}: marks must be a whole or half point")

        if isinstance(question, YesNoQuestion):
            continue

        if len(question.options) < 2:
            problems.append(f"{prefix}: needs at least 2 options")

        option_ids: set[int] = set()
        for opt_position, option in enumerate(question.options, start=1):
            if option.id in option_ids:
                problems.append(f"{prefix}: duplicate option id {option.id}")
            option_ids.add(option.id)
            if not option.text or not option.text.strip():
                problems.append(f"{prefix}: option {opt_position} text must not be empty")

        correct = sum(1 for o in question.options if o.is_correct)
        if isinstance(question, SingleChoiceQuestion) and correct != 1:
            problems.append(
                f"{prefix}: single choice needs exactly one correct option (found {correct})"
            )
        elif isinstance(question, MultipleChoiceQuestion) and correct == 0:
            problems.append(f"{prefix}: multiple choice needs at least one correct option")

    return problems


def validate(questions: Iterable[Question]) -> None:
    """Raise ``ValidationError`` listing every violated authoring rule."""
    problems = find_problems(questions)
    if problems:
        logger.debug("Question validation failed: %s", problems)
        raise ValidationError(problems)


# ── Bank ─────────────────────────────────────────────────────────────────────


class QuestionBank:
    """Immutable, validated question set with effective (scoring) marks."""

    def __init__(
        self,
        questions: tuple[Question, ...],
        effective_marks: Mapping[int, Fraction],
        *,
        quiz_id: int | None = None,
        equalized: bool = False,
    ) -> None:
        self._questions = questions
        self._by_id = {q.id: q for q in questions}
        self._marks = dict(effective_marks)
        self._quiz_id = quiz_id
        self._equalized = equalized

    @classmethod
    def build(
        cls,
        questions: Iterable[Any],
        *,
        total_marks: Fraction | int | None = None,
        equalize: bool = False,
        quiz_id: int | None = None,
    ) -> "QuestionBank":
        """Parse, validate and freeze a question set.

        Raises ``ValidationError`` for any malformed question. An empty
        question list is valid and yields a bank with ``max_score == 0``.
        """
        parsed = parse_questions(questions)
        validate(parsed)

        marks = {q.id: q.marks for q in parsed}
        equalized = False
        if equalize and total_marks is not None and parsed:
            total = Fraction(total_marks)
            if total <= 0:
                raise ValidationError("total marks must be positive to equalize")
            share = total / len(parsed)
            marks = {q.id: share for q in parsed}
            equalized = True
            logger.debug(
                "Equalized %d questions to %s marks each (total %s)",
                len(parsed), share, total,
            )

        return cls(parsed, marks, quiz_id=quiz_id, equalized=equalized)

    @classmethod
    def from_quiz(cls, quiz: Quiz) -> "QuestionBank":
        return cls.build(
            quiz.questions,
            total_marks=quiz.total_marks,
            equalize=quiz.equalize_marks,
            quiz_id=quiz.id,
        )

    # ── accessors ────────────────────────────────────────────────────────

    @property
    def questions(self) -> tuple[Question, ...]:
        return self._questions

    @property
    def quiz_id(self) -> int | None:
        return self._quiz_id

    @property
    def equalized(self) -> bool:
        return self._equalized

    @property
    def max_score(self) -> Fraction:
        return sum(self._marks.values(), Fraction(0))

    def __len__(self) -> int:
        return len(self._questions)

    def __iter__(self) -> Iterator[Question]:
        return iter(self._questions)

    def __contains__(self, question_id: object) -> bool:
        return question_id in self._by_id

    def get(self, question_id: int) -> Question | None:
        return self._by_id.get(question_id)

    def question(self, question_id: int) -> Question:
        """Return the question or raise ``IntegrityError`` if it is unknown."""
        try:
            return self._by_id[question_id]
        except KeyError:
            raise IntegrityError(
                f"Question {question_id} is not part of this quiz",
                question_id=question_id,
            ) from None

    def option_ids(self, question_id: int) -> frozenset[int]:
        question = self.question(question_id)
        if isinstance(question, YesNoQuestion):
            return frozenset()
        return frozenset(o.id for o in question.options)

    def effective_marks(self, question_id: int) -> Fraction:
        self.question(question_id)
        return self._marks[question_id]
