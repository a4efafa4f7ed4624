"""Scoring engine for submitted attempts.

Per-question policy:
  - yes_no:          full marks when the value matches, else zero.
  - single_choice:   full marks only when exactly the correct option is
                     selected; wrong, multiple or no selection score zero.
  - multiple_choice: partial credit,
                         marks * (correct_selected - incorrect_selected) / correct_total
                     clamped to [0, marks]. Adding a correct option without an
                     incorrect one never lowers the score; no selection scores
                     zero; the exact correct set scores full marks.

Scoring runs on canonical question / option ids only, never on the
presentation order shown to the student. An answer that points at a
question or option the bank does not know is an ``IntegrityError``, not a
zero. Arithmetic is exact (``Fraction``) until the final two-decimal
rounding, so re-scoring the same inputs yields an identical result.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from fractions import Fraction

from quizgrade.exceptions import AttemptStateError, IntegrityError
from quizgrade.schemas.attempt import Answer, Attempt
from quizgrade.schemas.quiz import (
    MultipleChoiceQuestion,
    Question,
    QuestionType,
    SingleChoiceQuestion,
    YesNoQuestion,
)
from quizgrade.schemas.result import Outcome, QuestionScore, ScoredResult
from quizgrade.services.attempts import SCORABLE_STATUSES
from quizgrade.services.question_bank import QuestionBank

logger = logging.getLogger(__name__)

_TWO_PLACES = Decimal("0.01")

# Lower bound inclusive, checked top-down.
GRADE_BANDS: tuple[tuple[float, str], ...] = (
    (90, "A+"),
    (80, "A"),
    (70, "B+"),
    (60, "B"),
    (50, "C"),
)


# ── Numeric helpers ──────────────────────────────────────────────────────────


def round2(value: Fraction | float | int) -> float:
    """Round half-up to two decimals."""
    if isinstance(value, Fraction):
        exact = Decimal(value.numerator) / Decimal(value.denominator)
    elif isinstance(value, float):
        exact = Decimal(repr(value))
    else:
        exact = Decimal(value)
    return float(exact.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP))


def grade_for(percentage: float) -> str:
    """Display grade band for a percentage."""
    for threshold, grade in GRADE_BANDS:
        if percentage >= threshold:
            return grade
    return "F"


# ── Per-question scoring ─────────────────────────────────────────────────────


def _multiple_choice_credit(
    marks: Fraction, correct_ids: frozenset[int], selected: frozenset[int]
) -> Fraction:
    correct_selected = len(selected & correct_ids)
    incorrect_selected = len(selected - correct_ids)
    raw = marks * (correct_selected - incorrect_selected) / len(correct_ids)
    return min(max(raw, Fraction(0)), marks)


def _check_answer_shape(bank: QuestionBank, question: Question, answer: Answer) -> None:
    if isinstance(question, YesNoQuestion):
        if answer.selected_option_ids:
            raise IntegrityError(
                f"Question {question.id} is yes/no but the answer selects options",
                question_id=question.id,
            )
        return

    if answer.value is not None:
        raise IntegrityError(
            f"Question {question.id} is a choice question but the answer is yes/no",
            question_id=question.id,
        )
    unknown = answer.selected_option_ids - bank.option_ids(question.id)
    if unknown:
        option_id = min(unknown)
        raise IntegrityError(
            f"Option {option_id} does not belong to question {question.id}",
            question_id=question.id,
            option_id=option_id,
        )


def score_question(question: Question, marks: Fraction, answer: Answer | None) -> QuestionScore:
    """Score one question; ``answer`` None means the question was skipped.

    The answer must already be shape-checked against the bank.
    """
    awarded = Fraction(0)
    answered = answer is not None and not answer.is_blank

    if answered:
        if isinstance(question, YesNoQuestion):
            if answer.value == question.correct_answer:
                awarded = marks
        elif isinstance(question, SingleChoiceQuestion):
            if answer.selected_option_ids == question.correct_option_ids:
                awarded = marks
        elif isinstance(question, MultipleChoiceQuestion):
            awarded = _multiple_choice_credit(
                marks, question.correct_option_ids, answer.selected_option_ids
            )

    if awarded == marks and marks > 0:
        outcome = Outcome.CORRECT
    elif awarded > 0:
        outcome = Outcome.PARTIAL
    else:
        outcome = Outcome.INCORRECT

    return QuestionScore(
        question_id=question.id,
        question_type=QuestionType(question.type),
        answered=answered,
        marks_awarded=awarded,
        max_marks=marks,
        outcome=outcome,
    )


# ── Attempt scoring ──────────────────────────────────────────────────────────


def _index_answers(bank: QuestionBank, attempt: Attempt) -> dict[int, Answer]:
    by_question: dict[int, Answer] = {}
    for answer in attempt.answers:
        if answer.question_id not in bank:
            logger.warning(
                "Attempt %s answers unknown question %s",
                attempt.id, answer.question_id,
            )
            raise IntegrityError(
                f"Question {answer.question_id} is not part of quiz {attempt.quiz_id}",
                question_id=answer.question_id,
            )
        if answer.question_id in by_question:
            raise IntegrityError(
                f"Question {answer.question_id} is answered more than once",
                question_id=answer.question_id,
            )
        question = bank.question(answer.question_id)
        try:
            _check_answer_shape(bank, question, answer)
        except IntegrityError as exc:
            logger.warning("Attempt %s rejected: %s", attempt.id, exc)
            raise
        by_question[answer.question_id] = answer
    return by_question


def _time_taken_minutes(attempt: Attempt) -> int | None:
    if attempt.started_at is None or attempt.submitted_at is None:
        return None
    seconds = (attempt.submitted_at - attempt.started_at).total_seconds()
    return max(0, int(seconds // 60))


def score(bank: QuestionBank, attempt: Attempt) -> ScoredResult:
    """Score a submitted (or auto-submitted) attempt against its bank.

    Raises ``AttemptStateError`` for attempts that were never submitted and
    ``IntegrityError`` for answers that do not match the bank.
    """
    if attempt.status not in SCORABLE_STATUSES:
        raise AttemptStateError(
            f"Attempt {attempt.id} is {attempt.status.value}; only submitted attempts can be scored"
        )
    if bank.quiz_id is not None and bank.quiz_id != attempt.quiz_id:
        raise IntegrityError(
            f"Attempt {attempt.id} belongs to quiz {attempt.quiz_id}, not {bank.quiz_id}"
        )

    answers = _index_answers(bank, attempt)

    question_scores: list[QuestionScore] = []
    for question in bank:
        marks = bank.effective_marks(question.id)
        qs = score_question(question, marks, answers.get(question.id))
        question_scores.append(qs)
        logger.debug(
            "Attempt %s question %s: %s/%s (%s)",
            attempt.id, question.id, qs.marks_awarded, marks, qs.outcome.value,
        )

    total = sum((qs.marks_awarded for qs in question_scores), Fraction(0))
    maximum = bank.max_score
    percentage = round2(total * 100 / maximum) if maximum > 0 else 0.0

    result = ScoredResult(
        attempt_id=attempt.id,
        quiz_id=attempt.quiz_id,
        student_id=attempt.student_id,
        batch_id=attempt.batch_id,
        auto_submitted=attempt.auto_submitted,
        started_at=attempt.started_at,
        submitted_at=attempt.submitted_at,
        time_taken_minutes=_time_taken_minutes(attempt),
        questions=tuple(question_scores),
        score=round2(total),
        max_score=round2(maximum),
        percentage=percentage,
    )
    logger.info(
        "Scored attempt %s: %s/%s (%.2f%%)%s",
        attempt.id, result.score, result.max_score, result.percentage,
        " [auto-submitted]" if attempt.auto_submitted else "",
    )
    return result
