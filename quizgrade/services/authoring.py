"""Quiz lifecycle: draft edits, publish, schedule."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from quizgrade.exceptions import QuizLockedError, ValidationError
from quizgrade.schemas.quiz import Quiz, QuizStatus
from quizgrade.services.question_bank import QuestionBank, parse_questions

logger = logging.getLogger(__name__)


def schedule_problems(
    start_at: datetime | None,
    end_at: datetime | None,
    duration_minutes: int | None,
) -> list[str]:
    problems: list[str] = []
    if start_at is not None and end_at is not None and end_at <= start_at:
        problems.append("end time must be after start time")
    if duration_minutes is not None and duration_minutes <= 0:
        problems.append("duration must be a positive number of minutes")
    return problems


def update_questions(quiz: Quiz, questions: Iterable[Any]) -> Quiz:
    """Replace the question set of a draft quiz.

    Drafts may be incomplete, so only the structure is checked here; the
    authoring rules are enforced on publish.
    """
    if quiz.is_published:
        raise QuizLockedError(f"Quiz {quiz.id} is published; its questions are read-only")
    return quiz.model_copy(update={"questions": parse_questions(questions)})


def publish(quiz: Quiz) -> Quiz:
    """Validate a draft and return it published. Publishing twice is a no-op."""
    if quiz.is_published:
        return quiz

    problems = schedule_problems(quiz.start_at, quiz.end_at, quiz.duration_minutes)
    if not quiz.questions:
        problems.insert(0, "quiz needs at least one question")
    if quiz.equalize_marks and quiz.total_marks is None:
        problems.append("equalizing marks requires total marks")
    if problems:
        raise ValidationError(problems)

    QuestionBank.from_quiz(quiz)
    logger.info("Quiz %s published with %d questions", quiz.id, len(quiz.questions))
    return quiz.model_copy(update={"status": QuizStatus.PUBLISHED})


def reschedule(
    quiz: Quiz,
    *,
    start_at: datetime | None,
    end_at: datetime | None,
    duration_minutes: int | None,
) -> Quiz:
    """Change the availability window; allowed in any status."""
    problems = schedule_problems(start_at, end_at, duration_minutes)
    if problems:
        raise ValidationError(problems)
    return quiz.model_copy(
        update={"start_at": start_at, "end_at": end_at, "duration_minutes": duration_minutes}
    )


def is_open(quiz: Quiz, at: datetime) -> bool:
    """True when the quiz is published and ``at`` lies inside its window."""
    if not quiz.is_published:
        return False
    if quiz.start_at is not None and at < quiz.start_at:
        return False
    if quiz.end_at is not None and at > quiz.end_at:
        return False
    return True
