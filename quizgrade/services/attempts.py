"""Attempt lifecycle: start, deadline, submit, graded.

    not_started → in_progress → submitted ─┐
                              ↘ auto_submitted ─→ graded

Terminal states never move back. ``reconcile_overdue`` turns an expired
in-progress attempt into ``auto_submitted`` using its saved answers; the
caller decides when to run it.

Timestamps are compared directly, so ``now`` must match the quiz and
attempt: records loaded through ``quizgrade.db.repository`` are UTC-aware.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Any

from quizgrade.exceptions import AttemptStateError
from quizgrade.schemas.attempt import Answer, Attempt, AttemptStatus, seed_for
from quizgrade.schemas.quiz import Quiz
from quizgrade.services.authoring import is_open

logger = logging.getLogger(__name__)

_TRANSITIONS: dict[AttemptStatus, frozenset[AttemptStatus]] = {
    AttemptStatus.NOT_STARTED: frozenset({AttemptStatus.IN_PROGRESS}),
    AttemptStatus.IN_PROGRESS: frozenset({AttemptStatus.SUBMITTED, AttemptStatus.AUTO_SUBMITTED}),
    AttemptStatus.SUBMITTED: frozenset({AttemptStatus.GRADED}),
    AttemptStatus.AUTO_SUBMITTED: frozenset({AttemptStatus.GRADED}),
    AttemptStatus.GRADED: frozenset(),
}

SCORABLE_STATUSES = frozenset(
    {AttemptStatus.SUBMITTED, AttemptStatus.AUTO_SUBMITTED, AttemptStatus.GRADED}
)


def check_transition(current: AttemptStatus, target: AttemptStatus) -> None:
    """Raise ``AttemptStateError`` unless ``current → target`` is allowed."""
    current = AttemptStatus(current)
    target = AttemptStatus(target)
    if target not in _TRANSITIONS[current]:
        raise AttemptStateError(
            f"Attempt cannot move from {current.value} to {target.value}"
        )


def check_can_start(quiz: Quiz, now: datetime) -> None:
    """Raise ``AttemptStateError`` unless ``quiz`` accepts new attempts at ``now``."""
    if quiz.id is None:
        raise AttemptStateError("Quiz must be saved before it can be attempted")
    if not quiz.is_published:
        raise AttemptStateError(f"Quiz {quiz.id} is not published")
    if not is_open(quiz, now):
        raise AttemptStateError(f"Quiz {quiz.id} is not open at {now.isoformat()}")


def start_attempt(
    quiz: Quiz,
    *,
    attempt_id: int,
    student_id: int,
    now: datetime,
    batch_id: int | None = None,
) -> Attempt:
    """Open a new in-progress attempt on a published, currently open quiz."""
    check_can_start(quiz, now)

    logger.info("Student %s started attempt %s on quiz %s", student_id, attempt_id, quiz.id)
    return Attempt(
        id=attempt_id,
        quiz_id=quiz.id,
        student_id=student_id,
        batch_id=batch_id,
        status=AttemptStatus.IN_PROGRESS,
        started_at=now,
        seed=seed_for(attempt_id),
    )


def deadline(quiz: Quiz, attempt: Attempt) -> datetime | None:
    """Latest moment the attempt may be submitted, or None if unbounded.

    ``started_at + duration``, capped by the quiz window's ``end_at``.
    """
    candidates: list[datetime] = []
    if quiz.duration_minutes and attempt.started_at is not None:
        candidates.append(attempt.started_at + timedelta(minutes=quiz.duration_minutes))
    if quiz.end_at is not None:
        candidates.append(quiz.end_at)
    return min(candidates) if candidates else None


def is_expired(quiz: Quiz, attempt: Attempt, now: datetime) -> bool:
    limit = deadline(quiz, attempt)
    return limit is not None and now > limit


def _freeze(answers: Iterable[Answer | dict[str, Any]]) -> tuple[Answer, ...]:
    return tuple(a if isinstance(a, Answer) else Answer.model_validate(a) for a in answers)


def submit(
    attempt: Attempt,
    answers: Iterable[Answer | dict[str, Any]],
    *,
    now: datetime,
    auto: bool = False,
) -> Attempt:
    """Freeze the attempt's answers; ``auto`` marks a timeout submission."""
    target = AttemptStatus.AUTO_SUBMITTED if auto else AttemptStatus.SUBMITTED
    check_transition(attempt.status, target)
    frozen = _freeze(answers)
    logger.info(
        "Attempt %s %s with %d answers",
        attempt.id, "auto-submitted" if auto else "submitted", len(frozen),
    )
    return attempt.model_copy(
        update={
            "status": target,
            "auto_submitted": auto,
            "submitted_at": now,
            "answers": frozen,
        }
    )


def mark_graded(attempt: Attempt) -> Attempt:
    """Move a submitted attempt to ``graded``; already graded is a no-op."""
    if attempt.status == AttemptStatus.GRADED:
        return attempt
    check_transition(attempt.status, AttemptStatus.GRADED)
    return attempt.model_copy(update={"status": AttemptStatus.GRADED})


def save_progress(attempt: Attempt, answers: Iterable[Answer | dict[str, Any]]) -> Attempt:
    """Replace the saved answers of an in-progress attempt.

    The saved set is what a timeout submits; it is not final until
    ``submit`` or ``reconcile_overdue`` freezes it.
    """
    if attempt.status != AttemptStatus.IN_PROGRESS:
        raise AttemptStateError(
            f"Attempt {attempt.id} is {AttemptStatus(attempt.status).value}; progress can no longer be saved"
        )
    frozen = _freeze(answers)
    logger.debug("Attempt %s saved progress (%d answers)", attempt.id, len(frozen))
    return attempt.model_copy(update={"answers": frozen})


def reconcile_overdue(quiz: Quiz, attempt: Attempt, now: datetime) -> Attempt:
    """Auto-submit ``attempt`` with its saved answers once its deadline has passed.

    Returns the attempt unchanged unless it is in progress, past its
    deadline, and the quiz has ``auto_submit`` enabled. The submission is
    stamped at the deadline, so time taken never exceeds the allowance.
    """
    if attempt.status != AttemptStatus.IN_PROGRESS:
        return attempt
    if not quiz.auto_submit or not is_expired(quiz, attempt, now):
        return attempt
    return submit(attempt, attempt.answers, now=deadline(quiz, attempt), auto=True)
