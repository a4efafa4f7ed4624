"""Persistence boundary: load quiz / attempt records, store scored results.

The grading services never touch the database. This module reads rows,
normalises legacy shapes through ``quizgrade.db.legacy`` and hands typed
records to the services, then writes the scored result back.

Timestamps are stored as UTC. Naive values are taken to be UTC already;
everything loaded from here is timezone-aware, so callers compare it
against an aware ``now``.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from fractions import Fraction

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from quizgrade.db import models
from quizgrade.db.legacy import STORED_TYPES, normalize_answer, normalize_question
from quizgrade.exceptions import AttemptStateError, IntegrityError, ValidationError
from quizgrade.schemas.attempt import Answer, Attempt, AttemptStatus
from quizgrade.schemas.quiz import Quiz, QuestionType, YesNoQuestion
from quizgrade.schemas.result import ScoredResult
from quizgrade.services import attempts as attempt_service
from quizgrade.services.grading import round2, score
from quizgrade.services.question_bank import QuestionBank

logger = logging.getLogger(__name__)

_saved_answers = TypeAdapter(tuple[Answer, ...])


def _to_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ── Quizzes ───────────────────────────────────────────────────────────────────


def save_quiz(db: Session, quiz: Quiz, *, teacher_id: int | None = None) -> models.Quiz:
    """Insert a quiz with its questions and options; returns the row.

    Question and option ids on the record are ignored; the database assigns
    new ones. Use ``load_quiz`` to get the record with stored ids.
    """
    row = models.Quiz(
        title=quiz.title,
        description=quiz.description,
        instructions=quiz.instructions,
        teacher_id=teacher_id,
        status=quiz.status,
        start_date=_to_utc(quiz.start_at),
        end_date=_to_utc(quiz.end_at),
        duration_minutes=quiz.duration_minutes,
        total_marks=float(quiz.total_marks) if quiz.total_marks is not None else 0,
        equalize_marks=quiz.equalize_marks,
        randomize_questions=quiz.randomize_questions,
        randomize_options=quiz.randomize_options,
        auto_submit=quiz.auto_submit,
    )
    for order, question in enumerate(quiz.questions, start=1):
        q_row = models.Question(
            question_text=question.text,
            question_type=STORED_TYPES[QuestionType(question.type)],
            question_order=order,
            marks=float(question.marks),
            explanation=question.explanation,
        )
        if isinstance(question, YesNoQuestion):
            q_row.correct_answer = question.correct_answer.value
        else:
            q_row.options = [
                models.QuestionOption(
                    option_text=option.text,
                    option_order=opt_order,
                    is_correct=option.is_correct,
                )
                for opt_order, option in enumerate(question.options, start=1)
            ]
        row.questions.append(q_row)

    db.add(row)
    db.flush()
    logger.info("Stored quiz %s (%d questions)", row.id, len(row.questions))
    return row


def load_quiz(db: Session, quiz_id: int) -> Quiz | None:
    """Load a quiz as a typed record, or None when it does not exist.

    Raises ``ValidationError`` when a stored question cannot be normalised.
    """
    row = db.query(models.Quiz).filter(models.Quiz.id == quiz_id).first()
    if row is None:
        return None

    questions = [
        normalize_question(
            {
                "id": q.id,
                "question_text": q.question_text,
                "question_type": q.question_type,
                "marks": q.marks,
                "correct_answer": q.correct_answer,
                "explanation": q.explanation,
                "options": [
                    {"id": o.id, "option_text": o.option_text, "is_correct": o.is_correct}
                    for o in q.options
                ],
            }
        )
        for q in row.questions
    ]
    try:
        return Quiz(
            id=row.id,
            title=row.title,
            description=row.description,
            instructions=row.instructions,
            duration_minutes=row.duration_minutes,
            start_at=_to_utc(row.start_date),
            end_at=_to_utc(row.end_date),
            randomize_questions=row.randomize_questions,
            randomize_options=row.randomize_options,
            auto_submit=row.auto_submit,
            status=row.status,
            total_marks=row.total_marks or None,
            equalize_marks=row.equalize_marks,
            questions=questions,
        )
    except PydanticValidationError as exc:
        raise ValidationError(
            [f"Quiz {quiz_id}: {'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors()]
        ) from exc


# ── Submissions ───────────────────────────────────────────────────────────────


def _get_submission(db: Session, submission_id: int) -> models.QuizSubmission:
    row = (
        db.query(models.QuizSubmission)
        .filter(models.QuizSubmission.id == submission_id)
        .first()
    )
    if row is None:
        raise LookupError(f"Submission {submission_id} not found")
    return row


def _stored_answers(row: models.QuizSubmission) -> list[Answer | dict]:
    if row.status == AttemptStatus.IN_PROGRESS and row.auto_saved_data:
        try:
            return list(_saved_answers.validate_json(row.auto_saved_data))
        except PydanticValidationError as exc:
            raise IntegrityError(f"Saved progress of submission {row.id} is unreadable") from exc
    return [
        normalize_answer(
            question_type=aa.question.question_type if aa.question else "",
            question_id=aa.question_id,
            answer_text=aa.answer_text,
            selected_options=aa.selected_options,
        )
        for aa in sorted(row.answers, key=lambda a: a.question_id)
    ]


def load_attempt(db: Session, submission_id: int) -> Attempt | None:
    """Load a submission as an ``Attempt``, or None when it does not exist.

    In-progress submissions carry their saved progress as answers.
    """
    row = (
        db.query(models.QuizSubmission)
        .filter(models.QuizSubmission.id == submission_id)
        .first()
    )
    if row is None:
        return None

    return Attempt(
        id=row.id,
        quiz_id=row.quiz_id,
        student_id=row.student_id,
        batch_id=row.batch_id,
        status=row.status,
        auto_submitted=row.auto_submitted or row.status == AttemptStatus.AUTO_SUBMITTED,
        started_at=_to_utc(row.started_at),
        submitted_at=_to_utc(row.submitted_at),
        seed=row.seed,
        answers=_stored_answers(row),
    )


def start_submission(
    db: Session,
    quiz: Quiz,
    *,
    student_id: int,
    now: datetime,
    batch_id: int | None = None,
) -> Attempt:
    """Start (or resume) the student's attempt on ``quiz`` and store it.

    A student has one submission per quiz: an in-progress one is returned
    as stored, a finished one raises ``AttemptStateError``.
    """
    now = _to_utc(now)
    existing = (
        db.query(models.QuizSubmission)
        .filter(
            models.QuizSubmission.quiz_id == quiz.id,
            models.QuizSubmission.student_id == student_id,
        )
        .first()
    )
    if existing is not None and existing.status != AttemptStatus.NOT_STARTED:
        if existing.status == AttemptStatus.IN_PROGRESS:
            logger.info("Student %s resumed submission %s", student_id, existing.id)
            return load_attempt(db, existing.id)
        raise AttemptStateError(
            f"Student {student_id} already finished quiz {quiz.id} (submission {existing.id})"
        )

    attempt_service.check_can_start(quiz, now)
    row = existing
    if row is None:
        row = models.QuizSubmission(quiz_id=quiz.id, student_id=student_id)
        db.add(row)
    if batch_id is not None:
        row.batch_id = batch_id
    db.flush()

    attempt = attempt_service.start_attempt(
        quiz, attempt_id=row.id, student_id=student_id, now=now, batch_id=row.batch_id
    )
    row.status = attempt.status
    row.started_at = attempt.started_at
    row.seed = attempt.seed
    db.flush()
    return attempt


def _answers_json(answers: tuple[Answer, ...]) -> str:
    return _saved_answers.dump_json(answers).decode()


def store_progress(db: Session, attempt: Attempt) -> models.QuizSubmission:
    """Persist the saved answers of an in-progress attempt."""
    row = _get_submission(db, attempt.id)
    if row.status != AttemptStatus.IN_PROGRESS:
        raise AttemptStateError(
            f"Submission {row.id} is {row.status.value}; progress can no longer be saved"
        )
    row.auto_saved_data = _answers_json(attempt.answers)
    db.flush()
    return row


def _write_answers(row: models.QuizSubmission, answers: tuple[Answer, ...]) -> None:
    by_question = {answer.question_id: answer for answer in answers}
    row.answers = [aa for aa in row.answers if aa.question_id in by_question]
    existing = {aa.question_id: aa for aa in row.answers}
    for question_id, answer in by_question.items():
        answer_row = existing.get(question_id)
        if answer_row is None:
            answer_row = models.StudentAnswer(question_id=question_id)
            row.answers.append(answer_row)
        answer_row.answer_text = answer.value.value if answer.value is not None else None
        answer_row.selected_options = (
            json.dumps(sorted(answer.selected_option_ids)) if answer.selected_option_ids else None
        )


def store_submission(db: Session, attempt: Attempt) -> models.QuizSubmission:
    """Persist a submitted (or auto-submitted) attempt with its final answers."""
    row = _get_submission(db, attempt.id)
    attempt_service.check_transition(row.status, attempt.status)
    _write_answers(row, attempt.answers)
    row.status = attempt.status
    row.auto_submitted = attempt.auto_submitted
    row.submitted_at = _to_utc(attempt.submitted_at)
    row.auto_saved_data = None
    db.flush()
    logger.info("Stored %s submission %s", row.status.value, row.id)
    return row


def _already_stored(row: models.QuizSubmission, result: ScoredResult) -> bool:
    return (
        row.total_score == result.score
        and row.max_score == result.max_score
        and row.percentage == result.percentage
        and row.auto_submitted == result.auto_submitted
    )


def save_scored_result(db: Session, result: ScoredResult) -> models.QuizSubmission:
    """Write marks back and move the submission to ``graded``.

    Storing the same result twice is a no-op; storing a different result
    for an already graded submission raises ``AttemptStateError``.
    """
    row = _get_submission(db, result.attempt_id)

    if row.status == AttemptStatus.GRADED:
        if _already_stored(row, result):
            logger.debug("Submission %s already graded with identical result", row.id)
            return row
        raise AttemptStateError(f"Submission {row.id} is already graded with a different result")
    attempt_service.check_transition(row.status, AttemptStatus.GRADED)

    existing = {aa.question_id: aa for aa in row.answers}
    for qs in result.questions:
        answer_row = existing.get(qs.question_id)
        if answer_row is None:
            # Unanswered questions get a zero row so the marksheet is complete
            answer_row = models.StudentAnswer(question_id=qs.question_id)
            row.answers.append(answer_row)
        answer_row.marks_awarded = round2(Fraction(qs.marks_awarded))
        answer_row.is_correct = qs.is_correct

    row.total_score = result.score
    row.max_score = result.max_score
    row.percentage = result.percentage
    row.time_taken_minutes = result.time_taken_minutes
    row.auto_submitted = result.auto_submitted
    row.status = AttemptStatus.GRADED
    db.flush()
    logger.info("Submission %s graded: %s/%s", row.id, result.score, result.max_score)
    return row


def grade_submission(db: Session, submission_id: int) -> ScoredResult:
    """Load, score and store one submission; safe to call repeatedly."""
    attempt = load_attempt(db, submission_id)
    if attempt is None:
        raise LookupError(f"Submission {submission_id} not found")
    quiz = load_quiz(db, attempt.quiz_id)
    if quiz is None:
        raise IntegrityError(f"Submission {submission_id} references missing quiz {attempt.quiz_id}")

    result = score(QuestionBank.from_quiz(quiz), attempt)
    save_scored_result(db, result)
    db.commit()
    return result


def record_answers(
    db: Session,
    submission_id: int,
    answers: dict[int, list[int] | str | None],
) -> models.QuizSubmission:
    """Store raw answers for a submission (``{question_id: option ids | 'yes'/'no'}``)."""
    row = _get_submission(db, submission_id)
    existing = {aa.question_id: aa for aa in row.answers}
    for question_id, value in answers.items():
        answer_row = existing.get(question_id)
        if answer_row is None:
            answer_row = models.StudentAnswer(question_id=question_id)
            row.answers.append(answer_row)
        if isinstance(value, list):
            answer_row.selected_options = json.dumps(value)
            answer_row.answer_text = None
        else:
            answer_row.answer_text = value
            answer_row.selected_options = None
    db.flush()
    return row


def reconcile_overdue_submissions(db: Session, now: datetime) -> list[ScoredResult]:
    """Auto-submit and grade every in-progress submission past its deadline.

    Quizzes without ``auto_submit`` are left alone. Returns the results of
    the submissions graded by this run.
    """
    now = _to_utc(now)
    rows = (
        db.query(models.QuizSubmission)
        .filter(models.QuizSubmission.status == AttemptStatus.IN_PROGRESS)
        .order_by(models.QuizSubmission.id)
        .all()
    )
    quizzes: dict[int, Quiz | None] = {}
    results: list[ScoredResult] = []
    for row in rows:
        if row.quiz_id not in quizzes:
            quizzes[row.quiz_id] = load_quiz(db, row.quiz_id)
        quiz = quizzes[row.quiz_id]
        if quiz is None:
            raise IntegrityError(f"Submission {row.id} references missing quiz {row.quiz_id}")

        attempt = load_attempt(db, row.id)
        reconciled = attempt_service.reconcile_overdue(quiz, attempt, now)
        if reconciled is attempt:
            continue
        store_submission(db, reconciled)
        result = score(QuestionBank.from_quiz(quiz), reconciled)
        save_scored_result(db, result)
        results.append(result)

    db.commit()
    if results:
        logger.info("Auto-submitted %d overdue submissions", len(results))
    return results
