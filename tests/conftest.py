"""Shared pytest fixtures for quizgrade tests."""

from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from quizgrade.db import models  # noqa: F401  (registers tables)
from quizgrade.db.session import Base
from quizgrade.schemas import (
    Answer,
    Attempt,
    AttemptStatus,
    MultipleChoiceQuestion,
    Option,
    Quiz,
    QuizStatus,
    SingleChoiceQuestion,
    YesNo,
    YesNoQuestion,
)


# Use an in-memory SQLite database for testing with static pool
SQLALCHEMY_TEST_URL = "sqlite:///:memory:"
engine = create_engine(
    SQLALCHEMY_TEST_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,  # Use StaticPool to keep connection alive
    echo=False,
)
TestSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture(scope="function")
def db():
    """Fresh tables and session for each test."""
    Base.metadata.create_all(bind=engine)
    session = TestSession()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        Base.metadata.drop_all(bind=engine)


# ── Domain fixtures ────────────────────────────────────────────────────────────


STARTED = datetime(2024, 3, 1, 9, 0)
SUBMITTED = datetime(2024, 3, 1, 9, 25)


def single_choice(qid: int = 1, marks=5, correct: int = 12) -> SingleChoiceQuestion:
    """Options 11=A, 12=B, 13=C; ``correct`` is the id of the right one."""
    return SingleChoiceQuestion(
        id=qid,
        text="Choisissez la bonne réponse",
        marks=marks,
        options=[
            Option(id=11, text="A", is_correct=correct == 11),
            Option(id=12, text="B", is_correct=correct == 12),
            Option(id=13, text="C", is_correct=correct == 13),
        ],
    )


def multiple_choice(qid: int = 3, marks=10) -> MultipleChoiceQuestion:
    """Three correct options (31, 32, 33) and one incorrect (34)."""
    return MultipleChoiceQuestion(
        id=qid,
        text="Which words are feminine?",
        marks=marks,
        options=[
            Option(id=31, text="la table", is_correct=True),
            Option(id=32, text="la maison", is_correct=True),
            Option(id=33, text="la voiture", is_correct=True),
            Option(id=34, text="le livre", is_correct=False),
        ],
    )


def yes_no(qid: int = 2, marks=5, correct: YesNo = YesNo.YES) -> YesNoQuestion:
    return YesNoQuestion(id=qid, text="Is 'bonjour' a greeting?", marks=marks, correct_answer=correct)


def submitted_attempt(answers, *, attempt_id: int = 100, quiz_id: int = 1, student_id: int = 7, **extra) -> Attempt:
    return Attempt(
        id=attempt_id,
        quiz_id=quiz_id,
        student_id=student_id,
        status=extra.pop("status", AttemptStatus.SUBMITTED),
        started_at=STARTED,
        submitted_at=SUBMITTED,
        answers=[a if isinstance(a, Answer) else Answer(**a) for a in answers],
        **extra,
    )


@pytest.fixture
def two_question_quiz() -> Quiz:
    """Q1 single choice (5 marks, correct B=12), Q2 yes/no (5 marks, correct yes)."""
    return Quiz(
        id=1,
        title="Vocabulaire 1",
        status=QuizStatus.PUBLISHED,
        questions=[single_choice(), yes_no()],
    )
