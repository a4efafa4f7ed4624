"""SQLAlchemy ORM models for quiz storage.

Tables
------
- quizzes          – quiz metadata, schedule, scoring options
- questions        – ordered questions; ``question_type`` may hold legacy values
- question_options – ordered options with authoring-time ``is_correct``
- quiz_submissions – one attempt per (quiz, student), with saved progress
- student_answers  – per-question answers and awarded marks
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from quizgrade.db.session import Base
from quizgrade.schemas.attempt import AttemptStatus
from quizgrade.schemas.quiz import QuizStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Quizzes ───────────────────────────────────────────────────────────────────


class Quiz(Base):
    __tablename__ = "quizzes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    instructions: Mapped[str | None] = mapped_column(Text, nullable=True)
    teacher_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    status: Mapped[QuizStatus] = mapped_column(
        Enum(QuizStatus, name="quiz_status_enum"), default=QuizStatus.DRAFT
    )
    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    duration_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    # 0 means "not set"
    total_marks: Mapped[float] = mapped_column(Float, default=0)
    equalize_marks: Mapped[bool] = mapped_column(Boolean, default=False)
    randomize_questions: Mapped[bool] = mapped_column(Boolean, default=False)
    randomize_options: Mapped[bool] = mapped_column(Boolean, default=False)
    auto_submit: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    questions: Mapped[list["Question"]] = relationship(
        back_populates="quiz",
        cascade="all, delete-orphan",
        order_by="Question.question_order",
    )
    submissions: Mapped[list["QuizSubmission"]] = relationship(
        back_populates="quiz", cascade="all, delete-orphan"
    )


class Question(Base):
    __tablename__ = "questions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    quiz_id: Mapped[int] = mapped_column(
        ForeignKey("quizzes.id", ondelete="CASCADE"), index=True
    )
    question_text: Mapped[str] = mapped_column(Text)
    # mcq_single | mcq_multiple | yes_no, or legacy mcq | boolean
    question_type: Mapped[str] = mapped_column(String(20))
    question_order: Mapped[int] = mapped_column(Integer)
    marks: Mapped[float] = mapped_column(Float, default=1)
    correct_answer: Mapped[str | None] = mapped_column(Text, nullable=True)
    explanation: Mapped[str | None] = mapped_column(Text, nullable=True)

    quiz: Mapped["Quiz"] = relationship(back_populates="questions")
    options: Mapped[list["QuestionOption"]] = relationship(
        back_populates="question",
        cascade="all, delete-orphan",
        order_by="QuestionOption.option_order",
    )


class QuestionOption(Base):
    __tablename__ = "question_options"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    question_id: Mapped[int] = mapped_column(
        ForeignKey("questions.id", ondelete="CASCADE"), index=True
    )
    option_text: Mapped[str] = mapped_column(Text)
    option_order: Mapped[int] = mapped_column(Integer)
    is_correct: Mapped[bool] = mapped_column(Boolean, default=False)

    question: Mapped["Question"] = relationship(back_populates="options")


# ── Submissions ───────────────────────────────────────────────────────────────


class QuizSubmission(Base):
    __tablename__ = "quiz_submissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    quiz_id: Mapped[int] = mapped_column(
        ForeignKey("quizzes.id", ondelete="CASCADE"), index=True
    )
    student_id: Mapped[int] = mapped_column(Integer, index=True)
    batch_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[AttemptStatus] = mapped_column(
        Enum(AttemptStatus, name="submission_status_enum"),
        default=AttemptStatus.NOT_STARTED,
    )
    auto_submitted: Mapped[bool] = mapped_column(Boolean, default=False)
    seed: Mapped[str | None] = mapped_column(String(64), nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    time_taken_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_score: Mapped[float] = mapped_column(Float, default=0)
    max_score: Mapped[float] = mapped_column(Float, default=0)
    percentage: Mapped[float] = mapped_column(Float, default=0)
    # in-progress answers as a JSON list, replaced on each save
    auto_saved_data: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    quiz: Mapped["Quiz"] = relationship(back_populates="submissions")
    answers: Mapped[list["StudentAnswer"]] = relationship(
        back_populates="submission", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("quiz_id", "student_id", name="uq_submission_quiz_student"),
    )


class StudentAnswer(Base):
    __tablename__ = "student_answers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    submission_id: Mapped[int] = mapped_column(
        ForeignKey("quiz_submissions.id", ondelete="CASCADE"), index=True
    )
    question_id: Mapped[int] = mapped_column(
        ForeignKey("questions.id", ondelete="CASCADE"), index=True
    )
    answer_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    selected_options: Mapped[str | None] = mapped_column(Text, nullable=True)  # JSON list of option ids
    marks_awarded: Mapped[float] = mapped_column(Float, default=0)
    is_correct: Mapped[bool] = mapped_column(Boolean, default=False)

    submission: Mapped["QuizSubmission"] = relationship(back_populates="answers")
    question: Mapped["Question"] = relationship()

    __table_args__ = (
        UniqueConstraint("submission_id", "question_id", name="uq_answer_submission_question"),
    )
