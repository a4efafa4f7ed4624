"""Error taxonomy for quiz authoring, attempts and grading.

All errors are local to the call that raised them; nothing in the core
retries or coerces a failure into a score.
"""

from __future__ import annotations


class QuizGradeError(Exception):
    """Base class for every error raised by the grading core."""


class ValidationError(QuizGradeError):
    """Malformed quiz / question / option authoring data.

    ``problems`` lists every violated rule so an authoring screen can show
    them all at once instead of one per publish attempt.
    """

    def __init__(self, problems: list[str] | str):
        if isinstance(problems, str):
            problems = [problems]
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


class IntegrityError(QuizGradeError):
    """A submission references questions or options the quiz does not have."""

    def __init__(self, message: str, *, question_id: int | None = None, option_id: int | None = None):
        self.question_id = question_id
        self.option_id = option_id
        super().__init__(message)


class AttemptStateError(QuizGradeError):
    """An attempt was asked to make a transition its state does not allow."""


class QuizLockedError(QuizGradeError):
    """The question set of a published quiz cannot be edited."""
