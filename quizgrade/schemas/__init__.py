"""Pydantic schemas, re-exported for convenience."""

from quizgrade.schemas.quiz import (  # noqa: F401
    Marks,
    MultipleChoiceQuestion,
    Option,
    Question,
    QuestionType,
    Quiz,
    QuizStatus,
    SingleChoiceQuestion,
    YesNo,
    YesNoQuestion,
)
from quizgrade.schemas.attempt import (  # noqa: F401
    Answer,
    Attempt,
    AttemptStatus,
    PresentationOrder,
)
from quizgrade.schemas.result import (  # noqa: F401
    Outcome,
    QuestionScore,
    ScoredResult,
)
from quizgrade.schemas.report import (  # noqa: F401
    BatchAverage,
    HistogramBin,
    ResultFilter,
    ResultHighlight,
    ResultSummary,
    StudentRanking,
)
