"""Aggregated reporting schemas."""

from datetime import date

from pydantic import BaseModel, ConfigDict


class ResultFilter(BaseModel):
    """Optional narrowing applied before results are aggregated.

    Dates are inclusive whole days compared against ``submitted_at``.
    """

    batch_ids: frozenset[int] | None = None
    date_from: date | None = None
    date_to: date | None = None
    pass_mark: float | None = None

    model_config = ConfigDict(frozen=True)


class HistogramBin(BaseModel):
    lower: int
    upper: int
    count: int

    model_config = ConfigDict(frozen=True)

    @property
    def label(self) -> str:
        return f"{self.lower}-{self.upper}"


class StudentRanking(BaseModel):
    rank: int
    student_id: int
    average_percentage: float
    attempt_count: int

    model_config = ConfigDict(frozen=True)


class BatchAverage(BaseModel):
    batch_id: int
    average_percentage: float
    count: int

    model_config = ConfigDict(frozen=True)


class ResultHighlight(BaseModel):
    attempt_id: int
    student_id: int
    percentage: float

    model_config = ConfigDict(frozen=True)


class ResultSummary(BaseModel):
    """Quiz / batch level statistics consumed by reporting views."""

    total_expected: int
    submitted: int
    completion_rate: float
    average_percentage: float
    pass_mark: float
    passed: int
    failed: int
    histogram: list[HistogramBin] = []
    ranking: list[StudentRanking] = []
    batch_averages: list[BatchAverage] = []
    top: list[ResultHighlight] = []
    bottom: list[ResultHighlight] = []

    model_config = ConfigDict(frozen=True)
