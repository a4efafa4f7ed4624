"""Roll many scored results up into quiz / batch level statistics.

Every rate and average defaults to 0 on empty input; nothing here divides
by a count that can be zero.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable

from quizgrade.config import settings
from quizgrade.schemas.report import (
    BatchAverage,
    HistogramBin,
    ResultFilter,
    ResultHighlight,
    ResultSummary,
    StudentRanking,
)
from quizgrade.schemas.result import ScoredResult
from quizgrade.services.grading import round2

logger = logging.getLogger(__name__)

HIGHLIGHT_COUNT = 5


def _mean(values: list[float]) -> float:
    return round2(sum(values) / len(values)) if values else 0.0


def apply_filter(results: Iterable[ScoredResult], filters: ResultFilter | None) -> list[ScoredResult]:
    """Keep results matching the batch and (inclusive, whole-day) date filters."""
    kept = list(results)
    if filters is None:
        return kept
    if filters.batch_ids is not None:
        kept = [r for r in kept if r.batch_id in filters.batch_ids]
    if filters.date_from is not None or filters.date_to is not None:
        dated: list[ScoredResult] = []
        for r in kept:
            if r.submitted_at is None:
                continue
            day = r.submitted_at.date()
            if filters.date_from is not None and day < filters.date_from:
                continue
            if filters.date_to is not None and day > filters.date_to:
                continue
            dated.append(r)
        kept = dated
    return kept


def histogram(percentages: Iterable[float], bin_width: int) -> list[HistogramBin]:
    """Fixed-width bins over 0–100; only the final bin includes its upper bound."""
    if not 0 < bin_width <= 100:
        raise ValueError(f"bin width must be between 1 and 100, got {bin_width}")
    lowers = list(range(0, 100, bin_width))
    counts = [0] * len(lowers)
    for p in percentages:
        index = min(int(p // bin_width), len(lowers) - 1)
        counts[max(index, 0)] += 1
    return [
        HistogramBin(lower=lower, upper=min(lower + bin_width, 100), count=count)
        for lower, count in zip(lowers, counts)
    ]


def rank_students(results: Iterable[ScoredResult]) -> list[StudentRanking]:
    """Students by average percentage, descending; ties by student id."""
    per_student: dict[int, list[float]] = defaultdict(list)
    for r in results:
        per_student[r.student_id].append(r.percentage)

    averaged = sorted(
        ((student_id, _mean(values), len(values)) for student_id, values in per_student.items()),
        key=lambda row: (-row[1], row[0]),
    )
    return [
        StudentRanking(rank=i, student_id=sid, average_percentage=avg, attempt_count=n)
        for i, (sid, avg, n) in enumerate(averaged, start=1)
    ]


def _batch_averages(results: Iterable[ScoredResult]) -> list[BatchAverage]:
    per_batch: dict[int, list[float]] = defaultdict(list)
    for r in results:
        if r.batch_id is not None:
            per_batch[r.batch_id].append(r.percentage)
    return [
        BatchAverage(batch_id=bid, average_percentage=_mean(values), count=len(values))
        for bid, values in sorted(per_batch.items())
    ]


def _highlight(r: ScoredResult) -> ResultHighlight:
    return ResultHighlight(attempt_id=r.attempt_id, student_id=r.student_id, percentage=r.percentage)


def aggregate(
    results: Iterable[ScoredResult],
    *,
    filters: ResultFilter | None = None,
    total_expected: int | None = None,
    bin_width: int | None = None,
) -> ResultSummary:
    """Summarise scored results.

    ``total_expected`` is the number of submissions the caller expected
    (e.g. students assigned to the quiz); it defaults to the number of
    results after filtering. The pass mark comes from ``filters`` or
    ``settings.DEFAULT_PASS_MARK``.
    """
    kept = apply_filter(results, filters)
    pass_mark = (
        filters.pass_mark
        if filters is not None and filters.pass_mark is not None
        else settings.DEFAULT_PASS_MARK
    )
    width = bin_width if bin_width is not None else settings.HISTOGRAM_BIN_WIDTH
    expected = total_expected if total_expected is not None else len(kept)
    if expected < 0:
        raise ValueError("total_expected must not be negative")

    submitted = len(kept)
    percentages = [r.percentage for r in kept]
    passed = sum(1 for p in percentages if p >= pass_mark)

    summary = ResultSummary(
        total_expected=expected,
        submitted=submitted,
        completion_rate=round2(submitted * 100 / expected) if expected else 0.0,
        average_percentage=_mean(percentages),
        pass_mark=pass_mark,
        passed=passed,
        failed=submitted - passed,
        histogram=histogram(percentages, width),
        ranking=rank_students(kept),
        batch_averages=_batch_averages(kept),
        top=[
            _highlight(r)
            for r in sorted(kept, key=lambda r: (-r.percentage, r.student_id, r.attempt_id))[:HIGHLIGHT_COUNT]
        ],
        bottom=[
            _highlight(r)
            for r in sorted(kept, key=lambda r: (r.percentage, r.student_id, r.attempt_id))[:HIGHLIGHT_COUNT]
        ],
    )
    logger.debug(
        "Aggregated %d/%d results: avg %.2f%%, %d passed at %.2f%%",
        submitted, expected, summary.average_percentage, passed, pass_mark,
    )
    return summary
