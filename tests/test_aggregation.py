"""Unit tests for result aggregation."""

from datetime import date, datetime

import pytest

from quizgrade.config import settings
from quizgrade.schemas import ResultFilter, ScoredResult
from quizgrade.services.aggregation import aggregate, histogram, rank_students


def _result(attempt_id, student_id, percentage, *, batch_id=1, submitted_at=datetime(2024, 4, 2, 10, 0)):
    return ScoredResult(
        attempt_id=attempt_id,
        quiz_id=1,
        student_id=student_id,
        batch_id=batch_id,
        submitted_at=submitted_at,
        score=percentage / 10,
        max_score=10,
        percentage=percentage,
    )


@pytest.fixture
def results():
    return [
        _result(1, 10, 95.0),
        _result(2, 11, 55.0),
        _result(3, 12, 60.0, batch_id=2),
        _result(4, 13, 100.0, batch_id=2, submitted_at=datetime(2024, 4, 5, 18, 30)),
        _result(5, 14, 10.0, batch_id=None),
    ]


class TestEmpty:
    def test_empty_input(self):
        summary = aggregate([])
        assert summary.completion_rate == 0
        assert summary.average_percentage == 0
        assert summary.passed == summary.failed == 0
        assert summary.ranking == []
        assert sum(b.count for b in summary.histogram) == 0

    def test_expected_but_none_submitted(self):
        summary = aggregate([], total_expected=12)
        assert summary.total_expected == 12
        assert summary.completion_rate == 0


class TestSummary:
    def test_counts_and_rates(self, results):
        summary = aggregate(results, total_expected=8, filters=ResultFilter(pass_mark=60))
        assert summary.submitted == 5
        assert summary.completion_rate == 62.5
        assert summary.average_percentage == 64.0
        assert summary.passed == 3
        assert summary.failed == 2

    def test_default_pass_mark_from_settings(self, results):
        summary = aggregate(results)
        assert summary.pass_mark == settings.DEFAULT_PASS_MARK
        assert summary.completion_rate == 100.0

    def test_batch_filter(self, results):
        summary = aggregate(results, filters=ResultFilter(batch_ids={2}))
        assert summary.submitted == 2
        assert summary.average_percentage == 80.0

    def test_date_filter_is_inclusive(self, results):
        summary = aggregate(results, filters=ResultFilter(date_from=date(2024, 4, 5), date_to=date(2024, 4, 5)))
        assert [r.student_id for r in summary.ranking] == [13]

    def test_batch_averages(self, results):
        summary = aggregate(results)
        assert [(b.batch_id, b.average_percentage, b.count) for b in summary.batch_averages] == [
            (1, 75.0, 2),
            (2, 80.0, 2),
        ]

    def test_highlights(self, results):
        summary = aggregate(results)
        assert summary.top[0].student_id == 13
        assert summary.bottom[0].student_id == 14
        assert len(summary.top) == 5


class TestHistogram:
    def test_final_bin_includes_100(self):
        bins = histogram([0, 9.99, 10, 55, 90, 100], 10)
        assert len(bins) == 10
        assert bins[0].label == "0-10"
        assert [b.count for b in bins] == [2, 1, 0, 0, 0, 1, 0, 0, 0, 2]

    def test_uneven_width(self):
        bins = histogram([95], 30)
        assert [(b.lower, b.upper) for b in bins] == [(0, 30), (30, 60), (60, 90), (90, 100)]
        assert bins[-1].count == 1

    def test_rejects_bad_width(self):
        with pytest.raises(ValueError):
            histogram([], 0)


class TestRanking:
    def test_descending_with_ties_by_student_id(self):
        ranking = rank_students(
            [_result(1, 5, 80.0), _result(2, 3, 80.0), _result(3, 4, 90.0), _result(4, 5, 70.0)]
        )
        assert [(r.rank, r.student_id) for r in ranking] == [(1, 4), (2, 3), (3, 5)]
        assert ranking[2].average_percentage == 75.0
        assert ranking[2].attempt_count == 2
