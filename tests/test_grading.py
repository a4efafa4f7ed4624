"""Unit tests for the scoring engine."""

from fractions import Fraction
from itertools import combinations

import pytest

from conftest import multiple_choice, single_choice, submitted_attempt, yes_no
from quizgrade.exceptions import AttemptStateError, IntegrityError
from quizgrade.schemas import Answer, AttemptStatus, Outcome, YesNo
from quizgrade.services.grading import grade_for, round2, score, score_question
from quizgrade.services.question_bank import QuestionBank


# ── Per-question policy ────────────────────────────────────────────────────────


class TestSingleChoice:
    def test_correct_option_scores_full(self):
        qs = score_question(single_choice(), Fraction(5), Answer(question_id=1, selected_option_ids={12}))
        assert qs.marks_awarded == 5
        assert qs.is_correct

    @pytest.mark.parametrize("selected", [{11}, {13}, {11, 12}, set()])
    def test_anything_else_scores_zero(self, selected):
        qs = score_question(single_choice(), Fraction(5), Answer(question_id=1, selected_option_ids=selected))
        assert qs.marks_awarded == 0
        assert qs.is_incorrect


class TestYesNo:
    def test_match_and_mismatch(self):
        q = yes_no()
        assert score_question(q, Fraction(5), Answer(question_id=2, value=YesNo.YES)).marks_awarded == 5
        assert score_question(q, Fraction(5), Answer(question_id=2, value=YesNo.NO)).marks_awarded == 0

    def test_skipped(self):
        qs = score_question(yes_no(), Fraction(5), None)
        assert qs.marks_awarded == 0
        assert not qs.answered


class TestMultipleChoice:
    def _score(self, selected):
        return score_question(
            multiple_choice(), Fraction(10), Answer(question_id=3, selected_option_ids=selected)
        ).marks_awarded

    def test_exact_set_scores_full(self):
        assert self._score({31, 32, 33}) == 10

    def test_two_of_three_is_proportional(self):
        qs = score_question(multiple_choice(), Fraction(10), Answer(question_id=3, selected_option_ids={31, 32}))
        assert qs.marks_awarded == Fraction(20, 3)
        assert qs.is_partial

    def test_incorrect_selection_penalised(self):
        # (3 correct - 1 incorrect) / 3 correct
        assert self._score({31, 32, 33, 34}) == Fraction(20, 3)
        assert self._score({31, 34}) == 0

    def test_no_selection_scores_zero(self):
        assert self._score(set()) == 0

    def test_never_negative(self):
        assert self._score({34}) == 0

    def test_adding_correct_option_never_lowers_score(self):
        correct = [31, 32, 33]
        for incorrect in (set(), {34}):
            for size in range(len(correct)):
                for subset in combinations(correct, size):
                    base = set(subset) | incorrect
                    for extra in set(correct) - base:
                        assert self._score(base | {extra}) >= self._score(base)


# ── Attempt scoring ────────────────────────────────────────────────────────────


class TestScore:
    def test_end_to_end_half_marks(self, two_question_quiz):
        bank = QuestionBank.from_quiz(two_question_quiz)
        attempt = submitted_attempt(
            [{"question_id": 1, "selected_option_ids": [12]}, {"question_id": 2, "value": "no"}]
        )
        result = score(bank, attempt)
        assert result.score == 5
        assert result.max_score == 10
        assert result.percentage == 50.0
        assert grade_for(result.percentage) == "C"
        assert result.time_taken_minutes == 25

    def test_unanswered_question_scores_zero(self, two_question_quiz):
        bank = QuestionBank.from_quiz(two_question_quiz)
        result = score(bank, submitted_attempt([{"question_id": 1, "selected_option_ids": [12]}]))
        assert (result.score, result.max_score, result.percentage) == (5, 10, 50.0)
        assert [q.answered for q in result.questions] == [True, False]

    def test_idempotent(self, two_question_quiz):
        bank = QuestionBank.from_quiz(two_question_quiz)
        attempt = submitted_attempt([{"question_id": 2, "value": "yes"}])
        assert score(bank, attempt) == score(bank, attempt)
        assert score(bank, attempt).model_dump_json() == score(bank, attempt).model_dump_json()

    def test_results_follow_canonical_order(self, two_question_quiz):
        bank = QuestionBank.from_quiz(two_question_quiz)
        attempt = submitted_attempt(
            [{"question_id": 2, "value": "yes"}, {"question_id": 1, "selected_option_ids": [12]}]
        )
        result = score(bank, attempt)
        assert [q.question_id for q in result.questions] == [1, 2]
        assert result.percentage == 100.0

    def test_auto_submitted_attempts_are_scored(self, two_question_quiz):
        bank = QuestionBank.from_quiz(two_question_quiz)
        attempt = submitted_attempt([], status=AttemptStatus.AUTO_SUBMITTED, auto_submitted=True)
        result = score(bank, attempt)
        assert result.auto_submitted
        assert result.score == 0

    def test_graded_attempt_can_be_rescored(self, two_question_quiz):
        bank = QuestionBank.from_quiz(two_question_quiz)
        attempt = submitted_attempt([{"question_id": 2, "value": "yes"}], status=AttemptStatus.GRADED)
        assert score(bank, attempt).score == 5

    def test_in_progress_attempt_rejected(self, two_question_quiz):
        bank = QuestionBank.from_quiz(two_question_quiz)
        with pytest.raises(AttemptStateError):
            score(bank, submitted_attempt([], status=AttemptStatus.IN_PROGRESS))

    def test_zero_questions(self):
        result = score(QuestionBank.build([]), submitted_attempt([]))
        assert (result.score, result.max_score, result.percentage) == (0, 0, 0)

    def test_equalized_scores_stay_within_total(self):
        questions = [yes_no(qid=1), yes_no(qid=2), yes_no(qid=3)]
        bank = QuestionBank.build(questions, total_marks=100, equalize=True)
        attempt = submitted_attempt([{"question_id": q.id, "value": "yes"} for q in questions])
        result = score(bank, attempt)
        assert result.score == 100
        assert result.max_score == 100
        assert sum(q.marks_awarded for q in result.questions) == 100

    def test_partial_credit_rounded_in_totals(self):
        bank = QuestionBank.build([multiple_choice()])
        result = score(bank, submitted_attempt([{"question_id": 3, "selected_option_ids": [31, 32]}]))
        assert result.score == 6.67
        assert result.percentage == 66.67


class TestIntegrity:
    @pytest.fixture
    def bank(self, two_question_quiz):
        return QuestionBank.from_quiz(two_question_quiz)

    def test_unknown_question(self, bank):
        with pytest.raises(IntegrityError) as exc:
            score(bank, submitted_attempt([{"question_id": 99, "value": "yes"}]))
        assert exc.value.question_id == 99

    def test_unknown_option(self, bank):
        with pytest.raises(IntegrityError) as exc:
            score(bank, submitted_attempt([{"question_id": 1, "selected_option_ids": [12, 31]}]))
        assert exc.value.option_id == 31

    def test_options_on_yes_no(self, bank):
        with pytest.raises(IntegrityError):
            score(bank, submitted_attempt([{"question_id": 2, "selected_option_ids": [11]}]))

    def test_value_on_choice(self, bank):
        with pytest.raises(IntegrityError):
            score(bank, submitted_attempt([{"question_id": 1, "value": "yes"}]))

    def test_duplicate_answers(self, bank):
        with pytest.raises(IntegrityError):
            score(bank, submitted_attempt([{"question_id": 2, "value": "yes"}, {"question_id": 2, "value": "no"}]))

    def test_attempt_for_other_quiz(self, bank):
        with pytest.raises(IntegrityError):
            score(bank, submitted_attempt([], quiz_id=2))


# ── Helpers ────────────────────────────────────────────────────────────────────


@pytest.mark.parametrize(
    "percentage, grade",
    [(100, "A+"), (90, "A+"), (89.99, "A"), (80, "A"), (70, "B+"), (60, "B"), (50, "C"), (49.99, "F"), (0, "F")],
)
def test_grade_bands(percentage, grade):
    assert grade_for(percentage) == grade


def test_round2_is_half_up():
    assert round2(Fraction(1, 8)) == 0.13
    assert round2(2.675) == 2.68
    assert round2(5) == 5.0


def test_outcome_labels():
    qs = score_question(yes_no(), Fraction(5), Answer(question_id=2, value=YesNo.YES))
    assert qs.outcome == Outcome.CORRECT
