"""
Unit tests for services/evaluation/scoring.py
"""
import itertools
import math

import pytest

from sakubun.models.rubric import EvaluationResult
from sakubun.services.evaluation.scoring import (
    compute_rubric_score,
    content_score,
    expression_score,
    grammar_error_count,
    leap_count,
)

GRADES = ("o", "d", "x")
ERROR_COUNTS = (0, 1, 3, 8, 12, -1, "abc", None, math.inf, 2.5)
LEAP_COUNTS = (0, 1, 5, 10, 11, -2, math.nan, "3", None)


def expression_result(c1="o", c2="o", errors=0) -> EvaluationResult:
    return EvaluationResult.from_payload(
        "expression", {"items": {"C-1": c1, "C-2": c2}, "details": {"C-1_incorrect": errors}}
    )


def content_result(d1="o", d2="o", leaps=0, key="D-2_leaps") -> EvaluationResult:
    return EvaluationResult.from_payload(
        "content", {"items": {"D-1": d1, "D-2": d2}, "details": {key: leaps}}
    )


@pytest.mark.unit
class TestScoreRanges:
    """Scores stay in range for every grade/counter combination"""

    @pytest.mark.parametrize("c1,c2,errors", list(itertools.product(GRADES, GRADES, ERROR_COUNTS)))
    def test_expression_in_range(self, c1, c2, errors):
        score = expression_score(expression_result(c1, c2, errors))
        assert isinstance(score, int)
        assert 2 <= score <= 10

    @pytest.mark.parametrize("d1,d2,leaps", list(itertools.product(GRADES, GRADES, LEAP_COUNTS)))
    def test_content_in_range(self, d1, d2, leaps):
        score = content_score(content_result(d1, d2, leaps))
        assert isinstance(score, int)
        assert 0 <= score <= 10

    @pytest.mark.parametrize("c1,c2,d1,d2", list(itertools.product(GRADES, repeat=4)))
    def test_total_is_sum(self, c1, c2, d1, d2):
        score = compute_rubric_score(expression_result(c1, c2, 1), content_result(d1, d2, 1))
        assert 2 <= score.total <= 20
        assert score.total == score.expression + score.content

    def test_same_input_same_score(self):
        exp, cont = expression_result("d", "x", 3), content_result("d", "d", 2)
        assert compute_rubric_score(exp, cont) == compute_rubric_score(exp, cont)


@pytest.mark.unit
class TestExpressionScore:
    """Expression axis deductions"""

    def test_all_pass_is_ten(self):
        assert expression_score(expression_result("o", "o", 0)) == 10

    def test_caution_without_errors_costs_two(self):
        assert expression_score(expression_result("d", "o", 0)) == 8

    def test_caution_with_errors_uses_counter_only(self):
        assert expression_score(expression_result("d", "o", 3)) == 7

    def test_error_deduction_is_capped(self):
        assert expression_score(expression_result("x", "o", 12)) == 2

    @pytest.mark.parametrize("c2,expected", [("o", 10), ("d", 8), ("x", 6)])
    def test_vocabulary_deduction(self, c2, expected):
        assert expression_score(expression_result("o", c2, 0)) == expected

    def test_floor_is_two(self):
        assert expression_score(expression_result("x", "x", 8)) == 2

    def test_fractional_counter_rounds_half_up(self):
        assert expression_score(expression_result("o", "o", 2.5)) == 8

    @pytest.mark.parametrize("errors", [-1, "abc", None, math.nan, -math.inf])
    def test_bad_counter_counts_as_zero(self, errors):
        assert expression_score(expression_result("o", "o", errors)) == 10

    @pytest.mark.parametrize("errors", [math.inf, "Infinity"])
    def test_infinite_counter_takes_full_deduction(self, errors):
        result = expression_result("o", "o", errors)
        assert grammar_error_count(result.details) == math.inf
        assert expression_score(result) == 2

    def test_missing_labels_default_to_pass(self):
        result = EvaluationResult.from_payload("expression", {"items": {}})
        assert expression_score(result) == 10


@pytest.mark.unit
class TestContentScore:
    """Content axis deductions"""

    def test_coherence_fail_bottoms_out(self):
        assert content_score(content_result("x", "o", 0)) == 0

    def test_coherence_caution(self):
        assert content_score(content_result("d", "o", 0)) == 6

    def test_leaps_cost_two_each(self):
        assert content_score(content_result("o", "d", 2)) == 6

    def test_leap_deduction_is_capped(self):
        assert content_score(content_result("o", "x", 11)) == 0

    def test_flow_caution_without_leaps(self):
        assert content_score(content_result("o", "d", 0)) == 8

    def test_flow_fail_without_leaps_has_no_extra_deduction(self):
        assert content_score(content_result("o", "x", 0)) == 10

    @pytest.mark.parametrize("key", ["D-2_leaps", "D2_leaps", "leaps"])
    def test_leap_key_spellings(self, key):
        assert content_score(content_result("o", "d", 3, key=key)) == 4

    def test_string_counter_is_read(self):
        assert leap_count({"leaps": "2"}) == 2

    @pytest.mark.parametrize("leaps", [-2, math.nan, math.inf, "many", None])
    def test_bad_leap_counter_counts_as_zero(self, leaps):
        assert leap_count({"D-2_leaps": leaps}) == 0

    def test_first_key_wins(self):
        assert leap_count({"D-2_leaps": 1, "leaps": 5}) == 1


@pytest.mark.unit
class TestRubricScore:
    """Combined score"""

    def test_worked_example(self):
        score = compute_rubric_score(expression_result("d", "o", 2), content_result("o", "d", 1))
        assert (score.expression, score.content, score.total) == (8, 8, 16)

    def test_minimum_total(self):
        score = compute_rubric_score(expression_result("x", "x", 8), content_result("x", "x", 10))
        assert (score.expression, score.content, score.total) == (2, 0, 2)

    def test_score_is_frozen(self):
        score = compute_rubric_score(expression_result(), content_result())
        with pytest.raises(Exception):
            score.total = 3
