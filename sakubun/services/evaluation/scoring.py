from __future__ import annotations

import math
from typing import Any, Mapping

from sakubun.models.rubric import (
    COHERENCE,
    GRAMMAR,
    GRAMMAR_ERRORS_KEY,
    LEAP_COUNT_KEYS,
    LOGICAL_FLOW,
    VOCABULARY,
    EvaluationResult,
    RubricScore,
)

EXPRESSION_RANGE = (2, 10)
CONTENT_RANGE = (0, 10)
TOTAL_RANGE = (2, 20)

MAX_GRAMMAR_DEDUCTION = 8
MAX_LEAP_DEDUCTION = 20


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _clamp(value: float, bounds: tuple[int, int]) -> int:
    low, high = bounds
    return _round_half_up(min(high, max(low, value)))


def _as_count(value: Any) -> float:
    """Coerce an upstream counter; absent, non-numeric, non-finite or negative → 0."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number) or number < 0:
        return 0.0
    return number


def leap_count(details: Mapping[str, Any]) -> float:
    for key in LEAP_COUNT_KEYS:
        if key in details:
            return _as_count(details[key])
    return 0.0


def grammar_error_count(details: Mapping[str, Any]) -> float:
    """Grammar errors counted by the generator; +inf stays inf so the deduction caps."""
    try:
        number = float(details.get(GRAMMAR_ERRORS_KEY))
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or number < 0:
        return 0.0
    return number


def expression_score(result: EvaluationResult) -> int:
    score = 10.0
    errors = grammar_error_count(result.details)
    score -= min(errors, MAX_GRAMMAR_DEDUCTION)

    # A caution grade with no counted errors still reflects some issue
    if result.grade(GRAMMAR) == "d" and errors == 0:
        score -= 2

    vocab = result.grade(VOCABULARY)
    if vocab == "d":
        score -= 2
    elif vocab == "x":
        score -= 4

    return _clamp(score, EXPRESSION_RANGE)


def content_score(result: EvaluationResult) -> int:
    score = 10.0
    coherence = result.grade(COHERENCE)
    if coherence == "d":
        score -= 4
    elif coherence == "x":
        score -= 20

    leaps = leap_count(result.details)
    score -= min(leaps * 2, MAX_LEAP_DEDUCTION)
    if result.grade(LOGICAL_FLOW) == "d" and leaps == 0:
        score -= 2

    return _clamp(score, CONTENT_RANGE)


def compute_rubric_score(expression: EvaluationResult, content: EvaluationResult) -> RubricScore:
    """Deterministic rubric score from the two axis evaluations.

    The generator never supplies a number; only its labels and counters feed in.
    """
    exp = expression_score(expression)
    cont = content_score(content)
    return RubricScore(expression=exp, content=cont, total=_clamp(exp + cont, TOTAL_RANGE))
