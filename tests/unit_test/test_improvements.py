"""
Unit tests for services/evaluation/improvements.py
"""
import pytest

from sakubun.models.rubric import ImprovementItem
from sakubun.services.evaluation.improvements import (
    FLOW_RATIONALE,
    MAX_ITEMS,
    RATIONALE_LIMIT,
    default_rationale,
    is_well_formed,
    normalize_improvements,
)


def raw_item(**overrides):
    item = {
        "s": "S1",
        "cat": "1. Grammar and usage",
        "error": "missing article",
        "before": "I have dog.",
        "after": "I have a dog.",
        "reason": "A singular noun needs an article.",
    }
    item.update(overrides)
    return item


@pytest.mark.unit
class TestNormalizeImprovements:
    """Rationale guarantees"""

    @pytest.mark.parametrize("category", [
        "1. Grammar and usage",
        "2. Vocabulary and sentence structure",
        "1. Theme consistency",
        "2. Logical development",
        "",
        "something else",
    ])
    @pytest.mark.parametrize("reason", ["", "   ", None])
    def test_empty_rationale_gets_bounded_default(self, category, reason):
        [item] = normalize_improvements([raw_item(cat=category, reason=reason)])
        assert 0 < len(item.rationale) <= RATIONALE_LIMIT
        assert item.rationale == default_rationale(category)[:RATIONALE_LIMIT]

    def test_category_defaults_differ(self):
        defaults = {
            default_rationale("1. Grammar and usage"),
            default_rationale("2. Vocabulary and sentence structure"),
            default_rationale("1. Theme consistency"),
            default_rationale("2. Logical development"),
        }
        assert len(defaults) == 4
        assert default_rationale("2. Logical development") == FLOW_RATIONALE

    def test_long_rationale_is_clipped(self):
        [item] = normalize_improvements([raw_item(reason="x" * 200)])
        assert item.rationale == "x" * RATIONALE_LIMIT

    def test_given_rationale_is_kept(self):
        [item] = normalize_improvements([raw_item()])
        assert item.rationale == "A singular noun needs an article."
        assert item.location_ref == "S1"
        assert item.suggested_fix == "I have a dog."

    def test_item_count_is_capped(self):
        items = normalize_improvements([raw_item(s=f"S{i}") for i in range(1, 10)])
        assert len(items) == MAX_ITEMS
        assert items[0].location_ref == "S1"

    def test_non_object_entries_are_skipped(self):
        items = normalize_improvements(["oops", 3, raw_item()])
        assert len(items) == 1

    def test_accepts_model_instances(self):
        item = ImprovementItem(location_ref="S2", category="2. Logical development", rationale="")
        [out] = normalize_improvements([item])
        assert out.rationale == FLOW_RATIONALE
        assert item.rationale == ""

    def test_values_are_coerced_to_text(self):
        [item] = normalize_improvements([raw_item(s=3, after=None)])
        assert item.location_ref == "3"
        assert item.suggested_fix == ""


@pytest.mark.unit
class TestIsWellFormed:
    """Well-formedness check used before the single retry"""

    def test_complete_items(self):
        assert is_well_formed([raw_item(), raw_item(s="S2")])

    def test_empty_list(self):
        assert not is_well_formed([])
        assert is_well_formed([], allow_empty=True)

    @pytest.mark.parametrize("field", ["s", "error", "after"])
    def test_missing_required_field(self, field):
        assert not is_well_formed([raw_item(**{field: ""})])

    def test_short_rationale(self):
        assert not is_well_formed([raw_item(reason="ok")])

    def test_non_object_entry(self):
        assert not is_well_formed([raw_item(), "not an item"])
