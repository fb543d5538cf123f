"""
Unit tests for models/rubric.py, models/request.py and models/response.py
"""
import pytest

from sakubun.models.request import FeedbackRequest, FollowUpRequest
from sakubun.models.response import ErrorResponse, FeedbackResponse, FollowUpResponse
from sakubun.models.rubric import (
    EvaluationResult,
    ImprovementItem,
    RubricScore,
    SentenceUnit,
    normalize_grade,
)


@pytest.mark.unit
class TestEvaluationResult:
    """Parsing of one axis evaluation"""

    @pytest.mark.parametrize("raw,expected", [
        ("o", "o"), ("D", "d"), (" x ", "x"),
        ("〇", "o"), ("○", "o"), ("△", "d"), ("×", "x"),
        ("pass", "o"), ("caution", "d"), ("fail", "x"),
        ("", "o"), (None, "o"), ("maybe", "o"), (3, "o"),
    ])
    def test_normalize_grade(self, raw, expected):
        assert normalize_grade(raw) == expected

    def test_fixed_keys_always_present(self):
        result = EvaluationResult.from_payload("content", {"items": {"D-2": "d", "extra": "x"}})
        assert result.items == {"D-1": "o", "D-2": "d"}

    def test_odd_payload_shapes(self):
        result = EvaluationResult.from_payload("expression", {"items": "bad", "details": [1], "notes": "single note"})
        assert result.items == {"C-1": "o", "C-2": "o"}
        assert result.details == {}
        assert result.notes == ["single note"]

    def test_has_issues(self):
        assert not EvaluationResult.from_payload("expression", {"items": {}, "details": {"C-1_incorrect": 0}}).has_issues()
        assert EvaluationResult.from_payload("expression", {"items": {"C-2": "d"}}).has_issues()
        assert EvaluationResult.from_payload("content", {"items": {}, "details": {"D-2_leaps": "2"}}).has_issues()


@pytest.mark.unit
class TestImprovementItem:
    """Upstream keys map onto item fields"""

    def test_upstream_aliases(self):
        item = ImprovementItem.model_validate(
            {"s": "S3→S4", "cat": "2. Logical development", "error": "jump", "before": "b", "after": "a", "reason": "r"}
        )
        assert item.location_ref == "S3→S4"
        assert item.category == "2. Logical development"
        assert item.error_description == "jump"
        assert item.suggested_fix == "a"
        assert item.rationale == "r"

    def test_missing_fields_default_to_empty(self):
        item = ImprovementItem.model_validate({"s": "S1"})
        assert item.rationale == "" and item.before == ""


@pytest.mark.unit
class TestValueModels:
    """Score and sentence unit bounds"""

    def test_score_bounds(self):
        with pytest.raises(Exception):
            RubricScore(expression=1, content=0, total=2)
        with pytest.raises(Exception):
            RubricScore(expression=10, content=11, total=20)

    def test_sentence_label(self):
        assert SentenceUnit(id=7, paragraph=2, text="Hi.").label == "S7"


@pytest.mark.unit
class TestEnvelopes:
    """Request and response envelopes"""

    def test_feedback_request_camel_case(self):
        req = FeedbackRequest.model_validate({"text": "Hi.", "modelPreference": "pro"})
        assert req.model_preference == "pro"
        assert req.question == ""

    def test_feedback_request_snake_case_and_coercion(self):
        req = FeedbackRequest.model_validate({"text": 123, "model_preference": None})
        assert req.text == "123"
        assert req.model_preference is None

    def test_followup_request(self):
        req = FollowUpRequest.model_validate(
            {"question": "Why?", "originalQuestion": "Q", "originalText": "T", "feedback": "F"}
        )
        assert (req.original_question, req.original_text, req.feedback) == ("Q", "T", "F")

    def test_feedback_response_serialises_camel_case(self):
        res = FeedbackResponse(feedback="report", word_count=3, student_text_numbered="¶1 [S1] Hi.")
        assert res.model_dump(by_alias=True) == {
            "status": "success",
            "feedback": "report",
            "wordCount": 3,
            "studentTextNumbered": "¶1 [S1] Hi.",
        }

    def test_other_envelopes(self):
        assert FollowUpResponse(answer="a").model_dump() == {"status": "success", "answer": "a"}
        assert ErrorResponse(message="Error: x").model_dump() == {"status": "error", "message": "Error: x"}
