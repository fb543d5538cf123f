# sakubun/models/rubric.py
from typing import Any, Dict, List, Literal, Mapping, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

Axis = Literal["expression", "content"]
Grade = Literal["o", "d", "x"]

AXES: Tuple[Axis, ...] = ("expression", "content")

# Fixed label keys per rubric axis
AXIS_LABELS: Mapping[str, Tuple[str, str]] = {
    "expression": ("C-1", "C-2"),
    "content": ("D-1", "D-2"),
}

GRAMMAR, VOCABULARY = AXIS_LABELS["expression"]
COHERENCE, LOGICAL_FLOW = AXIS_LABELS["content"]

GRAMMAR_ERRORS_KEY = "C-1_incorrect"
# Upstream has used all three spellings for the leap counter
LEAP_COUNT_KEYS: Tuple[str, ...] = ("D-2_leaps", "D2_leaps", "leaps")

_GRADE_ALIASES = {
    "o": "o", "〇": "o", "○": "o", "pass": "o",
    "d": "d", "△": "d", "caution": "d",
    "x": "x", "×": "x", "fail": "x",
}


def normalize_grade(value: Any) -> Grade:
    """Map whatever the generator produced onto o/d/x; unknown values count as a pass."""
    key = str(value if value is not None else "").strip().lower()
    return _GRADE_ALIASES.get(key, "o")  # type: ignore[return-value]


class EvaluationResult(BaseModel):
    """Structured labels for one rubric axis, as parsed from the generator."""

    axis: Axis
    items: Dict[str, Grade]
    details: Dict[str, Any] = Field(default_factory=dict)
    notes: List[str] = Field(default_factory=list)

    @classmethod
    def from_payload(cls, axis: Axis, payload: Mapping[str, Any]) -> "EvaluationResult":
        raw_items = payload.get("items")
        raw_items = raw_items if isinstance(raw_items, Mapping) else {}
        items = {label: normalize_grade(raw_items.get(label)) for label in AXIS_LABELS[axis]}

        raw_details = payload.get("details")
        details = dict(raw_details) if isinstance(raw_details, Mapping) else {}

        raw_notes = payload.get("notes")
        if isinstance(raw_notes, str):
            notes = [raw_notes]
        elif isinstance(raw_notes, list):
            notes = [str(n) for n in raw_notes if n is not None]
        else:
            notes = []
        return cls(axis=axis, items=items, details=details, notes=notes)

    def grade(self, label: str) -> Grade:
        return self.items.get(label, "o")

    def has_issues(self) -> bool:
        """Any non-pass grade or any positive counter."""
        if any(g != "o" for g in self.items.values()):
            return True
        for value in self.details.values():
            try:
                if float(value) > 0:
                    return True
            except (TypeError, ValueError):
                continue
        return False


class ImprovementItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    location_ref: str = Field(default="", alias="s")
    category: str = Field(default="", alias="cat")
    error_description: str = Field(default="", alias="error")
    before: str = ""
    suggested_fix: str = Field(default="", alias="after")
    rationale: str = Field(default="", alias="reason")

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> str:
        if v is None:
            return ""
        return str(v).strip()


class RubricScore(BaseModel):
    """Deterministic rubric score; a pure function of two EvaluationResults."""

    model_config = ConfigDict(frozen=True)

    expression: int = Field(ge=2, le=10)
    content: int = Field(ge=0, le=10)
    total: int = Field(ge=2, le=20)


class SentenceUnit(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int = Field(ge=1)
    paragraph: int = Field(ge=1)
    text: str

    @property
    def label(self) -> str:
        return f"S{self.id}"


class SegmentedSubmission(BaseModel):
    """Sentence-numbered view of one submission."""

    units: List[SentenceUnit]
    word_count: int
    numbered_text: str


class Report(BaseModel):
    """Final report sections, in render order."""

    summary: str
    submission: str
    expression_detail: str
    content_detail: str

    def render(self) -> str:
        return "\n".join([
            self.summary,
            "", self.submission,
            "", self.expression_detail,
            "", self.content_detail,
        ])
