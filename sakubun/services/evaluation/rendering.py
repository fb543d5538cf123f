from __future__ import annotations

import re
from typing import List, Optional, Sequence

from sakubun.models.rubric import (
    COHERENCE,
    GRAMMAR,
    LOGICAL_FLOW,
    VOCABULARY,
    EvaluationResult,
    Grade,
    ImprovementItem,
    Report,
    RubricScore,
    SegmentedSubmission,
)
from sakubun.services.evaluation.improvements import normalize_improvements
from sakubun.services.evaluation.scoring import leap_count

GRADE_MARKS = {"o": "〇", "d": "△", "x": "×"}

EXPRESSION_HEADING = "C. Expression"
CONTENT_HEADING = "D. Content"
SUMMARY_HEADING = "A. Score summary"
SUBMISSION_HEADING = "B. Your answer"
PER_ITEM_HEADING = "[Per-item feedback]"
IMPROVEMENT_HEADING = "[Improvement points]"

GRAMMAR_LINE = "1. Grammar and usage"
VOCABULARY_LINE = "2. Vocabulary and sentence structure"
COHERENCE_LINE = "1. The theme is consistent"
FLOW_LINE = "2. The body develops logically"

NO_ITEMS = "(none)"
DEGRADED_ITEMS = "(improvement points could not be generated this time)"
GENERATION_FAILED = "(generation failed)"
REQUIREMENT_PREFIX = "Requirements:"
REQUIREMENT_UNAVAILABLE = f"{REQUIREMENT_PREFIX} (could not be checked this time)"
WORD_COUNT_NOTE = "    * The automatic word count may not be exact."

CROSS_REF_RE = re.compile(r"S\d+\s*→\s*S\d+")
# Content concepts that do not belong in the expression section
CONTENT_TERMS_RE = re.compile(
    r"\b(theme|thesis|argument|logic|logical|logically|leaps?|contradict\w*|paragraphs?|organi[sz]ation|conclusion)\b",
    re.IGNORECASE,
)
# Language concepts that do not belong in the content section
EXPRESSION_TERMS_RE = re.compile(
    r"\b(grammar|grammatical|usage|vocabulary|sentence structure|conjunctions?|word choice|phrasal verbs?|spelling)\b",
    re.IGNORECASE,
)
LOGIC_TERMS_RE = re.compile(r"\b(logic|logical|logically|leaps?|contradict\w*)\b", re.IGNORECASE)
FLOW_LINE_RE = re.compile(r"^2\..*develops logically\s*→")


def grade_mark(grade: Grade) -> str:
    return GRADE_MARKS.get(grade, GRADE_MARKS["o"])


def _format_count(value: float) -> str:
    return f"{value:g}"


def flow_line(result: EvaluationResult) -> str:
    """Logical-development verdict, built only from the fixed grade and the leap counter."""
    grade = result.grade(LOGICAL_FLOW)
    leaps = leap_count(result.details)
    tail = f" ({_format_count(leaps)} leaps)" if grade != "o" and leaps > 0 else ""
    return f"{FLOW_LINE} → {grade_mark(grade)}{tail}"


def _improvement_lines(items: Sequence[ImprovementItem], degraded: bool) -> List[str]:
    lines = [IMPROVEMENT_HEADING]
    if degraded:
        lines.append(DEGRADED_ITEMS)
        return lines
    if not items:
        lines.append(NO_ITEMS)
    for item in items:
        lines.append(f"{item.location_ref}  {item.category}")
        if item.before:
            lines.append(item.before)
        if item.suggested_fix:
            lines.append(f"→ {item.suggested_fix}")
        lines.append(f"Reason: {item.rationale}")
    return lines


def render_expression_detail(
    result: EvaluationResult,
    items: Sequence[ImprovementItem],
    degraded: bool = False,
) -> str:
    lines = [
        EXPRESSION_HEADING,
        PER_ITEM_HEADING,
        f"{GRAMMAR_LINE} → {grade_mark(result.grade(GRAMMAR))}",
        f"{VOCABULARY_LINE} → {grade_mark(result.grade(VOCABULARY))}",
    ]
    lines += _improvement_lines(normalize_improvements(items), degraded)
    return "\n".join(lines)


def render_content_detail(
    result: EvaluationResult,
    items: Sequence[ImprovementItem],
    degraded: bool = False,
) -> str:
    lines = [
        CONTENT_HEADING,
        PER_ITEM_HEADING,
        f"{COHERENCE_LINE} → {grade_mark(result.grade(COHERENCE))}",
        flow_line(result),
    ]
    lines += _improvement_lines(normalize_improvements(items), degraded)
    return "\n".join(lines)


def _authored_text(item: ImprovementItem) -> str:
    # Only generator-written fields; ``before`` and ``suggested_fix`` echo the learner's own words
    return "\n".join((item.category, item.error_description, item.rationale))


def _links_sentences(item: ImprovementItem) -> bool:
    return bool(CROSS_REF_RE.search(item.location_ref))


def enforce_expression_scope(items: Sequence[ImprovementItem]) -> List[ImprovementItem]:
    """Drop improvement items that talk about content or link two sentences."""
    return [
        item for item in items
        if not _links_sentences(item) and not CONTENT_TERMS_RE.search(_authored_text(item))
    ]


def enforce_content_scope(result: EvaluationResult, items: Sequence[ImprovementItem]) -> List[ImprovementItem]:
    """Keep only content items that agree with the fixed grade and leap counter.

    Language-level items are always dropped. When the flow grade is a pass or no
    leap was counted, items that link two sentences or talk about logic go too.
    """
    grade = result.grade(LOGICAL_FLOW)
    no_flow_issue = grade == "o" or leap_count(result.details) == 0

    kept = []
    for item in items:
        authored = _authored_text(item)
        if EXPRESSION_TERMS_RE.search(authored):
            continue
        if no_flow_issue and (_links_sentences(item) or LOGIC_TERMS_RE.search(authored)):
            continue
        kept.append(item)
    return kept


def enforce_content_consistency(result: EvaluationResult, text: str) -> str:
    """Rebuild the logical-development line from the fixed grade and leap counter."""
    if not text:
        return text
    return "\n".join(
        flow_line(result) if FLOW_LINE_RE.match(line) else line
        for line in text.splitlines()
    )


def normalize_blank_lines(text: str) -> str:
    if not text:
        return text
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = re.sub(r"[ \t]+\n", "\n", text)
    text = re.sub(r"\n{3,}(?=[ \t　]*S\d+(?:→S\d+)?)", "\n\n", text)
    return re.sub(rf"({re.escape(IMPROVEMENT_HEADING)})\n{{2,}}", r"\1\n", text)


def sanitize_detail(text: Optional[str], heading: str) -> str:
    """Strip per-line indentation and anything before the section heading."""
    if not text:
        return f"{heading}\n{GENERATION_FAILED}"
    cleaned = re.sub(r"^[ \t　]+", "", text, flags=re.MULTILINE).strip()
    idx = cleaned.find(heading)
    return cleaned[idx:] if idx >= 0 else cleaned


def requirement_line(raw: Optional[str]) -> str:
    """First line of the generated requirement verdict, always labelled."""
    first = (raw or "").strip().split("\n")[0].strip()
    if not first:
        return REQUIREMENT_UNAVAILABLE
    if not first.startswith(REQUIREMENT_PREFIX):
        first = f"{REQUIREMENT_PREFIX} {first}"
    return first


def render_summary(score: RubricScore, requirement: Optional[str]) -> str:
    return "\n".join([
        SUMMARY_HEADING,
        f"Total score ({score.total}/20)",
        f"C. Expression ({score.expression}/10)  D. Content ({score.content}/10)",
        requirement_line(requirement),
        WORD_COUNT_NOTE,
    ])


def build_report(
    *,
    submission: SegmentedSubmission,
    score: RubricScore,
    expression: EvaluationResult,
    content: EvaluationResult,
    expression_items: Sequence[ImprovementItem],
    content_items: Sequence[ImprovementItem],
    requirement: Optional[str] = None,
    expression_degraded: bool = False,
    content_degraded: bool = False,
) -> Report:
    """Assemble the four report sections. Pure: same inputs, same bytes."""
    expression_detail = normalize_blank_lines(
        render_expression_detail(expression, enforce_expression_scope(expression_items), expression_degraded)
    )
    content_detail = normalize_blank_lines(
        enforce_content_consistency(
            content,
            render_content_detail(content, enforce_content_scope(content, content_items), content_degraded),
        )
    )
    return Report(
        summary=render_summary(score, requirement),
        submission=f"{SUBMISSION_HEADING}\n{submission.numbered_text}",
        expression_detail=sanitize_detail(expression_detail, EXPRESSION_HEADING),
        content_detail=sanitize_detail(content_detail, CONTENT_HEADING),
    )
