from __future__ import annotations

import json
from typing import Optional

from sakubun.models.rubric import Axis, EvaluationResult
from sakubun.utils.prompt_loader import PromptLoader

# Per-field clipping limits (characters). Longer inputs are truncated, never rejected.
QUESTION_LIMIT = 2000
SUBMISSION_LIMIT = 6000
EVALUATION_JSON_LIMIT = 2500

FOLLOWUP_QUESTION_LIMIT = 4000
FOLLOWUP_ORIGINAL_QUESTION_LIMIT = 4000
FOLLOWUP_ORIGINAL_TEXT_LIMIT = 12000
FOLLOWUP_FEEDBACK_LIMIT = 12000

NO_QUESTION = "(no question given)"


def clip(value: Optional[str], limit: int) -> str:
    return ("" if value is None else str(value))[:limit]


class PromptBuilder:
    """Assemble the exact instruction text for each generation task.

    Static wording comes from the versioned templates; this class only adds the
    request-specific fields, clipped to fixed limits. Every method is pure.
    """

    def __init__(self, loader: PromptLoader) -> None:
        self.loader = loader

    def _sections(self, task: str, *names: str) -> list[str]:
        return [self.loader.load_prompt(task, name) for name in names if self.loader.has_section(task, name)]

    def _question_and_answer(self, question: Optional[str], numbered_text: str) -> list[str]:
        q = clip(question, QUESTION_LIMIT)
        return [
            "[Question]",
            q or NO_QUESTION,
            "",
            "[Your answer (numbered sentences)]",
            clip(numbered_text, SUBMISSION_LIMIT),
        ]

    def evaluation(self, axis: Axis, question: Optional[str], numbered_text: str) -> str:
        """Rubric evaluation prompt for one axis (grades + counters + notes, no score)."""
        parts = self._sections(axis, "system", "grades")
        parts += [""] + self._question_and_answer(question, numbered_text) + [""]
        parts += self._sections(axis, "policy", "scope", "output", "schema")
        return "\n".join(parts)

    def improvements(
        self,
        axis: Axis,
        question: Optional[str],
        numbered_text: str,
        evaluation: EvaluationResult,
    ) -> str:
        """Improvement extraction prompt with the axis evaluation as fixed context."""
        task = f"{axis}_improvements"
        fixed = clip(
            json.dumps(evaluation.model_dump(exclude={"axis"}), ensure_ascii=False),
            EVALUATION_JSON_LIMIT,
        )
        parts = self._sections(task, "system")
        parts += [""] + self._question_and_answer(question, numbered_text)
        parts += ["", "[Evaluation result (fixed)]", fixed, ""]
        parts += self._sections(task, "output", "schema")
        parts += [""] + self._sections(task, "constraints")
        return "\n".join(parts)

    def requirement(self, question: Optional[str], word_count: int) -> str:
        """One-line requirement compliance prompt."""
        q = clip(question or NO_QUESTION, QUESTION_LIMIT)
        parts = self._sections("requirement", "system")
        parts += [f"- Question: {q}", f"- Word count: {word_count} words"]
        parts += self._sections("requirement", "constraints")
        return "\n".join(parts)

    def followup(
        self,
        question: Optional[str],
        original_question: Optional[str] = None,
        original_text: Optional[str] = None,
        feedback: Optional[str] = None,
    ) -> str:
        """Free-form follow-up answer grounded on the earlier submission and feedback."""
        q = clip(question, FOLLOWUP_QUESTION_LIMIT)
        oq = clip(original_question, FOLLOWUP_ORIGINAL_QUESTION_LIMIT)
        ot = clip(original_text, FOLLOWUP_ORIGINAL_TEXT_LIMIT)
        fb = clip(feedback, FOLLOWUP_FEEDBACK_LIMIT)

        parts = self._sections("followup", "system")
        parts += [""] + self._sections("followup", "context_open")
        if oq:
            parts.append(f"[Original question]\n{oq}\n")
        if ot:
            parts.append(f"[Student's answer]\n{ot}\n")
        if fb:
            parts.append(f"[Feedback]\n{fb}\n")
        parts += self._sections("followup", "context_close")
        parts += ["", "[Question]", q]
        return "\n".join(parts)
