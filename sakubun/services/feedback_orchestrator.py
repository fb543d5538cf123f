from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from time import perf_counter
from typing import List

from sakubun.core.config import Settings
from sakubun.core.exceptions import FeedbackException, InputMissingException
from sakubun.models.request import FeedbackRequest
from sakubun.models.response import FeedbackResponse
from sakubun.models.rubric import Report, RubricScore, SegmentedSubmission
from sakubun.services.evaluation.prompt_builder import PromptBuilder
from sakubun.services.evaluation.rendering import build_report
from sakubun.services.evaluation.rubric_chain.axis_evaluator import AxisEvaluator
from sakubun.services.evaluation.rubric_chain.requirement_check import check_requirement
from sakubun.services.evaluation.scoring import compute_rubric_score
from sakubun.services.evaluation.segmentation import segment_submission
from sakubun.utils.tracer import GenerationClient

logger = logging.getLogger(__name__)


class FeedbackStage(str, Enum):
    SEGMENTING = "segmenting"
    EVALUATING = "evaluating_concurrently"
    SCORING = "scoring"
    IMPROVING = "improving_concurrently"
    RENDERING = "rendering"
    DONE = "done"
    FAILED = "failed"


@dataclass
class FeedbackOutcome:
    submission: SegmentedSubmission
    score: RubricScore
    report: Report
    stages: List[FeedbackStage] = field(default_factory=list)

    def to_response(self) -> FeedbackResponse:
        return FeedbackResponse(
            feedback=self.report.render(),
            word_count=self.submission.word_count,
            student_text_numbered=self.submission.numbered_text,
        )


class FeedbackOrchestrator:
    """Top-level feedback workflow.

    Flow:
      segment → (expression | content) evaluation in parallel → score
              → (expression | content improvements | requirement) in parallel → render

    Evaluation failures fail the whole run; improvement and requirement failures
    only degrade their part of the report.
    """

    def __init__(self, settings: Settings, client: GenerationClient, builder: PromptBuilder):
        self.settings = settings
        self.client = client
        self.builder = builder
        self.evaluator = AxisEvaluator(client, builder)

    async def run(self, req: FeedbackRequest) -> FeedbackOutcome:
        question = req.question or ""
        text = req.text or ""
        if not text.strip():
            raise InputMissingException("No text was entered.")

        model_id = self.settings.resolve_model(req.model_preference)
        stages: List[FeedbackStage] = []

        def enter(stage: FeedbackStage) -> None:
            stages.append(stage)
            logger.debug(f"feedback stage → {stage.value}")

        t0 = perf_counter()
        try:
            enter(FeedbackStage.SEGMENTING)
            submission = segment_submission(text)
            if not submission.units:
                raise InputMissingException("No text was entered.")
            logger.info(f"Segmented {submission.word_count} words into {len(submission.units)} sentences (model={model_id})")

            enter(FeedbackStage.EVALUATING)
            expression, content = await asyncio.gather(
                self.evaluator.evaluate("expression", question, submission.numbered_text, model_id),
                self.evaluator.evaluate("content", question, submission.numbered_text, model_id),
            )

            enter(FeedbackStage.SCORING)
            score = compute_rubric_score(expression, content)

            enter(FeedbackStage.IMPROVING)
            exp_imps, cont_imps, requirement = await asyncio.gather(
                self.evaluator.improve("expression", question, submission.numbered_text, expression, model_id),
                self.evaluator.improve("content", question, submission.numbered_text, content, model_id),
                check_requirement(self.client, self.builder, question, submission.word_count, model_id),
            )

            enter(FeedbackStage.RENDERING)
            report = build_report(
                submission=submission,
                score=score,
                expression=expression,
                content=content,
                expression_items=exp_imps.items,
                content_items=cont_imps.items,
                requirement=requirement,
                expression_degraded=exp_imps.degraded,
                content_degraded=cont_imps.degraded,
            )
            enter(FeedbackStage.DONE)
        except FeedbackException as e:
            failed_at = stages[-1] if stages else FeedbackStage.SEGMENTING
            enter(FeedbackStage.FAILED)
            e.details.setdefault("stage", failed_at.value)
            logger.error(f"Feedback failed at {failed_at.value}: {e.message}")
            raise

        logger.info(
            f"Feedback done in {(perf_counter() - t0) * 1000.0:.1f}ms: "
            f"total={score.total} expression={score.expression} content={score.content}"
        )
        return FeedbackOutcome(submission=submission, score=score, report=report, stages=stages)

    async def feedback(self, req: FeedbackRequest) -> FeedbackResponse:
        outcome = await self.run(req)
        return outcome.to_response()
