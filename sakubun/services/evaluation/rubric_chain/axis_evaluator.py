import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sakubun.core.exceptions import MalformedUpstreamPayloadException, UpstreamException
from sakubun.models.rubric import Axis, EvaluationResult, ImprovementItem
from sakubun.services.evaluation.extractor import ResponseShape, extract_structured
from sakubun.services.evaluation.improvements import is_well_formed, normalize_improvements
from sakubun.services.evaluation.prompt_builder import PromptBuilder
from sakubun.utils.tracer import GenerationClient

logger = logging.getLogger(__name__)

EVALUATION_MAX_TOKENS = 600
IMPROVEMENTS_MAX_TOKENS = 700
IMPROVEMENT_ATTEMPTS = 2


@dataclass
class ImprovementOutcome:
    items: List[ImprovementItem] = field(default_factory=list)
    degraded: bool = False


class AxisEvaluator:
    """루브릭 축(expression / content) 평가자

    ``evaluate`` asks for the fixed grades of one axis and fails the request when
    they cannot be parsed. ``improve`` asks for improvement items against those
    grades and degrades to a placeholder instead of failing.
    """

    def __init__(self, client: GenerationClient, builder: PromptBuilder) -> None:
        self.client = client
        self.builder = builder

    async def evaluate(self, axis: Axis, question: Optional[str], numbered_text: str, model_id: str) -> EvaluationResult:
        prompt = self.builder.evaluation(axis, question, numbered_text)
        text = await self.client.generate(prompt, model_id, EVALUATION_MAX_TOKENS, name=f"{axis}_evaluation")
        payload = extract_structured(text, ResponseShape.EVALUATION, label=f"{axis} evaluation")
        result = EvaluationResult.from_payload(axis, payload)
        logger.info(f"{axis} evaluation: items={result.items} details={result.details}")
        return result

    async def improve(
        self,
        axis: Axis,
        question: Optional[str],
        numbered_text: str,
        evaluation: EvaluationResult,
        model_id: str,
    ) -> ImprovementOutcome:
        prompt = self.builder.improvements(axis, question, numbered_text, evaluation)
        allow_empty = not evaluation.has_issues()

        for attempt in range(1, IMPROVEMENT_ATTEMPTS + 1):
            try:
                text = await self.client.generate(
                    prompt, model_id, IMPROVEMENTS_MAX_TOKENS, name=f"{axis}_improvements"
                )
            except UpstreamException as e:
                logger.warning(f"{axis} improvements unavailable: {e.message}")
                return ImprovementOutcome(degraded=True)

            try:
                raw_items = extract_structured(text, ResponseShape.IMPROVEMENTS, label=f"{axis} improvements")["items"]
            except MalformedUpstreamPayloadException as e:
                logger.warning(f"{axis} improvements attempt {attempt}/{IMPROVEMENT_ATTEMPTS}: {e.message}")
                continue

            if is_well_formed(raw_items, allow_empty=allow_empty):
                return ImprovementOutcome(items=normalize_improvements(raw_items))
            logger.warning(
                f"{axis} improvements attempt {attempt}/{IMPROVEMENT_ATTEMPTS}: "
                f"{len(raw_items)} items not well-formed"
            )

        logger.warning(f"{axis} improvements degraded to placeholder")
        return ImprovementOutcome(degraded=True)
