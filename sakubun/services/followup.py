import logging

from sakubun.core.config import Settings
from sakubun.core.exceptions import (
    NO_RESPONSE_SENTINEL,
    InputMissingException,
    UpstreamErrorException,
    is_failure_text,
)
from sakubun.models.request import FollowUpRequest
from sakubun.models.response import FollowUpResponse
from sakubun.services.evaluation.prompt_builder import PromptBuilder
from sakubun.utils.tracer import GenerationClient

logger = logging.getLogger(__name__)

FOLLOWUP_MAX_TOKENS = 700


class FollowUpService:
    """Single-turn follow-up answer; every context field comes from the caller."""

    def __init__(self, settings: Settings, client: GenerationClient, builder: PromptBuilder):
        self.settings = settings
        self.client = client
        self.builder = builder

    async def answer(self, req: FollowUpRequest) -> FollowUpResponse:
        if not (req.question or "").strip():
            raise InputMissingException("No question was given.")

        model_id = self.settings.resolve_model(req.model_preference)
        prompt = self.builder.followup(req.question, req.original_question, req.original_text, req.feedback)
        text = await self.client.generate(prompt, model_id, FOLLOWUP_MAX_TOKENS, name="followup")

        if not text or is_failure_text(text):
            raise UpstreamErrorException(text or NO_RESPONSE_SENTINEL)
        logger.info(f"Follow-up answered ({len(text)} chars, model={model_id})")
        return FollowUpResponse(answer=text)
