import logging
from typing import Optional

from sakubun.core.exceptions import UpstreamException, is_failure_text
from sakubun.services.evaluation.prompt_builder import PromptBuilder
from sakubun.utils.tracer import GenerationClient

logger = logging.getLogger(__name__)

REQUIREMENT_MAX_TOKENS = 80


async def check_requirement(
    client: GenerationClient,
    builder: PromptBuilder,
    question: Optional[str],
    word_count: int,
    model_id: str,
) -> Optional[str]:
    """One-line requirement verdict, or None when it could not be produced."""
    prompt = builder.requirement(question, word_count)
    try:
        text = await client.generate(prompt, model_id, REQUIREMENT_MAX_TOKENS, name="requirement")
    except UpstreamException as e:
        logger.warning(f"Requirement check unavailable: {e.message}")
        return None
    if is_failure_text(text):
        logger.warning("Requirement check returned a failure text")
        return None
    return text
