# sakubun/utils/tracer.py
import logging
from typing import Any, Optional, Protocol, runtime_checkable

from sakubun.core.exceptions import FeedbackException

logger = logging.getLogger(__name__)


@runtime_checkable
class GenerationClient(Protocol):
    async def generate(
        self,
        prompt_text: str,
        model_id: str,
        max_output_tokens: int = 512,
        *,
        name: Optional[str] = None,
    ) -> str: ...


class ObservedGenerationClient:
    """Langfuse 관측 래퍼: one generation per call, named ``llm.<name>``."""

    def __init__(self, inner: GenerationClient, langfuse: Any, service: str = "gemini"):
        self.inner = inner
        self.langfuse = langfuse
        self.service = service

    async def generate(
        self,
        prompt_text: str,
        model_id: str,
        max_output_tokens: int = 512,
        *,
        name: Optional[str] = None,
    ) -> str:
        with self.langfuse.start_as_current_generation(
            name=f"llm.{name or 'generate'}",
            model=model_id,
            input=prompt_text,
            model_parameters={"max_output_tokens": max_output_tokens},
            metadata={"service": self.service, "prompt_chars": len(prompt_text)},
        ) as gen:
            try:
                text = await self.inner.generate(prompt_text, model_id, max_output_tokens, name=name)
            except FeedbackException as e:
                gen.update(level="ERROR", status_message=e.message, metadata={"details": e.details})
                raise
            except Exception as e:
                gen.update(level="ERROR", status_message=str(e))
                raise
            gen.update(output=text)
            return text

    def flush(self) -> None:
        # 트레이스 전송 (종료 시점)
        self.langfuse.flush()
