# sakubun/client/bootstrap.py
import logging
from typing import Optional

import httpx

from sakubun.client.gemini import GeminiClient
from sakubun.core.config import Settings
from sakubun.utils.tracer import GenerationClient, ObservedGenerationClient

logger = logging.getLogger(__name__)


def build_generation_client(
    settings: Settings,
    http_client: Optional[httpx.AsyncClient] = None,
) -> GenerationClient:
    """Gemini client, wrapped for Langfuse tracing when credentials are configured."""
    base = GeminiClient(settings, http_client=http_client)  # 순수 Gemini 클라이언트
    if not settings.langfuse_enabled:
        logger.info("Langfuse credentials not set. Tracing disabled.")
        return base

    from langfuse import Langfuse

    lf = Langfuse(
        public_key=settings.LANGFUSE_PUBLIC_KEY,
        secret_key=settings.LANGFUSE_SECRET_KEY,
        host=settings.LANGFUSE_HOST,
        release=settings.PROMPT_VERSION,
    )
    logger.info(f"Langfuse initialized. Host: {settings.LANGFUSE_HOST}")
    return ObservedGenerationClient(base, lf)


async def close_generation_client(client: GenerationClient) -> None:
    """Flush traces and release the HTTP connection pool."""
    if isinstance(client, ObservedGenerationClient):
        client.flush()
        client = client.inner
    if isinstance(client, GeminiClient):
        await client.aclose()
