import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Literal, Optional

import httpx

from sakubun.core.config import Settings
from sakubun.core.exceptions import (
    ERROR_SENTINEL,
    ConfigurationMissingException,
    InputMissingException,
    UpstreamBlockedException,
    UpstreamException,
    UpstreamPermanentException,
    UpstreamTransientException,
)
from sakubun.core.retry import RetryPolicy

logger = logging.getLogger(__name__)

FENCED_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
BODY_EXCERPT_LIMIT = 800

TextShape = Literal["parts", "text", "fenced"]


@dataclass(frozen=True)
class ModelText:
    """Canonical text of one generation, tagged with the response shape it came from."""

    text: str
    shape: TextShape


def _iter_strings(node: Any) -> Iterator[str]:
    if isinstance(node, str):
        yield node
    elif isinstance(node, dict):
        for value in node.values():
            yield from _iter_strings(value)
    elif isinstance(node, list):
        for value in node:
            yield from _iter_strings(value)


def _fenced_text(strings: Iterator[str]) -> Optional[str]:
    for s in strings:
        m = FENCED_RE.search(s)
        if m and m.group(1):
            return m.group(1)
    return None


def _blocked(reason: str, safety_ratings: List[Any]) -> UpstreamBlockedException:
    return UpstreamBlockedException(
        f"Model response was blocked by the safety policy or empty (blockReason={reason}).",
        details={"block_reason": reason, "safety_ratings": safety_ratings},
    )


def decode_generation_body(body: Any) -> ModelText:
    """Map one 200 response body onto ModelText.

    Shapes are tried in order: content parts, direct candidate text, then a fenced
    block in any string of the payload (or in the raw body when it was not JSON).
    Raises UpstreamBlockedException when none of them yields text.
    """
    if isinstance(body, str):
        fenced = _fenced_text(iter([body]))
        if fenced:
            return ModelText(fenced, "fenced")
        raise _blocked("empty_text", [])

    body = body if isinstance(body, dict) else {}
    prompt_feedback = body.get("promptFeedback") or {}
    candidates = body.get("candidates") or []
    candidate = candidates[0] if isinstance(candidates, list) and candidates else None
    if not isinstance(candidate, dict):
        raise _blocked(prompt_feedback.get("blockReason") or "no_candidates", [])

    parts = (candidate.get("content") or {}).get("parts")
    if isinstance(parts, list):
        text = "".join(p["text"] for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str))
        if text:
            return ModelText(text, "parts")

    if isinstance(candidate.get("text"), str) and candidate["text"]:
        return ModelText(candidate["text"], "text")

    fenced = _fenced_text(_iter_strings(body))
    if fenced:
        return ModelText(fenced, "fenced")

    reason = prompt_feedback.get("blockReason") or candidate.get("finishReason") or "empty_text"
    raise _blocked(reason, candidate.get("safetyRatings") or [])


class GeminiClient:
    """Async client for the Generative Language ``generateContent`` endpoint.

    Each candidate model (requested model, then the fixed fallback) gets up to
    ``retry_policy.max_attempts`` tries. Overload (503), transport errors and
    blocked/empty replies are retried with backoff; other HTTP failures end the
    current model at once and move on to the next.
    """

    def __init__(
        self,
        settings: Settings,
        http_client: Optional[httpx.AsyncClient] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.settings = settings
        self.http = http_client or httpx.AsyncClient(timeout=settings.API_TIMEOUT_S)
        self._owns_http = http_client is None
        self.retry = retry_policy or settings.retry_policy()

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    def _payload(self, prompt_text: str, max_output_tokens: int) -> Dict[str, Any]:
        return {
            "contents": [{"parts": [{"text": prompt_text}]}],
            "generationConfig": self.settings.generation_config(max_output_tokens),
            "safetySettings": self.settings.safety_settings(),
        }

    async def generate(
        self,
        prompt_text: str,
        model_id: str,
        max_output_tokens: int = 512,
        *,
        name: Optional[str] = None,
    ) -> str:
        if not self.settings.GEMINI_API_KEY:
            raise ConfigurationMissingException(
                f"{ERROR_SENTINEL} API key is not set. Set GEMINI_API_KEY in the server's .env file."
            )
        if not prompt_text or not prompt_text.strip():
            raise InputMissingException("Prompt text is empty.")

        label = name or "generate"
        models = self.settings.candidate_models(model_id or self.settings.DEFAULT_MODEL)
        last_error: Optional[UpstreamException] = None

        for idx, model in enumerate(models):
            if idx and last_error is not None:
                logger.warning(f"[{label}] Falling back to {model}: {last_error.message}")
            try:
                return await self._generate_with_retries(prompt_text, model, max_output_tokens, label)
            except UpstreamException as exc:
                last_error = exc

        logger.error(f"[{label}] All models failed ({', '.join(models)})")
        if last_error is None or isinstance(last_error, UpstreamTransientException):
            raise UpstreamTransientException(
                "no model produced a response",
                details={"models": models, **(last_error.details if last_error else {})},
            )
        raise last_error

    async def _generate_with_retries(self, prompt_text: str, model: str, max_output_tokens: int, label: str) -> str:
        url = f"{self.settings.GEMINI_API_BASE.rstrip('/')}/models/{model}:generateContent"
        headers = {
            "Content-Type": "application/json; charset=utf-8",
            "x-goog-api-key": self.settings.GEMINI_API_KEY,
        }
        payload = self._payload(prompt_text, max_output_tokens)

        attempt = 0
        while True:
            attempt += 1
            try:
                res = await self.http.post(url, json=payload, headers=headers, timeout=self.settings.API_TIMEOUT_S)
            except httpx.HTTPError as exc:
                if not self.retry.should_retry(attempt):
                    raise UpstreamTransientException(
                        f"Request to {model} failed: {exc!r}",
                        details={"model": model, "attempts": attempt},
                    ) from exc
                logger.warning(f"[{label}] {model} attempt {attempt} raised {type(exc).__name__}; retrying")
                await self.retry.wait(attempt)
                continue

            if res.status_code == 200:
                try:
                    decoded = decode_generation_body(self._body(res))
                except UpstreamBlockedException as exc:
                    if not self.retry.should_retry(attempt):
                        exc.details.update({"model": model, "attempts": attempt})
                        raise
                    logger.warning(f"[{label}] {model} attempt {attempt} blocked/empty ({exc.details.get('block_reason')}); retrying")
                    await self.retry.wait(attempt)
                    continue
                logger.debug(f"[{label}] {model} answered on attempt {attempt} ({decoded.shape}, {len(decoded.text)} chars)")
                return decoded.text

            if res.status_code == 503:
                if not self.retry.should_retry(attempt):
                    raise UpstreamTransientException(
                        f"{model} is overloaded (HTTP 503).",
                        details={"model": model, "status": 503, "attempts": attempt},
                    )
                logger.warning(f"[{label}] {model} overloaded (503) on attempt {attempt}; retrying")
                await self.retry.wait(attempt, overloaded=True)
                continue

            raise self._permanent_failure(res, model)

    @staticmethod
    def _body(res: httpx.Response) -> Any:
        try:
            return res.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return res.text

    @staticmethod
    def _permanent_failure(res: httpx.Response, model: str) -> UpstreamPermanentException:
        code = res.status_code
        details: Dict[str, Any] = {"model": model, "status": code}
        if code == 429:
            message = "Too many requests. Please wait a while and try again."
        elif code in (401, 403):
            message = "Authentication or permission problem. Check the API key and quota."
        elif code == 404:
            message = f"Model id '{model}' is not recognised."
        elif code >= 500:
            message = "The generation service had a server error. Please try again later."
        else:
            message = f"Unexpected response from the generation service (HTTP {code})."
            details["body"] = res.text[:BODY_EXCERPT_LIMIT]
        return UpstreamPermanentException(message, details=details)
