from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any, Dict, Iterator, Optional

from sakubun.core.exceptions import (
    EmptyResponseException,
    MalformedShapeException,
    UpstreamErrorException,
    is_failure_text,
)

logger = logging.getLogger(__name__)

_decoder = json.JSONDecoder()


class ResponseShape(str, Enum):
    EVALUATION = "evaluation"      # items: mapping of label -> grade
    IMPROVEMENTS = "improvements"  # items: list of improvement entries


def _object_candidates(text: str) -> Iterator[Dict[str, Any]]:
    """Yield every JSON object that starts at a '{' in the text, leftmost first."""
    idx = text.find("{")
    while idx != -1:
        try:
            obj, _end = _decoder.raw_decode(text, idx)
        except json.JSONDecodeError:
            obj = None
        if isinstance(obj, dict):
            yield obj
        idx = text.find("{", idx + 1)


def _has_required_fields(obj: Dict[str, Any], shape: ResponseShape) -> bool:
    items = obj.get("items")
    if shape is ResponseShape.EVALUATION:
        return isinstance(items, dict)
    return isinstance(items, list)


def extract_structured(text: Optional[str], shape: ResponseShape, label: str = "") -> Dict[str, Any]:
    """Pull the structured payload out of a free-text generation.

    Tolerates leading prose and trailing commentary around the object. The first
    balanced object carrying the required top-level fields wins; when the text has
    no parseable object at all, the trimmed whole text is parsed as a last resort.
    """
    if not text or not text.strip():
        raise EmptyResponseException(f"Empty model response ({label or shape.value}).")
    if is_failure_text(text):
        raise UpstreamErrorException(
            f"Model response is an error ({label or shape.value}): {text.strip()}",
            details={"shape": shape.value},
        )

    first: Optional[Dict[str, Any]] = None
    for obj in _object_candidates(text):
        if _has_required_fields(obj, shape):
            return obj
        first = first or obj

    if first is None:
        try:
            whole = json.loads(text.strip())
        except json.JSONDecodeError as exc:
            logger.warning(f"No parseable object in {label or shape.value} response ({len(text)} chars)")
            raise MalformedShapeException(
                f"No JSON object found in model response ({label or shape.value}).",
                details={"shape": shape.value, "error": str(exc)},
            ) from exc
        if isinstance(whole, dict) and _has_required_fields(whole, shape):
            return whole

    raise MalformedShapeException(
        f"Invalid JSON shape in model response ({label or shape.value}).",
        details={"shape": shape.value},
    )
