import logging
from typing import Any, Iterable, List, Mapping, Sequence, Union

from pydantic import ValidationError

from sakubun.core.exceptions import ValidationFailedException
from sakubun.models.rubric import ImprovementItem

logger = logging.getLogger(__name__)

RATIONALE_LIMIT = 50
MIN_RATIONALE_LENGTH = 5
MAX_ITEMS = 6

# Category keyword -> default rationale, first match wins
DEFAULT_RATIONALES = (
    (("grammar", "usage"), "Fixes the rule so readers are not misled."),
    (("vocabulary", "sentence structure", "word"), "Clearer B1-level wording is easier to read."),
    (("theme", "topic", "consistency"), "Keeps the answer focused on the theme."),
)
FLOW_RATIONALE = "Makes the link between ideas explicit."


def default_rationale(category: str) -> str:
    cat = (category or "").lower()
    for keywords, rationale in DEFAULT_RATIONALES:
        if any(k in cat for k in keywords):
            return rationale
    return FLOW_RATIONALE


def parse_items(raw_items: Iterable[Any]) -> List[ImprovementItem]:
    """Turn raw upstream entries into ImprovementItems; non-object entries are skipped."""
    items: List[ImprovementItem] = []
    for raw in raw_items or []:
        if isinstance(raw, ImprovementItem):
            items.append(raw)
            continue
        if not isinstance(raw, Mapping):
            logger.debug(f"Skipping non-object improvement entry: {type(raw).__name__}")
            continue
        try:
            items.append(ImprovementItem.model_validate(dict(raw)))
        except ValidationError as exc:
            raise ValidationFailedException(
                "Improvement entry could not be read.", details={"error": str(exc)}
            ) from exc
    return items


def normalize_improvements(items: Sequence[Union[ImprovementItem, Mapping[str, Any]]]) -> List[ImprovementItem]:
    """Every item leaves with a non-empty rationale of at most RATIONALE_LIMIT chars."""
    normalized = []
    for item in parse_items(items)[:MAX_ITEMS]:
        rationale = item.rationale.strip() or default_rationale(item.category)
        normalized.append(item.model_copy(update={"rationale": rationale[:RATIONALE_LIMIT]}))
    return normalized


def is_well_formed(items: Sequence[Union[ImprovementItem, Mapping[str, Any]]], allow_empty: bool = False) -> bool:
    """Check an item list before normalization.

    Well-formed means non-empty (unless ``allow_empty``) and every item names a
    location, an error, a fix, and a rationale of at least MIN_RATIONALE_LENGTH.
    """
    try:
        parsed = parse_items(items)
    except ValidationFailedException:
        return False
    if len(parsed) != len(list(items)):
        return False
    if not parsed:
        return allow_empty
    return all(
        item.location_ref
        and item.error_description
        and item.suggested_fix
        and len(item.rationale) >= MIN_RATIONALE_LENGTH
        for item in parsed
    )
