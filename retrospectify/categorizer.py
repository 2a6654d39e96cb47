"""Sorting of poll justifications into board columns."""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from .models import JUSTIFICATION_CATEGORIES, Categorization, Category
from .telemetry import trace_span

logger = logging.getLogger(__name__)

Classifier = Callable[[int, str], Awaitable[Categorization | None]]

FALLBACK_REASONING = "Classification unavailable; defaulted to discussion."


def categorize_by_rating(rating: int) -> Categorization:
    """Decide from the star rating alone (used when there is no text)."""
    category = Category.WENT_WELL if rating >= 4 else Category.IMPROVE
    return Categorization(
        category=category,
        reasoning=f"No justification provided; categorized from the rating of {rating} alone.",
    )


async def categorize(
    rating: int,
    justification: str,
    classify: Classifier,
) -> Categorization:
    """
    Categorize a poll justification as went-well, improve or discuss.

    Never raises: a failed or unusable classification falls back to
    discuss.

    Args:
        rating: Star rating, 1-5 (validated by the caller)
        justification: Free-text justification
        classify: Async classifier for non-empty text

    Returns:
        The categorization
    """
    if not justification or not justification.strip():
        return categorize_by_rating(rating)

    with trace_span("retro.categorize", rating=rating) as span:
        try:
            result = await classify(rating, justification)
        except Exception as e:
            logger.warning("Justification classification failed: %s", e)
            span.record_exception(e)
            result = None

        category = Category.parse(_result_field(result, "category"))
        if category not in JUSTIFICATION_CATEGORIES:
            logger.info(
                "Falling back to '%s' for unclassifiable justification",
                Category.DISCUSS.value,
            )
            category = Category.DISCUSS
            reasoning = FALLBACK_REASONING
        else:
            reasoning = str(_result_field(result, "reasoning") or "")

        span.set_attribute("retro.category", category.value)
        return Categorization(category=category, reasoning=reasoning)


def _result_field(result: Any, name: str) -> Any:
    """Read a field from a Categorization or a plain mapping."""
    if isinstance(result, dict):
        return result.get(name)
    return getattr(result, name, None)
