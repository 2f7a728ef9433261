"""Pest amount categories and advice text."""

import math
from typing import Any, Optional

from config import DARK_RATIO_ESCALATION, PEST_BREAKPOINTS, PEST_CATEGORIES


def coerce_count(value: Any) -> float:
    """Treat missing, non-numeric, NaN and negative values as 0.

    Used for both blob counts and dark pixel ratios read back from storage.
    """
    try:
        count = float(value or 0)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(count):
        return 0.0
    return max(0.0, count)


def pest_level_for_count(count: Any) -> int:
    """Ordinal pest level 0 (very low) to 4 (very high) for a blob count."""
    count = coerce_count(count)
    for level, upper in enumerate(PEST_BREAKPOINTS):
        if count <= upper:
            return level
    return len(PEST_BREAKPOINTS)


def classify_pest_amount(estimated_count: Any, dark_pixel_ratio: Any) -> str:
    """Map a blob count and dark pixel ratio to a pest amount category.

    A trap that is at least 15% dark moves up one category, capped at
    "very high". Missing or unreadable ratios count as 0.
    """
    level = pest_level_for_count(estimated_count)
    if coerce_count(dark_pixel_ratio) >= DARK_RATIO_ESCALATION:
        level = min(level + 1, len(PEST_CATEGORIES) - 1)
    return PEST_CATEGORIES[level]


def category_key(category: Optional[str]) -> Optional[str]:
    """'very low' -> 'very_low'; used for chart count keys."""
    if not category:
        return None
    return category.strip().lower().replace(" ", "_")


RISK_ADVICE = {
    "high": "High risk: Inspect traps now and consider treatment.",
    "medium": "Medium risk: Monitor closely; check traps later today.",
    "low": "Low risk: Routine monitoring is sufficient.",
}


def advice_for_risk_level(level: str) -> str:
    return RISK_ADVICE.get(level, RISK_ADVICE["low"])
