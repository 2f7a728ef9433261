"""Per-user pest risk and heat stress forecasts.

The pest forecast weights each reading by how recent it is, builds a
distribution over the five ordinal pest levels and interpolates a score in
[0, 1] from it. Two corrections then follow, in this order:

1. majority dampening/amplification from the whole window
2. a recent-calm reduction when most of the last five readings are low

Both can apply to the same history and compound multiplicatively.
"""

import math
from typing import Iterable, List, Sequence

from classification import pest_level_for_count
from config import (
    HEAT_FORECAST_WINDOW,
    HEAT_STRESS_LEVELS,
    INDIVIDUAL_WINDOW,
    PEST_CATEGORIES,
    RECENCY_DECAY,
)
from heat_stress import advice_for_heat_stress, heat_stress_index
from models import HeatStressForecast, MicroclimateReading, PestReading, RiskAssessment
from store import ReadingStore

NO_DATA_SCORE = 0.1
NUM_LEVELS = len(PEST_CATEGORIES)
DISTRIBUTION_KEYS = tuple(c.replace(" ", "_") for c in PEST_CATEGORIES)

LOW_MAJORITY_PERCENT = 60
LOW_MAJORITY_FACTOR = 0.5
HIGH_MAJORITY_PERCENT = 40
HIGH_MAJORITY_FACTOR = 1.3
RECENT_WINDOW = 5
RECENT_CALM_SHARE = 0.8
RECENT_CALM_FACTOR = 0.4


def risk_level_for_score(score: float) -> str:
    if score >= 0.8:
        return "high"
    if score >= 0.5:
        return "medium"
    return "low"


def recency_weights(n: int, decay: float = RECENCY_DECAY) -> List[float]:
    """exp(-decay * i) for positions 0 (most recent) .. n - 1."""
    return [math.exp(-decay * i) for i in range(n)]


def level_distribution(levels: Sequence[int], weights: Sequence[float]) -> List[float]:
    """Weighted share of each ordinal level, in percent (sums to 100)."""
    totals = [0.0] * NUM_LEVELS
    for level, weight in zip(levels, weights):
        totals[level] += weight
    total_weight = sum(weights)
    return [t / total_weight * 100 for t in totals]


def forecast_individual_risk(
    readings: Iterable[PestReading],
    window: int = INDIVIDUAL_WINDOW,
) -> RiskAssessment:
    """Risk assessment from one user's readings in one area.

    Args:
        readings: Most-recent-first pest readings; only the first ``window``
            are used
        window: Maximum number of readings considered

    Returns:
        RiskAssessment; an empty history yields score 0.1 / "low" with
        reason "no_data"
    """
    readings = list(readings)[:window]
    if not readings:
        return RiskAssessment(
            risk_score=NO_DATA_SCORE,
            risk_level=risk_level_for_score(NO_DATA_SCORE),
            details={"reason": "no_data", "recent_readings": 0},
        )

    levels = [pest_level_for_count(r.estimated_pest_count) for r in readings]
    distribution = level_distribution(levels, recency_weights(len(levels)))

    weighted_score = sum(
        (share / 100) * (level / (NUM_LEVELS - 1))
        for level, share in enumerate(distribution)
    )
    score = weighted_score

    low_share = distribution[0] + distribution[1]
    high_share = distribution[3] + distribution[4]
    if low_share > LOW_MAJORITY_PERCENT:
        score *= LOW_MAJORITY_FACTOR
    elif high_share > HIGH_MAJORITY_PERCENT:
        score *= HIGH_MAJORITY_FACTOR

    recent = levels[:min(RECENT_WINDOW, len(levels))]
    recent_low = sum(1 for level in recent if level <= 1)
    if recent and recent_low >= len(recent) * RECENT_CALM_SHARE:
        score *= RECENT_CALM_FACTOR

    score = max(0.0, min(1.0, score))

    return RiskAssessment(
        risk_score=score,
        risk_level=risk_level_for_score(score),
        details={
            "total_readings": len(readings),
            "distribution_percentages": {
                key: round(share, 1) for key, share in zip(DISTRIBUTION_KEYS, distribution)
            },
            "weighted_score": round(weighted_score, 1),
        },
    )


def forecast_for_area(
    store: ReadingStore,
    username: str,
    area_id: str,
    window: int = INDIVIDUAL_WINDOW,
) -> RiskAssessment:
    """Fetch the user's recent readings and forecast their risk.

    Store failures propagate as StoreError; an empty area is not an error.
    """
    readings = store.get_pest_readings(username, area_id, window)
    return forecast_individual_risk(readings, window=window)


def forecast_heat_stress(
    readings: Iterable[MicroclimateReading],
    window: int = HEAT_FORECAST_WINDOW,
) -> HeatStressForecast:
    """Overall heat stress from a user's most recent microclimate readings.

    The mean ordinal level is rounded half up.
    """
    readings = list(readings)[:window]
    if not readings:
        return HeatStressForecast(
            heat_stress_level="minimal",
            advice="No recent data available.",
            recent_submissions=0,
        )

    mean_index = sum(heat_stress_index(r.heat_stress_level) for r in readings) / len(readings)
    rounded = min(int(math.floor(mean_index + 0.5)), len(HEAT_STRESS_LEVELS) - 1)
    level = HEAT_STRESS_LEVELS[rounded]

    return HeatStressForecast(
        heat_stress_level=level,
        advice=advice_for_heat_stress(level),
        recent_submissions=len(readings),
        details=[
            {
                "temperature": r.air_temperature,
                "humidity": r.relative_humidity,
                "stress_level": r.heat_stress_level,
            }
            for r in readings[:5]
        ],
    )


def heat_forecast_for_area(
    store: ReadingStore,
    username: str,
    area_id: str,
    window: int = HEAT_FORECAST_WINDOW,
) -> HeatStressForecast:
    readings = store.get_microclimate_readings(username, area_id, window)
    return forecast_heat_stress(readings, window=window)
