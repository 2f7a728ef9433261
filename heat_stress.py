"""Heat stress scoring from microclimate readings."""

import math
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from config import HEAT_STRESS_LEVELS
from errors import ValidationError

MICROCLIMATE_FIELDS = ("air_temperature", "soil_temperature", "soil_moisture", "relative_humidity")

# (bound, points), checked in order; first match wins.
AIR_TEMPERATURE_TIERS = ((35, 50), (32, 35), (30, 20), (25, 10))  # above bound, degC
SOIL_TEMPERATURE_TIERS = ((30, 25), (28, 15), (26, 10), (24, 5))  # above bound, degC
SOIL_MOISTURE_TIERS = ((20, 15), (30, 10), (40, 5))  # below bound, %
HUMIDITY_TIERS = ((30, 10), (50, 5))  # below bound, %

# (minimum score, level), highest first
LEVEL_THRESHOLDS = ((70, "critical"), (50, "high"), (30, "moderate"), (15, "low"))

HEAT_STRESS_ADVICE = {
    "critical": "Critical heat stress: Immediate action required. Apply emergency cooling and irrigation.",
    "high": "High heat stress: Increase irrigation frequency and consider shade cover.",
    "moderate": "Moderate heat stress: Monitor closely and prepare irrigation if conditions worsen.",
    "low": "Low heat stress: Normal monitoring sufficient, watch for signs of stress.",
    "minimal": "Minimal heat stress: Optimal conditions for plant growth.",
}


def _parse_value(name: str, value: Any) -> float:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{name} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number, got {value!r}") from None
    if math.isnan(number) or math.isinf(number):
        raise ValidationError(f"{name} must be a finite number")
    return number


def validate_microclimate(values: Mapping[str, Any]) -> Dict[str, float]:
    """Check that all four microclimate inputs are present and numeric.

    Returns:
        Dict of the four fields as floats

    Raises:
        ValidationError: On the first missing or non-numeric field
    """
    return {name: _parse_value(name, values.get(name)) for name in MICROCLIMATE_FIELDS}


def _points_above(value: float, tiers: Sequence[Tuple[float, int]]) -> int:
    for bound, points in tiers:
        if value > bound:
            return points
    return 0


def _points_below(value: float, tiers: Sequence[Tuple[float, int]]) -> int:
    for bound, points in tiers:
        if value < bound:
            return points
    return 0


def heat_stress_points(
    air_temperature: float,
    soil_temperature: float,
    soil_moisture: float,
    relative_humidity: float,
) -> int:
    """Additive 0-100 stress score over the four inputs."""
    score = (
        _points_above(air_temperature, AIR_TEMPERATURE_TIERS)
        + _points_above(soil_temperature, SOIL_TEMPERATURE_TIERS)
        + _points_below(soil_moisture, SOIL_MOISTURE_TIERS)
        + _points_below(relative_humidity, HUMIDITY_TIERS)
    )
    return max(0, min(score, 100))


def level_for_points(score: float) -> str:
    for minimum, level in LEVEL_THRESHOLDS:
        if score >= minimum:
            return level
    return "minimal"


def score_heat_stress(
    air_temperature: Any,
    soil_temperature: Any,
    soil_moisture: Any,
    relative_humidity: Any,
) -> str:
    """Heat stress level (minimal .. critical) for one microclimate reading.

    Raises:
        ValidationError: If any input is missing or not numeric
    """
    values = validate_microclimate({
        "air_temperature": air_temperature,
        "soil_temperature": soil_temperature,
        "soil_moisture": soil_moisture,
        "relative_humidity": relative_humidity,
    })
    return level_for_points(heat_stress_points(**values))


def heat_stress_index(level: Optional[str]) -> int:
    """Ordinal 0-4 for a stored level string; unknown or missing map to 0."""
    if not level:
        return 0
    try:
        return HEAT_STRESS_LEVELS.index(str(level).strip().lower())
    except ValueError:
        return 0


def advice_for_heat_stress(level: str) -> str:
    return HEAT_STRESS_ADVICE.get(level, HEAT_STRESS_ADVICE["minimal"])
