"""Community-wide pest and heat stress trends.

Both trends share one routine: map each reading to an ordinal 0-4 level,
average the levels and bucket the mean through a threshold table. The two
kinds differ only in their mapper, table, texts and the store fetch.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from classification import category_key, pest_level_for_count
from config import COMMUNITY_WINDOWS, HEAT_STRESS_LEVELS, PEST_CATEGORIES
from heat_stress import heat_stress_index
from models import CommunityTrend
from store import ReadingStore, utc_now

logger = logging.getLogger(__name__)

RECENT_ACTIVITY_WINDOW = timedelta(hours=24)
HIGH_LEVEL = 3


@dataclass(frozen=True)
class TrendBand:
    """Trend assigned when the mean level is at least ``minimum``."""
    minimum: float
    trend: str
    level: str
    confidence: str


@dataclass(frozen=True)
class TrendStats:
    """Figures the description templates may use."""
    average: float
    high_count: int
    total: int
    averages: Dict[str, float]

    @property
    def high_percent(self) -> int:
        return int(self.high_count / self.total * 100 + 0.5)


@dataclass(frozen=True)
class TrendProfile:
    kind: str
    level_of: Callable[[Any], int]
    bands: Tuple[TrendBand, ...]  # highest minimum first; last band has minimum 0
    descriptions: Dict[str, Callable[[TrendStats], str]]
    no_data_level: str
    no_data_description: str
    averaged_fields: Tuple[Tuple[str, str], ...] = ()  # (attribute, output key)


PEST_PROFILE = TrendProfile(
    kind="pest",
    level_of=lambda r: pest_level_for_count(r.estimated_pest_count),
    bands=(
        TrendBand(3.5, "rising_significantly", "high", "high"),
        TrendBand(2.5, "rising_moderately", "moderate", "medium"),
        TrendBand(1.5, "stable_moderate", "moderate", "high"),
        TrendBand(0.0, "stable_low", "low", "high"),
    ),
    descriptions={
        "rising_significantly": lambda s: (
            f"High pest activity detected! {s.high_count} out of {s.total} "
            "recent submissions show high pest counts"
        ),
        "rising_moderately": lambda s: (
            f"Moderate pest activity increasing. {s.high_percent}% of submissions "
            "show elevated pest levels"
        ),
        "stable_moderate": lambda s: (
            "Moderate pest levels sustained. Community activity suggests normal "
            "pest management needed"
        ),
        "stable_low": lambda s: (
            "Low pest activity across community. Good pest management practices observed"
        ),
    },
    no_data_level="low",
    no_data_description="No community data available yet",
)

HEAT_PROFILE = TrendProfile(
    kind="heat",
    level_of=lambda r: heat_stress_index(r.heat_stress_level),
    bands=(
        TrendBand(3.5, "critical_conditions", "critical", "high"),
        TrendBand(2.5, "elevated_conditions", "high", "high"),
        TrendBand(1.5, "moderate_conditions", "moderate", "medium"),
        TrendBand(0.5, "mild_conditions", "low", "medium"),
        TrendBand(0.0, "optimal_conditions", "minimal", "high"),
    ),
    descriptions={
        "critical_conditions": lambda s: (
            f"DANGER: Extreme heat stress detected! {s.high_percent}% of community "
            "experiencing critical conditions"
        ),
        "elevated_conditions": lambda s: (
            "High heat stress across community. "
            f"Avg temp: {s.averages['average_air_temperature']:.1f}°C, "
            f"Humidity: {s.averages['average_humidity']:.1f}%"
        ),
        "moderate_conditions": lambda s: (
            "Moderate heat stress conditions. Community monitoring shows elevated "
            "temperatures and humidity"
        ),
        "mild_conditions": lambda s: (
            "Mild heat stress detected. Environmental conditions trending toward optimal range"
        ),
        "optimal_conditions": lambda s: (
            "Excellent environmental conditions! Community experiencing optimal growing temperatures"
        ),
    },
    no_data_level="minimal",
    no_data_description="No community microclimate data available yet",
    averaged_fields=(
        ("air_temperature", "average_air_temperature"),
        ("relative_humidity", "average_humidity"),
        ("soil_moisture", "average_soil_moisture"),
    ),
)

PROFILES = {"pest": PEST_PROFILE, "heat": HEAT_PROFILE}


def get_profile(kind: str) -> TrendProfile:
    try:
        return PROFILES[kind]
    except KeyError:
        raise ValueError(f"kind must be one of {sorted(PROFILES)}, got {kind!r}") from None


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def count_recent(readings: Sequence[Any], now: datetime) -> int:
    """Readings created within the 24 hours before ``now``."""
    cutoff = _as_utc(now) - RECENT_ACTIVITY_WINDOW
    return sum(
        1 for r in readings
        if r.created_at is not None and _as_utc(r.created_at) > cutoff
    )


def _mean_of(readings: Sequence[Any], attribute: str) -> float:
    return sum(getattr(r, attribute) or 0 for r in readings) / len(readings)


def compute_community_trend(
    readings: Sequence[Any],
    kind: str,
    participation: int = 0,
    now: Optional[datetime] = None,
) -> CommunityTrend:
    """Trend for a window of community readings.

    Args:
        readings: PestReading or MicroclimateReading rows for one area
        kind: "pest" or "heat"
        participation: Distinct submitters in the area (counted by the store)
        now: Reference time for the 24-hour activity count
    """
    profile = get_profile(kind)
    readings = list(readings)

    if not readings:
        return CommunityTrend(
            kind=kind,
            trend="no_data",
            level=profile.no_data_level,
            description=profile.no_data_description,
            participation=0,
            confidence="low",
            recent_activity="No recent submissions",
        )

    levels = [profile.level_of(r) for r in readings]
    average = sum(levels) / len(levels)
    stats = TrendStats(
        average=average,
        high_count=sum(1 for level in levels if level >= HIGH_LEVEL),
        total=len(levels),
        averages={key: _mean_of(readings, attr) for attr, key in profile.averaged_fields},
    )
    band = next(b for b in profile.bands if average >= b.minimum)
    recent = count_recent(readings, now or utc_now())

    return CommunityTrend(
        kind=kind,
        trend=band.trend,
        level=band.level,
        description=profile.descriptions[band.trend](stats),
        participation=participation,
        confidence=band.confidence,
        recent_activity=f"{recent} submissions in last 24 hours",
        average_level=round(average, 1),
        total_submissions=len(readings),
        averages={key: round(value, 1) for key, value in stats.averages.items()},
    )


def error_trend(kind: str) -> CommunityTrend:
    return CommunityTrend(
        kind=kind,
        trend="error",
        level="unknown",
        description="Error analyzing community data",
        participation=0,
        confidence="low",
        recent_activity="Unable to load data",
    )


def _fetch(store: ReadingStore, kind: str, area_id: Optional[str], limit: Optional[int]):
    if kind == "pest":
        return store.get_community_pest_readings(area_id, limit)
    return store.get_community_microclimate_readings(area_id, limit)


def aggregate_community_trend(
    store: ReadingStore,
    area_id: str,
    kind: str,
    filter_type: str = "recent",
    now: Optional[datetime] = None,
) -> CommunityTrend:
    """Fetch an area's community readings and compute their trend.

    ``filter_type`` selects the window: "recent" (50 rows) or "all" (100).
    Failures while fetching or computing are logged and turned into an
    "error" trend instead of propagating.
    """
    get_profile(kind)
    if filter_type not in COMMUNITY_WINDOWS:
        raise ValueError(f"filter_type must be one of {sorted(COMMUNITY_WINDOWS)}, got {filter_type!r}")

    try:
        readings = _fetch(store, kind, area_id, COMMUNITY_WINDOWS[filter_type])
        participation = store.get_participant_count(area_id, kind) if readings else 0
        return compute_community_trend(readings, kind, participation=participation, now=now)
    except Exception as e:
        logger.error(f"Error computing community {kind} trend for area {area_id!r}: {e}", exc_info=True)
        return error_trend(kind)


def count_pest_categories(readings: Sequence[Any]) -> Dict[str, int]:
    """Submissions per stored pest amount category, for chart display."""
    counts = {category_key(c): 0 for c in PEST_CATEGORIES}
    for r in readings:
        key = category_key(r.pest_amount)
        if key in counts:
            counts[key] += 1
    return counts


def count_heat_stress_levels(readings: Sequence[Any]) -> Dict[str, int]:
    """Submissions per stored heat stress level, for chart display."""
    counts = {level: 0 for level in HEAT_STRESS_LEVELS}
    for r in readings:
        level = (r.heat_stress_level or "").strip().lower()
        if level in counts:
            counts[level] += 1
    return counts


def community_category_counts(
    store: ReadingStore,
    area_id: Optional[str],
    kind: str,
    filter_type: str = "recent",
) -> Dict[str, Any]:
    """Category counts over the recent 50 rows, or every row for "all".

    Store failures propagate.
    """
    get_profile(kind)
    limit = COMMUNITY_WINDOWS["recent"] if filter_type == "recent" else None
    readings = _fetch(store, kind, area_id, limit)
    counts = count_pest_categories(readings) if kind == "pest" else count_heat_stress_levels(readings)
    return {"counts": counts, "type": filter_type, "total_submissions": len(readings)}
