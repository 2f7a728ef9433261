"""Data models for sticky trap analysis and risk scoring."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple


@dataclass
class Blob:
    """An accepted 4-connected dark region."""
    size: int  # pixel count
    centroid: Tuple[float, float]  # (x, y)
    bounding_box: Tuple[int, int, int, int]  # (x, y, width, height)


@dataclass
class AnalysisResult:
    """Result of segmenting one trap image."""
    width: int
    height: int
    threshold: int
    min_blob_size: int
    dark_pixel_ratio: float
    blob_count: int
    blob_sizes: List[int]  # first MAX_BLOB_SIZES, raster order
    blobs: List[Blob] = field(default_factory=list, repr=False)

    @property
    def estimated_pest_count(self) -> int:
        return self.blob_count

    def to_dict(self) -> Dict[str, Any]:
        """Payload persisted alongside the reading (blob geometry excluded)."""
        return {
            "width": self.width,
            "height": self.height,
            "threshold": self.threshold,
            "min_blob_size": self.min_blob_size,
            "dark_pixel_ratio": self.dark_pixel_ratio,
            "blob_count": self.blob_count,
            "blob_sizes": list(self.blob_sizes),
        }


@dataclass
class PestReading:
    """One stored trap analysis, as returned by the reading store."""
    id: int
    dark_pixel_ratio: Optional[float]
    estimated_pest_count: Optional[int]
    username: str = ""
    area_id: str = ""
    pest_amount: Optional[str] = None
    created_at: Optional[datetime] = None
    width: Optional[int] = None
    height: Optional[int] = None
    file_name: Optional[str] = None  # saved photo, if the store keeps uploads
    analysis: Optional[Dict[str, Any]] = None  # AnalysisResult.to_dict()


@dataclass
class MicroclimateReading:
    """One stored microclimate submission."""
    id: int
    air_temperature: Optional[float]
    soil_temperature: Optional[float]
    soil_moisture: Optional[float]
    relative_humidity: Optional[float]
    heat_stress_level: Optional[str]
    username: str = ""
    area_id: str = ""
    created_at: Optional[datetime] = None


@dataclass
class RiskAssessment:
    """Recency-weighted pest risk for one (user, area) pair."""
    risk_score: float
    risk_level: str
    details: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ForecastRecord:
    """A risk assessment as stored after each upload."""
    id: int
    username: str
    area_id: str
    horizon_minutes: int
    risk_score: float
    risk_level: str
    details: Dict[str, Any]
    created_at: Optional[datetime] = None


@dataclass
class HeatStressForecast:
    """Heat stress outlook from a user's most recent microclimate readings."""
    heat_stress_level: str
    advice: str
    recent_submissions: int
    details: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CommunityTrend:
    """Area-wide trend for pest or heat stress readings.

    ``level`` holds the risk level for pest trends and the heat stress level
    for heat trends.
    """
    kind: str
    trend: str
    level: str
    description: str
    participation: int
    confidence: str
    recent_activity: str
    average_level: Optional[float] = None
    total_submissions: int = 0
    averages: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        level_key = "risk_level" if self.kind == "pest" else "heat_stress_level"
        payload: Dict[str, Any] = {
            "trend": self.trend,
            level_key: self.level,
            "trend_description": self.description,
            "participation": self.participation,
            "confidence": self.confidence,
            "recent_activity": self.recent_activity,
            "total_submissions": self.total_submissions,
        }
        if self.average_level is not None:
            payload["average_level"] = self.average_level
        payload.update(self.averages)
        return payload
