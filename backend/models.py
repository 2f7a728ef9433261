from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Any, Dict, List, Optional
from enum import Enum


class ReadingKind(str, Enum):
    PEST = "pest"
    HEAT = "heat"


class FilterType(str, Enum):
    RECENT = "recent"
    ALL = "all"


class AreaQuery(BaseModel):
    username: str = Field(min_length=1)
    area_id: str = Field(min_length=1)


class CommunityQuery(BaseModel):
    area_id: Optional[str] = None
    type: FilterType = FilterType.RECENT


class MicroclimateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: str = Field(min_length=1)
    area_id: str = Field(min_length=1, alias="areaId")
    air_temperature: Any = Field(default=None, alias="airTemperature")
    soil_temperature: Any = Field(default=None, alias="soilTemperature")
    soil_moisture: Any = Field(default=None, alias="soilMoisture")
    relative_humidity: Any = Field(default=None, alias="relativeHumidity")


class PestMetrics(BaseModel):
    width: int
    height: int
    dark_pixel_ratio: float
    estimated_pest_count: int


class UploadResponse(BaseModel):
    success: bool = True
    reading_id: int
    pest_amount: str
    risk_level: str
    risk_score: float
    advice: str
    metrics: PestMetrics
    analysis: Dict[str, Any]
    area_id: str
    file_name: Optional[str] = None


class RiskForecastResponse(BaseModel):
    success: bool = True
    area_id: str
    risk_score: float
    risk_level: str
    advice: str
    details: Dict[str, Any]


class MicroclimateResponse(BaseModel):
    success: bool = True
    heat_stress_level: str
    advice: str
    area_id: str
    values: Dict[str, float]


class HeatForecastResponse(BaseModel):
    success: bool = True
    area_id: str
    heat_stress_level: str
    advice: str
    recent_submissions: int
    details: List[Dict[str, Any]] = []


class CommunityTrendResponse(BaseModel):
    success: bool = True
    area_id: str
    kind: ReadingKind
    type: FilterType
    trend: Dict[str, Any]
    generated_at: str


class CategoryCountsResponse(BaseModel):
    success: bool = True
    kind: ReadingKind
    type: FilterType
    counts: Dict[str, int]
    total_submissions: int


class SubmissionsQuery(BaseModel):
    username: str = Field(min_length=1)
    area_id: Optional[str] = None
    limit: int = Field(default=20, ge=1)


class PestSubmission(BaseModel):
    id: int
    area_id: str
    pest_amount: Optional[str] = None
    file_name: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    dark_pixel_ratio: Optional[float] = None
    estimated_pest_count: Optional[int] = None
    created_at: Optional[datetime] = None


class MicroclimateSubmission(BaseModel):
    id: int
    area_id: str
    air_temperature: Optional[float] = None
    soil_temperature: Optional[float] = None
    soil_moisture: Optional[float] = None
    relative_humidity: Optional[float] = None
    heat_stress_level: Optional[str] = None
    created_at: Optional[datetime] = None


class PestSubmissionsResponse(BaseModel):
    success: bool = True
    submissions: List[PestSubmission]
    total: int


class MicroclimateSubmissionsResponse(BaseModel):
    success: bool = True
    submissions: List[MicroclimateSubmission]
    total: int
