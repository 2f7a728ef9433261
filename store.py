"""Reading store interface and the in-memory implementation."""

import copy
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Callable, Dict, List, Optional, Protocol

from errors import StoreError
from models import ForecastRecord, MicroclimateReading, PestReading

FORECAST_HORIZON_MINUTES = 60


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ReadingStore(Protocol):
    """Narrow read/write interface the analysis core needs from persistence.

    Per-user fetches are ordered most recent first by id; community fetches
    most recent first by ``created_at``. ``limit=None`` returns everything.
    ``area_id=None`` spans all areas.
    """

    def get_pest_readings(
        self, username: str, area_id: Optional[str], limit: Optional[int]
    ) -> List[PestReading]: ...

    def get_community_pest_readings(self, area_id: Optional[str], limit: Optional[int]) -> List[PestReading]: ...

    def get_microclimate_readings(
        self, username: str, area_id: Optional[str], limit: Optional[int]
    ) -> List[MicroclimateReading]: ...

    def get_community_microclimate_readings(
        self, area_id: Optional[str], limit: Optional[int]
    ) -> List[MicroclimateReading]: ...

    def get_participant_count(self, area_id: str, kind: str = "pest") -> int: ...

    def get_forecasts(
        self, username: str, area_id: Optional[str], limit: Optional[int]
    ) -> List[ForecastRecord]: ...

    def add_pest_reading(
        self,
        username: str,
        area_id: str,
        dark_pixel_ratio: float,
        estimated_pest_count: int,
        pest_amount: Optional[str] = None,
        width: Optional[int] = None,
        height: Optional[int] = None,
        file_name: Optional[str] = None,
        analysis: Optional[Dict[str, Any]] = None,
    ) -> PestReading: ...

    def add_microclimate_reading(
        self,
        username: str,
        area_id: str,
        air_temperature: float,
        soil_temperature: float,
        soil_moisture: float,
        relative_humidity: float,
        heat_stress_level: str,
    ) -> MicroclimateReading: ...

    def add_forecast(
        self,
        username: str,
        area_id: str,
        risk_score: float,
        risk_level: str,
        details: Dict[str, Any],
        horizon_minutes: int = FORECAST_HORIZON_MINUTES,
    ) -> ForecastRecord: ...

    def save_upload(self, filename: str, data: bytes) -> Optional[str]: ...


def _by_created_at(row) -> tuple:
    created = row.created_at or datetime.min.replace(tzinfo=timezone.utc)
    return created, row.id


def _in_area(row, area_id: Optional[str]) -> bool:
    return area_id is None or row.area_id == area_id


class InMemoryStore:
    """Thread-safe in-process store; also the base for file-backed stores.

    Rows handed out are deep copies, so callers cannot mutate stored state.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self.clock = clock
        self.pest_readings: List[PestReading] = []
        self.microclimate_readings: List[MicroclimateReading] = []
        self.forecasts: List[ForecastRecord] = []
        self.lock = Lock()
        self._next_id: Dict[str, int] = {"pest": 1, "heat": 1, "forecast": 1}

    def _take_id(self, kind: str) -> int:
        value = self._next_id[kind]
        self._next_id[kind] = value + 1
        return value

    @staticmethod
    def _limit(rows: list, limit: Optional[int]) -> list:
        if limit is None:
            return rows
        if limit < 0:
            raise StoreError(f"limit must be >= 0, got {limit}")
        return rows[:limit]

    def _user_rows(self, source: list, username: str, area_id: Optional[str], limit: Optional[int]) -> list:
        with self.lock:
            rows = [copy.deepcopy(r) for r in source if r.username == username and _in_area(r, area_id)]
        rows.sort(key=lambda r: r.id, reverse=True)
        return self._limit(rows, limit)

    def _area_rows(self, source: list, area_id: Optional[str], limit: Optional[int]) -> list:
        with self.lock:
            rows = [copy.deepcopy(r) for r in source if _in_area(r, area_id)]
        rows.sort(key=_by_created_at, reverse=True)
        return self._limit(rows, limit)

    def get_pest_readings(
        self, username: str, area_id: Optional[str], limit: Optional[int]
    ) -> List[PestReading]:
        return self._user_rows(self.pest_readings, username, area_id, limit)

    def get_community_pest_readings(self, area_id: Optional[str], limit: Optional[int]) -> List[PestReading]:
        return self._area_rows(self.pest_readings, area_id, limit)

    def get_microclimate_readings(
        self, username: str, area_id: Optional[str], limit: Optional[int]
    ) -> List[MicroclimateReading]:
        return self._user_rows(self.microclimate_readings, username, area_id, limit)

    def get_community_microclimate_readings(
        self, area_id: Optional[str], limit: Optional[int]
    ) -> List[MicroclimateReading]:
        return self._area_rows(self.microclimate_readings, area_id, limit)

    def get_forecasts(
        self, username: str, area_id: Optional[str], limit: Optional[int]
    ) -> List[ForecastRecord]:
        return self._user_rows(self.forecasts, username, area_id, limit)

    def get_participant_count(self, area_id: str, kind: str = "pest") -> int:
        if kind == "pest":
            source = self.pest_readings
        elif kind == "heat":
            source = self.microclimate_readings
        else:
            raise StoreError(f"Unknown reading kind: {kind}")
        with self.lock:
            return len({r.username for r in source if r.area_id == area_id})

    def _insert(self, source: list, row):
        source.append(row)
        return copy.deepcopy(row)

    def add_pest_reading(
        self,
        username: str,
        area_id: str,
        dark_pixel_ratio: float,
        estimated_pest_count: int,
        pest_amount: Optional[str] = None,
        width: Optional[int] = None,
        height: Optional[int] = None,
        file_name: Optional[str] = None,
        analysis: Optional[Dict[str, Any]] = None,
    ) -> PestReading:
        with self.lock:
            reading = self._insert(self.pest_readings, PestReading(
                id=self._take_id("pest"),
                dark_pixel_ratio=dark_pixel_ratio,
                estimated_pest_count=estimated_pest_count,
                username=username,
                area_id=area_id,
                pest_amount=pest_amount,
                created_at=self.clock(),
                width=width,
                height=height,
                file_name=file_name,
                analysis=copy.deepcopy(analysis),
            ))
        self._after_write()
        return reading

    def add_microclimate_reading(
        self,
        username: str,
        area_id: str,
        air_temperature: float,
        soil_temperature: float,
        soil_moisture: float,
        relative_humidity: float,
        heat_stress_level: str,
    ) -> MicroclimateReading:
        with self.lock:
            reading = self._insert(self.microclimate_readings, MicroclimateReading(
                id=self._take_id("heat"),
                air_temperature=air_temperature,
                soil_temperature=soil_temperature,
                soil_moisture=soil_moisture,
                relative_humidity=relative_humidity,
                heat_stress_level=heat_stress_level,
                username=username,
                area_id=area_id,
                created_at=self.clock(),
            ))
        self._after_write()
        return reading

    def add_forecast(
        self,
        username: str,
        area_id: str,
        risk_score: float,
        risk_level: str,
        details: Dict[str, Any],
        horizon_minutes: int = FORECAST_HORIZON_MINUTES,
    ) -> ForecastRecord:
        with self.lock:
            record = self._insert(self.forecasts, ForecastRecord(
                id=self._take_id("forecast"),
                username=username,
                area_id=area_id,
                horizon_minutes=horizon_minutes,
                risk_score=risk_score,
                risk_level=risk_level,
                details=copy.deepcopy(details),
                created_at=self.clock(),
            ))
        self._after_write()
        return record

    def _after_write(self) -> None:
        """Hook for subclasses that persist after each insert."""

    def save_upload(self, filename: str, data: bytes) -> Optional[str]:
        """Keep an uploaded photo; returns its stored name, or None if photos are not kept."""
        return None
