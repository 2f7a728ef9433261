"""Core processing pipeline functions."""

import logging
from typing import Any, Dict, Mapping, Optional, Tuple

from classification import advice_for_risk_level, classify_pest_amount
from config import DARK_THRESHOLD, MIN_BLOB_SIZE, TARGET_SIZE
from detection import segment_image
from forecasting import forecast_for_area
from heat_stress import advice_for_heat_stress, heat_stress_points, level_for_points, validate_microclimate
from image_io import ImageSource
from models import AnalysisResult
from store import ReadingStore

logger = logging.getLogger(__name__)


def process_image(
    source: ImageSource,
    target_size: int = TARGET_SIZE,
    threshold: int = DARK_THRESHOLD,
    min_blob_size: int = MIN_BLOB_SIZE,
) -> Tuple[AnalysisResult, str]:
    """Segment one trap image and classify its pest amount.

    Returns:
        Tuple of (analysis, pest_amount_category)
    """
    analysis = segment_image(
        source,
        target_size=target_size,
        threshold=threshold,
        min_blob_size=min_blob_size,
    )
    category = classify_pest_amount(analysis.estimated_pest_count, analysis.dark_pixel_ratio)
    return analysis, category


def process_upload(
    store: ReadingStore,
    username: str,
    area_id: str,
    data: bytes,
    upload_name: Optional[str] = None,
) -> Dict[str, Any]:
    """Analyse an uploaded trap photo, record it and refresh the forecast.

    Order: analyse, keep the photo, insert the reading, store the forecast.
    A DecodeError or a failure to keep the photo leaves no reading behind.

    Args:
        data: Raw image bytes
        upload_name: Client-side file name; when given the store is asked
            to keep the photo and the reading is linked to it
    """
    analysis, category = process_image(data)
    logger.info(
        f"Trap analysed for {username}/{area_id}: {analysis.blob_count} blobs, "
        f"dark ratio {analysis.dark_pixel_ratio:.3f}, category {category}"
    )

    file_name = store.save_upload(upload_name, data) if upload_name is not None else None

    reading = store.add_pest_reading(
        username,
        area_id,
        dark_pixel_ratio=analysis.dark_pixel_ratio,
        estimated_pest_count=analysis.estimated_pest_count,
        pest_amount=category,
        width=analysis.width,
        height=analysis.height,
        file_name=file_name,
        analysis=analysis.to_dict(),
    )
    forecast = forecast_for_area(store, username, area_id)
    store.add_forecast(username, area_id, **forecast.to_dict())

    return {
        "file_name": file_name,
        "reading_id": reading.id,
        "pest_amount": category,
        "risk_level": forecast.risk_level,
        "risk_score": forecast.risk_score,
        "advice": advice_for_risk_level(forecast.risk_level),
        "metrics": {
            "width": analysis.width,
            "height": analysis.height,
            "dark_pixel_ratio": analysis.dark_pixel_ratio,
            "estimated_pest_count": analysis.estimated_pest_count,
        },
        "analysis": analysis.to_dict(),
        "area_id": area_id,
    }


def submit_microclimate(
    store: ReadingStore,
    username: str,
    area_id: str,
    values: Mapping[str, Any],
) -> Dict[str, Any]:
    """Validate, score and record one microclimate reading.

    Raises:
        ValidationError: Before anything is stored, if an input is invalid
    """
    parsed = validate_microclimate(values)
    level = level_for_points(heat_stress_points(**parsed))
    store.add_microclimate_reading(username, area_id, heat_stress_level=level, **parsed)
    logger.info(f"Microclimate recorded for {username}/{area_id}: {level}")

    return {
        "heat_stress_level": level,
        "advice": advice_for_heat_stress(level),
        "area_id": area_id,
        "values": parsed,
    }
