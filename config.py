"""Configuration and constants for sticky trap analysis."""

import json
import os
from pathlib import Path
from typing import Dict, Optional


# Segmentation parameters, in the resized image space.
TARGET_SIZE = 640  # longer side after fit-inside resize
MAX_IMAGE_PIXELS = 64_000_000  # refuse to decode larger photos
DARK_THRESHOLD = 90  # 0-255 grayscale; strictly below is "dark"
MIN_BLOB_SIZE = 10  # pixels
MAX_BLOB_SIZES = 50  # blob sizes kept in the analysis payload

SUPPORTED_EXTS = (".png", ".jpg", ".jpeg", ".bmp", ".tif", ".tiff", ".webp")

# Pest amount breakpoints: count <= value maps to the bucket index.
PEST_BREAKPOINTS = (2, 5, 12, 25)
PEST_CATEGORIES = ("very low", "low", "moderate", "high", "very high")
DARK_RATIO_ESCALATION = 0.15

HEAT_STRESS_LEVELS = ("minimal", "low", "moderate", "high", "critical")

# Reading windows fetched from the store.
INDIVIDUAL_WINDOW = 20
HEAT_FORECAST_WINDOW = 10
COMMUNITY_WINDOWS = {"recent": 50, "all": 100}

RECENCY_DECAY = 0.2

DATA_DIR_ENV = "TRAP_DATA_DIR"
DEFAULT_DATA_DIR = Path.home() / ".pest_trap_forecaster"


def get_data_dir() -> Path:
    """Directory holding the reading store and server logs."""
    override = os.getenv(DATA_DIR_ENV)
    return Path(override) if override else DEFAULT_DATA_DIR


def load_analysis_config(config_file: Optional[Path] = None) -> Dict[str, int]:
    """Load segmentation parameters from a JSON file.

    Args:
        config_file: Optional path to a JSON file with any of
            ``target_size``, ``dark_threshold`` and ``min_blob_size``

    Returns:
        Dictionary with all three keys; missing or invalid entries fall back
        to the module defaults.
    """
    default_config = {
        "target_size": TARGET_SIZE,
        "dark_threshold": DARK_THRESHOLD,
        "min_blob_size": MIN_BLOB_SIZE,
    }

    if config_file is None or not config_file.exists():
        return default_config

    try:
        with config_file.open("r", encoding="utf-8") as f:
            config = json.load(f)
        result = default_config.copy()
        result.update({k: v for k, v in config.items() if k in default_config})
        for key in default_config:
            result[key] = int(result[key])
        return result
    except (json.JSONDecodeError, AttributeError, TypeError, ValueError):
        return default_config
