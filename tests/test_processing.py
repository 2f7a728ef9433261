"""Tests for the upload and microclimate submission pipelines."""

import pytest

from backend.data_manager import DataManager
from errors import DecodeError, StoreError, ValidationError
from processing import process_image, process_upload, submit_microclimate


def test_process_image_returns_category(trap_png):
    analysis, category = process_image(trap_png)
    assert analysis.blob_count == 3
    assert category == "low"


def test_upload_records_reading_and_forecasts(store, trap_png):
    result = process_upload(store, "ana", "Kenya", trap_png)

    assert result["reading_id"] == 1
    assert result["pest_amount"] == "low"
    assert result["area_id"] == "Kenya"
    assert result["metrics"]["estimated_pest_count"] == 3
    assert result["metrics"]["width"] == 300
    assert result["analysis"]["blob_sizes"] == [25, 25, 25]
    # A single low reading: 100% low share and a calm recent window.
    assert result["risk_score"] == pytest.approx(0.25 * 0.5 * 0.4)
    assert result["risk_level"] == "low"
    assert result["advice"].startswith("Low risk")

    stored = store.get_pest_readings("ana", "Kenya", None)
    assert len(stored) == 1
    assert stored[0].pest_amount == "low"
    assert stored[0].estimated_pest_count == 3
    assert (stored[0].width, stored[0].height) == (300, 200)
    assert stored[0].analysis == result["analysis"]
    assert stored[0].file_name is None

    (forecast,) = store.get_forecasts("ana", "Kenya", None)
    assert forecast.risk_level == result["risk_level"]
    assert forecast.risk_score == pytest.approx(result["risk_score"])
    assert forecast.details["total_readings"] == 1


def test_upload_ids_increase(store, trap_png, clock):
    first = process_upload(store, "ana", "Kenya", trap_png)
    clock.advance(minutes=1)
    second = process_upload(store, "ana", "Kenya", trap_png)
    assert second["reading_id"] == first["reading_id"] + 1


def test_bad_upload_stores_nothing(store):
    with pytest.raises(DecodeError):
        process_upload(store, "ana", "Kenya", b"not a photo")
    assert store.get_community_pest_readings(None, None) == []


def test_submit_microclimate(store):
    result = submit_microclimate(store, "ana", "Kenya", {
        "air_temperature": "36",
        "soil_temperature": 31,
        "soil_moisture": 15,
        "relative_humidity": 20,
    })
    assert result["heat_stress_level"] == "critical"
    assert result["advice"].startswith("Critical heat stress")
    assert result["values"]["air_temperature"] == 36.0

    stored = store.get_microclimate_readings("ana", "Kenya", None)
    assert len(stored) == 1
    assert stored[0].heat_stress_level == "critical"
    assert stored[0].air_temperature == 36.0


def test_invalid_microclimate_stores_nothing(store):
    with pytest.raises(ValidationError):
        submit_microclimate(store, "ana", "Kenya", {
            "air_temperature": "warm",
            "soil_temperature": 31,
            "soil_moisture": 15,
            "relative_humidity": 20,
        })
    assert store.get_community_microclimate_readings(None, None) == []


def test_upload_keeps_photo_and_links_it(tmp_path, trap_png, clock):
    dm = DataManager(tmp_path, clock=clock)
    result = process_upload(dm, "ana", "Kenya", trap_png, "trap.png")

    (reading,) = dm.get_pest_readings("ana", "Kenya", None)
    assert reading.file_name == result["file_name"]
    assert (tmp_path / "uploads" / reading.file_name).read_bytes() == trap_png


def test_failure_to_keep_photo_stores_nothing(store, trap_png, monkeypatch):
    def refuse(filename, data):
        raise StoreError("uploads directory is read-only")

    monkeypatch.setattr(store, "save_upload", refuse)
    with pytest.raises(StoreError):
        process_upload(store, "ana", "Kenya", trap_png, "trap.png")
    assert store.get_community_pest_readings(None, None) == []
    assert store.get_forecasts("ana", None, None) == []


def test_decode_error_keeps_no_photo(tmp_path):
    dm = DataManager(tmp_path)
    with pytest.raises(DecodeError):
        process_upload(dm, "ana", "Kenya", b"not a photo", "trap.png")
    assert list((tmp_path / "uploads").iterdir()) == []
