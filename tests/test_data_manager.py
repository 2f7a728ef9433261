"""Tests for the JSON-backed reading store."""

import json
import threading

import pytest

from backend.data_manager import DataManager
from errors import StoreError
from store import InMemoryStore


def test_empty_directory_is_empty_store(tmp_path, clock):
    dm = DataManager(tmp_path, clock=clock)
    assert dm.get_community_pest_readings(None, None) == []
    assert (tmp_path / "uploads").is_dir()


def test_readings_survive_restart(tmp_path, clock):
    dm = DataManager(tmp_path, clock=clock)
    created = clock()
    dm.add_pest_reading("ana", "Kenya", 0.02, 7, pest_amount="moderate")
    clock.advance(hours=1)
    dm.add_microclimate_reading("ana", "Kenya", 36, 31, 15, 20, "critical")

    reloaded = DataManager(tmp_path, clock=clock)
    pest = reloaded.get_pest_readings("ana", "Kenya", None)
    heat = reloaded.get_microclimate_readings("ana", "Kenya", None)
    assert len(pest) == 1
    assert pest[0].pest_amount == "moderate"
    assert pest[0].created_at == created
    assert heat[0].heat_stress_level == "critical"
    assert reloaded.get_participant_count("Kenya", "heat") == 1


def test_ids_continue_after_reload(tmp_path, clock):
    dm = DataManager(tmp_path, clock=clock)
    dm.add_pest_reading("ana", "Kenya", 0.0, 0)
    dm.add_pest_reading("ana", "Kenya", 0.0, 0)

    reloaded = DataManager(tmp_path, clock=clock)
    assert reloaded.add_pest_reading("ana", "Kenya", 0.0, 0).id == 3
    assert reloaded.add_microclimate_reading("ana", "Kenya", 20, 20, 50, 60, "minimal").id == 1


def test_file_is_plain_json(tmp_path, clock):
    DataManager(tmp_path, clock=clock).add_pest_reading("ana", "Kenya", 0.5, 2)
    data = json.loads((tmp_path / "readings.json").read_text(encoding="utf-8"))
    assert data["pest"][0]["username"] == "ana"
    assert data["pest"][0]["created_at"].startswith("2026-06-01T12:00:00")
    assert data["microclimate"] == []
    assert list(tmp_path.glob("*.tmp")) == []


def test_corrupt_file_raises_store_error(tmp_path):
    (tmp_path / "readings.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(StoreError):
        DataManager(tmp_path)


def test_unexpected_fields_raise_store_error(tmp_path):
    (tmp_path / "readings.json").write_text(json.dumps({"pest": [{"id": 1, "colour": "red"}]}), encoding="utf-8")
    with pytest.raises(StoreError):
        DataManager(tmp_path)


def test_save_upload(tmp_path):
    dm = DataManager(tmp_path)
    first = dm.save_upload("Trap.PNG", b"abc")
    second = dm.save_upload("Trap.PNG", b"def")
    assert first.endswith(".png")
    assert first != second
    assert (tmp_path / "uploads" / first).read_bytes() == b"abc"


def test_concurrent_inserts_all_succeed_and_persist(tmp_path):
    dm = DataManager(tmp_path)
    errors = []

    def insert_many(user):
        for _ in range(30):
            try:
                dm.add_pest_reading(user, "Kenya", 0.01, 1)
            except StoreError as e:
                errors.append(e)

    threads = [threading.Thread(target=insert_many, args=(f"user{i}",)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    on_disk = json.loads((tmp_path / "readings.json").read_text(encoding="utf-8"))
    assert len(on_disk["pest"]) == 240
    assert sorted(r["id"] for r in on_disk["pest"]) == list(range(1, 241))
    assert list(tmp_path.glob("*.tmp")) == []


def test_failed_write_raises_store_error_and_cleans_up(tmp_path, monkeypatch):
    dm = DataManager(tmp_path)

    def refuse(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr("backend.data_manager.os.replace", refuse)
    with pytest.raises(StoreError, match="disk full"):
        dm.add_pest_reading("ana", "Kenya", 0.01, 1)
    assert list(tmp_path.glob("*.tmp")) == []


def test_image_metadata_and_forecasts_survive_restart(tmp_path, clock):
    dm = DataManager(tmp_path, clock=clock)
    dm.add_pest_reading(
        "ana", "Kenya", 0.02, 7, pest_amount="moderate",
        width=640, height=480, file_name="abc.png", analysis={"blob_sizes": [12, 30]},
    )
    dm.add_forecast("ana", "Kenya", 0.4, "low", {"total_readings": 1})

    reloaded = DataManager(tmp_path, clock=clock)
    (reading,) = reloaded.get_pest_readings("ana", "Kenya", None)
    assert (reading.width, reading.height, reading.file_name) == (640, 480, "abc.png")
    assert reading.analysis == {"blob_sizes": [12, 30]}
    (forecast,) = reloaded.get_forecasts("ana", "Kenya", None)
    assert forecast.horizon_minutes == 60
    assert forecast.details == {"total_readings": 1}
    assert reloaded.add_forecast("ana", "Kenya", 0.1, "low", {}).id == 2


def test_file_without_forecasts_section_loads(tmp_path):
    (tmp_path / "readings.json").write_text(json.dumps({"pest": [], "microclimate": []}), encoding="utf-8")
    assert DataManager(tmp_path).get_forecasts("ana", None, None) == []


def test_data_dir_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("TRAP_DATA_DIR", str(tmp_path / "elsewhere"))
    dm = DataManager()
    assert dm.base_dir == tmp_path / "elsewhere"


class TestInMemoryStore:

    def test_user_readings_newest_first(self, store, clock):
        for count in (1, 2, 3):
            store.add_pest_reading("ana", "Kenya", 0.0, count)
            clock.advance(minutes=1)
        assert [r.estimated_pest_count for r in store.get_pest_readings("ana", "Kenya", 2)] == [3, 2]

    def test_returns_copies(self, store):
        store.add_pest_reading("ana", "Kenya", 0.0, 1)
        store.get_pest_readings("ana", "Kenya", None)[0].estimated_pest_count = 99
        assert store.get_pest_readings("ana", "Kenya", None)[0].estimated_pest_count == 1

    def test_negative_limit(self, store):
        with pytest.raises(StoreError):
            store.get_community_pest_readings("Kenya", -1)

    def test_unknown_participant_kind(self, store):
        with pytest.raises(StoreError):
            store.get_participant_count("Kenya", "rain")

    def test_default_clock_is_timezone_aware(self):
        reading = InMemoryStore().add_pest_reading("ana", "Kenya", 0.0, 1)
        assert reading.created_at.tzinfo is not None

    def test_user_readings_across_areas(self, store, clock):
        store.add_pest_reading("ana", "Kenya", 0.0, 1)
        clock.advance(minutes=1)
        store.add_pest_reading("ana", "Peru", 0.0, 2)
        store.add_pest_reading("ben", "Peru", 0.0, 3)
        assert [r.area_id for r in store.get_pest_readings("ana", None, None)] == ["Peru", "Kenya"]

    def test_stored_analysis_is_detached(self, store):
        analysis = {"blob_sizes": [10]}
        store.add_pest_reading("ana", "Kenya", 0.0, 1, analysis=analysis)
        analysis["blob_sizes"].append(99)
        store.get_pest_readings("ana", "Kenya", None)[0].analysis["blob_sizes"].append(42)
        assert store.get_pest_readings("ana", "Kenya", None)[0].analysis == {"blob_sizes": [10]}

    def test_save_upload_keeps_nothing(self, store):
        assert store.save_upload("trap.png", b"abc") is None
