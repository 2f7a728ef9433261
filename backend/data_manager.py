import json
import logging
import os
import tempfile
import uuid
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional

from config import get_data_dir
from errors import StoreError
from models import ForecastRecord, MicroclimateReading, PestReading
from store import InMemoryStore, utc_now

logger = logging.getLogger(__name__)

# JSON section -> (row type, id counter)
SECTIONS = {
    'pest': (PestReading, 'pest'),
    'microclimate': (MicroclimateReading, 'heat'),
    'forecasts': (ForecastRecord, 'forecast'),
}


def _dump_row(row) -> Dict[str, Any]:
    data = asdict(row)
    if data.get("created_at") is not None:
        data["created_at"] = data["created_at"].isoformat()
    return data


def _parse_created_at(data: Dict[str, Any]) -> Dict[str, Any]:
    if data.get("created_at"):
        data["created_at"] = datetime.fromisoformat(data["created_at"])
    return data


class DataManager(InMemoryStore):
    """Reading store persisted as JSON files under the data directory.

    All rows are held in memory and the whole file is rewritten after each
    insert. Writers are serialised so the file on disk always holds the
    latest snapshot.
    """

    def __init__(self, base_dir: Optional[Path] = None, clock=utc_now):
        super().__init__(clock=clock)
        self.base_dir = Path(base_dir) if base_dir is not None else get_data_dir()
        self.readings_file = self.base_dir / "readings.json"
        self.uploads_dir = self.base_dir / "uploads"
        self.write_lock = Lock()

        try:
            self.uploads_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreError(f"Cannot create data directory {self.base_dir}: {e}") from e

        self.load()

    def load(self):
        """Load rows from disk; a missing file means an empty store"""
        if not self.readings_file.exists():
            return
        try:
            with open(self.readings_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
            loaded = {
                section: [row_type(**_parse_created_at(r)) for r in data.get(section, [])]
                for section, (row_type, _) in SECTIONS.items()
            }
        except (OSError, ValueError, TypeError, AttributeError) as e:
            raise StoreError(f"Cannot read {self.readings_file}: {e}") from e

        with self.lock:
            self.pest_readings = loaded['pest']
            self.microclimate_readings = loaded['microclimate']
            self.forecasts = loaded['forecasts']
            for section, (_, counter) in SECTIONS.items():
                self._next_id[counter] = max((r.id for r in loaded[section]), default=0) + 1
        logger.info(
            f"Loaded {len(self.pest_readings)} pest, {len(self.microclimate_readings)} microclimate "
            f"and {len(self.forecasts)} forecast rows from {self.readings_file}"
        )

    def _after_write(self):
        # Snapshot and replace under one lock so an older snapshot never lands last.
        with self.write_lock:
            with self.lock:
                data = {
                    'pest': [_dump_row(r) for r in self.pest_readings],
                    'microclimate': [_dump_row(r) for r in self.microclimate_readings],
                    'forecasts': [_dump_row(r) for r in self.forecasts],
                }
            tmp_path = None
            try:
                with tempfile.NamedTemporaryFile(
                    'w', encoding='utf-8', dir=self.base_dir,
                    prefix='readings-', suffix='.tmp', delete=False,
                ) as f:
                    tmp_path = f.name
                    json.dump(data, f, indent=2, ensure_ascii=False)
                os.replace(tmp_path, self.readings_file)
            except OSError as e:
                if tmp_path is not None and os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise StoreError(f"Cannot write {self.readings_file}: {e}") from e

    def save_upload(self, filename: str, data: bytes) -> str:
        """Keep the uploaded trap photo under a unique name and return that name"""
        suffix = Path(filename or "").suffix.lower() or ".jpg"
        path = self.uploads_dir / f"{uuid.uuid4().hex}{suffix}"
        try:
            path.write_bytes(data)
        except OSError as e:
            raise StoreError(f"Cannot save upload {path}: {e}") from e
        return path.name
