"""Analysis record store — one JSON file per saved upload under DATA_DIR."""

import json
import os
import re
from pathlib import Path

from loguru import logger
from pydantic import ValidationError

from config.schemas import AnalysisListItem, AnalysisRecord


DATA_DIR = os.getenv("DATA_DIR", "data/analyses")

_RECORD_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")


class RecordNotFoundError(KeyError):
    """No saved analysis with the requested id."""


def validate_record_id(record_id: str) -> str:
    if not record_id or not _RECORD_ID_RE.match(record_id):
        raise ValueError(f"Invalid analysis id: {record_id!r}")
    return record_id


class RecordStore:
    def __init__(self, data_dir: str | Path | None = None):
        self.data_dir = Path(data_dir or DATA_DIR)

    def _path(self, record_id: str) -> Path:
        return self.data_dir / f"{validate_record_id(record_id)}.json"

    def save(self, record: AnalysisRecord) -> AnalysisRecord:
        if record.id is None:
            raise ValueError("Cannot save a record without an id")
        self.data_dir.mkdir(parents=True, exist_ok=True)
        path = self._path(record.id)
        path.write_text(json.dumps(record.model_dump(by_alias=True, mode="json"), indent=2), encoding="utf-8")
        logger.info(f"Saved analysis {record.id} → {path}")
        return record

    def get(self, record_id: str) -> AnalysisRecord:
        path = self._path(record_id)
        if not path.exists():
            raise RecordNotFoundError(record_id)
        return AnalysisRecord.model_validate_json(path.read_text(encoding="utf-8"))

    def list_items(self, include_hidden: bool = True) -> list[AnalysisListItem]:
        """Summaries of every readable record, newest first."""
        if not self.data_dir.exists():
            return []

        items = []
        for path in self.data_dir.glob("*.json"):
            try:
                record = AnalysisRecord.model_validate_json(path.read_text(encoding="utf-8"))
            except (OSError, ValidationError) as e:
                logger.warning(f"Skipping unreadable record {path.name}: {e}")
                continue
            if record.hidden and not include_hidden:
                continue
            items.append(AnalysisListItem(
                id=record.id or path.stem,
                created_at=record.created_at,
                file_name=record.file_name,
                hidden=record.hidden,
            ))
        items.sort(key=lambda item: item.created_at, reverse=True)
        return items

    def set_hidden(self, record_id: str, hidden: bool) -> AnalysisRecord:
        record = self.get(record_id)
        record.hidden = hidden
        self.save(record)
        logger.info(f"Analysis {record_id} {'hidden' if hidden else 'unhidden'}")
        return record

    def delete(self, record_id: str) -> None:
        path = self._path(record_id)
        if not path.exists():
            raise RecordNotFoundError(record_id)
        path.unlink()
        logger.info(f"Deleted analysis {record_id}")

    def clear_all(self) -> list[str]:
        """Delete every record file. Returns one error string per file that could not be removed."""
        if not self.data_dir.exists():
            return []
        errors = []
        for path in self.data_dir.glob("*.json"):
            try:
                path.unlink()
            except OSError as e:
                logger.error(f"Failed to delete {path.name}: {e}")
                errors.append(f"Failed to delete {path.name}: {e}")
        logger.info(f"Cleared analyses in {self.data_dir} ({len(errors)} errors)")
        return errors
