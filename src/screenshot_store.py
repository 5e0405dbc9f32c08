"""Thread-safe, JSON-file-backed repository of screenshot records."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from datetime import datetime
from pathlib import Path
from shutil import copy2
from typing import Callable
from uuid import UUID

from pydantic import ValidationError

from src.config_utils import STORE_FILE_NAME, default_data_dir
from src.errors import StoreReadError, StoreWriteError
from src.schema import CategoryKey, ScreenshotRecord

logger = logging.getLogger(__name__)

RecordId = UUID | str


def _normalize_id(record_id: RecordId) -> UUID | None:
    if isinstance(record_id, UUID):
        return record_id
    try:
        return UUID(str(record_id))
    except ValueError:
        return None


def _newest_first(records: list[ScreenshotRecord]) -> list[ScreenshotRecord]:
    return sorted(records, key=lambda record: record.created_at, reverse=True)


class ScreenshotStore:
    """Keyed store of ``ScreenshotRecord`` objects persisted to one JSON file.

    A single re-entrant lock serializes every read, mutation and write to
    disk, so callers never observe a partially applied change. Records handed
    out are deep copies; mutate them and ``save`` them back, or use ``update``.
    """

    def __init__(self, path: str | os.PathLike[str] | None = None) -> None:
        self.path = Path(path) if path else default_data_dir() / STORE_FILE_NAME
        self._lock = threading.RLock()
        self._records: dict[UUID, ScreenshotRecord] = self._load()

    # -- loading -----------------------------------------------------------

    def _read_records(self) -> list[ScreenshotRecord]:
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise StoreReadError(f"Store {self.path} is not valid JSON: {exc}") from exc
        except OSError as exc:
            raise StoreReadError(f"Unable to read store {self.path}: {exc}") from exc

        if not isinstance(data, list):
            raise StoreReadError(f"Store {self.path} does not contain a record list")
        try:
            return [ScreenshotRecord.model_validate(item) for item in data]
        except ValidationError as exc:
            raise StoreReadError(f"Store {self.path} has invalid records: {exc}") from exc

    def _preserve_corrupt_file(self) -> None:
        timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        backup_path = self.path.with_name(f"{self.path.name}.corrupt-{timestamp}.bak")
        try:
            copy2(self.path, backup_path)
            logger.warning("Preserved unreadable store as %s", backup_path)
        except OSError as exc:
            logger.warning("Unable to preserve unreadable store %s: %s", self.path, exc)

    def _load(self) -> dict[UUID, ScreenshotRecord]:
        if not self.path.exists():
            logger.info("No store at %s; starting empty", self.path)
            return {}

        try:
            records = self._read_records()
        except StoreReadError as exc:
            logger.error("%s; starting with an empty store", exc)
            self._preserve_corrupt_file()
            return {}

        logger.info("Loaded %d screenshot record(s) from %s", len(records), self.path)
        return {record.id: record for record in records}

    # -- persistence -------------------------------------------------------

    def _persist(self) -> None:
        """Write every record to a temp file, then atomically replace the store."""
        data = [record.model_dump(mode="json") for record in self._records.values()]
        temp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f"{self.path.stem}-",
                suffix=".tmp",
                delete=False,
            ) as tmp_file:
                temp_path = Path(tmp_file.name)
                json.dump(data, tmp_file, indent=2)
                tmp_file.flush()
                os.fsync(tmp_file.fileno())
            os.replace(temp_path, self.path)
            temp_path = None
        except OSError as exc:
            logger.warning(
                "Failed to persist store %s; in-memory state is ahead of disk: %s",
                self.path,
                exc,
            )
            raise StoreWriteError(f"Unable to write store {self.path}: {exc}") from exc
        finally:
            if temp_path and temp_path.exists():
                try:
                    temp_path.unlink()
                except OSError:
                    pass

    # -- mutations ---------------------------------------------------------

    def save(self, record: ScreenshotRecord) -> None:
        """Insert or replace ``record`` by id and persist the store."""
        with self._lock:
            self._records[record.id] = record.model_copy(deep=True)
            self._persist()
        logger.debug("Saved screenshot record %s", record.id)

    def update(
        self, record_id: RecordId, mutate: Callable[[ScreenshotRecord], None]
    ) -> ScreenshotRecord | None:
        """Apply ``mutate`` to the stored record atomically and persist it.

        Returns a copy of the updated record, or ``None`` if it does not exist.
        """
        key = _normalize_id(record_id)
        with self._lock:
            current = self._records.get(key) if key else None
            if current is None:
                return None
            updated = current.model_copy(deep=True)
            mutate(updated)
            self._records[updated.id] = updated
            self._persist()
            return updated.model_copy(deep=True)

    def delete(self, record_id: RecordId) -> None:
        """Remove a record by id; unknown ids are ignored."""
        key = _normalize_id(record_id)
        with self._lock:
            if key is None or key not in self._records:
                logger.debug("Delete ignored; no record %s", record_id)
                return
            del self._records[key]
            self._persist()
        logger.debug("Deleted screenshot record %s", record_id)

    # -- queries -----------------------------------------------------------

    def fetch(self, record_id: RecordId) -> ScreenshotRecord | None:
        key = _normalize_id(record_id)
        with self._lock:
            record = self._records.get(key) if key else None
            return record.model_copy(deep=True) if record else None

    def fetch_all(self) -> list[ScreenshotRecord]:
        """Return all records, newest first."""
        with self._lock:
            snapshot = [record.model_copy(deep=True) for record in self._records.values()]
        return _newest_first(snapshot)

    def fetch_by_category(self, category_key: CategoryKey | str) -> list[ScreenshotRecord]:
        return [
            record
            for record in self.fetch_all()
            if record.triage is not None and record.triage.category_key == category_key
        ]

    def fetch_by_hash(self, content_hash: str) -> list[ScreenshotRecord]:
        return [
            record for record in self.fetch_all() if record.content_hash == content_hash
        ]

    def search(self, query: str) -> list[ScreenshotRecord]:
        """Case-insensitive substring search over the OCR text, newest first."""
        lowered_query = query.lower()
        return [
            record
            for record in self.fetch_all()
            if record.triage is not None
            and lowered_query in record.triage.extracted_text.lower()
        ]

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def __len__(self) -> int:
        return self.count()
