"""Wires the folder watcher, hasher, classifier and store together."""

from __future__ import annotations

import csv
import logging
import os
import threading
import time
from pathlib import Path

from src.collaborators import DeepAnalyzer, Thumbnailer
from src.config_utils import Settings
from src.errors import ConfigurationError, ScreenshotTriageError, StoreError
from src.folder_watcher import FolderWatcher
from src.hashing import fingerprint_file
from src.schema import ScreenshotRecord
from src.screenshot_store import RecordId, ScreenshotStore
from src.triage_classifier import TriageClassifier

LOGGER_NAME = "screenshot_triage.pipeline"
pipeline_logger = logging.getLogger(LOGGER_NAME)
ingest_logger = logging.getLogger(f"{LOGGER_NAME}.ingest")

UNPROCESSED_LOG_HEADER = ["timestamp", "file_path", "reason", "additional_info"]


class ScreenshotPipeline:
    """Ingests new screenshots: hash, record, classify, persist.

    Per-file failures are logged and recorded in the unprocessed-files log;
    they never propagate to the watcher.
    """

    def __init__(
        self,
        settings: Settings,
        store: ScreenshotStore,
        classifier: TriageClassifier,
        watcher: FolderWatcher | None = None,
        thumbnailer: Thumbnailer | None = None,
        deep_analyzer: DeepAnalyzer | None = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.classifier = classifier
        self.watcher = watcher or FolderWatcher(
            poll_interval=settings.poll_interval,
            extensions=settings.file_extensions,
            max_workers=settings.max_workers,
        )
        self.thumbnailer = thumbnailer
        self.deep_analyzer = deep_analyzer
        self._log_lock = threading.Lock()

    # -- watching ----------------------------------------------------------

    def start(self) -> None:
        """Start watching the configured folder; setup errors propagate."""
        folder = self.settings.watched_folder
        if folder is None:
            raise ConfigurationError("No watched folder configured")
        self.watcher.start_watching(folder, self.ingest_file)
        pipeline_logger.info("Pipeline watching %s", folder)

    def stop(self) -> None:
        """Stop watching and let ingestions already underway finish."""
        self.watcher.stop_watching(wait=True)
        pipeline_logger.info("Pipeline stopped")

    # -- diagnostics -------------------------------------------------------

    def log_unprocessed_file(
        self, file_path: str | os.PathLike[str], reason: str, additional_info: str = ""
    ) -> None:
        """Append a file that couldn't be processed to the CSV log."""
        log_path = self.settings.unprocessed_log_path
        try:
            with self._log_lock:
                log_path.parent.mkdir(parents=True, exist_ok=True)
                file_exists = log_path.exists()
                with log_path.open("a", newline="", encoding="utf-8") as f:
                    writer = csv.writer(f, quoting=csv.QUOTE_ALL)
                    if not file_exists:
                        writer.writerow(UNPROCESSED_LOG_HEADER)
                    writer.writerow(
                        [
                            time.strftime("%Y-%m-%d %H:%M:%S"),
                            str(file_path),
                            reason,
                            additional_info,
                        ]
                    )
        except OSError as exc:
            pipeline_logger.warning(
                "Unable to record unprocessed file %s in %s: %s", file_path, log_path, exc
            )

    # -- ingestion ---------------------------------------------------------

    def _attach_thumbnail(self, record: ScreenshotRecord) -> None:
        if self.thumbnailer is None:
            return
        try:
            record.thumbnail = self.thumbnailer.generate(record.file_location)
        except Exception as exc:
            # Thumbnails are cosmetic; triage continues without one.
            ingest_logger.warning(
                "Thumbnail generation failed for %s: %s", record.file_location, exc
            )

    def ingest_file(self, file_path: str | os.PathLike[str]) -> ScreenshotRecord | None:
        """Ingest one new file. Returns the stored record, or ``None`` on failure."""
        path = Path(file_path)
        started = time.monotonic()
        ingest_logger.info("Ingesting %s", path)

        try:
            content_hash = fingerprint_file(path)
        except OSError as exc:
            ingest_logger.error("Failed to read %s: %s", path, exc)
            self.log_unprocessed_file(path, "hash_failed", str(exc))
            return None

        record = ScreenshotRecord(file_location=str(path), content_hash=content_hash)
        self._attach_thumbnail(record)
        try:
            self.store.save(record)
        except StoreError as exc:
            ingest_logger.error("Failed to store record for %s: %s", path, exc)
            self.log_unprocessed_file(path, "store_failed", str(exc))
            return None

        try:
            triage = self.classifier.classify("", path)
        except ScreenshotTriageError as exc:
            ingest_logger.error("Failed to classify %s: %s", path, exc)
            self.log_unprocessed_file(path, "classification_failed", str(exc))
            return record
        except Exception as exc:
            ingest_logger.exception("Unexpected error classifying %s", path)
            self.log_unprocessed_file(path, "classification_failed", repr(exc))
            return record

        def _apply(stored: ScreenshotRecord) -> None:
            stored.triage = triage

        try:
            updated = self.store.update(record.id, _apply)
        except StoreError as exc:
            ingest_logger.error("Failed to store triage for %s: %s", path, exc)
            self.log_unprocessed_file(path, "store_failed", str(exc))
            return None
        if updated is None:
            ingest_logger.info("Record for %s was deleted during triage; dropping result", path)
            return None
        record = updated

        ingest_logger.info(
            "Ingested %s as %s (confidence=%.2f, sensitive=%s) in %.2fs [%s]",
            path.name,
            record.triage.category_key.value,
            record.triage.confidence,
            record.triage.is_sensitive,
            time.monotonic() - started,
            record.id,
        )
        return record

    def reanalyze(self, record_id: RecordId) -> ScreenshotRecord | None:
        """Re-run OCR and classification for a stored record, overwriting triage.

        Extraction and store errors propagate; returns ``None`` for unknown ids.
        """
        record = self.store.fetch(record_id)
        if record is None:
            pipeline_logger.warning("Cannot reanalyze unknown record %s", record_id)
            return None

        triage = self.classifier.classify("", record.file_location)

        def _apply(stored: ScreenshotRecord) -> None:
            stored.triage = triage

        return self.store.update(record.id, _apply)

    def run_deep_analysis(
        self, record_id: RecordId, *, allow_sensitive: bool = False
    ) -> ScreenshotRecord | None:
        """Run the opted-in cloud analysis for one record and store its result.

        Returns ``None`` when cloud analysis is disabled, unavailable, the record
        is unknown, or the record is sensitive and ``allow_sensitive`` is False.
        """
        if not self.settings.cloud_analysis_enabled:
            pipeline_logger.info("Cloud analysis disabled; skipping %s", record_id)
            return None
        if self.deep_analyzer is None:
            pipeline_logger.warning("No deep analyzer configured; skipping %s", record_id)
            return None

        record = self.store.fetch(record_id)
        if record is None:
            pipeline_logger.warning("Cannot analyze unknown record %s", record_id)
            return None

        sensitive_category = bool(
            record.category_key and record.category_key.is_sensitive_by_default
        )
        if (record.is_sensitive or sensitive_category) and not allow_sensitive:
            pipeline_logger.info("Skipping cloud analysis of sensitive record %s", record.id)
            return None

        result = self.deep_analyzer.analyze(record)

        def _apply(stored: ScreenshotRecord) -> None:
            stored.deep_analysis = result

        return self.store.update(record.id, _apply)
