"""Exception hierarchy shared by the screenshot triage pipeline."""

from __future__ import annotations

from pathlib import Path


class ScreenshotTriageError(Exception):
    """Base class for all errors raised by this project."""


class ConfigurationError(ScreenshotTriageError):
    """Raised when required settings are missing or invalid."""


class FolderWatcherError(ScreenshotTriageError):
    """Raised when the folder watcher cannot be set up."""

    def __init__(self, folder: str | Path, message: str) -> None:
        self.folder = Path(folder)
        super().__init__(f"{message}: {self.folder}")


class FolderNotFoundError(FolderWatcherError):
    def __init__(self, folder: str | Path) -> None:
        super().__init__(folder, "Folder not found")


class PermissionDeniedError(FolderWatcherError):
    def __init__(self, folder: str | Path) -> None:
        super().__init__(folder, "Permission denied")


class ExtractionError(ScreenshotTriageError):
    """Raised when text cannot be extracted from an image."""


class ImageLoadFailedError(ExtractionError):
    """The file is missing or cannot be decoded as an image."""

    def __init__(self, location: str | Path, reason: str | None = None) -> None:
        self.location = Path(location)
        message = f"Failed to load image: {self.location.name}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class RecognitionFailedError(ExtractionError):
    """The OCR engine failed; the engine error is available as ``__cause__``."""

    def __init__(self, location: str | Path, reason: str) -> None:
        self.location = Path(location)
        super().__init__(f"Text recognition failed for {self.location.name}: {reason}")


class ThumbnailError(ScreenshotTriageError):
    """Raised by thumbnail collaborators."""


class ConversionFailedError(ThumbnailError):
    """The image loaded but could not be converted to a thumbnail."""


class StoreError(ScreenshotTriageError):
    """Raised when the screenshot store cannot read or write its file."""


class StoreReadError(StoreError):
    pass


class StoreWriteError(StoreError):
    pass


__all__ = [
    "ConfigurationError",
    "ConversionFailedError",
    "ExtractionError",
    "FolderNotFoundError",
    "FolderWatcherError",
    "ImageLoadFailedError",
    "PermissionDeniedError",
    "RecognitionFailedError",
    "ScreenshotTriageError",
    "StoreError",
    "StoreReadError",
    "StoreWriteError",
    "ThumbnailError",
]
