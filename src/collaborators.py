"""Contracts for collaborators implemented outside this package."""

from __future__ import annotations

import os
from abc import ABC, abstractmethod

from src.schema import (
    DEFAULT_THUMBNAIL_MAX_DIMENSION,
    DEFAULT_THUMBNAIL_QUALITY,
    DeepAnalysisResult,
    ScreenshotRecord,
)


class Thumbnailer(ABC):
    """Produces compressed preview bytes for an image."""

    @abstractmethod
    def generate(
        self,
        image_location: str | os.PathLike[str],
        max_dimension: int = DEFAULT_THUMBNAIL_MAX_DIMENSION,
        quality: float = DEFAULT_THUMBNAIL_QUALITY,
    ) -> bytes:
        """Return preview bytes no larger than ``max_dimension`` on either side.

        ``quality`` is in [0, 1]. Raises ``ImageLoadFailedError`` or
        ``ConversionFailedError``.
        """


class DeepAnalyzer(ABC):
    """Optional cloud enrichment, invoked only when the user opts in."""

    @abstractmethod
    def analyze(self, record: ScreenshotRecord) -> DeepAnalysisResult:
        """Analyze a triaged record and return the result to store verbatim."""
