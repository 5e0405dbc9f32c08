"""Text extraction from screenshot images."""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path

import cv2
import numpy as np
import pytesseract
from PIL import Image, UnidentifiedImageError

from src.errors import ImageLoadFailedError, RecognitionFailedError

logger = logging.getLogger(__name__)

DEFAULT_OCR_LANGUAGES = ("eng", "deu")
# LSTM engine with automatic page segmentation; accuracy over speed.
TESSERACT_CONFIG = "--oem 1 --psm 3"


class TextExtractor(ABC):
    """Produces the text shown in an image file."""

    @abstractmethod
    def extract_text(self, image_location: str | os.PathLike[str]) -> str:
        """Return the recognized text, or an empty string when there is none.

        Raises
        ------
        ImageLoadFailedError
            The file is missing or is not a decodable image.
        RecognitionFailedError
            The recognition engine failed.
        """


def preprocess_for_ocr(image: Image.Image, threshold: int = 180) -> Image.Image:
    """Convert an image to grayscale and apply binary thresholding for OCR.

    Parameters
    ----------
    image:
        The input PIL image to preprocess.
    threshold:
        Threshold value (0-255) applied after grayscale conversion. Otsu's
        method refines it per image. Defaults to 180.

    Returns
    -------
    Image.Image
        A PIL image converted to grayscale and thresholded for OCR pipelines.
    """

    if image.mode != "L":
        grayscale = image.convert("L")
    else:
        grayscale = image

    grayscale_array = np.array(grayscale)

    _, binary_array = cv2.threshold(
        grayscale_array, threshold, 255, cv2.THRESH_BINARY | cv2.THRESH_OTSU
    )

    return Image.fromarray(binary_array)


def _normalize_ocr_output(raw_text: str) -> str:
    lines = (line.strip() for line in raw_text.splitlines())
    return "\n".join(line for line in lines if line)


class TesseractTextExtractor(TextExtractor):
    """Tesseract-backed extractor recognizing several languages at once."""

    def __init__(
        self,
        languages: tuple[str, ...] | list[str] = DEFAULT_OCR_LANGUAGES,
        *,
        preprocess: bool = True,
    ) -> None:
        if not languages:
            raise ValueError("At least one OCR language is required")
        self.languages = tuple(languages)
        self.preprocess = preprocess

    @property
    def language_spec(self) -> str:
        return "+".join(self.languages)

    def _load_image(self, path: Path) -> Image.Image:
        try:
            with Image.open(path) as handle:
                handle.load()
                return handle.copy()
        except FileNotFoundError as exc:
            raise ImageLoadFailedError(path, "file not found") from exc
        except UnidentifiedImageError as exc:
            raise ImageLoadFailedError(path, "not a recognized image") from exc
        except OSError as exc:
            raise ImageLoadFailedError(path, str(exc)) from exc

    def extract_text(self, image_location: str | os.PathLike[str]) -> str:
        path = Path(image_location)
        logger.debug("Extracting text from image: %s", path)

        image = self._load_image(path)
        if self.preprocess:
            image = preprocess_for_ocr(image)

        try:
            raw_text = pytesseract.image_to_string(
                image, lang=self.language_spec, config=TESSERACT_CONFIG
            )
        except pytesseract.TesseractNotFoundError as exc:
            raise RecognitionFailedError(path, "tesseract is not installed") from exc
        except (pytesseract.TesseractError, RuntimeError) as exc:
            raise RecognitionFailedError(path, str(exc)) from exc

        text = _normalize_ocr_output(raw_text)
        logger.debug("Extracted %d characters from %s", len(text), path.name)
        return text
