"""Heuristic triage of screenshot text: category, entities and sensitivity."""

from __future__ import annotations

import logging
import os
import re
import time
from typing import Callable

from src.content_extractor import TesseractTextExtractor, TextExtractor
from src.schema import (
    OTHER_CONFIDENCE,
    CategoryKey,
    SensitivityFlag,
    TriageResult,
)
from src.text_utils import (
    find_amounts,
    find_dates,
    find_phone_numbers,
    format_medium_date,
)

logger = logging.getLogger(__name__)

MAX_DATES = 3
MAX_AMOUNTS = 3
MAX_PHONES = 2

# Declaration order is the tie-break order when two categories score equally.
CATEGORY_KEYWORDS: dict[CategoryKey, tuple[str, ...]] = {
    CategoryKey.RECEIPT_INVOICE: (
        "total",
        "tax",
        "subtotal",
        "invoice",
        "receipt",
        "payment",
        "$",
        "€",
        "£",
        "amount",
        "qty",
        "price",
        "rechnung",
        "betrag",
    ),
    CategoryKey.EVENT_APPOINTMENT: (
        "calendar",
        "meeting",
        "appointment",
        "event",
        "schedule",
        "termin",
        "besprechung",
        "am",
        "pm",
    ),
    CategoryKey.TODO_NOTE: (
        "todo",
        "task",
        "reminder",
        "note",
        "checklist",
        "aufgabe",
        "erinnerung",
        "notiz",
    ),
    CategoryKey.DESIGN_INSPO: (
        "design",
        "ui",
        "ux",
        "figma",
        "sketch",
        "prototype",
        "mockup",
    ),
    CategoryKey.DOCUMENT_RESEARCH: (
        "abstract",
        "introduction",
        "conclusion",
        "references",
        "section",
        "chapter",
        "einleitung",
        "zusammenfassung",
    ),
    CategoryKey.CHAT_COMMUNICATION: (
        "sent",
        "delivered",
        "read",
        "typing",
        "message",
        "gesendet",
        "zugestellt",
        "gelesen",
    ),
    CategoryKey.SENSITIVE_PRIVATE: (
        "password",
        "ssn",
        "credit card",
        "cvv",
        "passwort",
        "geheim",
        "vertraulich",
    ),
}

CREDIT_CARD_PATTERN = re.compile(r"\b\d{4}[\s-]?\d{4}[\s-]?\d{4}[\s-]?\d{4}\b")
SSN_PATTERN = re.compile(r"\b\d{3}-\d{2}-\d{4}\b")
PASSWORD_KEYWORDS = ("password", "passwort", "kennwort", "pin code", "secret key")
BANKING_KEYWORDS = (
    "account number",
    "routing number",
    "kontonummer",
    "bankleitzahl",
    "iban",
)


def detect_category(text: str) -> tuple[CategoryKey, float]:
    """Score each category by the share of its keywords found in ``text``."""
    lowered = text.lower()
    best_key: CategoryKey | None = None
    best_score = 0.0

    for key, keywords in CATEGORY_KEYWORDS.items():
        match_count = sum(1 for keyword in keywords if keyword in lowered)
        if match_count == 0:
            continue
        score = match_count / len(keywords)
        if score > best_score:
            best_key, best_score = key, score

    if best_key is None:
        return CategoryKey.OTHER, OTHER_CONFIDENCE
    return best_key, min(best_score * 2, 1.0)


def _run_detector(kind: str, detector: Callable[[], list[str]]) -> list[str]:
    try:
        return detector()
    except Exception as exc:
        logger.warning("Entity detection for %s failed: %s", kind, exc)
        return []


def extract_entities(text: str) -> dict[str, str]:
    """Collect dates, amounts and phone numbers keyed ``<kind>_<index>``."""
    entities: dict[str, str] = {}
    date_spans: list[tuple[int, int]] = []

    def _dates() -> list[str]:
        matches = find_dates(text, limit=MAX_DATES)
        date_spans.extend((match.start, match.end) for match in matches)
        return [format_medium_date(match.value) for match in matches]

    found = {
        "date": _run_detector("date", _dates),
        "amount": _run_detector(
            "amount", lambda: find_amounts(text, limit=MAX_AMOUNTS)
        ),
        "phone": _run_detector(
            "phone",
            lambda: find_phone_numbers(
                text, limit=MAX_PHONES, exclude_spans=date_spans
            ),
        ),
    }
    for kind, values in found.items():
        for index, value in enumerate(values):
            entities[f"{kind}_{index}"] = value
    return entities


def detect_sensitivity(text: str) -> list[SensitivityFlag]:
    lowered = text.lower()
    flags: list[SensitivityFlag] = []

    if CREDIT_CARD_PATTERN.search(text):
        flags.append(SensitivityFlag.CREDIT_CARD)
    if any(keyword in lowered for keyword in PASSWORD_KEYWORDS):
        flags.append(SensitivityFlag.PASSWORD)
    if SSN_PATTERN.search(text):
        flags.append(SensitivityFlag.SSN)
    if any(keyword in lowered for keyword in BANKING_KEYWORDS):
        flags.append(SensitivityFlag.BANKING)

    return flags


class TriageClassifier:
    """Classifier for screenshot text using keyword heuristics."""

    def __init__(self, extractor: TextExtractor | None = None) -> None:
        self.extractor = extractor or TesseractTextExtractor()

    def classify(
        self, text: str, image_location: str | os.PathLike[str]
    ) -> TriageResult:
        """Classify a screenshot, running OCR first when ``text`` is empty.

        Pre-supplied text is used verbatim and the extractor is not called.
        Extraction errors propagate to the caller.
        """
        started = time.monotonic()

        if not text:
            logger.debug("No text supplied; running OCR on %s", image_location)
            text = self.extractor.extract_text(image_location)

        category_key, confidence = detect_category(text)
        entities = extract_entities(text)
        sensitivity_flags = detect_sensitivity(text)

        elapsed_ms = int((time.monotonic() - started) * 1000)
        logger.debug(
            "Classified %s as %s (confidence=%.2f, flags=%s) in %dms",
            image_location,
            category_key.value,
            confidence,
            [flag.value for flag in sensitivity_flags],
            elapsed_ms,
        )
        return TriageResult(
            category_key=category_key,
            confidence=confidence,
            extracted_text=text,
            entities=entities,
            sensitivity_flags=sensitivity_flags,
            processing_time_ms=elapsed_ms,
        )
