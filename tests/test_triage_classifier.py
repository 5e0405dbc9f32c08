import unittest
from unittest.mock import MagicMock, patch

import pytest

from src.content_extractor import TextExtractor
from src.errors import ImageLoadFailedError
from src.schema import CategoryKey, SensitivityFlag
from src.triage_classifier import (
    CATEGORY_KEYWORDS,
    TriageClassifier,
    detect_category,
    detect_sensitivity,
    extract_entities,
)


class TestTriageClassifier(unittest.TestCase):
    def setUp(self):
        self.extractor = MagicMock(spec=TextExtractor)
        self.extractor.extract_text.return_value = "Invoice total $12.00"
        self.classifier = TriageClassifier(self.extractor)

    def test_supplied_text_skips_ocr(self):
        result = self.classifier.classify("Password: secret123", "/tmp/x.png")

        self.extractor.extract_text.assert_not_called()
        self.assertEqual(result.extracted_text, "Password: secret123")
        self.assertEqual(result.category_key, CategoryKey.SENSITIVE_PRIVATE)
        self.assertIn(SensitivityFlag.PASSWORD, result.sensitivity_flags)
        self.assertTrue(result.is_sensitive)

    def test_empty_text_runs_ocr(self):
        result = self.classifier.classify("", "/tmp/receipt.png")

        self.extractor.extract_text.assert_called_once_with("/tmp/receipt.png")
        self.assertEqual(result.extracted_text, "Invoice total $12.00")
        self.assertEqual(result.category_key, CategoryKey.RECEIPT_INVOICE)
        self.assertEqual(result.entities, {"amount_0": "$12.00"})
        self.assertGreaterEqual(result.processing_time_ms, 0)

    def test_extraction_errors_propagate(self):
        self.extractor.extract_text.side_effect = ImageLoadFailedError("/tmp/gone.png")

        with self.assertRaises(ImageLoadFailedError):
            self.classifier.classify("", "/tmp/gone.png")

    def test_blank_ocr_output_is_other(self):
        self.extractor.extract_text.return_value = ""

        result = self.classifier.classify("", "/tmp/blank.png")

        self.assertEqual(result.category_key, CategoryKey.OTHER)
        self.assertEqual(result.confidence, 0.3)
        self.assertEqual(result.entities, {})
        self.assertEqual(result.sensitivity_flags, [])

    def test_receipt_with_date_and_amount(self):
        result = self.classifier.classify(
            "Total $42.50 due March 3, 2024", "/tmp/receipt.png"
        )

        self.assertEqual(result.category_key, CategoryKey.RECEIPT_INVOICE)
        self.assertEqual(
            result.entities, {"date_0": "Mar 3, 2024", "amount_0": "$42.50"}
        )
        self.assertFalse(result.is_sensitive)


def test_detect_category_without_keywords_is_other():
    assert detect_category("xyz 123") == (CategoryKey.OTHER, 0.3)


def test_detect_category_scales_keyword_share():
    key, confidence = detect_category("Password: secret123")
    assert key is CategoryKey.SENSITIVE_PRIVATE
    assert confidence == pytest.approx(2 / len(CATEGORY_KEYWORDS[key]))


def test_detect_category_is_case_insensitive():
    assert detect_category("INVOICE")[0] is CategoryKey.RECEIPT_INVOICE


def test_detect_category_tie_goes_to_first_declared():
    # todoNote and documentResearch have the same number of keywords
    assert len(CATEGORY_KEYWORDS[CategoryKey.TODO_NOTE]) == len(
        CATEGORY_KEYWORDS[CategoryKey.DOCUMENT_RESEARCH]
    )
    assert detect_category("todo chapter") == (CategoryKey.TODO_NOTE, 0.25)
    assert detect_category("chapter todo") == (CategoryKey.TODO_NOTE, 0.25)


@pytest.mark.parametrize(
    "text",
    [
        "",
        "xyz 123",
        "Invoice receipt subtotal total tax payment amount qty price $ € £",
        "Termin Meeting Calendar appointment event schedule 10 am 3 pm",
        "design ui ux figma sketch prototype mockup",
    ],
)
def test_confidence_within_bounds(text):
    _, confidence = detect_category(text)
    assert 0.0 <= confidence <= 1.0


def test_detect_category_caps_confidence():
    key, confidence = detect_category("design ui ux figma sketch prototype mockup")
    assert key is CategoryKey.DESIGN_INSPO
    assert confidence == 1.0


@pytest.mark.parametrize(
    "text, flag",
    [
        ("Card: 4111 1111 1111 1111", SensitivityFlag.CREDIT_CARD),
        ("Card: 4111-1111-1111-1111", SensitivityFlag.CREDIT_CARD),
        ("Password: hunter2", SensitivityFlag.PASSWORD),
        ("Ihr Kennwort lautet", SensitivityFlag.PASSWORD),
        ("SSN 123-45-6789", SensitivityFlag.SSN),
        ("IBAN DE89 3704", SensitivityFlag.BANKING),
        ("Routing number: 021000021", SensitivityFlag.BANKING),
    ],
)
def test_detect_sensitivity(text, flag):
    assert flag in detect_sensitivity(text)


def test_detect_sensitivity_order_and_absence():
    text = "SSN 123-45-6789 password 4111 1111 1111 1111 account number"
    assert detect_sensitivity(text) == [
        SensitivityFlag.CREDIT_CARD,
        SensitivityFlag.PASSWORD,
        SensitivityFlag.SSN,
        SensitivityFlag.BANKING,
    ]
    assert detect_sensitivity("Lunch at noon") == []


def test_extract_entities_keys_per_kind():
    text = (
        "Jan 1 2024, Feb 2 2024, Mar 3 2024, Apr 4 2024 "
        "$1 $2 $3 $4 call 555-123-4567 or 555-765-4321 or 555-000-1111"
    )
    entities = extract_entities(text)

    assert entities == {
        "date_0": "Jan 1, 2024",
        "date_1": "Feb 2, 2024",
        "date_2": "Mar 3, 2024",
        "amount_0": "$1",
        "amount_1": "$2",
        "amount_2": "$3",
        "phone_0": "555-123-4567",
        "phone_1": "555-765-4321",
    }


def test_extract_entities_does_not_report_dates_as_phones():
    entities = extract_entities("Meeting 2024-03-03")
    assert entities == {"date_0": "Mar 3, 2024"}


def test_extract_entities_survives_detector_failure():
    with patch("src.triage_classifier.find_amounts", side_effect=RuntimeError("boom")):
        entities = extract_entities("Total $5 on 2024-03-03")

    assert entities == {"date_0": "Mar 3, 2024"}


if __name__ == "__main__":
    unittest.main()
