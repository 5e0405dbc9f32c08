from __future__ import annotations

import base64
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    Field,
    computed_field,
    field_serializer,
    field_validator,
)

OTHER_CONFIDENCE = 0.3
DEFAULT_THUMBNAIL_MAX_DIMENSION = 200
DEFAULT_THUMBNAIL_QUALITY = 0.7


class CategoryKey(str, Enum):
    """Stable, non-localized category keys stored with each triage result."""

    RECEIPT_INVOICE = "receiptInvoice"
    EVENT_APPOINTMENT = "eventAppointment"
    TODO_NOTE = "todoNote"
    DESIGN_INSPO = "designInspo"
    DOCUMENT_RESEARCH = "documentResearch"
    CHAT_COMMUNICATION = "chatCommunication"
    SENSITIVE_PRIVATE = "sensitivePrivate"
    OTHER = "other"

    @property
    def icon_name(self) -> str:
        return CATEGORY_ICONS[self]

    @property
    def is_sensitive_by_default(self) -> bool:
        """Whether records in this category skip cloud analysis by default."""
        return self is CategoryKey.SENSITIVE_PRIVATE


CATEGORY_ICONS: dict[CategoryKey, str] = {
    CategoryKey.RECEIPT_INVOICE: "doc.text",
    CategoryKey.EVENT_APPOINTMENT: "calendar",
    CategoryKey.TODO_NOTE: "checklist",
    CategoryKey.DESIGN_INSPO: "paintpalette",
    CategoryKey.DOCUMENT_RESEARCH: "doc.richtext",
    CategoryKey.CHAT_COMMUNICATION: "bubble.left.and.bubble.right",
    CategoryKey.SENSITIVE_PRIVATE: "lock.shield",
    CategoryKey.OTHER: "square.grid.2x2",
}


class SensitivityFlag(str, Enum):
    """Closed vocabulary of sensitivity tags."""

    CREDIT_CARD = "credit_card"
    PASSWORD = "password"
    SSN = "ssn"
    BANKING = "banking"


class TriageResult(BaseModel):
    """Result of the local triage pass (OCR, category, entities, sensitivity)."""

    category_key: CategoryKey
    confidence: float = Field(ge=0.0, le=1.0)
    extracted_text: str = ""
    entities: dict[str, str] = Field(default_factory=dict)
    sensitivity_flags: list[SensitivityFlag] = Field(default_factory=list)
    processing_time_ms: int = Field(default=0, ge=0)

    @field_validator("sensitivity_flags", mode="after")
    @classmethod
    def _dedupe_flags(cls, value: list[SensitivityFlag]) -> list[SensitivityFlag]:
        return list(dict.fromkeys(value))

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_sensitive(self) -> bool:
        return bool(self.sensitivity_flags)


class CreateReminder(BaseModel):
    type: Literal["create_reminder"] = "create_reminder"
    title: str
    notes: str | None = None
    due_date: datetime | None = None

    @property
    def title_key(self) -> str:
        return "action.createReminder"


class CreateCalendarEvent(BaseModel):
    type: Literal["create_calendar_event"] = "create_calendar_event"
    title: str
    start_date: datetime
    end_date: datetime | None = None
    location: str | None = None

    @property
    def title_key(self) -> str:
        return "action.createEvent"


class ExportText(BaseModel):
    type: Literal["export_text"] = "export_text"
    text: str

    @property
    def title_key(self) -> str:
        return "action.exportText"


class Archive(BaseModel):
    type: Literal["archive"] = "archive"

    @property
    def title_key(self) -> str:
        return "action.archive"


class Ignore(BaseModel):
    type: Literal["ignore"] = "ignore"

    @property
    def title_key(self) -> str:
        return "action.ignore"


SuggestedAction = Annotated[
    Union[CreateReminder, CreateCalendarEvent, ExportText, Archive, Ignore],
    Field(discriminator="type"),
]


class DeepAnalysisResult(BaseModel):
    """Result of the optional cloud analysis, stored verbatim."""

    model: str
    description: str
    suggested_actions: list[SuggestedAction] = Field(default_factory=list)
    insights: list[str] = Field(default_factory=list)
    cost_usd: float = Field(ge=0.0)
    processing_time_ms: int = Field(ge=0)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ScreenshotRecord(BaseModel):
    """Schema for a screenshot record in the store."""

    id: UUID = Field(default_factory=uuid4, frozen=True)
    file_location: str = Field(frozen=True)
    created_at: datetime = Field(default_factory=_utcnow, frozen=True)
    content_hash: str = Field(frozen=True)
    thumbnail: bytes | None = None
    triage: TriageResult | None = None
    deep_analysis: DeepAnalysisResult | None = None

    @field_validator("created_at", mode="after")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Naive timestamps are taken as UTC so records always sort together.
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator("thumbnail", mode="before")
    @classmethod
    def _decode_thumbnail(cls, value: Any) -> Any:
        # Thumbnails are persisted as base64 text.
        if isinstance(value, str):
            return base64.b64decode(value)
        return value

    @field_serializer("thumbnail", when_used="json-unless-none")
    def _encode_thumbnail(self, value: bytes) -> str:
        return base64.b64encode(value).decode("ascii")

    @property
    def category_key(self) -> CategoryKey | None:
        return self.triage.category_key if self.triage else None

    @property
    def is_sensitive(self) -> bool:
        return bool(self.triage and self.triage.is_sensitive)
