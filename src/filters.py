from __future__ import annotations

from typing import Any

from src.schema import CategoryKey, ScreenshotRecord


def apply_record_filters(
    records: list[ScreenshotRecord], filter_state: dict[str, Any]
) -> list[ScreenshotRecord]:
    """Apply list filters (category, sensitivity, triage state) to records."""
    filtered: list[ScreenshotRecord] = []
    categories = filter_state.get("category") or []
    sensitive_only = filter_state.get("sensitive_only", False)
    hide_sensitive = filter_state.get("hide_sensitive", False)
    needs_triage = filter_state.get("needs_triage", False)

    def _category_value(raw_category: Any) -> str:
        if isinstance(raw_category, CategoryKey):
            return raw_category.value
        if raw_category is None:
            return ""
        return str(raw_category)

    wanted_categories = {_category_value(category) for category in categories}

    for record in records:
        if needs_triage and record.triage is not None:
            continue
        if wanted_categories and _category_value(record.category_key) not in wanted_categories:
            continue
        if sensitive_only and not record.is_sensitive:
            continue
        if hide_sensitive and record.is_sensitive:
            continue

        filtered.append(record)

    return filtered
