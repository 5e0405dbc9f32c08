import json
import threading
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from src.errors import StoreWriteError
from src.schema import CategoryKey, ScreenshotRecord, SensitivityFlag, TriageResult
from src.screenshot_store import ScreenshotStore

BASE_TIME = datetime(2024, 3, 3, 12, 0, tzinfo=timezone.utc)


def _record(
    name="shot.png",
    *,
    minutes=0,
    category=None,
    text="",
    flags=(),
    content_hash="hash",
):
    record = ScreenshotRecord(
        file_location=f"/shots/{name}",
        content_hash=content_hash,
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )
    if category is not None:
        record.triage = TriageResult(
            category_key=category,
            confidence=0.5,
            extracted_text=text,
            sensitivity_flags=list(flags),
        )
    return record


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "data" / "screenshots.json"


def test_missing_file_starts_empty(store_path):
    store = ScreenshotStore(store_path)
    assert store.fetch_all() == []
    assert len(store) == 0
    assert not store_path.exists()


def test_save_persists_and_reloads_equal(store_path):
    record = _record(category=CategoryKey.RECEIPT_INVOICE, text="Total $4")
    record.thumbnail = b"\xff\xd8\xff"

    ScreenshotStore(store_path).save(record)
    reloaded = ScreenshotStore(store_path).fetch(record.id)

    assert reloaded == record
    assert reloaded.thumbnail == b"\xff\xd8\xff"


def test_save_replaces_by_id(store_path):
    store = ScreenshotStore(store_path)
    record = _record()
    store.save(record)

    record.triage = TriageResult(category_key=CategoryKey.OTHER, confidence=0.3)
    store.save(record)

    assert store.count() == 1
    assert store.fetch(str(record.id)).triage.category_key is CategoryKey.OTHER


def test_fetch_returns_copies(store_path):
    store = ScreenshotStore(store_path)
    record = _record()
    store.save(record)

    fetched = store.fetch(record.id)
    fetched.thumbnail = b"changed"

    assert store.fetch(record.id).thumbnail is None


def test_fetch_unknown_or_malformed_id(store_path):
    store = ScreenshotStore(store_path)
    assert store.fetch("not-a-uuid") is None
    assert store.fetch("00000000-0000-0000-0000-000000000000") is None


def test_fetch_all_newest_first(store_path):
    store = ScreenshotStore(store_path)
    older = _record("a.png", minutes=0)
    newest = _record("c.png", minutes=10)
    middle = _record("b.png", minutes=5)
    for record in (older, newest, middle):
        store.save(record)

    assert [record.id for record in store.fetch_all()] == [
        newest.id,
        middle.id,
        older.id,
    ]


def test_delete(store_path):
    store = ScreenshotStore(store_path)
    record = _record()
    store.save(record)

    store.delete(record.id)

    assert store.fetch(record.id) is None
    assert ScreenshotStore(store_path).count() == 0


def test_delete_unknown_id_is_noop(store_path):
    store = ScreenshotStore(store_path)
    store.save(_record())
    before = store_path.read_text(encoding="utf-8")

    with patch.object(store, "_persist") as mock_persist:
        store.delete("00000000-0000-0000-0000-000000000000")
        store.delete("garbage")

    mock_persist.assert_not_called()
    assert store.count() == 1
    assert store_path.read_text(encoding="utf-8") == before


def test_fetch_by_category_and_search(store_path):
    store = ScreenshotStore(store_path)
    receipt = _record("r.png", minutes=1, category=CategoryKey.RECEIPT_INVOICE, text="Total $42.50")
    chat = _record("c.png", minutes=2, category=CategoryKey.CHAT_COMMUNICATION, text="Message delivered")
    untriaged = _record("u.png", minutes=3)
    for record in (receipt, chat, untriaged):
        store.save(record)

    assert [r.id for r in store.fetch_by_category(CategoryKey.RECEIPT_INVOICE)] == [receipt.id]
    assert [r.id for r in store.fetch_by_category("chatCommunication")] == [chat.id]
    assert [r.id for r in store.search("TOTAL")] == [receipt.id]
    assert store.search("nothing like this") == []


def test_fetch_by_hash(store_path):
    store = ScreenshotStore(store_path)
    first = _record("a.png", minutes=1, content_hash="same")
    second = _record("b.png", minutes=2, content_hash="same")
    store.save(first)
    store.save(second)
    store.save(_record("c.png", content_hash="other"))

    assert [r.id for r in store.fetch_by_hash("same")] == [second.id, first.id]


def test_update_applies_mutation(store_path):
    store = ScreenshotStore(store_path)
    record = _record()
    store.save(record)

    def _mark_sensitive(target):
        target.triage = TriageResult(
            category_key=CategoryKey.SENSITIVE_PRIVATE,
            confidence=0.9,
            sensitivity_flags=[SensitivityFlag.PASSWORD],
        )

    updated = store.update(record.id, _mark_sensitive)

    assert updated.is_sensitive
    assert ScreenshotStore(store_path).fetch(record.id).is_sensitive
    assert store.update("00000000-0000-0000-0000-000000000000", _mark_sensitive) is None


def test_corrupt_file_yields_empty_store_and_backup(store_path, caplog):
    store_path.parent.mkdir(parents=True)
    store_path.write_text("{not json", encoding="utf-8")

    store = ScreenshotStore(store_path)

    assert store.fetch_all() == []
    backups = list(store_path.parent.glob("screenshots.json.corrupt-*.bak"))
    assert len(backups) == 1
    assert backups[0].read_text(encoding="utf-8") == "{not json"
    assert "starting with an empty store" in caplog.text


def test_invalid_records_are_treated_as_corrupt(store_path):
    store_path.parent.mkdir(parents=True)
    store_path.write_text(json.dumps([{"file_location": 3}]), encoding="utf-8")

    assert ScreenshotStore(store_path).count() == 0


def test_written_file_is_a_json_list(store_path):
    store = ScreenshotStore(store_path)
    record = _record(category=CategoryKey.TODO_NOTE, text="todo")
    store.save(record)

    data = json.loads(store_path.read_text(encoding="utf-8"))
    assert isinstance(data, list)
    assert data[0]["id"] == str(record.id)
    assert data[0]["triage"]["category_key"] == "todoNote"
    assert list(store_path.parent.glob("*.tmp")) == []


def test_write_failure_raises_and_cleans_up(store_path):
    store = ScreenshotStore(store_path)

    with patch("src.screenshot_store.os.replace", side_effect=OSError("disk full")):
        with pytest.raises(StoreWriteError):
            store.save(_record())

    assert not store_path.exists()
    assert list(store_path.parent.glob("*.tmp")) == []


def test_concurrent_saves_are_all_persisted(store_path):
    store = ScreenshotStore(store_path)
    records = [_record(f"{index}.png", minutes=index) for index in range(20)]

    threads = [threading.Thread(target=store.save, args=(record,)) for record in records]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert ScreenshotStore(store_path).count() == 20


def test_naive_timestamps_sort_with_aware_ones(store_path):
    store = ScreenshotStore(store_path)
    naive = ScreenshotRecord(
        file_location="/shots/naive.png",
        content_hash="n",
        created_at=datetime(2024, 1, 1),
    )
    aware = _record("aware.png")
    store.save(naive)
    store.save(aware)

    assert naive.created_at.tzinfo is timezone.utc
    assert [r.id for r in store.fetch_all()] == [aware.id, naive.id]
    assert [r.id for r in store.fetch_by_hash("n")] == [naive.id]
    assert len(ScreenshotStore(store_path).fetch_all()) == 2


def test_naive_timestamp_in_file_loads_as_utc(store_path):
    store_path.parent.mkdir(parents=True)
    record = _record()
    data = record.model_dump(mode="json")
    data["created_at"] = "2024-01-01T08:30:00"
    store_path.write_text(json.dumps([data]), encoding="utf-8")

    (loaded,) = ScreenshotStore(store_path).fetch_all()

    assert loaded.created_at == datetime(2024, 1, 1, 8, 30, tzinfo=timezone.utc)


def test_unknown_fields_are_ignored_on_load(store_path):
    store_path.parent.mkdir(parents=True)
    record = _record(category=CategoryKey.DESIGN_INSPO, text="figma mockup")
    data = record.model_dump(mode="json")
    data["future_field"] = {"added": "later"}
    data["triage"]["future_score"] = 0.9
    store_path.write_text(json.dumps([data]), encoding="utf-8")

    store = ScreenshotStore(store_path)

    assert store.fetch(record.id) == record
    assert list(store_path.parent.glob("*.bak")) == []
