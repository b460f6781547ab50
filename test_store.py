"""PersistenceStore: TTL expiry and tolerance of broken storage."""
import json
from datetime import timedelta

from examkit.store import PersistenceStore


def _raw(store):
    with open(store.path, encoding="utf-8") as f:
        return json.load(f)


def test_value_readable_right_after_write(store):
    assert store.set("exam_config", {"passing_score": 70}, ttl=timedelta(hours=1))
    assert store.get("exam_config") == {"passing_score": 70}


def test_expired_entry_reads_absent_and_is_purged(store, clock):
    store.set("exam_progress", {"answers": []}, ttl=timedelta(minutes=10))
    clock.advance(minutes=10)
    assert store.get("exam_progress") == {"answers": []}

    clock.advance(seconds=1)
    assert store.get("exam_progress") is None
    assert "exam_progress" not in _raw(store)


def test_default_ttl_is_seven_days(store, clock):
    store.set("exam_records", [1, 2])
    clock.advance(days=6, hours=23)
    assert store.get("exam_records") == [1, 2]
    clock.advance(hours=2)
    assert store.get("exam_records", default=[]) == []


def test_missing_key_returns_default(store):
    assert store.get("nope") is None
    assert store.get("nope", default="x") == "x"


def test_corrupted_file_reads_as_empty_and_can_be_rewritten(store):
    store.set("a", 1)
    with open(store.path, "w", encoding="utf-8") as f:
        f.write("{not json")
    assert store.get("a") is None
    assert store.set("b", 2)
    assert store.get("b") == 2


def test_malformed_entry_is_discarded(store):
    store.set("good", 1)
    data = _raw(store)
    data["bad"] = {"value": 1, "written_at": "yesterday"}
    with open(store.path, "w", encoding="utf-8") as f:
        json.dump(data, f)
    assert store.get("bad") is None
    assert "bad" not in _raw(store)
    assert store.get("good") == 1


def test_unwritable_location_drops_writes_without_raising(tmp_path, clock):
    blocker = tmp_path / "blocker"
    blocker.write_text("a file, not a directory")
    broken = PersistenceStore(str(blocker / "store.json"), clock=clock)
    assert broken.set("k", "v") is False
    assert broken.get("k") is None


def test_unserializable_value_is_dropped(store):
    assert store.set("k", object()) is False
    assert store.get("k") is None


def test_remove_and_clear(store):
    store.set("a", 1)
    store.set("b", 2)
    store.remove("a")
    assert store.get("a") is None
    assert store.get("b") == 2
    store.clear()
    assert store.get("b") is None


def test_purge_expired_sweeps_only_stale_entries(store, clock):
    store.set("short", 1, ttl=timedelta(seconds=5))
    store.set("long", 2, ttl=timedelta(days=1))
    clock.advance(seconds=6)
    assert store.purge_expired() == 1
    assert set(_raw(store)) == {"long"}
