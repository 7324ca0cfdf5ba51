from __future__ import annotations

from pathlib import Path

import pytest

from autoform.record_store import PROFILES, TEMPLATES, RecordStore


def test_add_assigns_incrementing_ids() -> None:
    store = RecordStore()

    first = store.add(PROFILES, {"name": "Me", "fields": {}})
    second = store.add(PROFILES, {"name": "Dad", "fields": {}})

    assert (first, second) == (1, 2)
    assert store.get(PROFILES, 2) == {"id": 2, "name": "Dad", "fields": {}}


def test_collections_are_independent() -> None:
    store = RecordStore()
    store.add(PROFILES, {"name": "Me"})

    assert store.add(TEMPLATES, {"name": "Form"}) == 1
    assert store.all(PROFILES) == [{"id": 1, "name": "Me"}]


def test_update_and_delete() -> None:
    store = RecordStore()
    record_id = store.add(TEMPLATES, {"name": "Form", "fields": []})

    assert store.update(TEMPLATES, record_id, {"fields": [{"id": "a"}]}) is True
    assert store.get(TEMPLATES, record_id)["fields"] == [{"id": "a"}]
    assert store.update(TEMPLATES, 99, {"name": "x"}) is False

    assert store.delete(TEMPLATES, record_id) is True
    assert store.get(TEMPLATES, record_id) is None
    assert store.delete(TEMPLATES, record_id) is False


def test_returned_records_are_copies() -> None:
    store = RecordStore()
    record_id = store.add(PROFILES, {"name": "Me", "fields": {"a": "1"}})

    store.get(PROFILES, record_id)["fields"]["a"] = "changed"

    assert store.get(PROFILES, record_id)["fields"] == {"a": "1"}


def test_records_persist_across_instances(tmp_path: Path) -> None:
    store_a = RecordStore(tmp_path)
    store_a.add(PROFILES, {"name": "Me", "fields": {"Full Name": "Jane Doe"}})
    store_a.add(PROFILES, {"name": "Dad", "fields": {}})
    store_a.delete(PROFILES, 2)

    store_b = RecordStore(tmp_path)

    assert store_b.get(PROFILES, 1)["fields"] == {"Full Name": "Jane Doe"}
    assert store_b.get(PROFILES, 2) is None
    # deleted ids are not reused
    assert store_b.add(PROFILES, {"name": "New"}) == 3


def test_invalid_json_raises(tmp_path: Path) -> None:
    (tmp_path / "records").mkdir()
    (tmp_path / "records" / "profiles.json").write_text("{invalid", encoding="utf-8")

    with pytest.raises(ValueError, match="Invalid record store JSON"):
        RecordStore(tmp_path).all(PROFILES)


def test_subscribe_delivers_current_and_later_snapshots() -> None:
    store = RecordStore()
    store.add(PROFILES, {"name": "Me"})
    snapshots = []

    subscription = store.subscribe(PROFILES, snapshots.append)
    store.add(PROFILES, {"name": "Dad"})
    store.add(TEMPLATES, {"name": "Form"})
    subscription.unsubscribe()
    store.delete(PROFILES, 1)

    assert [[r["name"] for r in snap] for snap in snapshots] == [["Me"], ["Me", "Dad"]]
    assert subscription.active is False


def test_failing_listener_does_not_block_writes() -> None:
    store = RecordStore()
    calls = []

    def broken(snapshot):
        calls.append(len(snapshot))
        if snapshot:
            raise RuntimeError("boom")

    store.subscribe(PROFILES, broken)
    store.add(PROFILES, {"name": "Me"})

    assert store.get(PROFILES, 1)["name"] == "Me"
    assert calls == [0, 1]
