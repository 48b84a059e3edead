from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from adapters.sqlite_storage import SQLiteCorrelationStore
from core.errors import CorrelationMiss
from core.ports import TELEGRAM_TO_DISCORD


def _store(tmp_path) -> SQLiteCorrelationStore:
    store = SQLiteCorrelationStore(str(tmp_path / "protoverse.db"))
    store.init_db()
    return store


def test_insert_then_lookup_returns_ids_in_order(tmp_path) -> None:
    store = _store(tmp_path)
    store.insert(TELEGRAM_TO_DISCORD, "general", 42, ["3", "1", "2"])

    assert store.lookup(TELEGRAM_TO_DISCORD, "general", 42) == ["3", "1", "2"]


def test_lookup_is_scoped_by_direction_and_bridge(tmp_path) -> None:
    store = _store(tmp_path)
    store.insert(TELEGRAM_TO_DISCORD, "general", 42, ["1"])

    with pytest.raises(CorrelationMiss):
        store.lookup("d2t", "general", 42)
    with pytest.raises(CorrelationMiss):
        store.lookup(TELEGRAM_TO_DISCORD, "other", 42)


def test_remove_then_lookup_misses(tmp_path) -> None:
    store = _store(tmp_path)
    store.insert(TELEGRAM_TO_DISCORD, "general", 42, ["1"])
    store.remove(TELEGRAM_TO_DISCORD, "general", 42)

    with pytest.raises(CorrelationMiss) as excinfo:
        store.lookup(TELEGRAM_TO_DISCORD, "general", 42)
    assert excinfo.value.bridge_name == "general"


def test_existing_mapping_is_not_overwritten(tmp_path) -> None:
    store = _store(tmp_path)
    store.insert(TELEGRAM_TO_DISCORD, "general", 42, ["1"])
    store.insert(TELEGRAM_TO_DISCORD, "general", 42, ["2"])

    assert store.lookup(TELEGRAM_TO_DISCORD, "general", 42) == ["1"]


def test_empty_ids_are_not_stored(tmp_path) -> None:
    store = _store(tmp_path)
    store.insert(TELEGRAM_TO_DISCORD, "general", 42, [])

    with pytest.raises(CorrelationMiss):
        store.lookup(TELEGRAM_TO_DISCORD, "general", 42)


def test_mappings_survive_a_new_store_instance(tmp_path) -> None:
    _store(tmp_path).insert(TELEGRAM_TO_DISCORD, "general", 42, ["1"])

    assert _store(tmp_path).lookup(TELEGRAM_TO_DISCORD, "general", 42) == ["1"]


def test_cleanup_removes_only_old_rows(tmp_path) -> None:
    store = _store(tmp_path)
    store.insert(TELEGRAM_TO_DISCORD, "general", 1, ["old"])
    store.insert(TELEGRAM_TO_DISCORD, "general", 2, ["new"])

    old = (datetime.now(timezone.utc) - timedelta(days=40)).isoformat()
    with sqlite3.connect(str(tmp_path / "protoverse.db")) as conn:
        conn.execute("UPDATE message_map SET created_at = ? WHERE source_id = '1'", (old,))

    assert store.cleanup(0) == 0
    assert store.cleanup(30) == 1
    assert store.lookup(TELEGRAM_TO_DISCORD, "general", 2) == ["new"]
    with pytest.raises(CorrelationMiss):
        store.lookup(TELEGRAM_TO_DISCORD, "general", 1)
