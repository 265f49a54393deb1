"""
Tests for the row stores: in-memory and SQLite.
"""
import sqlite3
import tempfile

import pytest

from cmdcards.store import InMemoryRowStore, RowStoreError, SQLiteRowStore


def card_record(**overrides):
    record = {
        "command": "git log",
        "description": "Commit history",
        "examples": [{"cmd": "git log --oneline", "desc": "Compact"}],
        "qa_context": "",
        "reminder": "",
        "tags": ["git"],
        "category": "git",
        "favorite": False,
        "generated_by_ai": False,
    }
    record.update(overrides)
    return record


@pytest.fixture
def sqlite_store():
    with tempfile.TemporaryDirectory() as tmp:
        yield SQLiteRowStore(f"{tmp}/cards.db")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# In-memory store
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_memory_insert_assigns_id_and_timestamps():
    store = InMemoryRowStore()
    stored = store.insert("cards", card_record(id="ignored"))
    assert stored["id"] and stored["id"] != "ignored"
    assert stored["created_at"] == stored["updated_at"]
    assert store.select_by_id("cards", stored["id"]) == stored


def test_memory_insert_keeps_supplied_timestamps():
    store = InMemoryRowStore()
    stored = store.insert("cards", card_record(created_at="2024-01-01T00:00:00+00:00"))
    assert stored["created_at"] == "2024-01-01T00:00:00+00:00"
    assert stored["updated_at"] == "2024-01-01T00:00:00+00:00"


def test_memory_records_are_copied():
    store = InMemoryRowStore()
    stored = store.insert("cards", card_record())
    stored["tags"].append("mutated")
    assert store.select_by_id("cards", stored["id"])["tags"] == ["git"]


def test_memory_update_and_delete():
    store = InMemoryRowStore({"cards": [dict(card_record(), id="a")]})
    store.update_by_id("cards", "a", {"id": "b", "tags": ["git", "log"]})
    assert store.select_by_id("cards", "a")["tags"] == ["git", "log"]
    assert store.select_by_id("cards", "b") is None

    store.update_by_id("cards", "missing", {"tags": []})
    store.delete_by_id("cards", "a")
    store.delete_by_id("cards", "a")
    assert store.select_all("cards") == []


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# SQLite store
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_sqlite_insert_and_select(sqlite_store):
    stored = sqlite_store.insert("cards", card_record())
    assert stored["id"]
    assert stored["examples"] == [{"cmd": "git log --oneline", "desc": "Compact"}]
    assert stored["tags"] == ["git"]
    assert stored["favorite"] is False

    fetched = sqlite_store.select_by_id("cards", stored["id"])
    assert fetched == stored
    assert sqlite_store.select_by_id("cards", "nope") is None


def test_sqlite_select_all_ordered_by_creation(sqlite_store):
    sqlite_store.insert("cards", card_record(command="b", created_at="2024-02-01T00:00:00+00:00"))
    sqlite_store.insert("cards", card_record(command="a", created_at="2024-01-01T00:00:00+00:00"))
    assert [r["command"] for r in sqlite_store.select_all("cards")] == ["a", "b"]


def test_sqlite_update_partial(sqlite_store):
    stored = sqlite_store.insert("cards", card_record())
    sqlite_store.update_by_id("cards", stored["id"], {
        "tags": ["git", "history"],
        "favorite": True,
        "unknown_column": "dropped",
    })
    fetched = sqlite_store.select_by_id("cards", stored["id"])
    assert fetched["tags"] == ["git", "history"]
    assert fetched["favorite"] is True
    assert fetched["command"] == "git log"


def test_sqlite_delete(sqlite_store):
    stored = sqlite_store.insert("cards", card_record())
    sqlite_store.delete_by_id("cards", stored["id"])
    assert sqlite_store.select_all("cards") == []


def test_sqlite_unknown_table(sqlite_store):
    with pytest.raises(RowStoreError):
        sqlite_store.select_all("users")


def test_sqlite_constraint_violation_is_store_error(sqlite_store):
    with pytest.raises(RowStoreError):
        sqlite_store.insert("cards", card_record(command=None))


def test_sqlite_migrates_old_schema():
    with tempfile.TemporaryDirectory() as tmp:
        db_path = f"{tmp}/old.db"
        conn = sqlite3.connect(db_path)
        conn.execute(
            "CREATE TABLE cards (id TEXT PRIMARY KEY, command TEXT NOT NULL, "
            "description TEXT, created_at TEXT NOT NULL, updated_at TEXT NOT NULL)"
        )
        conn.execute(
            "INSERT INTO cards VALUES ('old', 'pwd', 'Print dir', "
            "'2023-01-01T00:00:00+00:00', '2023-01-01T00:00:00+00:00')"
        )
        conn.commit()
        conn.close()

        store = SQLiteRowStore(db_path)
        row = store.select_by_id("cards", "old")
        assert row["tags"] == []
        assert row["examples"] == []
        assert row["category"] == "other"
        assert row["favorite"] is False
