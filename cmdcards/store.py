"""
Row store backends for glossary cards.

A row store is the minimal table client the synchronizer needs:
select_all, select_by_id, insert, update_by_id, delete_by_id. Records are
flat dicts; the store assigns ids and fills missing timestamps on insert.
"""
import copy
import json
import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Dict, Any

logger = logging.getLogger(__name__)


class RowStoreError(Exception):
    """Raised when a row store read or write fails."""
    pass


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_row_id() -> str:
    return str(uuid.uuid4())


class RowStore:
    """Interface of a table-oriented row store."""

    def select_all(self, table: str) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def select_by_id(self, table: str, row_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def insert(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a record and return it as stored (with id and timestamps)."""
        raise NotImplementedError

    def update_by_id(self, table: str, row_id: str, partial: Dict[str, Any]) -> None:
        raise NotImplementedError

    def delete_by_id(self, table: str, row_id: str) -> None:
        raise NotImplementedError


# ── In-memory ────────────────────────────────────────────────────────────────


class InMemoryRowStore(RowStore):
    """Dict-backed store. Records are copied in and out."""

    def __init__(self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self.tables: Dict[str, Dict[str, Dict[str, Any]]] = {}
        for table, rows in (tables or {}).items():
            for row in rows:
                self._rows(table)[str(row["id"])] = copy.deepcopy(row)

    def _rows(self, table: str) -> Dict[str, Dict[str, Any]]:
        return self.tables.setdefault(table, {})

    def select_all(self, table: str) -> List[Dict[str, Any]]:
        return [copy.deepcopy(r) for r in self._rows(table).values()]

    def select_by_id(self, table: str, row_id: str) -> Optional[Dict[str, Any]]:
        row = self._rows(table).get(row_id)
        return copy.deepcopy(row) if row is not None else None

    def insert(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        row = copy.deepcopy(record)
        row["id"] = new_row_id()
        now = _now_iso()
        row.setdefault("created_at", now)
        row.setdefault("updated_at", row["created_at"])
        self._rows(table)[row["id"]] = row
        return copy.deepcopy(row)

    def update_by_id(self, table: str, row_id: str, partial: Dict[str, Any]) -> None:
        row = self._rows(table).get(row_id)
        if row is None:
            return
        for key, value in partial.items():
            if key != "id":
                row[key] = copy.deepcopy(value)

    def delete_by_id(self, table: str, row_id: str) -> None:
        self._rows(table).pop(row_id, None)


# ── SQLite ───────────────────────────────────────────────────────────────────

CARD_COLUMNS = {
    "id": "TEXT PRIMARY KEY",
    "command": "TEXT NOT NULL",
    "description": "TEXT NOT NULL DEFAULT ''",
    "examples": "TEXT",  # JSON list of {cmd, desc}
    "qa_context": "TEXT DEFAULT ''",
    "reminder": "TEXT DEFAULT ''",
    "tags": "TEXT",  # JSON list
    "favorite": "INTEGER DEFAULT 0",
    "generated_by_ai": "INTEGER DEFAULT 0",
    "category": "TEXT DEFAULT 'other'",
    "created_at": "TEXT NOT NULL",
    "updated_at": "TEXT NOT NULL",
}

TABLES = {"cards": CARD_COLUMNS}
JSON_COLUMNS = {"examples", "tags"}
BOOL_COLUMNS = {"favorite", "generated_by_ai"}


def _connect(db_path: str) -> sqlite3.Connection:
    """Open a connection in WAL mode with dict-like rows."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode = WAL")
    return conn


class SQLiteRowStore(RowStore):
    """SQLite-backed row store with a fixed column set per table."""

    def __init__(self, db_path: str = None):
        """Initialize store and create tables if needed."""
        if db_path is None:
            db_path = str(Path.home() / ".local" / "share" / "cmdcards" / "cards.db")
        self.db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _init_schema(self):
        with _connect(self.db_path) as conn:
            for table, columns in TABLES.items():
                ddl = ",\n".join(f"{name} {sql}" for name, sql in columns.items())
                conn.execute(f"CREATE TABLE IF NOT EXISTS {table} (\n{ddl}\n)")
                self._migrate_columns(conn, table, columns)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_cards_category ON cards(category)")
            conn.commit()

    def _migrate_columns(self, conn, table: str, columns: Dict[str, str]):
        """Add columns missing from an older database file."""
        present = {row["name"] for row in conn.execute(f"PRAGMA table_info({table})")}
        for name, sql in columns.items():
            if name in present:
                continue
            # SQLite can't add NOT NULL columns without a default
            sql = sql.replace("NOT NULL", "").strip() or "TEXT"
            conn.execute(f"ALTER TABLE {table} ADD COLUMN {name} {sql}")
            logger.info(f"Added column {table}.{name}")

    def _columns(self, table: str) -> Dict[str, str]:
        try:
            return TABLES[table]
        except KeyError:
            raise RowStoreError(f"Unknown table: {table}")

    def _encode(self, columns: Dict[str, str], record: Dict[str, Any]) -> Dict[str, Any]:
        row = {}
        for name, value in record.items():
            if name not in columns:
                continue
            if name in JSON_COLUMNS:
                value = json.dumps(value if value is not None else [], ensure_ascii=False)
            elif name in BOOL_COLUMNS:
                value = 1 if value else 0
            row[name] = value
        return row

    def _decode(self, row: sqlite3.Row) -> Dict[str, Any]:
        data = dict(row)
        for name in JSON_COLUMNS & data.keys():
            try:
                data[name] = json.loads(data[name]) if data[name] else []
            except (json.JSONDecodeError, TypeError):
                data[name] = []
        for name in BOOL_COLUMNS & data.keys():
            data[name] = bool(data[name])
        return data

    def select_all(self, table: str) -> List[Dict[str, Any]]:
        self._columns(table)
        try:
            with _connect(self.db_path) as conn:
                rows = conn.execute(f"SELECT * FROM {table} ORDER BY created_at ASC").fetchall()
            return [self._decode(row) for row in rows]
        except sqlite3.Error as e:
            logger.error(f"Error listing {table}: {e}")
            raise RowStoreError(f"select_all({table}) failed: {e}") from e

    def select_by_id(self, table: str, row_id: str) -> Optional[Dict[str, Any]]:
        self._columns(table)
        try:
            with _connect(self.db_path) as conn:
                row = conn.execute(f"SELECT * FROM {table} WHERE id = ?", (row_id,)).fetchone()
            return self._decode(row) if row else None
        except sqlite3.Error as e:
            logger.error(f"Error reading {table}/{row_id}: {e}")
            raise RowStoreError(f"select_by_id({table}, {row_id}) failed: {e}") from e

    def insert(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        columns = self._columns(table)
        data = dict(record)
        data["id"] = new_row_id()
        data.setdefault("created_at", _now_iso())
        data.setdefault("updated_at", data["created_at"])
        row = self._encode(columns, data)
        names = ", ".join(row)
        marks = ", ".join("?" for _ in row)
        try:
            with _connect(self.db_path) as conn:
                conn.execute(f"INSERT INTO {table} ({names}) VALUES ({marks})", tuple(row.values()))
                conn.commit()
                stored = conn.execute(f"SELECT * FROM {table} WHERE id = ?", (data["id"],)).fetchone()
            return self._decode(stored)
        except sqlite3.Error as e:
            logger.error(f"Error inserting into {table}: {e}")
            raise RowStoreError(f"insert({table}) failed: {e}") from e

    def update_by_id(self, table: str, row_id: str, partial: Dict[str, Any]) -> None:
        columns = self._columns(table)
        row = self._encode(columns, {k: v for k, v in partial.items() if k != "id"})
        if not row:
            return
        assignments = ", ".join(f"{name} = ?" for name in row)
        try:
            with _connect(self.db_path) as conn:
                conn.execute(
                    f"UPDATE {table} SET {assignments} WHERE id = ?",
                    (*row.values(), row_id),
                )
                conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Error updating {table}/{row_id}: {e}")
            raise RowStoreError(f"update_by_id({table}, {row_id}) failed: {e}") from e

    def delete_by_id(self, table: str, row_id: str) -> None:
        self._columns(table)
        try:
            with _connect(self.db_path) as conn:
                conn.execute(f"DELETE FROM {table} WHERE id = ?", (row_id,))
                conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Error deleting {table}/{row_id}: {e}")
            raise RowStoreError(f"delete_by_id({table}, {row_id}) failed: {e}") from e
