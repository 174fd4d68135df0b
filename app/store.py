# app/store.py
import sqlite3
import os
from typing import Dict, List, Optional
from contextlib import contextmanager

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""

# --- SQLite store ---
class SqliteStore:
    """
    Persistent string-keyed document store. Every write replaces the whole
    value stored under a key; there are no partial updates.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        folder = os.path.dirname(db_path)
        if folder:
            os.makedirs(folder, exist_ok=True)
        with self.conn() as c:
            c.executescript(SCHEMA_SQL)

    @contextmanager
    def conn(self):
        con = sqlite3.connect(self.db_path)
        try:
            yield con
            con.commit()
        finally:
            con.close()

    def get(self, key: str) -> Optional[str]:
        with self.conn() as c:
            r = c.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
            return r[0] if r else None

    def set(self, key: str, value: str) -> None:
        with self.conn() as c:
            c.execute("INSERT INTO kv (key, value) VALUES (?, ?) "
                      "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                      (key, value))

    def delete(self, key: str) -> None:
        with self.conn() as c:
            c.execute("DELETE FROM kv WHERE key = ?", (key,))

    def keys(self) -> List[str]:
        with self.conn() as c:
            rows = c.execute("SELECT key FROM kv ORDER BY key").fetchall()
            return [r[0] for r in rows]

# --- In-memory store (simple, used for unit tests) ---
class InMemoryStore:
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str): return self._data.get(key)
    def set(self, key: str, value: str): self._data[key] = value
    def delete(self, key: str): self._data.pop(key, None)
    def keys(self): return list(self._data.keys())
