"""Key-value store on top of SQLite.

Each ``set``/``remove`` call is its own commit. Callers that keep an index key
next to record keys must tolerate the two drifting apart after an interrupted
write.
"""

from __future__ import annotations

from typing import Any, Iterable, Sequence

import orjson

from refine_page.db.sqlite import SQLiteDatabase
from refine_page.utils.time import now_ms

# Older SQLite builds cap bound parameters at 999 (SQLITE_MAX_VARIABLE_NUMBER)
MAX_KEYS_PER_QUERY = 500


class KeyValueStore:
    """JSON values addressed by string keys."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self.db = database
        self.db.ensure_schema()

    def get(self, key: str, default: Any = None) -> Any:
        row = self.db.fetch_one("SELECT value FROM kv WHERE key = ?", [key])
        if row is None:
            return default
        return orjson.loads(row["value"])

    def get_many(self, keys: Sequence[str]) -> dict[str, Any]:
        """Return the present keys only; absent keys are omitted."""
        if not keys:
            return {}
        found: dict[str, Any] = {}
        for batch in _batches(list(keys)):
            placeholders = ",".join("?" for _ in batch)
            rows = self.db.fetch_all(f"SELECT key, value FROM kv WHERE key IN ({placeholders})", batch)
            found.update((row["key"], orjson.loads(row["value"])) for row in rows)
        return found

    def set(self, key: str, value: Any) -> None:
        with self.db.write() as conn:
            conn.execute(
                """
                INSERT INTO kv (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                """,
                [key, orjson.dumps(value), now_ms()],
            )

    def remove(self, keys: str | Iterable[str]) -> None:
        if isinstance(keys, str):
            keys = [keys]
        keys = list(keys)
        if not keys:
            return
        with self.db.write() as conn:
            for batch in _batches(keys):
                placeholders = ",".join("?" for _ in batch)
                conn.execute(f"DELETE FROM kv WHERE key IN ({placeholders})", batch)

    def clear(self) -> None:
        with self.db.write() as conn:
            conn.execute("DELETE FROM kv")


def _batches(keys: list[str]) -> Iterable[list[str]]:
    for start in range(0, len(keys), MAX_KEYS_PER_QUERY):
        yield keys[start : start + MAX_KEYS_PER_QUERY]


__all__ = ["MAX_KEYS_PER_QUERY", "KeyValueStore"]
