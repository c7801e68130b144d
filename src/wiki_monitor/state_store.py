"""SQLite snapshot of per-site progress."""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Any, Iterator, Mapping

_DB_PRAGMA = "PRAGMA journal_mode=WAL;" "PRAGMA synchronous=NORMAL;"


logger = logging.getLogger(__name__)


class StateStore:
    """Persisted watermarks and thread title cache, keyed by site."""

    def __init__(self, path: Path):
        self._path = path
        self._conn = sqlite3.connect(self._path)
        self._conn.row_factory = sqlite3.Row
        self._setup()

    # ------------------------------------------------------------------
    # Schema initialisation
    # ------------------------------------------------------------------
    def _setup(self) -> None:
        with closing(self._conn.cursor()) as cur:
            for statement in _DB_PRAGMA.split(";"):
                if statement.strip():
                    cur.execute(statement)
            cur.executescript(
                """
                CREATE TABLE IF NOT EXISTS settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );
                """
            )
            self._conn.commit()

    # ------------------------------------------------------------------
    # Basic settings
    # ------------------------------------------------------------------
    def set_setting(self, key: str, value: str) -> None:
        with closing(self._conn.cursor()) as cur:
            cur.execute(
                "INSERT INTO settings(key, value) VALUES(?, ?)"
                " ON CONFLICT(key) DO UPDATE SET value=excluded.value",
                (key, value),
            )
            self._conn.commit()

    def get_setting(self, key: str, default: str | None = None) -> str | None:
        with closing(self._conn.cursor()) as cur:
            cur.execute("SELECT value FROM settings WHERE key=?", (key,))
            row = cur.fetchone()
        return row["value"] if row else default

    def delete_setting(self, key: str) -> None:
        with closing(self._conn.cursor()) as cur:
            cur.execute("DELETE FROM settings WHERE key=?", (key,))
            self._conn.commit()

    def iter_settings(self, prefix: str | None = None) -> Iterator[tuple[str, str]]:
        query = "SELECT key, value FROM settings"
        params: tuple[str, ...] = ()
        if prefix:
            query += " WHERE key LIKE ?"
            params = (f"{prefix}%",)
        with closing(self._conn.cursor()) as cur:
            cur.execute(query, params)
            rows = cur.fetchall()
        for row in rows:
            yield str(row["key"]), str(row["value"])

    # ------------------------------------------------------------------
    # Site state
    # ------------------------------------------------------------------
    def save_watermarks(self, site: str, marks: Mapping[str, Any]) -> None:
        self.set_setting(f"state.{site}.watermarks", json.dumps(dict(marks), sort_keys=True))

    def load_watermarks(self, site: str) -> dict[str, Any]:
        return self._load_mapping(f"state.{site}.watermarks")

    def save_thread_cache(self, site: str, entries: Mapping[str, Any]) -> None:
        payload = {key: list(value) for key, value in entries.items()}
        self.set_setting(
            f"state.{site}.threads", json.dumps(payload, ensure_ascii=False, sort_keys=True)
        )

    def load_thread_cache(self, site: str) -> dict[str, Any]:
        return self._load_mapping(f"state.{site}.threads")

    def forget_site(self, site: str) -> None:
        prefix = f"state.{site}."
        for key, _ in list(self.iter_settings(prefix)):
            # LIKE treats "_" as a wildcard
            if key.startswith(prefix):
                self.delete_setting(key)

    def _load_mapping(self, key: str) -> dict[str, Any]:
        raw = self.get_setting(key)
        if raw is None:
            return {}
        try:
            value = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Повреждённое значение %s в хранилище, будет сброшено", key)
            return {}
        if not isinstance(value, dict):
            return {}
        return value

    def close(self) -> None:
        self._conn.close()
