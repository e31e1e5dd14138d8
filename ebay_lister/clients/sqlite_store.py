"""SQLite persistence for per-account OAuth slots."""

from __future__ import annotations

import json
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional


class SQLiteStore:
    """One JSON document per (account, slot), written with upsert semantics."""

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS oauth_slots (
                    account TEXT NOT NULL,
                    slot TEXT NOT NULL,
                    document TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (account, slot)
                )
                """
            )

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def read(self, account: str, slot: str) -> Optional[Dict[str, Any]]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT document FROM oauth_slots WHERE account = ? AND slot = ?",
                (account, slot),
            ).fetchone()
        return json.loads(row["document"]) if row else None

    def write(self, account: str, slot: str, document: Mapping[str, Any]) -> None:
        """Replace the slot's document wholesale."""
        stamp = datetime.now(timezone.utc).isoformat()
        with self._lock, self._connect() as conn:
            conn.execute(
                """
                INSERT INTO oauth_slots (account, slot, document, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(account, slot) DO UPDATE SET
                    document = excluded.document,
                    updated_at = excluded.updated_at
                """,
                (account, slot, json.dumps(dict(document)), stamp),
            )

    def delete(self, account: str, slots: Iterable[str]) -> None:
        """Remove several slots in a single transaction."""
        with self._lock, self._connect() as conn:
            conn.executemany(
                "DELETE FROM oauth_slots WHERE account = ? AND slot = ?",
                [(account, slot) for slot in slots],
            )

    def slots(self, account: str) -> List[str]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT slot FROM oauth_slots WHERE account = ? ORDER BY slot",
                (account,),
            ).fetchall()
        return [row["slot"] for row in rows]


__all__ = ["SQLiteStore"]
