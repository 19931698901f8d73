"""SQLite-backed record store used for local and single-node deployments."""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any, Dict, Optional


class SQLiteStore:
    """
    Key-value record store using a table keyed by (pk, sk).

    Shares its interface with :class:`~reviewdesk.clients.dynamodb.DynamoDBStore`:
    ``put_item``, ``get_item``, ``delete_item``, ``pop_item``,
    ``list_items_with_prefix`` and ``delete_expired``. Each call is atomic for a
    single record.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False, timeout=5.0)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS records (
                    pk TEXT NOT NULL,
                    sk TEXT NOT NULL,
                    data TEXT NOT NULL,
                    PRIMARY KEY (pk, sk)
                )
                """
            )

    def put_item(self, item: Dict[str, Any]) -> None:
        pk = item.get("pk")
        sk = item.get("sk")
        if not pk or not sk:
            raise ValueError("Item must include 'pk' and 'sk' keys")

        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO records (pk, sk, data)
                VALUES (?, ?, ?)
                ON CONFLICT(pk, sk) DO UPDATE SET data = excluded.data
                """,
                (pk, sk, json.dumps(item)),
            )

    def get_item(self, *, partition_key: str, sort_key: str) -> Optional[Dict[str, Any]]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT data FROM records WHERE pk = ? AND sk = ?",
                (partition_key, sort_key),
            ).fetchone()
        if not row:
            return None
        return json.loads(row["data"])

    def delete_item(self, *, partition_key: str, sort_key: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "DELETE FROM records WHERE pk = ? AND sk = ?",
                (partition_key, sort_key),
            )

    def pop_item(self, *, partition_key: str, sort_key: str) -> Optional[Dict[str, Any]]:
        """Delete a record and return it; only one concurrent caller gets it."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT data FROM records WHERE pk = ? AND sk = ?",
                (partition_key, sort_key),
            ).fetchone()
            if not row:
                return None
            cursor = conn.execute(
                "DELETE FROM records WHERE pk = ? AND sk = ? AND data = ?",
                (partition_key, sort_key, row["data"]),
            )
            if cursor.rowcount != 1:
                return None
        return json.loads(row["data"])

    def list_items_with_prefix(
        self, *, partition_key: str, sort_key_prefix: str
    ) -> list[Dict[str, Any]]:
        escaped = (
            sort_key_prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        )
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT data FROM records WHERE pk = ? AND sk LIKE ? ESCAPE '\\' ORDER BY sk",
                (partition_key, f"{escaped}%"),
            ).fetchall()
        return [json.loads(row["data"]) for row in rows]

    def delete_expired(self, *, attribute: str, before: int) -> int:
        """Delete records whose numeric ``attribute`` is older than ``before``."""
        path = f"$.{attribute}"
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM records WHERE json_extract(data, ?) < ?",
                (path, before),
            )
        return cursor.rowcount


__all__ = ["SQLiteStore"]
