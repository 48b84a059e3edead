"""SQLite storage adapter.

Implements the core CorrelationStorePort using a simple SQLite database so
message mappings survive restarts.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Sequence

from core.errors import CorrelationMiss


class SQLiteCorrelationStore:
    """Thin SQLite wrapper that satisfies the CorrelationStorePort contract."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - message_map: source message -> destination messages, per bridge
        """

        with self._connect() as conn:
            # message_map holds one row per relayed message and bridge.
            # Fields:
            # - direction: "t2d" or "d2t"
            # - bridge: bridge name from config.json
            # - source_id: message id on the source platform
            # - dest_ids: JSON array of destination message ids, in send order
            # - created_at: insertion timestamp for TTL cleanup
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS message_map (
                    direction TEXT NOT NULL,
                    bridge TEXT NOT NULL,
                    source_id TEXT NOT NULL,
                    dest_ids TEXT NOT NULL,
                    created_at TIMESTAMP NOT NULL,
                    PRIMARY KEY (direction, bridge, source_id)
                )
                """
            )

    def insert(self, direction: str, bridge_name: str, source_id: int, dest_ids: Sequence[str]) -> None:
        """Record destination ids; an existing mapping is never overwritten."""

        if not dest_ids:
            return
        now = datetime.now(timezone.utc)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO message_map (direction, bridge, source_id, dest_ids, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (direction, bridge_name, str(source_id), json.dumps([str(i) for i in dest_ids]), now.isoformat()),
            )

    def lookup(self, direction: str, bridge_name: str, source_id: int) -> list[str]:
        """Return the destination ids, or raise CorrelationMiss."""

        with self._connect() as conn:
            row = conn.execute(
                "SELECT dest_ids FROM message_map WHERE direction = ? AND bridge = ? AND source_id = ?",
                (direction, bridge_name, str(source_id)),
            ).fetchone()
        if row is None:
            raise CorrelationMiss(direction, bridge_name, source_id)
        dest_ids = json.loads(row["dest_ids"])
        if not dest_ids:
            raise CorrelationMiss(direction, bridge_name, source_id)
        return dest_ids

    def remove(self, direction: str, bridge_name: str, source_id: int) -> None:
        with self._connect() as conn:
            conn.execute(
                "DELETE FROM message_map WHERE direction = ? AND bridge = ? AND source_id = ?",
                (direction, bridge_name, str(source_id)),
            )

    def cleanup(self, ttl_days: int) -> int:
        """Delete mappings older than ``ttl_days`` and return the number removed."""

        if ttl_days <= 0:
            return 0
        cutoff = datetime.now(timezone.utc) - timedelta(days=ttl_days)
        with self._connect() as conn:
            cur = conn.execute(
                "DELETE FROM message_map WHERE created_at < ?",
                (cutoff.isoformat(),),
            )
            return cur.rowcount
