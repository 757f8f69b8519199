"""
SQLite Checkpoint Storage.

Persists one row per session in a single database file, so suspended
sessions survive a process restart. Checkpoints are stored as JSON; a
Checkpoint only accepts state and payloads made of JSON data, so a loaded
checkpoint equals the saved one.

Example:
    >>> store = SQLiteCheckpointStore("./checkpoints.db")
    >>> await store.save(checkpoint)
    >>> restored = await store.load(checkpoint.session_id)
    >>> await store.close()
"""

from typing import List, Optional
import asyncio
import functools
import json
import logging
import os
import sqlite3
import threading

from pausegraph.engine.checkpoint import Checkpoint
from pausegraph.storage.base import CheckpointStore


logger = logging.getLogger(__name__)


class SQLiteCheckpointStore(CheckpointStore):
    """
    SQLite implementation of CheckpointStore.

    Uses WAL mode and one connection guarded by a thread lock; blocking
    database calls run in the default executor.
    """

    # Schema version for migrations
    SCHEMA_VERSION = 1

    def __init__(self, db_path: str = ":memory:"):
        """
        Initialize the SQLite store.

        Args:
            db_path: Path to the database file, or ":memory:"
        """
        super().__init__()
        self.db_path = db_path
        if db_path != ":memory:":
            directory = os.path.dirname(os.path.abspath(db_path))
            os.makedirs(directory, exist_ok=True)

        self._conn_lock = threading.Lock()
        self._conn: Optional[sqlite3.Connection] = sqlite3.connect(
            db_path, check_same_thread=False
        )
        self._init_schema()
        logger.info(f"SQLite checkpoint store opened at {db_path}")

    def _init_schema(self) -> None:
        with self._conn_lock:
            if self.db_path != ":memory:":
                self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS checkpoints (
                    session_id TEXT PRIMARY KEY,
                    cursor TEXT NOT NULL,
                    data TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            self._conn.execute(f"PRAGMA user_version = {self.SCHEMA_VERSION}")
            self._conn.commit()

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("SQLite checkpoint store is closed")
        return self._conn

    async def _run(self, func, *args):
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args))

    def _write_sync(self, checkpoint: Checkpoint) -> None:
        data = json.dumps(checkpoint.model_dump(mode="json"))
        with self._conn_lock:
            conn = self._connection()
            conn.execute(
                """
                INSERT INTO checkpoints (session_id, cursor, data, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(session_id) DO UPDATE SET
                    cursor = excluded.cursor,
                    data = excluded.data,
                    updated_at = excluded.updated_at
                """,
                (
                    checkpoint.session_id,
                    checkpoint.cursor,
                    data,
                    checkpoint.updated_at.isoformat(),
                ),
            )
            conn.commit()

    def _read_sync(self, session_id: str) -> Optional[Checkpoint]:
        with self._conn_lock:
            row = self._connection().execute(
                "SELECT data FROM checkpoints WHERE session_id = ?",
                (session_id,),
            ).fetchone()
        if row is None:
            return None
        return Checkpoint.model_validate(json.loads(row[0]))

    def _remove_sync(self, session_id: str) -> bool:
        with self._conn_lock:
            conn = self._connection()
            cursor = conn.execute(
                "DELETE FROM checkpoints WHERE session_id = ?",
                (session_id,),
            )
            conn.commit()
            return cursor.rowcount > 0

    def _list_sync(self) -> List[str]:
        with self._conn_lock:
            rows = self._connection().execute(
                "SELECT session_id FROM checkpoints ORDER BY updated_at"
            ).fetchall()
        return [row[0] for row in rows]

    async def _write(self, checkpoint: Checkpoint) -> None:
        await self._run(self._write_sync, checkpoint)

    async def _read(self, session_id: str) -> Optional[Checkpoint]:
        return await self._run(self._read_sync, session_id)

    async def _remove(self, session_id: str) -> bool:
        return await self._run(self._remove_sync, session_id)

    async def list_sessions(self) -> List[str]:
        return await self._run(self._list_sync)

    async def close(self) -> None:
        with self._conn_lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
        logger.info(f"SQLite checkpoint store at {self.db_path} closed")
