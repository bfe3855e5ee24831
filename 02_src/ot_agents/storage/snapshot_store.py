"""SQLite snapshot store for break room state."""

import json
from pathlib import Path
from typing import Protocol

import aiosqlite

from ..config import resolve_db_path
from ..logging_config import get_logger
from ..models import new_id, utc_now

logger = get_logger(__name__)


class ISnapshotStore(Protocol):
    """Persistent store of full break room snapshots (SQLite)."""

    async def init(self) -> None:
        """Open the database and create tables."""
        ...

    async def close(self) -> None:
        """Close database connection."""
        ...

    async def save_snapshot(self, snapshot: dict) -> str:
        """Store a snapshot. Returns its id."""
        ...

    async def load_latest(self) -> dict | None:
        """Most recently saved snapshot, or None."""
        ...

    async def list_snapshots(self, limit: int = 20) -> list[dict]:
        """Snapshot metadata, newest first."""
        ...

    async def clear(self) -> None:
        """Delete every snapshot."""
        ...


class SnapshotStore:
    """SQLite snapshot store. Payloads are stored as opaque JSON."""

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            self._db_path = resolve_db_path()
        else:
            self._db_path = resolve_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None

    async def init(self) -> None:
        self._conn = await aiosqlite.connect(self._db_path)

        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, "r", encoding="utf-8") as f:
            schema_sql = f.read()
        await self._conn.executescript(schema_sql)
        await self._conn.commit()
        logger.info("Snapshot store ready at %s", self._db_path)

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None

    def _connection(self) -> aiosqlite.Connection:
        if not self._conn:
            raise RuntimeError("Storage not initialized")
        return self._conn

    async def save_snapshot(self, snapshot: dict) -> str:
        conn = self._connection()
        snapshot_id = new_id()
        await conn.execute(
            """
            INSERT INTO snapshots (id, break_room_id, created_at, message_count, observation_count, payload)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                snapshot_id,
                snapshot.get("id"),
                utc_now().isoformat(),
                len(snapshot.get("messages", [])),
                len(snapshot.get("observations", [])),
                json.dumps(snapshot),
            ),
        )
        await conn.commit()
        return snapshot_id

    async def load_latest(self) -> dict | None:
        conn = self._connection()
        cursor = await conn.execute(
            """
            SELECT payload
            FROM snapshots
            ORDER BY created_at DESC, rowid DESC
            LIMIT 1
            """
        )
        row = await cursor.fetchone()
        if not row:
            return None
        return json.loads(row[0])

    async def list_snapshots(self, limit: int = 20) -> list[dict]:
        conn = self._connection()
        cursor = await conn.execute(
            """
            SELECT id, break_room_id, created_at, message_count, observation_count
            FROM snapshots
            ORDER BY created_at DESC, rowid DESC
            LIMIT ?
            """,
            (limit,),
        )
        rows = await cursor.fetchall()
        return [
            {
                "id": row[0],
                "break_room_id": row[1],
                "created_at": row[2],
                "message_count": row[3],
                "observation_count": row[4],
            }
            for row in rows
        ]

    async def clear(self) -> None:
        conn = self._connection()
        await conn.execute("DELETE FROM snapshots")
        await conn.commit()
