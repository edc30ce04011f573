"""SQLite-backed relational store for reels and their inputs.

Holds reels, narration audio, photos, videos, scripts and monthly usage
counters. Uses aiosqlite for async database operations.
"""

import json
import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite

from models.reel import Reel, ReelRequest, ReelStatus

logger = logging.getLogger(__name__)

# Default database path
DEFAULT_DB_PATH = ".reelforge/reels.db"

SCHEMA = """
CREATE TABLE IF NOT EXISTS reels (
    id TEXT PRIMARY KEY,
    product_id TEXT NOT NULL,
    script_id TEXT,
    user_id TEXT NOT NULL,
    title TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'pending',
    progress_percentage INTEGER NOT NULL DEFAULT 0,
    ordered_media JSON,
    storage_path TEXT,
    file_name TEXT,
    duration REAL,
    request JSON,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_reels_product ON reels (product_id, created_at DESC);
CREATE INDEX IF NOT EXISTS idx_reels_status ON reels (status);

CREATE TABLE IF NOT EXISTS audio (
    id TEXT PRIMARY KEY,
    reel_id TEXT NOT NULL REFERENCES reels (id) ON DELETE CASCADE,
    script_id TEXT,
    file_path TEXT NOT NULL,
    file_name TEXT NOT NULL,
    user_id TEXT NOT NULL,
    transcription JSON,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS photos (
    id TEXT PRIMARY KEY,
    product_id TEXT NOT NULL,
    file_path TEXT NOT NULL,
    description TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS videos (
    id TEXT PRIMARY KEY,
    product_id TEXT NOT NULL,
    file_path TEXT NOT NULL,
    duration REAL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS scripts (
    id TEXT PRIMARY KEY,
    product_id TEXT NOT NULL,
    title TEXT,
    content TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS usage_metrics (
    user_id TEXT NOT NULL,
    metric_name TEXT NOT NULL,
    period_start TEXT NOT NULL,
    count INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (user_id, metric_name, period_start)
);
"""

# Columns update_reel may write
REEL_UPDATABLE_COLUMNS = {
    "status",
    "progress_percentage",
    "ordered_media",
    "storage_path",
    "file_name",
    "duration",
}


class ReelStore:
    """Async SQLite store for the reel pipeline.

    Reel rows are returned as Reel dataclasses; input rows (photos, videos,
    scripts, audio) as plain dicts.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize store with database path.

        Args:
            db_path: Path to SQLite database file. Parent directory
                     will be created if it doesn't exist.
        """
        self.db_path = Path(db_path)
        self.db: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Open the connection and create the schema."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self.db = await aiosqlite.connect(str(self.db_path))
        self.db.row_factory = aiosqlite.Row

        # Enable WAL mode for better concurrent read performance
        await self.db.execute("PRAGMA journal_mode=WAL")
        await self.db.execute("PRAGMA foreign_keys=ON")
        await self.db.executescript(SCHEMA)
        await self.db.commit()
        logger.info(f"Reel store connected: {self.db_path}")

    async def close(self) -> None:
        """Close database connection."""
        if self.db:
            await self.db.close()
            self.db = None
            logger.info("Reel store connection closed")

    @property
    def _conn(self) -> aiosqlite.Connection:
        if self.db is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self.db

    # Reels

    async def create_reel(self, request: ReelRequest, reel_id: str | None = None) -> Reel:
        """Insert a pending reel for a generation request.

        Args:
            request: Generation inputs, stored for retries
            reel_id: Explicit id (generated if omitted)

        Returns:
            The created reel
        """
        reel_id = reel_id or str(uuid.uuid4())
        now = datetime.now().isoformat()

        await self._conn.execute(
            """
            INSERT INTO reels (
                id, product_id, script_id, user_id, title, status,
                progress_percentage, request, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                reel_id,
                request.product_id,
                request.script_id,
                request.user_id,
                request.title,
                ReelStatus.PENDING.value,
                ReelStatus.PENDING.progress,
                json.dumps(request.to_dict()),
                now,
                now,
            ),
        )
        await self._conn.commit()

        logger.info(f"Created reel {reel_id} for product {request.product_id}")
        reel = await self.get_reel(reel_id)
        assert reel is not None
        return reel

    async def get_reel(self, reel_id: str) -> Reel | None:
        async with self._conn.execute("SELECT * FROM reels WHERE id = ?", (reel_id,)) as cursor:
            row = await cursor.fetchone()
            return self._row_to_reel(row) if row else None

    async def update_reel(self, reel_id: str, **fields: Any) -> Reel | None:
        """Update selected reel columns.

        Args:
            reel_id: Reel identifier
            **fields: Column values; ``status`` accepts a ReelStatus,
                ``ordered_media`` a dict

        Returns:
            Updated reel or None if not found

        Raises:
            ValueError: If an unknown column is given
        """
        unknown = set(fields) - REEL_UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update reel columns: {sorted(unknown)}")

        values: dict[str, Any] = {}
        for column, value in fields.items():
            if column == "status":
                value = ReelStatus(value).value
            elif column == "ordered_media" and value is not None:
                value = json.dumps(value)
            values[column] = value
        values["updated_at"] = datetime.now().isoformat()

        assignments = ", ".join(f"{column} = ?" for column in values)
        cursor = await self._conn.execute(
            f"UPDATE reels SET {assignments} WHERE id = ?",
            (*values.values(), reel_id),
        )
        await self._conn.commit()
        if cursor.rowcount == 0:
            return None

        logger.debug(f"Updated reel {reel_id}: {sorted(fields)}")
        return await self.get_reel(reel_id)

    async def reset_reel(self, reel_id: str) -> Reel | None:
        """Put a reel back to pending for a retry, clearing prior outputs."""
        cursor = await self._conn.execute(
            """
            UPDATE reels SET status = ?, progress_percentage = 0, ordered_media = NULL,
                storage_path = NULL, file_name = NULL, duration = NULL, updated_at = ?
            WHERE id = ?
            """,
            (ReelStatus.PENDING.value, datetime.now().isoformat(), reel_id),
        )
        await self._conn.commit()
        if cursor.rowcount == 0:
            return None
        return await self.get_reel(reel_id)

    async def list_reels(
        self,
        product_id: str | None = None,
        status: str | None = None,
        limit: int = 100,
    ) -> list[Reel]:
        """List reels with optional filters, newest first."""
        query = "SELECT * FROM reels WHERE 1=1"
        params: list[Any] = []

        if product_id:
            query += " AND product_id = ?"
            params.append(product_id)
        if status:
            query += " AND status = ?"
            params.append(status)

        query += " ORDER BY created_at DESC LIMIT ?"
        params.append(limit)

        async with self._conn.execute(query, params) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_reel(row) for row in rows]

    async def delete_reel(self, reel_id: str) -> bool:
        """Delete a reel; its audio rows go with it."""
        async with self._conn.execute(
            "DELETE FROM reels WHERE id = ? RETURNING id", (reel_id,)
        ) as cursor:
            row = await cursor.fetchone()
        await self._conn.commit()

        if row is not None:
            logger.info(f"Deleted reel {reel_id}")
            return True
        return False

    def _row_to_reel(self, row: aiosqlite.Row) -> Reel:
        ordered_media = None
        if row["ordered_media"]:
            try:
                ordered_media = json.loads(row["ordered_media"])
            except json.JSONDecodeError:
                logger.warning(f"Failed to parse ordered_media for reel {row['id']}")

        request = None
        if row["request"]:
            try:
                request = ReelRequest.from_dict(json.loads(row["request"]))
            except (json.JSONDecodeError, KeyError):
                logger.warning(f"Failed to parse stored request for reel {row['id']}")

        return Reel(
            id=row["id"],
            product_id=row["product_id"],
            user_id=row["user_id"],
            title=row["title"],
            status=ReelStatus(row["status"]),
            progress_percentage=row["progress_percentage"],
            script_id=row["script_id"],
            ordered_media=ordered_media,
            storage_path=row["storage_path"],
            file_name=row["file_name"],
            duration=row["duration"],
            request=request,
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    # Inputs

    async def add_photo(
        self,
        product_id: str,
        file_path: str,
        description: str | None = None,
        photo_id: str | None = None,
    ) -> str:
        photo_id = photo_id or str(uuid.uuid4())
        await self._conn.execute(
            "INSERT INTO photos (id, product_id, file_path, description, created_at) VALUES (?, ?, ?, ?, ?)",
            (photo_id, product_id, file_path, description, datetime.now().isoformat()),
        )
        await self._conn.commit()
        return photo_id

    async def add_video(
        self,
        product_id: str,
        file_path: str,
        duration: float | None = None,
        video_id: str | None = None,
    ) -> str:
        video_id = video_id or str(uuid.uuid4())
        await self._conn.execute(
            "INSERT INTO videos (id, product_id, file_path, duration, created_at) VALUES (?, ?, ?, ?, ?)",
            (video_id, product_id, file_path, duration, datetime.now().isoformat()),
        )
        await self._conn.commit()
        return video_id

    async def add_script(
        self,
        product_id: str,
        content: str,
        title: str | None = None,
        script_id: str | None = None,
    ) -> str:
        script_id = script_id or str(uuid.uuid4())
        await self._conn.execute(
            "INSERT INTO scripts (id, product_id, title, content, created_at) VALUES (?, ?, ?, ?, ?)",
            (script_id, product_id, title, content, datetime.now().isoformat()),
        )
        await self._conn.commit()
        return script_id

    async def _get_rows_by_ids(self, table: str, ids: list[str]) -> list[dict[str, Any]]:
        """Fetch rows by id, returned in the order of ``ids``; missing ids are omitted."""
        if not ids:
            return []
        placeholders = ", ".join("?" for _ in ids)
        async with self._conn.execute(
            f"SELECT * FROM {table} WHERE id IN ({placeholders})", list(ids)
        ) as cursor:
            rows = {row["id"]: dict(row) for row in await cursor.fetchall()}
        return [rows[i] for i in ids if i in rows]

    async def get_photos(self, photo_ids: list[str]) -> list[dict[str, Any]]:
        return await self._get_rows_by_ids("photos", photo_ids)

    async def get_videos(self, video_ids: list[str]) -> list[dict[str, Any]]:
        return await self._get_rows_by_ids("videos", video_ids)

    async def get_script(self, script_id: str) -> dict[str, Any] | None:
        rows = await self._get_rows_by_ids("scripts", [script_id])
        return rows[0] if rows else None

    async def update_photo_description(self, photo_id: str, description: str) -> bool:
        cursor = await self._conn.execute(
            "UPDATE photos SET description = ? WHERE id = ?", (description, photo_id)
        )
        await self._conn.commit()
        return cursor.rowcount > 0

    # Narration audio

    async def insert_audio(
        self,
        reel_id: str,
        file_path: str,
        file_name: str,
        user_id: str,
        script_id: str | None = None,
        transcription: dict[str, Any] | None = None,
    ) -> str:
        """Record narration audio and its transcript for a reel.

        Returns:
            Audio row id
        """
        audio_id = str(uuid.uuid4())
        await self._conn.execute(
            """
            INSERT INTO audio (
                id, reel_id, script_id, file_path, file_name, user_id, transcription, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                audio_id,
                reel_id,
                script_id,
                file_path,
                file_name,
                user_id,
                json.dumps(transcription) if transcription is not None else None,
                datetime.now().isoformat(),
            ),
        )
        await self._conn.commit()
        logger.info(f"Stored narration audio {file_name} for reel {reel_id}")
        return audio_id

    async def get_audio_for_reel(self, reel_id: str) -> list[dict[str, Any]]:
        async with self._conn.execute(
            "SELECT * FROM audio WHERE reel_id = ? ORDER BY created_at", (reel_id,)
        ) as cursor:
            rows = [dict(row) for row in await cursor.fetchall()]
        for row in rows:
            if row["transcription"]:
                row["transcription"] = json.loads(row["transcription"])
        return rows

    # Usage metering

    async def get_usage(self, user_id: str, metric_name: str, period_start: str) -> int:
        async with self._conn.execute(
            "SELECT count FROM usage_metrics WHERE user_id = ? AND metric_name = ? AND period_start = ?",
            (user_id, metric_name, period_start),
        ) as cursor:
            row = await cursor.fetchone()
            return row[0] if row else 0

    async def increment_usage(self, user_id: str, metric_name: str, period_start: str) -> int:
        """Add one to a usage counter and return the new value."""
        await self._conn.execute(
            """
            INSERT INTO usage_metrics (user_id, metric_name, period_start, count)
            VALUES (?, ?, ?, 1)
            ON CONFLICT (user_id, metric_name, period_start)
            DO UPDATE SET count = count + 1
            """,
            (user_id, metric_name, period_start),
        )
        await self._conn.commit()
        return await self.get_usage(user_id, metric_name, period_start)
