import json
import os
import sqlite3
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Dict, Iterable, List, Optional
import logging

import aiosqlite

from core.categories import CATEGORY_PRIORITY
from core.entities import AudioArtifact, Broadcast, QualityScore, RawItem
from core.errors import DuplicateBroadcastError, PersistenceError

logger = logging.getLogger(__name__)


def to_db_time(value: datetime) -> str:
    """UTC ISO-8601 with fixed precision, so string order is time order."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_db_time(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _row_to_item(row) -> RawItem:
    return RawItem(
        external_id=row[0],
        author=row[1],
        verified=bool(row[2]),
        content=row[3],
        timestamp=from_db_time(row[4]),
        engagement=row[5],
        ingested_at=from_db_time(row[6]),
        processed=bool(row[7]),
    )


def _row_to_broadcast(row) -> Broadcast:
    return Broadcast(
        id=row[0],
        broadcast_hour=from_db_time(row[1]),
        full_script=row[2],
        summary_text=row[3],
        cluster_count=row[4],
        item_count=row[5],
        word_count=row[6],
        estimated_duration_seconds=row[7],
        is_published=bool(row[8]),
    )


_ITEM_COLUMNS = "external_id, author, verified, content, timestamp, engagement, ingested_at, processed"
_BROADCAST_COLUMNS = (
    "id, broadcast_hour, full_script, summary_text, cluster_count, item_count, "
    "word_count, estimated_duration_seconds, is_published"
)


class Database:
    def __init__(self, path: str):
        self.path = path

    @asynccontextmanager
    async def connect(self) -> AsyncIterator[aiosqlite.Connection]:
        try:
            conn = await aiosqlite.connect(self.path)
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot open database {self.path}: {e}") from e
        try:
            await conn.execute("PRAGMA journal_mode=WAL;")
            await conn.execute("PRAGMA foreign_keys=ON;")
            yield conn
        except sqlite3.Error as e:
            raise PersistenceError(str(e)) from e
        finally:
            await conn.close()

    async def execute(self, query: str, params: tuple = ()) -> int:
        async with self.connect() as conn:
            cursor = await conn.execute(query, params)
            await conn.commit()
            return cursor.rowcount

    async def fetchone(self, query: str, params: tuple = ()):
        async with self.connect() as conn:
            cursor = await conn.execute(query, params)
            return await cursor.fetchone()

    async def fetchall(self, query: str, params: tuple = ()):
        async with self.connect() as conn:
            cursor = await conn.execute(query, params)
            return await cursor.fetchall()

    async def init_tables(self) -> None:
        """Create tables and seed category thresholds."""
        parent = os.path.dirname(self.path)
        if parent:
            os.makedirs(parent, exist_ok=True)

        async with self.connect() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS raw_items (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    external_id TEXT NOT NULL UNIQUE,
                    author TEXT NOT NULL,
                    verified INTEGER NOT NULL DEFAULT 0,
                    content TEXT NOT NULL,
                    timestamp TEXT NOT NULL,
                    engagement INTEGER NOT NULL DEFAULT 0,
                    ingested_at TEXT NOT NULL,
                    processed INTEGER NOT NULL DEFAULT 0
                )
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_raw_items_window
                ON raw_items(ingested_at, processed)
            """)
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS quality_scores (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    item_id TEXT NOT NULL UNIQUE REFERENCES raw_items(external_id),
                    is_valid INTEGER NOT NULL,
                    confidence REAL NOT NULL,
                    primary_category TEXT NOT NULL,
                    secondary_categories TEXT NOT NULL DEFAULT '[]',
                    rejection_reason TEXT,
                    created_at TEXT NOT NULL
                )
            """)
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS categories (
                    name TEXT PRIMARY KEY,
                    description TEXT,
                    confidence_threshold REAL NOT NULL DEFAULT 0.6
                )
            """)
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS broadcasts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    broadcast_hour TEXT NOT NULL UNIQUE,
                    full_script TEXT NOT NULL,
                    summary_text TEXT,
                    cluster_count INTEGER NOT NULL DEFAULT 0,
                    item_count INTEGER NOT NULL DEFAULT 0,
                    word_count INTEGER NOT NULL DEFAULT 0,
                    estimated_duration_seconds INTEGER,
                    is_published INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL
                )
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_broadcasts_published
                ON broadcasts(is_published, broadcast_hour)
            """)
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS audio_artifacts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    broadcast_id INTEGER NOT NULL UNIQUE REFERENCES broadcasts(id),
                    audio_url TEXT NOT NULL,
                    duration_seconds INTEGER NOT NULL,
                    file_size_bytes INTEGER,
                    voice_used TEXT,
                    created_at TEXT NOT NULL
                )
            """)
            await conn.executemany(
                "INSERT OR IGNORE INTO categories (name, description, confidence_threshold) VALUES (?, ?, ?)",
                [(c.name, c.description, c.confidence_threshold) for c in CATEGORY_PRIORITY],
            )
            await conn.commit()
            logger.info("Database tables initialized")

    # ----------------------------
    # Raw items
    # ----------------------------
    async def insert_item(self, item: RawItem) -> bool:
        """
        Insert a raw item. Returns False if the external id is already stored.
        """
        try:
            await self.execute(
                f"INSERT INTO raw_items ({_ITEM_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    item.external_id,
                    item.author,
                    int(item.verified),
                    item.content,
                    to_db_time(item.timestamp),
                    item.engagement,
                    to_db_time(item.ingested_at),
                    int(item.processed),
                ),
            )
        except PersistenceError as e:
            if isinstance(e.__cause__, sqlite3.IntegrityError):
                return False
            raise
        return True

    async def get_unprocessed_items(self, start: datetime, end: datetime) -> List[RawItem]:
        """Unprocessed items with start < ingested_at <= end, oldest first."""
        rows = await self.fetchall(
            f"""SELECT {_ITEM_COLUMNS} FROM raw_items
                WHERE ingested_at > ? AND ingested_at <= ? AND processed = 0
                ORDER BY ingested_at, id""",
            (to_db_time(start), to_db_time(end)),
        )
        return [_row_to_item(row) for row in rows]

    async def get_item(self, external_id: str) -> Optional[RawItem]:
        row = await self.fetchone(
            f"SELECT {_ITEM_COLUMNS} FROM raw_items WHERE external_id = ?", (external_id,)
        )
        return _row_to_item(row) if row else None

    async def get_item_contents(self, external_ids: Iterable[str]) -> List[str]:
        ids = list(external_ids)
        if not ids:
            return []
        placeholders = ", ".join("?" for _ in ids)
        rows = await self.fetchall(
            f"SELECT content FROM raw_items WHERE external_id IN ({placeholders}) ORDER BY id",
            tuple(ids),
        )
        return [row[0] for row in rows]

    async def mark_items_processed(self, external_ids: Iterable[str]) -> int:
        """Set processed=1. There is no inverse operation."""
        ids = list(external_ids)
        if not ids:
            return 0
        placeholders = ", ".join("?" for _ in ids)
        return await self.execute(
            f"UPDATE raw_items SET processed = 1 WHERE external_id IN ({placeholders})",
            tuple(ids),
        )

    # ----------------------------
    # Quality scores and categories
    # ----------------------------
    async def get_category_thresholds(self) -> Dict[str, float]:
        rows = await self.fetchall("SELECT name, confidence_threshold FROM categories")
        return {name: float(threshold) for name, threshold in rows}

    async def get_quality_score(self, item_id: str) -> Optional[QualityScore]:
        row = await self.fetchone(
            """SELECT item_id, is_valid, confidence, primary_category,
                      secondary_categories, rejection_reason
               FROM quality_scores WHERE item_id = ?""",
            (item_id,),
        )
        if row is None:
            return None
        return QualityScore(
            item_id=row[0],
            is_valid=bool(row[1]),
            confidence=row[2],
            primary_category=row[3],
            secondary_categories=tuple(json.loads(row[4] or "[]")),
            rejection_reason=row[5],
        )

    async def insert_quality_score(self, score: QualityScore) -> None:
        await self.execute(
            """INSERT INTO quality_scores
               (item_id, is_valid, confidence, primary_category,
                secondary_categories, rejection_reason, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (
                score.item_id,
                int(score.is_valid),
                score.confidence,
                score.primary_category,
                json.dumps(list(score.secondary_categories)),
                score.rejection_reason,
                to_db_time(datetime.now(timezone.utc)),
            ),
        )

    # ----------------------------
    # Broadcasts
    # ----------------------------
    async def insert_broadcast(self, broadcast: Broadcast) -> int:
        """
        Insert a broadcast. Raises DuplicateBroadcastError if the hour is taken.
        """
        try:
            async with self.connect() as conn:
                cursor = await conn.execute(
                    """INSERT INTO broadcasts
                       (broadcast_hour, full_script, summary_text, cluster_count, item_count,
                        word_count, estimated_duration_seconds, is_published, created_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        to_db_time(broadcast.broadcast_hour),
                        broadcast.full_script,
                        broadcast.summary_text,
                        broadcast.cluster_count,
                        broadcast.item_count,
                        broadcast.word_count,
                        broadcast.estimated_duration_seconds,
                        int(broadcast.is_published),
                        to_db_time(datetime.now(timezone.utc)),
                    ),
                )
                await conn.commit()
                return cursor.lastrowid
        except PersistenceError as e:
            if isinstance(e.__cause__, sqlite3.IntegrityError):
                raise DuplicateBroadcastError(broadcast.broadcast_hour) from e
            raise

    async def get_broadcast(self, broadcast_id: int) -> Optional[Broadcast]:
        row = await self.fetchone(
            f"SELECT {_BROADCAST_COLUMNS} FROM broadcasts WHERE id = ?", (broadcast_id,)
        )
        return _row_to_broadcast(row) if row else None

    async def get_broadcast_for_hour(self, broadcast_hour: datetime) -> Optional[Broadcast]:
        row = await self.fetchone(
            f"SELECT {_BROADCAST_COLUMNS} FROM broadcasts WHERE broadcast_hour = ?",
            (to_db_time(broadcast_hour),),
        )
        return _row_to_broadcast(row) if row else None

    async def get_unpublished_broadcasts(self, limit: int = 10) -> List[Broadcast]:
        rows = await self.fetchall(
            f"""SELECT {_BROADCAST_COLUMNS} FROM broadcasts
                WHERE is_published = 0
                ORDER BY broadcast_hour ASC
                LIMIT ?""",
            (limit,),
        )
        return [_row_to_broadcast(row) for row in rows]

    async def get_recent_broadcasts(self, limit: int = 10) -> List[Broadcast]:
        rows = await self.fetchall(
            f"SELECT {_BROADCAST_COLUMNS} FROM broadcasts ORDER BY broadcast_hour DESC LIMIT ?",
            (limit,),
        )
        return [_row_to_broadcast(row) for row in rows]

    async def mark_broadcast_published(self, broadcast_id: int) -> None:
        updated = await self.execute(
            "UPDATE broadcasts SET is_published = 1 WHERE id = ?", (broadcast_id,)
        )
        if updated != 1:
            raise PersistenceError(f"Broadcast {broadcast_id} not found")

    # ----------------------------
    # Audio artifacts
    # ----------------------------
    async def insert_audio_artifact(self, artifact: AudioArtifact) -> None:
        await self.execute(
            """INSERT INTO audio_artifacts
               (broadcast_id, audio_url, duration_seconds, file_size_bytes, voice_used, created_at)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                artifact.broadcast_id,
                artifact.audio_url,
                artifact.duration_seconds,
                artifact.file_size_bytes,
                artifact.voice_used,
                to_db_time(datetime.now(timezone.utc)),
            ),
        )

    async def get_audio_artifact(self, broadcast_id: int) -> Optional[AudioArtifact]:
        row = await self.fetchone(
            """SELECT broadcast_id, audio_url, duration_seconds, file_size_bytes, voice_used
               FROM audio_artifacts WHERE broadcast_id = ?""",
            (broadcast_id,),
        )
        if row is None:
            return None
        return AudioArtifact(
            broadcast_id=row[0],
            audio_url=row[1],
            duration_seconds=row[2],
            file_size_bytes=row[3],
            voice_used=row[4],
        )

    # ----------------------------
    # Status
    # ----------------------------
    async def get_item_counts(self) -> Dict[str, int]:
        row = await self.fetchone(
            "SELECT COUNT(*), COALESCE(SUM(processed), 0) FROM raw_items"
        )
        total, processed = row[0], row[1]
        return {"total": total, "processed": processed, "unprocessed": total - processed}

    async def get_quality_breakdown(self) -> Dict[str, object]:
        rows = await self.fetchall(
            """SELECT primary_category, is_valid, COUNT(*)
               FROM quality_scores GROUP BY primary_category, is_valid"""
        )
        valid = 0
        invalid = 0
        by_category: Dict[str, int] = {}
        for category, is_valid, count in rows:
            if is_valid:
                valid += count
                by_category[category] = by_category.get(category, 0) + count
            else:
                invalid += count
        return {"valid": valid, "invalid": invalid, "valid_by_category": by_category}

    async def count_audio_artifacts(self) -> int:
        row = await self.fetchone("SELECT COUNT(*) FROM audio_artifacts")
        return row[0]
