"""SQLite storage backend for clips with a synchronized FTS5 index."""

import logging
import os
import sqlite3
import threading
from collections import Counter
from typing import Any, Dict, List, Optional

import pandas as pd

from clipsage.core.codec import (
    decode_tags,
    decode_timestamp,
    decode_vector,
    encode_tags,
    encode_timestamp,
    encode_vector,
)
from clipsage.core.embeddings import EmbeddingProvider
from clipsage.core.errors import (
    EmbeddingUnavailable,
    PersistenceError,
    ProviderError,
    ProviderUnavailable,
)
from clipsage.core.lexical import LexicalIndex
from clipsage.models.schemas import ClipEntry

logger = logging.getLogger(__name__)

CLIP_COLUMNS = "id, content, summary, tags, timestamp, source, embedding"

SCHEMA = """
CREATE TABLE IF NOT EXISTS clips (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    content TEXT NOT NULL,
    summary TEXT NOT NULL,
    tags TEXT NOT NULL,  -- JSON array
    timestamp TEXT NOT NULL,  -- ISO-8601, UTC
    source TEXT,
    embedding BLOB  -- little-endian float32
);

CREATE INDEX IF NOT EXISTS clips_timestamp_idx ON clips(timestamp);
"""


class ClipStore:
    """Canonical clip store.

    Owns a single SQLite connection. Every operation takes the store lock, so
    at most one store operation runs at a time. The lock is never held while
    waiting on the embedding provider.
    """

    def __init__(self, db_path: str, provider: EmbeddingProvider):
        self.db_path = db_path
        self.provider = provider
        self.index = LexicalIndex(CLIP_COLUMNS)
        self._lock = threading.Lock()
        self._conn = self._connect()

    def _connect(self) -> sqlite3.Connection:
        try:
            if self.db_path != ":memory:":
                parent = os.path.dirname(os.path.abspath(self.db_path))
                os.makedirs(parent, exist_ok=True)

            conn = sqlite3.connect(self.db_path, check_same_thread=False)
            conn.row_factory = sqlite3.Row
            with conn:
                conn.executescript(SCHEMA)
                self.index.create(conn)
        except (OSError, sqlite3.Error) as e:
            logger.error(f"Storage initialization failed for {self.db_path}: {e}")
            raise PersistenceError(f"Cannot open clip store at {self.db_path}: {e}") from e

        logger.info(f"Clip store ready at {self.db_path}")
        return conn

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    async def insert(self, entry: ClipEntry) -> ClipEntry:
        """Persist a new clip, generating its embedding when absent.

        Nothing is written if embedding generation fails.
        """
        embedding = entry.embedding
        if embedding is None:
            try:
                embedding = await self.provider.embed(entry.content)
            except (ProviderUnavailable, ProviderError) as e:
                logger.warning(f"Embedding generation failed for clip {entry.id}: {e}")
                raise EmbeddingUnavailable(
                    f"Could not embed clip {entry.id}: {e}"
                ) from e
            entry = entry.model_copy(update={"embedding": embedding})

        params = (
            entry.id,
            entry.content,
            entry.summary,
            encode_tags(entry.tags),
            encode_timestamp(entry.timestamp),
            entry.source,
            encode_vector(embedding),
        )

        with self._lock:
            try:
                with self._conn:
                    self._conn.execute(
                        f"INSERT INTO clips ({CLIP_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                        params,
                    )
            except sqlite3.IntegrityError as e:
                raise PersistenceError(f"Clip {entry.id} already exists") from e
            except sqlite3.Error as e:
                logger.error(f"Insert failed for clip {entry.id}: {e}")
                raise PersistenceError(f"Insert failed for clip {entry.id}: {e}") from e

        logger.debug(f"Stored clip {entry.id} ({len(embedding)} dims)")
        return entry

    def delete(self, clip_id: str) -> bool:
        """Remove a clip and its index entry. Returns False if it did not exist."""
        with self._lock:
            try:
                with self._conn:
                    cursor = self._conn.execute(
                        "DELETE FROM clips WHERE id = ?", (clip_id,)
                    )
            except sqlite3.Error as e:
                logger.error(f"Delete failed for clip {clip_id}: {e}")
                raise PersistenceError(f"Delete failed for clip {clip_id}: {e}") from e

        removed = cursor.rowcount > 0
        logger.debug(f"Delete clip {clip_id}: {'removed' if removed else 'not found'}")
        return removed

    def get(self, clip_id: str) -> Optional[ClipEntry]:
        rows = self._query(
            f"SELECT {CLIP_COLUMNS} FROM clips WHERE id = ?", (clip_id,)
        )
        return self._row_to_entry(rows[0]) if rows else None

    def get_recent(self, limit: int) -> List[ClipEntry]:
        """Newest first; equal timestamps return the later insert first."""
        if limit <= 0:
            return []
        rows = self._query(
            f"SELECT {CLIP_COLUMNS} FROM clips ORDER BY timestamp DESC, seq DESC LIMIT ?",
            (limit,),
        )
        return [self._row_to_entry(row) for row in rows]

    def get_by_lexical_query(self, query: str, limit: int) -> List[ClipEntry]:
        """Full-text matches in relevance order."""
        with self._lock:
            try:
                rows = self.index.match(self._conn, query, limit)
            except sqlite3.Error as e:
                logger.error(f"Lexical query failed for {query!r}: {e}")
                raise PersistenceError(f"Lexical query failed: {e}") from e
        return [self._row_to_entry(row) for row in rows]

    def count(self) -> int:
        rows = self._query("SELECT COUNT(*) AS n FROM clips", ())
        return rows[0]["n"]

    def rebuild_index(self) -> None:
        """Re-derive the lexical index from the canonical table."""
        with self._lock:
            try:
                with self._conn:
                    self.index.rebuild(self._conn)
            except sqlite3.Error as e:
                raise PersistenceError(f"Index rebuild failed: {e}") from e
        logger.info("Lexical index rebuilt")

    def get_stats(self) -> Dict[str, Any]:
        """Get statistics about stored clips."""
        with self._lock:
            try:
                df = pd.read_sql_query(
                    "SELECT content, tags, timestamp, source FROM clips", self._conn
                )
            except (sqlite3.Error, pd.errors.DatabaseError) as e:
                raise PersistenceError(f"Stats query failed: {e}") from e

        if len(df) == 0:
            return {
                "total_clips": 0,
                "avg_content_length": 0,
                "top_tags": [],
                "sources": {},
                "storage_path": self.db_path,
            }

        tag_counts = Counter()
        for tags in df["tags"]:
            tag_counts.update(decode_tags(tags))

        avg_length = df["content"].str.len().mean()
        sources = df["source"].fillna("unknown").value_counts()

        return {
            "total_clips": len(df),
            "avg_content_length": round(float(avg_length), 1),
            "top_tags": tag_counts.most_common(10),
            "sources": {str(k): int(v) for k, v in sources.items()},
            "storage_path": self.db_path,
            "oldest_clip": df["timestamp"].min(),
            "newest_clip": df["timestamp"].max(),
        }

    def _query(self, sql: str, params: tuple) -> List[sqlite3.Row]:
        with self._lock:
            try:
                return self._conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                logger.error(f"Query failed: {e}")
                raise PersistenceError(f"Query failed: {e}") from e

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> ClipEntry:
        blob = row["embedding"]
        return ClipEntry(
            id=row["id"],
            content=row["content"],
            summary=row["summary"],
            tags=decode_tags(row["tags"]),
            timestamp=decode_timestamp(row["timestamp"]),
            source=row["source"],
            embedding=decode_vector(blob) if blob is not None else None,
        )
