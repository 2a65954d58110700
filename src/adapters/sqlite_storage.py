"""SQLite storage adapter.

Implements the core LedgerStorePort and keeps per-channel scan state using a
simple SQLite database.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Optional

from core.errors import DuplicateEntryError
from core.models import ChannelId, DedupEntry


class SQLiteStorage:
    """Thin SQLite wrapper that satisfies the LedgerStorePort contract."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - ledger: content hashes for deduplication
        - channel_state: last successful scan per channel
        """

        with self._connect() as conn:
            # ledger stores one row per distinct normalized text.
            # Fields:
            # - content_hash: SHA-256 of normalized text (PRIMARY KEY)
            # - text_excerpt: clipped original text, diagnostics only
            # - channel_id / topic_key: where the text was first seen
            # - seen_count: number of sightings, including the first
            # - first_seen / last_seen: ISO timestamps; last_seen drives retention
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS ledger (
                    content_hash TEXT PRIMARY KEY,
                    text_excerpt TEXT,
                    channel_id TEXT,
                    topic_key TEXT,
                    seen_count INTEGER NOT NULL DEFAULT 1,
                    first_seen TIMESTAMP NOT NULL,
                    last_seen TIMESTAMP NOT NULL
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS ledger_last_seen ON ledger (last_seen)")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS channel_state (
                    channel_id TEXT PRIMARY KEY,
                    last_scanned_at TIMESTAMP NOT NULL
                )
                """
            )

    def get_entry(self, content_hash: str) -> Optional[DedupEntry]:
        """Return the ledger entry for a hash, if any."""

        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT content_hash, channel_id, topic_key, seen_count, first_seen, last_seen
                FROM ledger WHERE content_hash = ?
                """,
                (content_hash,),
            ).fetchone()
        if row is None:
            return None
        return DedupEntry(
            content_hash=row["content_hash"],
            first_seen=datetime.fromisoformat(row["first_seen"]),
            last_seen=datetime.fromisoformat(row["last_seen"]),
            seen_count=int(row["seen_count"]),
            channel_id=row["channel_id"],
            topic_key=row["topic_key"],
        )

    def insert_entry(self, entry: DedupEntry, excerpt: str) -> None:
        """Insert a new entry; an existing hash raises DuplicateEntryError."""

        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO ledger (
                        content_hash,
                        text_excerpt,
                        channel_id,
                        topic_key,
                        seen_count,
                        first_seen,
                        last_seen
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        entry.content_hash,
                        excerpt,
                        str(entry.channel_id),
                        entry.topic_key,
                        entry.seen_count,
                        entry.first_seen.isoformat(),
                        entry.last_seen.isoformat(),
                    ),
                )
        except sqlite3.IntegrityError as exc:
            raise DuplicateEntryError(entry.content_hash) from exc

    def touch_entry(self, content_hash: str, seen_at: datetime) -> None:
        """Count another sighting of a hash."""

        with self._connect() as conn:
            conn.execute(
                """
                UPDATE ledger
                SET seen_count = seen_count + 1, last_seen = ?
                WHERE content_hash = ?
                """,
                (seen_at.isoformat(), content_hash),
            )

    def purge_entries(self, cutoff: datetime) -> int:
        """Delete entries last seen before ``cutoff`` and return the number removed."""

        with self._connect() as conn:
            cur = conn.execute(
                "DELETE FROM ledger WHERE last_seen < ?",
                (cutoff.isoformat(),),
            )
            return cur.rowcount

    def get_last_scanned(self, channel_id: ChannelId) -> Optional[datetime]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT last_scanned_at FROM channel_state WHERE channel_id = ?",
                (str(channel_id),),
            ).fetchone()
        return datetime.fromisoformat(row["last_scanned_at"]) if row else None

    def set_last_scanned(self, channel_id: ChannelId, scanned_at: datetime) -> None:
        """Upsert the last successful scan time for a channel."""

        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO channel_state (channel_id, last_scanned_at)
                VALUES (?, ?)
                ON CONFLICT(channel_id) DO UPDATE SET last_scanned_at = excluded.last_scanned_at
                """,
                (str(channel_id), scanned_at.isoformat()),
            )
