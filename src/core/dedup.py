"""Deduplication ledger (core domain).

Content is identified by a SHA-256 digest of its normalized text, so the same
posting cross-posted to several channels, or re-posted with different spacing
and punctuation, is only dispatched once per retention window.
"""

from __future__ import annotations

import hashlib
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Callable

from core.config import DedupConfig
from core.errors import DuplicateEntryError
from core.models import ChannelId, DedupEntry, DedupVerdict
from core.ports import LedgerStorePort

LOGGER = logging.getLogger(__name__)


def _collapse_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def _strip_pattern(preserve_chars: str) -> re.Pattern:
    return re.compile(rf"[^\w\s{re.escape(preserve_chars)}]")


def normalize_for_fingerprint(text: str, preserve_chars: str = "") -> str:
    """Normalize text for deterministic fingerprinting.

    Lower-cases, drops anything that is not a word character, whitespace or
    in ``preserve_chars``, then collapses whitespace.
    """

    stripped = _strip_pattern(preserve_chars).sub("", text.lower())
    return _collapse_whitespace(stripped)


def compute_fingerprint(normalized_text: str) -> str:
    """Return the content hash for already-normalized text."""

    return hashlib.sha256(normalized_text.encode("utf-8")).hexdigest()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DedupLedger:
    """Records which normalized texts were already processed.

    Storage failures never block the pipeline: they are logged and the text
    is reported as new.
    """

    def __init__(
        self,
        store: LedgerStorePort,
        config: DedupConfig,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._config = config
        self._clock = clock

    def fingerprint(self, text: str) -> str:
        return compute_fingerprint(normalize_for_fingerprint(text, self._config.preserve_chars))

    def check_and_mark(self, text: str, channel_id: ChannelId, topic_key: str) -> DedupVerdict:
        """Return whether ``text`` was seen before, recording this sighting."""

        try:
            content_hash = self.fingerprint(text)
            now = self._clock()
            if self._store.get_entry(content_hash) is None:
                entry = DedupEntry(
                    content_hash=content_hash,
                    first_seen=now,
                    last_seen=now,
                    seen_count=1,
                    channel_id=channel_id,
                    topic_key=topic_key,
                )
                try:
                    self._store.insert_entry(entry, text[: self._config.excerpt_chars])
                    return DedupVerdict(is_duplicate=False, content_hash=content_hash)
                except DuplicateEntryError:
                    # Another writer inserted the same hash between our lookup
                    # and insert; count this sighting as a repeat.
                    LOGGER.debug("Concurrent insert for %s, updating instead", content_hash)
            self._store.touch_entry(content_hash, now)
            return DedupVerdict(is_duplicate=True, content_hash=content_hash)
        except Exception:
            LOGGER.warning("Dedup ledger unavailable, treating message as new", exc_info=True)
            return DedupVerdict(is_duplicate=False)

    def sweep(self) -> int:
        """Delete entries not seen within the retention window."""

        cutoff = self._clock() - timedelta(days=self._config.retention_days)
        removed = self._store.purge_entries(cutoff)
        LOGGER.info("Dedup sweep removed %s entries older than %s", removed, cutoff.isoformat())
        return removed
