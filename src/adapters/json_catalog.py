"""Catalog adapter backed by config.json and SQLite scan state.

Channels and recipients are edited in config.json; the last successful scan
time per channel lives in SQLite so it survives restarts.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

from adapters.sqlite_storage import SQLiteStorage
from core.models import ChannelId, ChannelSource, Recipient

LOGGER = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_channel(entry: dict) -> ChannelSource:
    topic_key = entry["topic_key"]
    return ChannelSource(
        id=entry.get("id", entry["handle"]),
        handle=entry["handle"],
        topic_key=topic_key,
        topic_label=entry.get("topic_label") or topic_key,
        keywords=tuple(entry.get("keywords", []) or []),
        stop_words=tuple(entry.get("stop_words", []) or []),
        active=bool(entry.get("active", True)),
    )


def parse_recipient(entry: dict) -> Recipient:
    return Recipient(
        recipient_id=int(entry["recipient_id"]),
        topic_key=entry["topic_key"],
        active=bool(entry.get("active", True)),
        expires_at=_parse_datetime(entry.get("expires_at")),
    )


class JsonCatalog:
    """CatalogPort implementation for a single-operator deployment."""

    def __init__(
        self,
        channels: Iterable[dict],
        recipients: Iterable[dict],
        storage: SQLiteStorage,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._channels = list(channels)
        self._recipients = list(recipients)
        self._storage = storage
        self._clock = clock

    def list_channels(self) -> List[ChannelSource]:
        channels: List[ChannelSource] = []
        for entry in self._channels:
            try:
                channel = parse_channel(entry)
            except (KeyError, TypeError, ValueError):
                LOGGER.warning("Ignoring malformed channel entry: %r", entry)
                continue
            last_scanned = self._storage.get_last_scanned(channel.id)
            if last_scanned is not None:
                channel = replace(channel, last_scanned_at=last_scanned)
            channels.append(channel)
        return channels

    def list_active_recipients(self) -> List[Recipient]:
        now = self._clock()
        recipients: List[Recipient] = []
        for entry in self._recipients:
            try:
                recipient = parse_recipient(entry)
            except (KeyError, TypeError, ValueError):
                LOGGER.warning("Ignoring malformed recipient entry: %r", entry)
                continue
            if recipient.is_current(now):
                recipients.append(recipient)
        return recipients

    def mark_channel_scanned(self, channel_id: ChannelId, scanned_at: datetime) -> None:
        self._storage.set_last_scanned(channel_id, scanned_at)
