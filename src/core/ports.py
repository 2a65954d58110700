"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for the catalog, ledger storage, source
platform and notification adapters so that the core can be reused with
different backends and tested with in-memory doubles.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional, Protocol

from core.models import ChannelId, ChannelSource, DedupEntry, RawMessage, Recipient


class CatalogPort(Protocol):
    """Supplies channels to scan and recipients to notify."""

    def list_channels(self) -> List[ChannelSource]:
        ...

    def list_active_recipients(self) -> List[Recipient]:
        ...

    def mark_channel_scanned(self, channel_id: ChannelId, scanned_at: datetime) -> None:
        ...


class LedgerStorePort(Protocol):
    """Persistence operations required by the dedup ledger."""

    def get_entry(self, content_hash: str) -> Optional[DedupEntry]:
        ...

    def insert_entry(self, entry: DedupEntry, excerpt: str) -> None:
        """Insert a new entry; raise DuplicateEntryError if the hash exists."""
        ...

    def touch_entry(self, content_hash: str, seen_at: datetime) -> None:
        ...

    def purge_entries(self, cutoff: datetime) -> int:
        ...


class SourcePort(Protocol):
    """Read access to the source messaging platform."""

    async def resolve(self, handle: str) -> Any:
        ...

    async def fetch_recent(self, entity: Any, limit: int) -> List[RawMessage]:
        ...


class SessionPort(Protocol):
    """Health management of the source connection."""

    async def ensure_healthy(self) -> bool:
        ...

    def invalidate(self) -> None:
        ...


class SenderPort(Protocol):
    """Notification delivery; raises DeliveryError on failure."""

    async def send_message(
        self,
        recipient_id: int,
        text: str,
        parse_mode: str,
        disable_link_preview: bool,
    ) -> int:
        ...
