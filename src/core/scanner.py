"""Per-channel scanning: fetch recent messages and extract candidates.

The scanner only talks to the SourcePort, so reconnection stays the
session manager's job. Timeouts on the source surface as
SourceConnectionError for the cycle to handle.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, List, Optional

from core.config import ScanConfig
from core.errors import SourceConnectionError
from core.extraction import extract_budget, extract_title
from core.filters import ChannelFilter, within_lookback
from core.models import CandidateRecord, ChannelSource, RawMessage
from core.ports import SourcePort
from core.source_keys import build_source_url

LOGGER = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChannelScanner:
    """Turns the recent messages of one channel into candidate records."""

    def __init__(
        self,
        source: SourcePort,
        config: ScanConfig,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._source = source
        self._config = config
        self._clock = clock
        self._sleep = sleep

    async def _bounded(self, awaitable: Awaitable[Any], timeout: float, what: str) -> Any:
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise SourceConnectionError(f"Timed out after {timeout}s while {what}") from exc

    async def scan(self, channel: ChannelSource) -> List[CandidateRecord]:
        """Return candidates from ``channel`` in fetch order.

        Channel-level failures propagate; a message that cannot be extracted
        is skipped.
        """

        entity = await self._bounded(
            self._source.resolve(channel.handle),
            self._config.resolve_timeout_seconds,
            f"resolving {channel.handle}",
        )
        messages = await self._bounded(
            self._source.fetch_recent(entity, self._config.message_limit),
            self._config.fetch_timeout_seconds,
            f"fetching {channel.handle}",
        )

        # The source only supports a count limit, so the time window is
        # applied here against each message timestamp.
        cutoff = self._clock() - timedelta(minutes=self._config.lookback_minutes)
        channel_filter = ChannelFilter.for_channel(channel)
        candidates: List[CandidateRecord] = []

        for index, message in enumerate(messages):
            if index and self._config.message_pause_seconds > 0:
                await self._sleep(self._config.message_pause_seconds)
            try:
                record = self._extract(channel, channel_filter, message, cutoff)
            except Exception:
                LOGGER.debug(
                    "Skipping message %s from %s after extraction error",
                    getattr(message, "id", "?"),
                    channel.handle,
                    exc_info=True,
                )
                continue
            if record is not None:
                candidates.append(record)

        LOGGER.debug(
            "Scanned %s: fetched=%s candidates=%s", channel.handle, len(messages), len(candidates)
        )
        return candidates

    def _extract(
        self,
        channel: ChannelSource,
        channel_filter: ChannelFilter,
        message: RawMessage,
        cutoff: datetime,
    ) -> Optional[CandidateRecord]:
        text = message.text or ""
        if not text.strip():
            return None
        if not within_lookback(message.published_at, cutoff):
            return None
        if not channel_filter.accepts(text):
            return None

        return CandidateRecord(
            topic_key=channel.topic_key,
            topic_label=channel.topic_label,
            source_url=build_source_url(channel.handle, message.id),
            published_at=message.published_at,
            channel_id=channel.id,
            message=message,
            title=extract_title(text),
            budget=extract_budget(text),
        )
