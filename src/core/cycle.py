"""One pass of the ingestion pipeline.

The cycle enforces a strict order:
1) Make sure the source session is healthy (skip the cycle otherwise)
2) Load channels and recipients from the catalog
3) Scan channels one by one, in catalog order
4) Check each candidate against the dedup ledger, in fetch order
5) Fan out new candidates to matching recipients
6) Mark the channel as scanned

Failures are handled at the smallest scope possible: a bad message is
skipped inside the scanner, a bad channel is skipped here, and only a
session that cannot be restored stops the rest of the cycle.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, List

from core.config import ScanConfig
from core.dedup import DedupLedger
from core.dispatcher import NotificationDispatcher
from core.errors import SourceConnectionError
from core.models import ChannelSource, CycleReport, Recipient
from core.ports import CatalogPort, SessionPort
from core.scanner import ChannelScanner

LOGGER = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PipelineCycle:
    """Runs scan, dedup and fan-out for every catalog channel."""

    def __init__(
        self,
        session: SessionPort,
        catalog: CatalogPort,
        scanner: ChannelScanner,
        ledger: DedupLedger,
        dispatcher: NotificationDispatcher,
        scan_config: ScanConfig,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._session = session
        self._catalog = catalog
        self._scanner = scanner
        self._ledger = ledger
        self._dispatcher = dispatcher
        self._scan_config = scan_config
        self._clock = clock
        self._sleep = sleep

    async def run(self) -> CycleReport:
        report = CycleReport(started_at=self._clock())
        started = time.monotonic()
        LOGGER.info("Starting cycle at %s", report.started_at.isoformat())
        try:
            await self._run(report)
        finally:
            report.duration_seconds = round(time.monotonic() - started, 3)
            self._log_summary(report)
        return report

    async def _run(self, report: CycleReport) -> None:
        if not await self._session.ensure_healthy():
            LOGGER.error("Source session unavailable, skipping cycle")
            report.skipped = True
            return

        try:
            channels = [channel for channel in self._catalog.list_channels() if channel.active]
            recipients = list(self._catalog.list_active_recipients())
        except Exception:
            LOGGER.exception("Failed to load catalog, skipping cycle")
            report.skipped = True
            return

        report.channels_total = len(channels)
        LOGGER.info("Loaded %s channels and %s active recipients", len(channels), len(recipients))
        if not recipients:
            LOGGER.info("No active recipients, skipping scan")
            report.skipped = True
            return

        for index, channel in enumerate(channels):
            if index and self._scan_config.channel_pause_seconds > 0:
                await self._sleep(self._scan_config.channel_pause_seconds)
            keep_going = await self._process_channel(channel, recipients, report)
            if not keep_going:
                report.aborted = True
                LOGGER.error(
                    "Source session lost and not restored, aborting cycle after %s/%s channels",
                    index + 1,
                    len(channels),
                )
                break

    async def _process_channel(
        self, channel: ChannelSource, recipients: List[Recipient], report: CycleReport
    ) -> bool:
        """Scan one channel; return False when the cycle must stop."""

        try:
            candidates = await self._scanner.scan(channel)
        except SourceConnectionError as exc:
            report.channels_failed += 1
            report.failed_channels.append(channel.id)
            LOGGER.warning("Connection error while scanning %s: %s", channel.handle, exc)
            self._session.invalidate()
            return await self._session.ensure_healthy()
        except Exception:
            report.channels_failed += 1
            report.failed_channels.append(channel.id)
            LOGGER.exception("Failed to scan channel %s", channel.handle)
            return True

        report.channels_scanned += 1
        report.candidates += len(candidates)
        for record in candidates:
            verdict = self._ledger.check_and_mark(record.message.text, channel.id, channel.topic_key)
            if verdict.is_duplicate:
                report.duplicates += 1
                LOGGER.info("Dedup skip for %s (same text seen before)", record.source_url)
                continue
            try:
                report.notifications_sent += await self._dispatcher.fan_out(record, recipients)
            except Exception:
                LOGGER.exception("Failed to dispatch %s", record.source_url)

        try:
            self._catalog.mark_channel_scanned(channel.id, self._clock())
        except Exception:
            LOGGER.warning("Could not record scan time for %s", channel.handle, exc_info=True)
        return True

    def _log_summary(self, report: CycleReport) -> None:
        LOGGER.info(
            "Cycle complete in %.1fs: channels=%s scanned=%s failed=%s candidates=%s "
            "duplicates=%s sent=%s skipped=%s aborted=%s",
            report.duration_seconds,
            report.channels_total,
            report.channels_scanned,
            report.channels_failed,
            report.candidates,
            report.duplicates,
            report.notifications_sent,
            report.skipped,
            report.aborted,
        )
