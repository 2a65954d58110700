"""Fan-out of candidate records to subscribed recipients."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Iterable, List

from core.config import DeliveryConfig
from core.errors import DeliveryError
from core.models import CandidateRecord, DeliveryOutcome, DeliveryResult, Recipient
from core.ports import SenderPort

LOGGER = logging.getLogger(__name__)

PARSE_MODE = "HTML"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NotificationDispatcher:
    """Renders a record once and delivers it to each matching recipient.

    Recipients are served one at a time with a short pause in between to
    stay under the Bot API rate limits. A failure for one recipient never
    stops delivery to the rest.
    """

    def __init__(
        self,
        sender: SenderPort,
        render: Callable[[CandidateRecord], str],
        config: DeliveryConfig,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._sender = sender
        self._render = render
        self._config = config
        self._clock = clock
        self._sleep = sleep

    def matching_recipients(
        self, record: CandidateRecord, recipients: Iterable[Recipient]
    ) -> List[Recipient]:
        now = self._clock()
        return [
            recipient
            for recipient in recipients
            if recipient.topic_key == record.topic_key and recipient.is_current(now)
        ]

    async def fan_out(self, record: CandidateRecord, recipients: Iterable[Recipient]) -> int:
        """Deliver ``record`` and return how many recipients received it."""

        results = await self.fan_out_results(record, recipients)
        return sum(1 for result in results if result.outcome is DeliveryOutcome.DELIVERED)

    async def fan_out_results(
        self, record: CandidateRecord, recipients: Iterable[Recipient]
    ) -> List[DeliveryResult]:
        targets = self.matching_recipients(record, recipients)
        if not targets:
            return []

        text = self._render(record)
        results: List[DeliveryResult] = []
        for index, recipient in enumerate(targets):
            if index and self._config.pause_seconds > 0:
                await self._sleep(self._config.pause_seconds)
            outcome = await self._deliver(recipient, text)
            results.append(DeliveryResult(recipient_id=recipient.recipient_id, outcome=outcome))

        delivered = sum(1 for result in results if result.outcome is DeliveryOutcome.DELIVERED)
        LOGGER.info(
            "Posting %s sent to %s/%s recipients (%s)",
            record.source_url,
            delivered,
            len(targets),
            record.topic_key,
        )
        return results

    async def _deliver(self, recipient: Recipient, text: str) -> DeliveryOutcome:
        try:
            await self._sender.send_message(
                recipient.recipient_id,
                text,
                parse_mode=PARSE_MODE,
                disable_link_preview=self._config.disable_link_preview,
            )
        except DeliveryError as exc:
            if exc.recipient_unreachable:
                # Blocked bots and deleted chats are routine for subscriptions.
                LOGGER.debug("Recipient %s unreachable: %s", recipient.recipient_id, exc.description)
                return DeliveryOutcome.RECIPIENT_UNREACHABLE
            LOGGER.warning("Delivery to %s failed: %s", recipient.recipient_id, exc)
            return DeliveryOutcome.TRANSIENT_ERROR
        except Exception:
            LOGGER.exception("Delivery to %s failed", recipient.recipient_id)
            return DeliveryOutcome.TRANSIENT_ERROR
        return DeliveryOutcome.DELIVERED
