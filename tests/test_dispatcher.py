from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Tuple

from core.config import DeliveryConfig
from core.dispatcher import NotificationDispatcher
from core.errors import DeliveryError
from core.models import CandidateRecord, DeliveryOutcome, RawMessage, Recipient

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class RecordingSender:
    def __init__(self, failures: dict = None) -> None:
        self.sent: List[Tuple[int, str, str, bool]] = []
        self.failures = failures or {}

    async def send_message(
        self, recipient_id: int, text: str, parse_mode: str, disable_link_preview: bool
    ) -> int:
        failure = self.failures.get(recipient_id)
        if failure is not None:
            raise failure
        self.sent.append((recipient_id, text, parse_mode, disable_link_preview))
        return len(self.sent)


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def _record(topic_key: str = "web") -> CandidateRecord:
    message = RawMessage(id=1, text="Нужен веб-разработчик", published_at=NOW)
    return CandidateRecord(
        topic_key=topic_key,
        topic_label="Web",
        source_url="https://t.me/freelance_web/1",
        published_at=NOW,
        channel_id="chan-1",
        message=message,
    )


def _dispatcher(sender, sleep=None, renders: list = None) -> NotificationDispatcher:
    def render(record: CandidateRecord) -> str:
        if renders is not None:
            renders.append(record)
        return f"rendered:{record.message.id}"

    return NotificationDispatcher(
        sender,
        render,
        DeliveryConfig(pause_seconds=0.05),
        clock=lambda: NOW,
        sleep=sleep or RecordingSleep(),
    )


def test_fan_out_targets_only_matching_active_recipients() -> None:
    sender = RecordingSender()
    recipients = [
        Recipient(recipient_id=1, topic_key="web"),
        Recipient(recipient_id=2, topic_key="design"),
        Recipient(recipient_id=3, topic_key="web", active=False),
        Recipient(recipient_id=4, topic_key="web", expires_at=NOW - timedelta(days=1)),
        Recipient(recipient_id=5, topic_key="web", expires_at=NOW + timedelta(days=1)),
    ]

    sent = asyncio.run(_dispatcher(sender).fan_out(_record(), recipients))

    assert sent == 2
    assert [item[0] for item in sender.sent] == [1, 5]
    assert all(item[1] == "rendered:1" for item in sender.sent)
    assert all(item[2] == "HTML" and item[3] is True for item in sender.sent)


def test_blocked_recipient_does_not_stop_delivery_and_is_not_an_error(caplog) -> None:
    sender = RecordingSender(failures={1: DeliveryError(403, "Forbidden: bot was blocked by the user")})
    recipients = [Recipient(recipient_id=i, topic_key="web") for i in (1, 2, 3)]

    with caplog.at_level(logging.DEBUG, logger="core.dispatcher"):
        results = asyncio.run(_dispatcher(sender).fan_out_results(_record(), recipients))

    assert [r.outcome for r in results] == [
        DeliveryOutcome.RECIPIENT_UNREACHABLE,
        DeliveryOutcome.DELIVERED,
        DeliveryOutcome.DELIVERED,
    ]
    assert [item[0] for item in sender.sent] == [2, 3]
    assert not [r for r in caplog.records if r.levelno >= logging.WARNING]


def test_other_failures_are_logged_and_skipped(caplog) -> None:
    sender = RecordingSender(
        failures={
            1: DeliveryError(429, "Too Many Requests: retry after 5", retry_after=5),
            2: TimeoutError("read timed out"),
        }
    )
    recipients = [Recipient(recipient_id=i, topic_key="web") for i in (1, 2, 3)]

    with caplog.at_level(logging.WARNING, logger="core.dispatcher"):
        sent = asyncio.run(_dispatcher(sender).fan_out(_record(), recipients))

    assert sent == 1
    assert [item[0] for item in sender.sent] == [3]
    assert len([r for r in caplog.records if r.levelno >= logging.WARNING]) == 2


def test_pacing_between_recipients() -> None:
    sleep = RecordingSleep()
    recipients = [Recipient(recipient_id=i, topic_key="web") for i in (1, 2, 3)]

    asyncio.run(_dispatcher(RecordingSender(), sleep=sleep).fan_out(_record(), recipients))

    assert sleep.calls == [0.05, 0.05]


def test_no_matching_recipients_skips_rendering() -> None:
    renders: list = []
    sender = RecordingSender()

    sent = asyncio.run(
        _dispatcher(sender, renders=renders).fan_out(_record("design"), [Recipient(1, "web")])
    )

    assert sent == 0
    assert renders == []
    assert sender.sent == []


def test_record_is_rendered_once_per_fan_out() -> None:
    renders: list = []
    recipients = [Recipient(recipient_id=i, topic_key="web") for i in (1, 2)]

    asyncio.run(_dispatcher(RecordingSender(), renders=renders).fan_out(_record(), recipients))

    assert len(renders) == 1


def test_chat_not_found_is_unreachable() -> None:
    assert DeliveryError(400, "Bad Request: chat not found").recipient_unreachable
    assert not DeliveryError(400, "Bad Request: can't parse entities").recipient_unreachable
    assert not DeliveryError(500, "Internal Server Error").recipient_unreachable
