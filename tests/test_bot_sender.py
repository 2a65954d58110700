from __future__ import annotations

import asyncio
import json

import pytest

from adapters.telegram_bot_sender import BotApiSender, parse_error_body
from core.errors import DeliveryError


def test_blocked_bot_is_unreachable() -> None:
    body = json.dumps(
        {"ok": False, "error_code": 403, "description": "Forbidden: bot was blocked by the user"}
    )

    error = parse_error_body(403, body)

    assert error.code == 403
    assert error.recipient_unreachable


def test_rate_limit_carries_retry_after() -> None:
    body = json.dumps(
        {
            "ok": False,
            "error_code": 429,
            "description": "Too Many Requests: retry after 7",
            "parameters": {"retry_after": 7},
        }
    )

    error = parse_error_body(429, body)

    assert error.retry_after == 7
    assert not error.recipient_unreachable


def test_non_json_body_keeps_http_status() -> None:
    error = parse_error_body(502, "<html>Bad Gateway</html>")

    assert error.code == 502
    assert "Bad Gateway" in error.description


def test_send_message_posts_html_payload(monkeypatch) -> None:
    sender = BotApiSender("123:abc")
    posted = []

    def fake_post(payload):
        posted.append(payload)
        return {"ok": True, "result": {"message_id": 55}}

    monkeypatch.setattr(sender, "_post", fake_post)

    message_id = asyncio.run(sender.send_message(1001, "<b>hi</b>"))

    assert message_id == 55
    assert posted == [
        {
            "chat_id": 1001,
            "text": "<b>hi</b>",
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }
    ]


def test_send_message_propagates_delivery_errors(monkeypatch) -> None:
    sender = BotApiSender("123:abc")

    def fake_post(payload):
        raise DeliveryError(400, "Bad Request: chat not found")

    monkeypatch.setattr(sender, "_post", fake_post)

    with pytest.raises(DeliveryError) as excinfo:
        asyncio.run(sender.send_message(1001, "hi"))

    assert excinfo.value.recipient_unreachable
