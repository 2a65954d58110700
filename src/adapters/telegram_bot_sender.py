"""Telegram Bot API delivery adapter.

Implements the core SenderPort on top of the Bot API ``sendMessage`` call.
"""

from __future__ import annotations

import asyncio
import json
import urllib.error
import urllib.request
from typing import Any, Dict

from core.errors import DeliveryError


def parse_error_body(status: int, body: str) -> DeliveryError:
    """Turn a Bot API error response into a DeliveryError."""

    try:
        payload = json.loads(body)
    except ValueError:
        return DeliveryError(status, body.strip() or "HTTP error")
    if not isinstance(payload, dict):
        return DeliveryError(status, body.strip())
    parameters = payload.get("parameters") or {}
    return DeliveryError(
        payload.get("error_code") or status,
        str(payload.get("description") or "Bot API error"),
        retry_after=parameters.get("retry_after"),
    )


class BotApiSender:
    """Sender that delivers messages via the Telegram Bot API."""

    def __init__(self, bot_token: str, timeout: float = 10.0) -> None:
        self._bot_token = bot_token
        self._timeout = timeout

    def _endpoint(self) -> str:
        # The Bot API endpoint is deterministic and derived from the token.
        return f"https://api.telegram.org/bot{self._bot_token}/sendMessage"

    def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        data = json.dumps(payload).encode("utf-8")
        request = urllib.request.Request(self._endpoint(), data=data, method="POST")
        request.add_header("Content-Type", "application/json")
        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                body = response.read().decode("utf-8", errors="replace")
        except urllib.error.HTTPError as e:
            body = e.read().decode("utf-8", errors="replace")
            raise parse_error_body(e.code, body) from e
        result = json.loads(body)
        if not result.get("ok"):
            raise parse_error_body(200, body)
        return result

    async def send_message(
        self,
        recipient_id: int,
        text: str,
        parse_mode: str = "HTML",
        disable_link_preview: bool = True,
    ) -> int:
        """Send one message and return its Bot API message id."""

        payload = {
            "chat_id": recipient_id,
            "text": text,
            "parse_mode": parse_mode,
            "disable_web_page_preview": disable_link_preview,
        }
        # urllib blocks, so the request runs on a worker thread to keep the
        # event loop free for the scanner.
        result = await asyncio.to_thread(self._post, payload)
        return int(result["result"]["message_id"])
