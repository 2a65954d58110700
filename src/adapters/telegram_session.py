"""Lifecycle of the single Telethon connection used for scanning.

The manager is the only place that connects or reconnects. Everything
else asks ``ensure_healthy()`` first and calls ``invalidate()`` after a
connection-class error.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional

from telethon import TelegramClient

from core.config import SessionConfig
from core.errors import SourceConnectionError

LOGGER = logging.getLogger(__name__)


class TelegramSessionManager:
    """Owns one authenticated client plus a short-lived health cache."""

    def __init__(
        self,
        client_factory: Callable[[], TelegramClient],
        config: SessionConfig,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._client_factory = client_factory
        self._config = config
        self._clock = clock
        self._sleep = sleep
        self._client: Optional[TelegramClient] = None
        self._healthy_at: Optional[float] = None
        self._generation = 0

    @property
    def client(self) -> TelegramClient:
        if self._client is None:
            raise SourceConnectionError("Telegram client is not connected")
        return self._client

    @property
    def generation(self) -> int:
        """Incremented on every successful (re)connect."""

        return self._generation

    def invalidate(self) -> None:
        self._healthy_at = None

    def _health_cached(self) -> bool:
        if self._healthy_at is None:
            return False
        return self._clock() - self._healthy_at < self._config.health_ttl_seconds

    async def ensure_healthy(self) -> bool:
        """Return True once the client is known to be connected and authorized."""

        if self._health_cached():
            return True

        if self._client is not None:
            try:
                me = await asyncio.wait_for(
                    self._client.get_me(), timeout=self._config.probe_timeout_seconds
                )
                if me is None:
                    raise SourceConnectionError("Session is no longer authorized")
                self._healthy_at = self._clock()
                return True
            except Exception as exc:
                LOGGER.warning("Health probe failed, reconnecting: %r", exc)
                self.invalidate()

        return await self.reconnect()

    async def reconnect(self) -> bool:
        """Rebuild the client with exponential backoff; False when attempts run out."""

        attempts = self._config.max_attempts
        for attempt in range(attempts):
            await self._teardown()
            try:
                await self._connect()
                self._generation += 1
                self._healthy_at = self._clock()
                LOGGER.info("Telegram client connected (attempt %s/%s)", attempt + 1, attempts)
                return True
            except Exception as exc:
                LOGGER.warning("Connect attempt %s/%s failed: %r", attempt + 1, attempts, exc)
            if attempt + 1 < attempts:
                await self._sleep(self._config.backoff_delay(attempt))

        LOGGER.error("Giving up on Telegram connection after %s attempts", attempts)
        return False

    async def _connect(self) -> None:
        client = self._client_factory()
        self._client = client
        await asyncio.wait_for(client.connect(), timeout=self._config.connect_timeout_seconds)
        if not await client.is_user_authorized():
            raise SourceConnectionError(
                "Stored session is not authorized; run `jobscope login` to create one"
            )

    async def _teardown(self) -> None:
        client, self._client = self._client, None
        self.invalidate()
        if client is None:
            return
        try:
            await client.disconnect()
        except Exception:
            LOGGER.debug("Ignoring error while disconnecting stale client", exc_info=True)

    async def close(self) -> None:
        await self._teardown()
