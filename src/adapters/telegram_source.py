"""Telethon implementation of the core SourcePort."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from telethon import errors

from adapters.telegram_errors import is_connection_error
from adapters.telegram_mapper import to_raw_message
from adapters.telegram_session import TelegramSessionManager
from core.errors import ChannelScanError, SourceConnectionError
from core.models import RawMessage
from core.source_keys import normalize_handle

LOGGER = logging.getLogger(__name__)


class TelethonSource:
    """Resolve channel handles and fetch their latest messages.

    Resolved entities are cached per handle for as long as the session keeps
    the same client; a reconnect starts with an empty cache.
    """

    def __init__(self, session: TelegramSessionManager) -> None:
        self._session = session
        self._entities: Dict[str, Any] = {}
        self._generation = session.generation

    def _cache(self) -> Dict[str, Any]:
        if self._generation != self._session.generation:
            self._entities.clear()
            self._generation = self._session.generation
        return self._entities

    async def resolve(self, handle: str) -> Any:
        username = normalize_handle(handle)
        cache = self._cache()
        if username in cache:
            return cache[username]
        try:
            entity = await self._session.client.get_entity(username)
        except (SourceConnectionError, ChannelScanError):
            raise
        except Exception as exc:
            raise _translate(exc, f"resolve {handle}") from exc
        cache[username] = entity
        return entity

    async def fetch_recent(self, entity: Any, limit: int) -> List[RawMessage]:
        try:
            messages = await self._session.client.get_messages(entity, limit=limit)
        except (SourceConnectionError, ChannelScanError):
            raise
        except Exception as exc:
            raise _translate(exc, "fetch messages") from exc
        raw_messages: List[RawMessage] = []
        for message in messages:
            try:
                raw_messages.append(to_raw_message(message))
            except Exception:
                LOGGER.debug("Skipping unmappable message %r", getattr(message, "id", None), exc_info=True)
        return raw_messages


def _translate(exc: Exception, action: str) -> Exception:
    if is_connection_error(exc):
        return SourceConnectionError(f"Could not {action}: {exc!r}")
    if isinstance(exc, errors.FloodWaitError):
        LOGGER.warning("Flood wait of %ss on %s", exc.seconds, action)
        return ChannelScanError(f"Could not {action}: flood wait {exc.seconds}s")
    return ChannelScanError(f"Could not {action}: {exc!r}")
