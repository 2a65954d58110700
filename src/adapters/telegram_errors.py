"""Classification of Telethon failures."""

from __future__ import annotations

import asyncio

from telethon import errors

# RPC error messages that mean the connection itself must be rebuilt.
CONNECTION_RPC_MESSAGES = frozenset(
    {
        "CONNECTION_NOT_INITED",
        "CONNECTION_DEVICE_MODEL_EMPTY",
        "AUTH_KEY_UNREGISTERED",
    }
)


def is_connection_error(exc: BaseException) -> bool:
    """True for errors after which the source session cannot be trusted."""

    if isinstance(exc, (asyncio.TimeoutError, ConnectionError, OSError)):
        return True
    if isinstance(exc, (errors.NetworkMigrateError, errors.ChannelPrivateError)):
        return True
    if isinstance(exc, errors.RPCError):
        return getattr(exc, "message", "") in CONNECTION_RPC_MESSAGES
    return False
