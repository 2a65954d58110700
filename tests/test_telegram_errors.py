from __future__ import annotations

import asyncio

from telethon import errors

from adapters.telegram_errors import is_connection_error


def test_network_failures_are_connection_errors() -> None:
    assert is_connection_error(asyncio.TimeoutError())
    assert is_connection_error(ConnectionResetError("reset by peer"))
    assert is_connection_error(OSError("network unreachable"))


def test_session_level_rpc_errors_are_connection_errors() -> None:
    assert is_connection_error(errors.RPCError(None, "CONNECTION_NOT_INITED", 400))
    assert is_connection_error(errors.RPCError(None, "AUTH_KEY_UNREGISTERED", 401))
    assert is_connection_error(errors.ChannelPrivateError(None))


def test_channel_level_errors_are_not_connection_errors() -> None:
    assert not is_connection_error(errors.RPCError(None, "USERNAME_NOT_OCCUPIED", 400))
    assert not is_connection_error(errors.FloodWaitError(None, capture=30))
    assert not is_connection_error(ValueError("No user has that username"))
