from __future__ import annotations

import asyncio
from typing import List

from adapters.telegram_session import TelegramSessionManager
from core.config import SessionConfig


class FakeClient:
    def __init__(self, authorized: bool = True, me: object = "me", probe_error: Exception = None) -> None:
        self.authorized = authorized
        self.me = me
        self.probe_error = probe_error
        self.connected = False
        self.disconnects = 0
        self.probes = 0

    async def connect(self) -> None:
        self.connected = True

    async def disconnect(self) -> None:
        self.connected = False
        self.disconnects += 1

    async def is_user_authorized(self) -> bool:
        return self.authorized

    async def get_me(self):
        self.probes += 1
        if self.probe_error is not None:
            raise self.probe_error
        return self.me


class ClientFactory:
    def __init__(self, *clients: FakeClient, error: Exception = None) -> None:
        self._clients = list(clients)
        self.error = error
        self.calls = 0
        self.built: List[FakeClient] = []

    def __call__(self) -> FakeClient:
        self.calls += 1
        if self.error is not None:
            raise self.error
        client = self._clients.pop(0) if self._clients else FakeClient()
        self.built.append(client)
        return client


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def _manager(factory, clock=None, sleep=None, **config) -> TelegramSessionManager:
    return TelegramSessionManager(
        factory,
        SessionConfig(**config),
        clock=clock or FakeClock(),
        sleep=sleep or RecordingSleep(),
    )


def test_backoff_delay_doubles_and_caps() -> None:
    config = SessionConfig()
    assert [config.backoff_delay(i) for i in range(5)] == [1.0, 2.0, 4.0, 8.0, 10.0]


def test_first_call_connects() -> None:
    factory = ClientFactory()
    manager = _manager(factory)

    assert asyncio.run(manager.ensure_healthy()) is True
    assert factory.calls == 1
    assert factory.built[0].connected
    assert manager.generation == 1


def test_cached_health_skips_probe() -> None:
    factory = ClientFactory()
    clock = FakeClock()
    manager = _manager(factory, clock=clock)

    async def scenario() -> None:
        await manager.ensure_healthy()
        clock.now += 299
        assert await manager.ensure_healthy() is True

    asyncio.run(scenario())

    assert factory.built[0].probes == 0
    assert factory.calls == 1


def test_expired_cache_probes_existing_client() -> None:
    factory = ClientFactory()
    clock = FakeClock()
    manager = _manager(factory, clock=clock)

    async def scenario() -> None:
        await manager.ensure_healthy()
        clock.now += 301
        assert await manager.ensure_healthy() is True

    asyncio.run(scenario())

    assert factory.built[0].probes == 1
    assert factory.calls == 1


def test_failed_probe_reconnects() -> None:
    stale = FakeClient(probe_error=ConnectionError("reset"))
    fresh = FakeClient()
    factory = ClientFactory(stale, fresh)
    manager = _manager(factory)

    async def scenario() -> None:
        await manager.ensure_healthy()
        manager.invalidate()
        assert await manager.ensure_healthy() is True

    asyncio.run(scenario())

    assert stale.disconnects == 1
    assert manager.client is fresh
    assert manager.generation == 2


def test_probe_timeout_reconnects() -> None:
    class SlowClient(FakeClient):
        async def get_me(self):
            await asyncio.sleep(5)

    slow = SlowClient()
    factory = ClientFactory(slow, FakeClient())
    manager = _manager(factory, probe_timeout_seconds=0.01)

    async def scenario() -> None:
        await manager.ensure_healthy()
        manager.invalidate()
        assert await manager.ensure_healthy() is True

    asyncio.run(scenario())

    assert factory.calls == 2


def test_unauthorized_probe_reconnects() -> None:
    factory = ClientFactory(FakeClient(me=None), FakeClient())
    manager = _manager(factory)

    async def scenario() -> None:
        await manager.ensure_healthy()
        manager.invalidate()
        return await manager.ensure_healthy()

    assert asyncio.run(scenario()) is True
    assert factory.calls == 2


def test_reconnect_attempts_are_bounded() -> None:
    sleep = RecordingSleep()
    factory = ClientFactory(error=ConnectionError("network down"))
    manager = _manager(factory, sleep=sleep)

    assert asyncio.run(manager.ensure_healthy()) is False
    assert factory.calls == 3
    assert sleep.calls == [1.0, 2.0]
    assert sum(sleep.calls) <= 1.0 + 2.0 + 4.0


def test_unauthorized_session_counts_as_failure() -> None:
    clients = [FakeClient(authorized=False) for _ in range(3)]
    factory = ClientFactory(*clients)
    manager = _manager(factory)

    assert asyncio.run(manager.ensure_healthy()) is False
    assert factory.calls == 3
    # Every half-open client is torn down before the next attempt.
    assert [c.disconnects for c in clients] == [1, 1, 0]


def test_recovers_after_transient_failures() -> None:
    class FlakyFactory(ClientFactory):
        def __call__(self) -> FakeClient:
            self.calls += 1
            if self.calls < 3:
                raise ConnectionError("flaky")
            client = FakeClient()
            self.built.append(client)
            return client

    sleep = RecordingSleep()
    factory = FlakyFactory()
    manager = _manager(factory, sleep=sleep)

    assert asyncio.run(manager.ensure_healthy()) is True
    assert sleep.calls == [1.0, 2.0]


def test_close_disconnects_client() -> None:
    factory = ClientFactory()
    manager = _manager(factory)

    async def scenario() -> None:
        await manager.ensure_healthy()
        await manager.close()

    asyncio.run(scenario())

    assert factory.built[0].disconnects == 1
