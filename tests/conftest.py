"""Shared fixtures: an in-memory stand-in for the Redis commands the wizard store uses."""

from __future__ import annotations

from collections.abc import Awaitable, Callable

import pytest
from redis.exceptions import WatchError


class FakePipeline:
    """WATCH / MULTI / EXEC over FakeRedis with optimistic version checks."""

    def __init__(self, redis: FakeRedis) -> None:
        self._redis = redis
        self._watched: dict[str, int] = {}
        self._queued: list[tuple[str, int, str]] = []

    async def __aenter__(self) -> FakePipeline:
        return self

    async def __aexit__(self, *exc_info) -> None:
        self._watched.clear()
        self._queued.clear()

    async def watch(self, *keys: str) -> None:
        for key in keys:
            self._watched[key] = self._redis.versions.get(key, 0)

    async def get(self, key: str) -> str | None:
        return await self._redis.get(key)

    def multi(self) -> None:
        pass

    def setex(self, key: str, ttl: int, value: str) -> FakePipeline:
        self._queued.append((key, ttl, value))
        return self

    async def execute(self) -> list[bool]:
        if self._redis.before_exec is not None:
            hook, self._redis.before_exec = self._redis.before_exec, None
            await hook()
        for key, version in self._watched.items():
            if self._redis.versions.get(key, 0) != version:
                raise WatchError("Watched variable changed.")
        for key, ttl, value in self._queued:
            await self._redis.setex(key, ttl, value)
        return [True] * len(self._queued)


class FakeRedis:
    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.versions: dict[str, int] = {}
        # Runs once inside the next EXEC, to simulate a concurrent writer
        self.before_exec: Callable[[], Awaitable[None]] | None = None

    async def get(self, key):
        return self.data.get(key)

    async def setex(self, key, ttl, value):
        self.data[key] = value
        self.ttls[key] = ttl
        self.versions[key] = self.versions.get(key, 0) + 1

    async def delete(self, key):
        self.data.pop(key, None)
        self.ttls.pop(key, None)
        self.versions[key] = self.versions.get(key, 0) + 1

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        return FakePipeline(self)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()
