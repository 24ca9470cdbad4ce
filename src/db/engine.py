"""Redis client and lifespan management.

Redis holds in-flight feedback wizards between HTTP requests. Responses
themselves are stored by the Hoshloop backend, not here.
"""

from __future__ import annotations

import contextlib
from collections.abc import AsyncGenerator

import redis.asyncio as aioredis

from src.config import settings

# ── Redis client ─────────────────────────────────────────────────────

redis_client: aioredis.Redis = aioredis.from_url(
    settings.redis.redis_url,
    decode_responses=True,
)


async def get_redis() -> aioredis.Redis:
    """FastAPI dependency returning the shared Redis client."""
    return redis_client


async def close_redis() -> None:
    """Close Redis connections. Called during FastAPI lifespan shutdown."""
    await redis_client.aclose()


@contextlib.asynccontextmanager
async def redis_lifespan() -> AsyncGenerator[None, None]:
    """Context manager for the Redis lifecycle.

    Usage in FastAPI lifespan:
        @asynccontextmanager
        async def lifespan(app: FastAPI):
            async with redis_lifespan():
                yield
    """
    await redis_client.ping()
    try:
        yield
    finally:
        await close_redis()
