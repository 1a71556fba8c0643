from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Protocol

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from src.domain.errors import CacheUnavailable

logger = logging.getLogger(__name__)


def image_key(variation_id: str, step_index: int) -> str:
    return f"image:{variation_id}:{step_index}"


class ImageCache(Protocol):
    async def put(self, key: str, data_uri: str, ttl_seconds: int) -> None:
        ...

    async def get(self, key: str) -> str | None:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def ping(self) -> bool:
        ...

    async def close(self) -> None:
        ...


class RedisImageCache:
    """Persisted step images in Redis, one key per step with a TTL."""

    def __init__(self, client: aioredis.Redis) -> None:
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> RedisImageCache:
        return cls(aioredis.from_url(url, decode_responses=True))

    async def put(self, key: str, data_uri: str, ttl_seconds: int) -> None:
        try:
            await self.client.set(key, data_uri, ex=ttl_seconds)
        except RedisError as exc:
            raise CacheUnavailable(f"Redis write failed for {key}: {exc}") from exc

    async def get(self, key: str) -> str | None:
        try:
            return await self.client.get(key)
        except RedisError as exc:
            raise CacheUnavailable(f"Redis read failed for {key}: {exc}") from exc

    async def delete(self, key: str) -> None:
        try:
            await self.client.delete(key)
        except RedisError as exc:
            raise CacheUnavailable(f"Redis delete failed for {key}: {exc}") from exc

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except (RedisError, OSError):
            return False

    async def close(self) -> None:
        await self.client.aclose()


class InMemoryImageCache:
    """Process-local fallback used when Redis is disabled or unreachable."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[str, float]] = {}

    async def put(self, key: str, data_uri: str, ttl_seconds: int) -> None:
        self._entries[key] = (data_uri, self._clock() + ttl_seconds)

    async def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return value

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self._entries.clear()


def build_image_cache(redis_url: str | None, disabled: bool = False) -> ImageCache:
    if disabled or not redis_url:
        logger.info("Image cache: in-memory (REDIS_URL unset or CACHE_DISABLED=1)")
        return InMemoryImageCache()
    return RedisImageCache.from_url(redis_url)


async def ensure_reachable(cache: ImageCache) -> ImageCache:
    """Swap an unreachable cache for the in-memory one at startup."""
    if await cache.ping():
        return cache
    logger.error("Image cache unreachable at startup; falling back to in-memory cache")
    await cache.close()
    return InMemoryImageCache()
