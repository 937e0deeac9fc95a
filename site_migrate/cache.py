# File: site_migrate/cache.py
"""site_migrate.cache: report cache backends (Redis or in-process) with a common async API.

Every backend failure surfaces as :class:`CacheUnavailableError`; callers decide
whether that is fatal. The orchestrator treats it as a cache miss.
"""

from __future__ import annotations

import time
from typing import Dict, Optional, Protocol, Tuple

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from site_migrate.config import AuditConfig
from site_migrate.errors import CacheUnavailableError
from site_migrate.logger import logger

__all__ = ("Cache", "MemoryCache", "RedisCache", "build_cache")


class Cache(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None: ...

    async def delete(self, key: str) -> None: ...


class MemoryCache:
    """Process-local cache with per-key expiry on the monotonic clock."""

    def __init__(self) -> None:
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}

    async def get(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and time.monotonic() >= expires_at:
            del self._data[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        expires_at = time.monotonic() + ttl if ttl else None
        self._data[key] = (value, expires_at)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def close(self) -> None:
        self._data.clear()


class RedisCache:
    """Redis-backed cache (``SET key value EX ttl``)."""

    def __init__(self, url: str) -> None:
        self.url = url
        self._client = aioredis.from_url(url, decode_responses=True)

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self._client.get(key)
        except RedisError as exc:
            logger.warning("redis get failed for %s: %s", key, exc)
            raise CacheUnavailableError(str(exc)) from exc

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        try:
            if ttl:
                await self._client.set(key, value, ex=ttl)
            else:
                await self._client.set(key, value)
        except RedisError as exc:
            logger.warning("redis set failed for %s: %s", key, exc)
            raise CacheUnavailableError(str(exc)) from exc

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(key)
        except RedisError as exc:
            logger.warning("redis delete failed for %s: %s", key, exc)
            raise CacheUnavailableError(str(exc)) from exc

    async def close(self) -> None:
        await self._client.aclose()


def build_cache(config: AuditConfig) -> MemoryCache | RedisCache:
    """Redis when ``redis_url`` is configured, in-process otherwise."""
    if config.redis_url:
        logger.info("Using Redis report cache")
        return RedisCache(config.redis_url)
    return MemoryCache()
