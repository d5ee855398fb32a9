import json
import asyncio
import time
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional, Dict, Tuple

import redis.asyncio as redis

from app.core.config import settings
from app.core.constants import ANALYTICS_CACHE_PREFIX

logger = logging.getLogger(__name__)

def _dumps(value: Any) -> str:
    return json.dumps(value, default=str)

class CacheBackend(ABC):
    """Stores JSON payloads under string keys. A ttl of 0 never expires."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int) -> bool:
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        pass

    @abstractmethod
    async def delete_prefix(self, prefix: str) -> int:
        pass

class MemoryCacheBackend(CacheBackend):
    """Process-local backend used when no REDIS_URL is configured.

    Values are kept serialized so callers get the same shapes back as from Redis.
    """

    def __init__(self):
        self._entries: Dict[str, Tuple[str, float]] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            raw, expires_at = entry
            if expires_at and time.monotonic() >= expires_at:
                del self._entries[key]
                return None
            return json.loads(raw)

    async def set(self, key: str, value: Any, ttl: int) -> bool:
        expires_at = time.monotonic() + ttl if ttl else 0.0
        async with self._lock:
            self._entries[key] = (_dumps(value), expires_at)
        return True

    async def delete(self, key: str) -> bool:
        async with self._lock:
            return self._entries.pop(key, None) is not None

    async def delete_prefix(self, prefix: str) -> int:
        async with self._lock:
            stale = [key for key in self._entries if key.startswith(prefix)]
            for key in stale:
                del self._entries[key]
            return len(stale)

class RedisCacheBackend(CacheBackend):
    def __init__(self, redis_url: str):
        self.redis = redis.from_url(redis_url, decode_responses=True)

    async def get(self, key: str) -> Optional[Any]:
        try:
            raw = await self.redis.get(key)
        except redis.RedisError as e:
            logger.error(f"Redis GET failed for {key}: {e}")
            return None
        return json.loads(raw) if raw else None

    async def set(self, key: str, value: Any, ttl: int) -> bool:
        try:
            await self.redis.set(key, _dumps(value), ex=ttl or None)
            return True
        except redis.RedisError as e:
            logger.error(f"Redis SET failed for {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        try:
            return await self.redis.delete(key) > 0
        except redis.RedisError as e:
            logger.error(f"Redis DELETE failed for {key}: {e}")
            return False

    async def delete_prefix(self, prefix: str) -> int:
        try:
            keys = [key async for key in self.redis.scan_iter(match=f"{prefix}*")]
            return await self.redis.unlink(*keys) if keys else 0
        except redis.RedisError as e:
            logger.error(f"Redis prefix delete failed for {prefix}: {e}")
            return 0

def create_cache_backend() -> CacheBackend:
    if settings.REDIS_URL:
        logger.info("Analytics cache backed by Redis")
        return RedisCacheBackend(settings.REDIS_URL)

    logger.info("Analytics cache kept in process memory")
    return MemoryCacheBackend()

class CacheManager:
    def __init__(self, backend: CacheBackend):
        self.backend = backend

    async def get(self, key: str) -> Optional[Any]:
        return await self.backend.get(key)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        return await self.backend.set(key, value, settings.CACHE_TTL if ttl is None else ttl)

    async def delete(self, key: str) -> bool:
        return await self.backend.delete(key)

    async def invalidate_analytics(self) -> int:
        """Drop every cached analytics payload after scores change."""
        if not settings.CACHE_ENABLED:
            return 0
        count = await self.backend.delete_prefix(f"{ANALYTICS_CACHE_PREFIX}:")
        logger.debug(f"Invalidated {count} analytics cache entries")
        return count

cache = CacheManager(create_cache_backend())
