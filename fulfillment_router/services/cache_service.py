"""
Routing config cache.

Keys are scoped by organization:

    {namespace}:{org_id}:routing_config

Redis is used when REDIS_URL is configured, otherwise an in-process
dictionary. Entries expire after ROUTING_CONFIG_CACHE_TTL seconds and
are dropped explicitly when an org's routing settings change.
"""
import json
import time
from typing import Any, Dict, Optional, Tuple
from abc import ABC, abstractmethod
import asyncio
import logging

import redis.asyncio as redis

from fulfillment_router.config import settings

logger = logging.getLogger(__name__)

ROUTING_CONFIG_KEY = "routing_config"


class CacheBackend(ABC):
    """Key/value store holding JSON-ready values with a TTL."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int) -> bool:
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        pass


class InMemoryCache(CacheBackend):
    """Per-process cache; each routing worker keeps its own copy."""

    def __init__(self):
        self._entries: Dict[str, Tuple[Any, float]] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, deadline = entry
            if deadline <= time.monotonic():
                self._entries.pop(key, None)
                return None
            return value

    async def set(self, key: str, value: Any, ttl: int) -> bool:
        async with self._lock:
            self._entries[key] = (value, time.monotonic() + ttl)
        return True

    async def delete(self, key: str) -> bool:
        async with self._lock:
            return self._entries.pop(key, None) is not None


class RedisCache(CacheBackend):
    """
    Redis-backed cache shared by all routing workers.

    Redis errors are logged and reported as misses; routing then reads
    the config from the database.
    """

    def __init__(self, redis_url: str):
        self._redis_url = redis_url
        self._client = None

    def _get_client(self):
        if self._client is None:
            self._client = redis.from_url(self._redis_url, decode_responses=True)
        return self._client

    async def get(self, key: str) -> Optional[Any]:
        try:
            raw = await self._get_client().get(key)
        except redis.RedisError as e:
            logger.warning(f"Redis get failed for {key}: {e}")
            return None

        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError as e:
            logger.warning(f"Discarding unreadable cache entry {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: int) -> bool:
        try:
            await self._get_client().set(key, json.dumps(value), ex=ttl)
            return True
        except redis.RedisError as e:
            logger.warning(f"Redis set failed for {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        try:
            return bool(await self._get_client().delete(key))
        except redis.RedisError as e:
            logger.warning(f"Redis delete failed for {key}: {e}")
            return False


class CacheService:
    """Org-scoped routing config cache over a CacheBackend."""

    def __init__(self, backend: CacheBackend, namespace: str = "routing"):
        self.backend = backend
        self.namespace = namespace

    def routing_config_key(self, org_id: str) -> str:
        return f"{self.namespace}:{org_id}:{ROUTING_CONFIG_KEY}"

    async def get_routing_config(self, org_id: str) -> Optional[dict]:
        return await self.backend.get(self.routing_config_key(org_id))

    async def set_routing_config(
        self,
        org_id: str,
        data: dict,
        ttl: Optional[int] = None
    ) -> bool:
        ttl = ttl or settings.ROUTING_CONFIG_CACHE_TTL
        return await self.backend.set(self.routing_config_key(org_id), data, ttl)

    async def invalidate_routing_config(self, org_id: str) -> bool:
        return await self.backend.delete(self.routing_config_key(org_id))


_cache_instance: Optional[CacheService] = None


def get_cache() -> CacheService:
    """Process-wide routing config cache."""
    global _cache_instance

    if _cache_instance is None:
        if settings.REDIS_URL and settings.CACHE_ENABLED:
            backend = RedisCache(settings.REDIS_URL)
            logger.info("Routing config cache using Redis")
        else:
            backend = InMemoryCache()
            logger.info("Routing config cache using in-memory backend")
        _cache_instance = CacheService(backend)

    return _cache_instance
