"""
Document cache stores.

The contact desk keeps a few whole-document caches (contact list, pending
jobs, segment directory, column preferences). Documents are JSON values read
and written wholesale under fixed keys; there is no locking, so concurrent
writers can overwrite each other and the last write wins.
"""

import json
import time
from dataclasses import dataclass
from typing import Any, Protocol

from app.infrastructure.observability.logging import get_logger
from app.services.redis_client import CacheRedisClient, cache_redis

logger = get_logger(__name__)

Document = dict[str, Any] | list[Any]

FRESHNESS_FRESH = "fresh"
FRESHNESS_STALE = "stale"
FRESHNESS_EXPIRED = "expired"


class CacheStore(Protocol):
    """Minimal document store used by the contact desk caches."""

    async def read(self, key: str) -> Document | None: ...

    async def write(self, key: str, document: Document) -> bool: ...

    async def clear(self, key: str) -> bool: ...

    async def ping(self) -> bool: ...


@dataclass(slots=True, frozen=True)
class FreshnessPolicy:
    """
    Age thresholds for cached documents.

    Younger than ``stale_after`` is fresh. Up to ``max_age`` is still served
    but should be refreshed in the background. Older is expired.
    """

    max_age_seconds: float = 3600.0
    stale_after_seconds: float = 600.0

    def __post_init__(self):
        if self.stale_after_seconds > self.max_age_seconds:
            raise ValueError("stale_after_seconds cannot exceed max_age_seconds")

    def classify(self, age_seconds: float | None) -> str:
        if age_seconds is None or age_seconds < 0 or age_seconds >= self.max_age_seconds:
            return FRESHNESS_EXPIRED
        if age_seconds > self.stale_after_seconds:
            return FRESHNESS_STALE
        return FRESHNESS_FRESH


class MemoryCacheStore:
    """Process-local store. Used when no Redis URL is configured, and in tests."""

    def __init__(self):
        self._documents: dict[str, str] = {}

    async def read(self, key: str) -> Document | None:
        raw = self._documents.get(key)
        return json.loads(raw) if raw is not None else None

    async def write(self, key: str, document: Document) -> bool:
        # Stored serialized so readers never share mutable state with writers
        self._documents[key] = json.dumps(document)
        return True

    async def clear(self, key: str) -> bool:
        return self._documents.pop(key, None) is not None

    async def ping(self) -> bool:
        return True


class RedisCacheStore:
    """Documents in Redis through the shared cache client."""

    def __init__(self, client: CacheRedisClient | None = None, ttl_s: int | None = None):
        self._client = client or cache_redis
        self._ttl_s = ttl_s

    async def read(self, key: str) -> Document | None:
        return await self._client.get_document(key)

    async def write(self, key: str, document: Document) -> bool:
        return await self._client.set_document(key, document, self._ttl_s)

    async def clear(self, key: str) -> bool:
        return await self._client.delete(key)

    async def ping(self) -> bool:
        return await self._client.ping()


def now_ms() -> int:
    return int(time.time() * 1000)


_default_store: CacheStore | None = None


def get_cache_store() -> CacheStore:
    """Return the process-wide cache store, Redis when configured."""
    global _default_store
    if _default_store is None:
        if cache_redis.configured:
            _default_store = RedisCacheStore(cache_redis)
            logger.info("Using Redis cache store")
        else:
            _default_store = MemoryCacheStore()
            logger.info("Using in-memory cache store")
    return _default_store


def set_cache_store(store: CacheStore | None) -> None:
    """Swap the process-wide store (None resets to the configured default)."""
    global _default_store
    _default_store = store
