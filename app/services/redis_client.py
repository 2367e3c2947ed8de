# app/services/redis_client.py
"""
Redis client for the contact desk document cache.

Cache documents are whole JSON values under fixed keys. The client owns the
encoding so callers only ever see decoded documents. Redis failures are
logged and reported as a miss (reads) or False (writes); the cache is never
allowed to fail a request.
"""

import json
from typing import Any

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool

from app.config import settings
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

MAX_CONNECTIONS = 20


def _url_preview(url: str) -> str:
    # Credentials sit before the "@"; only the host part is logged
    return url.rsplit("@", 1)[-1][:40]


class CacheRedisClient:
    """Pooled async Redis connection storing JSON cache documents."""

    def __init__(self, url: str | None = None, client: redis.Redis | None = None):
        self._url = url
        self.pool: ConnectionPool | None = None
        self.client = client
        self._initialized = client is not None

    @property
    def redis_url(self) -> str | None:
        return self._url or settings.REDIS_URL

    @property
    def configured(self) -> bool:
        return bool(self.redis_url) or self._initialized

    async def initialize(self):
        """Open the pool and check the server answers."""
        if self._initialized:
            return

        redis_url = self.redis_url
        if not redis_url:
            raise RuntimeError("REDIS_URL not configured")

        logger.info("Connecting cache to Redis", host=_url_preview(redis_url))
        try:
            self.pool = ConnectionPool.from_url(
                redis_url,
                max_connections=MAX_CONNECTIONS,
                retry_on_timeout=True,
                socket_connect_timeout=10,
                socket_timeout=10,
                health_check_interval=30,
                decode_responses=True,
            )
            self.client = redis.Redis(connection_pool=self.pool)
            await self.client.ping()
        except Exception as e:
            logger.error("Cache Redis connection failed", error=str(e))
            raise RuntimeError("Redis initialization failed") from e

        self._initialized = True
        logger.info("Cache Redis client ready", max_connections=MAX_CONNECTIONS)

    async def close(self):
        try:
            if self.client:
                await self.client.aclose()
            if self.pool:
                await self.pool.disconnect()
            logger.info("Cache Redis client closed")
        except Exception as e:
            logger.error("Error closing cache Redis client", error=str(e))
        finally:
            self._initialized = False

    async def _connection(self) -> redis.Redis:
        if not self._initialized:
            logger.warning("Cache Redis used before startup, connecting now")
            await self.initialize()
        return self.client

    async def ping(self) -> bool:
        try:
            connection = await self._connection()
            return bool(await connection.ping())
        except Exception as e:
            logger.error("Cache Redis ping failed", error=str(e))
            return False

    async def get_document(self, key: str) -> Any | None:
        """Read and decode one document. Missing, unreadable or failed reads give None."""
        try:
            connection = await self._connection()
            raw = await connection.get(key)
        except Exception as e:
            logger.error("Cache read failed", key=key, error=str(e))
            return None

        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Discarding unreadable cache document", key=key)
            return None

    async def set_document(self, key: str, document: Any, ttl_s: int | None = None) -> bool:
        """Encode and store one document, with an expiry when ``ttl_s`` is given."""
        payload = json.dumps(document)
        try:
            connection = await self._connection()
            return bool(await connection.set(key, payload, ex=ttl_s or None))
        except Exception as e:
            logger.error("Cache write failed", key=key, size_bytes=len(payload), error=str(e))
            return False

    async def delete(self, key: str) -> bool:
        try:
            connection = await self._connection()
            return await connection.delete(key) > 0
        except Exception as e:
            logger.error("Cache delete failed", key=key, error=str(e))
            return False


# Global instance
cache_redis = CacheRedisClient()
