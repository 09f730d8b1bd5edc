"""
Redis cache layer for permission summaries.

Provides:
- Generic get/set/delete cache operations
- TTL management
- Cache key namespacing
- Namespace invalidation after writes
"""

import json
import logging
from typing import Any

import redis.asyncio as aioredis

from app.config import settings
from app.core.metrics import cache_operations_total

logger = logging.getLogger(__name__)


class CacheManager:
    """
    Redis-based cache manager.

    Every operation fails soft: a Redis outage reads as a cache miss and
    never breaks the request.
    """

    def __init__(self) -> None:
        self._client: aioredis.Redis | None = None

    async def init(self) -> None:
        """Initialize Redis connection pool."""
        logger.info("Initializing Redis connection...")

        self._client = aioredis.from_url(
            str(settings.redis_url),
            encoding="utf-8",
            decode_responses=True,
            max_connections=20,
        )

        # Test connection
        await self._client.ping()
        logger.info("Redis connection initialized")

    async def close(self) -> None:
        """Close Redis connection."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("Redis connection closed")

    @property
    def client(self) -> aioredis.Redis:
        """Get Redis client."""
        if not self._client:
            raise RuntimeError("Cache not initialized. Call init() first.")
        return self._client

    def _build_key(self, namespace: str, key: str) -> str:
        """
        Build namespaced cache key.

        Format: storeadmin:{namespace}:{key}
        Example: storeadmin:rbac:user_perms:user_01H
        """
        return f"storeadmin:{namespace}:{key}"

    async def get(self, namespace: str, key: str) -> Any | None:
        """
        Get value from cache.

        Returns:
            Deserialized value or None if not found
        """
        cache_key = self._build_key(namespace, key)

        try:
            value = await self.client.get(cache_key)
        except Exception as e:
            logger.warning(f"Cache get error: {cache_key} - {e}")
            return None

        cache_operations_total.labels(operation="get", hit=str(value is not None).lower()).inc()

        if value is None:
            return None

        return json.loads(value)

    async def set(
        self,
        namespace: str,
        key: str,
        value: Any,
        ttl: int | None = None,
    ) -> bool:
        """
        Set value in cache.

        Args:
            namespace: Cache namespace
            key: Cache key
            value: Value to cache (must be JSON-serializable)
            ttl: Time-to-live in seconds (None = use default)

        Returns:
            True if set successfully
        """
        cache_key = self._build_key(namespace, key)
        ttl = ttl or settings.redis_cache_ttl

        try:
            serialized = json.dumps(value, default=str)
            await self.client.set(cache_key, serialized, ex=ttl)
            return True

        except Exception as e:
            logger.warning(f"Cache set error: {cache_key} - {e}")
            return False

    async def delete(self, namespace: str, key: str) -> bool:
        """Delete specific cache entry."""
        cache_key = self._build_key(namespace, key)

        try:
            result = await self.client.delete(cache_key)
            return result > 0

        except Exception as e:
            logger.warning(f"Cache delete error: {cache_key} - {e}")
            return False

    async def invalidate_namespace(self, namespace: str) -> int:
        """
        Invalidate all keys in a namespace.

        Used when underlying data changes and all cached
        responses for that namespace are stale.

        Returns:
            Number of keys deleted
        """
        pattern = self._build_key(namespace, "*")

        try:
            keys = [key async for key in self.client.scan_iter(match=pattern)]

            if keys:
                deleted = await self.client.delete(*keys)
                logger.info(f"Invalidated {deleted} keys in namespace: {namespace}")
                return deleted

            return 0

        except Exception as e:
            logger.warning(f"Cache invalidate error: {namespace} - {e}")
            return 0


# Global instance
cache_manager = CacheManager()
