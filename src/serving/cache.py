"""
Response Cache

Read-through Redis caching for list and report endpoints, one namespace per
family of views. Any order write invalidates every namespace it can affect.

Caching is optional: until ``init_redis`` succeeds (it is skipped when
``REDIS_ENABLED`` is off) reads miss and writes are no-ops. Redis failures
are logged and degrade to a miss; they never fail a request.
"""

import json
from typing import Any, Awaitable, Callable, Optional

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

from src.config import Settings

logger = structlog.get_logger(__name__)

KEY_PREFIX = "coffee"

_client: Optional[Redis] = None


async def init_redis(settings: Settings) -> Redis:
    """Open the shared client and verify the server answers."""
    global _client

    if _client is not None:
        return _client

    client = Redis.from_url(
        settings.redis.get_url(),
        max_connections=settings.redis.max_connections,
        socket_timeout=settings.redis.socket_timeout,
        decode_responses=settings.redis.decode_responses,
    )
    try:
        await client.ping()
    except RedisError as e:
        logger.error("Redis connection failed", url=settings.redis.get_url(), error=str(e))
        await client.aclose()
        raise

    _client = client
    logger.info("Redis connection established")
    return _client


async def close_redis() -> None:
    global _client

    if _client is not None:
        await _client.aclose()
        _client = None
        logger.info("Redis connection closed")


def get_redis() -> Optional[Redis]:
    """Shared client, or None when caching is off"""
    return _client


class CacheManager:
    """
    JSON values under ``coffee:<namespace>:<key>`` with a default TTL.

    Example:
        payload = await reports_cache.get_or_set("summary", build_summary)
        await reports_cache.invalidate_all()
    """

    def __init__(self, namespace: str, default_ttl: int = 300):
        self.namespace = namespace
        self.default_ttl = default_ttl

    def key(self, key: str) -> str:
        return f"{KEY_PREFIX}:{self.namespace}:{key}"

    async def get(self, key: str) -> Optional[Any]:
        client = get_redis()
        if client is None:
            return None

        try:
            raw = await client.get(self.key(key))
        except RedisError as e:
            logger.warning("Cache read failed", key=self.key(key), error=str(e))
            return None

        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Dropping undecodable cache entry", key=self.key(key))
            return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        client = get_redis()
        if client is None:
            return False

        try:
            # Payloads are already JSON-mode dumps; str covers stray Decimals and datetimes
            serialized = json.dumps(value, default=str)
            await client.setex(self.key(key), ttl or self.default_ttl, serialized)
        except (TypeError, ValueError) as e:
            logger.warning("Value not cacheable", key=self.key(key), error=str(e))
            return False
        except RedisError as e:
            logger.warning("Cache write failed", key=self.key(key), error=str(e))
            return False
        return True

    async def invalidate_all(self) -> int:
        """Delete every key in the namespace; returns how many went."""
        client = get_redis()
        if client is None:
            return 0

        pattern = self.key("*")
        try:
            keys = [key async for key in client.scan_iter(match=pattern)]
            deleted = await client.delete(*keys) if keys else 0
        except RedisError as e:
            logger.warning("Cache invalidation failed", pattern=pattern, error=str(e))
            return 0

        logger.debug("Cache namespace invalidated", namespace=self.namespace, keys=deleted)
        return deleted

    async def get_or_set(
        self,
        key: str,
        factory: Callable[[], Awaitable[Any]],
        ttl: Optional[int] = None,
    ) -> Any:
        """Cached value for ``key``, computing and storing it on a miss."""
        value = await self.get(key)
        if value is not None:
            return value

        value = await factory()
        await self.set(key, value, ttl)
        return value


products_cache = CacheManager("products", default_ttl=3600)
customers_cache = CacheManager("customers", default_ttl=1800)
reports_cache = CacheManager("reports", default_ttl=300)


async def invalidate_order_views() -> None:
    """Orders move stock, customer counters and every report."""
    for cache in (reports_cache, customers_cache, products_cache):
        await cache.invalidate_all()
