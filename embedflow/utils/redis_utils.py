"""
Redis client for the shared response cache.

Redis is OPTIONAL. If settings.redis_url is None, get_redis() returns None
and callers fall back to the in-process cache.
"""

import logging
from typing import Optional

from embedflow.configs import settings

logger = logging.getLogger(__name__)

_redis_client = None
_redis_available: Optional[bool] = None  # None = not checked yet


def is_redis_configured() -> bool:
    """Check if Redis URL is configured in settings."""
    return settings.redis_url is not None and settings.redis_url.strip() != ""


async def get_redis():
    """
    Get or create the Redis connection pool for JSON data (lazy singleton).

    Returns None if Redis is not configured or not reachable. A failed
    connection is remembered until close_redis() resets the client.
    """
    global _redis_client, _redis_available

    if not is_redis_configured() or _redis_available is False:
        return None

    if _redis_client is None:
        import redis.asyncio as redis

        client = redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
        )
        try:
            await client.ping()
        except Exception as e:
            logger.warning(f"Redis not available (falling back to memory cache): {e}")
            _redis_available = False
            await client.aclose()
            return None
        logger.info(f"Redis connected: {settings.redis_url}")
        _redis_client = client
        _redis_available = True
    return _redis_client


async def close_redis():
    """Close the Redis connection pool (call on shutdown)."""
    global _redis_client, _redis_available
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
    _redis_available = None
    logger.info("Redis connection closed")


def make_instance_key(key: str) -> str:
    """Prefix *key* with the configured instance namespace.

    If ``settings.cache_namespace`` is not set the key is returned unchanged.
    """
    ns = settings.cache_namespace
    return f"{ns}:{key}" if ns else key
