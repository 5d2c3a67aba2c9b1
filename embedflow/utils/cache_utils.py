import hashlib
import json
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from embedflow.configs import settings
from embedflow.utils.redis_utils import get_redis, make_instance_key

logger = logging.getLogger(__name__)

T = TypeVar("T")

CACHE_PREFIX = "ef:cache:"


@dataclass
class CacheEntry:
    """Represents a cache entry with metadata."""

    data: str
    expires_at: float


class LRUMemoryCache:
    """Thread-safe LRU memory cache with per-entry expiry."""

    def __init__(self, maxsize: int):
        self.maxsize = maxsize
        self._cache: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            entry = self._cache.pop(key, None)
            if entry is None:
                return None
            if time.time() >= entry.expires_at:
                return None
            self._cache[key] = entry
            return entry

    def set(self, key: str, entry: CacheEntry) -> None:
        with self._lock:
            self._cache.pop(key, None)
            while len(self._cache) >= self.maxsize and self._cache:
                self._cache.popitem(last=False)
            self._cache[key] = entry

    def remove(self, key: str) -> None:
        with self._lock:
            self._cache.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)


class ResponseCache:
    """
    JSON value cache backed by Redis when configured, else by an in-process LRU.

    Redis errors never fail a request: the memory cache takes over for that call.
    """

    def __init__(self, max_items: Optional[int] = None, use_redis: bool = True):
        self.memory_cache = LRUMemoryCache(maxsize=max_items or settings.memory_cache_max_items)
        self.use_redis = use_redis

    @staticmethod
    def _key(key: str) -> str:
        key_hash = hashlib.md5(key.encode()).hexdigest()
        return f"{CACHE_PREFIX}{make_instance_key(key_hash)}"

    async def _redis(self):
        if not self.use_redis:
            return None
        return await get_redis()

    async def get(self, key: str) -> Optional[Any]:
        """Get a cached value, or None on a miss."""
        cache_key = self._key(key)

        r = await self._redis()
        if r is not None:
            try:
                data = await r.get(cache_key)
                if data is not None:
                    logger.debug(f"[Redis] Cache hit: {key[:60]}")
                    return json.loads(data)
            except Exception as e:
                logger.warning(f"[Redis] Cache read failed, using memory cache: {e}")

        entry = self.memory_cache.get(cache_key)
        if entry is None:
            return None
        try:
            return json.loads(entry.data)
        except json.JSONDecodeError:
            self.memory_cache.remove(cache_key)
            return None

    async def set(self, key: str, value: Any, ttl: int) -> bool:
        """
        Store a JSON-serialisable value for ``ttl`` seconds.

        A ttl <= 0 removes any existing entry instead.
        """
        cache_key = self._key(key)

        if ttl <= 0:
            await self.delete(key)
            return True

        try:
            data = json.dumps(value)
        except (TypeError, ValueError) as e:
            logger.error(f"Error caching value for {key[:60]}: {e}")
            return False

        r = await self._redis()
        if r is not None:
            try:
                await r.set(cache_key, data, ex=ttl)
                return True
            except Exception as e:
                logger.warning(f"[Redis] Cache write failed, using memory cache: {e}")

        self.memory_cache.set(cache_key, CacheEntry(data=data, expires_at=time.time() + ttl))
        return True

    async def delete(self, key: str) -> None:
        cache_key = self._key(key)
        self.memory_cache.remove(cache_key)
        r = await self._redis()
        if r is not None:
            try:
                await r.delete(cache_key)
            except Exception as e:
                logger.warning(f"[Redis] Cache delete failed: {e}")

    async def fetch(
        self,
        key: str,
        producer: Callable[[], Awaitable[T]],
        ttl: int,
        should_cache: Optional[Callable[[T], bool]] = None,
    ) -> T:
        """
        Return the cached value for ``key`` or compute, store and return it.

        Args:
            key: Cache key.
            producer: Coroutine factory computing the value on a miss.
            ttl: Time to live in seconds.
            should_cache: Optional predicate; values it rejects are returned but not stored.
        """
        cached = await self.get(key)
        if cached is not None:
            return cached

        value = await producer()
        if value is not None and (should_cache is None or should_cache(value)):
            await self.set(key, value, ttl)
        return value


_response_cache: Optional[ResponseCache] = None


def get_response_cache() -> ResponseCache:
    """Get or create the shared response cache (lazy singleton)."""
    global _response_cache
    if _response_cache is None:
        _response_cache = ResponseCache()
    return _response_cache
