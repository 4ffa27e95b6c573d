"""Short-TTL response cache for hot list endpoints.

Features:
- asyncio.Lock-guarded TTL map, safe under concurrent reads and writes
- Cache decorator for async list operations
- Tenant/customer-scoped keys with pattern invalidation after writes
- Hit/miss metrics tracking
- CACHE_ENABLED=false bypasses caching entirely (development)

A stale read inside the TTL window is acceptable; correctness of the
underlying data never depends on the cache.
"""

import asyncio
import functools
import hashlib
import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from app.core.config import get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class CacheMetrics:
    """Cache performance metrics."""

    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate percentage."""
        total = self.hits + self.misses
        return (self.hits / total * 100) if total > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "deletes": self.deletes,
            "hit_rate_percent": round(self.hit_rate, 2),
        }


class InMemoryCache:
    """In-memory cache implementation with TTL support."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._cache: dict[str, tuple[Any, float | None]] = {}
        self._lock = asyncio.Lock()
        self._metrics = CacheMetrics()
        self._clock = clock

    async def get(self, key: str) -> Any | None:
        async with self._lock:
            if key not in self._cache:
                self._metrics.misses += 1
                return None

            value, expiry = self._cache[key]
            if expiry is not None and self._clock() > expiry:
                del self._cache[key]
                self._metrics.misses += 1
                return None

            self._metrics.hits += 1
            return value

    def __len__(self) -> int:
        return len(self._cache)

    def _evict_expired(self, now: float) -> int:
        """Drop expired entries; the caller holds the lock."""
        expired = [
            k for k, (_, expiry) in self._cache.items()
            if expiry is not None and now > expiry
        ]
        for key in expired:
            del self._cache[key]
        return len(expired)

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        async with self._lock:
            now = self._clock()
            self._evict_expired(now)
            expiry = now + ttl_seconds if ttl_seconds else None
            self._cache[key] = (value, expiry)
            self._metrics.sets += 1

    async def delete_pattern(self, pattern: str) -> int:
        """Delete keys matching pattern (simple substring match)."""
        async with self._lock:
            keys_to_delete = [k for k in self._cache if pattern in k]
            for key in keys_to_delete:
                del self._cache[key]
            self._metrics.deletes += len(keys_to_delete)
            return len(keys_to_delete)

    async def clear(self) -> None:
        async with self._lock:
            self._metrics.deletes += len(self._cache)
            self._cache.clear()

    async def cleanup_expired(self) -> int:
        """Remove expired entries. Returns count removed."""
        async with self._lock:
            return self._evict_expired(self._clock())

    def get_metrics(self) -> CacheMetrics:
        return self._metrics


class CacheManager:
    """Cache facade honoring the CACHE_ENABLED bypass flag."""

    def __init__(self):
        self._cache = InMemoryCache()
        self._cache_type = "memory"

    async def initialize(self) -> None:
        """Reset the backend; called from the application lifespan."""
        settings = get_settings()
        self._cache = InMemoryCache()
        if not settings.cache_enabled:
            self._cache_type = "disabled"
            logger.info("Cache disabled via configuration")
            return
        self._cache_type = "memory"
        logger.info("Using in-memory response cache")

    @staticmethod
    def _enabled() -> bool:
        return get_settings().cache_enabled

    def generate_key(self, prefix: str, scope: str | None = None, *args, **kwargs) -> str:
        """Generate a cache key, optionally scoped to a tenant or customer.

        Args:
            prefix: Key prefix (e.g., 'assessment_list')
            scope: Optional tenant/customer ID for targeted invalidation
            *args: Additional positional args to hash
            **kwargs: Additional keyword args to hash
        """
        parts = ["m365assess", prefix]
        if scope:
            parts.append(f"scope:{scope}")
        if args or kwargs:
            arg_str = json.dumps({"args": args, "kwargs": kwargs}, sort_keys=True, default=str)
            parts.append(hashlib.md5(arg_str.encode()).hexdigest()[:8])
        return ":".join(parts)

    async def get(self, key: str) -> Any | None:
        if not self._enabled():
            return None
        return await self._cache.get(key)

    async def set(self, key: str, value: Any, data_type: str | None = None) -> None:
        if not self._enabled():
            return
        ttl = get_settings().get_cache_ttl(data_type) if data_type else None
        await self._cache.set(key, value, ttl)

    async def invalidate_data_type(self, data_type: str) -> int:
        """Invalidate all cache entries for a data type."""
        if not self._enabled():
            return 0
        count = await self._cache.delete_pattern(f":{data_type}")
        await self.cleanup()
        logger.debug(f"Invalidated {count} cache entries for {data_type}")
        return count

    async def cleanup(self) -> int:
        """Run cleanup tasks (remove expired entries)."""
        return await self._cache.cleanup_expired()

    async def clear(self) -> None:
        await self._cache.clear()

    def get_metrics(self) -> dict[str, Any]:
        return {"backend": self._cache_type, **self._cache.get_metrics().to_dict()}


# Global cache manager instance
cache_manager = CacheManager()


def cached(data_type: str, key_generator: Callable[..., str] | None = None):
    """Cache the result of an async function for the data type's TTL.

    Example:
        @cached("assessment_list")
        async def list_assessments(customer_id: str | None = None, limit: int = 50):
            ...
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            if not get_settings().cache_enabled:
                return await func(*args, **kwargs)

            if key_generator:
                cache_key = key_generator(*args, **kwargs)
            else:
                cache_key = cache_manager.generate_key(data_type, None, *args, **kwargs)

            cached_value = await cache_manager.get(cache_key)
            if cached_value is not None:
                logger.debug(f"Cache hit: {cache_key}")
                return cached_value

            result = await func(*args, **kwargs)

            # Only cache successful results (not errors)
            if result is not None and getattr(result, "ok", True):
                await cache_manager.set(cache_key, result, data_type=data_type)
                logger.debug(f"Cache set: {cache_key}")
            return result

        return wrapper

    return decorator
