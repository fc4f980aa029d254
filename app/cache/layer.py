import asyncio
import json
import time
from fnmatch import fnmatchcase
from typing import Any, Callable, NamedTuple, Optional

from cachetools import TLRUCache, TTLCache
from redis.asyncio import Redis, RedisError

from app.core.config import Settings, get_settings

import logging

logger = logging.getLogger(__name__)


class _Entry(NamedTuple):
    value: Any
    ttl: float


class CacheLayer:
    """
    Two-tier cache.

    L1: Process-local TLRUCache (fast, limited size, per-entry lifetime)
    L2: Redis (shared, optional)

    Features:
    - Stampede protection with per-key locks
    - Per-entry TTL, capped by the L1 default for the local tier
    - Graceful degradation when Redis is unavailable or disabled
    - Automatic key namespacing
    """

    def __init__(
        self,
        settings: Settings | None = None,
        timer: Callable[[], float] = time.monotonic,
    ):
        self._settings = settings
        self._timer = timer
        self._redis: Redis | None = None
        self.l1: TLRUCache | None = None
        self._initialized = False

        # Stats tracking
        self.stats = {
            "l1_hits": 0,
            "l2_hits": 0,
            "misses": 0,
            "errors": 0,
        }

    async def init_cache(self):
        """Initialize settings, L1 cache, and Redis connection."""
        if self._initialized:
            return

        if self._settings is None:
            self._settings = get_settings()

        settings = self._settings

        if self.l1 is None:
            self.l1 = TLRUCache(
                maxsize=settings.l1_maxsize, ttu=self._l1_expiry, timer=self._timer
            )

        if self._redis is None and settings.redis_dsn:
            try:
                self._redis = Redis.from_url(
                    settings.redis_dsn,
                    encoding="utf-8",
                    decode_responses=True,
                    max_connections=settings.redis_pool_size,
                    socket_connect_timeout=5,
                    socket_keepalive=True,
                    health_check_interval=30,
                )

                # Verify connection
                await self._redis.ping()
                logger.info("Redis connection established")
            except RedisError as e:
                logger.error(f"Redis initialization failed: {e}")
                # Allow degraded operation (L1 only)
                self._redis = None

        self._initialized = True
        logger.info(
            "Cache layer initialized", extra={"l2_enabled": self._redis is not None}
        )

    def _l1_expiry(self, key: str, entry: _Entry, now: float) -> float:
        return now + min(entry.ttl, self._settings.l1_ttl_seconds)

    def _l1_key(self, key: str) -> str:
        """Build namespaced L1 cache key."""
        return f"{self._settings.cache_namespace}l1:{key}"

    def _l2_key(self, key: str) -> str:
        """Build namespaced L2 cache key."""
        return f"{self._settings.cache_namespace}l2:{key}"

    def _serialize(self, value: Any) -> str:
        try:
            return json.dumps(value, default=str)
        except (TypeError, ValueError) as e:
            logger.error(f"Serialization failed: {e}")
            raise

    def _deserialize(self, raw: str) -> Any:
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            # Return raw string if not valid JSON
            return raw

    async def _lookup(self, key: str, ttl: int, record: bool = True) -> tuple[bool, Any]:
        """Read L1, then L2; an L2 hit is copied into L1."""
        entry = self.l1.get(self._l1_key(key))
        if entry is not None:
            if record:
                self.stats["l1_hits"] += 1
            logger.debug("L1 hit", extra={"key": key})
            return True, entry.value

        if not self._redis:
            return False, None

        l2_key = self._l2_key(key)
        try:
            raw = await self._redis.get(l2_key)
            # L1 must not outlive the L2 copy written by another worker
            remaining_ms = await self._redis.pttl(l2_key) if raw is not None else -2
        except RedisError as e:
            logger.error(f"Redis GET error: {e}", extra={"key": key})
            self.stats["errors"] += 1
            return False, None

        if raw is None:
            return False, None
        if record:
            self.stats["l2_hits"] += 1
        logger.debug("L2 hit", extra={"key": key, "remaining_ms": remaining_ms})
        value = self._deserialize(raw)
        if remaining_ms == -1:
            self.l1[self._l1_key(key)] = _Entry(value, ttl)
        elif remaining_ms > 0:
            self.l1[self._l1_key(key)] = _Entry(value, min(ttl, remaining_ms / 1000))
        return True, value

    async def get(
        self,
        key: str,
        loader: Optional[Callable[[], Any]] = None,
        l2_ttl: Optional[int] = None,
    ):
        """
        Retrieve value from cache hierarchy: L1 -> L2 -> loader.

        Args:
            key: Cache key (will be namespaced automatically)
            loader: Async function to load value on cache miss
            l2_ttl: Lifetime in seconds on both tiers (L1 caps it at
                l1_ttl_seconds); the L2 default if None

        Returns:
            Cached value or loaded value, or None if not found. None is
            never cached.
        """
        await self.init_cache()
        ttl = l2_ttl or self._settings.l2_ttl_seconds

        hit, value = await self._lookup(key, ttl)
        if hit:
            return value

        self.stats["misses"] += 1
        if loader is None:
            logger.debug("Cache miss, no loader", extra={"key": key})
            return None

        async with _get_lock_for_key(key):
            # another waiter may have filled the key while we queued
            hit, value = await self._lookup(key, ttl, record=False)
            if hit:
                return value

            logger.debug("Loading from source", extra={"key": key})
            value = await loader()
            if value is not None:
                await self._set_both_layers(key, value, ttl)
            return value

    async def _set_both_layers(self, key: str, value: Any, ttl: int):
        self.l1[self._l1_key(key)] = _Entry(value, ttl)

        if self._redis:
            try:
                await self._redis.set(self._l2_key(key), self._serialize(value), ex=ttl)
                logger.debug("Stored in L2", extra={"key": key, "ttl": ttl})
            except RedisError as e:
                logger.error(f"Redis SET error: {e}", extra={"key": key})
                self.stats["errors"] += 1

    async def set(self, key: str, value: Any, l2_ttl: Optional[int] = None):
        """Explicitly set a value in both cache layers."""
        await self.init_cache()
        await self._set_both_layers(key, value, l2_ttl or self._settings.l2_ttl_seconds)

    async def delete(self, key: str):
        """Delete a key from both cache layers."""
        await self.init_cache()

        self.l1.pop(self._l1_key(key), None)

        if self._redis:
            try:
                await self._redis.delete(self._l2_key(key))
                logger.debug("Deleted from both layers", extra={"key": key})
            except RedisError as e:
                logger.error(f"Redis DELETE error: {e}", extra={"key": key})
                self.stats["errors"] += 1

    async def delete_pattern(self, pattern: str):
        """Delete all keys matching a glob pattern from both layers."""
        await self.init_cache()

        l1_pattern = self._l1_key(pattern)
        stale = [k for k in list(self.l1.keys()) if fnmatchcase(k, l1_pattern)]
        for k in stale:
            self.l1.pop(k, None)

        if not self._redis:
            return

        try:
            l2_pattern = self._l2_key(pattern)
            cursor = 0
            deleted_count = 0

            while True:
                cursor, keys = await self._redis.scan(
                    cursor, match=l2_pattern, count=100
                )
                if keys:
                    await self._redis.delete(*keys)
                    deleted_count += len(keys)
                if cursor == 0:
                    break

            logger.info(
                "Pattern delete completed",
                extra={"pattern": pattern, "deleted": deleted_count},
            )

        except RedisError as e:
            logger.error(f"Pattern delete error: {e}", extra={"pattern": pattern})
            self.stats["errors"] += 1

    async def close(self):
        """Graceful shutdown of cache connections."""
        if self._redis:
            try:
                await self._redis.aclose()
                logger.info("Redis connection closed")
            except RedisError as e:
                logger.error(f"Error closing Redis: {e}")
            self._redis = None
        self._initialized = False

    def get_stats(self) -> dict:
        """Get cache statistics."""
        total = sum(
            [self.stats["l1_hits"], self.stats["l2_hits"], self.stats["misses"]]
        )

        return {
            **self.stats,
            "l1_size": len(self.l1) if self.l1 is not None else 0,
            "l1_maxsize": self.l1.maxsize if self.l1 is not None else 0,
            "l2_enabled": self._redis is not None,
            "hit_rate": (
                (self.stats["l1_hits"] + self.stats["l2_hits"]) / total
                if total > 0
                else 0
            ),
        }


# Per-key locks for stampede protection. Concurrent loaders of the same key
# share one lock, so only one of them reaches the source. setdefault() keeps
# lock creation atomic; entries expire 300s after the last access.
_locks = TTLCache(maxsize=10_000, ttl=300)


def _get_lock_for_key(key: str) -> asyncio.Lock:
    return _locks.setdefault(key, asyncio.Lock())


# Cache layer instance (singleton per worker)
cache_layer = CacheLayer()
