"""Key-value stores with per-key expiry.

Verification codes and rate-limit counters live here. The in-memory store
is per process and loses everything on restart; any deployment with more
than one API instance must use the Redis store.
"""

import json
import time
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

import structlog
from redis.asyncio import Redis, from_url

logger = structlog.get_logger(__name__)

Clock = Callable[[], float]


class TTLStore(Protocol):
    """Async key-value store with expiring entries."""

    async def get(self, key: str) -> Optional[Any]:
        ...

    async def set(self, key: str, value: Any, ttl: float) -> None:
        ...

    async def delete(self, key: str) -> bool:
        ...

    async def incr(self, key: str, ttl: float) -> int:
        """Increment a counter, starting its expiry window on first use."""
        ...

    async def sweep_expired(self) -> int:
        ...


class InMemoryTTLStore:
    """Process-local TTL store.

    Expired entries are invisible to ``get`` and removed lazily by
    ``sweep_expired``; there is no background timer.
    """

    def __init__(self, clock: Clock = time.time):
        self._clock = clock
        self._entries: Dict[str, Tuple[Any, float]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    async def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= self._clock():
            return None
        return value

    async def set(self, key: str, value: Any, ttl: float) -> None:
        self._entries[key] = (value, self._clock() + ttl)

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def incr(self, key: str, ttl: float) -> int:
        now = self._clock()
        entry = self._entries.get(key)
        if entry is None or entry[1] <= now:
            self._entries[key] = (1, now + ttl)
            return 1
        count, expires_at = entry
        self._entries[key] = (count + 1, expires_at)
        return count + 1

    async def sweep_expired(self) -> int:
        now = self._clock()
        expired = [key for key, (_, expires_at) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        return len(expired)


class RedisTTLStore:
    """Redis-backed TTL store shared by every API instance.

    Values are JSON encoded. Redis expires keys itself, so
    ``sweep_expired`` has nothing to do.
    """

    def __init__(self, redis_url: str, prefix: str = "localdeals:"):
        self.redis_url = redis_url
        self.prefix = prefix
        self._redis: Optional[Redis] = None
        self.logger = logger.bind(service="ttl_store")

    async def _get_redis(self) -> Redis:
        if self._redis is None:
            self._redis = from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
            )
            self.logger.info("redis_connection_created", url=self.redis_url)
        return self._redis

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def get(self, key: str) -> Optional[Any]:
        redis = await self._get_redis()
        raw = await redis.get(self._key(key))
        return None if raw is None else json.loads(raw)

    async def set(self, key: str, value: Any, ttl: float) -> None:
        redis = await self._get_redis()
        await redis.set(self._key(key), json.dumps(value), px=max(1, int(ttl * 1000)))

    async def delete(self, key: str) -> bool:
        redis = await self._get_redis()
        return bool(await redis.delete(self._key(key)))

    async def incr(self, key: str, ttl: float) -> int:
        redis = await self._get_redis()
        full_key = self._key(key)
        async with redis.pipeline(transaction=True) as pipe:
            pipe.incr(full_key)
            pipe.pexpire(full_key, max(1, int(ttl * 1000)), nx=True)
            count, _ = await pipe.execute()
        return int(count)

    async def sweep_expired(self) -> int:
        return 0

    async def health_check(self) -> bool:
        try:
            redis = await self._get_redis()
            await redis.ping()
            return True
        except Exception as e:
            self.logger.error("redis_health_check_failed", error=str(e))
            return False

    async def close(self) -> None:
        if self._redis:
            await self._redis.close()
            self._redis = None
            self.logger.info("redis_connection_closed")
