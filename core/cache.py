"""
Cache-aside layer in front of the relational store.

CacheService wraps a Redis-like client and guarantees that no store error
ever reaches the caller: reads degrade to a miss, writes and deletes are
logged and dropped. The database stays the only source of truth.
"""

import json
import logging
from functools import lru_cache
from typing import Any, Callable, List, Optional, Protocol, TypeVar

import redis

from core.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheStore(Protocol):
    """Subset of the redis.Redis API the cache layer relies on."""

    def get(self, name: str) -> Optional[str]: ...

    def set(self, name: str, value: str) -> Any: ...

    def setex(self, name: str, time: int, value: str) -> Any: ...

    def delete(self, *names: str) -> int: ...

    def keys(self, pattern: str) -> List[str]: ...

    def exists(self, *names: str) -> int: ...

    def flushdb(self) -> Any: ...


class CacheTTL:
    SHORT = 60           # 1 minute
    MEDIUM = 300         # 5 minutes
    LONG = 3600          # 1 hour
    DAY = 86400          # 24 hours


class CacheKeys:
    """Deterministic cache keys, one function per entity or collection."""

    @staticmethod
    def brand(brand_id: str) -> str:
        return f"brand:{brand_id}"

    @staticmethod
    def brands() -> str:
        return "brands:all"

    @staticmethod
    def model(model_id: str) -> str:
        return f"model:{model_id}"

    @staticmethod
    def models(brand_id: Optional[str] = None) -> str:
        if brand_id:
            return f"models:by-brand:{brand_id}"
        return "models:all"

    @staticmethod
    def service(service_id: str) -> str:
        return f"service:{service_id}"

    @staticmethod
    def services() -> str:
        return "services:all"

    @staticmethod
    def customer(customer_id: str) -> str:
        return f"customer:{customer_id}"

    @staticmethod
    def customers() -> str:
        return "customers:all"

    @staticmethod
    def repair_job(job_id: str) -> str:
        return f"repair_job:{job_id}"

    @staticmethod
    def repair_job_pattern() -> str:
        return "repair_job:*"

    @staticmethod
    def repair_jobs(
        status: Optional[str] = None,
        motorcycle_id: Optional[str] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> str:
        if status is None and motorcycle_id is None and skip == 0 and limit is None:
            return "repair_jobs:all"
        return f"repair_jobs:all:{status or '-'}:{motorcycle_id or '-'}:{skip}:{limit or '-'}"

    @staticmethod
    def repair_jobs_pattern() -> str:
        return "repair_jobs:*"

    @staticmethod
    def statistics() -> str:
        return "statistics:dashboard"


class CacheService:
    """Best-effort JSON cache over a Redis client."""

    def __init__(self, client: CacheStore):
        self.client = client

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None on miss, store error or bad payload."""
        try:
            value = self.client.get(key)
            if value is None:
                return None
            return json.loads(value)
        except Exception as e:
            logger.error(f"Cache get error for key {key}: {e}")
            return None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Store value as JSON; expires after ttl seconds when given."""
        try:
            serialized = json.dumps(value, default=str)
            if ttl:
                self.client.setex(key, ttl, serialized)
            else:
                self.client.set(key, serialized)
            logger.debug(f"Cache set for key {key}" + (f" with TTL {ttl}s" if ttl else ""))
        except Exception as e:
            logger.error(f"Cache set error for key {key}: {e}")

    def delete(self, key: str) -> None:
        try:
            self.client.delete(key)
            logger.debug(f"Cache deleted for key {key}")
        except Exception as e:
            logger.error(f"Cache delete error for key {key}: {e}")

    def delete_pattern(self, pattern: str) -> None:
        """Delete every key matching a glob pattern in a single call."""
        try:
            keys = self.client.keys(pattern)
            if keys:
                self.client.delete(*keys)
                logger.debug(f"Cache deleted {len(keys)} keys matching pattern {pattern}")
        except Exception as e:
            logger.error(f"Cache delete pattern error for {pattern}: {e}")

    def exists(self, key: str) -> bool:
        try:
            return bool(self.client.exists(key))
        except Exception as e:
            logger.error(f"Cache exists error for key {key}: {e}")
            return False

    def flush(self) -> None:
        try:
            self.client.flushdb()
            logger.warning("Cache flushed (all keys deleted)")
        except Exception as e:
            logger.error(f"Cache flush error: {e}")

    def get_or_set(
        self,
        key: str,
        fetch: Callable[[], Any],
        ttl: Optional[int] = None,
        parse: Optional[Callable[[Any], T]] = None,
    ) -> T:
        """
        Read-through lookup.

        On a hit the cached value is returned and fetch is never called.
        On a miss (or an unreadable cache) fetch is called exactly once and
        its result is stored. A None result is returned but not stored,
        since it would read back as a miss. Errors raised by fetch propagate.

        When parse is given, both cached and fetched values go through it.
        A cached value parse rejects is dropped and treated as a miss.
        """
        cached = self.get(key)
        if cached is not None:
            if parse is None:
                logger.debug(f"Cache hit for key {key}")
                return cached
            try:
                value = parse(cached)
                logger.debug(f"Cache hit for key {key}")
                return value
            except Exception as e:
                logger.warning(f"Discarding unreadable cache entry {key}: {e}")
                self.delete(key)
        else:
            logger.debug(f"Cache miss for key {key}")

        value = fetch()
        if value is None:
            return None
        self.set(key, value, ttl)
        return parse(value) if parse else value


@lru_cache(maxsize=1)
def get_redis_client():
    client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    logger.info(f"Redis cache initialized: {settings.REDIS_URL}")
    return client


# Dependency to get the cache service (FastAPI style)
def get_cache() -> CacheService:
    return CacheService(get_redis_client())
