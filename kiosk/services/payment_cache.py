# kiosk/services/payment_cache.py
"""
Confirmed-payment cache shared by status polling and webhooks.

Two backends behind one interface:
- RedisPaymentCache: real TTL, shared by every API/worker process.
- MemoryPaymentCache: a dict inside one process, swept hourly. Each process
  sees only its own entries, so it must not be relied on when the API runs
  as more than one instance.
"""
import json
import threading
import time
from typing import Any, Dict, Protocol

import redis
from redis.exceptions import RedisError

from kiosk.utils.retry import redis_retry
from kiosk.utils.settings import PAYMENT_CACHE_TTL_SECONDS
from kiosk.utils.logging import get_logger

logger = get_logger(__name__)


class PaymentCache(Protocol):
    backend: str

    def put(self, key: str, value: Dict[str, Any]) -> None: ...

    def get(self, key: str) -> Dict[str, Any] | None: ...

    def delete(self, key: str) -> None: ...

    def sweep(self, now: float | None = None) -> int: ...


class MemoryPaymentCache:
    backend = "memory"

    def __init__(self, ttl: int = PAYMENT_CACHE_TTL_SECONDS):
        self.ttl = ttl
        self._entries: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def put(self, key: str, value: Dict[str, Any]) -> None:
        entry = dict(value)
        entry.setdefault("timestamp", time.time())
        with self._lock:
            self._entries[key] = entry

    def get(self, key: str) -> Dict[str, Any] | None:
        # no TTL check here, stale entries live until the next sweep
        with self._lock:
            entry = self._entries.get(key)
        return dict(entry) if entry is not None else None

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def sweep(self, now: float | None = None) -> int:
        cutoff = (now if now is not None else time.time()) - self.ttl
        with self._lock:
            stale = [k for k, v in self._entries.items() if v.get("timestamp", 0) < cutoff]
            for k in stale:
                del self._entries[k]
        if stale:
            logger.info(f"Payment cache sweep removed {len(stale)} entrie(s)")
        return len(stale)

    def __len__(self):
        return len(self._entries)


class RedisPaymentCache:
    """
    SET payment:<id> <json> EX 3600
    When Redis misbehaves the value goes to a local map instead, so a
    confirmation is never lost inside this process.
    """

    backend = "redis"

    def __init__(self, client: redis.Redis, ttl: int = PAYMENT_CACHE_TTL_SECONDS, prefix: str = "payment:"):
        self.redis = client
        self.ttl = ttl
        self.prefix = prefix
        self.fallback = MemoryPaymentCache(ttl)

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "RedisPaymentCache":
        return cls(redis.Redis.from_url(url, decode_responses=True), **kwargs)

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    @redis_retry()
    def _set(self, key: str, payload: str) -> None:
        self.redis.set(name=self._key(key), value=payload, ex=self.ttl)

    @redis_retry()
    def _get(self, key: str) -> str | None:
        return self.redis.get(self._key(key))

    def put(self, key: str, value: Dict[str, Any]) -> None:
        entry = dict(value)
        entry.setdefault("timestamp", time.time())
        try:
            self._set(key, json.dumps(entry, default=str))
        except RedisError as e:
            logger.error(f"Redis put failed for {key}, using local map: {e}")
            self.fallback.put(key, entry)

    def get(self, key: str) -> Dict[str, Any] | None:
        try:
            data = self._get(key)
        except RedisError as e:
            logger.error(f"Redis get failed for {key}, using local map: {e}")
            return self.fallback.get(key)
        if data is None:
            return self.fallback.get(key)
        return json.loads(data)

    def delete(self, key: str) -> None:
        try:
            self.redis.delete(self._key(key))
        except RedisError as e:
            logger.warning(f"Redis delete failed for {key}: {e}")
        self.fallback.delete(key)

    def sweep(self, now: float | None = None) -> int:
        # redis expires keys itself; only the local fallback needs sweeping
        return self.fallback.sweep(now)


def build_payment_cache(url: str | None) -> PaymentCache:
    if not url:
        logger.info("REDIS_URL not set - payment cache kept in process memory")
        return MemoryPaymentCache()
    try:
        cache = RedisPaymentCache.from_url(url)
        cache.redis.ping()
    except RedisError as e:
        logger.error(f"Redis unavailable ({e}) - payment cache kept in process memory")
        return MemoryPaymentCache()
    logger.info("Payment cache backed by Redis")
    return cache
