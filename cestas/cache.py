"""
Query cache abstraction for list results fetched from the database.

Supports an in-memory fallback for tests/local runs and a Redis-backed
implementation for production. Values are JSON-serializable payloads keyed by
a query name; mutations invalidate the keys they affect.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

logger = logging.getLogger(__name__)


class QueryCache(Protocol):
    """Minimal cache interface keyed by query name."""

    def get(self, key: str) -> Optional[Any]:
        ...

    def set(self, key: str, value: Any) -> None:
        ...

    def invalidate(self, *keys: str) -> None:
        ...

    def invalidate_prefix(self, prefix: str) -> None:
        ...


@dataclass
class InMemoryQueryCache:
    """Dict-backed cache for testing/dev."""

    ttl_seconds: float = 300
    entries: dict[str, tuple[float, str]] = field(default_factory=dict)

    def get(self, key: str) -> Optional[Any]:
        entry = self.entries.get(key)
        if entry is None:
            return None
        stored_at, payload = entry
        if self.ttl_seconds and time.time() - stored_at > self.ttl_seconds:
            self.entries.pop(key, None)
            return None
        return json.loads(payload)

    def set(self, key: str, value: Any) -> None:
        # Store the serialized form so cached values never alias live objects.
        self.entries[key] = (time.time(), json.dumps(value, default=str))

    def invalidate(self, *keys: str) -> None:
        for key in keys:
            self.entries.pop(key, None)

    def invalidate_prefix(self, prefix: str) -> None:
        for key in [k for k in self.entries if k.startswith(prefix)]:
            self.entries.pop(key, None)

    def reset(self) -> None:
        self.entries.clear()


@dataclass
class RedisQueryCache:
    """Redis-backed cache using string keys with an expiry."""

    url: str
    key_prefix: str = "cestas:cache"
    ttl_seconds: int = 300

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}:{key}"

    def get(self, key: str) -> Optional[Any]:
        try:
            payload = self.client.get(self._key(key))
        except redis_exceptions.ConnectionError:
            # Connection resets can happen on managed Redis. Treat as a miss
            # and let the caller read through to the database.
            logger.warning("Redis unavailable reading %s; treating as miss", key)
            self.client = redis.Redis.from_url(self.url)
            return None
        if payload is None:
            return None
        return json.loads(payload)

    def set(self, key: str, value: Any) -> None:
        try:
            self.client.set(
                self._key(key), json.dumps(value, default=str), ex=self.ttl_seconds
            )
        except redis_exceptions.ConnectionError:
            logger.warning("Redis unavailable writing %s; skipping cache", key)
            self.client = redis.Redis.from_url(self.url)

    def invalidate(self, *keys: str) -> None:
        if not keys:
            return
        try:
            self.client.delete(*[self._key(key) for key in keys])
        except redis_exceptions.ConnectionError:
            # Stale entries expire after ttl_seconds; the database write stands.
            logger.warning("Redis unavailable invalidating %s", ", ".join(keys))
            self.client = redis.Redis.from_url(self.url)

    def invalidate_prefix(self, prefix: str) -> None:
        try:
            stale = list(self.client.scan_iter(match=f"{self._key(prefix)}*"))
            if stale:
                self.client.delete(*stale)
        except redis_exceptions.ConnectionError:
            logger.warning("Redis unavailable invalidating prefix %s", prefix)
            self.client = redis.Redis.from_url(self.url)
