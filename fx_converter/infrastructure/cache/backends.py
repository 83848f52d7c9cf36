"""
Key-value backends for the rate caches.
Both satisfy fx_converter.domain.interfaces.KeyValueBackend.
"""

import fnmatch
import threading
import time
from typing import Optional

import redis

from fx_converter.domain.exceptions import CacheError


class RedisCacheBackend:
    """
    Redis backend.

    Accepts any ``redis.Redis`` client; responses are decoded whether or not
    the client was created with ``decode_responses=True``.
    """

    def __init__(self, client: redis.Redis):
        self.client = client

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "RedisCacheBackend":
        return cls(redis.Redis.from_url(url, decode_responses=True, **kwargs))

    @staticmethod
    def _decode(value):
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def get(self, key: str) -> Optional[str]:
        try:
            return self._decode(self.client.get(key))
        except redis.RedisError as e:
            raise CacheError(f"Redis GET {key} failed: {e}") from e

    def set(self, key: str, value: str, ttl: int) -> None:
        try:
            self.client.set(key, value, ex=ttl)
        except redis.RedisError as e:
            raise CacheError(f"Redis SET {key} failed: {e}") from e

    def delete(self, *keys: str) -> None:
        if not keys:
            return
        try:
            self.client.delete(*keys)
        except redis.RedisError as e:
            raise CacheError(f"Redis DEL failed: {e}") from e

    def exists(self, key: str) -> bool:
        try:
            return self.client.exists(key) == 1
        except redis.RedisError as e:
            raise CacheError(f"Redis EXISTS {key} failed: {e}") from e

    def ttl(self, key: str) -> int:
        try:
            remaining = self.client.ttl(key)
        except redis.RedisError as e:
            raise CacheError(f"Redis TTL {key} failed: {e}") from e
        # -2 means the key does not exist
        return -1 if remaining is None or remaining < 0 else int(remaining)

    def keys(self, pattern: str) -> list[str]:
        try:
            return [self._decode(k) for k in self.client.keys(pattern)]
        except redis.RedisError as e:
            raise CacheError(f"Redis KEYS {pattern} failed: {e}") from e


class InMemoryCacheBackend:
    """Process-local backend with per-key expiry. Useful for development and tests."""

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._data: dict[str, tuple[str, Optional[float]]] = {}
        self._lock = threading.Lock()

    def _purge(self, key: str) -> None:
        item = self._data.get(key)
        if item is not None and item[1] is not None and item[1] <= self._clock():
            del self._data[key]

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            self._purge(key)
            item = self._data.get(key)
            return item[0] if item else None

    def set(self, key: str, value: str, ttl: int) -> None:
        expires_at = self._clock() + ttl if ttl and ttl > 0 else None
        with self._lock:
            self._data[key] = (value, expires_at)

    def delete(self, *keys: str) -> None:
        with self._lock:
            for key in keys:
                self._data.pop(key, None)

    def exists(self, key: str) -> bool:
        with self._lock:
            self._purge(key)
            return key in self._data

    def ttl(self, key: str) -> int:
        with self._lock:
            self._purge(key)
            item = self._data.get(key)
            if item is None or item[1] is None:
                return -1
            return max(0, int(round(item[1] - self._clock())))

    def keys(self, pattern: str) -> list[str]:
        with self._lock:
            for key in list(self._data):
                self._purge(key)
            return [k for k in self._data if fnmatch.fnmatchcase(k, pattern)]

    def flush(self) -> None:
        with self._lock:
            self._data.clear()
