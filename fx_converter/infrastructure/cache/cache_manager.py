"""
Prefixed key-value cache used by the converter itself.

Holds whole rate maps under ``{prefix}:rates:{BASE}`` with a long TTL. It sits
in front of the provider and is what sets ``ConversionResult.cached``.
"""

import logging
from typing import Optional

from fx_converter.domain.interfaces import KeyValueBackend

logger = logging.getLogger(__name__)

DEFAULT_TTL = 86400
DEFAULT_KEY_PREFIX = "currency_rate"


class KeyValueCacheManager:
    """Prefixed key-value store over a backend; every error is logged and swallowed."""

    def __init__(
        self,
        backend: KeyValueBackend,
        ttl: int | None = None,
        key_prefix: str | None = None,
    ):
        self.backend = backend
        self.default_ttl = ttl or DEFAULT_TTL
        self.key_prefix = key_prefix or DEFAULT_KEY_PREFIX

    def get_key(self, key: str) -> str:
        return f"{self.key_prefix}:{key}"

    def get(self, key: str) -> Optional[str]:
        try:
            return self.backend.get(self.get_key(key))
        except Exception as e:
            logger.warning("Cache get error for %s: %s", key, e)
            return None

    def set(self, key: str, value: str, ttl: int | None = None) -> None:
        try:
            self.backend.set(self.get_key(key), value, ttl or self.default_ttl)
        except Exception as e:
            logger.warning("Cache set error for %s: %s", key, e)

    def delete(self, key: str) -> None:
        try:
            self.backend.delete(self.get_key(key))
        except Exception as e:
            logger.warning("Cache delete error for %s: %s", key, e)

    def exists(self, key: str) -> bool:
        try:
            return bool(self.backend.exists(self.get_key(key)))
        except Exception as e:
            logger.warning("Cache exists error for %s: %s", key, e)
            return False

    def clear(self, pattern: str | None = None) -> None:
        """Delete keys matching ``pattern`` (relative to the prefix), or every key."""
        search = self.get_key(pattern) if pattern else f"{self.key_prefix}:*"
        try:
            keys = self.backend.keys(search)
            if keys:
                self.backend.delete(*keys)
        except Exception as e:
            logger.warning("Cache clear error for %s: %s", search, e)

    def ttl(self, key: str) -> int:
        try:
            return self.backend.ttl(self.get_key(key))
        except Exception as e:
            logger.warning("Cache TTL error for %s: %s", key, e)
            return -1
