"""
Bulk exchange rate cache.

One entry holds the full rate map of one provider for one base currency, so a
single upstream fetch serves every target currency for that base. Entries live
under ``{prefix}:{provider}:{BASE}``.

Every operation is best-effort: backend failures are logged and reported as a
miss (``None``/``False``/``-1``), never raised. The ``lookup``/``store``/``remove``
methods expose the same operations as CacheResult values for callers that
want to branch on the failure explicitly.
"""

import logging
import time
from typing import Callable, Optional, TypeVar

from fx_converter.domain.exceptions import CacheError
from fx_converter.domain.interfaces import KeyValueBackend
from fx_converter.domain.models import (
    CacheEntry,
    CacheResult,
    CacheStats,
    RateMap,
    normalize_currency_code,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TTL = 3600
DEFAULT_KEY_PREFIX = "exchange_rates"


class ExchangeRatesCache:
    """Full rate maps cached per provider identity and base currency."""

    def __init__(
        self,
        backend: KeyValueBackend,
        ttl: int | None = None,
        key_prefix: str | None = None,
    ):
        self.backend = backend
        self.default_ttl = ttl or DEFAULT_TTL
        self.key_prefix = key_prefix or DEFAULT_KEY_PREFIX

    def get_key(self, provider_name: str, base_currency: str) -> str:
        return f"{self.key_prefix}:{provider_name}:{normalize_currency_code(base_currency)}"

    def _attempt(self, operation: str, func: Callable[[], T]) -> CacheResult[T]:
        try:
            return CacheResult.success(func())
        except Exception as e:
            error = e if isinstance(e, CacheError) else CacheError(f"{operation} failed: {e}")
            return CacheResult.failure(error)

    # Result-returning operations -------------------------------------

    def store(
        self,
        provider_name: str,
        base_currency: str,
        rates: RateMap,
        ttl: int | None = None,
    ) -> CacheResult[None]:
        key = self.get_key(provider_name, base_currency)
        entry = CacheEntry(
            rates=dict(rates),
            timestamp=int(time.time() * 1000),
            base_currency=normalize_currency_code(base_currency),
            provider=provider_name,
        )
        expiry = ttl or self.default_ttl
        result = self._attempt("set", lambda: self.backend.set(key, entry.to_json(), expiry))
        if result.ok:
            logger.info("Cached %d rates for %s:%s (TTL: %ss)", len(rates), provider_name, entry.base_currency, expiry)
        return result

    def lookup(self, provider_name: str, base_currency: str) -> CacheResult[RateMap]:
        """
        Read the rate map for a provider/base pair.

        A missing entry is a successful lookup with value None. Entries that
        cannot be parsed, or that claim a different provider or base currency
        than the key they were read from, are deleted and reported as missing.
        """
        key = self.get_key(provider_name, base_currency)
        raw = self._attempt("get", lambda: self.backend.get(key))
        if not raw.ok or raw.value is None:
            return raw

        try:
            entry = CacheEntry.from_json(raw.value)
        except (ValueError, TypeError) as e:
            logger.warning("Invalid cached data structure under %s (%s), removing cache", key, e)
            self.remove(key)
            return CacheResult.success(None)

        if entry.provider != provider_name or entry.base_currency != normalize_currency_code(base_currency):
            logger.warning(
                "Cached data mismatch under %s (found %s:%s), removing cache",
                key, entry.provider, entry.base_currency,
            )
            self.remove(key)
            return CacheResult.success(None)

        logger.debug("Retrieved %d cached rates for %s:%s", len(entry.rates), provider_name, entry.base_currency)
        return CacheResult.success(entry.rates)

    def remove(self, *keys: str) -> CacheResult[None]:
        return self._attempt("delete", lambda: self.backend.delete(*keys))

    # Best-effort operations ------------------------------------------

    def set_rates(
        self,
        provider_name: str,
        base_currency: str,
        rates: RateMap,
        ttl: int | None = None,
    ) -> None:
        result = self.store(provider_name, base_currency, rates, ttl)
        if not result.ok:
            logger.warning("Failed to cache exchange rates: %s", result.error)

    def get_rates(self, provider_name: str, base_currency: str) -> Optional[RateMap]:
        result = self.lookup(provider_name, base_currency)
        if not result.ok:
            logger.warning("Failed to get cached exchange rates: %s", result.error)
            return None
        return result.value

    def has_rates(self, provider_name: str, base_currency: str) -> bool:
        key = self.get_key(provider_name, base_currency)
        result = self._attempt("exists", lambda: self.backend.exists(key))
        if not result.ok:
            logger.warning("Failed to check cache existence: %s", result.error)
            return False
        return bool(result.value)

    def get_ttl(self, provider_name: str, base_currency: str) -> int:
        key = self.get_key(provider_name, base_currency)
        result = self._attempt("ttl", lambda: self.backend.ttl(key))
        if not result.ok:
            logger.warning("Failed to get cache TTL: %s", result.error)
            return -1
        return result.value

    def clear_rates(self, provider_name: str, base_currency: str) -> None:
        key = self.get_key(provider_name, base_currency)
        result = self.remove(key)
        if result.ok:
            logger.info("Cleared cache for %s:%s", provider_name, normalize_currency_code(base_currency))
        else:
            logger.warning("Failed to clear cached rates: %s", result.error)

    def _clear_pattern(self, pattern: str) -> int:
        keys = self._attempt("keys", lambda: self.backend.keys(pattern))
        if not keys.ok:
            logger.warning("Failed to list cached rates for %s: %s", pattern, keys.error)
            return 0
        if not keys.value:
            return 0
        result = self.remove(*keys.value)
        if not result.ok:
            logger.warning("Failed to clear cached rates for %s: %s", pattern, result.error)
            return 0
        return len(keys.value)

    def clear_provider_rates(self, provider_name: str) -> None:
        cleared = self._clear_pattern(f"{self.key_prefix}:{provider_name}:*")
        if cleared:
            logger.info("Cleared %d cached rate sets for %s", cleared, provider_name)

    def clear_all(self) -> None:
        cleared = self._clear_pattern(f"{self.key_prefix}:*")
        if cleared:
            logger.info("Cleared all %d cached rate sets", cleared)

    def refresh_rates(self, provider_name: str, base_currency: str | None = None) -> None:
        """Drop cached data so the next read goes to the provider."""
        if base_currency:
            self.clear_rates(provider_name, base_currency)
        else:
            self.clear_provider_rates(provider_name)

    def get_stats(self) -> CacheStats:
        keys = self._attempt("keys", lambda: self.backend.keys(f"{self.key_prefix}:*"))
        if not keys.ok:
            logger.warning("Failed to get cache stats: %s", keys.error)
            return CacheStats()

        providers: set[str] = set()
        currencies: set[str] = set()
        timestamps: list[int] = []
        prefix = f"{self.key_prefix}:"

        for key in keys.value:
            provider, sep, currency = key[len(prefix):].rpartition(":")
            if sep and provider:
                providers.add(provider)
                currencies.add(currency)

            raw = self._attempt("get", lambda: self.backend.get(key))
            if not raw.ok or raw.value is None:
                continue
            try:
                timestamps.append(CacheEntry.from_json(raw.value).timestamp)
            except (ValueError, TypeError):
                continue

        return CacheStats(
            total_keys=len(keys.value),
            providers=frozenset(providers),
            currencies=frozenset(currencies),
            oldest_timestamp=min(timestamps) if timestamps else None,
            newest_timestamp=max(timestamps) if timestamps else None,
        )
