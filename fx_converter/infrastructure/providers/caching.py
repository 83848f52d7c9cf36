"""
Cache-aware wrapper around any rate provider.

The wrapped provider only knows how to fetch; this class adds validation,
bulk-cache reads and best-effort cache population. The cache is optional and
passed explicitly: ``None`` means every call goes to the provider.
"""

import logging
from typing import Optional

from fx_converter.domain.interfaces import BaseExchangeRateProvider
from fx_converter.domain.models import (
    RateResult,
    is_valid_currency_code,
    normalize_currency_code,
    today_iso,
)
from fx_converter.infrastructure.cache.exchange_rates_cache import ExchangeRatesCache

logger = logging.getLogger(__name__)


class CachingRateProvider:

    def __init__(self, provider: BaseExchangeRateProvider, cache: Optional[ExchangeRatesCache] = None):
        self.provider = provider
        self.cache = cache

    def __repr__(self):
        return f"CachingRateProvider(provider={self.provider!r}, cached={self.cache is not None})"

    @property
    def name(self) -> str:
        return self.provider.name

    def with_provider(self, provider: BaseExchangeRateProvider) -> "CachingRateProvider":
        """Wrap another provider with the same cache."""
        return CachingRateProvider(provider, self.cache)

    def is_config_valid(self) -> bool:
        return self.provider.is_config_valid()

    def get_exchange_rates(self, base_currency: str = "USD") -> RateResult:
        """
        Rates for ``base_currency``: from the bulk cache when present, otherwise
        fetched from the provider and written back to the cache.

        Never raises; every failure comes back as ``RateResult(success=False)``.
        """
        if not is_valid_currency_code(base_currency):
            return RateResult.failure(base_currency, f"Invalid base currency code: {base_currency}")
        base = normalize_currency_code(base_currency)

        if self.cache is not None:
            cached = self.cache.lookup(self.name, base)
            if not cached.ok:
                logger.warning("Cache read failed for %s:%s: %s", self.name, base, cached.error)
            elif cached.value is not None:
                logger.debug("Cache hit for %s:%s", self.name, base)
                return RateResult(success=True, base=base, date=today_iso(), rates=cached.value)

        return self._fetch_and_store(base)

    def refresh_rates(self, base_currency: str = "USD") -> RateResult:
        """Drop any cached entry for the pair and fetch fresh rates."""
        if not is_valid_currency_code(base_currency):
            return RateResult.failure(base_currency, f"Invalid base currency code: {base_currency}")
        base = normalize_currency_code(base_currency)

        if self.cache is not None:
            self.cache.clear_rates(self.name, base)
        return self._fetch_and_store(base)

    def is_rates_cached(self, base_currency: str = "USD") -> bool:
        if self.cache is None:
            return False
        return self.cache.has_rates(self.name, base_currency)

    def get_rates_cache_ttl(self, base_currency: str = "USD") -> int:
        if self.cache is None:
            return -1
        return self.cache.get_ttl(self.name, base_currency)

    def _fetch_and_store(self, base: str) -> RateResult:
        try:
            response = self.provider.fetch_rates(base)
        except Exception as e:
            logger.exception("Provider %s raised while fetching %s", self.name, base)
            return RateResult.failure(base, f"{self.name} error: {e}")

        if not response.success:
            logger.warning("Provider %s failed for %s: %s", self.name, base, response.error)
            return response

        if self.cache is not None and response.rates:
            stored = self.cache.store(self.name, base, response.rates)
            if not stored.ok:
                logger.warning("Cache write failed for %s:%s: %s", self.name, base, stored.error)

        return response
