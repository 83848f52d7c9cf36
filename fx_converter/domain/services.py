"""
Domain services - Core conversion logic.
Turns provider rate maps into directional conversions.
"""

import json
import logging
from decimal import Decimal
from typing import Iterable, Mapping, Optional, Union

from fx_converter.application.dto import ConversionRequestDTO
from fx_converter.core import settings
from fx_converter.domain.exceptions import (
    CurrencyConverterError,
    InvalidAmountError,
    InvalidCurrencyCodeError,
    RatesUnavailableError,
)
from fx_converter.domain.interfaces import BaseExchangeRateProvider, KeyValueBackend, SupportsCurrencyList
from fx_converter.domain.models import (
    CacheStats,
    ConversionResult,
    RateMap,
    is_valid_amount,
    is_valid_currency_code,
    normalize_currency_code,
    utc_now_iso,
)
from fx_converter.infrastructure.cache.cache_manager import KeyValueCacheManager
from fx_converter.infrastructure.cache.exchange_rates_cache import ExchangeRatesCache
from fx_converter.infrastructure.providers.caching import CachingRateProvider

logger = logging.getLogger(__name__)


class CurrencyConverter:
    """
    Converts amounts between currencies using the bound rate provider.

    With a cache backend, two caches share it:
    1. A converter-level cache of whole rate maps per base currency
       (``cached=True`` on results it serves)
    2. The provider-level bulk cache keyed by provider name and base currency

    Example:
        >>> converter = CurrencyConverter(MockProvider(), cache_backend=InMemoryCacheBackend())
        >>> result = converter.convert_currency(100, "USD", "EUR")
        >>> result.to_currency
        'EUR'
    """

    def __init__(
        self,
        provider: BaseExchangeRateProvider,
        cache_backend: Optional[KeyValueBackend] = None,
        cache_ttl: Optional[int] = None,
        cache_key_prefix: Optional[str] = None,
    ):
        self._cache_manager: Optional[KeyValueCacheManager] = None
        self._rates_cache: Optional[ExchangeRatesCache] = None

        if cache_backend is not None:
            self._cache_manager = KeyValueCacheManager(
                cache_backend,
                ttl=cache_ttl or settings.CONVERTER_CACHE_TTL,
                key_prefix=cache_key_prefix or settings.CONVERTER_CACHE_PREFIX,
            )
            self._rates_cache = ExchangeRatesCache(
                cache_backend,
                ttl=cache_ttl or settings.RATES_CACHE_TTL,
                key_prefix=settings.RATES_CACHE_PREFIX,
            )

        self._provider = CachingRateProvider(provider, self._rates_cache)

    @property
    def provider(self) -> BaseExchangeRateProvider:
        return self._provider.provider

    @property
    def provider_name(self) -> str:
        return self._provider.name

    def set_provider(self, provider: BaseExchangeRateProvider) -> None:
        """Swap the active provider; the bulk cache stays attached."""
        logger.info("Switching rate provider from %s to %s", self.provider_name, provider.name)
        self._provider = self._provider.with_provider(provider)

    # Validation --------------------------------------------------------

    @staticmethod
    def _normalize_code(code: str) -> str:
        if not is_valid_currency_code(code):
            raise InvalidCurrencyCodeError(code)
        return normalize_currency_code(code)

    @staticmethod
    def _validate_amount(amount) -> float:
        if not is_valid_amount(amount):
            raise InvalidAmountError(amount)
        return float(amount)

    # Rate retrieval ----------------------------------------------------

    def _cache_key(self, base: str) -> str:
        return f"rates:{self.provider_name}:{base}"

    def _load_rates(self, base: str, target: Optional[str] = None) -> tuple[RateMap, bool]:
        """
        Rate map for ``base`` and whether the converter-level cache served it.

        Raises:
            RatesUnavailableError: the provider could not produce a rate map
        """
        if self._cache_manager is not None:
            raw = self._cache_manager.get(self._cache_key(base))
            if raw:
                try:
                    rates = json.loads(raw)
                    if isinstance(rates, dict):
                        return rates, True
                except ValueError:
                    pass
                logger.warning("Discarding unreadable cached rates for %s", base)
                self._cache_manager.delete(self._cache_key(base))

        response = self._provider.get_exchange_rates(base)
        if not response.success:
            raise RatesUnavailableError(base, target, response.error or "Failed to fetch exchange rates")

        if self._cache_manager is not None and response.rates:
            self._cache_manager.set(self._cache_key(base), json.dumps(response.rates))

        return response.rates, False

    def get_exchange_rates(self, base_currency: str = "USD") -> RateMap:
        """Full rate map for a base currency, from cache or provider."""
        base = self._normalize_code(base_currency)
        rates, _cached = self._load_rates(base)
        return dict(rates)

    def get_exchange_rate(self, from_currency: str, to_currency: str) -> float:
        """
        Pairwise rate, rounded to 6 decimal places.

        Raises:
            InvalidCurrencyCodeError: either code is malformed
            RatesUnavailableError: the pair is not in the provider's map
        """
        from_code = self._normalize_code(from_currency)
        to_code = self._normalize_code(to_currency)
        if from_code == to_code:
            return 1.0

        rates, _cached = self._load_rates(from_code, to_code)
        if not rates.get(from_code) or not rates.get(to_code):
            raise RatesUnavailableError(from_code, to_code)
        return round(rates[to_code] / rates[from_code], 6)

    # Conversion --------------------------------------------------------

    def convert_currency(
        self,
        amount: Union[int, float, Decimal],
        from_currency: str,
        to_currency: str,
    ) -> ConversionResult:
        """
        Convert ``amount`` from one currency to another.

        The converted amount is rounded to 2 decimal places and the reported
        rate to 6. Converting a currency to itself never touches the provider.

        Raises:
            InvalidCurrencyCodeError: either code is malformed
            InvalidAmountError: amount is negative or not a number
            RatesUnavailableError: no rate could be obtained for the pair
        """
        from_code = self._normalize_code(from_currency)
        to_code = self._normalize_code(to_currency)
        value = self._validate_amount(amount)

        if from_code == to_code:
            return ConversionResult(
                amount=amount,
                from_currency=from_code,
                to_currency=to_code,
                converted_amount=amount,
                rate=1.0,
                timestamp=utc_now_iso(),
                cached=False,
            )

        rates, cached = self._load_rates(from_code, to_code)

        # rates[from_code] is the self-rate of 1; a missing one means a malformed map
        if not rates.get(from_code) or not rates.get(to_code):
            raise RatesUnavailableError(from_code, to_code)

        rate = rates[to_code] / rates[from_code]
        return ConversionResult(
            amount=amount,
            from_currency=from_code,
            to_currency=to_code,
            converted_amount=round(value * rate, 2),
            rate=round(rate, 6),
            timestamp=utc_now_iso(),
            cached=cached,
        )

    def convert_multiple(
        self,
        conversions: Iterable[Union[ConversionRequestDTO, Mapping]],
    ) -> list[ConversionResult]:
        """
        Convert a batch in order. A failing item yields a placeholder result
        with ``converted_amount == 0``, ``rate == 0`` and the failure message
        in ``error``; the remaining items are still converted.
        """
        results = []
        for item in conversions:
            try:
                request = ConversionRequestDTO.coerce(item)
                results.append(
                    self.convert_currency(request.amount, request.from_currency, request.to_currency)
                )
            except Exception as e:
                logger.warning("Batch conversion %r failed: %s", item, e)
                results.append(self._placeholder(item, str(e)))
        return results

    @staticmethod
    def _placeholder(item: Union[ConversionRequestDTO, Mapping], error: str) -> ConversionResult:
        if isinstance(item, ConversionRequestDTO):
            amount, from_currency, to_currency = item.amount, item.from_currency, item.to_currency
        elif isinstance(item, Mapping):
            amount, from_currency, to_currency = item.get("amount"), item.get("from"), item.get("to")
        else:
            amount = from_currency = to_currency = None

        def code(value) -> str:
            if value is None:
                return ""
            return normalize_currency_code(value) if isinstance(value, str) else str(value)

        return ConversionResult(
            amount=amount,
            from_currency=code(from_currency),
            to_currency=code(to_currency),
            converted_amount=0.0,
            rate=0.0,
            timestamp=utc_now_iso(),
            cached=False,
            error=error,
        )

    # Converter-level cache ---------------------------------------------

    def clear_cache(self, base_currency: Optional[str] = None) -> None:
        if self._cache_manager is None:
            return
        if base_currency:
            self._cache_manager.delete(self._cache_key(normalize_currency_code(base_currency)))
        else:
            self._cache_manager.clear("rates:*")

    def is_cached(self, base_currency: str) -> bool:
        if self._cache_manager is None:
            return False
        return self._cache_manager.exists(self._cache_key(normalize_currency_code(base_currency)))

    def get_cache_ttl(self, base_currency: str) -> int:
        if self._cache_manager is None:
            return -1
        return self._cache_manager.ttl(self._cache_key(normalize_currency_code(base_currency)))

    # Provider-level bulk cache -----------------------------------------

    def get_cache_stats(self) -> Optional[CacheStats]:
        if self._rates_cache is None:
            return None
        return self._rates_cache.get_stats()

    def is_provider_rates_cached(self, base_currency: str = "USD") -> bool:
        return self._provider.is_rates_cached(base_currency)

    def get_provider_rates_cache_ttl(self, base_currency: str = "USD") -> int:
        return self._provider.get_rates_cache_ttl(base_currency)

    def refresh_provider_rates(self, base_currency: str = "USD") -> RateMap:
        """
        Force a fresh fetch from the current provider, replacing both cached
        copies of the rate map for ``base_currency``.
        """
        base = self._normalize_code(base_currency)
        response = self._provider.refresh_rates(base)
        if not response.success:
            raise RatesUnavailableError(base, reason=response.error or "Failed to refresh rates")

        if self._cache_manager is not None:
            self._cache_manager.set(self._cache_key(base), json.dumps(response.rates))
        return dict(response.rates)

    def clear_provider_cache(self) -> None:
        if self._rates_cache is not None:
            self._rates_cache.clear_provider_rates(self.provider_name)

    def clear_all_rates_cache(self) -> None:
        if self._rates_cache is not None:
            self._rates_cache.clear_all()

    # Optional capabilities ---------------------------------------------

    def get_supported_currencies(self) -> list[str]:
        provider = self.provider
        if not isinstance(provider, SupportsCurrencyList):
            raise CurrencyConverterError(f"{self.provider_name} does not expose a currency list")
        return provider.get_supported_currencies()
