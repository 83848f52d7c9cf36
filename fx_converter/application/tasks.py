"""
Celery tasks for background processing.
"""

import asyncio
import logging
from typing import Dict, List, Optional

from celery import shared_task

from fx_converter.application.dto import RateSyncResultDTO
from fx_converter.core import settings
from fx_converter.domain.models import RateResult, is_valid_currency_code, normalize_currency_code
from fx_converter.infrastructure.cache.backends import RedisCacheBackend
from fx_converter.infrastructure.cache.exchange_rates_cache import ExchangeRatesCache
from fx_converter.infrastructure.providers.caching import CachingRateProvider
from fx_converter.infrastructure.providers.registry import build_provider_from_settings

logger = logging.getLogger(__name__)


def build_rates_cache() -> ExchangeRatesCache:
    """Bulk rate cache on the configured Redis instance."""
    return ExchangeRatesCache(
        RedisCacheBackend.from_url(settings.REDIS_URL),
        ttl=settings.RATES_CACHE_TTL,
        key_prefix=settings.RATES_CACHE_PREFIX,
    )


async def refresh_rates_async(provider: CachingRateProvider, base_currency: str) -> RateResult:
    """
    Refresh one base currency by running the synchronous provider
    in a thread pool via asyncio.to_thread.
    """
    return await asyncio.to_thread(provider.refresh_rates, base_currency)


async def refresh_all(provider: CachingRateProvider, base_currencies: List[str]) -> List[RateResult]:
    """Refresh every base currency concurrently."""
    tasks = [refresh_rates_async(provider, base) for base in base_currencies]
    return await asyncio.gather(*tasks)


@shared_task(name="warm_exchange_rates")
def warm_exchange_rates(base_currencies: Optional[List[str]] = None) -> Dict:
    """
    Re-fetch and cache the rate maps of the configured provider.

    Args:
        base_currencies: Base currency codes; defaults to WARM_BASE_CURRENCIES

    Returns:
        Dict with operation results
    """
    requested = base_currencies or settings.WARM_BASE_CURRENCIES
    bases = sorted({normalize_currency_code(code) for code in requested if is_valid_currency_code(code)})
    errors = [f"Invalid base currency code: {code}" for code in requested if not is_valid_currency_code(code)]

    if not bases:
        return RateSyncResultDTO(success=False, rates_synced=0, errors=errors or ["No base currencies to warm"]).as_dict()

    provider = build_provider_from_settings()
    if provider is None:
        return RateSyncResultDTO(
            success=False,
            rates_synced=0,
            errors=errors + [f"Provider '{settings.EXCHANGE_RATE_PROVIDER}' is unknown or not configured"],
        ).as_dict()

    caching_provider = CachingRateProvider(provider, build_rates_cache())
    logger.info("Warming %s rates for %s", provider.name, ", ".join(bases))

    results = asyncio.run(refresh_all(caching_provider, bases))

    rates_synced = 0
    processed = []
    for base, result in zip(bases, results):
        if result.success:
            rates_synced += len(result.rates)
            processed.append(base)
        else:
            errors.append(f"{base}: {result.error}")

    return RateSyncResultDTO(
        success=bool(processed),
        rates_synced=rates_synced,
        currencies_processed=processed,
        errors=errors,
        provider_used=provider.name,
    ).as_dict()


@shared_task(name="clear_exchange_rates_cache")
def clear_exchange_rates_cache(provider_name: Optional[str] = None) -> Dict:
    """
    Remove cached rate maps for one provider identity, or all of them.
    """
    cache = build_rates_cache()
    if provider_name:
        cache.clear_provider_rates(provider_name)
    else:
        cache.clear_all()

    return {
        "success": True,
        "provider": provider_name,
        "remaining_keys": cache.get_stats().total_keys,
    }
