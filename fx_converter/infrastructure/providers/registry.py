"""
Provider Registry - Maps ProviderName to adapter classes.
This is the glue between configuration and the actual implementation.
"""

import logging
from enum import Enum

from fx_converter.core import settings
from fx_converter.domain.exceptions import ProviderConfigurationError
from fx_converter.domain.interfaces import BaseExchangeRateProvider
from fx_converter.infrastructure.providers.currency_beacon import CurrencyBeaconProvider
from fx_converter.infrastructure.providers.currency_layer import CurrencyLayerProvider
from fx_converter.infrastructure.providers.exchange_rate import ExchangeRateApiProvider
from fx_converter.infrastructure.providers.fixer import FixerProvider
from fx_converter.infrastructure.providers.mock import MockProvider

logger = logging.getLogger(__name__)


class ProviderName(str, Enum):
    FIXER = "fixer"
    CURRENCY_LAYER = "currency_layer"
    EXCHANGERATE = "exchangerate"
    CURRENCY_BEACON = "currency_beacon"
    MOCK = "mock"


# Registry: Maps ProviderName to the corresponding adapter class
PROVIDER_REGISTRY: dict[str, type[BaseExchangeRateProvider]] = {
    ProviderName.FIXER.value: FixerProvider,
    ProviderName.CURRENCY_LAYER.value: CurrencyLayerProvider,
    ProviderName.EXCHANGERATE.value: ExchangeRateApiProvider,
    ProviderName.CURRENCY_BEACON.value: CurrencyBeaconProvider,
    ProviderName.MOCK.value: MockProvider,
}


def get_provider_instance(provider_name: str, **config) -> BaseExchangeRateProvider | None:
    """
    Get an instance of a provider by its name.

    Args:
        provider_name: The provider name from ProviderName
        **config: Constructor arguments (api_key, base_url, timeout, retries)

    Returns:
        Instance of the provider adapter, or None if not found or misconfigured
    """
    provider_name = getattr(provider_name, "value", provider_name)
    provider_class = PROVIDER_REGISTRY.get(provider_name)

    if provider_class is None:
        logger.warning("Provider '%s' not found in registry", provider_name)
        return None

    try:
        return provider_class(**config)
    except ProviderConfigurationError as e:
        logger.warning("Provider '%s' is not configured: %s", provider_name, e)
        return None


def _settings_config(provider_name: str) -> dict:
    provider_name = getattr(provider_name, "value", provider_name)
    credentials = {
        ProviderName.FIXER.value: (settings.FIXER_API_KEY, settings.FIXER_URL),
        ProviderName.CURRENCY_LAYER.value: (settings.CURRENCY_LAYER_API_KEY, settings.CURRENCY_LAYER_URL),
        ProviderName.EXCHANGERATE.value: (settings.EXCHANGERATE_API_KEY, settings.EXCHANGERATE_URL),
        ProviderName.CURRENCY_BEACON.value: (settings.CURRENCY_BEACON_API_KEY, settings.CURRENCY_BEACON_URL),
    }
    if provider_name not in credentials:
        return {}

    api_key, base_url = credentials[provider_name]
    return {
        "api_key": api_key,
        "base_url": base_url or None,
        "timeout": settings.HTTP_TIMEOUT_SECONDS,
        "retries": settings.HTTP_RETRIES,
        "backoff_factor": settings.HTTP_BACKOFF_FACTOR,
    }


def build_provider_from_settings(provider_name: str | None = None) -> BaseExchangeRateProvider | None:
    """
    Instantiate the configured provider (EXCHANGE_RATE_PROVIDER by default)
    with the credentials and transport options from settings.
    """
    provider_name = provider_name or settings.EXCHANGE_RATE_PROVIDER
    return get_provider_instance(provider_name, **_settings_config(provider_name))
