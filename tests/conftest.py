import pytest
from unittest.mock import Mock

from fx_converter.domain.interfaces import BaseExchangeRateProvider
from fx_converter.domain.models import RateResult
from fx_converter.infrastructure.cache.backends import InMemoryCacheBackend
from fx_converter.infrastructure.cache.exchange_rates_cache import ExchangeRatesCache


class StubProvider(BaseExchangeRateProvider):
    """Provider serving fixed rate maps per base currency and counting fetches."""

    def __init__(self, rates_by_base: dict, name: str = "Stub"):
        self.name = name
        self.rates_by_base = rates_by_base
        self.calls: list[str] = []

    def is_config_valid(self) -> bool:
        return True

    def fetch_rates(self, base_currency: str) -> RateResult:
        self.calls.append(base_currency)
        rates = self.rates_by_base.get(base_currency)
        if rates is None:
            return RateResult.failure(base_currency, f"Unsupported base currency {base_currency}")
        return RateResult.from_rates(base_currency, rates, "2024-05-21")


class ExplodingProvider(BaseExchangeRateProvider):
    """Provider that fails the test if it is ever asked for rates."""

    name = "Exploding"

    def is_config_valid(self) -> bool:
        return True

    def fetch_rates(self, base_currency: str) -> RateResult:
        raise AssertionError(f"provider must not be called (base={base_currency})")


@pytest.fixture
def backend():
    return InMemoryCacheBackend()


@pytest.fixture
def rates_cache(backend):
    return ExchangeRatesCache(backend)


@pytest.fixture
def make_provider():
    return StubProvider


@pytest.fixture
def exploding_provider():
    return ExplodingProvider()


@pytest.fixture
def usd_eur_provider():
    """Rates used throughout the conversion tests."""
    return StubProvider({
        "USD": {"USD": 1, "EUR": 0.9, "GBP": 0.8},
        "EUR": {"EUR": 1, "GBP": 0.888889, "USD": 1.111111},
        "GBP": {"GBP": 1, "JPY": 190.5, "USD": 1.25},
    })


@pytest.fixture
def json_response():
    """Build a requests-like response mock returning ``payload`` from .json()."""
    def build(payload, status_error=None):
        response = Mock()
        response.json.return_value = payload
        if status_error is not None:
            response.raise_for_status.side_effect = status_error
        else:
            response.raise_for_status.return_value = None
        return response

    return build
