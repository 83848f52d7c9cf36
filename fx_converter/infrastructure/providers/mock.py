"""
Mock provider for testing and development.
Generates deterministic but realistic exchange rates without any network I/O.
"""

import random

from fx_converter.domain.interfaces import BaseExchangeRateProvider
from fx_converter.domain.models import (
    RateResult,
    is_valid_currency_code,
    is_valid_date,
    normalize_currency_code,
    today_iso,
)


class MockProvider(BaseExchangeRateProvider):
    """
    Mock provider that derives rates from a fixed USD table.
    Useful for:
    - Testing without external API calls
    - Development without API keys
    """

    name = "Mock"

    # Base rates relative to USD (approximate real-world values)
    BASE_RATES = {
        "USD": 1.0,
        "EUR": 0.85,
        "GBP": 0.73,
        "CHF": 0.88,
        "JPY": 110.0,
        "CAD": 1.25,
        "AUD": 1.35,
    }

    def __init__(self, variation: float = 0.02):
        self.variation = variation

    def is_config_valid(self) -> bool:
        return True

    def fetch_rates(self, base_currency: str) -> RateResult:
        return self._generate(base_currency, today_iso())

    def get_historical_rates(self, on_date: str, base_currency: str = "USD") -> RateResult:
        if not is_valid_date(on_date):
            return RateResult.failure(base_currency, "Date must be in YYYY-MM-DD format")
        return self._generate(base_currency, on_date)

    def get_supported_currencies(self) -> list[str]:
        return sorted(self.BASE_RATES)

    def _generate(self, base_currency: str, on_date: str) -> RateResult:
        """
        Build the rate map for ``base_currency`` on ``on_date``.

        Each cross rate gets a small variation seeded by base, target and date,
        so the same inputs always produce the same map.
        """
        if not is_valid_currency_code(base_currency):
            return RateResult.failure(base_currency, f"Invalid base currency code: {base_currency}")

        base = normalize_currency_code(base_currency)
        base_rate = self.BASE_RATES.get(base)
        if base_rate is None:
            return RateResult.failure(base, f"Mock: unsupported base currency {base}")

        rates = {}
        for code, usd_rate in self.BASE_RATES.items():
            if code == base:
                continue
            seeded = random.Random(f"{base}{code}{on_date}")
            factor = seeded.uniform(1 - self.variation, 1 + self.variation)
            rates[code] = round(usd_rate / base_rate * factor, 6)

        return RateResult.from_rates(base, rates, on_date)
