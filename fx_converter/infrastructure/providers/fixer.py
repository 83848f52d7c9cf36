from fx_converter.domain.exceptions import CurrencyConverterError
from fx_converter.domain.models import RateResult
from fx_converter.infrastructure.providers.base import HttpExchangeRateProvider


class FixerProvider(HttpExchangeRateProvider):
    """
    Fixer.io provider.
    Uses /latest for current rates and /{date} for historical ones.
    """

    name = "Fixer.io"
    default_base_url = "http://data.fixer.io/api"
    https_base_url = "https://data.fixer.io/api"

    def _parse_rates(self, data: dict, base: str, default_error: str, on_date: str | None = None) -> RateResult:
        # Response format: {"success": true, "base": "USD", "date": "2024-05-21", "rates": {"EUR": 0.92}}
        if not data.get("success"):
            error = data.get("error") or {}
            return RateResult.failure(base, error.get("info") or default_error)
        return RateResult.from_rates(base, data.get("rates") or {}, data.get("date") or on_date)

    def _fetch_latest(self, base: str) -> RateResult:
        data = self._get_json("/latest", {"access_key": self.api_key, "base": base})
        return self._parse_rates(data, base, "Failed to fetch exchange rates from Fixer.io")

    def get_historical_rates(self, on_date: str, base_currency: str = "USD") -> RateResult:
        def fetch(base: str) -> RateResult:
            data = self._get_json(f"/{on_date}", {"access_key": self.api_key, "base": base})
            return self._parse_rates(data, base, "Failed to fetch historical rates from Fixer.io", on_date)

        return self._fetch_for_date(on_date, base_currency, fetch)

    def get_supported_currencies(self) -> list[str]:
        def fetch() -> list[str]:
            data = self._get_json("/symbols", {"access_key": self.api_key})
            if not data.get("success") or not data.get("symbols"):
                error = data.get("error") or {}
                raise CurrencyConverterError(error.get("info") or "Failed to fetch supported currencies")
            return list(data["symbols"])

        return self._list_currencies(fetch)
