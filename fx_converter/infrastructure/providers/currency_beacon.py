from fx_converter.domain.exceptions import CurrencyConverterError
from fx_converter.domain.models import RateResult
from fx_converter.infrastructure.providers.base import HttpExchangeRateProvider


class CurrencyBeaconProvider(HttpExchangeRateProvider):
    """
    CurrencyBeacon API provider.
    Uses /latest for current rates and /historical for a specific date.
    """

    name = "CurrencyBeacon"
    default_base_url = "https://api.currencybeacon.com/v1"

    def _parse_response(self, data: dict, base: str, default_error: str, on_date: str | None = None) -> RateResult:
        # Response format: {"meta": {"code": 200}, "response": {"date": "2024-05-21", "base": "USD", "rates": {"EUR": 0.85}}}
        meta = data.get("meta") or {}
        if meta.get("code", 200) != 200 or "response" not in data:
            return RateResult.failure(base, meta.get("error_detail") or default_error)

        response = data["response"]
        quote_date = on_date or (response.get("date") or "")[:10] or None
        return RateResult.from_rates(base, response["rates"], quote_date)

    def _fetch_latest(self, base: str) -> RateResult:
        data = self._get_json("/latest", {"api_key": self.api_key, "base": base})
        return self._parse_response(data, base, "Failed to fetch exchange rates from CurrencyBeacon")

    def get_historical_rates(self, on_date: str, base_currency: str = "USD") -> RateResult:
        def fetch(base: str) -> RateResult:
            data = self._get_json("/historical", {"api_key": self.api_key, "base": base, "date": on_date})
            return self._parse_response(data, base, "Failed to fetch historical rates from CurrencyBeacon", on_date)

        return self._fetch_for_date(on_date, base_currency, fetch)

    def get_supported_currencies(self) -> list[str]:
        def fetch() -> list[str]:
            data = self._get_json("/currencies", {"api_key": self.api_key, "type": "fiat"})
            meta = data.get("meta") or {}
            if meta.get("code", 200) != 200:
                raise CurrencyConverterError(meta.get("error_detail") or "Failed to fetch supported currencies")
            return [item["short_code"] for item in data["response"]]

        return self._list_currencies(fetch)
