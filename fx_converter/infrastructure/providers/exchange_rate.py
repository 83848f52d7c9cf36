from datetime import datetime, timezone

from fx_converter.domain.exceptions import CurrencyConverterError
from fx_converter.domain.models import AmountConversion, ApiUsage, RateResult, today_iso
from fx_converter.infrastructure.providers.base import HttpExchangeRateProvider


class ExchangeRateApiProvider(HttpExchangeRateProvider):
    """
    ExchangeRate-API provider.
    The API key is part of the URL path rather than a query parameter.
    """

    name = "ExchangeRate-API"
    default_base_url = "https://v6.exchangerate-api.com/v6"

    @staticmethod
    def _error_message(data: dict, default: str) -> str:
        # Error format: {"result": "error", "error-type": "invalid-key"}
        return data.get("error-type") or default

    def _fetch_latest(self, base: str) -> RateResult:
        # Format: https://v6.exchangerate-api.com/v6/YOUR-API-KEY/latest/USD
        data = self._get_json(f"/{self.api_key}/latest/{base}")

        if data.get("result") != "success":
            return RateResult.failure(
                base, self._error_message(data, "Failed to fetch exchange rates from ExchangeRate-API")
            )

        updated = data.get("time_last_update_unix")
        quote_date = datetime.fromtimestamp(updated, tz=timezone.utc).date() if updated else None
        return RateResult.from_rates(base, data.get("conversion_rates") or {}, quote_date)

    def get_supported_currencies(self) -> list[str]:
        def fetch() -> list[str]:
            data = self._get_json(f"/{self.api_key}/codes")
            if data.get("result") != "success":
                raise CurrencyConverterError(self._error_message(data, "Failed to fetch supported currencies"))
            # Response format: {"supported_codes": [["AED", "UAE Dirham"], ...]}
            return [code for code, _name in data.get("supported_codes") or []]

        return self._list_currencies(fetch)

    def convert_amount(self, amount, from_currency: str, to_currency: str) -> AmountConversion:
        """
        Convert one amount through the pair endpoint.

        Raises:
            ValidationError: bad amount or currency code
            CurrencyConverterError: the request or the vendor call failed
        """
        self._require_amount(amount)
        source = self._require_code(from_currency)
        target = self._require_code(to_currency)

        def fetch() -> AmountConversion:
            # Format: https://v6.exchangerate-api.com/v6/YOUR-API-KEY/pair/EUR/GBP/100
            data = self._get_json(f"/{self.api_key}/pair/{source}/{target}/{amount}")
            if data.get("result") != "success":
                raise CurrencyConverterError(self._error_message(data, "Currency conversion failed"))

            updated = data.get("time_last_update_unix")
            quote_date = datetime.fromtimestamp(updated, tz=timezone.utc).date().isoformat() if updated else today_iso()
            return AmountConversion(
                amount=float(amount),
                from_currency=data.get("base_code") or source,
                to_currency=data.get("target_code") or target,
                rate=float(data["conversion_rate"]),
                result=float(data["conversion_result"]),
                date=quote_date,
            )

        return self._call("ExchangeRate-API conversion error", fetch)

    def get_usage(self) -> ApiUsage:
        """Request quota of the API key from the /quota endpoint."""
        def fetch() -> ApiUsage:
            # Response format: {"result": "success", "plan_quota": 30000, "requests_remaining": 25623, "refresh_day_of_month": 17}
            data = self._get_json(f"/{self.api_key}/quota")
            if data.get("result") != "success":
                raise CurrencyConverterError(self._error_message(data, "Failed to fetch usage data"))
            return ApiUsage(
                plan_quota=int(data["plan_quota"]),
                requests_remaining=int(data["requests_remaining"]),
                refresh_day_of_month=int(data["refresh_day_of_month"]),
            )

        return self._call("ExchangeRate-API usage error", fetch)
