from datetime import datetime, timezone

from fx_converter.domain.exceptions import CurrencyConverterError
from fx_converter.domain.models import AmountConversion, CurrencyChange, RateResult, TimeSeries
from fx_converter.infrastructure.providers.base import HttpExchangeRateProvider


class CurrencyLayerProvider(HttpExchangeRateProvider):
    """
    CurrencyLayer provider.
    Quotes come back keyed by currency pair (e.g. "USDEUR") and are flattened
    into a plain rate map for the source currency.
    """

    name = "CurrencyLayer"
    default_base_url = "http://apilayer.net/api"
    https_base_url = "https://apilayer.net/api"

    @staticmethod
    def _quotes_to_rates(quotes: dict, base: str) -> dict[str, float]:
        return {
            pair[len(base):]: rate
            for pair, rate in quotes.items()
            if pair.startswith(base) and len(pair) == len(base) + 3
        }

    def _parse_quotes(self, data: dict, base: str, default_error: str, on_date: str | None = None) -> RateResult:
        # Response format: {"success": true, "timestamp": 1716249600, "source": "USD", "quotes": {"USDEUR": 0.92}}
        if not data.get("success"):
            error = data.get("error") or {}
            return RateResult.failure(base, error.get("info") or default_error)

        rates = self._quotes_to_rates(data.get("quotes") or {}, base)
        quote_date = data.get("date") or on_date
        if not quote_date and data.get("timestamp"):
            quote_date = datetime.fromtimestamp(data["timestamp"], tz=timezone.utc).date()
        return RateResult.from_rates(base, rates, quote_date)

    def _fetch_latest(self, base: str) -> RateResult:
        data = self._get_json("/live", {"access_key": self.api_key, "source": base, "format": 1})
        return self._parse_quotes(data, base, "Failed to fetch exchange rates from CurrencyLayer")

    def get_historical_rates(self, on_date: str, base_currency: str = "USD") -> RateResult:
        def fetch(base: str) -> RateResult:
            data = self._get_json(
                "/historical",
                {"access_key": self.api_key, "date": on_date, "source": base, "format": 1},
            )
            return self._parse_quotes(data, base, "Failed to fetch historical rates from CurrencyLayer", on_date)

        return self._fetch_for_date(on_date, base_currency, fetch)

    def get_supported_currencies(self) -> list[str]:
        def fetch() -> list[str]:
            data = self._get_json("/list", {"access_key": self.api_key})
            if not data.get("success"):
                error = data.get("error") or {}
                raise CurrencyConverterError(error.get("info") or "Failed to fetch supported currencies")
            return list(data.get("currencies") or {})

        return self._list_currencies(fetch)

    def convert_amount(self, amount, from_currency: str, to_currency: str, on_date: str | None = None) -> AmountConversion:
        """
        Convert one amount through the /convert endpoint, optionally at a
        past date's rate.

        Raises:
            ValidationError: bad amount, currency code or date
            CurrencyConverterError: the request or the vendor call failed
        """
        self._require_amount(amount)
        source = self._require_code(from_currency)
        target = self._require_code(to_currency)
        params = {"access_key": self.api_key, "from": source, "to": target, "amount": amount, "format": 1}
        if on_date is not None:
            self._require_date_range(on_date, on_date)
            params["date"] = on_date

        def fetch() -> AmountConversion:
            # Response format: {"success": true, "query": {"from": "USD", "to": "GBP", "amount": 10},
            #                   "info": {"timestamp": 1430068515, "quote": 0.658443}, "result": 6.58443}
            data = self._get_json("/convert", params)
            if not data.get("success"):
                error = data.get("error") or {}
                raise CurrencyConverterError(error.get("info") or "Currency conversion failed")

            info = data["info"]
            quote_date = data.get("date") or datetime.fromtimestamp(info["timestamp"], tz=timezone.utc).date().isoformat()
            return AmountConversion(
                amount=float(data["query"]["amount"]),
                from_currency=data["query"]["from"],
                to_currency=data["query"]["to"],
                rate=float(info["quote"]),
                result=float(data["result"]),
                date=quote_date,
                historical=bool(data.get("historical")),
            )

        return self._call("CurrencyLayer conversion error", fetch)

    def _range_params(self, start_date: str, end_date: str, base: str, symbols: list[str] | None) -> dict:
        params = {
            "access_key": self.api_key,
            "start_date": start_date,
            "end_date": end_date,
            "source": base,
            "format": 1,
        }
        if symbols:
            params["currencies"] = ",".join(self._require_code(code) for code in symbols)
        return params

    def get_time_series(
        self,
        start_date: str,
        end_date: str,
        base_currency: str = "USD",
        symbols: list[str] | None = None,
    ) -> TimeSeries:
        """Daily rates between two dates from /timeframe (Professional plan and above)."""
        base = self._require_code(base_currency)
        self._require_date_range(start_date, end_date)
        params = self._range_params(start_date, end_date, base, symbols)

        def fetch() -> TimeSeries:
            data = self._get_json("/timeframe", params)
            if not data.get("success"):
                error = data.get("error") or {}
                raise CurrencyConverterError(error.get("info") or "Failed to fetch timeframe data")

            rates = {}
            for day, quotes in (data.get("quotes") or {}).items():
                day_rates = {code: float(rate) for code, rate in self._quotes_to_rates(quotes, base).items()}
                day_rates[base] = 1.0
                rates[day] = day_rates

            return TimeSeries(
                base=base,
                start_date=data.get("start_date") or start_date,
                end_date=data.get("end_date") or end_date,
                rates=rates,
            )

        return self._call("CurrencyLayer timeframe error", fetch)

    def get_currency_change(
        self,
        start_date: str,
        end_date: str,
        base_currency: str = "USD",
        symbols: list[str] | None = None,
    ) -> dict[str, CurrencyChange]:
        """Start/end rates and their change per currency from /change."""
        base = self._require_code(base_currency)
        self._require_date_range(start_date, end_date)
        params = self._range_params(start_date, end_date, base, symbols)

        def fetch() -> dict[str, CurrencyChange]:
            # Quote format: {"USDAUD": {"start_rate": 1.28, "end_rate": 1.10, "change": -0.17, "change_pct": -13.47}}
            data = self._get_json("/change", params)
            if not data.get("success"):
                error = data.get("error") or {}
                raise CurrencyConverterError(error.get("info") or "Failed to fetch currency change data")

            return {
                code: CurrencyChange(
                    start_rate=float(quote["start_rate"]),
                    end_rate=float(quote["end_rate"]),
                    change=float(quote["change"]),
                    change_pct=float(quote["change_pct"]),
                )
                for code, quote in self._quotes_to_rates(data.get("quotes") or {}, base).items()
            }

        return self._call("CurrencyLayer change error", fetch)
