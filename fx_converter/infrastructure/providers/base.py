"""
Shared plumbing for HTTP-backed rate providers.

Subclasses set ``name`` and ``default_base_url`` and implement
``_fetch_latest(base)``; this class takes care of credential checks, input
validation and turning transport failures into failed RateResults.
"""

import logging
from abc import abstractmethod
from typing import Any, Callable, TypeVar

import requests

from fx_converter.domain.exceptions import (
    CurrencyConverterError,
    InvalidAmountError,
    InvalidCurrencyCodeError,
    ProviderConfigurationError,
    ValidationError,
)
from fx_converter.domain.interfaces import BaseExchangeRateProvider
from fx_converter.domain.models import (
    RateResult,
    is_valid_amount,
    is_valid_currency_code,
    is_valid_date,
    normalize_currency_code,
)
from fx_converter.infrastructure.http import build_session

logger = logging.getLogger(__name__)

T = TypeVar("T")


class HttpExchangeRateProvider(BaseExchangeRateProvider):
    default_base_url: str = ""
    https_base_url: str | None = None
    default_timeout: float = 5.0

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        retries: int = 3,
        backoff_factor: float = 1.0,
        use_https: bool = False,
        session: requests.Session | None = None,
    ):
        self.api_key = api_key
        if base_url:
            self.base_url = base_url.rstrip("/")
        elif use_https and self.https_base_url:
            self.base_url = self.https_base_url
        else:
            self.base_url = self.default_base_url
        self.timeout = timeout or self.default_timeout
        self.retries = retries
        self.session = session or build_session(retries, backoff_factor)

        if not self.is_config_valid():
            raise ProviderConfigurationError(f"{self.name} API key is required")

    def __repr__(self):
        return f"{self.__class__.__name__}(base_url={self.base_url!r})"

    def is_config_valid(self) -> bool:
        return bool(self.api_key)

    def _get_json(self, path: str, params: dict | None = None) -> Any:
        response = self.session.get(f"{self.base_url}{path}", params=params, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    @abstractmethod
    def _fetch_latest(self, base: str) -> RateResult:
        pass

    def fetch_rates(self, base_currency: str) -> RateResult:
        if not is_valid_currency_code(base_currency):
            return RateResult.failure(base_currency, f"Invalid base currency code: {base_currency}")
        base = normalize_currency_code(base_currency)
        return self._guarded(base, "API", lambda: self._fetch_latest(base))

    def _fetch_for_date(self, on_date: str, base_currency: str, fetch: Callable[[str], RateResult]) -> RateResult:
        """Validate a historical request and run ``fetch(base)`` under the same guard."""
        if not is_valid_currency_code(base_currency):
            return RateResult.failure(base_currency, f"Invalid base currency code: {base_currency}")
        base = normalize_currency_code(base_currency)
        if not is_valid_date(on_date):
            return RateResult.failure(base, "Date must be in YYYY-MM-DD format")
        return self._guarded(base, "historical API", lambda: fetch(base))

    def _guarded(self, base: str, label: str, func: Callable[[], RateResult]) -> RateResult:
        prefix = f"{self.name} {label} error"
        try:
            return func()
        except requests.exceptions.Timeout:
            logger.warning("Timeout calling %s for %s", self.name, base)
            return RateResult.failure(base, f"{prefix}: request timed out")
        except requests.exceptions.HTTPError as e:
            logger.warning("HTTP error from %s: %s", self.name, e)
            return RateResult.failure(base, f"{prefix}: {e}")
        except requests.exceptions.JSONDecodeError as e:
            logger.warning("Invalid response from %s: %s", self.name, e)
            return RateResult.failure(base, f"{prefix}: invalid response ({e})")
        except requests.exceptions.RequestException as e:
            logger.warning("Request to %s failed: %s", self.name, e)
            return RateResult.failure(base, f"{prefix}: {e}")
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            logger.warning("Invalid response from %s: %s", self.name, e)
            return RateResult.failure(base, f"{prefix}: invalid response ({e})")
        except Exception as e:
            logger.exception("Unexpected error calling %s", self.name)
            return RateResult.failure(base, f"{prefix}: {e}")

    def _call(self, failure: str, fetch: Callable[[], T]) -> T:
        """Run ``fetch``, re-raising request and payload errors as CurrencyConverterError."""
        try:
            return fetch()
        except (
            CurrencyConverterError,
            requests.exceptions.RequestException,
            KeyError,
            ValueError,
            TypeError,
            AttributeError,
        ) as e:
            raise CurrencyConverterError(f"{failure}: {e}") from e

    def _list_currencies(self, fetch: Callable[[], list[str]]) -> list[str]:
        return sorted(self._call(f"Failed to get supported currencies from {self.name}", fetch))

    @staticmethod
    def _require_code(code) -> str:
        if not is_valid_currency_code(code):
            raise InvalidCurrencyCodeError(code)
        return normalize_currency_code(code)

    @staticmethod
    def _require_amount(amount) -> None:
        if not is_valid_amount(amount):
            raise InvalidAmountError(amount)

    @staticmethod
    def _require_date_range(start_date: str, end_date: str) -> None:
        if not is_valid_date(start_date) or not is_valid_date(end_date):
            raise ValidationError("Dates must be in YYYY-MM-DD format")
        if start_date > end_date:
            raise ValidationError(f"Start date {start_date} is after end date {end_date}")
