from abc import ABC, abstractmethod
from typing import Optional, Protocol, runtime_checkable

from fx_converter.domain.models import AmountConversion, ApiUsage, CurrencyChange, RateResult, TimeSeries


class BaseExchangeRateProvider(ABC):
    """
    A vendor integration that can fetch a full rate map for a base currency.

    ``name`` is the provider identity: it namespaces cached rate maps, so two
    providers must never share one.
    """

    name: str = ""

    @abstractmethod
    def is_config_valid(self) -> bool:
        pass

    @abstractmethod
    def fetch_rates(self, base_currency: str) -> RateResult:
        """Return a RateResult for ``base_currency``. Must not raise."""
        pass


@runtime_checkable
class SupportsCurrencyList(Protocol):
    def get_supported_currencies(self) -> list[str]: ...


@runtime_checkable
class SupportsHistoricalRates(Protocol):
    def get_historical_rates(self, on_date: str, base_currency: str = "USD") -> RateResult: ...


@runtime_checkable
class SupportsAmountConversion(Protocol):
    def convert_amount(self, amount, from_currency: str, to_currency: str) -> AmountConversion: ...


@runtime_checkable
class SupportsTimeSeries(Protocol):
    def get_time_series(
        self,
        start_date: str,
        end_date: str,
        base_currency: str = "USD",
        symbols: Optional[list[str]] = None,
    ) -> TimeSeries: ...


@runtime_checkable
class SupportsCurrencyChange(Protocol):
    def get_currency_change(
        self,
        start_date: str,
        end_date: str,
        base_currency: str = "USD",
        symbols: Optional[list[str]] = None,
    ) -> dict[str, CurrencyChange]: ...


@runtime_checkable
class SupportsUsage(Protocol):
    def get_usage(self) -> ApiUsage: ...


@runtime_checkable
class KeyValueBackend(Protocol):
    """Minimal key-value store the caches are built on."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str, ttl: int) -> None: ...

    def delete(self, *keys: str) -> None: ...

    def exists(self, key: str) -> bool: ...

    def ttl(self, key: str) -> int: ...

    def keys(self, pattern: str) -> list[str]: ...
