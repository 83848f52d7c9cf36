"""
Pure domain entities (POPOs).
No dependency on HTTP clients or cache backends.
"""

import json
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Generic, Optional, TypeVar

from fx_converter.domain.exceptions import CacheError

RateMap = dict[str, float]

CURRENCY_CODE_PATTERN = re.compile(r"^[A-Z]{3}$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def normalize_currency_code(code: str) -> str:
    return code.strip().upper()


def is_valid_currency_code(code) -> bool:
    """True when ``code`` is a 3-letter code once trimmed and uppercased."""
    if not isinstance(code, str):
        return False
    return CURRENCY_CODE_PATTERN.match(normalize_currency_code(code)) is not None


def is_valid_date(value) -> bool:
    return isinstance(value, str) and DATE_PATTERN.match(value) is not None


def is_valid_amount(amount) -> bool:
    """Non-negative int, float or Decimal; bools and NaN are rejected."""
    if isinstance(amount, bool) or not isinstance(amount, (int, float, Decimal)):
        return False
    value = float(amount)
    return not math.isnan(value) and value >= 0


def today_iso() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class RateResult:
    """Normalized response of a rate fetch, successful or not."""

    success: bool
    base: str
    date: str
    rates: RateMap = field(default_factory=dict)
    error: Optional[str] = None

    @classmethod
    def from_rates(cls, base: str, rates: RateMap, on_date: str | date | None = None) -> "RateResult":
        base = normalize_currency_code(base)
        normalized = {code.upper(): float(value) for code, value in rates.items()}
        normalized[base] = 1.0
        if isinstance(on_date, date):
            on_date = on_date.isoformat()
        return cls(success=True, base=base, date=on_date or today_iso(), rates=normalized)

    @classmethod
    def failure(cls, base: str, error: str) -> "RateResult":
        base = base.strip().upper() if isinstance(base, str) else str(base)
        return cls(success=False, base=base, date=today_iso(), rates={}, error=error)


@dataclass(frozen=True)
class ConversionResult:
    amount: float
    from_currency: str
    to_currency: str
    converted_amount: float
    rate: float
    timestamp: str
    cached: bool = False
    error: Optional[str] = None

    @property
    def skipped(self) -> bool:
        """True for a batch placeholder produced by a failed conversion."""
        return self.converted_amount == 0 and self.rate == 0


@dataclass(frozen=True)
class CacheEntry:
    """
    A bulk rate map as stored in the cache backend.

    The JSON field names are fixed so that entries written by other clients
    sharing the same backend stay readable.
    """

    rates: RateMap
    timestamp: int
    base_currency: str
    provider: str

    def to_json(self) -> str:
        return json.dumps({
            "rates": self.rates,
            "timestamp": self.timestamp,
            "baseCurrency": self.base_currency,
            "provider": self.provider,
        })

    @classmethod
    def from_json(cls, raw: str) -> "CacheEntry":
        """Raises ValueError when the payload is not a complete entry."""
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("cache entry is not an object")
        rates = data.get("rates")
        timestamp = data.get("timestamp")
        base_currency = data.get("baseCurrency")
        provider = data.get("provider")
        if not isinstance(rates, dict) or not isinstance(timestamp, (int, float)):
            raise ValueError("cache entry is missing rates or timestamp")
        if not base_currency or not provider:
            raise ValueError("cache entry is missing its identity")
        return cls(
            rates={code: float(value) for code, value in rates.items()},
            timestamp=int(timestamp),
            base_currency=base_currency,
            provider=provider,
        )


@dataclass(frozen=True)
class AmountConversion:
    """A single amount converted by the provider itself."""

    amount: float
    from_currency: str
    to_currency: str
    rate: float
    result: float
    date: str
    historical: bool = False


@dataclass(frozen=True)
class TimeSeries:
    """Daily rate maps for one base currency, keyed by YYYY-MM-DD."""

    base: str
    start_date: str
    end_date: str
    rates: dict[str, RateMap] = field(default_factory=dict)


@dataclass(frozen=True)
class CurrencyChange:
    start_rate: float
    end_rate: float
    change: float
    change_pct: float


@dataclass(frozen=True)
class ApiUsage:
    plan_quota: int
    requests_remaining: int
    refresh_day_of_month: int


@dataclass(frozen=True)
class CacheStats:
    total_keys: int = 0
    providers: frozenset[str] = frozenset()
    currencies: frozenset[str] = frozenset()
    oldest_timestamp: Optional[int] = None
    newest_timestamp: Optional[int] = None


T = TypeVar("T")


@dataclass(frozen=True)
class CacheResult(Generic[T]):
    """Outcome of a cache operation: a value, or the backend error that prevented it."""

    value: Optional[T] = None
    error: Optional[CacheError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "CacheResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: CacheError) -> "CacheResult[T]":
        return cls(error=error)
