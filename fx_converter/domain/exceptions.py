"""
Exception hierarchy for the converter.
"""


class CurrencyConverterError(Exception):
    """Base class for every error raised by this library."""


class ValidationError(CurrencyConverterError, ValueError):
    """Input rejected before any I/O took place."""


class InvalidCurrencyCodeError(ValidationError):
    def __init__(self, code):
        self.code = code
        super().__init__(f"Invalid currency code: {code!r}")


class InvalidAmountError(ValidationError):
    def __init__(self, amount):
        self.amount = amount
        super().__init__(f"Amount must be a non-negative number, got {amount!r}")


class ProviderConfigurationError(CurrencyConverterError):
    """A provider was constructed without the credentials it needs."""


class RatesUnavailableError(CurrencyConverterError):
    """No usable rate could be obtained for a currency pair."""

    def __init__(self, from_currency: str, to_currency: str | None = None, reason: str | None = None):
        self.from_currency = from_currency
        self.to_currency = to_currency
        self.reason = reason
        if to_currency:
            message = f"Exchange rates not available for {from_currency} to {to_currency}"
        else:
            message = f"Exchange rates not available for base {from_currency}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class CacheError(CurrencyConverterError):
    """A cache backend operation failed. Never raised past the cache layer."""
