import json
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from fx_converter.application.dto import ConversionRequestDTO
from fx_converter.domain.exceptions import (
    CurrencyConverterError,
    InvalidAmountError,
    InvalidCurrencyCodeError,
    RatesUnavailableError,
)
from fx_converter.domain.models import CacheStats
from fx_converter.domain.services import CurrencyConverter
from fx_converter.infrastructure.providers.mock import MockProvider


@pytest.fixture
def converter(usd_eur_provider):
    return CurrencyConverter(usd_eur_provider)


@pytest.fixture
def cached_converter(usd_eur_provider, backend):
    return CurrencyConverter(usd_eur_provider, cache_backend=backend)


class TestConvertCurrency:

    def test_usd_to_eur(self, converter):
        result = converter.convert_currency(100, "USD", "EUR")

        assert result.converted_amount == 90.00
        assert result.rate == 0.9
        assert result.from_currency == "USD"
        assert result.to_currency == "EUR"
        assert result.amount == 100
        assert result.cached is False
        assert result.error is None

    def test_cross_rate_refetches_with_source_as_base(self, converter, usd_eur_provider):
        """EUR -> GBP uses the map fetched with EUR as the base currency."""
        result = converter.convert_currency(100, "EUR", "GBP")

        assert result.converted_amount == pytest.approx(88.89)
        assert result.rate == pytest.approx(0.888889)
        assert usd_eur_provider.calls == ["EUR"]

    def test_codes_are_normalized(self, converter):
        result = converter.convert_currency(10, " usd", "eur ")

        assert result.from_currency == "USD"
        assert result.to_currency == "EUR"
        assert result.converted_amount == 9.0

    def test_amount_rounds_to_two_places_and_rate_to_six(self, make_provider):
        provider = make_provider({"USD": {"EUR": 0.123456789}})
        converter = CurrencyConverter(provider)

        result = converter.convert_currency(10, "USD", "EUR")

        assert result.converted_amount == 1.23
        assert result.rate == 0.123457

    def test_decimal_amount(self, converter):
        result = converter.convert_currency(Decimal("100"), "USD", "EUR")

        assert result.converted_amount == 90.0
        assert result.amount == Decimal("100")

    @pytest.mark.parametrize("code", ["USD", "EUR", "XXX", "jpy"])
    def test_same_currency_never_touches_provider(self, exploding_provider, backend, code):
        """Identity conversion returns the amount unchanged with rate 1."""
        converter = CurrencyConverter(exploding_provider, cache_backend=backend)

        result = converter.convert_currency(42.5, code, code)

        assert result.converted_amount == 42.5
        assert result.rate == 1
        assert result.cached is False
        assert backend.keys("*") == []

    def test_negative_amount_is_rejected_before_provider(self, exploding_provider):
        converter = CurrencyConverter(exploding_provider)

        with pytest.raises(InvalidAmountError):
            converter.convert_currency(-5, "USD", "EUR")

    @pytest.mark.parametrize("amount", ["100", None, float("nan"), True])
    def test_non_numeric_amount_is_rejected(self, exploding_provider, amount):
        converter = CurrencyConverter(exploding_provider)

        with pytest.raises(InvalidAmountError):
            converter.convert_currency(amount, "USD", "EUR")

    @pytest.mark.parametrize("from_code, to_code", [("US", "EUR"), ("USD", "EURO"), ("U$D", "EUR"), ("", "EUR")])
    def test_invalid_codes_are_rejected(self, exploding_provider, from_code, to_code):
        converter = CurrencyConverter(exploding_provider)

        with pytest.raises(InvalidCurrencyCodeError):
            converter.convert_currency(100, from_code, to_code)

    def test_validation_errors_are_value_errors(self, exploding_provider):
        converter = CurrencyConverter(exploding_provider)

        with pytest.raises(ValueError):
            converter.convert_currency(-1, "USD", "EUR")

    def test_missing_target_rate(self, converter):
        with pytest.raises(RatesUnavailableError) as exc_info:
            converter.convert_currency(100, "USD", "JPY")

        assert "USD to JPY" in str(exc_info.value)

    def test_missing_self_rate_means_malformed_map(self):
        """A map without the base's own rate cannot be used."""
        provider = MagicMock()
        provider.name = "Broken"
        provider.fetch_rates.return_value = MagicMock(success=True, rates={"EUR": 0.9}, error=None)
        converter = CurrencyConverter(provider)

        with pytest.raises(RatesUnavailableError):
            converter.convert_currency(100, "USD", "EUR")

    def test_provider_failure_names_the_pair(self, converter):
        with pytest.raises(RatesUnavailableError) as exc_info:
            converter.convert_currency(100, "CHF", "EUR")

        message = str(exc_info.value)
        assert "CHF to EUR" in message
        assert "Unsupported base currency CHF" in message

    def test_provider_exception_becomes_rates_unavailable(self):
        provider = MagicMock()
        provider.name = "Flaky"
        provider.fetch_rates.side_effect = ConnectionError("connection refused")
        converter = CurrencyConverter(provider)

        with pytest.raises(RatesUnavailableError) as exc_info:
            converter.convert_currency(1, "USD", "EUR")

        assert "connection refused" in str(exc_info.value)


class TestConverterCache:

    def test_second_conversion_is_served_from_converter_cache(self, cached_converter, usd_eur_provider):
        first = cached_converter.convert_currency(100, "USD", "EUR")
        second = cached_converter.convert_currency(50, "USD", "GBP")

        assert first.cached is False
        assert second.cached is True
        assert second.converted_amount == 40.0
        assert usd_eur_provider.calls == ["USD"]

    def test_both_cache_layers_are_populated(self, cached_converter, backend):
        cached_converter.convert_currency(100, "USD", "EUR")

        assert json.loads(backend.get("currency_rate:rates:Stub:USD")) == {"USD": 1.0, "EUR": 0.9, "GBP": 0.8}
        assert backend.exists("exchange_rates:Stub:USD")
        assert cached_converter.is_cached("usd")
        assert cached_converter.is_provider_rates_cached("USD")

    def test_converter_and_bulk_cache_ttls(self, cached_converter):
        cached_converter.convert_currency(100, "USD", "EUR")

        assert 86000 < cached_converter.get_cache_ttl("USD") <= 86400
        assert 3500 < cached_converter.get_provider_rates_cache_ttl("USD") <= 3600

    def test_custom_ttl_applies_to_both_caches(self, usd_eur_provider, backend):
        converter = CurrencyConverter(usd_eur_provider, cache_backend=backend, cache_ttl=60)

        converter.convert_currency(1, "USD", "EUR")

        assert converter.get_cache_ttl("USD") <= 60
        assert converter.get_provider_rates_cache_ttl("USD") <= 60

    def test_bulk_cache_serves_after_converter_cache_is_cleared(self, cached_converter, usd_eur_provider):
        cached_converter.convert_currency(100, "USD", "EUR")
        cached_converter.clear_cache("USD")

        result = cached_converter.convert_currency(100, "USD", "EUR")

        assert result.cached is False
        assert usd_eur_provider.calls == ["USD"]

    def test_clear_cache_without_base_clears_every_rate_map(self, cached_converter):
        cached_converter.convert_currency(1, "USD", "EUR")
        cached_converter.convert_currency(1, "EUR", "GBP")

        cached_converter.clear_cache()

        assert not cached_converter.is_cached("USD")
        assert not cached_converter.is_cached("EUR")

    def test_unreadable_converter_cache_entry_is_discarded(self, cached_converter, backend):
        backend.set("currency_rate:rates:Stub:USD", "{not json", 100)

        result = cached_converter.convert_currency(100, "USD", "EUR")

        assert result.cached is False
        assert result.converted_amount == 90.0

    def test_cache_outage_degrades_to_fresh_fetch(self, usd_eur_provider):
        """A backend that always fails never breaks a conversion."""
        broken = MagicMock()
        for method in ("get", "set", "delete", "exists", "ttl", "keys"):
            getattr(broken, method).side_effect = ConnectionError("cache down")
        converter = CurrencyConverter(usd_eur_provider, cache_backend=broken)

        first = converter.convert_currency(100, "USD", "EUR")
        second = converter.convert_currency(100, "USD", "EUR")

        assert first.converted_amount == second.converted_amount == 90.0
        assert second.cached is False
        assert usd_eur_provider.calls == ["USD", "USD"]
        assert converter.is_cached("USD") is False
        assert converter.get_cache_ttl("USD") == -1
        assert converter.get_cache_stats() == CacheStats()

    def test_without_cache_backend(self, converter):
        assert converter.is_cached("USD") is False
        assert converter.get_cache_ttl("USD") == -1
        assert converter.get_cache_stats() is None
        assert converter.is_provider_rates_cached() is False
        assert converter.get_provider_rates_cache_ttl() == -1
        converter.clear_cache()
        converter.clear_provider_cache()
        converter.clear_all_rates_cache()

    def test_cache_stats(self, cached_converter):
        cached_converter.convert_currency(1, "USD", "EUR")
        cached_converter.convert_currency(1, "EUR", "GBP")

        stats = cached_converter.get_cache_stats()

        assert stats.total_keys == 2
        assert stats.providers == {"Stub"}
        assert stats.currencies == {"USD", "EUR"}
        assert stats.oldest_timestamp <= stats.newest_timestamp


class TestExchangeRates:

    def test_get_exchange_rates(self, converter):
        rates = converter.get_exchange_rates("usd")

        assert rates == {"USD": 1.0, "EUR": 0.9, "GBP": 0.8}

    def test_get_exchange_rates_returns_a_copy(self, cached_converter):
        rates = cached_converter.get_exchange_rates("USD")
        rates["EUR"] = 123.0

        assert cached_converter.get_exchange_rates("USD")["EUR"] == 0.9

    def test_get_exchange_rates_invalid_base(self, converter):
        with pytest.raises(InvalidCurrencyCodeError):
            converter.get_exchange_rates("DOLLAR")

    def test_get_exchange_rates_provider_failure(self, converter):
        with pytest.raises(RatesUnavailableError):
            converter.get_exchange_rates("CHF")

    def test_get_exchange_rate_divides_within_base_map(self, converter):
        """With R[B] == 1 the pair rate is just R[C]."""
        assert converter.get_exchange_rate("USD", "GBP") == 0.8

    def test_get_exchange_rate_same_currency(self, exploding_provider):
        converter = CurrencyConverter(exploding_provider)

        assert converter.get_exchange_rate("EUR", "eur") == 1.0

    def test_get_exchange_rate_missing_target(self, converter):
        with pytest.raises(RatesUnavailableError):
            converter.get_exchange_rate("USD", "JPY")

    def test_inverse_rates_are_reciprocal(self, converter):
        """rate(B -> A) is 1 / rate(A -> B), up to 6-decimal rounding."""
        forward = converter.get_exchange_rate("EUR", "USD")
        backward = converter.get_exchange_rate("USD", "EUR")

        assert backward == pytest.approx(1 / forward, rel=1e-5)


class TestConvertMultiple:

    def test_partial_failure_yields_placeholder(self, converter):
        results = converter.convert_multiple([
            {"amount": 100, "from": "USD", "to": "EUR"},
            {"amount": 100, "from": "XXX", "to": "YYY"},
            {"amount": 50, "from": "GBP", "to": "JPY"},
        ])

        assert len(results) == 3
        assert results[0].converted_amount == 90.0
        assert results[1].converted_amount == 0
        assert results[1].rate == 0
        assert results[1].cached is False
        assert results[1].skipped
        assert "XXX to YYY" in results[1].error
        assert results[2].converted_amount == 9525.0
        assert results[2].rate == 190.5

    def test_order_is_preserved(self, converter):
        results = converter.convert_multiple([
            ConversionRequestDTO(1, "EUR", "GBP"),
            ConversionRequestDTO(1, "USD", "EUR"),
            ConversionRequestDTO(1, "USD", "USD"),
        ])

        assert [(r.from_currency, r.to_currency) for r in results] == [
            ("EUR", "GBP"), ("USD", "EUR"), ("USD", "USD"),
        ]

    def test_validation_failures_become_placeholders(self, converter):
        results = converter.convert_multiple([
            {"amount": -1, "from": "usd", "to": "eur"},
            {"amount": 1, "from": "US", "to": "EUR"},
        ])

        assert [r.skipped for r in results] == [True, True]
        assert results[0].from_currency == "USD"
        assert results[0].to_currency == "EUR"
        assert results[0].amount == -1

    def test_malformed_item_becomes_placeholder(self, converter):
        """An item missing a field is skipped without aborting the batch."""
        results = converter.convert_multiple([
            {"amount": 100, "from": "USD", "to": "EUR"},
            {"amount": 100, "from": "usd"},
            None,
            {"amount": 50, "from": "GBP", "to": "JPY"},
        ])

        assert len(results) == 4
        assert results[0].converted_amount == 90.0
        assert results[1].skipped
        assert results[1].amount == 100
        assert results[1].from_currency == "USD"
        assert results[1].to_currency == ""
        assert "must provide amount, from and to" in results[1].error
        assert results[2].skipped
        assert results[2].amount is None
        assert results[3].converted_amount == 9525.0

    def test_provider_exception_never_escapes(self):
        provider = MagicMock()
        provider.name = "Flaky"
        provider.fetch_rates.side_effect = RuntimeError("boom")
        converter = CurrencyConverter(provider)

        results = converter.convert_multiple([{"amount": 1, "from": "USD", "to": "EUR"}])

        assert results[0].skipped

    def test_empty_batch(self, converter):
        assert converter.convert_multiple([]) == []


class TestProviderManagement:

    def test_provider_name(self, converter):
        assert converter.provider_name == "Stub"

    def test_set_provider_keeps_bulk_cache_isolated(self, backend, make_provider):
        first = make_provider({"USD": {"EUR": 0.9}}, name="ProviderA")
        second = make_provider({"USD": {"EUR": 0.95}}, name="ProviderB")
        converter = CurrencyConverter(first, cache_backend=backend)

        converter.get_exchange_rates("USD")
        converter.set_provider(second)
        rates = converter.get_exchange_rates("USD")

        assert converter.provider_name == "ProviderB"
        assert converter.provider is second
        assert rates["EUR"] == 0.95
        assert second.calls == ["USD"]
        assert backend.exists("exchange_rates:ProviderA:USD")
        assert backend.exists("exchange_rates:ProviderB:USD")

    def test_swap_never_serves_previous_providers_converter_cache(self, backend, make_provider):
        """Converting again after set_provider asks the new provider, not the old cached map."""
        first = make_provider({"USD": {"EUR": 0.9}}, name="ProviderA")
        second = make_provider({"USD": {"EUR": 0.95}}, name="ProviderB")
        converter = CurrencyConverter(first, cache_backend=backend)
        converter.convert_currency(100, "USD", "EUR")

        converter.set_provider(second)
        result = converter.convert_currency(100, "USD", "EUR")

        assert result.rate == 0.95
        assert result.cached is False
        assert second.calls == ["USD"]
        assert backend.exists("currency_rate:rates:ProviderA:USD")
        assert backend.exists("currency_rate:rates:ProviderB:USD")

    def test_swapping_back_reuses_first_providers_cache(self, backend, make_provider):
        first = make_provider({"USD": {"EUR": 0.9}}, name="ProviderA")
        second = make_provider({"USD": {"EUR": 0.95}}, name="ProviderB")
        converter = CurrencyConverter(first, cache_backend=backend)
        converter.convert_currency(100, "USD", "EUR")
        converter.set_provider(second)
        converter.convert_currency(100, "USD", "EUR")

        converter.set_provider(first)
        result = converter.convert_currency(100, "USD", "EUR")

        assert result.rate == 0.9
        assert result.cached is True
        assert first.calls == ["USD"]

    def test_refresh_provider_rates(self, cached_converter, usd_eur_provider):
        cached_converter.get_exchange_rates("USD")
        usd_eur_provider.rates_by_base["USD"] = {"EUR": 0.91}

        rates = cached_converter.refresh_provider_rates("usd")

        assert rates == {"EUR": 0.91, "USD": 1.0}
        assert usd_eur_provider.calls == ["USD", "USD"]
        assert cached_converter.get_exchange_rates("USD")["EUR"] == 0.91

    def test_refresh_provider_rates_failure(self, converter):
        with pytest.raises(RatesUnavailableError):
            converter.refresh_provider_rates("CHF")

    def test_clear_provider_cache_only_touches_current_provider(self, backend, make_provider):
        first = make_provider({"USD": {"EUR": 0.9}}, name="ProviderA")
        second = make_provider({"USD": {"EUR": 0.95}}, name="ProviderB")
        converter = CurrencyConverter(first, cache_backend=backend)
        converter.get_exchange_rates("USD")
        converter.set_provider(second)
        converter.get_exchange_rates("USD")

        converter.clear_provider_cache()

        assert backend.exists("exchange_rates:ProviderA:USD")
        assert not backend.exists("exchange_rates:ProviderB:USD")

        converter.clear_all_rates_cache()

        assert not backend.exists("exchange_rates:ProviderA:USD")

    def test_supported_currencies_capability(self):
        converter = CurrencyConverter(MockProvider())

        assert "EUR" in converter.get_supported_currencies()

    def test_supported_currencies_without_capability(self, converter):
        with pytest.raises(CurrencyConverterError):
            converter.get_supported_currencies()
