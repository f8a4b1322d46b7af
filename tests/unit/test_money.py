"""
Money, ExchangeRate and amount coercion.
"""

from decimal import Decimal

import pytest

from treasury_kernel.db.types import round_money, to_amount, to_non_negative_amount, validate_currency
from treasury_kernel.domain.values import ExchangeRate, Money
from treasury_kernel.exceptions import (
    CurrencyMismatchError,
    InvalidAmountError,
    InvalidCurrencyError,
)


class TestMoney:
    def test_string_amount_becomes_decimal(self):
        m = Money.of("10.50", "ARS")
        assert m.amount == Decimal("10.50")
        assert m.currency == "ARS"

    def test_float_rejected(self):
        with pytest.raises(InvalidAmountError):
            Money(amount=10.5, currency="ARS")

    def test_currency_normalized(self):
        assert Money.of(1, " usd ").currency == "USD"

    def test_unsupported_currency(self):
        with pytest.raises(InvalidCurrencyError):
            Money.of(1, "EUR")

    def test_arithmetic_same_currency(self):
        total = Money.of("1000", "ARS") - Money.of("300", "ARS")
        assert total == Money.of("700", "ARS")
        assert (Money.of(2, "USD") + Money.of(3, "USD")).amount == Decimal("5")
        assert (-Money.of(2, "USD")).is_negative

    def test_mixed_currency_arithmetic_raises(self):
        with pytest.raises(CurrencyMismatchError):
            Money.of(1, "ARS") + Money.of(1, "USD")

    def test_mixed_currency_comparison_raises(self):
        with pytest.raises(CurrencyMismatchError):
            Money.of(1, "ARS") < Money.of(1, "USD")

    def test_round_half_up(self):
        assert Money.of("1.005", "ARS").round().amount == Decimal("1.01")

    def test_zero(self):
        assert Money.zero("USD").is_zero


class TestExchangeRate:
    def test_convert_rounds_to_cents(self):
        rate = ExchangeRate.of("USD", "ARS", "1050.333")
        assert rate.convert(Money.of("10", "USD")) == Money.of("10503.33", "ARS")

    def test_convert_wrong_source_currency(self):
        rate = ExchangeRate.of("USD", "ARS", "1000")
        with pytest.raises(CurrencyMismatchError):
            rate.convert(Money.of("10", "ARS"))

    @pytest.mark.parametrize("rate", ["0", "-1"])
    def test_non_positive_rate_rejected(self, rate):
        with pytest.raises(InvalidAmountError):
            ExchangeRate.of("USD", "ARS", rate)

    def test_inverse(self):
        inverse = ExchangeRate.of("USD", "ARS", "1000").inverse()
        assert inverse.from_currency == "ARS"
        assert inverse.rate == Decimal("0.001")


class TestAmountHelpers:
    @pytest.mark.parametrize("value", [0, "-5", "abc", 1.5, True, "NaN"])
    def test_to_amount_rejects(self, value):
        with pytest.raises(InvalidAmountError):
            to_amount(value)

    def test_to_amount_accepts_int_and_str(self):
        assert to_amount(5) == Decimal("5")
        assert to_amount("0.01") == Decimal("0.01")

    @pytest.mark.parametrize("value", ["-0.01", "abc", "", None, 2.5, "Infinity"])
    def test_to_non_negative_amount_rejects(self, value):
        with pytest.raises(InvalidAmountError):
            to_non_negative_amount(value)

    def test_to_non_negative_amount_accepts_zero(self):
        assert to_non_negative_amount("0") == Decimal("0")
        assert to_non_negative_amount(Decimal("12.50")) == Decimal("12.50")

    def test_round_money(self):
        assert round_money(Decimal("2.345")) == Decimal("2.35")

    def test_validate_currency_rejects_empty(self):
        with pytest.raises(InvalidCurrencyError):
            validate_currency("")
