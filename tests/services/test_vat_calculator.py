"""
Tests for VAT and money arithmetic.
"""

from decimal import Decimal

import pytest

from posting_engine.errors import ValidationError
from posting_engine.models.enums import AccountingElement
from posting_engine.services.vat_calculator import (
    check_vat_rate,
    effective_vat_rate,
    split_vat,
    to_money,
)


class TestToMoney:

    def test_rounds_half_up(self):
        assert to_money(Decimal("2.345")) == Decimal("2.35")
        assert to_money(Decimal("2.344")) == Decimal("2.34")

    def test_accepts_floats_and_ints(self):
        assert to_money(0.125) == Decimal("0.13")
        assert to_money(10) == Decimal("10.00")


class TestSplitVat:

    def test_inclusive_scenario(self):
        result = split_vat(Decimal("1150"), Decimal("15"), inclusive=True)
        assert result.net == Decimal("1000.00")
        assert result.vat == Decimal("150.00")
        assert result.gross == Decimal("1150.00")

    def test_exclusive_adds_vat_on_top(self):
        result = split_vat(Decimal("1000"), Decimal("15"), inclusive=False)
        assert result.net == Decimal("1000.00")
        assert result.vat == Decimal("150.00")
        assert result.gross == Decimal("1150.00")

    def test_inclusive_net_plus_vat_is_amount_after_rounding(self):
        result = split_vat(Decimal("10.00"), Decimal("15"), inclusive=True)
        assert result.vat == Decimal("1.30")
        assert result.net == Decimal("8.70")
        assert result.net + result.vat == Decimal("10.00")

    def test_zero_rate_has_no_vat(self):
        result = split_vat(Decimal("250"), Decimal("0"), inclusive=True)
        assert result.net == Decimal("250.00")
        assert result.vat == Decimal("0.00")

    def test_negative_amount_rejected(self):
        with pytest.raises(ValidationError):
            split_vat(Decimal("-1"), Decimal("15"), inclusive=True)


class TestVatRates:

    def test_standard_and_zero_rates_allowed(self):
        assert check_vat_rate(Decimal("15")) == Decimal("15")
        assert check_vat_rate(Decimal("0")) == Decimal("0")
        assert check_vat_rate(None) == Decimal("0")

    def test_other_rates_rejected(self):
        with pytest.raises(ValidationError, match="VAT rate"):
            check_vat_rate(Decimal("14"))

    @pytest.mark.parametrize("element", [
        AccountingElement.LOAN_RECEIVED,
        AccountingElement.LOAN_REPAYMENT,
        AccountingElement.DEPRECIATION,
        AccountingElement.ASSET_DISPOSAL,
    ])
    def test_exempt_elements_forced_to_zero(self, element):
        assert effective_vat_rate(element, Decimal("15")) == Decimal("0")

    def test_taxable_element_keeps_rate(self):
        assert effective_vat_rate(AccountingElement.EXPENSE, Decimal("15")) == Decimal("15")
