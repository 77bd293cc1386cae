"""
Tests for depreciation and disposal arithmetic.
"""

from decimal import Decimal

import pytest

from posting_engine.errors import ValidationError
from posting_engine.models.enums import DepreciationMethod
from posting_engine.services.asset_lifecycle import (
    disposal_lines,
    disposal_outcome,
    monthly_depreciation,
)

BANK, ASSET, ACCUM, GAIN, LOSS = 1, 2, 3, 4, 5


def balanced(lines):
    return sum(line.debit for line in lines) == sum(line.credit for line in lines)


class TestMonthlyDepreciation:

    def test_straight_line_scenario(self):
        assert monthly_depreciation(Decimal("50000"), 5) == Decimal("833.33")

    def test_capped_at_remaining_book_value(self):
        amount = monthly_depreciation(Decimal("50000"), 5, Decimal("49900"))
        assert amount == Decimal("100.00")

    def test_fully_depreciated_is_zero(self):
        assert monthly_depreciation(Decimal("50000"), 5, Decimal("50000")) == Decimal("0.00")

    def test_diminishing_balance_uses_book_value(self):
        amount = monthly_depreciation(
            Decimal("12000"), 5, Decimal("2000"), DepreciationMethod.DIMINISHING
        )
        assert amount == Decimal("333.33")

    def test_zero_life_rejected(self):
        with pytest.raises(ValidationError):
            monthly_depreciation(Decimal("1000"), 0)


class TestDisposal:

    def test_loss_scenario(self):
        outcome = disposal_outcome(Decimal("50000"), Decimal("20000"), Decimal("25000"))
        assert outcome.net_book_value == Decimal("30000.00")
        assert outcome.gain_or_loss == Decimal("-5000.00")
        assert outcome.is_loss

        lines = disposal_lines(outcome, BANK, ASSET, ACCUM, GAIN, LOSS, "Sell truck")
        by_account = {line.account_id: line for line in lines}
        assert by_account[BANK].debit == Decimal("25000.00")
        assert by_account[ACCUM].debit == Decimal("20000.00")
        assert by_account[ASSET].credit == Decimal("50000.00")
        assert by_account[LOSS].debit == Decimal("5000.00")
        assert GAIN not in by_account
        assert balanced(lines)

    def test_gain_is_credited(self):
        outcome = disposal_outcome(Decimal("50000"), Decimal("20000"), Decimal("35000"))
        lines = disposal_lines(outcome, BANK, ASSET, ACCUM, GAIN, LOSS, "Sell truck")
        gain = next(line for line in lines if line.account_id == GAIN)
        assert gain.credit == Decimal("5000.00")
        assert balanced(lines)

    def test_no_gain_or_loss_leg_at_book_value(self):
        outcome = disposal_outcome(Decimal("50000"), Decimal("20000"), Decimal("30000"))
        lines = disposal_lines(outcome, BANK, ASSET, ACCUM, GAIN, LOSS, "Sell truck")
        assert len(lines) == 3
        assert {line.account_id for line in lines} == {BANK, ACCUM, ASSET}

    def test_scrapped_asset_has_no_proceeds_leg(self):
        outcome = disposal_outcome(Decimal("1000"), Decimal("1000"), Decimal("0"))
        lines = disposal_lines(outcome, None, ASSET, ACCUM, GAIN, LOSS, "Scrap")
        assert {line.account_id for line in lines} == {ACCUM, ASSET}
        assert balanced(lines)

    def test_negative_proceeds_rejected(self):
        with pytest.raises(ValidationError):
            disposal_outcome(Decimal("1000"), Decimal("0"), Decimal("-1"))
