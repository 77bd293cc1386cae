"""
Tests for loan repayment arithmetic.
"""

from decimal import Decimal

import pytest

from posting_engine.errors import ValidationError
from posting_engine.services.loan_amortizer import (
    amortization_schedule,
    monthly_interest,
    monthly_repayment,
    split_repayment,
)


class TestMonthlyRepayment:

    def test_annuity_scenario(self):
        payment = monthly_repayment(Decimal("120000"), Decimal("0.01"), 24)
        # Often quoted as about 5648.56; the annuity formula gives 5648.82.
        assert payment == Decimal("5648.82")

    def test_zero_rate_is_straight_division(self):
        assert monthly_repayment(Decimal("1200"), Decimal("0"), 12) == Decimal("100.00")
        assert monthly_repayment(Decimal("1000"), 0, 3) == Decimal("333.33")

    def test_non_positive_term_rejected(self):
        with pytest.raises(ValidationError):
            monthly_repayment(Decimal("1000"), Decimal("0.01"), 0)

    def test_negative_rate_rejected(self):
        with pytest.raises(ValidationError):
            monthly_repayment(Decimal("1000"), Decimal("-0.01"), 12)


class TestInterest:

    def test_monthly_interest(self):
        assert monthly_interest(Decimal("120000"), Decimal("0.12")) == Decimal("1200.00")

    def test_split_takes_interest_first(self):
        principal, interest = split_repayment(
            Decimal("5648.82"), Decimal("120000"), Decimal("0.12")
        )
        assert interest == Decimal("1200.00")
        assert principal == Decimal("4448.82")

    def test_split_small_payment_is_all_interest(self):
        principal, interest = split_repayment(
            Decimal("500"), Decimal("120000"), Decimal("0.12")
        )
        assert principal == Decimal("0.00")
        assert interest == Decimal("500.00")


class TestSchedule:

    def test_schedule_pays_off_principal(self):
        rows = amortization_schedule(Decimal("120000"), Decimal("0.12"), 24)

        assert len(rows) == 24
        assert rows[0].interest == Decimal("1200.00")
        assert rows[0].payment == Decimal("5648.82")
        assert rows[-1].balance == Decimal("0.00")
        assert sum(row.principal for row in rows) == Decimal("120000.00")

    def test_zero_rate_schedule(self):
        rows = amortization_schedule(Decimal("1000"), Decimal("0"), 3)
        assert [row.principal for row in rows] == [
            Decimal("333.33"), Decimal("333.33"), Decimal("333.34"),
        ]
        assert all(row.interest == Decimal("0.00") for row in rows)
