"""
Loan amortizer.

Annuity repayment, monthly interest and repayment splitting.
Rates come in two flavours and the names say which: a
`monthly_rate` is a per-month decimal fraction, an `annual_rate`
is a per-year decimal fraction (0.12 is 12% a year).
"""

from dataclasses import dataclass
from decimal import Decimal

from posting_engine.errors import ValidationError
from posting_engine.services.vat_calculator import ZERO, to_money

MONTHS_PER_YEAR = Decimal("12")


def monthly_repayment(principal, monthly_rate, term_months: int) -> Decimal:
    """
    Standard annuity payment.

        P * r * (1 + r)^n / ((1 + r)^n - 1)

    At r == 0 the formula divides zero by zero; the limit is
    simply P / n.
    """
    if term_months <= 0:
        raise ValidationError("term_months must be positive")
    principal = Decimal(str(principal))
    rate = Decimal(str(monthly_rate))
    if rate < 0:
        raise ValidationError("interest rate must not be negative")

    if rate == 0:
        return to_money(principal / term_months)

    growth = (1 + rate) ** term_months
    return to_money(principal * rate * growth / (growth - 1))


def monthly_interest(outstanding_balance, annual_rate) -> Decimal:
    """Interest for one month on the outstanding balance."""
    balance = Decimal(str(outstanding_balance))
    return to_money(balance * Decimal(str(annual_rate)) / MONTHS_PER_YEAR)


def split_repayment(amount, outstanding_balance, annual_rate) -> tuple[Decimal, Decimal]:
    """
    Split a payment into (principal, interest).

    Interest for the month is taken first; whatever remains
    reduces the principal.
    """
    amount = to_money(amount)
    interest = min(monthly_interest(outstanding_balance, annual_rate), amount)
    return amount - interest, interest


@dataclass(frozen=True)
class ScheduleRow:
    period: int
    payment: Decimal
    interest: Decimal
    principal: Decimal
    balance: Decimal


def amortization_schedule(principal, annual_rate, term_months: int) -> list[ScheduleRow]:
    """
    Month-by-month schedule. The last row absorbs rounding so
    the balance ends at exactly zero.
    """
    annual_rate = Decimal(str(annual_rate))
    payment = monthly_repayment(principal, annual_rate / MONTHS_PER_YEAR, term_months)
    balance = to_money(principal)
    rows = []
    for period in range(1, term_months + 1):
        interest = monthly_interest(balance, annual_rate)
        if period == term_months:
            principal_part = balance
            payment = principal_part + interest
        else:
            principal_part = min(payment - interest, balance)
        balance = balance - principal_part
        rows.append(ScheduleRow(
            period=period,
            payment=payment,
            interest=interest,
            principal=principal_part,
            balance=max(balance, ZERO),
        ))
    return rows
