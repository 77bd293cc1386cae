"""
Money and VAT arithmetic.

All amounts are Decimals quantized to the cent with half-up
rounding. Nothing here touches the database.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from posting_engine.config import get_settings
from posting_engine.errors import ValidationError
from posting_engine.models.enums import AccountingElement

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")

# Elements that never carry VAT, whatever rate the caller sends.
VAT_EXEMPT_ELEMENTS = frozenset({
    AccountingElement.LOAN_RECEIVED,
    AccountingElement.LOAN_REPAYMENT,
    AccountingElement.LOAN_INTEREST,
    AccountingElement.DEPRECIATION,
    AccountingElement.ASSET_DISPOSAL,
    AccountingElement.LIABILITY_PAYMENT,
    AccountingElement.EQUITY,
})


def to_money(value) -> Decimal:
    """Quantize any numeric value to cents."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class VatBreakdown:
    net: Decimal
    vat: Decimal

    @property
    def gross(self) -> Decimal:
        return self.net + self.vat


def split_vat(amount, vat_rate, inclusive: bool) -> VatBreakdown:
    """
    Split an amount into net and VAT.

    Inclusive: the amount already contains the tax, so
    net + vat == amount. Exclusive: the amount is the net and
    vat is added on top at amount * rate / 100.
    """
    amount = to_money(amount)
    rate = Decimal(str(vat_rate))
    if amount < 0:
        raise ValidationError("amount must not be negative")
    if rate < 0:
        raise ValidationError("VAT rate must not be negative")
    if rate == 0:
        return VatBreakdown(net=amount, vat=ZERO)

    if inclusive:
        vat = to_money(amount * rate / (HUNDRED + rate))
        return VatBreakdown(net=amount - vat, vat=vat)
    return VatBreakdown(net=amount, vat=to_money(amount * rate / HUNDRED))


def effective_vat_rate(element: AccountingElement, vat_rate) -> Decimal:
    """
    Return the VAT rate that applies to an element.

    Loans, depreciation, disposals and the other balance-sheet
    movements are forced to zero. Any other rate must be zero or
    the configured standard rate.
    """
    if element in VAT_EXEMPT_ELEMENTS:
        return Decimal("0")
    return check_vat_rate(vat_rate)


def check_vat_rate(vat_rate) -> Decimal:
    rate = Decimal(str(vat_rate or 0))
    standard = get_settings().VAT_STANDARD_RATE
    if rate not in (Decimal("0"), standard):
        raise ValidationError(
            f"VAT rate must be 0 or {standard}, got {rate}"
        )
    return rate
