"""
Split allocator.

Spreads one transaction across several sub-lines, each with its
own account, amount and VAT rate, and balances them against a
single bank or source leg. The source leg is recomputed from the
lines (net plus VAT), not copied from the amount the caller typed.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from posting_engine.config import get_settings
from posting_engine.errors import ValidationError
from posting_engine.models.enums import EntrySide
from posting_engine.services.vat_calculator import ZERO, split_vat, to_money


@dataclass(frozen=True)
class SplitLine:
    account_id: int
    amount: Decimal
    vat_rate: Decimal = Decimal("0")
    description: str | None = None


@dataclass(frozen=True)
class PostingLine:
    """One balanced leg, before it becomes a TransactionEntry row."""
    account_id: int
    debit: Decimal
    credit: Decimal
    description: str

    @classmethod
    def on(cls, side: EntrySide, account_id: int, amount, description: str):
        amount = to_money(amount)
        if side == EntrySide.DEBIT:
            return cls(account_id, amount, ZERO, description)
        return cls(account_id, ZERO, amount, description)


@dataclass(frozen=True)
class SplitAllocation:
    lines: list[PostingLine]
    source_amount: Decimal
    net_total: Decimal
    vat_total: Decimal


def opposite(side: EntrySide) -> EntrySide:
    return EntrySide.CREDIT if side == EntrySide.DEBIT else EntrySide.DEBIT


def allocate_split(
    declared_total,
    lines: Sequence[SplitLine],
    inclusive: bool,
    side: EntrySide,
    source_account_id: int,
    vat_account_id: int | None,
    description: str,
) -> SplitAllocation:
    """
    Build the legs of a split posting.

    Split lines sit on `side`; the source leg sits on the other
    side with the recomputed total. VAT from all lines is
    aggregated into one leg on the split side. The declared
    total must match the sum of line amounts within the
    configured tolerance: a mismatch is rejected, never
    silently rebalanced.
    """
    if not lines:
        raise ValidationError("split posting needs at least one line")

    tolerance = get_settings().SPLIT_TOLERANCE
    declared_total = to_money(declared_total)

    for index, line in enumerate(lines, start=1):
        if not line.account_id:
            raise ValidationError(f"split line {index} has no account selected")
        if to_money(line.amount) <= 0:
            raise ValidationError(f"split line {index} amount must be positive")

    line_sum = sum((to_money(line.amount) for line in lines), ZERO)
    if abs(line_sum - declared_total) > tolerance:
        raise ValidationError(
            f"split lines total {line_sum} does not match "
            f"transaction amount {declared_total}"
        )

    posting_lines = []
    net_total = vat_total = ZERO
    for line in lines:
        breakdown = split_vat(line.amount, line.vat_rate, inclusive)
        net_total += breakdown.net
        vat_total += breakdown.vat
        posting_lines.append(PostingLine.on(
            side, line.account_id, breakdown.net, line.description or description,
        ))

    if vat_total > 0:
        if vat_account_id is None:
            raise ValidationError("split lines carry VAT but no VAT account is available")
        label = "VAT Input" if side == EntrySide.DEBIT else "VAT Output"
        posting_lines.append(PostingLine.on(side, vat_account_id, vat_total, label))

    source_amount = net_total + vat_total
    posting_lines.insert(0, PostingLine.on(
        opposite(side), source_account_id, source_amount, description,
    ))

    return SplitAllocation(
        lines=posting_lines,
        source_amount=source_amount,
        net_total=net_total,
        vat_total=vat_total,
    )
