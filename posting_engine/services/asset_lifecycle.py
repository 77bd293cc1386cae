"""
Fixed-asset lifecycle arithmetic.

Depreciation is a fixed periodic amount derived from the
acquisition record, not from how much calendar time has passed
when it is posted. Disposal derecognizes cost and accumulated
depreciation and books the difference to proceeds as a gain or
a loss.
"""

from dataclasses import dataclass
from decimal import Decimal

from posting_engine.errors import ValidationError
from posting_engine.models.enums import DepreciationMethod, EntrySide
from posting_engine.services.split_allocator import PostingLine
from posting_engine.services.vat_calculator import ZERO, to_money

MONTHS_PER_YEAR = Decimal("12")
DIMINISHING_FACTOR = Decimal("2")


def monthly_depreciation(
    cost,
    useful_life_years: int,
    accumulated_depreciation=ZERO,
    method: DepreciationMethod = DepreciationMethod.STRAIGHT_LINE,
) -> Decimal:
    """
    Depreciation for one month, capped at the remaining book value.

    Straight-line: cost / life / 12.
    Diminishing balance: book value * 2 / life / 12.
    """
    if useful_life_years <= 0:
        raise ValidationError("useful_life_years must be positive")
    cost = Decimal(str(cost))
    accumulated = Decimal(str(accumulated_depreciation))
    remaining = to_money(max(cost - accumulated, ZERO))

    if method == DepreciationMethod.DIMINISHING:
        amount = remaining * DIMINISHING_FACTOR / useful_life_years / MONTHS_PER_YEAR
    else:
        amount = cost / useful_life_years / MONTHS_PER_YEAR
    return min(to_money(amount), remaining)


def net_book_value(cost, accumulated_depreciation) -> Decimal:
    return to_money(cost) - to_money(accumulated_depreciation)


@dataclass(frozen=True)
class DisposalOutcome:
    proceeds: Decimal
    cost: Decimal
    accumulated_depreciation: Decimal
    net_book_value: Decimal
    gain_or_loss: Decimal

    @property
    def is_gain(self) -> bool:
        return self.gain_or_loss > 0

    @property
    def is_loss(self) -> bool:
        return self.gain_or_loss < 0


def disposal_outcome(cost, accumulated_depreciation, proceeds) -> DisposalOutcome:
    proceeds = to_money(proceeds)
    if proceeds < 0:
        raise ValidationError("disposal proceeds must not be negative")
    cost = to_money(cost)
    accumulated = to_money(accumulated_depreciation)
    nbv = cost - accumulated
    return DisposalOutcome(
        proceeds=proceeds,
        cost=cost,
        accumulated_depreciation=accumulated,
        net_book_value=nbv,
        gain_or_loss=proceeds - nbv,
    )


def disposal_lines(
    outcome: DisposalOutcome,
    proceeds_account_id: int | None,
    asset_account_id: int,
    accumulated_account_id: int | None,
    gain_account_id: int | None,
    loss_account_id: int | None,
    description: str,
) -> list[PostingLine]:
    """
    Legs of a disposal, all in one transaction:

        Dr Bank                      proceeds
        Dr Accumulated Depreciation  accumulated depreciation
            Cr Asset                 cost
        Cr Gain on Disposal          gain   (or Dr Loss on Disposal)

    Zero legs are omitted; with no gain or loss there is no
    third leg.
    """
    lines = []
    if outcome.proceeds > 0:
        if proceeds_account_id is None:
            raise ValidationError("disposal proceeds need a bank account")
        lines.append(PostingLine.on(
            EntrySide.DEBIT, proceeds_account_id, outcome.proceeds, description,
        ))
    if outcome.accumulated_depreciation > 0:
        if accumulated_account_id is None:
            raise ValidationError("accumulated depreciation account is missing")
        lines.append(PostingLine.on(
            EntrySide.DEBIT, accumulated_account_id,
            outcome.accumulated_depreciation,
            "Derecognize Accumulated Depreciation",
        ))
    if outcome.cost > 0:
        lines.append(PostingLine.on(
            EntrySide.CREDIT, asset_account_id, outcome.cost,
            "Derecognize Asset Cost",
        ))
    if outcome.is_gain:
        lines.append(PostingLine.on(
            EntrySide.CREDIT, gain_account_id, outcome.gain_or_loss,
            "Gain on Asset Disposal",
        ))
    elif outcome.is_loss:
        lines.append(PostingLine.on(
            EntrySide.DEBIT, loss_account_id, -outcome.gain_or_loss,
            "Loss on Asset Disposal",
        ))
    return lines
