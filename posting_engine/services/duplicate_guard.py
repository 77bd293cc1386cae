"""
Duplicate guard.

Flags a posting that looks like one already on the books. The
result is advisory: the PostingService reports it, it never
blocks a posting.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from posting_engine.models.transaction import Transaction
from posting_engine.services.vat_calculator import to_money

# Amounts within half a cent count as the same amount.
AMOUNT_TOLERANCE = Decimal("0.005")


class DuplicateGuard:

    def __init__(self, db: Session):
        self.db = db

    def is_duplicate(
        self,
        company_id: int,
        bank_account_id: int | None,
        transaction_date: date,
        amount,
        description: str,
        exclude_transaction_id: int | None = None,
    ) -> bool:
        """
        Match on (bank account, date, amount, description).

        Descriptions compare case-insensitively with surrounding
        whitespace ignored. A missing bank account only matches
        other postings without one.
        """
        amount = to_money(amount)
        query = select(Transaction.id).where(
            Transaction.company_id == company_id,
            Transaction.transaction_date == transaction_date,
            Transaction.total_amount.between(
                amount - AMOUNT_TOLERANCE, amount + AMOUNT_TOLERANCE
            ),
            func.lower(func.trim(Transaction.description))
            == description.strip().lower(),
        )
        if bank_account_id is None:
            query = query.where(Transaction.bank_account_id.is_(None))
        else:
            query = query.where(Transaction.bank_account_id == bank_account_id)
        if exclude_transaction_id is not None:
            query = query.where(Transaction.id != exclude_transaction_id)

        return self.db.execute(query.limit(1)).first() is not None
