"""
Bank account service.

Bank balances are shared by every posting against the account,
so they are only changed with a single UPDATE that adds to the
stored value. Reading the balance and writing back a new one
would lose updates under concurrent postings.
"""

from decimal import Decimal
from typing import Iterable

from sqlalchemy import update
from sqlalchemy.orm import Session

from posting_engine.errors import NotFoundError, ValidationError
from posting_engine.models.bank_account import BankAccount
from posting_engine.models.chart_account import ChartAccount
from posting_engine.schemas.chart import BankAccountCreate
from posting_engine.services.classifier import find_bank_ledger, is_bank_ledger
from posting_engine.services.vat_calculator import to_money


class BankService:

    def __init__(self, db: Session):
        self.db = db

    def create_bank_account(self, request: BankAccountCreate) -> BankAccount:
        if request.ledger_account_id is not None:
            ledger = self.db.get(ChartAccount, request.ledger_account_id)
            if not ledger or ledger.company_id != request.company_id:
                raise ValidationError(
                    f"Ledger account {request.ledger_account_id} not found"
                )
            if not is_bank_ledger(ledger):
                raise ValidationError(
                    f"Account {ledger.code} is not a bank-type ledger"
                )

        bank_account = BankAccount(
            company_id=request.company_id,
            account_name=request.account_name,
            bank_name=request.bank_name,
            account_number=request.account_number,
            ledger_account_id=request.ledger_account_id,
            current_balance=to_money(request.opening_balance),
        )
        self.db.add(bank_account)
        self.db.flush()
        return bank_account

    def get_bank_account(self, company_id: int, bank_account_id: int) -> BankAccount:
        bank_account = self.db.get(BankAccount, bank_account_id)
        if not bank_account or bank_account.company_id != company_id:
            raise NotFoundError(f"Bank account {bank_account_id} not found")
        return bank_account

    def ledger_for(
        self, bank_account: BankAccount, accounts: Iterable[ChartAccount]
    ) -> ChartAccount | None:
        """
        The chart ledger a bank account posts to: its own link if
        set, otherwise the company's canonical bank ledger.
        """
        accounts = list(accounts)
        if bank_account.ledger_account_id is not None:
            for account in accounts:
                if account.id == bank_account.ledger_account_id:
                    return account
            return None
        return find_bank_ledger(accounts)

    def apply_delta(self, bank_account_id: int, delta: Decimal) -> None:
        if delta == 0:
            return
        self.db.execute(
            update(BankAccount)
            .where(BankAccount.id == bank_account_id)
            .values(current_balance=BankAccount.current_balance + delta)
            .execution_options(synchronize_session="fetch")
        )
