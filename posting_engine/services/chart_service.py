"""
Chart of accounts service.

Reads a company's chart and creates accounts in it. The posting
engine also uses it to find the well-known ledgers it needs (VAT,
cost of sales, gain/loss on disposal, ...) and to create one when
it is missing.
"""

import json
import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from posting_engine.errors import (
    NotFoundError,
    ReferenceDataMissing,
    ValidationError,
)
from posting_engine.models.audit_log import AuditLog
from posting_engine.models.chart_account import ChartAccount
from posting_engine.models.company import Company
from posting_engine.models.enums import AccountType
from posting_engine.schemas.chart import ChartAccountCreate, CompanyCreate
from posting_engine.services.classifier import find_account

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WellKnownAccount:
    code: str
    name: str
    account_type: AccountType
    keywords: tuple


WELL_KNOWN_ACCOUNTS: dict[str, WellKnownAccount] = {
    "vat_input": WellKnownAccount(
        "2110", "VAT Input", AccountType.LIABILITY,
        ("vat input", "input vat", "input tax", "vat receivable"),
    ),
    "vat_output": WellKnownAccount(
        "2200", "VAT Output", AccountType.LIABILITY,
        ("vat output", "output vat", "output tax", "vat payable"),
    ),
    "cogs": WellKnownAccount(
        "5000", "Cost of Sales", AccountType.EXPENSE,
        ("cost of sales", "cost of goods", "cogs"),
    ),
    "inventory": WellKnownAccount(
        "1300", "Inventory", AccountType.ASSET,
        ("inventory", "stock"),
    ),
    "gain_on_disposal": WellKnownAccount(
        "9500", "Gain on Disposal", AccountType.INCOME,
        ("gain on disposal", "gain on sale"),
    ),
    "loss_on_disposal": WellKnownAccount(
        "9600", "Loss on Disposal", AccountType.EXPENSE,
        ("loss on disposal", "loss on sale"),
    ),
    "accumulated_depreciation": WellKnownAccount(
        "1590", "Accumulated Depreciation", AccountType.ASSET,
        ("accumulated depreciation", "accumulated"),
    ),
    "depreciation_expense": WellKnownAccount(
        "6800", "Depreciation Expense", AccountType.EXPENSE,
        ("depreciation",),
    ),
    "interest_expense": WellKnownAccount(
        "7000", "Interest Expense", AccountType.EXPENSE,
        ("interest",),
    ),
}

# The conventional starting chart for a new company.
DEFAULT_CHART: list[tuple[str, str, AccountType]] = [
    ("1000", "Petty Cash", AccountType.ASSET),
    ("1100", "Bank", AccountType.ASSET),
    ("1200", "Accounts Receivable", AccountType.ASSET),
    ("1300", "Inventory", AccountType.ASSET),
    ("1500", "Office Equipment", AccountType.ASSET),
    ("1510", "Motor Vehicles", AccountType.ASSET),
    ("1520", "Computer Equipment", AccountType.ASSET),
    ("1590", "Accumulated Depreciation", AccountType.ASSET),
    ("2000", "Accounts Payable", AccountType.LIABILITY),
    ("2110", "VAT Input", AccountType.LIABILITY),
    ("2200", "VAT Output", AccountType.LIABILITY),
    ("2300", "Short-term Loan", AccountType.LIABILITY),
    ("2400", "Long-term Loan", AccountType.LIABILITY),
    ("3000", "Owner's Capital", AccountType.EQUITY),
    ("4000", "Sales Revenue", AccountType.INCOME),
    ("4100", "Service Income", AccountType.INCOME),
    ("5000", "Cost of Sales", AccountType.EXPENSE),
    ("6000", "Office Expenses", AccountType.EXPENSE),
    ("6100", "Rent Expense", AccountType.EXPENSE),
    ("6200", "Telephone and Internet", AccountType.EXPENSE),
    ("6800", "Depreciation Expense", AccountType.EXPENSE),
    ("7000", "Interest Expense", AccountType.EXPENSE),
]


class ChartService:

    def __init__(self, db: Session):
        self.db = db

    def create_company(self, request: CompanyCreate) -> Company:
        company = Company(name=request.name)
        self.db.add(company)
        self.db.flush()
        return company

    def get_company(self, company_id: int) -> Company:
        company = self.db.get(Company, company_id)
        if not company:
            raise NotFoundError(f"Company {company_id} not found")
        return company

    def create_account(
        self, company_id: int, request: ChartAccountCreate
    ) -> ChartAccount:
        """
        Add an account to a company's chart.

        Raises ValidationError if the code is already used in
        this company.
        """
        self.get_company(company_id)
        if self._by_code(company_id, request.code):
            raise ValidationError(
                f"Account with code '{request.code}' already exists"
            )

        account = ChartAccount(
            company_id=company_id,
            code=request.code,
            name=request.name,
            account_type=request.account_type,
        )
        self.db.add(account)
        self.db.flush()
        return account

    def list_accounts(
        self, company_id: int, active_only: bool = True
    ) -> list[ChartAccount]:
        query = select(ChartAccount).where(ChartAccount.company_id == company_id)
        if active_only:
            query = query.where(ChartAccount.is_active.is_(True))
        accounts = self.db.execute(
            query.order_by(ChartAccount.code)
        ).scalars().all()
        return list(accounts)

    def seed_default_chart(self, company_id: int) -> list[ChartAccount]:
        """Create the default chart, skipping codes already present."""
        self.get_company(company_id)
        existing = {a.code for a in self.list_accounts(company_id, active_only=False)}
        created = []
        for code, name, account_type in DEFAULT_CHART:
            if code in existing:
                continue
            account = ChartAccount(
                company_id=company_id,
                code=code,
                name=name,
                account_type=account_type,
            )
            self.db.add(account)
            created.append(account)
        self.db.flush()
        logger.info(
            "Seeded %d default accounts for company %s", len(created), company_id
        )
        return created

    def find_well_known(
        self, key: str, accounts: list[ChartAccount]
    ) -> ChartAccount | None:
        known = WELL_KNOWN_ACCOUNTS[key]
        return find_account(
            accounts, known.account_type,
            codes=(known.code,), keywords=known.keywords,
        )

    def ensure_well_known(
        self, company_id: int, key: str, accounts: list[ChartAccount]
    ) -> ChartAccount:
        """
        Return a well-known ledger, creating it when absent.

        The new account is appended to `accounts` so later lookups
        in the same posting see it. If it cannot be created the
        posting fails with ReferenceDataMissing.
        """
        found = self.find_well_known(key, accounts)
        if found:
            return found

        known = WELL_KNOWN_ACCOUNTS[key]
        taken = self._by_code(company_id, known.code)
        if taken:
            raise ReferenceDataMissing(
                f"{known.name} account is missing and code {known.code} "
                f"is already used by '{taken.name}'"
            )

        account = ChartAccount(
            company_id=company_id,
            code=known.code,
            name=known.name,
            account_type=known.account_type,
        )
        try:
            self.db.add(account)
            self.db.flush()
        except SQLAlchemyError as e:
            raise ReferenceDataMissing(
                f"{known.name} account is missing and could not be created"
            ) from e

        accounts.append(account)
        self.db.add(AuditLog(
            company_id=company_id,
            event_type="account.auto_created",
            details=json.dumps({"code": known.code, "name": known.name}),
        ))
        logger.info(
            "Auto-created %s account %s for company %s",
            known.name, known.code, company_id,
        )
        return account

    def _by_code(self, company_id: int, code: str) -> ChartAccount | None:
        return self.db.execute(
            select(ChartAccount).where(
                ChartAccount.company_id == company_id,
                ChartAccount.code == code,
            )
        ).scalar_one_or_none()
