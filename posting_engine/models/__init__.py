"""
Database models package.

All models must be imported here so that Alembic can discover
them through Base.metadata when generating migrations.
"""

from posting_engine.models.base import Base
from posting_engine.models.enums import (
    AccountType,
    AccountingElement,
    AssetStatus,
    DepreciationMethod,
    DocumentKind,
    EntrySide,
    FundingSource,
    ItemType,
    LoanStatus,
    LoanTerm,
    LockedFlow,
    PaymentMethod,
    TransactionStatus,
)
from posting_engine.models.audit_log import AuditLog
from posting_engine.models.company import Company
from posting_engine.models.chart_account import ChartAccount
from posting_engine.models.bank_account import BankAccount
from posting_engine.models.loan import Loan, LoanPayment
from posting_engine.models.fixed_asset import FixedAsset
from posting_engine.models.source_document import (
    Product,
    SourceDocument,
    DocumentLine,
)
from posting_engine.models.transaction import Transaction
from posting_engine.models.transaction_entry import TransactionEntry
from posting_engine.models.ledger_entry import LedgerEntry

__all__ = [
    "Base",
    "AccountType",
    "AccountingElement",
    "AssetStatus",
    "DepreciationMethod",
    "DocumentKind",
    "EntrySide",
    "FundingSource",
    "ItemType",
    "LoanStatus",
    "LoanTerm",
    "LockedFlow",
    "PaymentMethod",
    "TransactionStatus",
    "AuditLog",
    "Company",
    "ChartAccount",
    "BankAccount",
    "Loan",
    "LoanPayment",
    "FixedAsset",
    "Product",
    "SourceDocument",
    "DocumentLine",
    "Transaction",
    "TransactionEntry",
    "LedgerEntry",
]
