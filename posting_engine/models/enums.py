"""
Shared enumerations for database models.

Mapping Python enums to database enums means an invalid
element or status is caught at the database level, not
just in Python validation.
"""

import enum


class AccountType(str, enum.Enum):
    """The five fundamental accounting categories."""
    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class EntrySide(str, enum.Enum):
    """Side of a posting line."""
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


class AccountingElement(str, enum.Enum):
    """Business archetype of a transaction."""
    EXPENSE = "EXPENSE"
    INCOME = "INCOME"
    RECEIPT = "RECEIPT"
    ASSET_PURCHASE = "ASSET_PURCHASE"
    PRODUCT_PURCHASE = "PRODUCT_PURCHASE"
    LIABILITY_PAYMENT = "LIABILITY_PAYMENT"
    EQUITY = "EQUITY"
    LOAN_RECEIVED = "LOAN_RECEIVED"
    LOAN_REPAYMENT = "LOAN_REPAYMENT"
    LOAN_INTEREST = "LOAN_INTEREST"
    DEPRECIATION = "DEPRECIATION"
    ASSET_DISPOSAL = "ASSET_DISPOSAL"


class TransactionStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    POSTED = "POSTED"


class PaymentMethod(str, enum.Enum):
    BANK = "BANK"
    CASH = "CASH"
    ACCRUAL = "ACCRUAL"


class FundingSource(str, enum.Enum):
    """How an asset purchase or purchase order is paid for."""
    BANK = "BANK"
    SUPPLIER_CREDIT = "SUPPLIER_CREDIT"
    LOAN = "LOAN"


class LockedFlow(str, enum.Enum):
    """Upstream documents that pin the ledger accounts."""
    INVOICE_ISSUED = "INVOICE_ISSUED"
    INVOICE_PAID = "INVOICE_PAID"
    PURCHASE_ORDER_SENT = "PURCHASE_ORDER_SENT"


class LoanTerm(str, enum.Enum):
    SHORT = "SHORT"
    LONG = "LONG"


class LoanStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class AssetStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    DISPOSED = "DISPOSED"
    CANCELLED = "CANCELLED"


class DepreciationMethod(str, enum.Enum):
    STRAIGHT_LINE = "STRAIGHT_LINE"
    DIMINISHING = "DIMINISHING"


class DocumentKind(str, enum.Enum):
    INVOICE = "INVOICE"
    PURCHASE_ORDER = "PURCHASE_ORDER"


class ItemType(str, enum.Enum):
    PRODUCT = "PRODUCT"
    SERVICE = "SERVICE"
