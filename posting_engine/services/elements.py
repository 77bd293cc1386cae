"""
Accounting element rules.

Each element declares which account type sits on the debit side,
which types are admissible on the credit side, which side carries
VAT and split lines, and which side the bank or cash ledger
normally occupies. The table is configuration, not data: adding
an element means adding a row here and a handler in the
PostingService.
"""

from dataclasses import dataclass

from posting_engine.models.enums import AccountingElement, AccountType, EntrySide


@dataclass(frozen=True)
class ElementRule:
    label: str
    debit_type: AccountType
    credit_types: frozenset
    # Side carrying VAT and split lines; None means neither is allowed.
    vat_side: EntrySide | None
    split_side: EntrySide | None
    # Side the bank/cash ledger is auto-selected for, if any.
    bank_side: EntrySide | None
    description: str


ELEMENT_RULES: dict[AccountingElement, ElementRule] = {
    AccountingElement.EXPENSE: ElementRule(
        label="Expense Payment",
        debit_type=AccountType.EXPENSE,
        credit_types=frozenset({AccountType.ASSET, AccountType.LIABILITY}),
        vat_side=EntrySide.DEBIT,
        split_side=EntrySide.DEBIT,
        bank_side=EntrySide.CREDIT,
        description="Dr Expense / Cr Bank or Payable",
    ),
    AccountingElement.INCOME: ElementRule(
        label="Income Received",
        debit_type=AccountType.ASSET,
        credit_types=frozenset({AccountType.INCOME}),
        vat_side=EntrySide.CREDIT,
        split_side=EntrySide.CREDIT,
        bank_side=EntrySide.DEBIT,
        description="Dr Bank or Receivable / Cr Income",
    ),
    AccountingElement.RECEIPT: ElementRule(
        label="Receipt",
        debit_type=AccountType.ASSET,
        credit_types=frozenset({AccountType.ASSET, AccountType.INCOME}),
        vat_side=EntrySide.CREDIT,
        split_side=EntrySide.CREDIT,
        bank_side=EntrySide.DEBIT,
        description="Dr Bank / Cr Receivable or Income",
    ),
    AccountingElement.ASSET_PURCHASE: ElementRule(
        label="Asset Purchase",
        debit_type=AccountType.ASSET,
        credit_types=frozenset({AccountType.ASSET, AccountType.LIABILITY}),
        vat_side=EntrySide.DEBIT,
        split_side=EntrySide.DEBIT,
        bank_side=EntrySide.CREDIT,
        description="Dr Fixed Asset / Cr Bank, Payable or Loan",
    ),
    AccountingElement.PRODUCT_PURCHASE: ElementRule(
        label="Product Purchase",
        debit_type=AccountType.ASSET,
        credit_types=frozenset({AccountType.ASSET, AccountType.LIABILITY}),
        vat_side=EntrySide.DEBIT,
        split_side=EntrySide.DEBIT,
        bank_side=EntrySide.CREDIT,
        description="Dr Inventory / Cr Bank or Payable",
    ),
    AccountingElement.LIABILITY_PAYMENT: ElementRule(
        label="Liability Payment",
        debit_type=AccountType.LIABILITY,
        credit_types=frozenset({AccountType.ASSET}),
        vat_side=None,
        split_side=EntrySide.DEBIT,
        bank_side=EntrySide.CREDIT,
        description="Dr Liability / Cr Bank",
    ),
    AccountingElement.EQUITY: ElementRule(
        label="Equity/Capital",
        debit_type=AccountType.ASSET,
        credit_types=frozenset({AccountType.EQUITY}),
        vat_side=None,
        split_side=EntrySide.CREDIT,
        bank_side=EntrySide.DEBIT,
        description="Dr Bank / Cr Capital",
    ),
    AccountingElement.LOAN_RECEIVED: ElementRule(
        label="Loan Received",
        debit_type=AccountType.ASSET,
        credit_types=frozenset({AccountType.LIABILITY}),
        vat_side=None,
        split_side=None,
        bank_side=EntrySide.DEBIT,
        description="Dr Bank / Cr Loan Payable",
    ),
    AccountingElement.LOAN_REPAYMENT: ElementRule(
        label="Loan Repayment",
        debit_type=AccountType.LIABILITY,
        credit_types=frozenset({AccountType.ASSET}),
        vat_side=None,
        split_side=None,
        bank_side=EntrySide.CREDIT,
        description="Dr Loan Payable / Cr Bank",
    ),
    AccountingElement.LOAN_INTEREST: ElementRule(
        label="Loan Interest",
        debit_type=AccountType.EXPENSE,
        credit_types=frozenset({AccountType.ASSET}),
        vat_side=None,
        split_side=None,
        bank_side=EntrySide.CREDIT,
        description="Dr Interest Expense / Cr Bank",
    ),
    AccountingElement.DEPRECIATION: ElementRule(
        label="Depreciation",
        debit_type=AccountType.EXPENSE,
        credit_types=frozenset({AccountType.ASSET}),
        vat_side=None,
        split_side=None,
        bank_side=None,
        description="Dr Depreciation Expense / Cr Accumulated Depreciation",
    ),
    AccountingElement.ASSET_DISPOSAL: ElementRule(
        label="Asset Disposal",
        debit_type=AccountType.ASSET,
        credit_types=frozenset({AccountType.ASSET}),
        vat_side=None,
        split_side=None,
        bank_side=EntrySide.DEBIT,
        description="Dr Bank, Dr Accumulated Depreciation / Cr Asset Cost, +/- Gain or Loss",
    ),
}


def rule_for(element: AccountingElement) -> ElementRule:
    return ELEMENT_RULES[element]
