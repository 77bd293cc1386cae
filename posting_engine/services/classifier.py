"""
Account classifier.

Given an accounting element and a company's chart of accounts,
work out which accounts may sit on each side of the posting and
which ones to pick by default. The classifier never raises: a
side with no admissible account comes back empty and it is up
to the PostingService to refuse the posting.
"""

from dataclasses import dataclass, field
from typing import Iterable, Sequence

from posting_engine.config import get_settings
from posting_engine.models.chart_account import ChartAccount
from posting_engine.models.enums import (
    AccountingElement,
    AccountType,
    EntrySide,
    LoanTerm,
    PaymentMethod,
)
from posting_engine.services.elements import rule_for

FIXED_ASSET_KEYWORDS = (
    "land", "building", "property", "plant", "machinery", "vehicle",
    "equipment", "computer", "furniture", "software", "goodwill",
    "fixed asset",
)
CONTRA_ASSET_KEYWORDS = ("accumulated", "depreciation", "amortisation", "amortization")
INVENTORY_KEYWORDS = ("inventory", "stock")
INVENTORY_CODES = ("1300",)

RECEIVABLE_CODES = ("1200",)
RECEIVABLE_KEYWORDS = ("receiv",)
PAYABLE_CODES = ("2000",)
PAYABLE_KEYWORDS = ("accounts payable", "payable")
CASH_KEYWORDS = ("cash",)
SHORT_TERM_LOAN_CODES = ("2300",)
LONG_TERM_LOAN_CODES = ("2400",)


def find_account(
    accounts: Iterable[ChartAccount],
    account_type: AccountType,
    codes: Sequence[str] = (),
    keywords: Sequence[str] = (),
    exclude_keywords: Sequence[str] = (),
) -> ChartAccount | None:
    """
    Find an active account of a type, by code first, then by name.

    Codes are tried in the order given. Name keywords match as
    case-insensitive substrings.
    """
    pool = [
        a for a in accounts
        if a.is_active
        and a.account_type == account_type
        and not _name_has(a, exclude_keywords)
    ]
    for code in codes:
        for account in pool:
            if account.code == code:
                return account
    for account in pool:
        if _name_has(account, keywords):
            return account
    return None


def find_bank_ledger(accounts: Iterable[ChartAccount]) -> ChartAccount | None:
    """The canonical bank ledger: the configured code, else a 'bank' asset."""
    return find_account(
        accounts,
        AccountType.ASSET,
        codes=(get_settings().BANK_LEDGER_CODE,),
        keywords=("bank",),
    )


def is_bank_ledger(account: ChartAccount) -> bool:
    if account.account_type != AccountType.ASSET:
        return False
    return (
        account.code == get_settings().BANK_LEDGER_CODE
        or _name_has(account, ("bank", "cash"))
    )


def is_fixed_asset_account(account: ChartAccount) -> bool:
    if account.account_type != AccountType.ASSET:
        return False
    if _name_has(account, CONTRA_ASSET_KEYWORDS):
        return False
    return _name_has(account, FIXED_ASSET_KEYWORDS)


def is_inventory_account(account: ChartAccount) -> bool:
    if account.account_type != AccountType.ASSET:
        return False
    return account.code in INVENTORY_CODES or _name_has(account, INVENTORY_KEYWORDS)


def loan_term_for(term_months: int) -> LoanTerm:
    """Loans up to the configured number of months are short-term."""
    if term_months <= get_settings().SHORT_TERM_LOAN_MONTHS:
        return LoanTerm.SHORT
    return LoanTerm.LONG


def find_loan_ledger(
    accounts: Iterable[ChartAccount], loan_term: LoanTerm | None
) -> ChartAccount | None:
    accounts = list(accounts)
    if loan_term == LoanTerm.LONG:
        codes, keywords = LONG_TERM_LOAN_CODES, ("long-term loan", "long term loan")
    else:
        codes, keywords = SHORT_TERM_LOAN_CODES, ("short-term loan", "short term loan")
    return (
        find_account(accounts, AccountType.LIABILITY, codes=codes, keywords=keywords)
        or find_account(accounts, AccountType.LIABILITY, keywords=("loan",))
    )


@dataclass
class Classification:
    element: AccountingElement
    debit_candidates: list[ChartAccount] = field(default_factory=list)
    credit_candidates: list[ChartAccount] = field(default_factory=list)
    default_debit_id: int | None = None
    default_credit_id: int | None = None

    def admits(self, side: EntrySide, account_id: int) -> bool:
        pool = (
            self.debit_candidates if side == EntrySide.DEBIT
            else self.credit_candidates
        )
        return any(a.id == account_id for a in pool)


def classify(
    element: AccountingElement,
    accounts: Iterable[ChartAccount],
    chosen_debit_id: int | None = None,
    chosen_credit_id: int | None = None,
    payment_method: PaymentMethod | None = None,
    loan_term: LoanTerm | None = None,
    locked: bool = False,
) -> Classification:
    """
    Compute candidate accounts and default picks for an element.

    The account chosen for one side is left out of the other
    side's candidates so a posting can never pair an account
    with itself. Defaults are only proposed when the accounts are
    not locked by an upstream document.
    """
    rule = rule_for(element)
    active = [a for a in accounts if a.is_active]

    debit_candidates = [
        a for a in active
        if a.account_type == rule.debit_type and a.id != chosen_credit_id
    ]
    if element == AccountingElement.ASSET_PURCHASE:
        debit_candidates = [a for a in debit_candidates if is_fixed_asset_account(a)]
    elif element == AccountingElement.PRODUCT_PURCHASE:
        debit_candidates = [a for a in debit_candidates if is_inventory_account(a)]

    credit_candidates = [
        a for a in active
        if a.account_type in rule.credit_types and a.id != chosen_debit_id
    ]

    result = Classification(
        element=element,
        debit_candidates=debit_candidates,
        credit_candidates=credit_candidates,
    )
    if locked:
        return result

    debit_default, credit_default = _default_picks(
        element, debit_candidates, credit_candidates, payment_method, loan_term
    )
    result.default_debit_id = debit_default.id if debit_default else None
    result.default_credit_id = credit_default.id if credit_default else None
    return result


def _default_picks(element, debit_pool, credit_pool, payment_method, loan_term):
    rule = rule_for(element)
    debit = credit = None

    if rule.bank_side == EntrySide.DEBIT:
        debit = _settlement_account(debit_pool, EntrySide.DEBIT, payment_method)
    elif rule.bank_side == EntrySide.CREDIT:
        credit = _settlement_account(credit_pool, EntrySide.CREDIT, payment_method)

    if element == AccountingElement.LOAN_RECEIVED:
        credit = find_loan_ledger(credit_pool, loan_term)
    elif element == AccountingElement.LOAN_REPAYMENT:
        debit = find_loan_ledger(debit_pool, loan_term)
    elif element == AccountingElement.ASSET_PURCHASE and loan_term is not None:
        credit = find_loan_ledger(credit_pool, loan_term)
    elif element == AccountingElement.LOAN_INTEREST:
        debit = find_account(debit_pool, AccountType.EXPENSE, keywords=("interest",))
    elif element == AccountingElement.DEPRECIATION:
        debit = find_account(debit_pool, AccountType.EXPENSE, keywords=("depreciation",))
        credit = find_account(credit_pool, AccountType.ASSET, keywords=("accumulated",))
    elif element == AccountingElement.PRODUCT_PURCHASE:
        debit = find_account(
            debit_pool, AccountType.ASSET,
            codes=INVENTORY_CODES, keywords=INVENTORY_KEYWORDS,
        )
    return debit, credit


def _settlement_account(pool, side, payment_method):
    if payment_method == PaymentMethod.ACCRUAL:
        if side == EntrySide.DEBIT:
            return find_account(
                pool, AccountType.ASSET,
                codes=RECEIVABLE_CODES, keywords=RECEIVABLE_KEYWORDS,
            )
        return find_account(
            pool, AccountType.LIABILITY,
            codes=PAYABLE_CODES, keywords=PAYABLE_KEYWORDS,
        )
    if payment_method == PaymentMethod.CASH:
        cash = find_account(pool, AccountType.ASSET, keywords=CASH_KEYWORDS)
        if cash:
            return cash
    return find_bank_ledger(pool)


def _name_has(account: ChartAccount, keywords: Sequence[str]) -> bool:
    name = (account.name or "").lower()
    return any(k in name for k in keywords)
