"""
Posting service: the orchestrator.

Turns a PostingRequest into a balanced set of entry lines and
writes it. Every posting goes through the same stages:

1. Plan: load the chart, resolve the bank account and any locked
   accounts, then let the element's handler build the legs and
   the register side effects (bank balance, loan, fixed asset).
2. Validate the plan: known accounts, one non-zero side per line,
   debits equal credits, bank ledger present for bank payments.
   Nothing has been written yet, so a rejection leaves no trace.
3. Write, as one unit of work: header, entries, ledger mirror,
   side effects. A storage failure rolls all of it back.

Editing replays the same plan against an existing transaction:
prior side effects are reversed, prior entries and ledger rows
deleted, and the fresh set written in their place, all inside
the same unit of work. The caller controls the commit.
"""

import json
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable

from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from posting_engine.errors import (
    DuplicateWarning,
    NotFoundError,
    StorageError,
    ValidationError,
    transaction_not_found,
)
from posting_engine.models.audit_log import AuditLog
from posting_engine.models.bank_account import BankAccount
from posting_engine.models.chart_account import ChartAccount
from posting_engine.models.enums import (
    AccountingElement,
    AssetStatus,
    EntrySide,
    FundingSource,
    LoanStatus,
    LoanTerm,
    PaymentMethod,
    TransactionStatus,
)
from posting_engine.models.fixed_asset import FixedAsset
from posting_engine.models.ledger_entry import LedgerEntry
from posting_engine.models.loan import Loan
from posting_engine.models.transaction import Transaction
from posting_engine.models.transaction_entry import TransactionEntry
from posting_engine.schemas.transaction import DuplicateCheckRequest, PostingRequest
from posting_engine.services.asset_lifecycle import (
    disposal_lines,
    disposal_outcome,
    monthly_depreciation,
)
from posting_engine.services.asset_service import AssetService
from posting_engine.services.bank_service import BankService
from posting_engine.services.chart_service import ChartService
from posting_engine.services.classifier import classify, loan_term_for
from posting_engine.services.duplicate_guard import DuplicateGuard
from posting_engine.services.elements import ElementRule, rule_for
from posting_engine.services.loan_amortizer import monthly_interest, split_repayment
from posting_engine.services.loan_service import LoanService
from posting_engine.services.locked_flow import (
    FLOW_ELEMENTS,
    LockedAccounts,
    LockedFlowResolver,
)
from posting_engine.services.split_allocator import (
    PostingLine,
    SplitLine,
    allocate_split,
)
from posting_engine.services.vat_calculator import (
    ZERO,
    VatBreakdown,
    effective_vat_rate,
    split_vat,
    to_money,
)

logger = logging.getLogger(__name__)

# A side effect runs after the entries are written and receives the header.
Effect = Callable[[Transaction], None]

# Elements whose posting draws down the loan it points at.
DRAWDOWN_ELEMENTS = (AccountingElement.LOAN_RECEIVED, AccountingElement.ASSET_PURCHASE)


@dataclass
class PostingPlan:
    """Everything a posting will write, computed before any write."""
    element: AccountingElement
    payment_method: PaymentMethod | None = None
    lines: list[PostingLine] = field(default_factory=list)
    total_amount: Decimal = ZERO
    base_amount: Decimal = ZERO
    vat_rate: Decimal = Decimal("0")
    vat_amount: Decimal = ZERO
    bank_account: BankAccount | None = None
    bank_adjustment: Decimal = ZERO
    loan_id: int | None = None
    fixed_asset_id: int | None = None
    effects: list[Effect] = field(default_factory=list)


@dataclass
class PlanContext:
    request: PostingRequest
    rule: ElementRule
    accounts: list[ChartAccount]
    vat_rate: Decimal
    previous: Transaction | None
    bank_ledger: ChartAccount | None
    locked: LockedAccounts | None
    plan: PostingPlan

    @property
    def company_id(self) -> int:
        return self.request.company_id


@dataclass
class PostingResult:
    transaction: Transaction
    duplicate_warning: bool = False
    warnings: list[DuplicateWarning] = field(default_factory=list)


class PostingService:

    def __init__(self, db: Session):
        self.db = db
        self.chart = ChartService(db)
        self.banks = BankService(db)
        self.loans = LoanService(db)
        self.assets = AssetService(db)
        self.guard = DuplicateGuard(db)
        self.locked_flows = LockedFlowResolver(db, self.chart)
        self._handlers = {
            AccountingElement.EXPENSE: self._plan_standard,
            AccountingElement.INCOME: self._plan_standard,
            AccountingElement.RECEIPT: self._plan_standard,
            AccountingElement.PRODUCT_PURCHASE: self._plan_standard,
            AccountingElement.LIABILITY_PAYMENT: self._plan_standard,
            AccountingElement.EQUITY: self._plan_standard,
            AccountingElement.ASSET_PURCHASE: self._plan_asset_purchase,
            AccountingElement.LOAN_RECEIVED: self._plan_loan_received,
            AccountingElement.LOAN_REPAYMENT: self._plan_loan_repayment,
            AccountingElement.LOAN_INTEREST: self._plan_loan_interest,
            AccountingElement.DEPRECIATION: self._plan_depreciation,
            AccountingElement.ASSET_DISPOSAL: self._plan_asset_disposal,
        }

    # --- Public operations ---

    def post(self, request: PostingRequest) -> PostingResult:
        """Validate and write a new transaction."""
        plan = self._plan(request)
        duplicate = self._looks_duplicate(request, plan)

        with self._unit_of_work("post"):
            txn = Transaction(
                company_id=request.company_id,
                status=TransactionStatus.PENDING,
            )
            self._apply_header(txn, request, plan)
            self.db.add(txn)
            self.db.flush()
            self._write(txn, plan)
            self._audit(txn, "transaction.posted")

        logger.info(
            "Posted transaction %s: %s %s",
            txn.id, txn.element.value, txn.total_amount,
        )
        return self._result(txn, duplicate)

    def edit(self, transaction_id: int, request: PostingRequest) -> PostingResult:
        """
        Replace a transaction's entries with a freshly computed set.

        The result is the same as posting the final input once: no
        entry, ledger row or side effect from earlier versions is
        left behind.
        """
        txn = self._lock(transaction_id)
        if txn.company_id != request.company_id:
            raise NotFoundError(transaction_not_found(transaction_id))

        plan = self._plan(request, previous=txn)
        duplicate = self._looks_duplicate(request, plan, exclude_transaction_id=txn.id)
        dropped_loan, dropped_asset = self._dropped_registers(txn, plan)

        with self._unit_of_work("edit"):
            self._reverse(txn, dropped_loan, dropped_asset)
            self._clear_entries(txn)
            self._apply_header(txn, request, plan)
            self._write(txn, plan)
            self._audit(txn, "transaction.edited")

        logger.info(
            "Edited transaction %s: %s %s",
            txn.id, txn.element.value, txn.total_amount,
        )
        return self._result(txn, duplicate)

    def unreconcile(self, transaction_id: int) -> Transaction:
        """
        Revert a posted transaction to pending.

        Entries and ledger rows are removed and the bank, loan and
        asset adjustments it made are undone. A loan drawdown is taken
        back off its loan and a purchased asset is cancelled; both
        records stay on the registers. Unreconciling a pending
        transaction does nothing.
        """
        txn = self._lock(transaction_id)
        if txn.status == TransactionStatus.PENDING:
            return txn
        dropped_loan, dropped_asset = self._dropped_registers(txn)

        with self._unit_of_work("unreconcile"):
            self._reverse(txn, dropped_loan, dropped_asset)
            self._clear_entries(txn)
            txn.status = TransactionStatus.PENDING
            self._audit(txn, "transaction.unreconciled")

        logger.info("Unreconciled transaction %s", txn.id)
        return txn

    def get_transaction(self, transaction_id: int) -> Transaction:
        txn = self.db.get(Transaction, transaction_id)
        if not txn:
            raise NotFoundError(transaction_not_found(transaction_id))
        return txn

    def check_duplicate(self, request: DuplicateCheckRequest) -> bool:
        return self.guard.is_duplicate(
            company_id=request.company_id,
            bank_account_id=request.bank_account_id,
            transaction_date=request.transaction_date,
            amount=request.amount,
            description=request.description,
            exclude_transaction_id=request.exclude_transaction_id,
        )

    # --- Planning ---

    def _plan(
        self, request: PostingRequest, previous: Transaction | None = None
    ) -> PostingPlan:
        self.chart.get_company(request.company_id)
        accounts = self.chart.list_accounts(request.company_id)
        if not accounts:
            raise ValidationError(
                f"Chart of accounts is missing for company {request.company_id}"
            )

        rule = rule_for(request.element)
        if request.split_lines and rule.split_side is None:
            raise ValidationError(f"{rule.label} postings cannot be split")

        plan = PostingPlan(
            element=request.element,
            payment_method=self._payment_method(request),
        )
        ctx = PlanContext(
            request=request,
            rule=rule,
            accounts=accounts,
            vat_rate=effective_vat_rate(request.element, request.vat_rate),
            previous=previous,
            bank_ledger=None,
            locked=None,
            plan=plan,
        )
        self._resolve_bank(ctx)
        if request.locked_flow is not None:
            ctx.locked = self._resolve_locked(ctx)

        self._handlers[request.element](ctx)

        self._check_lines(ctx)
        self._check_bank(ctx)
        return plan

    def _payment_method(self, request: PostingRequest) -> PaymentMethod | None:
        if request.payment_method is not None:
            return request.payment_method
        if request.bank_account_id is not None:
            return PaymentMethod.BANK
        if request.funding_source == FundingSource.SUPPLIER_CREDIT:
            return PaymentMethod.ACCRUAL
        return None

    def _resolve_bank(self, ctx: PlanContext) -> None:
        request, plan = ctx.request, ctx.plan
        if plan.payment_method != PaymentMethod.BANK:
            if request.bank_account_id is not None:
                raise ValidationError(
                    "A bank account only applies to bank payments"
                )
            return
        if ctx.rule.bank_side is None:
            raise ValidationError(f"{ctx.rule.label} postings do not move a bank account")
        if request.bank_account_id is None:
            raise ValidationError("Bank payments need a bank account")

        bank_account = self.banks.get_bank_account(
            request.company_id, request.bank_account_id
        )
        ledger = self.banks.ledger_for(bank_account, ctx.accounts)
        if ledger is None:
            raise ValidationError(
                f"Bank account '{bank_account.account_name}' has no bank "
                f"ledger in the chart of accounts"
            )
        plan.bank_account = bank_account
        ctx.bank_ledger = ledger

    def _resolve_locked(self, ctx: PlanContext) -> LockedAccounts:
        request = ctx.request
        flow = request.locked_flow
        if request.element != FLOW_ELEMENTS[flow]:
            raise ValidationError(
                f"{flow.value} postings must use the "
                f"{FLOW_ELEMENTS[flow].value} element"
            )
        if request.source_document_id is None:
            raise ValidationError(f"{flow.value} postings need a source document")
        if request.split_lines:
            raise ValidationError("Postings locked to a source document cannot be split")

        document = self.locked_flows.get_document(
            request.company_id, request.source_document_id, flow
        )
        return self.locked_flows.resolve(
            request.company_id, flow, document, ctx.accounts, ctx.bank_ledger
        )

    def _resolve_pair(
        self,
        ctx: PlanContext,
        loan_term: LoanTerm | None = None,
        need_debit: bool = True,
        need_credit: bool = True,
    ) -> tuple[int | None, int | None]:
        """
        Pick the debit and credit accounts.

        Precedence: accounts pinned by a source document, then the
        caller's choice, then the bank ledger on the bank side, then
        the classifier's default. The result must be admissible for
        the element on each side.
        """
        request, rule = ctx.request, ctx.rule
        debit_id = request.debit_account_id
        credit_id = request.credit_account_id

        if ctx.locked is not None:
            debit_id = _pinned(EntrySide.DEBIT, debit_id, ctx.locked.debit_account_id)
            credit_id = _pinned(EntrySide.CREDIT, credit_id, ctx.locked.credit_account_id)
            if debit_id == credit_id:
                raise ValidationError("Debit and credit accounts must be different")
            return debit_id, credit_id

        if ctx.bank_ledger is not None:
            if rule.bank_side == EntrySide.DEBIT and debit_id is None:
                debit_id = ctx.bank_ledger.id
            elif rule.bank_side == EntrySide.CREDIT and credit_id is None:
                credit_id = ctx.bank_ledger.id

        defaults = classify(
            request.element, ctx.accounts,
            chosen_debit_id=debit_id,
            chosen_credit_id=credit_id,
            payment_method=ctx.plan.payment_method,
            loan_term=loan_term,
        )
        if need_debit and debit_id is None:
            debit_id = defaults.default_debit_id
        if need_credit and credit_id is None:
            credit_id = defaults.default_credit_id

        if need_debit and debit_id is None:
            raise ValidationError(f"No debit account selected for {rule.label}")
        if need_credit and credit_id is None:
            raise ValidationError(f"No credit account selected for {rule.label}")
        if not need_debit:
            debit_id = None
        if not need_credit:
            credit_id = None
        if debit_id is not None and debit_id == credit_id:
            raise ValidationError("Debit and credit accounts must be different")

        final = classify(
            request.element, ctx.accounts,
            chosen_debit_id=debit_id,
            chosen_credit_id=credit_id,
            payment_method=ctx.plan.payment_method,
            loan_term=loan_term,
            locked=True,
        )
        if debit_id is not None and not final.admits(EntrySide.DEBIT, debit_id):
            raise ValidationError(_inadmissible(ctx, debit_id, EntrySide.DEBIT))
        if credit_id is not None and not final.admits(EntrySide.CREDIT, credit_id):
            raise ValidationError(_inadmissible(ctx, credit_id, EntrySide.CREDIT))
        return debit_id, credit_id

    # --- Element handlers ---

    def _plan_standard(self, ctx: PlanContext) -> None:
        """Expense, income, receipt, product purchase, liability payment, equity."""
        self._plan_legs(ctx)

    def _plan_legs(self, ctx: PlanContext, loan_term: LoanTerm | None = None) -> None:
        if ctx.request.split_lines:
            self._plan_split(ctx, loan_term)
            return

        request, plan = ctx.request, ctx.plan
        _require_amount(request)
        debit_id, credit_id = self._resolve_pair(ctx, loan_term=loan_term)
        breakdown = split_vat(request.amount, ctx.vat_rate, request.vat_inclusive)

        plan.lines = self._vat_legs(ctx, debit_id, credit_id, breakdown)
        if ctx.locked is not None:
            plan.lines.extend(ctx.locked.extra_lines)
        plan.total_amount = breakdown.gross
        plan.base_amount = breakdown.net
        plan.vat_amount = breakdown.vat
        plan.vat_rate = ctx.vat_rate

    def _vat_legs(
        self, ctx: PlanContext, debit_id: int, credit_id: int, breakdown: VatBreakdown
    ) -> list[PostingLine]:
        description = ctx.request.description
        if breakdown.vat == 0:
            return [
                PostingLine.on(EntrySide.DEBIT, debit_id, breakdown.gross, description),
                PostingLine.on(EntrySide.CREDIT, credit_id, breakdown.gross, description),
            ]

        if ctx.rule.vat_side == EntrySide.DEBIT:
            vat_account = self.chart.ensure_well_known(
                ctx.company_id, "vat_input", ctx.accounts
            )
            return [
                PostingLine.on(EntrySide.DEBIT, debit_id, breakdown.net, description),
                PostingLine.on(EntrySide.DEBIT, vat_account.id, breakdown.vat, "VAT Input"),
                PostingLine.on(EntrySide.CREDIT, credit_id, breakdown.gross, description),
            ]

        vat_account = self.chart.ensure_well_known(
            ctx.company_id, "vat_output", ctx.accounts
        )
        return [
            PostingLine.on(EntrySide.DEBIT, debit_id, breakdown.gross, description),
            PostingLine.on(EntrySide.CREDIT, credit_id, breakdown.net, description),
            PostingLine.on(EntrySide.CREDIT, vat_account.id, breakdown.vat, "VAT Output"),
        ]

    def _plan_split(self, ctx: PlanContext, loan_term: LoanTerm | None = None) -> None:
        request, plan = ctx.request, ctx.plan
        side = ctx.rule.split_side
        _require_amount(request)

        debit_id, credit_id = self._resolve_pair(
            ctx,
            loan_term=loan_term,
            need_debit=side == EntrySide.CREDIT,
            need_credit=side == EntrySide.DEBIT,
        )
        source_id = debit_id if side == EntrySide.CREDIT else credit_id
        candidates = classify(
            request.element, ctx.accounts,
            chosen_debit_id=debit_id,
            chosen_credit_id=credit_id,
            locked=True,
        )

        lines = []
        for index, line in enumerate(request.split_lines, start=1):
            if line.account_id and not candidates.admits(side, line.account_id):
                raise ValidationError(
                    f"Split line {index}: "
                    f"{_inadmissible(ctx, line.account_id, side)}"
                )
            lines.append(SplitLine(
                account_id=line.account_id,
                amount=line.amount,
                vat_rate=effective_vat_rate(request.element, line.vat_rate),
                description=line.description,
            ))

        vat_account_id = None
        if any(line.vat_rate > 0 for line in lines):
            key = "vat_input" if side == EntrySide.DEBIT else "vat_output"
            vat_account_id = self.chart.ensure_well_known(
                ctx.company_id, key, ctx.accounts
            ).id

        allocation = allocate_split(
            request.amount, lines, request.vat_inclusive, side,
            source_id, vat_account_id, request.description,
        )
        plan.lines = allocation.lines
        plan.total_amount = allocation.source_amount
        plan.base_amount = allocation.net_total
        plan.vat_amount = allocation.vat_total
        # Lines are either exempt or at the standard rate.
        plan.vat_rate = max((line.vat_rate for line in lines), default=Decimal("0"))

    def _plan_asset_purchase(self, ctx: PlanContext) -> None:
        request, plan = ctx.request, ctx.plan
        existing_asset = self._linked_asset(ctx)
        existing_loan = self._linked_loan(ctx)

        loan_term = None
        reference = None
        loan_funded = request.funding_source == FundingSource.LOAN
        if loan_funded:
            if plan.payment_method == PaymentMethod.BANK:
                raise ValidationError(
                    "Loan-funded purchases are not paid from a bank account"
                )
            if existing_loan is not None:
                loan_term = existing_loan.loan_type
            else:
                _require_loan_terms(request)
                loan_term = loan_term_for(request.term_months)
                reference = self._new_loan_reference(ctx)

        self._plan_legs(ctx, loan_term)

        # The first debit leg is the asset itself, ahead of any VAT leg.
        asset_account_id = next(line.account_id for line in plan.lines if line.debit > 0)
        if existing_asset is not None:
            plan.fixed_asset_id = existing_asset.id

        def register_asset(txn: Transaction) -> None:
            asset = self.assets.register_acquisition(
                company_id=request.company_id,
                description=request.description,
                cost=plan.base_amount,
                purchase_date=request.transaction_date,
                useful_life_years=request.useful_life_years,
                method=request.depreciation_method,
                asset_account_id=asset_account_id,
                existing=existing_asset,
            )
            txn.fixed_asset_id = asset.id

        plan.effects.append(register_asset)
        if loan_funded:
            self._plan_loan_register(ctx, existing_loan, reference)

    def _plan_loan_received(self, ctx: PlanContext) -> None:
        request, plan = ctx.request, ctx.plan
        _require_amount(request)

        existing_loan = self._linked_loan(ctx)
        reference = None
        if existing_loan is None and request.loan_id is not None:
            existing_loan = self.loans.lock_open_loan(request.company_id, request.loan_id)
        if existing_loan is not None:
            loan_term = existing_loan.loan_type
        else:
            _require_loan_terms(request)
            loan_term = loan_term_for(request.term_months)
            reference = self._new_loan_reference(ctx)

        debit_id, credit_id = self._resolve_pair(ctx, loan_term=loan_term)
        amount = to_money(request.amount)
        plan.lines = [
            PostingLine.on(EntrySide.DEBIT, debit_id, amount, request.description),
            PostingLine.on(EntrySide.CREDIT, credit_id, amount, request.description),
        ]
        plan.total_amount = plan.base_amount = amount
        self._plan_loan_register(ctx, existing_loan, reference)

    def _plan_loan_register(
        self, ctx: PlanContext, existing_loan: Loan | None, reference: str | None
    ) -> None:
        """
        Open a loan for the posting, or move the principal of the loan
        it already points at by the change in amount.
        """
        request, plan, previous = ctx.request, ctx.plan, ctx.previous

        if existing_loan is None:
            def open_loan(txn: Transaction) -> None:
                loan = self.loans.create_loan(
                    company_id=request.company_id,
                    reference=reference,
                    principal=plan.total_amount,
                    interest_rate=request.interest_rate,
                    term_months=request.term_months,
                    start_date=request.transaction_date,
                )
                txn.loan_id = loan.id

            plan.effects.append(open_loan)
            return

        plan.loan_id = existing_loan.id
        already_counted = ZERO
        if (
            previous is not None
            and previous.status == TransactionStatus.POSTED
            and previous.loan_id == existing_loan.id
        ):
            already_counted = to_money(previous.total_amount)
        delta = plan.total_amount - already_counted
        if delta < 0:
            self.loans.check_drawdown_reversible(existing_loan, -delta)

        def adjust_loan(txn: Transaction) -> None:
            self.loans.adjust_principal(existing_loan, delta)

        plan.effects.append(adjust_loan)

    def _plan_loan_repayment(self, ctx: PlanContext) -> None:
        request, plan = ctx.request, ctx.plan
        _require_amount(request)
        loan = self._require_loan(ctx)
        amount = to_money(request.amount)

        # Principal this transaction already took off the loan.
        prior = ZERO
        if ctx.previous is not None and ctx.previous.status == TransactionStatus.POSTED:
            prior = self.loans.principal_recorded(ctx.previous.id, loan.id)
        outstanding = to_money(loan.outstanding_balance) + prior
        if outstanding <= 0 and loan.status == LoanStatus.COMPLETED:
            raise ValidationError(f"Loan {loan.reference} is already repaid")

        if request.interest_component is None:
            principal, interest = split_repayment(amount, outstanding, loan.interest_rate)
        else:
            interest = to_money(request.interest_component)
            if interest > amount:
                raise ValidationError(
                    "interest_component cannot exceed the repayment amount"
                )
            principal = amount - interest
        if principal > outstanding:
            raise ValidationError(
                f"Repayment principal {principal} exceeds the outstanding "
                f"balance {outstanding} of loan {loan.reference}"
            )

        self.loans.check_period_available(
            loan, request.transaction_date,
            principal_bearing=principal > 0,
            interest_bearing=interest > 0,
            exclude_transaction_id=ctx.previous.id if ctx.previous else None,
        )

        debit_id, credit_id = self._resolve_pair(ctx, loan_term=loan.loan_type)
        lines = []
        if principal > 0:
            lines.append(PostingLine.on(
                EntrySide.DEBIT, debit_id, principal, request.description,
            ))
        if interest > 0:
            interest_account = self.chart.ensure_well_known(
                ctx.company_id, "interest_expense", ctx.accounts
            )
            lines.append(PostingLine.on(
                EntrySide.DEBIT, interest_account.id, interest, "Loan interest",
            ))
        lines.append(PostingLine.on(EntrySide.CREDIT, credit_id, amount, request.description))

        plan.lines = lines
        plan.total_amount = plan.base_amount = amount
        plan.loan_id = loan.id
        plan.effects.append(lambda txn: self.loans.record_payment(
            loan, txn.id, request.transaction_date, principal, interest,
        ))

    def _plan_loan_interest(self, ctx: PlanContext) -> None:
        request, plan = ctx.request, ctx.plan
        loan = self._require_loan(ctx)

        amount = to_money(request.amount)
        if amount == 0:
            amount = monthly_interest(loan.outstanding_balance, loan.interest_rate)
        if amount <= 0:
            raise ValidationError(
                f"Loan {loan.reference} has no outstanding balance to charge interest on"
            )

        self.loans.check_period_available(
            loan, request.transaction_date,
            principal_bearing=False,
            interest_bearing=True,
            exclude_transaction_id=ctx.previous.id if ctx.previous else None,
        )

        if request.debit_account_id is None:
            self.chart.ensure_well_known(ctx.company_id, "interest_expense", ctx.accounts)
        debit_id, credit_id = self._resolve_pair(ctx)
        plan.lines = [
            PostingLine.on(EntrySide.DEBIT, debit_id, amount, request.description),
            PostingLine.on(EntrySide.CREDIT, credit_id, amount, request.description),
        ]
        plan.total_amount = plan.base_amount = amount
        plan.loan_id = loan.id
        plan.effects.append(lambda txn: self.loans.record_payment(
            loan, txn.id, request.transaction_date, ZERO, amount,
        ))

    def _plan_depreciation(self, ctx: PlanContext) -> None:
        """
        One month of depreciation. The amount comes from the asset's
        acquisition record; the request amount is not used.
        """
        request, plan = ctx.request, ctx.plan
        asset = self._require_asset(ctx)
        if asset.status == AssetStatus.DISPOSED:
            raise ValidationError(f"Fixed asset '{asset.description}' has been disposed")

        accumulated = to_money(asset.accumulated_depreciation)
        if self._replays(ctx, asset):
            accumulated -= to_money(ctx.previous.total_amount)
        amount = monthly_depreciation(
            asset.cost, asset.useful_life_years,
            max(accumulated, ZERO), asset.depreciation_method,
        )
        if amount <= 0:
            raise ValidationError(f"Fixed asset '{asset.description}' is fully depreciated")

        if request.debit_account_id is None:
            self.chart.ensure_well_known(ctx.company_id, "depreciation_expense", ctx.accounts)
        if request.credit_account_id is None:
            self.chart.ensure_well_known(
                ctx.company_id, "accumulated_depreciation", ctx.accounts
            )
        debit_id, credit_id = self._resolve_pair(ctx)

        plan.lines = [
            PostingLine.on(EntrySide.DEBIT, debit_id, amount, request.description),
            PostingLine.on(EntrySide.CREDIT, credit_id, amount, request.description),
        ]
        plan.total_amount = plan.base_amount = amount
        plan.fixed_asset_id = asset.id
        plan.effects.append(lambda txn: self.assets.add_depreciation(asset.id, amount))

    def _plan_asset_disposal(self, ctx: PlanContext) -> None:
        request, plan = ctx.request, ctx.plan
        asset = self._require_asset(ctx)
        if asset.status == AssetStatus.DISPOSED and not self._replays(ctx, asset):
            raise ValidationError(f"Fixed asset '{asset.description}' is already disposed")

        outcome = disposal_outcome(asset.cost, asset.accumulated_depreciation, request.amount)
        asset_account_id = asset.asset_account_id or request.credit_account_id
        if asset_account_id is None:
            raise ValidationError(
                f"Fixed asset '{asset.description}' has no asset account to derecognize"
            )

        proceeds_account_id = None
        if outcome.proceeds > 0:
            proceeds_account_id, _ = self._resolve_pair(ctx, need_credit=False)
            if proceeds_account_id == asset_account_id:
                raise ValidationError("Debit and credit accounts must be different")
        elif plan.bank_account is not None:
            raise ValidationError("A disposal without proceeds does not move a bank account")

        accumulated = gain = loss = None
        if outcome.accumulated_depreciation > 0:
            accumulated = self.chart.ensure_well_known(
                ctx.company_id, "accumulated_depreciation", ctx.accounts
            )
        if outcome.is_gain:
            gain = self.chart.ensure_well_known(ctx.company_id, "gain_on_disposal", ctx.accounts)
        elif outcome.is_loss:
            loss = self.chart.ensure_well_known(ctx.company_id, "loss_on_disposal", ctx.accounts)

        plan.lines = disposal_lines(
            outcome,
            proceeds_account_id=proceeds_account_id,
            asset_account_id=asset_account_id,
            accumulated_account_id=accumulated.id if accumulated else None,
            gain_account_id=gain.id if gain else None,
            loss_account_id=loss.id if loss else None,
            description=request.description,
        )
        plan.total_amount = plan.base_amount = outcome.proceeds
        plan.fixed_asset_id = asset.id
        plan.effects.append(
            lambda txn: self.assets.mark_disposed(asset, request.transaction_date)
        )

    # --- Register lookups ---

    def _require_loan(self, ctx: PlanContext) -> Loan:
        if ctx.request.loan_id is None:
            raise ValidationError(f"{ctx.rule.label} postings need a loan")
        return self.loans.lock_open_loan(ctx.company_id, ctx.request.loan_id)

    def _require_asset(self, ctx: PlanContext) -> FixedAsset:
        if ctx.request.fixed_asset_id is None:
            raise ValidationError(f"{ctx.rule.label} postings need a fixed asset")
        asset = self.assets.get_asset(ctx.company_id, ctx.request.fixed_asset_id)
        if asset.status == AssetStatus.CANCELLED:
            raise ValidationError(
                f"Fixed asset '{asset.description}' has been cancelled"
            )
        return asset

    def _linked_loan(self, ctx: PlanContext) -> Loan | None:
        previous = ctx.previous
        if previous is None or previous.element != ctx.request.element:
            return None
        if previous.loan_id is None:
            return None
        return self.loans.lock_loan(ctx.company_id, previous.loan_id)

    def _linked_asset(self, ctx: PlanContext) -> FixedAsset | None:
        previous = ctx.previous
        if previous is None or previous.element != ctx.request.element:
            return None
        if previous.fixed_asset_id is None:
            return None
        return self.assets.get_asset(ctx.company_id, previous.fixed_asset_id)

    def _replays(self, ctx: PlanContext, asset: FixedAsset) -> bool:
        """True when editing a posted transaction of the same kind on this asset."""
        previous = ctx.previous
        return (
            previous is not None
            and previous.status == TransactionStatus.POSTED
            and previous.element == ctx.request.element
            and previous.fixed_asset_id == asset.id
        )

    def _new_loan_reference(self, ctx: PlanContext) -> str:
        request = ctx.request
        reference = (
            request.loan_reference
            or request.reference
            or self.loans.next_reference(request.company_id, request.transaction_date)
        )
        if self.loans.reference_taken(request.company_id, reference):
            raise ValidationError(f"Loan reference '{reference}' already exists")
        return reference

    # --- Plan validation ---

    def _check_lines(self, ctx: PlanContext) -> None:
        lines = ctx.plan.lines
        if not lines:
            raise ValidationError("Posting produced no entry lines")

        known = {account.id for account in ctx.accounts}
        for line in lines:
            if line.account_id not in known:
                raise ValidationError(
                    f"Account {line.account_id} is not an active account "
                    f"in this company's chart"
                )
            if line.debit < 0 or line.credit < 0:
                raise ValidationError("Entry amounts must not be negative")
            if (line.debit > 0) == (line.credit > 0):
                raise ValidationError(
                    "Each entry line needs exactly one of debit or credit"
                )

        debits = sum((line.debit for line in lines), ZERO)
        credits = sum((line.credit for line in lines), ZERO)
        if debits != credits:
            raise ValidationError(
                f"Entries do not balance: debits {debits}, credits {credits}"
            )

    def _check_bank(self, ctx: PlanContext) -> None:
        plan = ctx.plan
        if plan.bank_account is None:
            return
        ledger_id = ctx.bank_ledger.id
        bank_lines = [line for line in plan.lines if line.account_id == ledger_id]
        if not bank_lines:
            raise ValidationError(
                f"Bank payments must post to the bank ledger "
                f"{ctx.bank_ledger.code} on one side"
            )
        plan.bank_adjustment = sum(
            (line.debit - line.credit for line in bank_lines), ZERO
        )

    # --- Writing ---

    @contextmanager
    def _unit_of_work(self, action: str):
        """
        Run a write sequence. On a storage failure everything the
        session holds for this request is rolled back.
        """
        try:
            yield
            self.db.flush()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning("Could not %s transaction, rolled back: %s", action, e)
            raise StorageError(f"Could not {action} transaction: {e}") from e

    def _lock(self, transaction_id: int) -> Transaction:
        txn = self.db.execute(
            select(Transaction)
            .where(Transaction.id == transaction_id)
            .with_for_update()
        ).scalar_one_or_none()
        if not txn:
            raise NotFoundError(transaction_not_found(transaction_id))
        return txn

    def _apply_header(
        self, txn: Transaction, request: PostingRequest, plan: PostingPlan
    ) -> None:
        txn.transaction_date = request.transaction_date
        txn.description = request.description
        txn.reference_number = request.reference
        txn.bank_account_id = plan.bank_account.id if plan.bank_account else None
        txn.element = request.element
        txn.payment_method = plan.payment_method
        txn.total_amount = plan.total_amount
        txn.base_amount = plan.base_amount
        txn.vat_rate = plan.vat_rate
        txn.vat_amount = plan.vat_amount
        txn.vat_inclusive = request.vat_inclusive
        txn.loan_id = plan.loan_id
        txn.fixed_asset_id = plan.fixed_asset_id
        txn.locked_flow = request.locked_flow
        txn.source_document_id = request.source_document_id

    def _write(self, txn: Transaction, plan: PostingPlan) -> None:
        for line in plan.lines:
            txn.entries.append(TransactionEntry(
                account_id=line.account_id,
                debit=line.debit,
                credit=line.credit,
                description=line.description,
                status=TransactionStatus.APPROVED,
            ))
        self.db.flush()
        self._write_ledger(txn)

        if plan.bank_account is not None:
            self.banks.apply_delta(plan.bank_account.id, plan.bank_adjustment)
        txn.bank_adjustment = plan.bank_adjustment
        for effect in plan.effects:
            effect(txn)

        txn.status = TransactionStatus.POSTED
        self.db.flush()

    def _write_ledger(self, txn: Transaction) -> None:
        """Mirror the entries into the company's dated ledger."""
        self.db.add_all([
            LedgerEntry(
                company_id=txn.company_id,
                transaction_id=txn.id,
                account_id=entry.account_id,
                entry_date=txn.transaction_date,
                description=entry.description,
                debit=entry.debit,
                credit=entry.credit,
            )
            for entry in txn.entries
        ])
        self.db.flush()

    def _dropped_registers(
        self, txn: Transaction, plan: PostingPlan | None = None
    ) -> tuple[Loan | None, FixedAsset | None]:
        """
        The loan drawdown and purchased asset a posted transaction
        recorded that its replacement plan no longer carries. With no
        plan (unreconcile) both are dropped. Raises ValidationError
        when later postings depend on them.
        """
        if txn.status != TransactionStatus.POSTED:
            return None, None

        loan = asset = None
        if txn.element in DRAWDOWN_ELEMENTS and txn.loan_id is not None:
            kept = (
                plan is not None
                and plan.element in DRAWDOWN_ELEMENTS
                and plan.loan_id == txn.loan_id
            )
            if not kept:
                loan = self.loans.lock_loan(txn.company_id, txn.loan_id)
                self.loans.check_drawdown_reversible(loan, txn.total_amount)

        if (
            txn.element == AccountingElement.ASSET_PURCHASE
            and txn.fixed_asset_id is not None
        ):
            kept = (
                plan is not None
                and plan.element == AccountingElement.ASSET_PURCHASE
                and plan.fixed_asset_id == txn.fixed_asset_id
            )
            if not kept:
                asset = self.assets.get_asset(txn.company_id, txn.fixed_asset_id)
                self.assets.check_acquisition_reversible(asset)
        return loan, asset

    def _reverse(
        self,
        txn: Transaction,
        dropped_loan: Loan | None = None,
        dropped_asset: FixedAsset | None = None,
    ) -> None:
        """Undo the register adjustments a posted transaction made."""
        if txn.status != TransactionStatus.POSTED:
            return
        if txn.bank_account_id is not None and txn.bank_adjustment:
            self.banks.apply_delta(txn.bank_account_id, -txn.bank_adjustment)
        txn.bank_adjustment = ZERO

        self.loans.reverse_payments(txn.id)
        if dropped_loan is not None:
            self.loans.reverse_drawdown(dropped_loan, txn.total_amount)
        if dropped_asset is not None:
            self.assets.cancel(dropped_asset)
        if txn.fixed_asset_id is None:
            return
        if txn.element == AccountingElement.DEPRECIATION:
            self.assets.reverse_depreciation(txn.fixed_asset_id, txn.total_amount)
        elif txn.element == AccountingElement.ASSET_DISPOSAL:
            self.assets.reinstate(self.assets.get_asset(txn.company_id, txn.fixed_asset_id))

    def _clear_entries(self, txn: Transaction) -> None:
        self.db.execute(
            delete(LedgerEntry).where(LedgerEntry.transaction_id == txn.id)
        )
        txn.entries.clear()
        self.db.flush()

    def _audit(self, txn: Transaction, event_type: str) -> None:
        self.db.add(AuditLog(
            company_id=txn.company_id,
            event_type=event_type,
            details=json.dumps({
                "transaction_id": txn.id,
                "element": txn.element.value,
                "total_amount": str(txn.total_amount),
                "status": txn.status.value,
            }),
        ))

    def _looks_duplicate(
        self,
        request: PostingRequest,
        plan: PostingPlan,
        exclude_transaction_id: int | None = None,
    ) -> bool:
        return self.guard.is_duplicate(
            company_id=request.company_id,
            bank_account_id=plan.bank_account.id if plan.bank_account else None,
            transaction_date=request.transaction_date,
            amount=plan.total_amount,
            description=request.description,
            exclude_transaction_id=exclude_transaction_id,
        )

    def _result(self, txn: Transaction, duplicate: bool) -> PostingResult:
        result = PostingResult(transaction=txn, duplicate_warning=duplicate)
        if duplicate:
            message = (
                f"Transaction {txn.id} matches an existing posting on "
                f"{txn.transaction_date} for {txn.total_amount}"
            )
            result.warnings.append(DuplicateWarning(message))
            logger.warning(message)
        return result


def _pinned(side: EntrySide, requested: int | None, pinned: int) -> int:
    if requested is not None and requested != pinned:
        raise ValidationError(
            f"The {side.value.lower()} account is set by the source "
            f"document and cannot be changed"
        )
    return pinned


def _inadmissible(ctx: PlanContext, account_id: int, side: EntrySide) -> str:
    account = next((a for a in ctx.accounts if a.id == account_id), None)
    name = f"{account.code} {account.name}" if account else str(account_id)
    return (
        f"Account {name} is not valid on the {side.value.lower()} "
        f"side of {ctx.rule.label}"
    )


def _require_amount(request: PostingRequest) -> None:
    if request.amount <= 0:
        raise ValidationError("amount must be greater than zero")


def _require_loan_terms(request: PostingRequest) -> None:
    missing = [
        name for name in ("interest_rate", "term_months")
        if getattr(request, name) is None
    ]
    if missing:
        raise ValidationError(f"A new loan needs {', '.join(missing)}")
    if request.interest_rate >= 1:
        raise ValidationError(
            "interest_rate is a decimal fraction, e.g. 0.12 for 12%"
        )
