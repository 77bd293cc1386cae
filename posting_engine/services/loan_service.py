"""
Loan register service.

Creates loans, records repayments against them and enforces the
one-installment-per-month rule. Postings load their loan with a
row lock held until commit, and outstanding balances are moved
with single UPDATE statements.
"""

import calendar
import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import select, update, func
from sqlalchemy.orm import Session

from posting_engine.errors import NotFoundError, ValidationError
from posting_engine.models.enums import LoanStatus
from posting_engine.models.loan import Loan, LoanPayment
from posting_engine.services.classifier import loan_term_for
from posting_engine.services.loan_amortizer import MONTHS_PER_YEAR, monthly_repayment
from posting_engine.services.vat_calculator import ZERO, to_money

logger = logging.getLogger(__name__)


class LoanService:

    def __init__(self, db: Session):
        self.db = db

    def get_loan(self, company_id: int, loan_id: int) -> Loan:
        loan = self.db.get(Loan, loan_id)
        if not loan or loan.company_id != company_id:
            raise NotFoundError(f"Loan {loan_id} not found")
        return loan

    def lock_loan(self, company_id: int, loan_id: int) -> Loan:
        """
        Load a loan for a posting that will move its balance. The row
        stays locked until the caller commits, so the month guard and
        the outstanding balance checks see every earlier posting.
        """
        loan = self.db.execute(
            select(Loan)
            .where(Loan.id == loan_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if not loan or loan.company_id != company_id:
            raise NotFoundError(f"Loan {loan_id} not found")
        return loan

    def lock_open_loan(self, company_id: int, loan_id: int) -> Loan:
        loan = self.lock_loan(company_id, loan_id)
        if loan.status == LoanStatus.CANCELLED:
            raise ValidationError(f"Loan {loan.reference} has been cancelled")
        return loan

    def reference_taken(self, company_id: int, reference: str) -> bool:
        return self.db.execute(
            select(Loan.id).where(
                Loan.company_id == company_id,
                Loan.reference == reference,
            )
        ).first() is not None

    def next_reference(self, company_id: int, on_date: date) -> str:
        count = self.db.execute(
            select(func.count(Loan.id)).where(Loan.company_id == company_id)
        ).scalar_one()
        return f"LN-{on_date:%Y%m%d}-{count + 1:03d}"

    def create_loan(
        self,
        company_id: int,
        reference: str,
        principal,
        interest_rate,
        term_months: int,
        start_date: date,
    ) -> Loan:
        if self.reference_taken(company_id, reference):
            raise ValidationError(f"Loan reference '{reference}' already exists")

        principal = to_money(principal)
        rate = Decimal(str(interest_rate))
        loan = Loan(
            company_id=company_id,
            reference=reference,
            loan_type=loan_term_for(term_months),
            principal=principal,
            interest_rate=rate,
            start_date=start_date,
            term_months=term_months,
            monthly_repayment=monthly_repayment(
                principal, rate / MONTHS_PER_YEAR, term_months
            ),
            outstanding_balance=principal,
            status=LoanStatus.ACTIVE,
        )
        self.db.add(loan)
        self.db.flush()
        logger.info(
            "Created loan %s for company %s: principal=%s rate=%s term=%d",
            reference, company_id, principal, rate, term_months,
        )
        return loan

    def adjust_principal(self, loan: Loan, delta) -> None:
        """
        Move a loan's principal and outstanding balance together,
        after a drawdown or an edit of the posting that opened it.
        """
        delta = to_money(delta)
        if delta == 0:
            return
        loan.principal = to_money(loan.principal) + delta
        loan.monthly_repayment = monthly_repayment(
            loan.principal, loan.interest_rate / MONTHS_PER_YEAR, loan.term_months
        )
        self.db.flush()
        self._move_balance(loan.id, delta)

    def check_drawdown_reversible(self, loan: Loan, amount) -> None:
        """
        Raise ValidationError if taking `amount` back off the loan
        would leave less than it has already been repaid.
        """
        if to_money(amount) > to_money(loan.outstanding_balance):
            raise ValidationError(
                f"Loan {loan.reference} has repayments against it; "
                f"only {to_money(loan.outstanding_balance)} of its principal "
                f"can be reversed"
            )

    def reverse_drawdown(self, loan: Loan, amount) -> None:
        """
        Take a drawdown back off a loan. A loan left with no
        principal is cancelled.
        """
        self.adjust_principal(loan, -to_money(amount))
        if to_money(loan.principal) <= 0:
            loan.status = LoanStatus.CANCELLED
            self.db.flush()
            logger.info("Cancelled loan %s", loan.reference)

    def principal_recorded(self, transaction_id: int, loan_id: int) -> Decimal:
        total = self.db.execute(
            select(func.coalesce(func.sum(LoanPayment.principal_component), 0)).where(
                LoanPayment.transaction_id == transaction_id,
                LoanPayment.loan_id == loan_id,
            )
        ).scalar_one()
        return to_money(total)

    def check_period_available(
        self,
        loan: Loan,
        payment_date: date,
        principal_bearing: bool,
        interest_bearing: bool,
        exclude_transaction_id: int | None = None,
    ) -> None:
        """
        Raise ValidationError if the calendar month already holds
        a principal-bearing (or interest-bearing) installment for
        this loan.
        """
        first = payment_date.replace(day=1)
        last = payment_date.replace(
            day=calendar.monthrange(payment_date.year, payment_date.month)[1]
        )
        query = select(LoanPayment).where(
            LoanPayment.loan_id == loan.id,
            LoanPayment.payment_date.between(first, last),
        )
        if exclude_transaction_id is not None:
            query = query.where(LoanPayment.transaction_id != exclude_transaction_id)
        existing = self.db.execute(query).scalars().all()

        if principal_bearing and any(p.principal_component > 0 for p in existing):
            raise ValidationError(
                f"Loan {loan.reference} already has a repayment "
                f"recorded for {payment_date:%B %Y}"
            )
        if interest_bearing and any(p.interest_component > 0 for p in existing):
            raise ValidationError(
                f"Loan {loan.reference} already has interest "
                f"recorded for {payment_date:%B %Y}"
            )

    def record_payment(
        self,
        loan: Loan,
        transaction_id: int,
        payment_date: date,
        principal,
        interest,
    ) -> LoanPayment:
        principal = to_money(principal)
        interest = to_money(interest)
        payment = LoanPayment(
            loan_id=loan.id,
            transaction_id=transaction_id,
            payment_date=payment_date,
            amount=principal + interest,
            principal_component=principal,
            interest_component=interest,
        )
        self.db.add(payment)
        self.db.flush()
        if principal > 0:
            self._move_balance(loan.id, -principal)
        return payment

    def reverse_payments(self, transaction_id: int) -> None:
        """Undo every installment a transaction recorded."""
        payments = self.db.execute(
            select(LoanPayment).where(LoanPayment.transaction_id == transaction_id)
        ).scalars().all()
        for payment in payments:
            if payment.principal_component > 0:
                self._move_balance(payment.loan_id, payment.principal_component)
            self.db.delete(payment)
        self.db.flush()

    def _move_balance(self, loan_id: int, delta: Decimal) -> None:
        self.db.execute(
            update(Loan)
            .where(Loan.id == loan_id)
            .values(outstanding_balance=Loan.outstanding_balance + delta)
            .execution_options(synchronize_session="fetch")
        )
        # Status follows the balance in both directions.
        self.db.execute(
            update(Loan)
            .where(Loan.id == loan_id, Loan.outstanding_balance <= ZERO)
            .values(outstanding_balance=ZERO, status=LoanStatus.COMPLETED)
            .execution_options(synchronize_session="fetch")
        )
        self.db.execute(
            update(Loan)
            .where(Loan.id == loan_id, Loan.outstanding_balance > ZERO)
            .values(status=LoanStatus.ACTIVE)
            .execution_options(synchronize_session="fetch")
        )
