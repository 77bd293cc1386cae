"""
Loan and loan payment models.

A loan is created when a loan is received (or an asset is bought
with loan funding). Repayments reduce the outstanding balance;
once it reaches zero the loan is completed.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    String, Date, DateTime, Numeric, Integer, ForeignKey,
    UniqueConstraint, Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from posting_engine.models.base import Base
from posting_engine.models.enums import LoanStatus, LoanTerm


class Loan(Base):
    __tablename__ = "loans"
    __table_args__ = (
        UniqueConstraint("company_id", "reference", name="uq_loan_company_reference"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    company_id: Mapped[int] = mapped_column(
        ForeignKey("companies.id"), nullable=False, index=True
    )
    reference: Mapped[str] = mapped_column(String(50), nullable=False)
    loan_type: Mapped[LoanTerm] = mapped_column(
        SAEnum(LoanTerm, name="loan_term_enum"), nullable=False
    )
    principal: Mapped[Decimal] = mapped_column(Numeric(19, 4), nullable=False)
    # Annual rate as a decimal fraction: 0.12 is 12%.
    interest_rate: Mapped[Decimal] = mapped_column(
        Numeric(9, 6), nullable=False
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    term_months: Mapped[int] = mapped_column(Integer, nullable=False)
    monthly_repayment: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False
    )
    outstanding_balance: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False
    )
    status: Mapped[LoanStatus] = mapped_column(
        SAEnum(LoanStatus, name="loan_status_enum", create_constraint=True),
        nullable=False,
        default=LoanStatus.ACTIVE,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    payments: Mapped[list["LoanPayment"]] = relationship(
        back_populates="loan"
    )

    def __repr__(self) -> str:
        return (
            f"<Loan {self.reference} outstanding={self.outstanding_balance} "
            f"({self.status.value})>"
        )


class LoanPayment(Base):
    """One repayment or interest posting against a loan."""

    __tablename__ = "loan_payments"

    id: Mapped[int] = mapped_column(primary_key=True)
    loan_id: Mapped[int] = mapped_column(
        ForeignKey("loans.id"), nullable=False, index=True
    )
    transaction_id: Mapped[int] = mapped_column(
        ForeignKey("transactions.id"), nullable=False, index=True
    )
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(19, 4), nullable=False)
    principal_component: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False, default=Decimal("0")
    )
    interest_component: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False, default=Decimal("0")
    )

    loan: Mapped["Loan"] = relationship(back_populates="payments")
