"""
Transaction model.

The header of a posting: what the user intended (the accounting
element), the amounts involved, and its lifecycle status. The
balanced entry lines underneath are owned by the header and are
only ever created, replaced or deleted together with it.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    String, Date, DateTime, Numeric, Boolean, ForeignKey,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from posting_engine.models.base import Base
from posting_engine.models.enums import (
    AccountingElement,
    TransactionStatus,
    PaymentMethod,
    LockedFlow,
)


class Transaction(Base):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(primary_key=True)
    company_id: Mapped[int] = mapped_column(
        ForeignKey("companies.id"), nullable=False, index=True
    )
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    reference_number: Mapped[str | None] = mapped_column(
        String(50), nullable=True
    )
    bank_account_id: Mapped[int | None] = mapped_column(
        ForeignKey("bank_accounts.id"), nullable=True, index=True
    )
    element: Mapped[AccountingElement] = mapped_column(
        SAEnum(
            AccountingElement,
            name="accounting_element_enum",
            create_constraint=True,
        ),
        nullable=False,
    )
    payment_method: Mapped[PaymentMethod | None] = mapped_column(
        SAEnum(PaymentMethod, name="payment_method_enum"),
        nullable=True,
    )
    status: Mapped[TransactionStatus] = mapped_column(
        SAEnum(
            TransactionStatus,
            name="transaction_status_enum",
            create_constraint=True,
        ),
        nullable=False,
        default=TransactionStatus.PENDING,
    )
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False
    )
    base_amount: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False
    )
    vat_rate: Mapped[Decimal] = mapped_column(
        Numeric(7, 4), nullable=False, default=Decimal("0")
    )
    vat_amount: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False, default=Decimal("0")
    )
    vat_inclusive: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    # Signed amount applied to the bank balance, kept so it can be reversed.
    bank_adjustment: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False, default=Decimal("0")
    )
    loan_id: Mapped[int | None] = mapped_column(
        ForeignKey("loans.id"), nullable=True
    )
    fixed_asset_id: Mapped[int | None] = mapped_column(
        ForeignKey("fixed_assets.id"), nullable=True
    )
    locked_flow: Mapped[LockedFlow | None] = mapped_column(
        SAEnum(LockedFlow, name="locked_flow_enum"),
        nullable=True,
    )
    source_document_id: Mapped[int | None] = mapped_column(
        ForeignKey("source_documents.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    entries: Mapped[list["TransactionEntry"]] = relationship(
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="TransactionEntry.id",
    )
    bank_account: Mapped["BankAccount | None"] = relationship()

    def __repr__(self) -> str:
        return (
            f"<Transaction {self.id} {self.element.value} "
            f"{self.total_amount} ({self.status.value})>"
        )
