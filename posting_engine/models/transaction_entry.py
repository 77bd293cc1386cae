"""
Transaction entry model.

One line of a posting. Exactly one of debit or credit is
non-zero. For a given transaction the debits sum to the
credits; the PostingService enforces that before anything
is written.
"""

from decimal import Decimal

from sqlalchemy import (
    String, Numeric, ForeignKey, CheckConstraint,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from posting_engine.models.base import Base
from posting_engine.models.enums import TransactionStatus


class TransactionEntry(Base):
    __tablename__ = "transaction_entries"
    __table_args__ = (
        CheckConstraint("debit >= 0", name="ck_entry_debit_non_negative"),
        CheckConstraint("credit >= 0", name="ck_entry_credit_non_negative"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    transaction_id: Mapped[int] = mapped_column(
        ForeignKey("transactions.id"), nullable=False, index=True
    )
    account_id: Mapped[int] = mapped_column(
        ForeignKey("chart_of_accounts.id"), nullable=False, index=True
    )
    debit: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False, default=Decimal("0")
    )
    credit: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False, default=Decimal("0")
    )
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    status: Mapped[TransactionStatus] = mapped_column(
        SAEnum(TransactionStatus, name="transaction_status_enum"),
        nullable=False,
        default=TransactionStatus.APPROVED,
    )

    transaction: Mapped["Transaction"] = relationship(back_populates="entries")
    account: Mapped["ChartAccount"] = relationship()

    def __repr__(self) -> str:
        return (
            f"<TransactionEntry acct={self.account_id} "
            f"Dr {self.debit} Cr {self.credit}>"
        )
