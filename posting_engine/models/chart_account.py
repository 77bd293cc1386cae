"""
Chart of accounts model.

Every ledger a posting can touch is a chart account. The
posting engine mostly reads these rows; it only inserts one
when a well-known ledger (VAT, COGS, gain/loss) is missing.
"""

from datetime import datetime

from sqlalchemy import (
    String, Boolean, DateTime, ForeignKey,
    UniqueConstraint, Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from posting_engine.models.base import Base
from posting_engine.models.enums import AccountType


class ChartAccount(Base):
    """
    A single account in a company's chart of accounts.

    Accounts with postings are never deleted, only
    deactivated via is_active=False.
    """

    __tablename__ = "chart_of_accounts"
    __table_args__ = (
        UniqueConstraint("company_id", "code", name="uq_chart_company_code"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    company_id: Mapped[int] = mapped_column(
        ForeignKey("companies.id"), nullable=False, index=True
    )
    code: Mapped[str] = mapped_column(String(20), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    account_type: Mapped[AccountType] = mapped_column(
        SAEnum(AccountType, name="account_type_enum"),
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    company: Mapped["Company"] = relationship(back_populates="accounts")

    def __repr__(self) -> str:
        return f"<ChartAccount {self.code} {self.name} ({self.account_type.value})>"
