"""
Fixed asset model.

Cost is recorded net of VAT at acquisition. Accumulated
depreciation grows with each depreciation posting and never
exceeds cost.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    String, Date, DateTime, Numeric, Integer, ForeignKey,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column

from posting_engine.models.base import Base
from posting_engine.models.enums import AssetStatus, DepreciationMethod


class FixedAsset(Base):
    __tablename__ = "fixed_assets"

    id: Mapped[int] = mapped_column(primary_key=True)
    company_id: Mapped[int] = mapped_column(
        ForeignKey("companies.id"), nullable=False, index=True
    )
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    cost: Mapped[Decimal] = mapped_column(Numeric(19, 4), nullable=False)
    purchase_date: Mapped[date] = mapped_column(Date, nullable=False)
    useful_life_years: Mapped[int] = mapped_column(Integer, nullable=False)
    depreciation_method: Mapped[DepreciationMethod] = mapped_column(
        SAEnum(DepreciationMethod, name="depreciation_method_enum"),
        nullable=False,
        default=DepreciationMethod.STRAIGHT_LINE,
    )
    accumulated_depreciation: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False, default=Decimal("0")
    )
    asset_account_id: Mapped[int | None] = mapped_column(
        ForeignKey("chart_of_accounts.id"), nullable=True
    )
    status: Mapped[AssetStatus] = mapped_column(
        SAEnum(AssetStatus, name="asset_status_enum", create_constraint=True),
        nullable=False,
        default=AssetStatus.ACTIVE,
    )
    disposal_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    @property
    def net_book_value(self) -> Decimal:
        return self.cost - self.accumulated_depreciation

    def __repr__(self) -> str:
        return (
            f"<FixedAsset {self.description} cost={self.cost} "
            f"({self.status.value})>"
        )
