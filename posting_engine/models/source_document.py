"""
Upstream business documents.

Invoices and purchase orders are owned by other parts of the
application. The posting engine only reads them, to pin the
accounts of a locked flow and to cost the products sold.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import (
    String, Date, Numeric, Integer, ForeignKey,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from posting_engine.models.base import Base
from posting_engine.models.enums import DocumentKind, FundingSource, ItemType


class Product(Base):
    __tablename__ = "products"

    id: Mapped[int] = mapped_column(primary_key=True)
    company_id: Mapped[int] = mapped_column(
        ForeignKey("companies.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    cost_price: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False, default=Decimal("0")
    )


class SourceDocument(Base):
    __tablename__ = "source_documents"

    id: Mapped[int] = mapped_column(primary_key=True)
    company_id: Mapped[int] = mapped_column(
        ForeignKey("companies.id"), nullable=False, index=True
    )
    kind: Mapped[DocumentKind] = mapped_column(
        SAEnum(DocumentKind, name="document_kind_enum"), nullable=False
    )
    number: Mapped[str] = mapped_column(String(50), nullable=False)
    document_date: Mapped[date] = mapped_column(Date, nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False, default=Decimal("0")
    )
    tax_amount: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False, default=Decimal("0")
    )
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False, default=Decimal("0")
    )
    funding_source: Mapped[FundingSource | None] = mapped_column(
        SAEnum(FundingSource, name="funding_source_enum"), nullable=True
    )
    loan_term_months: Mapped[int | None] = mapped_column(
        Integer, nullable=True
    )

    lines: Mapped[list["DocumentLine"]] = relationship(
        back_populates="document", order_by="DocumentLine.id"
    )

    def __repr__(self) -> str:
        return f"<SourceDocument {self.kind.value} {self.number}>"


class DocumentLine(Base):
    __tablename__ = "document_lines"

    id: Mapped[int] = mapped_column(primary_key=True)
    document_id: Mapped[int] = mapped_column(
        ForeignKey("source_documents.id"), nullable=False, index=True
    )
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False, default=Decimal("1")
    )
    unit_price: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False, default=Decimal("0")
    )
    item_type: Mapped[ItemType] = mapped_column(
        SAEnum(ItemType, name="item_type_enum"),
        nullable=False,
        default=ItemType.SERVICE,
    )
    product_id: Mapped[int | None] = mapped_column(
        ForeignKey("products.id"), nullable=True
    )

    document: Mapped["SourceDocument"] = relationship(back_populates="lines")
    product: Mapped["Product | None"] = relationship()
