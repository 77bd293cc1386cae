"""
Company model.

Every account, transaction, loan and asset belongs to exactly
one company. Account codes and loan references are unique
within a company, not globally.
"""

from datetime import datetime

from sqlalchemy import String, Boolean, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from posting_engine.models.base import Base


class Company(Base):
    __tablename__ = "companies"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    accounts: Mapped[list["ChartAccount"]] = relationship(
        back_populates="company"
    )

    def __repr__(self) -> str:
        return f"<Company {self.name}>"
