"""
Pydantic schemas for companies, the chart of accounts and
bank accounts.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from posting_engine.models.enums import AccountType


class CompanyCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)


class CompanyResponse(BaseModel):
    id: int
    name: str
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class ChartAccountCreate(BaseModel):
    """Request to add an account to a company's chart."""
    code: str = Field(min_length=1, max_length=20)
    name: str = Field(min_length=1, max_length=100)
    account_type: AccountType


class ChartAccountResponse(BaseModel):
    id: int
    company_id: int
    code: str
    name: str
    account_type: AccountType
    is_active: bool

    model_config = {"from_attributes": True}


class BankAccountCreate(BaseModel):
    company_id: int
    account_name: str = Field(min_length=1, max_length=100)
    bank_name: str = Field(min_length=1, max_length=100)
    account_number: str = Field(min_length=1, max_length=50)
    ledger_account_id: int | None = None
    opening_balance: Decimal = Field(default=Decimal("0"))


class BankAccountResponse(BaseModel):
    id: int
    company_id: int
    account_name: str
    bank_name: str
    account_number: str
    ledger_account_id: int | None
    current_balance: Decimal

    model_config = {"from_attributes": True}
