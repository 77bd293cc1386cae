"""
Pydantic schemas for posting transactions.

A PostingRequest is everything the caller expresses: the
accounting element, the money, the date and description, and
whichever accounts, split lines, loan or asset selectors that
element needs. Shape checks live here; business rules live in
the PostingService.
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from posting_engine.models.enums import (
    AccountingElement,
    AccountType,
    DepreciationMethod,
    FundingSource,
    LockedFlow,
    PaymentMethod,
    TransactionStatus,
)


# --- Request Schemas ---

class SplitLineInput(BaseModel):
    """One sub-line of a split posting."""
    account_id: int = Field(ge=0)
    amount: Decimal = Field(gt=0, decimal_places=2)
    vat_rate: Decimal = Field(default=Decimal("0"), ge=0)
    description: str | None = Field(default=None, max_length=500)


class PostingRequest(BaseModel):
    company_id: int
    element: AccountingElement
    amount: Decimal = Field(ge=0, decimal_places=2)
    vat_rate: Decimal = Field(default=Decimal("0"), ge=0)
    vat_inclusive: bool = True
    transaction_date: date
    description: str = Field(min_length=1, max_length=500)
    reference: str | None = Field(default=None, max_length=50)
    payment_method: PaymentMethod | None = None
    bank_account_id: int | None = None
    debit_account_id: int | None = None
    credit_account_id: int | None = None
    split_lines: list[SplitLineInput] | None = None

    # Loans
    loan_id: int | None = None
    loan_reference: str | None = Field(default=None, max_length=50)
    interest_rate: Decimal | None = Field(default=None, ge=0)
    term_months: int | None = Field(default=None, gt=0)
    interest_component: Decimal | None = Field(default=None, ge=0)

    # Fixed assets
    fixed_asset_id: int | None = None
    useful_life_years: int | None = Field(default=None, gt=0)
    depreciation_method: DepreciationMethod = DepreciationMethod.STRAIGHT_LINE
    funding_source: FundingSource | None = None

    # Locked flows
    locked_flow: LockedFlow | None = None
    source_document_id: int | None = None

    @field_validator("description")
    @classmethod
    def description_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("description must not be blank")
        return v.strip()

    @field_validator("split_lines")
    @classmethod
    def split_lines_not_empty(cls, v):
        if v is not None and len(v) == 0:
            return None
        return v


class DuplicateCheckRequest(BaseModel):
    company_id: int
    bank_account_id: int | None = None
    transaction_date: date
    amount: Decimal = Field(ge=0)
    description: str = Field(min_length=1, max_length=500)
    exclude_transaction_id: int | None = None


# --- Response Schemas ---

class TransactionEntryResponse(BaseModel):
    id: int
    account_id: int
    debit: Decimal
    credit: Decimal
    description: str
    status: TransactionStatus

    model_config = {"from_attributes": True}


class TransactionResponse(BaseModel):
    id: int
    company_id: int
    transaction_date: date
    description: str
    reference_number: str | None
    bank_account_id: int | None
    element: AccountingElement
    status: TransactionStatus
    total_amount: Decimal
    base_amount: Decimal
    vat_rate: Decimal
    vat_amount: Decimal
    vat_inclusive: bool
    loan_id: int | None
    fixed_asset_id: int | None
    locked_flow: LockedFlow | None
    created_at: datetime
    updated_at: datetime
    entries: list[TransactionEntryResponse]

    model_config = {"from_attributes": True}


class PostingResponse(BaseModel):
    """Response after a post or edit."""
    transaction_id: int
    status: TransactionStatus
    total_amount: Decimal
    duplicate_warning: bool
    warnings: list[str]
    entries: list[TransactionEntryResponse]


class DuplicateCheckResponse(BaseModel):
    is_duplicate: bool


class ClassificationAccount(BaseModel):
    id: int
    code: str
    name: str
    account_type: AccountType

    model_config = {"from_attributes": True}


class ClassificationResponse(BaseModel):
    element: AccountingElement
    debit_candidates: list[ClassificationAccount]
    credit_candidates: list[ClassificationAccount]
    default_debit_id: int | None
    default_credit_id: int | None
