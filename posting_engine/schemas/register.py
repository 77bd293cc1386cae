"""
Pydantic schemas for the loan and fixed-asset registers.
"""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel

from posting_engine.models.enums import AssetStatus, LoanStatus, LoanTerm


class LoanResponse(BaseModel):
    id: int
    company_id: int
    reference: str
    loan_type: LoanTerm
    principal: Decimal
    interest_rate: Decimal
    start_date: date
    term_months: int
    monthly_repayment: Decimal
    outstanding_balance: Decimal
    status: LoanStatus

    model_config = {"from_attributes": True}


class ScheduleRow(BaseModel):
    period: int
    payment: Decimal
    interest: Decimal
    principal: Decimal
    balance: Decimal


class LoanQuoteResponse(BaseModel):
    principal: Decimal
    annual_rate: Decimal
    term_months: int
    loan_type: LoanTerm
    monthly_repayment: Decimal
    first_month_interest: Decimal
    schedule: list[ScheduleRow]


class DepreciationPreviewResponse(BaseModel):
    fixed_asset_id: int
    status: AssetStatus
    cost: Decimal
    accumulated_depreciation: Decimal
    net_book_value: Decimal
    monthly_depreciation: Decimal


class DisposalPreviewResponse(BaseModel):
    fixed_asset_id: int
    proceeds: Decimal
    net_book_value: Decimal
    gain_or_loss: Decimal
