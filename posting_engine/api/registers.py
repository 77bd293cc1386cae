"""
Loan and fixed-asset register endpoints.

Read-only previews: a repayment quote for prospective loan terms,
and the next depreciation charge or disposal outcome for an asset.
"""

from dataclasses import asdict
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from posting_engine.errors import DomainError, NotFoundError
from posting_engine.models.base import get_db
from posting_engine.schemas.register import (
    DepreciationPreviewResponse,
    DisposalPreviewResponse,
    LoanQuoteResponse,
    LoanResponse,
    ScheduleRow,
)
from posting_engine.services.asset_lifecycle import disposal_outcome, monthly_depreciation
from posting_engine.services.asset_service import AssetService
from posting_engine.services.classifier import loan_term_for
from posting_engine.services.loan_amortizer import (
    MONTHS_PER_YEAR,
    amortization_schedule,
    monthly_interest,
    monthly_repayment,
)
from posting_engine.services.loan_service import LoanService
from posting_engine.services.vat_calculator import to_money

router = APIRouter(tags=["Registers"])


@router.get("/loans/quote", response_model=LoanQuoteResponse)
def quote_loan(
    principal: Decimal = Query(gt=0),
    annual_rate: Decimal = Query(ge=0, lt=1),
    term_months: int = Query(gt=0),
    include_schedule: bool = False,
):
    """Monthly repayment for prospective terms. The rate is a decimal fraction."""
    try:
        repayment = monthly_repayment(principal, annual_rate / MONTHS_PER_YEAR, term_months)
    except DomainError as e:
        raise HTTPException(status_code=400, detail=str(e))

    schedule = []
    if include_schedule:
        schedule = [
            ScheduleRow(**asdict(row))
            for row in amortization_schedule(principal, annual_rate, term_months)
        ]
    return LoanQuoteResponse(
        principal=to_money(principal),
        annual_rate=annual_rate,
        term_months=term_months,
        loan_type=loan_term_for(term_months),
        monthly_repayment=repayment,
        first_month_interest=monthly_interest(principal, annual_rate),
        schedule=schedule,
    )


@router.get("/companies/{company_id}/loans/{loan_id}", response_model=LoanResponse)
def get_loan(
    company_id: int,
    loan_id: int,
    db: Session = Depends(get_db),
):
    try:
        return LoanService(db).get_loan(company_id, loan_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get(
    "/companies/{company_id}/assets/{asset_id}/depreciation",
    response_model=DepreciationPreviewResponse,
)
def preview_depreciation(
    company_id: int,
    asset_id: int,
    db: Session = Depends(get_db),
):
    try:
        asset = AssetService(db).get_asset(company_id, asset_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return DepreciationPreviewResponse(
        fixed_asset_id=asset.id,
        status=asset.status,
        cost=asset.cost,
        accumulated_depreciation=asset.accumulated_depreciation,
        net_book_value=asset.net_book_value,
        monthly_depreciation=monthly_depreciation(
            asset.cost, asset.useful_life_years,
            asset.accumulated_depreciation, asset.depreciation_method,
        ),
    )


@router.get(
    "/companies/{company_id}/assets/{asset_id}/disposal-preview",
    response_model=DisposalPreviewResponse,
)
def preview_disposal(
    company_id: int,
    asset_id: int,
    proceeds: Decimal = Query(ge=0),
    db: Session = Depends(get_db),
):
    try:
        asset = AssetService(db).get_asset(company_id, asset_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    outcome = disposal_outcome(asset.cost, asset.accumulated_depreciation, proceeds)
    return DisposalPreviewResponse(
        fixed_asset_id=asset.id,
        proceeds=outcome.proceeds,
        net_book_value=outcome.net_book_value,
        gain_or_loss=outcome.gain_or_loss,
    )
