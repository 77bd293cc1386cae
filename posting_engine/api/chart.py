"""
Company, chart of accounts and bank account endpoints.

The API layer is thin: it maps errors to status codes and owns
the commit. All business rules live in the services.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from posting_engine.errors import DomainError, NotFoundError
from posting_engine.models.base import get_db
from posting_engine.models.enums import AccountingElement, LoanTerm, PaymentMethod
from posting_engine.schemas.chart import (
    BankAccountCreate,
    BankAccountResponse,
    ChartAccountCreate,
    ChartAccountResponse,
    CompanyCreate,
    CompanyResponse,
)
from posting_engine.schemas.transaction import ClassificationResponse
from posting_engine.services.bank_service import BankService
from posting_engine.services.chart_service import ChartService
from posting_engine.services.classifier import classify

router = APIRouter(tags=["Chart of Accounts"])


@router.post("/companies", response_model=CompanyResponse, status_code=201)
def create_company(
    request: CompanyCreate,
    db: Session = Depends(get_db),
):
    service = ChartService(db)
    company = service.create_company(request)
    db.commit()
    return company


@router.post(
    "/companies/{company_id}/chart/seed",
    response_model=list[ChartAccountResponse],
    status_code=201,
)
def seed_chart(
    company_id: int,
    db: Session = Depends(get_db),
):
    """Create the default chart of accounts, skipping codes already in use."""
    service = ChartService(db)
    try:
        service.seed_default_chart(company_id)
        db.commit()
    except NotFoundError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))
    return service.list_accounts(company_id)


@router.get(
    "/companies/{company_id}/chart",
    response_model=list[ChartAccountResponse],
)
def list_chart(
    company_id: int,
    db: Session = Depends(get_db),
):
    service = ChartService(db)
    try:
        service.get_company(company_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return service.list_accounts(company_id, active_only=False)


@router.post(
    "/companies/{company_id}/chart",
    response_model=ChartAccountResponse,
    status_code=201,
)
def create_chart_account(
    company_id: int,
    request: ChartAccountCreate,
    db: Session = Depends(get_db),
):
    service = ChartService(db)
    try:
        account = service.create_account(company_id, request)
        db.commit()
        return account
    except NotFoundError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))
    except DomainError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))


@router.get(
    "/companies/{company_id}/classification/{element}",
    response_model=ClassificationResponse,
)
def classify_element(
    company_id: int,
    element: AccountingElement,
    payment_method: PaymentMethod | None = None,
    loan_term: LoanTerm | None = None,
    debit_account_id: int | None = None,
    credit_account_id: int | None = None,
    db: Session = Depends(get_db),
):
    """
    Admissible debit and credit accounts for an element, with
    the accounts that would be picked by default.
    """
    service = ChartService(db)
    try:
        service.get_company(company_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    classification = classify(
        element,
        service.list_accounts(company_id),
        chosen_debit_id=debit_account_id,
        chosen_credit_id=credit_account_id,
        payment_method=payment_method,
        loan_term=loan_term,
    )
    return ClassificationResponse(
        element=classification.element,
        debit_candidates=classification.debit_candidates,
        credit_candidates=classification.credit_candidates,
        default_debit_id=classification.default_debit_id,
        default_credit_id=classification.default_credit_id,
    )


@router.post("/bank-accounts", response_model=BankAccountResponse, status_code=201)
def create_bank_account(
    request: BankAccountCreate,
    db: Session = Depends(get_db),
):
    chart = ChartService(db)
    service = BankService(db)
    try:
        chart.get_company(request.company_id)
        bank_account = service.create_bank_account(request)
        db.commit()
        return bank_account
    except NotFoundError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))
    except DomainError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
