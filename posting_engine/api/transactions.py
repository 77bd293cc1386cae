"""
Transaction posting endpoints.

Each request is one unit of work: the PostingService validates
and writes, and this layer commits on success or rolls back on
any error. Validation errors are 400s, unknown ids 404s and
storage failures 503s, since those are worth retrying.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from posting_engine.errors import DomainError, NotFoundError, StorageError
from posting_engine.models.base import get_db
from posting_engine.schemas.transaction import (
    DuplicateCheckRequest,
    DuplicateCheckResponse,
    PostingRequest,
    PostingResponse,
    TransactionEntryResponse,
    TransactionResponse,
)
from posting_engine.services.posting_service import PostingResult, PostingService

router = APIRouter(prefix="/transactions", tags=["Transactions"])


def _posting_response(result: PostingResult) -> PostingResponse:
    txn = result.transaction
    return PostingResponse(
        transaction_id=txn.id,
        status=txn.status,
        total_amount=txn.total_amount,
        duplicate_warning=result.duplicate_warning,
        warnings=[str(w) for w in result.warnings],
        entries=[TransactionEntryResponse.model_validate(e) for e in txn.entries],
    )


def _fail(db: Session, error: Exception) -> HTTPException:
    db.rollback()
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, StorageError):
        return HTTPException(status_code=503, detail=str(error))
    return HTTPException(status_code=400, detail=str(error))


@router.post("", response_model=PostingResponse, status_code=201)
def post_transaction(
    request: PostingRequest,
    db: Session = Depends(get_db),
):
    """
    Post a transaction.

    A duplicate warning does not block the posting; it is
    returned alongside the new transaction.
    """
    service = PostingService(db)
    try:
        result = service.post(request)
        db.commit()
    except (DomainError, StorageError) as e:
        raise _fail(db, e)
    return _posting_response(result)


@router.post("/duplicate-check", response_model=DuplicateCheckResponse)
def check_duplicate(
    request: DuplicateCheckRequest,
    db: Session = Depends(get_db),
):
    service = PostingService(db)
    return DuplicateCheckResponse(is_duplicate=service.check_duplicate(request))


@router.get("/{transaction_id}", response_model=TransactionResponse)
def get_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
):
    service = PostingService(db)
    try:
        return service.get_transaction(transaction_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.put("/{transaction_id}", response_model=PostingResponse)
def edit_transaction(
    transaction_id: int,
    request: PostingRequest,
    db: Session = Depends(get_db),
):
    """Replace a transaction's entries with the ones the new input produces."""
    service = PostingService(db)
    try:
        result = service.edit(transaction_id, request)
        db.commit()
    except (DomainError, StorageError) as e:
        raise _fail(db, e)
    return _posting_response(result)


@router.post("/{transaction_id}/unreconcile", response_model=TransactionResponse)
def unreconcile_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
):
    """Revert a posted transaction to pending and remove its entries."""
    service = PostingService(db)
    try:
        txn = service.unreconcile(transaction_id)
        db.commit()
    except (DomainError, StorageError) as e:
        raise _fail(db, e)
    return txn
