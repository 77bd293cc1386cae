"""
Error taxonomy for the posting engine.

Domain errors keep ValueError compatibility so callers that
already catch ValueError keep working. Storage failures
derive from RuntimeError instead.
"""


class DomainError(ValueError):
    """Base class for errors the caller can correct and resubmit."""


class ValidationError(DomainError):
    """Input rejected before anything was written."""


class NotFoundError(DomainError):
    """A referenced row does not exist for this company."""


class ReferenceDataMissing(DomainError):
    """A well-known ledger is absent and could not be created."""


class StorageError(RuntimeError):
    """A write in the posting sequence failed and was rolled back."""


class DuplicateWarning(UserWarning):
    """
    Advisory only. Returned alongside a successful posting,
    never raised.
    """


def transaction_not_found(transaction_id: int) -> str:
    return f"Transaction {transaction_id} not found"
