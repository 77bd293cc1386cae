"""Business logic services."""

from posting_engine.services.chart_service import ChartService
from posting_engine.services.bank_service import BankService
from posting_engine.services.loan_service import LoanService
from posting_engine.services.asset_service import AssetService
from posting_engine.services.posting_service import PostingService, PostingResult

__all__ = [
    "ChartService",
    "BankService",
    "LoanService",
    "AssetService",
    "PostingService",
    "PostingResult",
]
