"""
Locked-flow resolver.

When a posting comes from an upstream document (an invoice being
issued or paid, a purchase order being sent) the ledger accounts
are dictated by the document, not chosen by the user. This module
works out those pinned accounts and, for issued invoices, the
cost-of-sales companion legs.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from posting_engine.errors import NotFoundError, ValidationError
from posting_engine.models.chart_account import ChartAccount
from posting_engine.models.enums import (
    AccountingElement,
    AccountType,
    DocumentKind,
    EntrySide,
    FundingSource,
    ItemType,
    LockedFlow,
)
from posting_engine.models.source_document import DocumentLine, Product, SourceDocument
from posting_engine.services.chart_service import ChartService
from posting_engine.services.classifier import (
    PAYABLE_CODES,
    PAYABLE_KEYWORDS,
    RECEIVABLE_CODES,
    RECEIVABLE_KEYWORDS,
    find_account,
    find_loan_ledger,
    loan_term_for,
)
from posting_engine.services.split_allocator import PostingLine
from posting_engine.services.vat_calculator import ZERO, to_money

logger = logging.getLogger(__name__)

REVENUE_CODES = ("4000",)
REVENUE_KEYWORDS = ("sales", "revenue")

FLOW_ELEMENTS = {
    LockedFlow.INVOICE_ISSUED: AccountingElement.INCOME,
    LockedFlow.INVOICE_PAID: AccountingElement.RECEIPT,
    LockedFlow.PURCHASE_ORDER_SENT: AccountingElement.PRODUCT_PURCHASE,
}

FLOW_DOCUMENTS = {
    LockedFlow.INVOICE_ISSUED: DocumentKind.INVOICE,
    LockedFlow.INVOICE_PAID: DocumentKind.INVOICE,
    LockedFlow.PURCHASE_ORDER_SENT: DocumentKind.PURCHASE_ORDER,
}


@dataclass
class LockedAccounts:
    debit_account_id: int
    credit_account_id: int
    extra_lines: list[PostingLine] = field(default_factory=list)


class LockedFlowResolver:

    def __init__(self, db: Session, chart: ChartService):
        self.db = db
        self.chart = chart

    def get_document(
        self, company_id: int, document_id: int, flow: LockedFlow
    ) -> SourceDocument:
        document = self.db.get(SourceDocument, document_id)
        if not document or document.company_id != company_id:
            raise NotFoundError(f"Source document {document_id} not found")
        if document.kind != FLOW_DOCUMENTS[flow]:
            raise ValidationError(
                f"{flow.value} postings need a {FLOW_DOCUMENTS[flow].value} document, "
                f"got {document.kind.value} {document.number}"
            )
        return document

    def resolve(
        self,
        company_id: int,
        flow: LockedFlow,
        document: SourceDocument,
        accounts: list[ChartAccount],
        bank_ledger: ChartAccount | None,
    ) -> LockedAccounts:
        if flow == LockedFlow.INVOICE_ISSUED:
            return self._invoice_issued(company_id, document, accounts)
        if flow == LockedFlow.INVOICE_PAID:
            return self._invoice_paid(accounts, bank_ledger)
        return self._purchase_order_sent(company_id, document, accounts)

    def _invoice_issued(self, company_id, document, accounts) -> LockedAccounts:
        receivable = _receivable(accounts)
        revenue = find_account(
            accounts, AccountType.INCOME,
            codes=REVENUE_CODES, keywords=REVENUE_KEYWORDS,
        )
        if not receivable or not revenue:
            raise ValidationError(
                "Core accounts missing: Accounts Receivable or Sales Revenue"
            )

        locked = LockedAccounts(receivable.id, revenue.id)
        cost = self.cost_of_goods_sold(company_id, document)
        if cost > 0:
            cogs = self.chart.ensure_well_known(company_id, "cogs", accounts)
            inventory = self.chart.ensure_well_known(company_id, "inventory", accounts)
            label = f"Cost of goods sold for {document.number}"
            locked.extra_lines = [
                PostingLine.on(EntrySide.DEBIT, cogs.id, cost, label),
                PostingLine.on(EntrySide.CREDIT, inventory.id, cost, label),
            ]
        return locked

    def _invoice_paid(self, accounts, bank_ledger) -> LockedAccounts:
        receivable = _receivable(accounts)
        if not receivable:
            raise ValidationError("Core accounts missing: Accounts Receivable")
        if bank_ledger is None:
            raise ValidationError("Invoice payments need a bank account")
        return LockedAccounts(bank_ledger.id, receivable.id)

    def _purchase_order_sent(self, company_id, document, accounts) -> LockedAccounts:
        inventory = self.chart.ensure_well_known(company_id, "inventory", accounts)
        if document.funding_source == FundingSource.LOAN:
            term = loan_term_for(document.loan_term_months or 0)
            source = find_loan_ledger(accounts, term)
            if not source:
                raise ValidationError(
                    "Core accounts missing: no loan ledger for a loan-funded order"
                )
        else:
            source = find_account(
                accounts, AccountType.LIABILITY,
                codes=PAYABLE_CODES, keywords=PAYABLE_KEYWORDS,
            )
            if not source:
                raise ValidationError("Core accounts missing: Accounts Payable")
        return LockedAccounts(inventory.id, source.id)

    def cost_of_goods_sold(self, company_id: int, document: SourceDocument) -> Decimal:
        """
        Cost of the product lines on an invoice.

        Each line is costed from its linked product, else a product
        whose name matches the line description (ignoring case and
        surrounding spaces), else a product whose name contains the
        description or is contained in it, else its own unit price.
        """
        product_lines = [
            line for line in document.lines if line.item_type == ItemType.PRODUCT
        ]
        if not product_lines:
            return ZERO

        catalog = [
            (_normalized(product.name), product.cost_price)
            for product in self.db.execute(
                select(Product).where(Product.company_id == company_id)
            ).scalars()
        ]
        total = ZERO
        for line in product_lines:
            total += to_money(self._unit_cost(catalog, line) * line.quantity)
        return total

    def _unit_cost(self, catalog, line: DocumentLine) -> Decimal:
        if line.product is not None and line.product.cost_price > 0:
            return line.product.cost_price

        wanted = _normalized(line.description)
        match = next((cost for name, cost in catalog if name == wanted), None)
        if match is None and wanted:
            match = next(
                (
                    cost for name, cost in catalog
                    if name and (name in wanted or wanted in name)
                ),
                None,
            )
        if match is not None and match > 0:
            return match
        logger.debug(
            "No product cost for line '%s', using unit price", line.description
        )
        return line.unit_price


def _normalized(name: str | None) -> str:
    return (name or "").strip().lower()


def _receivable(accounts) -> ChartAccount | None:
    return find_account(
        accounts, AccountType.ASSET,
        codes=RECEIVABLE_CODES, keywords=RECEIVABLE_KEYWORDS,
    )
