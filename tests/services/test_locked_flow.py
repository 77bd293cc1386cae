"""
Tests for postings locked to a source document.

Issued invoices post Dr Receivable / Cr Revenue plus cost of
sales, paid invoices clear the receivable into the bank, and
purchase orders land in inventory against payables or a loan.
"""

from datetime import date
from decimal import Decimal

import pytest

from posting_engine.errors import NotFoundError, ValidationError
from posting_engine.models.chart_account import ChartAccount
from posting_engine.models.enums import (
    AccountingElement,
    AccountType,
    DocumentKind,
    FundingSource,
    ItemType,
    LockedFlow,
)
from posting_engine.models.source_document import DocumentLine, Product, SourceDocument
from posting_engine.schemas.chart import CompanyCreate
from posting_engine.schemas.transaction import PostingRequest
from posting_engine.services.chart_service import ChartService
from posting_engine.services.locked_flow import LockedFlowResolver
from posting_engine.services.posting_service import PostingService


def make_document(db_session, company, kind=DocumentKind.INVOICE, lines=(), **kwargs):
    document = SourceDocument(
        company_id=company.id,
        kind=kind,
        number=kwargs.pop("number", "INV-0001"),
        document_date=date(2024, 3, 15),
        subtotal=Decimal("1000"),
        tax_amount=Decimal("150"),
        total_amount=Decimal("1150"),
        **kwargs,
    )
    db_session.add(document)
    db_session.flush()
    for line in lines:
        line.document_id = document.id
        db_session.add(line)
    db_session.flush()
    db_session.refresh(document)
    return document


def make_product(db_session, company, name, cost):
    product = Product(company_id=company.id, name=name, cost_price=Decimal(cost))
    db_session.add(product)
    db_session.flush()
    return product


def product_line(description, quantity, unit_price, product=None):
    return DocumentLine(
        description=description,
        quantity=Decimal(quantity),
        unit_price=Decimal(unit_price),
        item_type=ItemType.PRODUCT,
        product_id=product.id if product else None,
    )


def locked_request(company, flow, element, document, amount="1150", **kwargs):
    return PostingRequest(
        company_id=company.id,
        element=element,
        amount=Decimal(amount),
        vat_rate=kwargs.pop("vat_rate", Decimal("15")),
        transaction_date=date(2024, 3, 15),
        description=f"{flow.value} {document.number}",
        locked_flow=flow,
        source_document_id=document.id,
        **kwargs,
    )


def legs(txn):
    return {e.account.code: (e.debit, e.credit) for e in txn.entries}


class TestInvoiceIssued:

    def test_invoice_posts_revenue_and_cost_of_sales(self, db_session, company, chart):
        widget = make_product(db_session, company, "Widget", "60")
        document = make_document(db_session, company, lines=[
            product_line("Widget", "10", "100", product=widget),
        ])
        service = PostingService(db_session)

        txn = service.post(locked_request(
            company, LockedFlow.INVOICE_ISSUED, AccountingElement.INCOME, document,
        )).transaction

        assert legs(txn) == {
            "1200": (Decimal("1150.00"), Decimal("0.00")),
            "4000": (Decimal("0.00"), Decimal("1000.00")),
            "2200": (Decimal("0.00"), Decimal("150.00")),
            "5000": (Decimal("600.00"), Decimal("0.00")),
            "1300": (Decimal("0.00"), Decimal("600.00")),
        }
        assert txn.total_amount == Decimal("1150.00")
        assert txn.source_document_id == document.id

    def test_invoice_without_products_has_no_cost_of_sales(self, db_session, company, chart):
        document = make_document(db_session, company, lines=[
            DocumentLine(
                description="Consulting", quantity=Decimal("1"),
                unit_price=Decimal("1000"), item_type=ItemType.SERVICE,
            ),
        ])
        service = PostingService(db_session)

        txn = service.post(locked_request(
            company, LockedFlow.INVOICE_ISSUED, AccountingElement.INCOME, document,
        )).transaction

        assert set(legs(txn)) == {"1200", "4000", "2200"}

    def test_invoice_document_cannot_be_overridden(self, db_session, company, chart):
        document = make_document(db_session, company)
        service = PostingService(db_session)

        with pytest.raises(ValidationError, match="set by the source document"):
            service.post(locked_request(
                company, LockedFlow.INVOICE_ISSUED, AccountingElement.INCOME, document,
                credit_account_id=chart["4100"].id,
            ))

    def test_wrong_element_rejected(self, db_session, company, chart):
        document = make_document(db_session, company)
        service = PostingService(db_session)

        with pytest.raises(ValidationError, match="must use the INCOME element"):
            service.post(locked_request(
                company, LockedFlow.INVOICE_ISSUED, AccountingElement.EXPENSE, document,
            ))

    def test_purchase_order_is_not_an_invoice(self, db_session, company, chart):
        document = make_document(
            db_session, company, kind=DocumentKind.PURCHASE_ORDER, number="PO-0001",
        )
        service = PostingService(db_session)

        with pytest.raises(ValidationError, match="need a INVOICE document"):
            service.post(locked_request(
                company, LockedFlow.INVOICE_ISSUED, AccountingElement.INCOME, document,
            ))

    def test_unknown_document(self, db_session, company, chart):
        service = PostingService(db_session)
        request = PostingRequest(
            company_id=company.id,
            element=AccountingElement.INCOME,
            amount=Decimal("100"),
            transaction_date=date(2024, 3, 15),
            description="Invoice",
            locked_flow=LockedFlow.INVOICE_ISSUED,
            source_document_id=999,
        )
        with pytest.raises(NotFoundError):
            service.post(request)

    def test_missing_receivable_rejected(self, db_session, company, chart):
        chart["1200"].is_active = False
        db_session.commit()
        document = make_document(db_session, company)
        service = PostingService(db_session)

        with pytest.raises(ValidationError, match="Core accounts missing"):
            service.post(locked_request(
                company, LockedFlow.INVOICE_ISSUED, AccountingElement.INCOME, document,
            ))


class TestInvoicePaid:

    def test_payment_clears_receivable_into_bank(
        self, db_session, company, chart, bank_account
    ):
        document = make_document(db_session, company)
        service = PostingService(db_session)

        txn = service.post(locked_request(
            company, LockedFlow.INVOICE_PAID, AccountingElement.RECEIPT, document,
            vat_rate=Decimal("0"),
            bank_account_id=bank_account.id,
        )).transaction
        db_session.refresh(bank_account)

        assert legs(txn) == {
            "1100": (Decimal("1150.00"), Decimal("0.00")),
            "1200": (Decimal("0.00"), Decimal("1150.00")),
        }
        assert bank_account.current_balance == Decimal("11150.00")

    def test_payment_needs_bank_account(self, db_session, company, chart):
        document = make_document(db_session, company)
        service = PostingService(db_session)

        with pytest.raises(ValidationError, match="need a bank account"):
            service.post(locked_request(
                company, LockedFlow.INVOICE_PAID, AccountingElement.RECEIPT, document,
                vat_rate=Decimal("0"),
            ))


class TestPurchaseOrderSent:

    def test_order_on_supplier_credit(self, db_session, company, chart):
        document = make_document(
            db_session, company, kind=DocumentKind.PURCHASE_ORDER, number="PO-0001",
        )
        service = PostingService(db_session)

        txn = service.post(locked_request(
            company, LockedFlow.PURCHASE_ORDER_SENT,
            AccountingElement.PRODUCT_PURCHASE, document,
        )).transaction

        assert legs(txn) == {
            "1300": (Decimal("1000.00"), Decimal("0.00")),
            "2110": (Decimal("150.00"), Decimal("0.00")),
            "2000": (Decimal("0.00"), Decimal("1150.00")),
        }

    def test_loan_funded_order_credits_loan_ledger(self, db_session, company, chart):
        document = make_document(
            db_session, company, kind=DocumentKind.PURCHASE_ORDER, number="PO-0002",
            funding_source=FundingSource.LOAN, loan_term_months=6,
        )
        service = PostingService(db_session)

        txn = service.post(locked_request(
            company, LockedFlow.PURCHASE_ORDER_SENT,
            AccountingElement.PRODUCT_PURCHASE, document,
        )).transaction

        assert legs(txn)["2300"] == (Decimal("0.00"), Decimal("1150.00"))

    def test_missing_inventory_account_is_created(self, db_session):
        chart_service = ChartService(db_session)
        company = chart_service.create_company(CompanyCreate(name="Lean Co"))
        for code, name, account_type in (
            ("1100", "Bank", AccountType.ASSET),
            ("2000", "Accounts Payable", AccountType.LIABILITY),
            ("2110", "VAT Input", AccountType.LIABILITY),
        ):
            db_session.add(ChartAccount(
                company_id=company.id, code=code, name=name, account_type=account_type,
            ))
        db_session.flush()
        document = make_document(
            db_session, company, kind=DocumentKind.PURCHASE_ORDER, number="PO-0003",
        )

        txn = PostingService(db_session).post(locked_request(
            company, LockedFlow.PURCHASE_ORDER_SENT,
            AccountingElement.PRODUCT_PURCHASE, document,
        )).transaction

        codes = {a.code for a in chart_service.list_accounts(company.id)}
        assert "1300" in codes
        assert legs(txn)["1300"] == (Decimal("1000.00"), Decimal("0.00"))


class TestCostOfGoodsSold:

    def resolver(self, db_session):
        return LockedFlowResolver(db_session, ChartService(db_session))

    def test_linked_product_cost(self, db_session, company):
        widget = make_product(db_session, company, "Widget", "60")
        document = make_document(db_session, company, lines=[
            product_line("Widget", "10", "100", product=widget),
        ])
        assert self.resolver(db_session).cost_of_goods_sold(company.id, document) == Decimal("600.00")

    def test_product_matched_by_name(self, db_session, company):
        make_product(db_session, company, "Gadget", "25")
        document = make_document(db_session, company, lines=[
            product_line("Gadget", "2", "40"),
        ])
        assert self.resolver(db_session).cost_of_goods_sold(company.id, document) == Decimal("50.00")

    def test_falls_back_to_unit_price(self, db_session, company):
        document = make_document(db_session, company, lines=[
            product_line("Unlisted item", "3", "12.50"),
        ])
        assert self.resolver(db_session).cost_of_goods_sold(company.id, document) == Decimal("37.50")

    def test_service_lines_ignored(self, db_session, company):
        document = make_document(db_session, company, lines=[
            DocumentLine(
                description="Installation", quantity=Decimal("1"),
                unit_price=Decimal("500"), item_type=ItemType.SERVICE,
            ),
        ])
        assert self.resolver(db_session).cost_of_goods_sold(company.id, document) == Decimal("0")

    def test_name_match_ignores_case_and_spaces(self, db_session, company):
        make_product(db_session, company, "Widget", "40")
        document = make_document(db_session, company, lines=[
            product_line("widget ", "2", "100"),
        ])
        assert self.resolver(db_session).cost_of_goods_sold(company.id, document) == Decimal("80.00")

    def test_partial_name_match(self, db_session, company):
        make_product(db_session, company, "Steel Bracket", "15")
        document = make_document(db_session, company, lines=[
            product_line("Steel bracket (large)", "4", "30"),
        ])
        assert self.resolver(db_session).cost_of_goods_sold(company.id, document) == Decimal("60.00")

    def test_invoice_costs_loosely_named_line(self, db_session, company, chart):
        make_product(db_session, company, "Widget", "40")
        document = make_document(db_session, company, lines=[
            product_line("widget ", "2", "100"),
        ])

        txn = PostingService(db_session).post(locked_request(
            company, LockedFlow.INVOICE_ISSUED, AccountingElement.INCOME, document,
        )).transaction

        assert legs(txn)["5000"] == (Decimal("80.00"), Decimal("0.00"))
