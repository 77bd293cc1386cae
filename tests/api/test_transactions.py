"""
Tests for transaction API endpoints.

These test the HTTP layer: status codes, response format,
and error handling. Posting rules are tested in
test_posting_service.py.
"""

from decimal import Decimal


def expense_payload(company, chart, bank_account, **overrides):
    payload = {
        "company_id": company.id,
        "element": "EXPENSE",
        "amount": "1150.00",
        "vat_rate": "15",
        "transaction_date": "2024-03-15",
        "description": "Stationery",
        "debit_account_id": chart["6000"].id,
        "bank_account_id": bank_account.id,
    }
    payload.update(overrides)
    return payload


class TestPostTransaction:

    def test_post_returns_201(self, client, company, chart, bank_account):
        response = client.post(
            "/transactions", json=expense_payload(company, chart, bank_account)
        )
        assert response.status_code == 201

    def test_post_returns_entries(self, client, company, chart, bank_account):
        response = client.post(
            "/transactions", json=expense_payload(company, chart, bank_account)
        )
        data = response.json()

        assert data["status"] == "POSTED"
        assert Decimal(data["total_amount"]) == Decimal("1150.00")
        assert data["duplicate_warning"] is False
        assert len(data["entries"]) == 3
        debits = sum(Decimal(e["debit"]) for e in data["entries"])
        credits = sum(Decimal(e["credit"]) for e in data["entries"])
        assert debits == credits == Decimal("1150.00")

    def test_same_account_both_sides_returns_400(self, client, company, chart, bank_account):
        response = client.post("/transactions", json=expense_payload(
            company, chart, bank_account,
            bank_account_id=None,
            payment_method="ACCRUAL",
            credit_account_id=chart["6000"].id,
        ))
        assert response.status_code == 400
        assert "must be different" in response.json()["detail"]

    def test_unknown_company_returns_404(self, client, company, chart, bank_account):
        response = client.post("/transactions", json=expense_payload(
            company, chart, bank_account, company_id=999,
        ))
        assert response.status_code == 404

    def test_negative_amount_returns_422(self, client, company, chart, bank_account):
        response = client.post("/transactions", json=expense_payload(
            company, chart, bank_account, amount="-5.00",
        ))
        assert response.status_code == 422

    def test_duplicate_is_posted_with_warning(self, client, company, chart, bank_account):
        payload = expense_payload(company, chart, bank_account)
        client.post("/transactions", json=payload)

        response = client.post("/transactions", json=payload)
        data = response.json()

        assert response.status_code == 201
        assert data["duplicate_warning"] is True
        assert len(data["warnings"]) == 1

    def test_rejected_post_leaves_no_transaction(self, client, company, chart, bank_account):
        client.post("/transactions", json=expense_payload(
            company, chart, bank_account, debit_account_id=chart["4000"].id,
        ))

        response = client.get("/transactions/1")
        assert response.status_code == 404


class TestGetTransaction:

    def test_get_existing(self, client, company, chart, bank_account):
        posted = client.post(
            "/transactions", json=expense_payload(company, chart, bank_account)
        ).json()

        response = client.get(f"/transactions/{posted['transaction_id']}")
        data = response.json()

        assert response.status_code == 200
        assert data["element"] == "EXPENSE"
        assert Decimal(data["vat_amount"]) == Decimal("150.00")
        assert len(data["entries"]) == 3

    def test_get_unknown_returns_404(self, client):
        response = client.get("/transactions/999")
        assert response.status_code == 404


class TestEditTransaction:

    def test_edit_replaces_entries(self, client, company, chart, bank_account):
        posted = client.post(
            "/transactions", json=expense_payload(company, chart, bank_account)
        ).json()

        response = client.put(
            f"/transactions/{posted['transaction_id']}",
            json=expense_payload(company, chart, bank_account, amount="575.00"),
        )
        data = response.json()

        assert response.status_code == 200
        assert Decimal(data["total_amount"]) == Decimal("575.00")
        assert len(data["entries"]) == 3

    def test_edit_unknown_returns_404(self, client, company, chart, bank_account):
        response = client.put(
            "/transactions/999", json=expense_payload(company, chart, bank_account)
        )
        assert response.status_code == 404


class TestUnreconcile:

    def test_unreconcile_returns_pending(self, client, company, chart, bank_account):
        posted = client.post(
            "/transactions", json=expense_payload(company, chart, bank_account)
        ).json()

        response = client.post(f"/transactions/{posted['transaction_id']}/unreconcile")
        data = response.json()

        assert response.status_code == 200
        assert data["status"] == "PENDING"
        assert data["entries"] == []

    def test_unreconcile_unknown_returns_404(self, client):
        response = client.post("/transactions/999/unreconcile")
        assert response.status_code == 404


class TestDuplicateCheck:

    def test_matching_posting_is_flagged(self, client, company, chart, bank_account):
        client.post("/transactions", json=expense_payload(company, chart, bank_account))

        response = client.post("/transactions/duplicate-check", json={
            "company_id": company.id,
            "bank_account_id": bank_account.id,
            "transaction_date": "2024-03-15",
            "amount": "1150.00",
            "description": "  STATIONERY ",
        })
        assert response.json() == {"is_duplicate": True}

    def test_different_description_is_not_flagged(self, client, company, chart, bank_account):
        client.post("/transactions", json=expense_payload(company, chart, bank_account))

        response = client.post("/transactions/duplicate-check", json={
            "company_id": company.id,
            "bank_account_id": bank_account.id,
            "transaction_date": "2024-03-15",
            "amount": "1150.00",
            "description": "Printer toner",
        })
        assert response.json() == {"is_duplicate": False}
