"""
Tests for the loan and fixed-asset register endpoints.
"""

from decimal import Decimal


def post(client, payload):
    response = client.post("/transactions", json=payload)
    assert response.status_code == 201, response.json()
    return client.get(f"/transactions/{response.json()['transaction_id']}").json()


class TestLoanQuote:

    def test_quote_for_long_term_loan(self, client):
        response = client.get("/loans/quote", params={
            "principal": "120000",
            "annual_rate": "0.12",
            "term_months": 24,
        })
        data = response.json()

        assert response.status_code == 200
        assert Decimal(data["monthly_repayment"]) == Decimal("5648.82")
        assert Decimal(data["first_month_interest"]) == Decimal("1200.00")
        assert data["loan_type"] == "LONG"
        assert data["schedule"] == []

    def test_quote_with_schedule(self, client):
        response = client.get("/loans/quote", params={
            "principal": "12000",
            "annual_rate": "0.06",
            "term_months": 12,
            "include_schedule": True,
        })
        schedule = response.json()["schedule"]

        assert len(schedule) == 12
        assert Decimal(schedule[-1]["balance"]) == Decimal("0")
        assert sum(Decimal(row["principal"]) for row in schedule) == Decimal("12000.00")

    def test_rate_given_as_percentage_returns_422(self, client):
        response = client.get("/loans/quote", params={
            "principal": "120000",
            "annual_rate": "12",
            "term_months": 24,
        })
        assert response.status_code == 422


class TestLoanRegister:

    def test_loan_posting_shows_on_register(self, client, company, chart, bank_account):
        txn = post(client, {
            "company_id": company.id,
            "element": "LOAN_RECEIVED",
            "amount": "120000.00",
            "transaction_date": "2024-03-15",
            "description": "Vehicle finance",
            "bank_account_id": bank_account.id,
            "interest_rate": "0.12",
            "term_months": 24,
            "loan_reference": "VF-2024-01",
        })

        response = client.get(f"/companies/{company.id}/loans/{txn['loan_id']}")
        data = response.json()

        assert response.status_code == 200
        assert data["reference"] == "VF-2024-01"
        assert data["status"] == "ACTIVE"
        assert Decimal(data["outstanding_balance"]) == Decimal("120000.00")

    def test_unknown_loan_returns_404(self, client, company):
        response = client.get(f"/companies/{company.id}/loans/999")
        assert response.status_code == 404


class TestAssetPreviews:

    def _buy_truck(self, client, company, chart, bank_account):
        return post(client, {
            "company_id": company.id,
            "element": "ASSET_PURCHASE",
            "amount": "57500.00",
            "vat_rate": "15",
            "transaction_date": "2024-03-15",
            "description": "Delivery truck",
            "debit_account_id": chart["1510"].id,
            "bank_account_id": bank_account.id,
            "useful_life_years": 5,
        })

    def test_depreciation_preview(self, client, company, chart, bank_account):
        txn = self._buy_truck(client, company, chart, bank_account)

        response = client.get(
            f"/companies/{company.id}/assets/{txn['fixed_asset_id']}/depreciation"
        )
        data = response.json()

        assert response.status_code == 200
        assert Decimal(data["cost"]) == Decimal("50000.00")
        assert Decimal(data["monthly_depreciation"]) == Decimal("833.33")

    def test_disposal_preview(self, client, company, chart, bank_account):
        txn = self._buy_truck(client, company, chart, bank_account)

        response = client.get(
            f"/companies/{company.id}/assets/{txn['fixed_asset_id']}/disposal-preview",
            params={"proceeds": "45000"},
        )
        data = response.json()

        assert Decimal(data["net_book_value"]) == Decimal("50000.00")
        assert Decimal(data["gain_or_loss"]) == Decimal("-5000.00")

    def test_asset_of_other_company_returns_404(self, client, company, chart, bank_account):
        txn = self._buy_truck(client, company, chart, bank_account)

        response = client.get(
            f"/companies/{company.id + 1}/assets/{txn['fixed_asset_id']}/depreciation"
        )
        assert response.status_code == 404
