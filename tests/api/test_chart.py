"""
Tests for company, chart of accounts and bank account endpoints.
"""


class TestCompanies:

    def test_create_company_returns_201(self, client):
        response = client.post("/companies", json={"name": "Harbour Cafe"})
        data = response.json()

        assert response.status_code == 201
        assert data["name"] == "Harbour Cafe"
        assert data["is_active"] is True

    def test_blank_name_returns_422(self, client):
        response = client.post("/companies", json={"name": ""})
        assert response.status_code == 422


class TestChart:

    def test_seed_creates_default_chart(self, client, company):
        response = client.post(f"/companies/{company.id}/chart/seed")
        codes = [a["code"] for a in response.json()]

        assert response.status_code == 201
        assert codes == sorted(codes)
        assert {"1100", "2110", "2200", "2400", "7000"} <= set(codes)

    def test_seed_is_repeatable(self, client, company):
        first = client.post(f"/companies/{company.id}/chart/seed").json()
        second = client.post(f"/companies/{company.id}/chart/seed").json()
        assert len(first) == len(second)

    def test_seed_unknown_company_returns_404(self, client):
        response = client.post("/companies/999/chart/seed")
        assert response.status_code == 404

    def test_create_account(self, client, company, chart):
        response = client.post(f"/companies/{company.id}/chart", json={
            "code": "6300",
            "name": "Travel",
            "account_type": "EXPENSE",
        })
        assert response.status_code == 201
        assert response.json()["code"] == "6300"

    def test_duplicate_code_returns_400(self, client, company, chart):
        response = client.post(f"/companies/{company.id}/chart", json={
            "code": "6000",
            "name": "Office Costs",
            "account_type": "EXPENSE",
        })
        assert response.status_code == 400

    def test_list_unknown_company_returns_404(self, client):
        response = client.get("/companies/999/chart")
        assert response.status_code == 404


class TestClassification:

    def test_expense_candidates_and_defaults(self, client, company, chart):
        response = client.get(
            f"/companies/{company.id}/classification/EXPENSE",
            params={"payment_method": "BANK"},
        )
        data = response.json()

        assert response.status_code == 200
        assert {a["account_type"] for a in data["debit_candidates"]} == {"EXPENSE"}
        assert data["default_credit_id"] == chart["1100"].id

    def test_loan_received_defaults_to_term_ledger(self, client, company, chart):
        response = client.get(
            f"/companies/{company.id}/classification/LOAN_RECEIVED",
            params={"loan_term": "LONG", "payment_method": "BANK"},
        )
        data = response.json()

        assert data["default_debit_id"] == chart["1100"].id
        assert data["default_credit_id"] == chart["2400"].id

    def test_chosen_debit_is_excluded_from_credit_side(self, client, company, chart):
        response = client.get(
            f"/companies/{company.id}/classification/RECEIPT",
            params={"debit_account_id": chart["1100"].id},
        )
        credit_ids = {a["id"] for a in response.json()["credit_candidates"]}
        assert chart["1100"].id not in credit_ids

    def test_unknown_element_returns_422(self, client, company, chart):
        response = client.get(f"/companies/{company.id}/classification/GIFT")
        assert response.status_code == 422


class TestBankAccounts:

    def payload(self, company, ledger_id):
        return {
            "company_id": company.id,
            "account_name": "Savings",
            "bank_name": "First National",
            "account_number": "62009876543",
            "ledger_account_id": ledger_id,
            "opening_balance": "2500.00",
        }

    def test_create_bank_account(self, client, company, chart):
        response = client.post(
            "/bank-accounts", json=self.payload(company, chart["1100"].id)
        )
        data = response.json()

        assert response.status_code == 201
        assert data["ledger_account_id"] == chart["1100"].id

    def test_non_bank_ledger_returns_400(self, client, company, chart):
        response = client.post(
            "/bank-accounts", json=self.payload(company, chart["6000"].id)
        )
        assert response.status_code == 400

    def test_unknown_company_returns_404(self, client, company, chart):
        payload = self.payload(company, None)
        payload["company_id"] = 999
        response = client.post("/bank-accounts", json=payload)
        assert response.status_code == 404
