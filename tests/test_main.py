from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from main import app
import reporting
from reporting import SETTLED_MESSAGE
from storage import storage


def amount(value):
    return Decimal(str(value))


@pytest.fixture
def client():
    storage.clear()
    yield TestClient(app)
    storage.clear()


@pytest.fixture
def demo_client(client):
    storage.seed_demo_data()
    return client


def expense_payload(**overrides):
    data = {
        "description": "Groceries",
        "total_amount": 300,
        "category": "Food",
        "payer": "john",
        "members": [
            {"name": "John Doe", "amount": 100},
            {"name": "Jane Smith", "amount": 100},
            {"name": "Admin User", "amount": 100},
        ],
    }
    data.update(overrides)
    return data


class TestSettlementApi:

    def test_empty_store_is_settled(self, client):
        body = client.get("/api/settlements").json()
        assert body["settled"] is True
        assert body["message"] == SETTLED_MESSAGE
        assert body["transfers"] == []
        assert body["lines"] == [SETTLED_MESSAGE]

    def test_demo_balances(self, demo_client):
        response = demo_client.get("/api/balances")
        assert response.status_code == 200
        balances = {b["participant_name"]: amount(b["balance"]) for b in response.json()}
        assert balances == {
            "John Doe": Decimal("650"),
            "Jane Smith": Decimal("-650"),
            "Admin User": Decimal("0"),
        }

    def test_demo_settlement_plan(self, demo_client):
        body = demo_client.get("/api/settlements").json()
        assert body["settled"] is False
        assert len(body["transfers"]) == 1
        transfer = body["transfers"][0]
        assert transfer["from_participant"] == "Jane Smith"
        assert transfer["to_participant"] == "John Doe"
        assert amount(transfer["amount"]) == Decimal("650")
        assert body["lines"] == ["Jane Smith owes John Doe ₹650.00"]
        assert body["warnings"] == []

    def test_new_expense_updates_settlement(self, demo_client):
        response = demo_client.post("/api/expenses", json=expense_payload())
        assert response.status_code == 201

        balances = {b["participant_name"]: amount(b["balance"])
                    for b in demo_client.get("/api/balances").json()}
        assert balances["John Doe"] == Decimal("850")
        assert balances["Jane Smith"] == Decimal("-750")
        assert balances["Admin User"] == Decimal("-100")

        transfers = demo_client.get("/api/settlements").json()["transfers"]
        assert [(t["from_participant"], t["to_participant"]) for t in transfers] == [
            ("Admin User", "John Doe"),
            ("Jane Smith", "John Doe"),
        ]


class TestParticipantsApi:

    def test_add_and_list(self, client):
        response = client.post("/api/participants", json={"id": "a", "name": "Asha"})
        assert response.status_code == 201
        assert [p["name"] for p in client.get("/api/participants").json()] == ["Asha"]

    def test_duplicate_rejected(self, client):
        client.post("/api/participants", json={"id": "a", "name": "Asha"})
        response = client.post("/api/participants", json={"id": "b", "name": "Asha"})
        assert response.status_code == 400

    def test_blank_name_rejected(self, client):
        response = client.post("/api/participants", json={"name": " "})
        assert response.status_code == 422

    def test_delete(self, client):
        client.post("/api/participants", json={"id": "a", "name": "Asha"})
        assert client.delete("/api/participants/a").status_code == 204
        assert client.delete("/api/participants/a").status_code == 404

    def test_delete_with_expenses_refused(self, demo_client):
        assert demo_client.delete("/api/participants/john").status_code == 409
        names = [p["name"] for p in demo_client.get("/api/participants").json()]
        assert "John Doe" in names

    def test_update(self, client):
        client.post("/api/participants", json={"id": "a", "name": "Asha"})
        response = client.put("/api/participants/a",
                              json={"name": "Asha Rao", "email": "asha@example.com"})
        assert response.status_code == 200
        assert response.json()["id"] == "a"
        assert client.get("/api/participants").json()[0]["name"] == "Asha Rao"

    def test_update_unknown(self, client):
        response = client.put("/api/participants/ghost", json={"name": "Ghost"})
        assert response.status_code == 404
        assert client.get("/api/participants").json() == []

    def test_update_to_duplicate_name(self, demo_client):
        response = demo_client.put("/api/participants/admin", json={"name": "Jane Smith"})
        assert response.status_code == 400

    def test_rename_with_expenses_refused(self, demo_client):
        response = demo_client.put("/api/participants/john", json={"name": "Johnny"})
        assert response.status_code == 409


class TestExpensesApi:

    def test_split_mismatch_rejected(self, demo_client):
        response = demo_client.post("/api/expenses",
                                    json=expense_payload(total_amount=500))
        assert response.status_code == 400
        assert "doesn't match" in response.json()["detail"][0]

    def test_unknown_payer_rejected(self, demo_client):
        response = demo_client.post("/api/expenses",
                                    json=expense_payload(payer="nobody"))
        assert response.status_code == 400

    def test_payer_by_name_accepted(self, demo_client):
        response = demo_client.post("/api/expenses",
                                    json=expense_payload(payer="Jane Smith"))
        assert response.status_code == 201

    def test_get_and_delete(self, demo_client):
        assert demo_client.get("/api/expenses/1").json()["description"] == "Dinner at Restaurant"
        assert demo_client.delete("/api/expenses/1").status_code == 204
        assert demo_client.get("/api/expenses/1").status_code == 404
        assert demo_client.delete("/api/expenses/1").status_code == 404

    def test_list_newest_first(self, demo_client):
        ids = [e["id"] for e in demo_client.get("/api/expenses").json()]
        assert ids == ["1", "2"]

    def test_payment_status(self, demo_client):
        response = demo_client.post("/api/expenses/1/payment-status",
                                    json={"status": "paid", "paid_amount": 2500,
                                          "paid_by": "Jane Smith"})
        assert response.status_code == 200
        body = response.json()
        assert body["payment_status"] == "paid"
        assert body["paid_by"] == "Jane Smith"

        # bookkeeping only, settlement unchanged
        transfers = demo_client.get("/api/settlements").json()["transfers"]
        assert amount(transfers[0]["amount"]) == Decimal("650")

    def test_payment_status_unknown_expense(self, client):
        response = client.post("/api/expenses/missing/payment-status",
                               json={"status": "paid"})
        assert response.status_code == 404

    def test_payment_status_invalid(self, demo_client):
        response = demo_client.post("/api/expenses/1/payment-status",
                                    json={"status": "refunded"})
        assert response.status_code == 422


def test_stats(demo_client):
    stats = demo_client.get("/api/stats").json()
    assert amount(stats["total_spent"]) == Decimal("3700")
    assert stats["expense_count"] == 2
    assert stats["payment_counts"] == {"pending": 1, "partial": 1, "paid": 0}
    assert set(stats["by_category"]) == {"Food", "Entertainment"}
    assert set(stats["by_payer"]) == {"John Doe", "Jane Smith"}


def test_split_equally(client):
    response = client.post("/api/split-equally",
                           json={"total_amount": 100, "members": ["A", "B", "C"]})
    assert response.status_code == 200
    shares = [amount(m["amount"]) for m in response.json()["members"]]
    assert shares == [Decimal("33.34"), Decimal("33.33"), Decimal("33.33")]


def test_split_equally_without_members(client):
    response = client.post("/api/split-equally",
                           json={"total_amount": 100, "members": []})
    assert response.status_code == 400


def test_dashboard(demo_client):
    response = demo_client.get("/")
    assert response.status_code == 200
    assert "Dinner at Restaurant" in response.text
    assert "Jane Smith owes John Doe ₹650.00" in response.text


def test_dashboard_empty(client):
    response = client.get("/")
    assert response.status_code == 200
    assert SETTLED_MESSAGE in response.text


def test_export_csv(demo_client):
    response = demo_client.get("/export/csv")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "SETTLEMENTS" in response.text
    assert "Jane Smith,John Doe,₹650.00" in response.text


def test_export_pdf(demo_client):
    response = demo_client.get("/export/pdf")
    assert response.status_code == 200
    assert response.content.startswith(b"%PDF")


def test_settlements_computed_once_per_request(demo_client, monkeypatch):
    calls = []
    original = reporting.calculate_settlement

    def counting(expenses, participants):
        calls.append(1)
        return original(expenses, participants)

    monkeypatch.setattr(reporting, "calculate_settlement", counting)
    demo_client.get("/api/settlements")
    assert len(calls) == 1
