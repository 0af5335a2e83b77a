"""
Transaction ledger tests.

Verifies:
- cash-in / cash-out amount coercion and client balance effects
- edit reverses the old effect and applies the new one
- delete tombstones the entry and reverses its effect
- entries owned by debtors and orders cannot be edited or deleted
- monthly statistics are zero-filled
"""

import pytest

from backoffice.models import Client, Transaction
from backoffice.time_utils import utcnow


def cash(client, headers, kind, **payload):
    payload.setdefault("payment_type", "cash")
    return client.post(f"/api/transactions/{kind}", json=payload, headers=headers)


def client_debt(client, client_id):
    return client.get(f"/api/clients/{client_id}").json["debt"]


class TestCashMovements:

    def test_negative_amount_is_rejected(self, client, headers, db_session):
        resp = cash(client, headers, "cash-in", amount=-5)
        assert resp.status_code == 400
        assert resp.json["errors"][0]["field"] == "amount"
        assert db_session.query(Transaction).count() == 0

    def test_zero_amount_is_recorded(self, client, headers, db_session):
        resp = cash(client, headers, "cash-in", amount=0)
        assert resp.status_code == 201
        assert resp.json["amount"] == 0
        assert resp.json["type"] == "cash-in"
        assert db_session.query(Transaction).count() == 1

    @pytest.mark.parametrize("raw", ["abc", None, {"x": 1}, "NaN"])
    def test_non_numeric_amount_becomes_zero(self, client, headers, raw):
        resp = cash(client, headers, "cash-out", amount=raw)
        assert resp.status_code == 201
        assert resp.json["amount"] == 0

    def test_cash_in_lowers_and_cash_out_raises_client_balance(self, client, headers, customer):
        resp = cash(client, headers, "cash-in", amount=300, client_id=customer.id, description="Advance")
        assert resp.status_code == 201
        assert resp.json["client"]["id"] == customer.id
        assert client_debt(client, customer.id) == -300

        cash(client, headers, "cash-out", amount=120, client_id=customer.id)
        assert client_debt(client, customer.id) == -180

    @pytest.mark.parametrize("raw", [1e15, "1000000000000000", "1e400"])
    def test_amount_above_limit_is_rejected(self, client, headers, db_session, raw):
        resp = cash(client, headers, "cash-in", amount=raw)
        assert resp.status_code == 400
        assert resp.json["errors"][0]["field"] == "amount"
        assert db_session.query(Transaction).count() == 0

    def test_unknown_client_is_404(self, client, headers, db_session):
        resp = cash(client, headers, "cash-in", amount=10, client_id=4242)
        assert resp.status_code == 404
        assert db_session.query(Transaction).count() == 0

    def test_invalid_payment_type_is_rejected(self, client, headers):
        resp = cash(client, headers, "cash-in", amount=10, payment_type="crypto")
        assert resp.status_code == 400
        assert resp.json["errors"][0]["field"] == "payment_type"

    def test_created_by_is_recorded(self, client, headers, admin_user):
        resp = cash(client, headers, "cash-in", amount=10)
        assert resp.json["created_by_user_id"] == admin_user.id

    def test_requires_auth(self, client, db_session):
        assert client.post("/api/transactions/cash-in", json={"amount": 1}).status_code == 401
        assert client.post("/api/transactions/cash-out", json={"amount": 1}).status_code == 401


class TestEditTransaction:

    def test_same_client_edit_applies_the_delta(self, client, headers, customer):
        tx = cash(client, headers, "cash-in", amount=100, client_id=customer.id).json
        assert client_debt(client, customer.id) == -100

        resp = client.put(f"/api/transactions/{tx['id']}", json={"amount": 250}, headers=headers)
        assert resp.status_code == 200
        assert resp.json["amount"] == 250
        assert client_debt(client, customer.id) == -250

    def test_moving_to_another_client_reverses_then_applies(
        self, client, headers, customer, other_customer
    ):
        tx = cash(client, headers, "cash-out", amount=80, client_id=customer.id).json

        resp = client.put(
            f"/api/transactions/{tx['id']}",
            json={"client_id": other_customer.id, "amount": 50},
            headers=headers,
        )
        assert resp.status_code == 200
        assert resp.json["client_id"] == other_customer.id
        assert client_debt(client, customer.id) == 0
        assert client_debt(client, other_customer.id) == 50

    def test_null_client_detaches(self, client, headers, customer):
        tx = cash(client, headers, "cash-in", amount=40, client_id=customer.id).json
        resp = client.put(f"/api/transactions/{tx['id']}", json={"client_id": None}, headers=headers)
        assert resp.status_code == 200
        assert resp.json["client_id"] is None
        assert client_debt(client, customer.id) == 0

    def test_attaching_a_client_applies_the_effect(self, client, headers, customer):
        tx = cash(client, headers, "cash-in", amount=40).json
        client.put(f"/api/transactions/{tx['id']}", json={"client_id": customer.id}, headers=headers)
        assert client_debt(client, customer.id) == -40

    def test_unknown_target_client_changes_nothing(self, client, headers, customer):
        tx = cash(client, headers, "cash-in", amount=40, client_id=customer.id).json
        resp = client.put(f"/api/transactions/{tx['id']}", json={"client_id": 999}, headers=headers)
        assert resp.status_code == 404
        assert client_debt(client, customer.id) == -40

    def test_unknown_fields_are_rejected(self, client, headers):
        tx = cash(client, headers, "cash-in", amount=40).json
        resp = client.put(f"/api/transactions/{tx['id']}", json={"type": "cash-out"}, headers=headers)
        assert resp.status_code == 400

    def test_managed_entries_cannot_be_edited_or_deleted(self, client, headers, customer):
        client.post("/api/debtors", json={"client_id": customer.id, "current_debt": 100}, headers=headers)
        entry = client.get("/api/transactions", query_string={"type": "debt-created"}).json["items"][0]

        resp = client.put(f"/api/transactions/{entry['id']}", json={"amount": 1}, headers=headers)
        assert resp.status_code == 409
        resp = client.delete(f"/api/transactions/{entry['id']}", headers=headers)
        assert resp.status_code == 409
        assert client_debt(client, customer.id) == 100


    def test_entry_of_deleted_client_can_still_be_corrected(self, client, headers, customer, db_session):
        tx = cash(client, headers, "cash-in", amount=40, client_id=customer.id).json
        assert client.delete(f"/api/clients/{customer.id}", headers=headers).status_code == 200

        resp = client.put(f"/api/transactions/{tx['id']}", json={"amount": 60}, headers=headers)
        assert resp.status_code == 200
        assert resp.json["client_id"] == customer.id

        db_session.expire_all()
        assert float(db_session.get(Client, customer.id).debt) == -60

        assert client.delete(f"/api/transactions/{tx['id']}", headers=headers).status_code == 200
        db_session.expire_all()
        assert float(db_session.get(Client, customer.id).debt) == 0


class TestDeleteTransaction:

    def test_delete_tombstones_and_reverses(self, client, headers, customer, db_session):
        tx = cash(client, headers, "cash-in", amount=75, client_id=customer.id).json

        resp = client.delete(f"/api/transactions/{tx['id']}", headers=headers)
        assert resp.status_code == 200
        assert resp.json["is_deleted"] is True
        assert client_debt(client, customer.id) == 0

        assert client.get(f"/api/transactions/{tx['id']}").status_code == 404
        assert client.get("/api/transactions").json["count"] == 0

        db_session.expire_all()
        assert db_session.get(Transaction, tx["id"]).deleted_at is not None

    def test_delete_unknown_is_404(self, client, headers, db_session):
        assert client.delete("/api/transactions/31337", headers=headers).status_code == 404


class TestQueries:

    def test_list_filters_and_limit(self, client, headers, customer):
        cash(client, headers, "cash-in", amount=1, client_id=customer.id)
        cash(client, headers, "cash-out", amount=2)
        cash(client, headers, "cash-in", amount=3)

        assert client.get("/api/transactions").json["count"] == 3
        assert client.get("/api/transactions", query_string={"type": "cash-in"}).json["count"] == 2
        assert client.get("/api/transactions", query_string={"client_id": customer.id}).json["count"] == 1
        assert client.get("/api/transactions", query_string={"limit": 2}).json["count"] == 2
        assert client.get("/api/transactions", query_string={"type": "refund"}).status_code == 400

    def test_monthly_statistics_zero_filled(self, client, db_session):
        resp = client.get("/api/transactions/statistics/monthly-transactions", query_string={"year": 1999})
        assert resp.status_code == 200
        assert resp.json == {"year": 1999, "cash_in": [0] * 12, "cash_out": [0] * 12}

    @pytest.mark.parametrize("year", [9999, -5])
    def test_monthly_statistics_reject_out_of_range_year(self, client, db_session, year):
        resp = client.get("/api/transactions/statistics/monthly-transactions", query_string={"year": year})
        assert resp.status_code == 400
        assert resp.json["errors"][0]["field"] == "year"

    def test_monthly_statistics_bucket_by_month(self, client, headers):
        cash(client, headers, "cash-in", amount=500)
        cash(client, headers, "cash-in", amount=250)
        cash(client, headers, "cash-out", amount=100)
        deleted = cash(client, headers, "cash-out", amount=999).json
        client.delete(f"/api/transactions/{deleted['id']}", headers=headers)

        now = utcnow()
        stats = client.get(
            "/api/transactions/statistics/monthly-transactions", query_string={"year": now.year}
        ).json
        assert stats["cash_in"][now.month - 1] == 750
        assert stats["cash_out"][now.month - 1] == 100
        assert sum(stats["cash_in"]) == 750
        assert sum(stats["cash_out"]) == 100
