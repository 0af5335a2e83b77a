"""
Debtor ledger tests.

Verifies:
- Opening a debt raises the client balance and appends a debt-created entry
- Payments lower the debtor and the client by exactly the payment
- Overpayments are rejected by default and absorbed (with divergence) under the legacy policy
- Editing a debtor re-sums the client balance from all open debtors
- Deleting a debtor subtracts only that debtor's remaining debt
"""

import pytest

from backoffice.extensions import db
from backoffice.models import Client, Debtor, Transaction


def create_debtor(client, headers, client_id, amount, **extra):
    payload = {"client_id": client_id, "current_debt": amount, **extra}
    resp = client.post("/api/debtors", json=payload, headers=headers)
    assert resp.status_code == 201, resp.json
    return resp.json


def pay(client, headers, debtor_id, payment, **extra):
    return client.post(
        f"/api/debtors/{debtor_id}/payment",
        json={"payment": payment, **extra},
        headers=headers,
    )


def client_debt(client, client_id):
    return client.get(f"/api/clients/{client_id}").json["debt"]


def ledger(client, **params):
    return client.get("/api/transactions", query_string=params).json["items"]


# =============================================================================
# CREATE DEBT
# =============================================================================


class TestCreateDebt:

    def test_create_raises_client_balance_and_appends_entry(self, client, headers, customer):
        debtor = create_debtor(client, headers, customer.id, 1000, description="Cement on credit")

        assert debtor["current_debt"] == 1000
        assert debtor["initial_debt"] == 1000
        assert debtor["total_paid"] == 0
        assert debtor["status"] == "pending"
        assert debtor["initial_debt_date"] is not None
        assert debtor["client"]["id"] == customer.id
        assert client_debt(client, customer.id) == 1000

        entries = ledger(client, client_id=customer.id)
        assert len(entries) == 1
        assert entries[0]["type"] == "debt-created"
        assert entries[0]["amount"] == 1000
        assert entries[0]["related_model"] == "Debtor"
        assert entries[0]["related_id"] == debtor["id"]

    def test_initial_debt_and_next_payment_are_kept(self, client, headers, customer):
        debtor = create_debtor(
            client, headers, customer.id, 700,
            initial_debt=900,
            next_payment={"amount": 100, "due_date": "2026-11-01"},
        )
        assert debtor["initial_debt"] == 900
        assert debtor["next_payment"]["amount"] == 100
        assert debtor["next_payment"]["due_date"] == "2026-11-01T00:00:00Z"

    def test_unknown_client_is_404(self, client, headers, db_session):
        resp = client.post("/api/debtors", json={"client_id": 999, "current_debt": 10}, headers=headers)
        assert resp.status_code == 404
        assert db_session.query(Debtor).count() == 0
        assert db_session.query(Transaction).count() == 0

    def test_negative_debt_is_rejected(self, client, headers, customer):
        resp = client.post(
            "/api/debtors", json={"client_id": customer.id, "current_debt": -1}, headers=headers
        )
        assert resp.status_code == 400
        assert resp.json["errors"][0]["field"] == "current_debt"

    def test_missing_fields_are_all_reported(self, client, headers, db_session):
        resp = client.post("/api/debtors", json={}, headers=headers)
        assert resp.status_code == 400
        fields = {e["field"] for e in resp.json["errors"]}
        assert fields == {"client_id", "current_debt"}

    def test_requires_auth(self, client, customer):
        resp = client.post("/api/debtors", json={"client_id": customer.id, "current_debt": 5})
        assert resp.status_code == 401


# =============================================================================
# PAY DEBT
# =============================================================================


class TestPayDebt:

    def test_payment_scenario(self, client, headers, customer):
        debtor = create_debtor(client, headers, customer.id, 1000)

        resp = pay(client, headers, debtor["id"], 400)
        assert resp.status_code == 200
        assert resp.json["current_debt"] == 600
        assert resp.json["total_paid"] == 400
        assert resp.json["last_payment"]["amount"] == 400
        assert resp.json["last_payment"]["date"] is not None
        assert client_debt(client, customer.id) == 600

        payments = ledger(client, type="debt-payment")
        assert len(payments) == 1
        assert payments[0]["amount"] == 400
        assert payments[0]["payment_type"] == "cash"
        assert payments[0]["client_id"] == customer.id

    def test_each_payment_lowers_client_by_exactly_the_payment(self, client, headers, customer):
        debtor = create_debtor(client, headers, customer.id, 500)
        remaining = 500.0
        balance = 500.0

        for payment in (100, 250.5, 49.5):
            resp = pay(client, headers, debtor["id"], payment)
            assert resp.status_code == 200
            remaining = max(0.0, remaining - payment)
            balance -= payment
            assert resp.json["current_debt"] == pytest.approx(remaining)
            assert client_debt(client, customer.id) == pytest.approx(balance)

        assert remaining == 100.0

    def test_next_payment_plan_is_updated(self, client, headers, customer):
        debtor = create_debtor(client, headers, customer.id, 300)
        resp = pay(
            client, headers, debtor["id"], 100,
            payment_type="card",
            next_payment={"amount": 50, "due_date": "2026-12-01T00:00:00Z"},
        )
        assert resp.status_code == 200
        assert resp.json["next_payment"]["amount"] == 50
        assert ledger(client, type="debt-payment")[0]["payment_type"] == "card"

    def test_overpayment_is_rejected_by_default(self, client, headers, customer):
        debtor = create_debtor(client, headers, customer.id, 1000)
        pay(client, headers, debtor["id"], 400)

        resp = pay(client, headers, debtor["id"], 10000)
        assert resp.status_code == 409
        assert resp.json["remaining_debt"] == 600
        assert resp.json["payment"] == 10000

        assert client.get(f"/api/debtors/{debtor['id']}").json["current_debt"] == 600
        assert client_debt(client, customer.id) == 600
        assert len(ledger(client, type="debt-payment")) == 1

    def test_absorbed_overpayment_diverges_client_from_debtor(
        self, client, headers, customer, absorb_overpayments
    ):
        debtor = create_debtor(client, headers, customer.id, 1000)
        pay(client, headers, debtor["id"], 400)

        resp = pay(client, headers, debtor["id"], 10000)
        assert resp.status_code == 200
        assert resp.json["current_debt"] == 0
        assert resp.json["total_paid"] == 10400

        # Client is charged the full 10000 while the debtor clamps at 0
        assert client_debt(client, customer.id) == -9400

        view = client.get(f"/api/clients/{customer.id}/balance").json
        assert view["stored_balance"] == -9400
        assert view["debtor_balance"] == 0
        assert view["matches_debtors"] is False
        assert view["matches_ledger"] is True

        entry = ledger(client, type="debt-payment")[0]
        assert entry["amount"] == 10000
        assert "(overpayment: 9400.00)" in entry["description"]

    @pytest.mark.parametrize("payment", [None, "abc", "", 0, -5, True, "NaN", "Infinity"])
    def test_invalid_payment_is_rejected(self, client, headers, customer, payment):
        debtor = create_debtor(client, headers, customer.id, 100)
        resp = pay(client, headers, debtor["id"], payment)
        assert resp.status_code == 400
        assert resp.json["errors"][0]["field"] == "payment"
        assert client_debt(client, customer.id) == 100

    def test_missing_payment_is_rejected(self, client, headers, customer):
        debtor = create_debtor(client, headers, customer.id, 100)
        resp = client.post(f"/api/debtors/{debtor['id']}/payment", json={}, headers=headers)
        assert resp.status_code == 400

    def test_numeric_string_payment_is_accepted(self, client, headers, customer):
        debtor = create_debtor(client, headers, customer.id, 100)
        resp = pay(client, headers, debtor["id"], "25.50")
        assert resp.status_code == 200
        assert resp.json["current_debt"] == 74.5

    def test_unknown_or_deleted_debtor_is_404(self, client, headers, customer):
        assert pay(client, headers, 12345, 10).status_code == 404

        debtor = create_debtor(client, headers, customer.id, 100)
        client.delete(f"/api/debtors/{debtor['id']}", headers=headers)
        assert pay(client, headers, debtor["id"], 10).status_code == 404

    @pytest.mark.parametrize("description", [{"x": 1}, ["note"], 42])
    def test_non_text_description_is_rejected(self, client, headers, customer, description):
        debtor = create_debtor(client, headers, customer.id, 100)

        resp = pay(client, headers, debtor["id"], 10, description=description)
        assert resp.status_code == 400
        assert resp.json["errors"][0]["field"] == "description"

        assert client.get(f"/api/debtors/{debtor['id']}").json["current_debt"] == 100
        assert client_debt(client, customer.id) == 100
        assert ledger(client, type="debt-payment") == []

    def test_description_is_recorded_on_the_entry(self, client, headers, customer):
        debtor = create_debtor(client, headers, customer.id, 100)
        pay(client, headers, debtor["id"], 10, description="  Cash at counter ")
        assert ledger(client, type="debt-payment")[0]["description"] == "Cash at counter"


# =============================================================================
# EDIT DEBT
# =============================================================================


class TestEditDebt:

    def test_edit_resums_client_balance_over_open_debtors(self, client, headers, customer):
        d1 = create_debtor(client, headers, customer.id, 1000)
        create_debtor(client, headers, customer.id, 500)

        # Cash-in against the client moves the stored balance away from Σ debtors
        client.post(
            "/api/transactions/cash-in",
            json={"amount": 200, "payment_type": "cash", "client_id": customer.id},
            headers=headers,
        )
        assert client_debt(client, customer.id) == 1300

        resp = client.patch(f"/api/debtors/{d1['id']}", json={"current_debt": 700}, headers=headers)
        assert resp.status_code == 200
        assert resp.json["current_debt"] == 700
        assert client_debt(client, customer.id) == 1200

        view = client.get(f"/api/clients/{customer.id}/balance").json
        assert view["matches_debtors"] is True

    def test_edit_appends_no_ledger_entry(self, client, headers, customer):
        d1 = create_debtor(client, headers, customer.id, 100)
        client.patch(f"/api/debtors/{d1['id']}", json={"description": "renegotiated"}, headers=headers)
        assert len(ledger(client)) == 1

    def test_status_is_restricted_to_known_values(self, client, headers, customer):
        d1 = create_debtor(client, headers, customer.id, 100)

        resp = client.patch(f"/api/debtors/{d1['id']}", json={"status": "closed"}, headers=headers)
        assert resp.status_code == 400

        resp = client.patch(f"/api/debtors/{d1['id']}", json={"status": "partial"}, headers=headers)
        assert resp.status_code == 200
        assert resp.json["status"] == "partial"

    def test_client_cannot_be_reassigned(self, client, headers, customer, other_customer):
        d1 = create_debtor(client, headers, customer.id, 100)
        resp = client.patch(
            f"/api/debtors/{d1['id']}", json={"client_id": other_customer.id}, headers=headers
        )
        assert resp.status_code == 400
        assert resp.json["errors"][0]["field"] == "client_id"

    def test_next_payment_can_be_cleared(self, client, headers, customer):
        d1 = create_debtor(client, headers, customer.id, 100, next_payment={"amount": 20})
        resp = client.patch(f"/api/debtors/{d1['id']}", json={"next_payment": None}, headers=headers)
        assert resp.status_code == 200
        assert resp.json["next_payment"] == {"amount": None, "due_date": None}


# =============================================================================
# DELETE DEBT
# =============================================================================


class TestDeleteDebt:

    def test_delete_subtracts_only_the_deleted_debtor(self, client, headers, customer):
        d1 = create_debtor(client, headers, customer.id, 1000)
        d2 = create_debtor(client, headers, customer.id, 500)

        resp = client.delete(f"/api/debtors/{d1['id']}", headers=headers)
        assert resp.status_code == 200
        assert resp.json["is_deleted"] is True

        assert client_debt(client, customer.id) == 500
        assert client.get(f"/api/debtors/{d1['id']}").status_code == 404
        assert [d["id"] for d in client.get("/api/debtors").json["items"]] == [d2["id"]]

    def test_delete_keeps_row_as_tombstone(self, client, headers, customer, db_session):
        d1 = create_debtor(client, headers, customer.id, 100)
        client.delete(f"/api/debtors/{d1['id']}", headers=headers)

        db_session.expire_all()
        row = db_session.get(Debtor, d1["id"])
        assert row is not None
        assert row.is_deleted is True
        assert row.deleted_at is not None

    def test_delete_twice_is_404(self, client, headers, customer):
        d1 = create_debtor(client, headers, customer.id, 100)
        assert client.delete(f"/api/debtors/{d1['id']}", headers=headers).status_code == 200
        assert client.delete(f"/api/debtors/{d1['id']}", headers=headers).status_code == 404

    def test_paid_off_debtor_of_deleted_client_stays_manageable(self, client, headers, customer, db_session):
        d1 = create_debtor(client, headers, customer.id, 100)
        assert pay(client, headers, d1["id"], 100).status_code == 200
        assert client.delete(f"/api/clients/{customer.id}", headers=headers).status_code == 200

        resp = client.patch(f"/api/debtors/{d1['id']}", json={"status": "paid"}, headers=headers)
        assert resp.status_code == 200
        assert resp.json["status"] == "paid"

        assert client.delete(f"/api/debtors/{d1['id']}", headers=headers).status_code == 200

        db_session.expire_all()
        assert float(db_session.get(Client, customer.id).debt) == 0


# =============================================================================
# QUERIES
# =============================================================================


class TestDebtorQueries:

    def test_list_filters(self, client, headers, customer, other_customer):
        create_debtor(client, headers, customer.id, 100)
        d2 = create_debtor(client, headers, other_customer.id, 200)
        client.patch(f"/api/debtors/{d2['id']}", json={"status": "overdue"}, headers=headers)

        by_client = client.get("/api/debtors", query_string={"client_id": other_customer.id}).json
        assert [d["id"] for d in by_client["items"]] == [d2["id"]]

        by_status = client.get("/api/debtors", query_string={"status": "overdue"}).json
        assert by_status["count"] == 1

        assert client.get("/api/debtors", query_string={"status": "bogus"}).status_code == 400

    def test_stats_summary(self, client, headers, customer, other_customer):
        d1 = create_debtor(client, headers, customer.id, 1000)
        create_debtor(client, headers, other_customer.id, 200)
        pay(client, headers, d1["id"], 250)

        stats = client.get("/api/debtors/stats/summary").json
        assert stats["total_debtors"] == 2
        assert stats["total_current_debt"] == 950
        assert stats["total_paid"] == 250
        assert stats["status_counts"]["pending"] == 2
        assert stats["status_counts"]["paid"] == 0


def test_operation_rolls_back_when_ledger_append_fails(client, headers, customer, monkeypatch):
    """A failing ledger append leaves neither the debtor nor the balance change behind."""
    from backoffice.services import debtor_service

    def boom(**kwargs):
        raise RuntimeError("ledger unavailable")

    monkeypatch.setattr(debtor_service, "append_transaction", boom)

    resp = client.post("/api/debtors", json={"client_id": customer.id, "current_debt": 300}, headers=headers)
    assert resp.status_code == 500
    assert resp.json == {"message": "Internal server error"}

    db.session.expire_all()
    assert db.session.query(Debtor).count() == 0
    assert db.session.get(Client, customer.id).debt == 0
