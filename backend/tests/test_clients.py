"""
Client tests.

Verifies:
- identity CRUD; debt is never writable through the client API
- deletion is refused while open debts remain
- the balance view compares stored, debtor and ledger balances
"""

from backoffice.models import Client


class TestClientCrud:

    def test_create_and_fetch(self, client, headers):
        resp = client.post("/api/clients", json={
            "full_name": "  Bobur Tursunov ",
            "phone": "+998935550011",
            "birthday": "1990-04-12",
        }, headers=headers)
        assert resp.status_code == 201
        data = resp.json
        assert data["full_name"] == "Bobur Tursunov"
        assert data["debt"] == 0
        assert data["birthday"] == "1990-04-12T00:00:00Z"

        detail = client.get(f"/api/clients/{data['id']}").json
        assert detail["debtors"] == []

    def test_full_name_is_required(self, client, headers):
        resp = client.post("/api/clients", json={"phone": "123"}, headers=headers)
        assert resp.status_code == 400
        assert resp.json["errors"][0]["field"] == "full_name"

    def test_debt_is_not_writable(self, client, headers, customer):
        resp = client.post("/api/clients", json={"full_name": "X", "debt": 500}, headers=headers)
        assert resp.status_code == 400

        resp = client.patch(f"/api/clients/{customer.id}", json={"debt": 500}, headers=headers)
        assert resp.status_code == 400
        assert client.get(f"/api/clients/{customer.id}").json["debt"] == 0

    def test_patch_identity_fields(self, client, headers, customer):
        resp = client.patch(f"/api/clients/{customer.id}", json={"notes": "Pays on Fridays"}, headers=headers)
        assert resp.status_code == 200
        assert resp.json["notes"] == "Pays on Fridays"
        assert resp.json["full_name"] == "Alisher Karimov"

    def test_bad_birthday_is_rejected(self, client, headers, customer):
        resp = client.patch(f"/api/clients/{customer.id}", json={"birthday": "last spring"}, headers=headers)
        assert resp.status_code == 400

    def test_search_by_name_or_phone(self, client, customer, other_customer):
        by_name = client.get("/api/clients", query_string={"q": "dilnoza"}).json
        assert [c["id"] for c in by_name["items"]] == [other_customer.id]

        by_phone = client.get("/api/clients", query_string={"q": "4567"}).json
        assert [c["id"] for c in by_phone["items"]] == [customer.id]

        assert client.get("/api/clients").json["pagination"]["total"] == 2

    def test_writes_require_auth(self, client, customer):
        assert client.post("/api/clients", json={"full_name": "X"}).status_code == 401
        assert client.patch(f"/api/clients/{customer.id}", json={"notes": "x"}).status_code == 401
        assert client.delete(f"/api/clients/{customer.id}").status_code == 401


class TestClientDelete:

    def test_delete_is_soft(self, client, headers, customer, db_session):
        resp = client.delete(f"/api/clients/{customer.id}", headers=headers)
        assert resp.status_code == 200
        assert resp.json["is_deleted"] is True
        assert client.get(f"/api/clients/{customer.id}").status_code == 404

        db_session.expire_all()
        assert db_session.get(Client, customer.id) is not None

    def test_open_debt_blocks_delete(self, client, headers, customer):
        debtor = client.post(
            "/api/debtors", json={"client_id": customer.id, "current_debt": 300}, headers=headers
        ).json

        resp = client.delete(f"/api/clients/{customer.id}", headers=headers)
        assert resp.status_code == 409

        client.post(f"/api/debtors/{debtor['id']}/payment", json={"payment": 300}, headers=headers)
        resp = client.delete(f"/api/clients/{customer.id}", headers=headers)
        assert resp.status_code == 200

    def test_deleted_client_cannot_take_new_money(self, client, headers, customer):
        client.delete(f"/api/clients/{customer.id}", headers=headers)
        resp = client.post(
            "/api/transactions/cash-in", json={"amount": 10, "client_id": customer.id}, headers=headers
        )
        assert resp.status_code == 404


class TestClientBalance:

    def test_consistent_client(self, client, headers, customer):
        client.post("/api/debtors", json={"client_id": customer.id, "current_debt": 400}, headers=headers)

        view = client.get(f"/api/clients/{customer.id}/balance").json
        assert view == {
            "client_id": customer.id,
            "stored_balance": 400.0,
            "debtor_balance": 400.0,
            "ledger_balance": 400.0,
            "matches_debtors": True,
            "matches_ledger": True,
        }

    def test_cash_movement_diverges_from_debtors_only(self, client, headers, customer):
        client.post("/api/debtors", json={"client_id": customer.id, "current_debt": 400}, headers=headers)
        client.post(
            "/api/transactions/cash-in", json={"amount": 100, "client_id": customer.id}, headers=headers
        )

        view = client.get(f"/api/clients/{customer.id}/balance").json
        assert view["stored_balance"] == 300
        assert view["debtor_balance"] == 400
        assert view["ledger_balance"] == 300
        assert view["matches_debtors"] is False
        assert view["matches_ledger"] is True

    def test_unknown_client_is_404(self, client, db_session):
        assert client.get("/api/clients/999/balance").status_code == 404
