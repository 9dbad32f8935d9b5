"""
HTTP tests for the gold wallet API.
"""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from goldwallet.api import app, get_backend
from goldwallet.backend import GoldWalletBackend


@pytest.fixture
def backend():
    fresh = GoldWalletBackend()
    app.dependency_overrides[get_backend] = lambda: fresh
    yield fresh
    app.dependency_overrides.clear()


@pytest.fixture
def client(backend):
    return TestClient(app)


def auth(token):
    return {"X-Session-Token": token}


@pytest.fixture
def admin_token(client):
    return client.post("/auth/login", json={"email": "admin@auro.com"}).json()["token"]


@pytest.fixture
def user_token(client):
    response = client.post("/auth/register", json={
        "name": "Rahim Uddin", "email": "rahim@example.com", "phone": "01711111111",
    })
    assert response.status_code == 201
    return response.json()["token"]


class TestSystem:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestAuthRoutes:
    def test_register_duplicate(self, client, user_token):
        response = client.post("/auth/register", json={
            "name": "Again", "email": "rahim@example.com", "phone": "017",
        })

        assert response.status_code == 409

    def test_login_unknown(self, client):
        assert client.post("/auth/login", json={"email": "ghost@example.com"}).status_code == 404

    def test_me_requires_session(self, client):
        assert client.get("/me").status_code == 401

    def test_me_and_profile_update(self, client, user_token):
        response = client.patch("/me", json={"name": "Rahim U."}, headers=auth(user_token))

        assert response.status_code == 200
        assert client.get("/me", headers=auth(user_token)).json()["name"] == "Rahim U."

    def test_logout(self, client, user_token):
        assert client.post("/auth/logout", headers=auth(user_token)).status_code == 204
        assert client.get("/me", headers=auth(user_token)).status_code == 401


class TestPriceRoutes:
    def test_get_price(self, client):
        response = client.get("/price")

        assert response.status_code == 200
        assert Decimal(response.json()["price_per_gram"]) == Decimal("9500")

    def test_set_price_as_admin(self, client, admin_token):
        response = client.put("/price", json={"price_per_gram": 9800}, headers=auth(admin_token))

        assert response.status_code == 200
        assert Decimal(client.get("/price").json()["price_per_gram"]) == Decimal("9800")
        assert len(client.get("/price/history").json()) == 2

    def test_set_price_invalid(self, client, admin_token):
        response = client.put("/price", json={"price_per_gram": 0}, headers=auth(admin_token))

        assert response.status_code == 400

    @pytest.mark.parametrize("limit", [0, -1])
    def test_history_limit_must_be_positive(self, client, limit):
        assert client.get("/price/history", params={"limit": limit}).status_code == 422

    def test_set_price_forbidden_for_users(self, client, user_token):
        response = client.put("/price", json={"price_per_gram": 1}, headers=auth(user_token))

        assert response.status_code == 403


class TestPaymentMethodRoutes:
    def test_list(self, client):
        names = [m["name"] for m in client.get("/payment-methods").json()]

        assert names == ["Bkash", "Nagad", "Rocket", "Bank Transfer"]

    def test_update(self, client, admin_token):
        response = client.put("/payment-methods/Rocket", json={"details": "Send to 019"}, headers=auth(admin_token))

        assert response.status_code == 200
        assert response.json()["details"] == "Send to 019"

    def test_update_unknown(self, client, admin_token):
        response = client.put("/payment-methods/PayPal", json={"details": "x"}, headers=auth(admin_token))

        assert response.status_code == 404


class TestTransactionRoutes:
    """End-to-end buy, sell and review over HTTP."""

    def test_buy_then_approve(self, client, user_token, admin_token):
        created = client.post("/transactions", json={
            "amount_bdt": 1000, "method": "Bkash", "type": "BUY", "proof_reference": "proof.png",
        }, headers=auth(user_token))
        assert created.status_code == 201
        txn_id = created.json()["transaction"]["id"]

        pending = client.get("/admin/pending", headers=auth(admin_token)).json()
        assert [t["id"] for t in pending] == [txn_id]

        processed = client.post(f"/transactions/{txn_id}/process", json={"action": "APPROVE"},
                                headers=auth(admin_token))
        assert processed.status_code == 200
        assert processed.json()["transaction"]["status"] == "SUCCESS"

        me = client.get("/me", headers=auth(user_token)).json()
        assert Decimal(me["gold_balance"]) == Decimal("0.105263")

        again = client.post(f"/transactions/{txn_id}/process", json={"action": "REJECT"},
                            headers=auth(admin_token))
        assert again.status_code == 409

    def test_sell_insufficient_balance(self, client, user_token):
        response = client.post("/transactions", json={
            "amount_bdt": 5000, "method": "Nagad", "type": "SELL", "payout_details": "Nagad 018",
        }, headers=auth(user_token))

        assert response.status_code == 422

    def test_huge_amount_is_bad_request(self, client, user_token):
        response = client.post("/transactions", json={
            "amount_bdt": 1e30, "method": "Bkash", "type": "BUY", "proof_reference": "proof.png",
        }, headers=auth(user_token))

        assert response.status_code == 400
        assert client.get("/transactions", headers=auth(user_token)).json() == []

    def test_negative_limits_rejected(self, client, user_token, admin_token):
        assert client.get("/transactions", params={"limit": -1}, headers=auth(user_token)).status_code == 422
        assert client.get("/admin/overview", params={"recent_limit": -1},
                          headers=auth(admin_token)).status_code == 422

    def test_unknown_status_filter(self, client, user_token):
        response = client.get("/transactions", params={"status_filter": "ARCHIVED"}, headers=auth(user_token))

        assert response.status_code == 422

    def test_sell_missing_payout(self, client, user_token):
        response = client.post("/transactions", json={
            "amount_bdt": 5000, "method": "Nagad", "type": "SELL",
        }, headers=auth(user_token))

        assert response.status_code == 400

    def test_users_only_see_their_own(self, client, backend, user_token, admin_token):
        other = client.post("/auth/register", json={
            "name": "Karim", "email": "karim@example.com", "phone": "018",
        }).json()["token"]
        client.post("/transactions", json={"amount_bdt": 100, "method": "Bkash", "type": "BUY"},
                    headers=auth(user_token))
        theirs = client.post("/transactions", json={"amount_bdt": 200, "method": "Bkash", "type": "BUY"},
                             headers=auth(other)).json()["transaction"]["id"]

        mine = client.get("/transactions", headers=auth(user_token)).json()
        everything = client.get("/transactions", headers=auth(admin_token)).json()

        assert len(mine) == 1
        assert len(everything) == 2
        assert client.get(f"/transactions/{theirs}", headers=auth(user_token)).status_code == 404
        assert client.get(f"/transactions/{theirs}", headers=auth(admin_token)).status_code == 200

    def test_process_requires_admin(self, client, user_token):
        txn_id = client.post("/transactions", json={"amount_bdt": 100, "method": "Bkash", "type": "BUY"},
                             headers=auth(user_token)).json()["transaction"]["id"]

        response = client.post(f"/transactions/{txn_id}/process", json={"action": "APPROVE"},
                               headers=auth(user_token))

        assert response.status_code == 403

    def test_process_unknown(self, client, admin_token):
        response = client.post("/transactions/txn-missing/process", json={"action": "APPROVE"},
                               headers=auth(admin_token))

        assert response.status_code == 404

    def test_admin_overview(self, client, user_token, admin_token):
        client.post("/transactions", json={"amount_bdt": 100, "method": "Bkash", "type": "BUY"},
                    headers=auth(user_token))

        overview = client.get("/admin/overview", headers=auth(admin_token)).json()

        assert overview["pending_count"] == 1
        assert len(overview["recent_transactions"]) == 1
