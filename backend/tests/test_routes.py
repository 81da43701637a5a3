"""
Admin ledger API tests
Testing: auth, decision endpoints, error mapping and read-side refresh
"""
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from auth import create_access_token
from server import create_app
from core.accessors import TOPUPS, WALLETS

from conftest import ADMIN_ID, INVESTMENT_ID, INVESTOR_ID

BASE = "/api/admin"


def bearer(role="admin", **claims):
    payload = {"user_id": ADMIN_ID, "email": "admin@example.com", "role": role}
    payload.update(claims)
    return {"Authorization": f"Bearer {create_access_token(payload)}"}


@pytest.fixture
def client(store):
    return TestClient(create_app(store))


class TestHealth:

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["document_store"] == "InMemoryDocumentStore"


class TestAuth:

    def test_missing_token(self, client, seed_approval):
        seed_approval()
        response = client.post(f"{BASE}/investments/{INVESTMENT_ID}/approve")
        assert response.status_code in (401, 403)

    def test_non_admin_role(self, client, seed_approval):
        seed_approval()
        response = client.post(f"{BASE}/investments/{INVESTMENT_ID}/approve", headers=bearer(role="investor"))
        assert response.status_code == 403

    def test_expired_token(self, client, seed_approval):
        seed_approval()
        token = create_access_token(
            {"user_id": ADMIN_ID, "role": "admin"},
            expires_delta=timedelta(minutes=-5)
        )
        response = client.post(
            f"{BASE}/investments/{INVESTMENT_ID}/approve",
            headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 401

    def test_token_without_user(self, client, seed_approval):
        seed_approval()
        token = create_access_token({"role": "admin"})
        response = client.post(
            f"{BASE}/investments/{INVESTMENT_ID}/approve",
            headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 401


class TestInvestmentEndpoints:

    def test_approve(self, client, store, seed_approval):
        seed_approval(amount=100.0, balance=1000.0)

        response = client.post(f"{BASE}/investments/{INVESTMENT_ID}/approve", headers=bearer())

        assert response.status_code == 200, response.text
        data = response.json()
        assert data["success"] is True
        assert data["status"] == "active"
        assert data["already_applied"] is False
        assert data["amount"] == 100.0
        assert data["currency"] == "USD"
        assert data["side_effects"][0]["ok"] is True
        assert store.get_document(WALLETS, INVESTOR_ID)["balance"] == 900.0

    def test_repeat_approve_is_noop(self, client, seed_approval):
        seed_approval()
        client.post(f"{BASE}/investments/{INVESTMENT_ID}/approve", headers=bearer())

        response = client.post(f"{BASE}/investments/{INVESTMENT_ID}/approve", headers=bearer())

        assert response.status_code == 200
        assert response.json()["already_applied"] is True

    def test_insufficient_balance_maps_to_409(self, client, seed_approval):
        seed_approval(amount=100.0, balance=50.0)

        response = client.post(f"{BASE}/investments/{INVESTMENT_ID}/approve", headers=bearer())

        assert response.status_code == 409
        data = response.json()
        assert data["code"] == "INSUFFICIENT_BALANCE"
        assert data["details"] == {"balance": 50.0, "requested": 100.0}

    def test_missing_investment_maps_to_404(self, client):
        response = client.post(f"{BASE}/investments/missing/approve", headers=bearer())

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_invalid_amount_maps_to_422(self, client, seed_approval):
        seed_approval(amount=-1)

        response = client.post(f"{BASE}/investments/{INVESTMENT_ID}/approve", headers=bearer())

        assert response.status_code == 422
        assert response.json()["code"] == "INVALID_AMOUNT"

    def test_reject(self, client, seed_approval):
        seed_approval()

        response = client.post(
            f"{BASE}/investments/{INVESTMENT_ID}/reject",
            json={"reason": "  Duplicate request "},
            headers=bearer()
        )

        assert response.status_code == 200, response.text
        assert response.json()["status"] == "cancelled"

    def test_reject_requires_reason(self, client, seed_approval):
        seed_approval()

        empty = client.post(f"{BASE}/investments/{INVESTMENT_ID}/reject", json={"reason": ""}, headers=bearer())
        blank = client.post(f"{BASE}/investments/{INVESTMENT_ID}/reject", json={"reason": "   "}, headers=bearer())

        assert empty.status_code == 422
        assert blank.status_code == 422

    def test_read_side_refresh(self, client, seed_approval):
        seed_approval()
        client.post(f"{BASE}/investments/{INVESTMENT_ID}/approve", headers=bearer())

        investment = client.get(f"{BASE}/investments/{INVESTMENT_ID}", headers=bearer())
        assert investment.status_code == 200, investment.text
        assert investment.json()["status"] == "active"
        assert investment.json()["approved_by"] == ADMIN_ID

        history = client.get(f"{BASE}/investments/{INVESTMENT_ID}/transactions", headers=bearer())
        assert history.status_code == 200
        assert [tx["status"] for tx in history.json()["transactions"]] == ["approved"]

    def test_get_missing_investment(self, client):
        response = client.get(f"{BASE}/investments/missing", headers=bearer())
        assert response.status_code == 404


class TestFundingEndpoints:

    def test_approve_topup(self, client, store):
        store.seed(TOPUPS, "tp-1", {"userId": INVESTOR_ID, "amount": 40.0, "status": "pending"})

        response = client.post(f"{BASE}/topups/tp-1/approve", headers=bearer())

        assert response.status_code == 200, response.text
        assert response.json()["status"] == "approved"
        assert store.get_document(WALLETS, INVESTOR_ID)["balance"] == 40.0

    def test_reject_withdrawal_twice(self, client, store):
        store.seed("withdrawals", "wd-1", {"userId": INVESTOR_ID, "amount": 40.0, "status": "pending"})

        first = client.post(f"{BASE}/withdrawals/wd-1/reject", json={"reason": "Bank closed"}, headers=bearer())
        second = client.post(f"{BASE}/withdrawals/wd-1/reject", json={"reason": "Bank closed"}, headers=bearer())

        assert first.json()["already_applied"] is False
        assert second.json()["already_applied"] is True

    def test_approve_after_reject_conflicts(self, client, store):
        store.seed("withdrawals", "wd-1", {"userId": INVESTOR_ID, "amount": 40.0, "status": "rejected"})

        response = client.post(f"{BASE}/withdrawals/wd-1/approve", headers=bearer())

        assert response.status_code == 409
        assert response.json()["code"] == "INVALID_STATE_TRANSITION"


class TestAuditEndpoint:

    def test_lists_entries_for_target(self, client, seed_approval):
        seed_approval()
        client.post(f"{BASE}/investments/{INVESTMENT_ID}/approve", headers=bearer())

        response = client.get(f"{BASE}/audit-logs", params={"target_id": INVESTMENT_ID}, headers=bearer())

        assert response.status_code == 200, response.text
        data = response.json()
        assert data["count"] == 1
        assert data["logs"][0]["action"] == "APPROVE_INVESTMENT"
        assert data["logs"][0]["admin_uid"] == ADMIN_ID
