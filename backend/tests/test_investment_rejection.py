"""
Investment rejection tests
Testing: pending -> cancelled, no money movement, history and audit
"""
import asyncio
from datetime import datetime

import pytest

from audit_service import AUDIT_LOGS
from investment_service import InvestmentTransactionService
from notification_service import NOTIFICATIONS
from core.accessors import INVESTMENTS, PROJECTS, WALLETS
from core.ledger_errors import (
    NotFoundError,
    InvalidStateTransitionError,
    InvalidUserReferenceError
)
from core.ledger_history import TRANSACTIONS

from conftest import ADMIN_ID, INVESTMENT_ID, INVESTOR_ID, PROJECT_ID

REASON = "KYC documents expired"


def reject(store, investment_id=INVESTMENT_ID, reason=REASON):
    service = InvestmentTransactionService(store, backoff_base_ms=0)
    return asyncio.run(service.reject(investment_id, reason, ADMIN_ID, "admin@example.com"))


class TestRejection:
    """Rejecting a pending investment"""

    def test_rejection_cancels_without_moving_money(self, store, seed_approval):
        seed_approval(amount=100.0, balance=1000.0)

        outcome = reject(store)

        assert outcome.status == "cancelled"
        assert outcome.already_applied is False
        investment = store.get_document(INVESTMENTS, INVESTMENT_ID)
        assert investment["status"] == "cancelled"
        assert investment["cancellationReason"] == REASON
        assert investment["cancelledBy"] == ADMIN_ID
        assert store.get_document(WALLETS, INVESTOR_ID)["balance"] == 1000.0
        assert store.get_document(PROJECTS, PROJECT_ID)["totalInvested"] == 0.0

    def test_rejection_records_history_and_audit(self, store, seed_approval, history):
        seed_approval(amount=100.0)

        outcome = reject(store)

        records = history(status="rejected")
        assert len(records) == 1
        assert records[0]["_id"] == outcome.transaction_id
        assert records[0]["rejectionReason"] == REASON
        assert records[0]["rejectedBy"] == ADMIN_ID
        assert records[0]["description"] == "Investment rejected"
        assert records[0]["investmentId"] == INVESTMENT_ID

        logs = store.all_documents(AUDIT_LOGS)
        assert [log["action"] for log in logs] == ["REJECT_INVESTMENT"]
        assert logs[0]["reason"] == REASON

    def test_rejection_sends_no_notification(self, store, seed_approval):
        seed_approval()

        reject(store)

        assert store.all_documents(NOTIFICATIONS) == []

    def test_rejection_keeps_prior_provenance(self, store, seed_approval, history):
        store.seed(TRANSACTIONS, "tx-1", {
            "userId": INVESTOR_ID,
            "investmentId": INVESTMENT_ID,
            "currency": "EUR",
            "status": "pending",
            "description": "Investment in Solar Farm",
            "reference": "INV-7",
            "createdAt": datetime(2024, 1, 1)
        })
        seed_approval(transactionId="tx-1")

        reject(store)

        record = history(status="rejected")[0]
        assert record["currency"] == "EUR"
        assert record["reference"] == "INV-7"
        assert record["createdAt"] == datetime(2024, 1, 1)
        assert store.get_document(TRANSACTIONS, "tx-1")["status"] == "pending"

    def test_rejection_does_not_require_project_or_wallet(self, store, seed_approval):
        seed_approval(balance=None, project=False)

        outcome = reject(store)

        assert outcome.status == "cancelled"


class TestRejectionValidation:

    def test_missing_investment(self, store):
        with pytest.raises(NotFoundError):
            reject(store, "missing")
        assert store.commit_count == 0

    def test_reject_active_investment(self, store, seed_approval):
        seed_approval(status="active")

        with pytest.raises(InvalidStateTransitionError):
            reject(store)
        assert store.commit_count == 0

    def test_missing_user_reference(self, store, seed_approval):
        seed_approval(userId=None)

        with pytest.raises(InvalidUserReferenceError):
            reject(store)
        assert store.commit_count == 0

    def test_second_rejection_is_noop(self, store, seed_approval, history):
        seed_approval()
        reject(store)
        commits = store.commit_count

        outcome = reject(store, reason="again")

        assert outcome.already_applied is True
        assert store.commit_count == commits
        assert len(history(status="rejected")) == 1
        assert store.get_document(INVESTMENTS, INVESTMENT_ID)["cancellationReason"] == REASON
