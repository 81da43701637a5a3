"""
Shared fixtures for the ledger core tests.

All tests run against InMemoryDocumentStore; no MongoDB is required.
"""
import os
from datetime import datetime

os.environ.setdefault("DOCUMENT_STORE", "memory")

import pytest

from core.accessors import INVESTMENTS, PROJECTS, WALLETS
from core.ledger_history import TRANSACTIONS
from core.memory_store import InMemoryDocumentStore

INVESTOR_ID = "user-1"
PROJECT_ID = "project-1"
INVESTMENT_ID = "inv-1"
ADMIN_ID = "admin-1"


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def seed_approval(store):
    """
    Seed a wallet, a project and a pending investment.

    `balance=None` leaves the wallet out, `project=False` leaves the project out.
    """
    def _seed(
        amount=100.0,
        balance=1000.0,
        project=None,
        investment_id=INVESTMENT_ID,
        user_id=INVESTOR_ID,
        status="pending",
        **investment_fields
    ):
        if balance is not None:
            store.seed(WALLETS, user_id, {"uid": user_id, "balance": balance})
        if project is None:
            project = {"name": "Solar Farm", "targetAmount": 10000.0, "totalInvested": 0.0, "totalInvestment": 0.0}
        if project is not False:
            store.seed(PROJECTS, PROJECT_ID, project)
        investment = {
            "userId": user_id,
            "projectId": PROJECT_ID,
            "amount": amount,
            "status": status,
            "createdAt": datetime(2024, 1, 10, 9, 30),
        }
        investment.update(investment_fields)
        store.seed(INVESTMENTS, investment_id, investment)
        return investment_id

    return _seed


@pytest.fixture
def history(store):
    """History records in insertion order"""
    def _history(**filters):
        return [
            doc for doc in store.all_documents(TRANSACTIONS)
            if all(doc.get(k) == v for k, v in filters.items())
        ]
    return _history
