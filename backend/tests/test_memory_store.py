"""
In-memory document store tests
Testing: read-before-write discipline, conflict detection, atomic commit
"""
import asyncio
from datetime import datetime

import pytest

from core.document_store import ReadAfterWriteError
from core.ledger_errors import TransactionConflictError


def run(store, body):
    return asyncio.run(store.run_in_transaction(body))


class TestTransactionDiscipline:

    def test_read_after_write_is_rejected(self, store):
        store.seed("wallets", "u1", {"balance": 10})

        async def body(txn):
            txn.update("wallets", "u1", set_fields={"balance": 5})
            await txn.get("wallets", "u1")

        with pytest.raises(ReadAfterWriteError):
            run(store, body)
        assert store.get_document("wallets", "u1")["balance"] == 10

    def test_writes_applied_together(self, store):
        store.seed("wallets", "u1", {"balance": 10})
        store.seed("projects", "p1", {"totalInvested": 0})

        async def body(txn):
            await txn.get("wallets", "u1")
            txn.update("wallets", "u1", inc_fields={"balance": -4})
            txn.update("projects", "p1", inc_fields={"totalInvested": 4})
            return txn.insert("transactions", {"amount": 4})

        tx_id = run(store, body)

        assert store.get_document("wallets", "u1")["balance"] == 6
        assert store.get_document("projects", "p1")["totalInvested"] == 4
        assert store.get_document("transactions", tx_id)["amount"] == 4
        assert store.commit_count == 1

    def test_error_in_body_discards_writes(self, store):
        store.seed("wallets", "u1", {"balance": 10})

        async def body(txn):
            await txn.get("wallets", "u1")
            txn.update("wallets", "u1", set_fields={"balance": 0})
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            run(store, body)
        assert store.get_document("wallets", "u1")["balance"] == 10
        assert store.commit_count == 0


class TestConflictDetection:

    def test_concurrent_change_to_read_document(self, store):
        store.seed("wallets", "u1", {"balance": 10})

        async def body(txn):
            await txn.get("wallets", "u1")
            store.seed("wallets", "u1", {"balance": 99})
            txn.update("wallets", "u1", inc_fields={"balance": -4})

        with pytest.raises(TransactionConflictError):
            run(store, body)
        assert store.get_document("wallets", "u1")["balance"] == 99
        assert store.conflict_count == 1

    def test_missing_document_created_concurrently(self, store):
        async def body(txn):
            assert await txn.get("wallets", "u1") is None
            store.seed("wallets", "u1", {"balance": 1})
            txn.insert("wallets", {"balance": 5}, doc_id="u1")

        with pytest.raises(TransactionConflictError):
            run(store, body)
        assert store.get_document("wallets", "u1")["balance"] == 1

    def test_failed_expect_guard(self, store):
        store.seed("investments", "inv-1", {"status": "pending"})

        async def body(txn):
            txn.update("investments", "inv-1", set_fields={"status": "active"}, expect={"status": "paused"})

        with pytest.raises(TransactionConflictError):
            run(store, body)
        assert store.get_document("investments", "inv-1")["status"] == "pending"

    def test_expect_none_matches_missing_field(self, store):
        store.seed("wallets", "u1", {"uid": "u1"})

        async def body(txn):
            txn.update("wallets", "u1", set_fields={"balance": 5}, expect={"balance": None})

        run(store, body)
        assert store.get_document("wallets", "u1")["balance"] == 5

    def test_update_of_missing_document(self, store):
        async def body(txn):
            txn.update("wallets", "ghost", set_fields={"balance": 5})

        with pytest.raises(TransactionConflictError):
            run(store, body)


class TestPlainQueries:

    def test_find_filters_sorts_and_limits(self, store):
        store.seed("transactions", "a", {"investmentId": "inv-1", "createdAt": datetime(2024, 1, 1)})
        store.seed("transactions", "b", {"investmentId": "inv-1", "createdAt": datetime(2024, 3, 1)})
        store.seed("transactions", "c", {"investmentId": "inv-2", "createdAt": datetime(2024, 2, 1)})

        docs = asyncio.run(store.find("transactions", {"investmentId": "inv-1"}, sort=[("createdAt", -1)]))
        assert [d["_id"] for d in docs] == ["b", "a"]

        newest = asyncio.run(store.find("transactions", {}, sort=[("createdAt", -1)], limit=1))
        assert [d["_id"] for d in newest] == ["b"]

    def test_sort_tolerates_mixed_types(self, store):
        store.seed("transactions", "date", {"investmentId": "inv-1", "createdAt": datetime(2024, 3, 1)})
        store.seed("transactions", "text", {"investmentId": "inv-1", "createdAt": "2024-05-01T00:00:00Z"})
        store.seed("transactions", "none", {"investmentId": "inv-1"})
        store.seed("transactions", "number", {"investmentId": "inv-1", "createdAt": 1714521600})

        docs = asyncio.run(store.find("transactions", {"investmentId": "inv-1"}, sort=[("createdAt", -1)]))

        assert [d["_id"] for d in docs] == ["date", "text", "number", "none"]

    def test_get_by_id(self, store):
        store.seed("investments", "inv-1", {"status": "pending"})

        doc = asyncio.run(store.get("investments", "inv-1"))

        assert doc == {"_id": "inv-1", "status": "pending"}
        assert asyncio.run(store.get("investments", "missing")) is None

    def test_insert_one_generates_id(self, store):
        doc_id = asyncio.run(store.insert_one("notifications", {"read": False}))

        assert store.get_document("notifications", doc_id) == {"_id": doc_id, "read": False}
