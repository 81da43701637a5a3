"""
LEDGER CORE: IN-MEMORY DOCUMENT STORE

Optimistic-concurrency store with versioned documents. It implements the same
transaction contract as the MongoDB store, so the ledger services run against
it unchanged in unit tests and in DOCUMENT_STORE=memory development mode.

Commit protocol (read-validate-write):
1. every `get` records the version of the document it saw (0 = missing)
2. at commit, all recorded versions and `expect` guards are re-checked
3. if anything changed -> TransactionConflictError, nothing applied
4. otherwise all staged writes are applied and versions bumped

Commit contains no suspension points, so it is atomic with respect to other
coroutines on the same event loop.
"""

from copy import deepcopy
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
import asyncio
import logging

from core.document_store import DocumentStore, TransactionBody, TransactionContext, StagedWrite
from core.ledger_errors import TransactionConflictError

logger = logging.getLogger(__name__)


def sort_key(value: Any) -> Tuple[int, Any]:
    """Mixed field types sort by type bucket first, as MongoDB orders BSON types"""
    if value is None:
        return (0, 0)
    if isinstance(value, bool):
        return (4, value)
    if isinstance(value, (int, float, Decimal)):
        return (1, value)
    if isinstance(value, str):
        return (2, value)
    if isinstance(value, datetime):
        return (5, value)
    return (3, repr(value))


class MemoryTransaction(TransactionContext):
    """One attempt against an InMemoryDocumentStore"""

    def __init__(self, store: "InMemoryDocumentStore"):
        super().__init__()
        self.store = store
        self.read_versions: Dict[Tuple[str, str], int] = {}

    async def _read(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        # Yield so concurrent transactions interleave between reads
        await asyncio.sleep(0)
        version, document = self.store._entry(collection, doc_id)
        self.read_versions.setdefault((collection, doc_id), version)
        if document is None:
            return None
        result = deepcopy(document)
        result["_id"] = doc_id
        return result


class InMemoryDocumentStore(DocumentStore):
    """Versioned dict-of-dicts store"""

    def __init__(self):
        self._collections: Dict[str, Dict[str, Tuple[int, Dict[str, Any]]]] = {}
        self.commit_count = 0
        self.conflict_count = 0
        self._sequence = 0

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    async def run_in_transaction(self, body: TransactionBody) -> Any:
        txn = MemoryTransaction(self)
        result = await body(txn)
        self._commit(txn)
        return result

    def _commit(self, txn: MemoryTransaction) -> None:
        for (collection, doc_id), seen_version in txn.read_versions.items():
            current_version, _ = self._entry(collection, doc_id)
            if current_version != seen_version:
                self.conflict_count += 1
                raise TransactionConflictError(
                    f"{collection}/{doc_id} changed during transaction "
                    f"(read v{seen_version}, now v{current_version})"
                )

        for write in txn.writes:
            self._validate_write(write)

        for write in txn.writes:
            self._apply_write(write)

        if txn.writes:
            self.commit_count += 1
            logger.debug(f"[MEMORY_STORE] Committed {len(txn.writes)} writes")

    def _validate_write(self, write: StagedWrite) -> None:
        _, document = self._entry(write.collection, write.doc_id)
        if write.op == "insert":
            if document is not None:
                self.conflict_count += 1
                raise TransactionConflictError(
                    f"{write.collection}/{write.doc_id} already exists"
                )
            return

        if document is None:
            self.conflict_count += 1
            raise TransactionConflictError(
                f"{write.collection}/{write.doc_id} disappeared during transaction"
            )
        for key, expected in write.expect.items():
            if document.get(key) != expected:
                self.conflict_count += 1
                raise TransactionConflictError(
                    f"{write.collection}/{write.doc_id}.{key} changed during transaction"
                )

    def _apply_write(self, write: StagedWrite) -> None:
        bucket = self._collections.setdefault(write.collection, {})
        if write.op == "insert":
            bucket[write.doc_id] = (1, deepcopy(write.document))
            return

        version, document = bucket[write.doc_id]
        updated = deepcopy(document)
        updated.update(deepcopy(write.set_fields))
        for key, delta in write.inc_fields.items():
            updated[key] = (updated.get(key) or 0) + delta
        bucket[write.doc_id] = (version + 1, updated)

    # =========================================================================
    # PLAIN OPERATIONS
    # =========================================================================

    async def find(
        self,
        collection: str,
        filters: Dict[str, Any],
        sort: Optional[List[Tuple[str, int]]] = None,
        limit: int = 0
    ) -> List[Dict[str, Any]]:
        await asyncio.sleep(0)
        matches = []
        for doc_id, (_, document) in self._collections.get(collection, {}).items():
            candidate = dict(document, _id=doc_id)
            if all(candidate.get(key) == value for key, value in filters.items()):
                matches.append(deepcopy(candidate))

        for key, direction in reversed(sort or []):
            matches.sort(key=lambda d: sort_key(d.get(key)), reverse=direction < 0)

        return matches[:limit] if limit else matches

    async def insert_one(self, collection: str, document: Dict[str, Any]) -> str:
        await asyncio.sleep(0)
        doc_id = self._next_id()
        self._collections.setdefault(collection, {})[doc_id] = (1, deepcopy(document))
        return doc_id

    # =========================================================================
    # INSPECTION / SEEDING
    # =========================================================================

    def seed(self, collection: str, doc_id: str, document: Dict[str, Any]) -> None:
        bucket = self._collections.setdefault(collection, {})
        version, _ = bucket.get(doc_id, (0, None))
        bucket[doc_id] = (version + 1, deepcopy(document))

    def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        _, document = self._entry(collection, doc_id)
        if document is None:
            return None
        result = deepcopy(document)
        result["_id"] = doc_id
        return result

    def all_documents(self, collection: str) -> List[Dict[str, Any]]:
        return [
            dict(deepcopy(document), _id=doc_id)
            for doc_id, (_, document) in self._collections.get(collection, {}).items()
        ]

    def _entry(self, collection: str, doc_id: str) -> Tuple[int, Optional[Dict[str, Any]]]:
        return self._collections.get(collection, {}).get(doc_id, (0, None))

    def _next_id(self) -> str:
        self._sequence += 1
        return f"mem-{self._sequence:08d}"
