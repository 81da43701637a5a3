"""
LEDGER CORE: MONGODB DOCUMENT STORE (Motor)

ALL ledger mutations run inside a MongoDB multi-document transaction.
Requires a replica set (transactions are unavailable on standalone servers).

Conflict mapping:
- `expect` guards become part of the update filter; zero matched documents
  means another writer got there first -> TransactionConflictError
- driver errors labelled TransientTransactionError /
  UnknownTransactionCommitResult -> TransactionConflictError

Everything else propagates unchanged.
"""

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError, PyMongoError
from bson import ObjectId
from typing import Any, Dict, List, Optional, Tuple
import logging

from core.document_store import DocumentStore, TransactionBody, TransactionContext, StagedWrite
from core.ledger_errors import TransactionConflictError

logger = logging.getLogger(__name__)

RETRYABLE_ERROR_LABELS = ("TransientTransactionError", "UnknownTransactionCommitResult")


def id_filter(doc_id: str) -> Dict[str, Any]:
    """Match string ids and legacy ObjectId ids alike"""
    if ObjectId.is_valid(doc_id):
        return {"_id": {"$in": [doc_id, ObjectId(doc_id)]}}
    return {"_id": doc_id}


def normalize_id(document: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if document is not None and "_id" in document:
        document["_id"] = str(document["_id"])
    return document


class MongoTransaction(TransactionContext):
    """One attempt bound to a Motor client session"""

    def __init__(self, db: AsyncIOMotorDatabase, session):
        super().__init__()
        self.db = db
        self.session = session

    async def _read(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        document = await self.db[collection].find_one(id_filter(doc_id), session=self.session)
        return normalize_id(document)


class MongoDocumentStore(DocumentStore):
    """
    DocumentStore over Motor.

    Usage:
        client = AsyncIOMotorClient(settings.MONGO_URL)
        store = MongoDocumentStore(client, client[settings.DB_NAME])
    """

    def __init__(self, client: AsyncIOMotorClient, db: AsyncIOMotorDatabase):
        self.client = client
        self.db = db

    async def run_in_transaction(self, body: TransactionBody) -> Any:
        try:
            async with await self.client.start_session() as session:
                async with session.start_transaction():
                    txn = MongoTransaction(self.db, session)
                    result = await body(txn)
                    for write in txn.writes:
                        await self._apply_write(write, session)
                    # Transaction commits automatically on context exit
                return result
        except PyMongoError as e:
            if any(e.has_error_label(label) for label in RETRYABLE_ERROR_LABELS):
                raise TransactionConflictError(f"MongoDB transaction conflict: {str(e)}")
            raise

    async def _apply_write(self, write: StagedWrite, session) -> None:
        collection = self.db[write.collection]

        if write.op == "insert":
            try:
                await collection.insert_one({"_id": write.doc_id, **write.document}, session=session)
            except DuplicateKeyError:
                raise TransactionConflictError(
                    f"{write.collection}/{write.doc_id} already exists"
                )
            return

        update: Dict[str, Any] = {}
        if write.set_fields:
            update["$set"] = write.set_fields
        if write.inc_fields:
            update["$inc"] = write.inc_fields
        if not update:
            return

        query = {**id_filter(write.doc_id), **write.expect}
        result = await collection.update_one(query, update, session=session)
        if result.matched_count == 0:
            raise TransactionConflictError(
                f"{write.collection}/{write.doc_id} changed during transaction"
            )

    async def find(
        self,
        collection: str,
        filters: Dict[str, Any],
        sort: Optional[List[Tuple[str, int]]] = None,
        limit: int = 0
    ) -> List[Dict[str, Any]]:
        cursor = self.db[collection].find(filters)
        if sort:
            cursor = cursor.sort(sort)
        if limit:
            cursor = cursor.limit(limit)
        documents = await cursor.to_list(length=limit or None)
        return [normalize_id(doc) for doc in documents]

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        document = await self.db[collection].find_one(id_filter(doc_id))
        return normalize_id(document)

    async def insert_one(self, collection: str, document: Dict[str, Any]) -> str:
        result = await self.db[collection].insert_one(dict(document))
        return str(result.inserted_id)

    async def close(self) -> None:
        self.client.close()
