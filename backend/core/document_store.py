"""
LEDGER CORE: DOCUMENT STORE CONTRACT

The approval / rejection transactions never talk to a database driver
directly. They talk to a DocumentStore, which offers:

(a) point reads by collection + id
(b) small queries filtered by a foreign-key field
(c) atomic multi-document read-then-write transactions
(d) server-assigned timestamps
(e) atomic numeric increments
(f) append-only inserts with store-generated ids

Transaction discipline (enforced by TransactionContext):
- all reads happen before the first write is staged
- writes are buffered and applied all-or-nothing at commit
- `expect` guards are compare-and-set checks evaluated at commit; a failed
  guard (or any concurrent change to a document that was read) surfaces as
  TransactionConflictError so the runner can retry with fresh reads
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar
from bson import ObjectId
import logging

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ReadAfterWriteError(Exception):
    """Raised when a transaction body reads after staging a write"""
    pass


@dataclass
class StagedWrite:
    """A buffered mutation, applied at commit"""
    op: str  # "update" | "insert"
    collection: str
    doc_id: str
    set_fields: Dict[str, Any] = field(default_factory=dict)
    inc_fields: Dict[str, Any] = field(default_factory=dict)
    expect: Dict[str, Any] = field(default_factory=dict)
    document: Optional[Dict[str, Any]] = None


class TransactionContext(ABC):
    """
    One attempt of an atomic unit of work.

    Subclasses implement `_read`; the store that created the context applies
    `self.writes` at commit.
    """

    def __init__(self):
        self.writes: List[StagedWrite] = []

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        if self.writes:
            raise ReadAfterWriteError(
                f"Read of {collection}/{doc_id} after writes were staged"
            )
        return await self._read(collection, doc_id)

    @abstractmethod
    async def _read(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        ...

    def update(
        self,
        collection: str,
        doc_id: str,
        set_fields: Optional[Dict[str, Any]] = None,
        inc_fields: Optional[Dict[str, Any]] = None,
        expect: Optional[Dict[str, Any]] = None
    ) -> None:
        """Stage an update of an existing document"""
        self.writes.append(StagedWrite(
            op="update",
            collection=collection,
            doc_id=doc_id,
            set_fields=dict(set_fields or {}),
            inc_fields=dict(inc_fields or {}),
            expect=dict(expect or {})
        ))

    def insert(self, collection: str, document: Dict[str, Any], doc_id: Optional[str] = None) -> str:
        """Stage an append-only insert; returns the generated id"""
        new_id = doc_id or self.new_id()
        self.writes.append(StagedWrite(
            op="insert",
            collection=collection,
            doc_id=new_id,
            document=dict(document)
        ))
        return new_id

    def new_id(self) -> str:
        return str(ObjectId())

    def now(self) -> datetime:
        """Server time for this attempt"""
        return datetime.utcnow()


TransactionBody = Callable[[TransactionContext], Awaitable[T]]


class DocumentStore(ABC):
    """Storage backend used by the ledger services"""

    @abstractmethod
    async def run_in_transaction(self, body: TransactionBody) -> Any:
        """
        Execute `body` as ONE attempt: begin, run, commit.

        Raises TransactionConflictError on commit conflict; any exception
        raised by `body` aborts without writes and propagates unchanged.
        """
        ...

    @abstractmethod
    async def find(
        self,
        collection: str,
        filters: Dict[str, Any],
        sort: Optional[List[Tuple[str, int]]] = None,
        limit: int = 0
    ) -> List[Dict[str, Any]]:
        """Plain (non-transactional) query. Documents carry `_id` as str."""
        ...

    @abstractmethod
    async def insert_one(self, collection: str, document: Dict[str, Any]) -> str:
        """Plain (non-transactional) insert; returns the new id"""
        ...

    async def find_one(self, collection: str, filters: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        docs = await self.find(collection, filters, limit=1)
        return docs[0] if docs else None

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Plain point read by id"""
        return await self.find_one(collection, {"_id": doc_id})

    async def close(self) -> None:
        pass
