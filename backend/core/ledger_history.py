"""
LEDGER CORE: TRANSACTION HISTORY

Append-only ledger entries in `transactions`. A terminal outcome (approved /
rejected) ALWAYS creates a new record; a pre-existing pending record is read
for provenance only and never edited.

Provenance carried forward from the prior record:
- currency      prior -> source document -> DEFAULT_CURRENCY
- description   prior -> outcome default ("Investment approved", ...)
- reference     prior -> source id
- createdAt     prior (real timestamp) -> source createdAt -> server time
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional
import logging

from core.accessors import as_timestamp
from core.document_store import DocumentStore, TransactionContext
from core.financial_precision import to_float
from core.side_effects import run_best_effort

logger = logging.getLogger(__name__)

TRANSACTIONS = "transactions"
DEFAULT_CURRENCY = "USD"

# Foreign-key fields searched, in order, for each source kind
LOOKUP_FIELDS = {
    "investment": ("investmentId",),
    "topup": ("topupId",),
    "withdrawal": ("withdrawalId", "reference"),
}


@dataclass
class Provenance:
    currency: str
    description: str
    reference: str
    created_at: datetime
    project_id: Optional[str] = None
    source_link: Optional[str] = None  # prior record's own back-reference (e.g. investmentId)


def build_provenance(
    prior: Optional[Dict[str, Any]],
    source_id: str,
    default_description: str,
    now: datetime,
    source_currency: Optional[str] = None,
    source_created_at: Optional[datetime] = None,
    source_project_id: Optional[str] = None,
    link_field: Optional[str] = None,
    default_currency: str = DEFAULT_CURRENCY
) -> Provenance:
    """Resolve the metadata a new terminal record inherits"""
    prior = prior or {}
    return Provenance(
        currency=prior.get("currency") or source_currency or default_currency,
        description=prior.get("description") or default_description,
        reference=prior.get("reference") or source_id,
        created_at=as_timestamp(prior.get("createdAt")) or source_created_at or now,
        project_id=prior.get("projectId") or source_project_id,
        source_link=(prior.get(link_field) if link_field else None) or source_id
    )


class TransactionStore:
    """Transaction history writer, bound to one transaction attempt"""

    def __init__(self, txn: TransactionContext):
        self.txn = txn

    async def get(self, transaction_id: Optional[str]) -> Optional[Dict[str, Any]]:
        if not transaction_id:
            return None
        return await self.txn.get(TRANSACTIONS, transaction_id)

    def append(
        self,
        user_id: str,
        amount: Optional[Decimal],
        tx_type: str,
        status: str,
        provenance: Provenance,
        link_fields: Dict[str, Any],
        outcome_fields: Dict[str, Any]
    ) -> str:
        """Stage a NEW history record; returns its id"""
        record = {
            "userId": user_id,
            "projectId": provenance.project_id,
            "amount": to_float(amount) if amount is not None else None,
            "currency": provenance.currency,
            "type": tx_type,
            "status": status,
            "description": provenance.description,
            "reference": provenance.reference,
            "createdAt": provenance.created_at,
        }
        record.update(link_fields)
        record.update(outcome_fields)
        return self.txn.insert(TRANSACTIONS, record)


async def find_prior_transaction_id(
    store: DocumentStore,
    source_kind: str,
    source_id: str,
    log: Optional[logging.Logger] = None
) -> Optional[str]:
    """
    Best-effort lookup of the newest history record tied to a source document.

    Runs OUTSIDE the atomic transaction: it is advisory only. Any failure is
    logged and treated as "no prior record".
    """
    log = log or logger
    fields = LOOKUP_FIELDS.get(source_kind, ())

    async def lookup() -> Optional[str]:
        for key in fields:
            docs = await store.find(
                TRANSACTIONS,
                {key: source_id},
                sort=[("createdAt", -1)],
                limit=1
            )
            if docs:
                return docs[0]["_id"]
        return None

    result = await run_best_effort(f"prior-transaction lookup {source_kind}/{source_id}", lookup, log)
    if result.ok and result.value:
        log.debug(f"[LEDGER] Prior transaction for {source_kind}/{source_id}: {result.value}")
    return result.value if result.ok else None
