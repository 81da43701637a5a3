"""
LEDGER CORE: DATA-ACCESS BOUNDARY

Read-modify-write primitives bound to a single TransactionContext:

- WalletStore         wallets/{userId}.balance
- ProjectStore        projects/{id} capital counters and target ceiling
- InvestmentStore     investments/{id} status transitions
- FundingRequestStore topups/{id} and withdrawals/{id} status transitions

Legacy field aliases are resolved HERE, once, into canonical snapshots.
Business logic never sees `target` / `goalAmount` / `totalInvestment`.

Every staged update carries an `expect` guard on the values that were read,
so a concurrent writer turns into a commit conflict instead of a lost update.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional
import logging

from core.document_store import TransactionContext
from core.financial_precision import parse_amount, round_financial, to_float

logger = logging.getLogger(__name__)

# Collections
INVESTMENTS = "investments"
WALLETS = "wallets"
PROJECTS = "projects"
TOPUPS = "topups"
WITHDRAWALS = "withdrawals"

# Project field aliases, in precedence order
TARGET_FIELDS = ("targetAmount", "target", "goalAmount")
TOTAL_FIELDS = ("totalInvestment", "totalInvested", "totalInvestedAmount")
# Both legacy counters are always written together
COUNTER_FIELDS = ("totalInvested", "totalInvestment")
NAME_FIELDS = ("name", "title", "projectName")


def first_present(document: Dict[str, Any], fields) -> Any:
    for key in fields:
        value = document.get(key)
        if value is not None:
            return value
    return None


def is_stored_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def as_timestamp(value: Any) -> Optional[datetime]:
    """Only real timestamps count; ISO strings written by clients do not"""
    return value if isinstance(value, datetime) else None


# =============================================================================
# WALLETS
# =============================================================================

@dataclass
class WalletSnapshot:
    user_id: str
    raw_balance: Any
    balance: Optional[Decimal]  # None when the stored value is not a finite number


class WalletStore:
    """Money ledger accessor"""

    def __init__(self, txn: TransactionContext):
        self.txn = txn

    async def get(self, user_id: str) -> Optional[WalletSnapshot]:
        doc = await self.txn.get(WALLETS, user_id)
        if doc is None:
            return None
        raw_balance = doc.get("balance")
        balance = Decimal('0') if raw_balance is None else parse_amount(raw_balance)
        return WalletSnapshot(user_id=user_id, raw_balance=raw_balance, balance=balance)

    def debit(self, wallet: WalletSnapshot, amount: Decimal) -> None:
        self._adjust(wallet, -amount)

    def credit(self, wallet: WalletSnapshot, amount: Decimal) -> None:
        self._adjust(wallet, amount)

    def create(self, user_id: str, opening_balance: Decimal) -> None:
        now = self.txn.now()
        self.txn.insert(WALLETS, {
            "uid": user_id,
            "balance": to_float(opening_balance),
            "createdAt": now,
            "updatedAt": now
        }, doc_id=user_id)

    def _adjust(self, wallet: WalletSnapshot, delta: Decimal) -> None:
        # Absolute value at cents precision; the expect guard makes $set race-safe
        self.txn.update(
            WALLETS,
            wallet.user_id,
            set_fields={
                "balance": to_float(round_financial(wallet.balance + delta)),
                "updatedAt": self.txn.now()
            },
            expect={"balance": wallet.raw_balance}
        )


# =============================================================================
# PROJECTS
# =============================================================================

@dataclass
class ProjectCapital:
    project_id: str
    name: Optional[str]
    target_amount: Optional[Decimal]
    total_invested: Optional[Decimal]  # None when the stored counter is corrupt
    raw_counters: Dict[str, Any] = field(default_factory=dict)

    @property
    def has_target(self) -> bool:
        return self.target_amount is not None and self.target_amount > Decimal('0')

    @property
    def remaining(self) -> Optional[Decimal]:
        if not self.has_target or self.total_invested is None:
            return None
        return self.target_amount - self.total_invested

    @property
    def counters_consistent(self) -> bool:
        """Both legacy counters hold the canonical total"""
        return all(
            is_stored_number(self.raw_counters.get(key))
            and parse_amount(self.raw_counters.get(key)) == self.total_invested
            for key in COUNTER_FIELDS
        )


def normalize_project(project_id: str, doc: Dict[str, Any]) -> ProjectCapital:
    """Collapse legacy aliases into the canonical capital view"""
    raw_total = first_present(doc, TOTAL_FIELDS)
    total = Decimal('0') if raw_total is None else parse_amount(raw_total)
    name = first_present(doc, NAME_FIELDS)
    return ProjectCapital(
        project_id=project_id,
        name=str(name) if name else None,
        target_amount=parse_amount(first_present(doc, TARGET_FIELDS)),
        total_invested=total,
        raw_counters={key: doc.get(key) for key in COUNTER_FIELDS}
    )


class ProjectStore:
    """Project capital accessor"""

    def __init__(self, txn: TransactionContext):
        self.txn = txn

    async def get(self, project_id: str) -> Optional[ProjectCapital]:
        doc = await self.txn.get(PROJECTS, project_id)
        if doc is None:
            return None
        return normalize_project(project_id, doc)

    def add_investment(self, project: ProjectCapital, amount: Decimal) -> None:
        """Write the new canonical total to both legacy counters"""
        if not project.counters_consistent:
            logger.warning(
                f"[LEDGER] Project {project.project_id} counters out of sync "
                f"{project.raw_counters}; rewriting both"
            )
        new_total = to_float(round_financial(project.total_invested + amount))
        set_fields = {key: new_total for key in COUNTER_FIELDS}
        set_fields["updatedAt"] = self.txn.now()

        self.txn.update(
            PROJECTS,
            project.project_id,
            set_fields=set_fields,
            expect=dict(project.raw_counters)
        )


# =============================================================================
# INVESTMENTS
# =============================================================================

@dataclass
class InvestmentSnapshot:
    investment_id: str
    status: Optional[str]
    user_id: Optional[str]
    project_id: Optional[str]
    amount: Optional[Decimal]
    raw_amount: Any
    transaction_id: Optional[str]
    currency: Optional[str]
    created_at: Optional[datetime]


class InvestmentStore:
    """Investment record accessor"""

    def __init__(self, txn: TransactionContext):
        self.txn = txn

    async def get(self, investment_id: str) -> Optional[InvestmentSnapshot]:
        doc = await self.txn.get(INVESTMENTS, investment_id)
        if doc is None:
            return None
        return InvestmentSnapshot(
            investment_id=investment_id,
            status=doc.get("status"),
            user_id=doc.get("userId") or None,
            project_id=doc.get("projectId") or None,
            amount=parse_amount(doc.get("amount")),
            raw_amount=doc.get("amount"),
            transaction_id=doc.get("transactionId") or None,
            currency=doc.get("currency") or None,
            created_at=as_timestamp(doc.get("createdAt"))
        )

    def mark_active(self, investment: InvestmentSnapshot, actor_id: str) -> None:
        now = self.txn.now()
        self.txn.update(
            INVESTMENTS,
            investment.investment_id,
            set_fields={
                "status": "active",
                "approvedAt": now,
                "approvedBy": actor_id,
                "updatedAt": now
            },
            expect={"status": investment.status}
        )

    def mark_cancelled(self, investment: InvestmentSnapshot, actor_id: str, reason: str) -> None:
        now = self.txn.now()
        self.txn.update(
            INVESTMENTS,
            investment.investment_id,
            set_fields={
                "status": "cancelled",
                "cancelledAt": now,
                "cancelledBy": actor_id,
                "cancellationReason": reason,
                "updatedAt": now
            },
            expect={"status": investment.status}
        )


# =============================================================================
# FUNDING REQUESTS (TOP-UPS / WITHDRAWALS)
# =============================================================================

FUNDING_COLLECTIONS = {
    "topup": TOPUPS,
    "withdrawal": WITHDRAWALS,
}


@dataclass
class FundingRequestSnapshot:
    request_id: str
    kind: str
    status: Optional[str]
    user_id: Optional[str]
    amount: Optional[Decimal]
    transaction_id: Optional[str]
    currency: Optional[str]
    created_at: Optional[datetime]
    raw: Dict[str, Any] = field(default_factory=dict)


class FundingRequestStore:
    """Top-up / withdrawal request accessor"""

    def __init__(self, txn: TransactionContext, kind: str):
        if kind not in FUNDING_COLLECTIONS:
            raise ValueError(f"Unknown funding request kind: {kind}")
        self.txn = txn
        self.kind = kind
        self.collection = FUNDING_COLLECTIONS[kind]

    async def get(self, request_id: str) -> Optional[FundingRequestSnapshot]:
        doc = await self.txn.get(self.collection, request_id)
        if doc is None:
            return None
        return FundingRequestSnapshot(
            request_id=request_id,
            kind=self.kind,
            status=doc.get("status"),
            user_id=doc.get("userId") or None,
            amount=parse_amount(doc.get("amount")),
            transaction_id=doc.get("transactionId") or None,
            currency=doc.get("currency") or None,
            created_at=as_timestamp(doc.get("createdAt")),
            raw=doc
        )

    def mark_approved(self, request: FundingRequestSnapshot, actor_id: str) -> None:
        now = self.txn.now()
        self.txn.update(
            self.collection,
            request.request_id,
            set_fields={
                "status": "approved",
                "approvedAt": now,
                "approvedBy": actor_id,
                "updatedAt": now
            },
            expect={"status": request.status}
        )

    def mark_rejected(self, request: FundingRequestSnapshot, actor_id: str, reason: str) -> None:
        now = self.txn.now()
        self.txn.update(
            self.collection,
            request.request_id,
            set_fields={
                "status": "rejected",
                "rejectedAt": now,
                "rejectedBy": actor_id,
                "rejectionReason": reason,
                "updatedAt": now
            },
            expect={"status": request.status}
        )
