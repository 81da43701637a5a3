"""
INVESTMENT APPROVAL / REJECTION TRANSACTIONS

approve(): pending -> active
    debits the investor's wallet, credits the project's capital counters,
    appends an "approved" history record and an APPROVE_INVESTMENT audit
    entry, all in ONE atomic transaction. Afterwards a best-effort
    notification is sent to the investor.

reject(): pending -> cancelled
    no money movement; appends a "rejected" history record and a
    REJECT_INVESTMENT audit entry in ONE atomic transaction.

Both are idempotent: repeating a completed transition is a successful no-op
with zero writes. Every transaction body re-reads all state on each retry
attempt and mutates nothing outside its own scope.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional
import logging

from audit_service import AuditService
from notification_service import NotificationService
from core.accessors import InvestmentStore, ProjectStore, WalletStore
from core.document_store import DocumentStore, TransactionContext
from core.financial_precision import format_currency, is_positive_amount, round_financial, to_float
from core.ledger_errors import (
    LedgerError,
    NotFoundError,
    InvalidUserReferenceError,
    InvalidProjectReferenceError,
    InvalidAmountError,
    CorruptProjectStateError,
    CorruptWalletStateError,
    ProjectGoalReachedError,
    ExceedsProjectCapacityError,
    WalletNotFoundError,
    InsufficientBalanceError
)
from core.ledger_history import (
    DEFAULT_CURRENCY,
    TransactionStore,
    build_provenance,
    find_prior_transaction_id
)
from core.side_effects import SideEffectResult
from core.state_machine import INVESTMENT_STATES
from core.transaction_runner import (
    DEFAULT_BACKOFF_BASE_MS,
    DEFAULT_MAX_ATTEMPTS,
    run_transaction
)

logger = logging.getLogger(__name__)


@dataclass
class LedgerOutcome:
    """Result of a committed (or idempotently skipped) ledger transition"""
    entity: str
    entity_id: str
    status: str
    already_applied: bool
    user_id: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    project_id: Optional[str] = None
    project_name: Optional[str] = None
    transaction_id: Optional[str] = None
    audit_id: Optional[str] = None
    side_effects: List[SideEffectResult] = field(default_factory=list)

    def to_response(self) -> Dict[str, Any]:
        return {
            "success": True,
            "entity": self.entity,
            f"{self.entity}_id": self.entity_id,
            "status": self.status,
            "already_applied": self.already_applied,
            "transaction_id": self.transaction_id,
            "amount": to_float(self.amount) if self.amount is not None else None,
            "currency": self.currency,
            "side_effects": [
                {"name": effect.name, "ok": effect.ok, "error": effect.error}
                for effect in self.side_effects
            ]
        }


class InvestmentTransactionService:
    """
    Investment approval orchestrator.

    Usage:
        service = InvestmentTransactionService(store)
        outcome = await service.approve(investment_id, admin_uid, admin_email)
    """

    def __init__(
        self,
        store: DocumentStore,
        audit_service: Optional[AuditService] = None,
        notification_service: Optional[NotificationService] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_base_ms: int = DEFAULT_BACKOFF_BASE_MS,
        default_currency: str = DEFAULT_CURRENCY,
        log: Optional[logging.Logger] = None
    ):
        self.store = store
        self.log = log or logger
        self.audit = audit_service or AuditService(store)
        self.notifications = notification_service or NotificationService(store, self.log)
        self.max_attempts = max_attempts
        self.backoff_base_ms = backoff_base_ms
        self.default_currency = default_currency

    # =========================================================================
    # APPROVAL
    # =========================================================================

    async def approve(
        self,
        investment_id: str,
        actor_id: str,
        actor_label: Optional[str] = None
    ) -> LedgerOutcome:
        """
        Approve a pending investment.

        Raises a LedgerError subclass on any validation failure; nothing is
        written in that case.
        """
        prior_transaction_id = await find_prior_transaction_id(
            self.store, "investment", investment_id, self.log
        )

        async def approve_investment(txn: TransactionContext) -> LedgerOutcome:
            investments = InvestmentStore(txn)
            projects = ProjectStore(txn)
            wallets = WalletStore(txn)
            history = TransactionStore(txn)

            # ---- reads + validation (no writes before this block ends) ----
            investment = await investments.get(investment_id)
            if investment is None:
                raise NotFoundError(f"Investment {investment_id} not found")

            if not INVESTMENT_STATES.resolve(investment_id, investment.status, "active", source_state="pending"):
                return LedgerOutcome(
                    entity="investment",
                    entity_id=investment_id,
                    status="active",
                    already_applied=True,
                    user_id=investment.user_id,
                    amount=investment.amount,
                    project_id=investment.project_id
                )

            user_id = investment.user_id
            if not user_id:
                raise InvalidUserReferenceError("Invalid investment: missing userId")

            # Money moves in whole cents
            amount = round_financial(investment.amount) if investment.amount is not None else None
            if not is_positive_amount(amount):
                raise InvalidAmountError(
                    "Invalid investment: amount must be > 0",
                    details={"amount": str(investment.raw_amount)}
                )

            if not investment.project_id:
                raise InvalidProjectReferenceError("Invalid investment: missing projectId")

            project = await projects.get(investment.project_id)
            if project is None:
                raise NotFoundError(f"Project {investment.project_id} not found")

            if project.total_invested is None or project.total_invested < Decimal('0'):
                raise CorruptProjectStateError(
                    f"Invalid project {project.project_id}: total invested is not a valid number",
                    details={"counters": {k: str(v) for k, v in project.raw_counters.items()}}
                )

            currency = investment.currency or self.default_currency
            if project.has_target:
                remaining = project.remaining
                if remaining <= Decimal('0'):
                    raise ProjectGoalReachedError(
                        "This project has already reached its investment goal",
                        details={"target_amount": to_float(project.target_amount)}
                    )
                if amount > remaining:
                    raise ExceedsProjectCapacityError(
                        f"Investment exceeds the project's remaining capacity. "
                        f"Available: {format_currency(remaining, currency)}",
                        details={"available": to_float(remaining), "requested": to_float(amount)}
                    )

            wallet = await wallets.get(user_id)
            if wallet is None:
                raise WalletNotFoundError(
                    f"User {user_id} has no wallet; cannot debit the investment amount"
                )
            if wallet.balance is None:
                raise CorruptWalletStateError(f"Invalid wallet for user {user_id}: balance is not a number")
            if wallet.balance < amount:
                raise InsufficientBalanceError(
                    "Insufficient balance to approve this investment",
                    details={"balance": to_float(wallet.balance), "requested": to_float(amount)}
                )

            prior = await history.get(investment.transaction_id or prior_transaction_id)

            # ---- writes ----
            now = txn.now()
            provenance = build_provenance(
                prior,
                investment_id,
                "Investment approved",
                now,
                source_currency=investment.currency,
                source_created_at=investment.created_at,
                source_project_id=investment.project_id,
                link_field="investmentId",
                default_currency=self.default_currency
            )

            wallets.debit(wallet, amount)
            projects.add_investment(project, amount)
            investments.mark_active(investment, actor_id)
            transaction_id = history.append(
                user_id=user_id,
                amount=amount,
                tx_type="investment",
                status="approved",
                provenance=provenance,
                link_fields={"investmentId": provenance.source_link},
                outcome_fields={"approvedAt": now, "approvedBy": actor_id}
            )
            audit_id = self.audit.record(
                txn,
                action="APPROVE_INVESTMENT",
                admin_uid=actor_id,
                admin_email=actor_label,
                target_user_id=user_id,
                target_id=investment_id,
                metadata={
                    "amount": to_float(amount),
                    "investmentId": investment_id,
                    "projectId": investment.project_id
                }
            )

            return LedgerOutcome(
                entity="investment",
                entity_id=investment_id,
                status="active",
                already_applied=False,
                user_id=user_id,
                amount=amount,
                currency=provenance.currency,
                project_id=investment.project_id,
                project_name=project.name,
                transaction_id=transaction_id,
                audit_id=audit_id
            )

        outcome = await self._run(approve_investment, f"approve investment {investment_id}")

        if outcome.already_applied:
            self.log.info(f"[LEDGER] Investment {investment_id} already active; nothing written")
            return outcome

        self.log.info(
            f"[LEDGER] Investment {investment_id} approved by {actor_id}: "
            f"{to_float(outcome.amount)} {outcome.currency} -> project {outcome.project_id}"
        )
        notification = await self.notifications.notify_investment_approved(
            user_id=outcome.user_id,
            investment_id=investment_id,
            project_id=outcome.project_id,
            project_name=outcome.project_name,
            amount=outcome.amount,
            currency=outcome.currency
        )
        outcome.side_effects.append(notification)
        return outcome

    # =========================================================================
    # REJECTION
    # =========================================================================

    async def reject(
        self,
        investment_id: str,
        reason: str,
        actor_id: str,
        actor_label: Optional[str] = None
    ) -> LedgerOutcome:
        """Reject a pending investment. Never touches wallets or projects."""
        prior_transaction_id = await find_prior_transaction_id(
            self.store, "investment", investment_id, self.log
        )

        async def reject_investment(txn: TransactionContext) -> LedgerOutcome:
            investments = InvestmentStore(txn)
            history = TransactionStore(txn)

            investment = await investments.get(investment_id)
            if investment is None:
                raise NotFoundError(f"Investment {investment_id} not found")

            if not INVESTMENT_STATES.resolve(investment_id, investment.status, "cancelled", source_state="pending"):
                return LedgerOutcome(
                    entity="investment",
                    entity_id=investment_id,
                    status="cancelled",
                    already_applied=True,
                    user_id=investment.user_id,
                    amount=investment.amount,
                    project_id=investment.project_id
                )

            user_id = investment.user_id
            if not user_id:
                raise InvalidUserReferenceError("Invalid investment: missing userId")

            prior = await history.get(investment.transaction_id or prior_transaction_id)

            now = txn.now()
            provenance = build_provenance(
                prior,
                investment_id,
                "Investment rejected",
                now,
                source_currency=investment.currency,
                source_created_at=investment.created_at,
                source_project_id=investment.project_id,
                link_field="investmentId",
                default_currency=self.default_currency
            )

            investments.mark_cancelled(investment, actor_id, reason)
            transaction_id = history.append(
                user_id=user_id,
                amount=investment.amount,
                tx_type="investment",
                status="rejected",
                provenance=provenance,
                link_fields={"investmentId": provenance.source_link},
                outcome_fields={
                    "rejectionReason": reason,
                    "rejectedAt": now,
                    "rejectedBy": actor_id
                }
            )
            audit_id = self.audit.record(
                txn,
                action="REJECT_INVESTMENT",
                admin_uid=actor_id,
                admin_email=actor_label,
                target_user_id=user_id,
                target_id=investment_id,
                reason=reason
            )

            return LedgerOutcome(
                entity="investment",
                entity_id=investment_id,
                status="cancelled",
                already_applied=False,
                user_id=user_id,
                amount=investment.amount,
                currency=provenance.currency,
                project_id=provenance.project_id,
                transaction_id=transaction_id,
                audit_id=audit_id
            )

        outcome = await self._run(reject_investment, f"reject investment {investment_id}")
        if outcome.already_applied:
            self.log.info(f"[LEDGER] Investment {investment_id} already cancelled; nothing written")
        else:
            self.log.info(f"[LEDGER] Investment {investment_id} rejected by {actor_id}: {reason}")
        return outcome

    async def _run(self, body, label: str) -> LedgerOutcome:
        try:
            return await run_transaction(
                self.store,
                body,
                max_attempts=self.max_attempts,
                base_delay_ms=self.backoff_base_ms,
                label=label
            )
        except LedgerError as e:
            self.log.warning(f"[LEDGER] {label} failed: {e.code}: {e.message}")
            raise
