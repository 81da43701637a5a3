"""
WALLET FUNDING TRANSACTIONS (TOP-UPS / WITHDRAWALS)

Same ledger discipline as investment approval:
- one atomic transaction per decision
- every balance mutation paired with a NEW history record
- wallet balance never negative
- repeated decisions are idempotent no-ops
"""

from typing import Optional
import logging

from audit_service import AuditService
from investment_service import LedgerOutcome
from core.accessors import FundingRequestStore, WalletStore
from core.document_store import DocumentStore, TransactionContext
from core.financial_precision import is_positive_amount, round_financial, to_float
from core.ledger_errors import (
    LedgerError,
    NotFoundError,
    InvalidUserReferenceError,
    InvalidAmountError,
    CorruptWalletStateError,
    WalletNotFoundError,
    InsufficientBalanceError
)
from core.ledger_history import (
    DEFAULT_CURRENCY,
    TransactionStore,
    build_provenance,
    find_prior_transaction_id
)
from core.state_machine import MACHINES
from core.transaction_runner import (
    DEFAULT_BACKOFF_BASE_MS,
    DEFAULT_MAX_ATTEMPTS,
    run_transaction
)

logger = logging.getLogger(__name__)

DESCRIPTIONS = {
    ("topup", "approved"): "Top-up approved",
    ("topup", "rejected"): "Top-up rejected",
    ("withdrawal", "approved"): "Withdrawal approved",
    ("withdrawal", "rejected"): "Withdrawal rejected",
}


class WalletFundingService:
    """Approves / rejects top-up and withdrawal requests"""

    def __init__(
        self,
        store: DocumentStore,
        audit_service: Optional[AuditService] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_base_ms: int = DEFAULT_BACKOFF_BASE_MS,
        default_currency: str = DEFAULT_CURRENCY,
        log: Optional[logging.Logger] = None
    ):
        self.store = store
        self.log = log or logger
        self.audit = audit_service or AuditService(store)
        self.max_attempts = max_attempts
        self.backoff_base_ms = backoff_base_ms
        self.default_currency = default_currency

    async def approve_topup(self, topup_id: str, actor_id: str, actor_label: Optional[str] = None) -> LedgerOutcome:
        return await self._decide("topup", topup_id, "approved", actor_id, actor_label)

    async def reject_topup(
        self, topup_id: str, reason: str, actor_id: str, actor_label: Optional[str] = None
    ) -> LedgerOutcome:
        return await self._decide("topup", topup_id, "rejected", actor_id, actor_label, reason=reason)

    async def approve_withdrawal(
        self, withdrawal_id: str, actor_id: str, actor_label: Optional[str] = None
    ) -> LedgerOutcome:
        return await self._decide("withdrawal", withdrawal_id, "approved", actor_id, actor_label)

    async def reject_withdrawal(
        self, withdrawal_id: str, reason: str, actor_id: str, actor_label: Optional[str] = None
    ) -> LedgerOutcome:
        return await self._decide("withdrawal", withdrawal_id, "rejected", actor_id, actor_label, reason=reason)

    async def _decide(
        self,
        kind: str,
        request_id: str,
        target: str,
        actor_id: str,
        actor_label: Optional[str],
        reason: Optional[str] = None
    ) -> LedgerOutcome:
        machine = MACHINES[kind]
        link_field = f"{kind}Id"
        prior_transaction_id = await find_prior_transaction_id(self.store, kind, request_id, self.log)

        async def decide_funding_request(txn: TransactionContext) -> LedgerOutcome:
            requests = FundingRequestStore(txn, kind)
            wallets = WalletStore(txn)
            history = TransactionStore(txn)

            request = await requests.get(request_id)
            if request is None:
                raise NotFoundError(f"{kind.capitalize()} {request_id} not found")

            if not machine.resolve(request_id, request.status, target, source_state="pending"):
                return LedgerOutcome(
                    entity=kind,
                    entity_id=request_id,
                    status=target,
                    already_applied=True,
                    user_id=request.user_id,
                    amount=request.amount
                )

            user_id = request.user_id
            if not user_id:
                raise InvalidUserReferenceError(f"Invalid {kind}: missing userId")

            amount = round_financial(request.amount) if request.amount is not None else None
            moves_money = target == "approved"
            wallet = None
            if moves_money:
                if not is_positive_amount(amount):
                    raise InvalidAmountError(f"Invalid {kind}: amount must be > 0")
                wallet = await wallets.get(user_id)
                if kind == "withdrawal":
                    if wallet is None:
                        raise WalletNotFoundError(
                            f"User {user_id} has no wallet; cannot debit the withdrawal amount"
                        )
                    if wallet.balance is None:
                        raise CorruptWalletStateError(f"Invalid wallet for user {user_id}: balance is not a number")
                    if wallet.balance < amount:
                        raise InsufficientBalanceError(
                            "Insufficient balance to approve this withdrawal",
                            details={"balance": to_float(wallet.balance), "requested": to_float(amount)}
                        )
                elif wallet is not None and wallet.balance is None:
                    raise CorruptWalletStateError(f"Invalid wallet for user {user_id}: balance is not a number")

            prior = await history.get(request.transaction_id or prior_transaction_id)

            # ---- writes ----
            now = txn.now()
            provenance = build_provenance(
                prior,
                request_id,
                DESCRIPTIONS[(kind, target)],
                now,
                source_currency=request.currency,
                source_created_at=request.created_at,
                link_field=link_field,
                default_currency=self.default_currency
            )

            if moves_money:
                if kind == "withdrawal":
                    wallets.debit(wallet, amount)
                elif wallet is None:
                    wallets.create(user_id, amount)
                else:
                    wallets.credit(wallet, amount)
                requests.mark_approved(request, actor_id)
                outcome_fields = {"approvedAt": now, "approvedBy": actor_id}
            else:
                requests.mark_rejected(request, actor_id, reason)
                outcome_fields = {"rejectionReason": reason, "rejectedAt": now, "rejectedBy": actor_id}

            transaction_id = history.append(
                user_id=user_id,
                amount=amount,
                tx_type=kind,
                status=target,
                provenance=provenance,
                link_fields={link_field: provenance.source_link, "sourceType": kind, "sourceId": request_id},
                outcome_fields=outcome_fields
            )
            audit_id = self.audit.record(
                txn,
                action=f"{'APPROVE' if moves_money else 'REJECT'}_{kind.upper()}",
                admin_uid=actor_id,
                admin_email=actor_label,
                target_user_id=user_id,
                target_id=request_id,
                metadata={"amount": to_float(amount), link_field: request_id} if moves_money else None,
                reason=reason
            )

            return LedgerOutcome(
                entity=kind,
                entity_id=request_id,
                status=target,
                already_applied=False,
                user_id=user_id,
                amount=amount,
                currency=provenance.currency,
                transaction_id=transaction_id,
                audit_id=audit_id
            )

        label = f"{target} {kind} {request_id}"
        try:
            outcome = await run_transaction(
                self.store,
                decide_funding_request,
                max_attempts=self.max_attempts,
                base_delay_ms=self.backoff_base_ms,
                label=label
            )
        except LedgerError as e:
            self.log.warning(f"[LEDGER] {label} failed: {e.code}: {e.message}")
            raise

        if outcome.already_applied:
            self.log.info(f"[LEDGER] {kind} {request_id} already {target}; nothing written")
        else:
            self.log.info(f"[LEDGER] {kind} {request_id} {target} by {actor_id}")
        return outcome
