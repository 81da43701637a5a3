"""
LEDGER CORE - ERROR TAXONOMY

Every validation failure raised by the approval / rejection transactions is a
LedgerError subclass. Each kind carries a stable `code` (used by the HTTP
layer and audit tooling) and the HTTP status the route boundary maps it to.

A LedgerError raised inside a transaction body aborts the transaction with
zero writes. Only TransactionConflictError is retried by the runner.
"""

from typing import Optional, Dict, Any


class LedgerError(Exception):
    """Base class for all ledger operation failures"""

    code = "LEDGER_ERROR"
    http_status = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


# Operation-flavoured aliases for callers
ApprovalError = LedgerError
RejectionError = LedgerError


class NotFoundError(LedgerError):
    """Referenced investment, project or funding request does not exist"""
    code = "NOT_FOUND"
    http_status = 404


class InvalidStateTransitionError(LedgerError):
    """Entity is not in the source state required by the transition"""
    code = "INVALID_STATE_TRANSITION"
    http_status = 409

    def __init__(self, entity: str, entity_id: str, current_state: Optional[str], target_state: str):
        self.entity = entity
        self.entity_id = entity_id
        self.current_state = current_state
        self.target_state = target_state
        super().__init__(
            f"Cannot move {entity} {entity_id} to '{target_state}' from status: {current_state}",
            details={"current_status": current_state, "target_status": target_state}
        )


class InvalidUserReferenceError(LedgerError):
    code = "INVALID_USER_REFERENCE"
    http_status = 422


class InvalidProjectReferenceError(LedgerError):
    code = "INVALID_PROJECT_REFERENCE"
    http_status = 422


class InvalidAmountError(LedgerError):
    code = "INVALID_AMOUNT"
    http_status = 422


class CorruptProjectStateError(LedgerError):
    code = "CORRUPT_PROJECT_STATE"
    http_status = 409


class CorruptWalletStateError(LedgerError):
    code = "CORRUPT_WALLET_STATE"
    http_status = 409


class ProjectGoalReachedError(LedgerError):
    code = "PROJECT_GOAL_REACHED"
    http_status = 409


class ExceedsProjectCapacityError(LedgerError):
    code = "EXCEEDS_PROJECT_CAPACITY"
    http_status = 409


class WalletNotFoundError(LedgerError):
    code = "WALLET_NOT_FOUND"
    http_status = 404


class InsufficientBalanceError(LedgerError):
    code = "INSUFFICIENT_BALANCE"
    http_status = 409


class TransactionConflictError(LedgerError):
    """
    Optimistic-concurrency conflict at commit time.

    Raised by a store when a document read inside the transaction changed
    before commit. The runner retries it; once attempts are exhausted it
    reaches the caller.
    """
    code = "TRANSACTION_CONFLICT"
    http_status = 503
