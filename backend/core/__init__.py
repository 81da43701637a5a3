"""
Ledger Core Modules
"""
from .financial_precision import (
    to_decimal,
    parse_amount,
    round_financial,
    to_float,
    is_positive_amount,
    format_currency,
    FinancialPrecisionError
)

from .ledger_errors import (
    LedgerError,
    ApprovalError,
    RejectionError,
    NotFoundError,
    InvalidStateTransitionError,
    InvalidUserReferenceError,
    InvalidProjectReferenceError,
    InvalidAmountError,
    CorruptProjectStateError,
    CorruptWalletStateError,
    ProjectGoalReachedError,
    ExceedsProjectCapacityError,
    WalletNotFoundError,
    InsufficientBalanceError,
    TransactionConflictError
)

from .document_store import (
    DocumentStore,
    TransactionContext,
    ReadAfterWriteError
)

from .memory_store import InMemoryDocumentStore

from .transaction_runner import run_transaction

from .side_effects import (
    SideEffectResult,
    run_best_effort
)

from .state_machine import (
    StateMachine,
    INVESTMENT_STATES,
    TOPUP_STATES,
    WITHDRAWAL_STATES
)

__all__ = [
    # Financial Precision
    'to_decimal',
    'parse_amount',
    'round_financial',
    'to_float',
    'is_positive_amount',
    'format_currency',
    'FinancialPrecisionError',

    # Errors
    'LedgerError',
    'ApprovalError',
    'RejectionError',
    'NotFoundError',
    'InvalidStateTransitionError',
    'InvalidUserReferenceError',
    'InvalidProjectReferenceError',
    'InvalidAmountError',
    'CorruptProjectStateError',
    'CorruptWalletStateError',
    'ProjectGoalReachedError',
    'ExceedsProjectCapacityError',
    'WalletNotFoundError',
    'InsufficientBalanceError',
    'TransactionConflictError',

    # Storage
    'DocumentStore',
    'TransactionContext',
    'ReadAfterWriteError',
    'InMemoryDocumentStore',
    'run_transaction',

    # Side effects
    'SideEffectResult',
    'run_best_effort',

    # State machines
    'StateMachine',
    'INVESTMENT_STATES',
    'TOPUP_STATES',
    'WITHDRAWAL_STATES',
]
