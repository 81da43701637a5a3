"""
LEDGER CORE: OPTIMISTIC TRANSACTION RUNNER

Retries a transaction body on commit conflict, re-executing it from scratch
so every attempt performs fresh reads.

Retry structure:
- Max `max_attempts` attempts (default 5)
- Exponential backoff (base_delay_ms * 2^attempt)
- Domain errors (LedgerError other than TransactionConflictError) are never retried
- Exhaustion raises TransactionConflictError
"""

from typing import Optional
import asyncio
import logging

from core.document_store import DocumentStore, TransactionBody
from core.ledger_errors import TransactionConflictError

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_BACKOFF_BASE_MS = 50


async def run_transaction(
    store: DocumentStore,
    body: TransactionBody,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay_ms: int = DEFAULT_BACKOFF_BASE_MS,
    label: Optional[str] = None
):
    """
    Run `body` atomically against `store`, retrying on conflict.

    Returns whatever the successful attempt of `body` returned.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    name = label or getattr(body, "__name__", "transaction")
    last_conflict: Optional[TransactionConflictError] = None

    for attempt in range(max_attempts):
        try:
            result = await store.run_in_transaction(body)
            if attempt:
                logger.info(f"[TRANSACTION] {name} committed on attempt {attempt + 1}/{max_attempts}")
            return result
        except TransactionConflictError as e:
            last_conflict = e
            logger.warning(
                f"[TRANSACTION] {name} conflict on attempt {attempt + 1}/{max_attempts}: {e.message}"
            )
            if attempt < max_attempts - 1:
                backoff_seconds = base_delay_ms * (2 ** attempt) / 1000
                await asyncio.sleep(backoff_seconds)

    logger.error(f"[TRANSACTION] {name} gave up after {max_attempts} attempts")
    raise TransactionConflictError(
        f"Transaction could not be committed after {max_attempts} attempts; please retry",
        details={"attempts": max_attempts, "last_error": last_conflict.message if last_conflict else None}
    )
