"""
LEDGER CORE: BEST-EFFORT SIDE EFFECTS

Notifications and advisory lookups must never fail the primary ledger
transaction. They run through `run_best_effort`, which returns a
SideEffectResult instead of raising. Failures are logged through the
caller-supplied logger.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar
import logging

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class SideEffectResult(Generic[T]):
    """Outcome of a best-effort effect"""
    name: str
    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, name: str, value: Optional[T] = None) -> "SideEffectResult[T]":
        return cls(name=name, ok=True, value=value)

    @classmethod
    def failure(cls, name: str, error: Exception) -> "SideEffectResult[T]":
        return cls(name=name, ok=False, error=f"{type(error).__name__}: {error}")


async def run_best_effort(
    name: str,
    effect: Callable[[], Awaitable[T]],
    log: Optional[logging.Logger] = None
) -> SideEffectResult[T]:
    """Await `effect()`; capture any failure as a SideEffectResult"""
    log = log or logger
    try:
        value = await effect()
    except Exception as e:
        log.warning(f"[SIDE_EFFECT] {name} failed: {type(e).__name__}: {e}")
        return SideEffectResult.failure(name, e)
    return SideEffectResult.success(name, value)
