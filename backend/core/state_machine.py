"""
LEDGER CORE: STATUS STATE MACHINE

Registers the legal status transitions for each ledger entity and resolves a
requested transition against the current status:

- current == target      -> idempotent no-op (returns False)
- (current, target) legal -> transition must be applied (returns True)
- anything else           -> InvalidStateTransitionError

Usage:
    INVESTMENT_STATES.resolve(investment_id, current_status, "active")
"""

from typing import Dict, List, Optional, Set, Tuple
import logging

from core.ledger_errors import InvalidStateTransitionError

logger = logging.getLogger(__name__)


class StateMachine:
    """
    Transition table for one entity type.

    Example:
        machine = StateMachine("investment")
        machine.register("pending", "active").register("pending", "cancelled")
        machine.resolve(inv_id, "pending", "active")  # True
    """

    def __init__(self, entity_name: str):
        self.entity_name = entity_name
        self._transitions: Set[Tuple[str, str]] = set()
        self._states: Set[str] = set()

    def register(self, from_state: str, to_state: str) -> "StateMachine":
        self._transitions.add((from_state, to_state))
        self._states.add(from_state)
        self._states.add(to_state)
        return self

    @property
    def states(self) -> Set[str]:
        return set(self._states)

    def get_allowed_transitions(self, from_state: str) -> List[str]:
        """Get list of valid target states from a given state."""
        return sorted(dst for (src, dst) in self._transitions if src == from_state)

    def can_transition(self, from_state: Optional[str], to_state: str) -> bool:
        return (from_state, to_state) in self._transitions

    def resolve(
        self,
        entity_id: str,
        current_state: Optional[str],
        target_state: str,
        source_state: Optional[str] = None
    ) -> bool:
        """
        Decide whether a transition has to be applied.

        Returns False when the entity already sits in the target state,
        True when the transition is registered (and starts from
        `source_state`, when one is required).
        Raises InvalidStateTransitionError otherwise.
        """
        if current_state == target_state:
            logger.info(
                f"[STATE_MACHINE] {self.entity_name} {entity_id} already '{target_state}', no-op"
            )
            return False

        wrong_source = source_state is not None and current_state != source_state
        if wrong_source or not self.can_transition(current_state, target_state):
            logger.warning(
                f"[STATE_MACHINE] Rejected {self.entity_name} {entity_id}: "
                f"'{current_state}' -> '{target_state}' "
                f"(allowed: {self.get_allowed_transitions(current_state)})"
            )
            raise InvalidStateTransitionError(
                self.entity_name, entity_id, current_state, target_state
            )

        return True


# =============================================================================
# REGISTERED MACHINES
# =============================================================================

INVESTMENT_STATES = (
    StateMachine("investment")
    .register("pending", "active")
    .register("pending", "cancelled")
)

TOPUP_STATES = (
    StateMachine("topup")
    .register("pending", "approved")
    .register("pending", "rejected")
)

WITHDRAWAL_STATES = (
    StateMachine("withdrawal")
    .register("pending", "approved")
    .register("pending", "rejected")
)

MACHINES: Dict[str, StateMachine] = {
    "investment": INVESTMENT_STATES,
    "topup": TOPUP_STATES,
    "withdrawal": WITHDRAWAL_STATES,
}
