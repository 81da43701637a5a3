"""
Status state machine tests
"""
import pytest

from core.ledger_errors import InvalidStateTransitionError
from core.state_machine import INVESTMENT_STATES, TOPUP_STATES, WITHDRAWAL_STATES, StateMachine


class TestInvestmentStates:

    def test_pending_to_active(self):
        assert INVESTMENT_STATES.resolve("inv-1", "pending", "active") is True

    def test_already_in_target_is_noop(self):
        assert INVESTMENT_STATES.resolve("inv-1", "active", "active") is False
        assert INVESTMENT_STATES.resolve("inv-1", "cancelled", "cancelled", source_state="pending") is False

    def test_unregistered_transition(self):
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            INVESTMENT_STATES.resolve("inv-1", "cancelled", "active")

        error = exc_info.value
        assert error.current_state == "cancelled"
        assert error.target_state == "active"
        assert error.http_status == 409
        assert error.message == "Cannot move investment inv-1 to 'active' from status: cancelled"

    @pytest.mark.parametrize("status", ["paused", "completed"])
    def test_only_pending_investments_are_decided(self, status):
        assert INVESTMENT_STATES.get_allowed_transitions("active") == []

        with pytest.raises(InvalidStateTransitionError):
            INVESTMENT_STATES.resolve("inv-1", status, "active")
        with pytest.raises(InvalidStateTransitionError):
            INVESTMENT_STATES.resolve("inv-1", status, "cancelled")

    def test_missing_status(self):
        with pytest.raises(InvalidStateTransitionError):
            INVESTMENT_STATES.resolve("inv-1", None, "active")

    def test_allowed_transitions(self):
        assert INVESTMENT_STATES.get_allowed_transitions("pending") == ["active", "cancelled"]
        assert INVESTMENT_STATES.get_allowed_transitions("completed") == []


class TestFundingRequestStates:

    @pytest.mark.parametrize("machine", [TOPUP_STATES, WITHDRAWAL_STATES])
    def test_decisions_are_terminal(self, machine):
        assert machine.resolve("req-1", "pending", "approved") is True
        with pytest.raises(InvalidStateTransitionError):
            machine.resolve("req-1", "rejected", "approved")
        with pytest.raises(InvalidStateTransitionError):
            machine.resolve("req-1", "approved", "rejected")


class TestStateMachine:

    def test_register_is_chainable(self):
        machine = StateMachine("ticket").register("open", "closed").register("closed", "open")

        assert machine.states == {"open", "closed"}
        assert machine.can_transition("closed", "open")
        assert not machine.can_transition("open", "archived")

    def test_source_state_is_enforced(self):
        # Lifecycle beyond approval, managed outside the ledger core
        machine = (
            StateMachine("investment")
            .register("pending", "active")
            .register("active", "paused")
            .register("paused", "active")
            .register("active", "completed")
            .register("paused", "completed")
        )
        assert machine.can_transition("paused", "active")

        with pytest.raises(InvalidStateTransitionError):
            machine.resolve("inv-1", "paused", "active", source_state="pending")
        assert machine.resolve("inv-1", "pending", "active", source_state="pending") is True
