"""Unit tests for phases, end reasons and the transition table."""
import pytest

from stranger_chat.core.state_machine import (
    GENERIC_END_TEXT,
    EndReason,
    SessionPhase,
    StateMachine,
    end_reason_text,
)
from stranger_chat.utils.error_codes import IllegalTransitionError


def machine_in(phase):
    machine = StateMachine()
    machine.current_state = phase
    return machine


class TestStateMachine:
    def test_starts_disconnected(self):
        assert StateMachine().current_state is SessionPhase.DISCONNECTED

    def test_happy_path(self):
        machine = StateMachine()
        for phase in (SessionPhase.CONNECTING, SessionPhase.MATCHING, SessionPhase.CHATTING):
            machine.transition_to(phase)
        assert machine.is_chatting

    @pytest.mark.parametrize("start,target", [
        (SessionPhase.DISCONNECTED, SessionPhase.CHATTING),
        (SessionPhase.DISCONNECTED, SessionPhase.MATCHING),
        (SessionPhase.CONNECTING, SessionPhase.CHATTING),
    ])
    def test_illegal_transitions_raise(self, start, target):
        machine = machine_in(start)
        with pytest.raises(IllegalTransitionError):
            machine.transition_to(target)
        assert machine.current_state is start

    @pytest.mark.parametrize("start", list(SessionPhase))
    def test_any_phase_can_disconnect(self, start):
        machine = machine_in(start)
        machine.transition_to(SessionPhase.DISCONNECTED)
        assert machine.current_state is SessionPhase.DISCONNECTED

    def test_requeue_from_chatting(self):
        machine = machine_in(SessionPhase.CHATTING)
        assert machine.can_transition(SessionPhase.CONNECTING)
        assert machine.can_transition(SessionPhase.MATCHING)

    def test_same_phase_is_noop(self):
        machine = machine_in(SessionPhase.MATCHING)
        machine.transition_to(SessionPhase.MATCHING)
        assert machine.current_state is SessionPhase.MATCHING


class TestEndReason:
    @pytest.mark.parametrize("wire,reason", [
        ("self_ng", EndReason.SELF_FLAGGED),
        ("ng_by_partner", EndReason.FLAGGED_BY_PARTNER),
        ("partner_disconnected", EndReason.PARTNER_DISCONNECTED),
        ("timeout", EndReason.TIMEOUT),
        ("something_else", EndReason.UNKNOWN),
        (None, EndReason.UNKNOWN),
        ("manual", EndReason.UNKNOWN),
    ])
    def test_from_wire(self, wire, reason):
        assert EndReason.from_wire(wire) is reason

    def test_display_text(self):
        assert end_reason_text(EndReason.SELF_FLAGGED) == "you flagged the partner; searching for a new partner"
        assert end_reason_text(EndReason.FLAGGED_BY_PARTNER) == "partner flagged you; searching for a new partner"
        assert end_reason_text(EndReason.PARTNER_DISCONNECTED) == "partner disconnected; searching for a new partner"
        assert end_reason_text(EndReason.TIMEOUT) == GENERIC_END_TEXT == "chat ended"
        assert end_reason_text(EndReason.UNKNOWN) == "chat ended"
