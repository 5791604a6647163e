import logging
from enum import Enum

from stranger_chat.utils.error_codes import IllegalTransitionError

logger = logging.getLogger(__name__)


class SessionPhase(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    MATCHING = "matching"
    CHATTING = "chatting"


class EndReason(Enum):
    MANUAL = "manual"
    SELF_FLAGGED = "self_ng"
    FLAGGED_BY_PARTNER = "ng_by_partner"
    PARTNER_DISCONNECTED = "partner_disconnected"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"

    @classmethod
    def from_wire(cls, reason) -> "EndReason":
        if reason == cls.MANUAL.value:
            # The relay never decides a manual stop for us
            return cls.UNKNOWN
        try:
            return cls(reason)
        except ValueError:
            return cls.UNKNOWN


END_REASON_TEXT = {
    EndReason.SELF_FLAGGED: "you flagged the partner; searching for a new partner",
    EndReason.FLAGGED_BY_PARTNER: "partner flagged you; searching for a new partner",
    EndReason.PARTNER_DISCONNECTED: "partner disconnected; searching for a new partner",
}
GENERIC_END_TEXT = "chat ended"


def end_reason_text(reason: EndReason) -> str:
    return END_REASON_TEXT.get(reason, GENERIC_END_TEXT)


_ALLOWED = {
    SessionPhase.DISCONNECTED: {SessionPhase.CONNECTING},
    SessionPhase.CONNECTING: {SessionPhase.MATCHING, SessionPhase.DISCONNECTED},
    SessionPhase.MATCHING: {SessionPhase.CHATTING, SessionPhase.CONNECTING, SessionPhase.DISCONNECTED},
    SessionPhase.CHATTING: {SessionPhase.MATCHING, SessionPhase.CONNECTING, SessionPhase.DISCONNECTED},
}


class StateMachine:
    def __init__(self):
        self.current_state = SessionPhase.DISCONNECTED

    def can_transition(self, new_state: SessionPhase) -> bool:
        return new_state is self.current_state or new_state in _ALLOWED[self.current_state]

    def transition_to(self, new_state: SessionPhase):
        if not self.can_transition(new_state):
            raise IllegalTransitionError(
                f"{self.current_state.value} -> {new_state.value} is not allowed"
            )
        if new_state is self.current_state:
            return
        logger.debug("Phase %s -> %s", self.current_state.value, new_state.value)
        self.current_state = new_state

    @property
    def is_chatting(self) -> bool:
        return self.current_state is SessionPhase.CHATTING
