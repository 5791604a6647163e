import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from stranger_chat.core.state_machine import EndReason, SessionPhase


def new_client_id() -> str:
    """Ephemeral identity for one session instance. Never persisted."""
    return uuid.uuid4().hex


def _new_entry_id() -> str:
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


class LogKind(Enum):
    SYSTEM = "system"
    SELF = "self"
    PARTNER = "partner"


@dataclass(frozen=True)
class PartnerInfo:
    room_id: str
    partner_nickname: str


@dataclass(frozen=True)
class LogEntry:
    kind: LogKind
    text: str
    nickname: Optional[str] = None
    timestamp: float = field(default_factory=time.time)
    id: str = field(default_factory=_new_entry_id)


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view handed to the presentation layer after every event."""
    phase: SessionPhase
    nickname: str
    client_id: str
    partner: Optional[PartnerInfo]
    log: Tuple[LogEntry, ...]
    partner_typing: bool
    end_reason: Optional[EndReason]
    draft: str

