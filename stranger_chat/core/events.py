"""
Inputs to the session besides transport lifecycle events.

User intents come from the presentation layer; timer events are scheduled by
the session itself and carry the connection generation they belong to.
"""
from dataclasses import dataclass
from typing import Optional


# === User intents ===

@dataclass(frozen=True)
class ConnectIntent:
    nickname: str


@dataclass(frozen=True)
class DisconnectIntent:
    pass


@dataclass(frozen=True)
class SendIntent:
    text: Optional[str] = None


@dataclass(frozen=True)
class KeystrokeIntent:
    pass


@dataclass(frozen=True)
class FlagIntent:
    pass


@dataclass(frozen=True)
class DraftIntent:
    text: str


# === Timer firings ===

@dataclass(frozen=True)
class IdleCheckDue:
    generation: int


@dataclass(frozen=True)
class TypingStopDue:
    generation: int


@dataclass(frozen=True)
class RequeueDue:
    generation: int
