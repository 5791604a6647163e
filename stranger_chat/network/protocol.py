"""
Wire format spoken with the relay.

Every frame is a JSON object with a 'type' field:

Outbound
- join:        { type: 'join', nickname: str, clientId: str }
- chat:        { type: 'chat', text: str, clientId: str }
- typing:      { type: 'typing' }
- stop_typing: { type: 'stop_typing' }
- ng:          { type: 'ng' }            (flag the current partner)
- timeout:     { type: 'timeout' }

Inbound
- joined:  { type: 'joined', nickname: str }
- matched: { type: 'matched', roomId: str, partnerNickname: str }
- system:  { type: 'system', text: str }
- chat:    { type: 'chat', nickname: str, text: str, clientId: str }
- typing:  { type: 'typing', isTyping: bool }
- end:     { type: 'end', reason: str }
"""
import json
from dataclasses import dataclass
from typing import Optional, Union

from stranger_chat.utils.error_codes import ProtocolDecodeError


# === Outbound ===

@dataclass(frozen=True)
class JoinFrame:
    nickname: str
    client_id: str


@dataclass(frozen=True)
class ChatFrame:
    text: str
    client_id: str


@dataclass(frozen=True)
class TypingFrame:
    pass


@dataclass(frozen=True)
class StopTypingFrame:
    pass


@dataclass(frozen=True)
class FlagFrame:
    pass


@dataclass(frozen=True)
class TimeoutFrame:
    pass


OutboundFrame = Union[JoinFrame, ChatFrame, TypingFrame, StopTypingFrame, FlagFrame, TimeoutFrame]


def encode_frame(frame: OutboundFrame) -> str:
    if isinstance(frame, JoinFrame):
        payload = {"type": "join", "nickname": frame.nickname, "clientId": frame.client_id}
    elif isinstance(frame, ChatFrame):
        payload = {"type": "chat", "text": frame.text, "clientId": frame.client_id}
    elif isinstance(frame, TypingFrame):
        payload = {"type": "typing"}
    elif isinstance(frame, StopTypingFrame):
        payload = {"type": "stop_typing"}
    elif isinstance(frame, FlagFrame):
        payload = {"type": "ng"}
    elif isinstance(frame, TimeoutFrame):
        payload = {"type": "timeout"}
    else:
        raise TypeError(f"Not an outbound frame: {frame!r}")
    return json.dumps(payload, ensure_ascii=False)


# === Inbound ===

@dataclass(frozen=True)
class JoinedEvent:
    nickname: str


@dataclass(frozen=True)
class MatchedEvent:
    room_id: str
    partner_nickname: str


@dataclass(frozen=True)
class SystemEvent:
    text: str


@dataclass(frozen=True)
class ChatEvent:
    nickname: str
    text: str
    client_id: str


@dataclass(frozen=True)
class TypingEvent:
    is_typing: bool


@dataclass(frozen=True)
class EndEvent:
    reason: Optional[str] = None


InboundEvent = Union[JoinedEvent, MatchedEvent, SystemEvent, ChatEvent, TypingEvent, EndEvent]


def _require_str(data: dict, key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise ProtocolDecodeError(f"'{data.get('type')}' frame needs a string '{key}'")
    return value


def decode_frame(raw) -> InboundEvent:
    """Parse one raw frame from the relay.

    Raises ProtocolDecodeError for anything that is not a known, well-formed
    inbound message.
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            raise ProtocolDecodeError("Frame is not valid UTF-8")

    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        raise ProtocolDecodeError("Frame is not valid JSON")

    if not isinstance(data, dict):
        raise ProtocolDecodeError("Frame is not a JSON object")

    msg_type = data.get("type")

    if msg_type == "joined":
        return JoinedEvent(nickname=_require_str(data, "nickname"))
    if msg_type == "matched":
        return MatchedEvent(
            room_id=_require_str(data, "roomId"),
            partner_nickname=_require_str(data, "partnerNickname"),
        )
    if msg_type == "system":
        return SystemEvent(text=_require_str(data, "text"))
    if msg_type == "chat":
        return ChatEvent(
            nickname=_require_str(data, "nickname"),
            text=_require_str(data, "text"),
            client_id=_require_str(data, "clientId"),
        )
    if msg_type == "typing":
        is_typing = data.get("isTyping")
        if not isinstance(is_typing, bool):
            raise ProtocolDecodeError("'typing' frame needs a boolean 'isTyping'")
        return TypingEvent(is_typing=is_typing)
    if msg_type == "end":
        # A missing or non-string reason falls through to the generic ending
        reason = data.get("reason")
        return EndEvent(reason=reason if isinstance(reason, str) else None)

    raise ProtocolDecodeError(f"Unknown frame type: {msg_type!r}")
