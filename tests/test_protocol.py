"""Unit tests for the relay wire format."""
import json

import pytest

from stranger_chat.network.protocol import (
    ChatEvent,
    ChatFrame,
    EndEvent,
    FlagFrame,
    JoinedEvent,
    JoinFrame,
    MatchedEvent,
    StopTypingFrame,
    SystemEvent,
    TimeoutFrame,
    TypingEvent,
    TypingFrame,
    decode_frame,
    encode_frame,
)
from stranger_chat.utils.error_codes import ErrorCodes, ProtocolDecodeError


class TestEncodeFrame:
    """Tests for outbound frames."""

    def test_join(self):
        frame = json.loads(encode_frame(JoinFrame(nickname="Alice", client_id="abc")))
        assert frame == {"type": "join", "nickname": "Alice", "clientId": "abc"}

    def test_chat(self):
        frame = json.loads(encode_frame(ChatFrame(text="hi", client_id="abc")))
        assert frame == {"type": "chat", "text": "hi", "clientId": "abc"}

    @pytest.mark.parametrize("frame,wire_type", [
        (TypingFrame(), "typing"),
        (StopTypingFrame(), "stop_typing"),
        (FlagFrame(), "ng"),
        (TimeoutFrame(), "timeout"),
    ])
    def test_bare_frames(self, frame, wire_type):
        assert json.loads(encode_frame(frame)) == {"type": wire_type}

    def test_non_ascii_text_is_kept(self):
        assert "こんにちは" in encode_frame(ChatFrame(text="こんにちは", client_id="abc"))

    def test_unknown_frame_rejected(self):
        with pytest.raises(TypeError):
            encode_frame({"type": "chat"})


class TestDecodeFrame:
    """Tests for inbound frames."""

    def test_joined(self):
        assert decode_frame('{"type": "joined", "nickname": "Alice"}') == JoinedEvent(nickname="Alice")

    def test_matched(self):
        event = decode_frame(json.dumps({"type": "matched", "roomId": "r1", "partnerNickname": "Bob"}))
        assert event == MatchedEvent(room_id="r1", partner_nickname="Bob")

    def test_system(self):
        assert decode_frame('{"type": "system", "text": "hello"}') == SystemEvent(text="hello")

    def test_chat(self):
        event = decode_frame(json.dumps({"type": "chat", "nickname": "Bob", "text": "hey", "clientId": "bob-id"}))
        assert event == ChatEvent(nickname="Bob", text="hey", client_id="bob-id")

    def test_typing(self):
        assert decode_frame('{"type": "typing", "isTyping": true}') == TypingEvent(is_typing=True)
        assert decode_frame('{"type": "typing", "isTyping": false}') == TypingEvent(is_typing=False)

    def test_end_with_reason(self):
        assert decode_frame('{"type": "end", "reason": "self_ng"}') == EndEvent(reason="self_ng")

    def test_end_without_reason(self):
        assert decode_frame('{"type": "end"}') == EndEvent(reason=None)
        assert decode_frame('{"type": "end", "reason": 3}') == EndEvent(reason=None)

    def test_bytes_frame(self):
        assert decode_frame(b'{"type": "system", "text": "x"}') == SystemEvent(text="x")

    @pytest.mark.parametrize("raw", [
        "not json",
        "[1, 2, 3]",
        '"system"',
        "{}",
        '{"type": "bogus"}',
        '{"type": "matched", "roomId": "r1"}',
        '{"type": "chat", "nickname": "Bob", "text": 5, "clientId": "x"}',
        '{"type": "typing", "isTyping": "yes"}',
        b"\xff\xfe",
    ])
    def test_malformed_frames_rejected(self, raw):
        with pytest.raises(ProtocolDecodeError) as exc_info:
            decode_frame(raw)
        assert exc_info.value.code == ErrorCodes.ERR_PROTOCOL_DECODE
