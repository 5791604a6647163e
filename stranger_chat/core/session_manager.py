import asyncio
import logging
from collections import deque
from typing import Optional

from stranger_chat.core.events import (
    ConnectIntent,
    DisconnectIntent,
    DraftIntent,
    FlagIntent,
    IdleCheckDue,
    KeystrokeIntent,
    RequeueDue,
    SendIntent,
    TypingStopDue,
)
from stranger_chat.core.models import (
    LogEntry,
    LogKind,
    PartnerInfo,
    SessionSnapshot,
    new_client_id,
)
from stranger_chat.core.reconnect import ReconnectPolicy
from stranger_chat.core.state_machine import EndReason, SessionPhase, StateMachine, end_reason_text
from stranger_chat.core.timers import ActivityClock, IdleWatchdog, TypingDebouncer
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
from stranger_chat.network.transport import Closed, ErrorOccurred, FrameReceived, Opened, TransportLayer
from stranger_chat.utils.config import SessionConfig
from stranger_chat.utils.error_codes import ProtocolDecodeError, SendWhileNotChattingError
from stranger_chat.utils.validators import validate_message_text, validate_nickname

logger = logging.getLogger(__name__)

SEARCHING_TEXT = "connected; searching for a partner..."
CANNOT_SEND_TEXT = "cannot send (not connected)"
TRANSPORT_ERROR_TEXT = "connection error occurred"


class SessionManager:
    """Owns one chat session: transport, phase, log and timers.

    Everything that can change the session (user intents, transport
    lifecycle, timer firings) goes through dispatch() and is handled one
    event at a time, in arrival order. A snapshot is handed to ui_callback
    after each event.
    """

    def __init__(self, ui_callback=None, transport=None, config: Optional[SessionConfig] = None,
                 loop=None, client_id: Optional[str] = None):
        self.config = config or SessionConfig()
        self.state_machine = StateMachine()
        self.transport = transport or TransportLayer(self.config.relay_url)
        self.ui_callback = ui_callback
        self.client_id = client_id or new_client_id()
        self._loop = loop

        self.nickname = ""
        self.partner = None
        self.partner_typing = False
        self.end_reason = None
        self.draft = ""
        self.log = []

        # Bumped on every connection attempt; timer firings from older ones are dropped
        self.generation = 0
        self.handle = None

        self.activity = ActivityClock(lambda: self.loop.time())
        self.idle_watchdog = IdleWatchdog(
            self._get_loop,
            lambda generation: self.dispatch(IdleCheckDue(generation)),
            interval=self.config.idle_poll_interval,
            timeout=self.config.idle_timeout,
        )
        self.typing_debouncer = TypingDebouncer(
            self._get_loop,
            lambda generation: self.dispatch(TypingStopDue(generation)),
            delay=self.config.typing_stop_delay,
        )
        self.reconnect_policy = ReconnectPolicy(
            self._get_loop,
            lambda generation: self.dispatch(RequeueDue(generation)),
            delay=self.config.requeue_delay,
        )

        self._queue = deque()
        self._draining = False
        self._handlers = {
            ConnectIntent: self._on_connect,
            DisconnectIntent: self._on_disconnect,
            SendIntent: self._on_send,
            KeystrokeIntent: self._on_keystroke,
            FlagIntent: self._on_flag,
            DraftIntent: self._on_draft,
            IdleCheckDue: self._on_idle_check,
            TypingStopDue: self._on_typing_stop,
            RequeueDue: self._on_requeue,
            Opened: self._on_opened,
            FrameReceived: self._on_frame,
            ErrorOccurred: self._on_transport_error,
            Closed: self._on_closed,
        }
        self._frame_handlers = {
            JoinedEvent: self._on_joined,
            MatchedEvent: self._on_matched,
            SystemEvent: self._on_system,
            ChatEvent: self._on_chat,
            TypingEvent: self._on_typing,
            EndEvent: self._on_end,
        }

        self.transport.on_event_callback = self.dispatch

    @property
    def loop(self):
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def _get_loop(self):
        return self.loop

    @property
    def phase(self) -> SessionPhase:
        return self.state_machine.current_state

    # === Intents ===

    def connect(self, nickname: str):
        self.dispatch(ConnectIntent(validate_nickname(nickname)))

    def disconnect(self):
        self.dispatch(DisconnectIntent())

    def send(self, text: Optional[str] = None):
        """Send text, or the current draft when no text is given."""
        self.dispatch(SendIntent(validate_message_text(self.draft if text is None else text)))

    def keystroke(self):
        self.dispatch(KeystrokeIntent())

    def flag(self):
        self.dispatch(FlagIntent())

    def update_draft(self, text: str):
        self.dispatch(DraftIntent(text))

    async def shutdown(self):
        handle = self.handle
        self.disconnect()
        if handle is not None:
            await self.transport.wait_closed(handle)

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            phase=self.phase,
            nickname=self.nickname,
            client_id=self.client_id,
            partner=self.partner,
            log=tuple(self.log),
            partner_typing=self.partner_typing,
            end_reason=self.end_reason,
            draft=self.draft,
        )

    # === Event loop ===

    def dispatch(self, event):
        self._queue.append(event)
        if self._draining:
            # Raised from inside a handler; runs once the current event is done
            return

        self._draining = True
        try:
            while self._queue:
                current = self._queue.popleft()
                handler = self._handlers.get(type(current))
                if handler is None:
                    logger.warning("No handler for %r", current)
                    continue
                try:
                    handler(current)
                    if self.ui_callback:
                        self.ui_callback(self.snapshot())
                except Exception:
                    # One bad event must not stall the ones queued behind it
                    logger.exception("Failed to handle %s", type(current).__name__)
        finally:
            self._draining = False

    def _is_stale(self, event) -> bool:
        if hasattr(event, "handle"):
            stale = event.handle is not self.handle
        else:
            stale = event.generation != self.generation
        if stale:
            logger.debug("Ignoring stale %s", type(event).__name__)
        return stale

    # === Helpers ===

    def _append(self, kind: LogKind, text: str, nickname: Optional[str] = None):
        self.log.append(LogEntry(kind=kind, text=text, nickname=nickname))

    def _append_system(self, text: str):
        self._append(LogKind.SYSTEM, text)

    def _send_frame(self, frame) -> bool:
        return self.transport.send(self.handle, encode_frame(frame))

    def _can_send(self) -> bool:
        handle = self.handle
        if (self.state_machine.is_chatting and handle is not None
                and handle.is_open and not handle.close_requested):
            return True
        error = SendWhileNotChattingError(CANNOT_SEND_TEXT)
        logger.info("%s (phase=%s)", error, self.phase.value)
        self._append_system(error.message)
        return False

    def _teardown(self):
        self.typing_debouncer.cancel()
        self.idle_watchdog.cancel()
        self.reconnect_policy.cancel()
        handle, self.handle = self.handle, None
        if handle is not None:
            self.transport.close(handle)

    def _enter_disconnected(self):
        self.state_machine.transition_to(SessionPhase.DISCONNECTED)
        self.partner = None
        self.partner_typing = False

    def _start_connection(self, nickname: str):
        self._teardown()
        self.generation += 1
        self.nickname = nickname
        self.log = []
        self.partner = None
        self.partner_typing = False
        self.end_reason = None
        self.activity.touch()

        self.state_machine.transition_to(SessionPhase.CONNECTING)
        self.idle_watchdog.start(self.generation)
        logger.info("Connecting to %s as %s (generation %d)", self.config.relay_url, nickname, self.generation)
        self.handle = self.transport.open(self.config.relay_url)

    # === Intent handlers ===

    def _on_connect(self, intent: ConnectIntent):
        if self.phase is not SessionPhase.DISCONNECTED:
            logger.warning("Connect ignored while %s", self.phase.value)
            return
        self._start_connection(intent.nickname)

    def _on_disconnect(self, intent: DisconnectIntent):
        self.end_reason = EndReason.MANUAL
        self.reconnect_policy.cancel()
        self.typing_debouncer.cancel()
        self.idle_watchdog.cancel()

        if self.phase is SessionPhase.DISCONNECTED:
            return

        if self.handle is not None and self.handle.is_open:
            # Closed event finishes the transition
            self.transport.close(self.handle)
        else:
            self._teardown()
            self._enter_disconnected()

    def _on_send(self, intent: SendIntent):
        if not self._can_send():
            return
        # No local echo: the relay loops our own chat frame back
        self._send_frame(ChatFrame(text=intent.text, client_id=self.client_id))
        self.draft = ""
        self.activity.touch()
        self.typing_debouncer.cancel()
        self._send_frame(StopTypingFrame())

    def _on_keystroke(self, intent: KeystrokeIntent):
        if not self._can_send():
            return
        self._send_frame(TypingFrame())
        self.activity.touch()
        self.typing_debouncer.restart(self.generation)

    def _on_flag(self, intent: FlagIntent):
        if not self._can_send():
            return
        self._send_frame(FlagFrame())
        self.activity.touch()

    def _on_draft(self, intent: DraftIntent):
        self.draft = intent.text
        self.activity.touch()

    # === Timer handlers ===

    def _on_typing_stop(self, event: TypingStopDue):
        if self._is_stale(event):
            return
        self._send_frame(StopTypingFrame())

    def _on_idle_check(self, event: IdleCheckDue):
        if self._is_stale(event):
            return
        if self.idle_watchdog.should_time_out(self.phase, self.activity.idle_for()):
            self._send_frame(TimeoutFrame())
            # The end that follows is not ours to suppress
            self.end_reason = None

    def _on_requeue(self, event: RequeueDue):
        if self._is_stale(event):
            return
        logger.info("Re-entering the queue as %s", self.nickname)
        self._start_connection(self.nickname)

    # === Transport handlers ===

    def _on_opened(self, event: Opened):
        if self._is_stale(event):
            return
        self.state_machine.transition_to(SessionPhase.MATCHING)
        self._append_system(SEARCHING_TEXT)
        self._send_frame(JoinFrame(nickname=self.nickname, client_id=self.client_id))

    def _on_frame(self, event: FrameReceived):
        if self._is_stale(event):
            return
        try:
            message = decode_frame(event.raw)
        except ProtocolDecodeError as e:
            logger.debug("Dropping frame %r: %s", event.raw, e)
            return
        self._frame_handlers[type(message)](message)

    def _on_transport_error(self, event: ErrorOccurred):
        if self._is_stale(event):
            return
        logger.warning("Transport error: %s", event.error)
        self._append_system(TRANSPORT_ERROR_TEXT)

    def _on_closed(self, event: Closed):
        if self._is_stale(event):
            return
        self.handle = None
        self.typing_debouncer.cancel()
        self.idle_watchdog.cancel()
        if self.phase is not SessionPhase.DISCONNECTED:
            self._enter_disconnected()

    # === Relay message handlers ===

    def _on_joined(self, message: JoinedEvent):
        self._append_system(f"joined the queue as {message.nickname}")

    def _on_matched(self, message: MatchedEvent):
        self.state_machine.transition_to(SessionPhase.CHATTING)
        self.partner = PartnerInfo(room_id=message.room_id, partner_nickname=message.partner_nickname)
        self.partner_typing = False
        self._append_system(f"matched with {message.partner_nickname}")

    def _on_system(self, message: SystemEvent):
        self._append_system(message.text)

    def _on_chat(self, message: ChatEvent):
        kind = LogKind.SELF if message.client_id == self.client_id else LogKind.PARTNER
        self._append(kind, message.text, nickname=message.nickname)

    def _on_typing(self, message: TypingEvent):
        self.partner_typing = message.is_typing

    def _on_end(self, message: EndEvent):
        reason = EndReason.from_wire(message.reason)
        self._append_system(end_reason_text(reason))

        if not self.reconnect_policy.should_requeue(self.end_reason):
            self._teardown()
            self._enter_disconnected()
            return

        self.end_reason = reason
        self.partner_typing = False
        self.typing_debouncer.cancel()
        self.reconnect_policy.schedule(self.generation)
