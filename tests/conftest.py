"""Pytest configuration and shared fixtures."""
import json

import pytest

from stranger_chat.core.session_manager import SessionManager
from stranger_chat.network.transport import Closed, ErrorOccurred, FrameReceived, Opened
from stranger_chat.utils.error_codes import TransportError

CLIENT_ID = "me-id"


class FakeTimerHandle:
    def __init__(self, when, callback, args):
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeLoop:
    """Manual clock with the slice of the asyncio loop API the session uses."""

    def __init__(self):
        self.now = 0.0
        self.timers = []

    def time(self):
        return self.now

    def call_later(self, delay, callback, *args):
        handle = FakeTimerHandle(self.now + delay, callback, args)
        self.timers.append(handle)
        return handle

    def advance(self, seconds):
        target = self.now + seconds
        while True:
            due = [t for t in self.timers if not t.cancelled and t.when <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.when)
            self.timers.remove(timer)
            self.now = timer.when
            timer.callback(*timer.args)
        self.now = target
        self.timers = [t for t in self.timers if not t.cancelled]

    @property
    def pending(self):
        return [t for t in self.timers if not t.cancelled]


class FakeHandle:
    def __init__(self, uri):
        self.uri = uri
        self.is_open = False
        self.close_requested = False
        self.closed = False
        self.sent = []


class FakeTransport:
    """Records frames and emits lifecycle events only when a test asks for them."""

    def __init__(self):
        self.on_event_callback = None
        self.handles = []
        self.current = None

    def open(self, uri=None):
        if self.current is not None:
            self.close(self.current)
        handle = FakeHandle(uri)
        self.handles.append(handle)
        self.current = handle
        return handle

    def send(self, handle, frame):
        if handle is None or not handle.is_open or handle.close_requested:
            return False
        handle.sent.append(json.loads(frame))
        return True

    def close(self, handle):
        handle.close_requested = True
        if self.current is handle:
            self.current = None

    async def wait_closed(self, handle, timeout=1.0):
        return None

    # === Test helpers ===

    def _handle(self, handle):
        return handle or self.handles[-1]

    def emit_opened(self, handle=None):
        handle = self._handle(handle)
        handle.is_open = True
        self.on_event_callback(Opened(handle))

    def emit_frame(self, payload, handle=None):
        raw = payload if isinstance(payload, (str, bytes)) else json.dumps(payload)
        self.on_event_callback(FrameReceived(self._handle(handle), raw))

    def emit_error(self, handle=None):
        self.on_event_callback(ErrorOccurred(self._handle(handle), TransportError("boom")))

    def emit_closed(self, handle=None):
        handle = self._handle(handle)
        handle.is_open = False
        handle.closed = True
        if self.current is handle:
            self.current = None
        self.on_event_callback(Closed(handle))

    @property
    def sent(self):
        """Frames sent on the most recent connection."""
        return self.handles[-1].sent if self.handles else []

    def sent_types(self, handle=None):
        return [frame["type"] for frame in self._handle(handle).sent]


@pytest.fixture
def loop():
    return FakeLoop()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def snapshots():
    return []


@pytest.fixture
def session(loop, transport, snapshots):
    return SessionManager(
        ui_callback=snapshots.append,
        transport=transport,
        loop=loop,
        client_id=CLIENT_ID,
    )


@pytest.fixture
def chatting(session, transport):
    """Session paired with Bob in room r1."""
    session.connect("Alice")
    transport.emit_opened()
    transport.emit_frame({"type": "matched", "roomId": "r1", "partnerNickname": "Bob"})
    return session
