import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

import websockets

from stranger_chat.utils.config import DEFAULT_RELAY_URL
from stranger_chat.utils.error_codes import TransportError

logger = logging.getLogger(__name__)

_CLOSE = object()


class Connection:
    """Handle for one websocket connection attempt.

    The session compares handles by identity to tell current events from
    ones belonging to a superseded connection.
    """

    def __init__(self, uri: str):
        self.uri = uri
        self.websocket = None
        self.is_open = False
        self.close_requested = False
        self.closed = False
        self.outbox = asyncio.Queue()
        self.task = None

    def __repr__(self):
        state = "open" if self.is_open else ("closed" if self.closed else "pending")
        return f"<Connection {self.uri} {state}>"


# === Lifecycle events ===

@dataclass(frozen=True)
class Opened:
    handle: Any


@dataclass(frozen=True)
class FrameReceived:
    handle: Any
    raw: Any


@dataclass(frozen=True)
class ErrorOccurred:
    handle: Any
    error: TransportError = field(default_factory=lambda: TransportError("Connection error"))


@dataclass(frozen=True)
class Closed:
    handle: Any


class TransportLayer:
    def __init__(self, uri=DEFAULT_RELAY_URL):
        self.uri = uri
        self.current = None
        self.on_event_callback = None

    def open(self, uri=None) -> Connection:
        # Never keep two live sockets around: a stale one would join the queue twice
        if self.current is not None:
            self.close(self.current)

        handle = Connection(uri or self.uri)
        self.current = handle
        handle.task = asyncio.get_running_loop().create_task(self._run(handle))
        return handle

    def send(self, handle: Connection, frame: str) -> bool:
        if handle is None or not handle.is_open or handle.close_requested:
            logger.debug("Dropping frame on non-open connection %r", handle)
            return False
        handle.outbox.put_nowait(frame)
        return True

    def close(self, handle: Connection):
        if handle is None or handle.close_requested or handle.closed:
            return
        handle.close_requested = True
        if self.current is handle:
            self.current = None

        if handle.is_open:
            # Let the writer flush what is already queued, then close
            handle.outbox.put_nowait(_CLOSE)
        elif handle.task is not None:
            handle.task.cancel()

    def _emit(self, event):
        if self.on_event_callback:
            self.on_event_callback(event)

    async def _run(self, handle: Connection):
        try:
            async with websockets.connect(handle.uri) as websocket:
                handle.websocket = websocket
                if handle.close_requested:
                    return

                handle.is_open = True
                self._emit(Opened(handle))

                writer = asyncio.create_task(self._write(handle))
                try:
                    async for message in websocket:
                        self._emit(FrameReceived(handle, message))
                finally:
                    writer.cancel()
        except asyncio.CancelledError:
            logger.debug("Connection attempt to %s cancelled", handle.uri)
        except websockets.exceptions.ConnectionClosedError as e:
            logger.warning("Connection to %s dropped: %s", handle.uri, e)
            self._emit(ErrorOccurred(handle, TransportError(f"Connection dropped: {e}")))
        except (OSError, asyncio.TimeoutError, websockets.exceptions.WebSocketException) as e:
            logger.warning("Connection to %s failed: %s", handle.uri, e)
            self._emit(ErrorOccurred(handle, TransportError(f"Connection failed: {e}")))
        finally:
            handle.is_open = False
            handle.closed = True
            if self.current is handle:
                self.current = None
            self._emit(Closed(handle))

    async def _write(self, handle: Connection):
        while True:
            frame = await handle.outbox.get()
            try:
                if frame is _CLOSE:
                    await handle.websocket.close()
                    return
                await handle.websocket.send(frame)
            except websockets.exceptions.ConnectionClosed:
                # The reader loop sees the same closure and reports it
                return

    async def wait_closed(self, handle: Connection, timeout: float = 1.0):
        if handle is None or handle.task is None or handle.task.done():
            return
        done, _ = await asyncio.wait({handle.task}, timeout=timeout)
        if not done:
            logger.warning("Connection to %s did not close in %.1fs, cancelling", handle.uri, timeout)
            handle.task.cancel()
