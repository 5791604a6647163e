"""Idle watchdog and typing-stop debounce.

Both own their loop handle and can always be cancelled; each firing is
tagged with the connection generation it was scheduled under so the session
can ignore firings from a superseded connection.
"""
import logging
from typing import Callable

from stranger_chat.core.state_machine import SessionPhase
from stranger_chat.utils.config import IDLE_POLL_INTERVAL, IDLE_TIMEOUT, TYPING_STOP_DELAY

logger = logging.getLogger(__name__)


class ActivityClock:
    def __init__(self, clock: Callable[[], float]):
        self._clock = clock
        self.last_activity = None

    def touch(self):
        self.last_activity = self._clock()

    def idle_for(self) -> float:
        if self.last_activity is None:
            return 0.0
        return self._clock() - self.last_activity


class OwnedTimer:
    def __init__(self, get_loop, on_due: Callable[[int], None]):
        self._get_loop = get_loop
        self._on_due = on_due
        self._handle = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def cancel(self):
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _schedule(self, delay: float, generation: int):
        self._handle = self._get_loop().call_later(delay, self._fire, generation)

    def _fire(self, generation: int):
        self._handle = None
        self._on_due(generation)


class TypingDebouncer(OwnedTimer):
    """Trailing-edge debounce: only the last keystroke of a burst counts."""

    def __init__(self, get_loop, on_due, delay: float = TYPING_STOP_DELAY):
        super().__init__(get_loop, on_due)
        self.delay = delay

    def restart(self, generation: int):
        self.cancel()
        self._schedule(self.delay, generation)


class IdleWatchdog(OwnedTimer):
    def __init__(self, get_loop, on_due, interval: float = IDLE_POLL_INTERVAL,
                 timeout: float = IDLE_TIMEOUT):
        super().__init__(get_loop, on_due)
        self.interval = interval
        self.timeout = timeout

    def start(self, generation: int):
        self.cancel()
        self._schedule(self.interval, generation)

    def _fire(self, generation: int):
        # Re-arm first so a cancel() issued by the callback also stops polling
        self._schedule(self.interval, generation)
        self._on_due(generation)

    def should_time_out(self, phase: SessionPhase, idle_for: float) -> bool:
        """Every poll past the threshold asks again until the relay ends the chat."""
        if phase is not SessionPhase.CHATTING or idle_for <= self.timeout:
            return False
        logger.info("No activity for %.1fs, asking relay to end the chat", idle_for)
        return True
