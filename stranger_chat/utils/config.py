"""Runtime configuration.

Defaults live as module constants; SessionConfig.from_env() lets the
environment override the ones worth changing per deployment.
"""
import os
from dataclasses import dataclass

DEFAULT_RELAY_URL = "ws://localhost:8000/ws"

# Idle watchdog
IDLE_TIMEOUT = 60.0  # seconds without user activity before asking the relay to end the chat
IDLE_POLL_INTERVAL = 5.0

# Trailing-edge debounce before stop_typing goes out
TYPING_STOP_DELAY = 1.0

# Just long enough for the closing socket to settle before a new one opens
REQUEUE_DELAY = 0.05

DEFAULT_LOG_LEVEL = "WARNING"


@dataclass(frozen=True)
class SessionConfig:
    relay_url: str = DEFAULT_RELAY_URL
    idle_timeout: float = IDLE_TIMEOUT
    idle_poll_interval: float = IDLE_POLL_INTERVAL
    typing_stop_delay: float = TYPING_STOP_DELAY
    requeue_delay: float = REQUEUE_DELAY
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_env(cls, environ=None) -> "SessionConfig":
        env = os.environ if environ is None else environ
        return cls(
            relay_url=env.get("STRANGER_CHAT_RELAY_URL", DEFAULT_RELAY_URL),
            idle_timeout=float(env.get("STRANGER_CHAT_IDLE_TIMEOUT", IDLE_TIMEOUT)),
            log_level=env.get("STRANGER_CHAT_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
        )
