import logging
from typing import Optional

from stranger_chat.core.state_machine import EndReason
from stranger_chat.core.timers import OwnedTimer
from stranger_chat.utils.config import REQUEUE_DELAY

logger = logging.getLogger(__name__)


class ReconnectPolicy(OwnedTimer):
    """Decides what happens after a chat ends and holds the one pending requeue."""

    def __init__(self, get_loop, on_due, delay: float = REQUEUE_DELAY):
        super().__init__(get_loop, on_due)
        self.delay = delay

    @staticmethod
    def should_requeue(marker: Optional[EndReason]) -> bool:
        return marker is not EndReason.MANUAL

    def schedule(self, generation: int) -> bool:
        if self.pending:
            logger.debug("Requeue already pending, not scheduling another")
            return False
        self._schedule(self.delay, generation)
        return True
