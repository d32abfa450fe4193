"""Status feed adapter for terminal runs.

Progress messages are multi-line; they are folded onto one log line.
"""

from __future__ import annotations

import logging
from typing import Optional

LOGGER = logging.getLogger("callsweep.status")


class LoggingStatusFeed:
    """StatusFeedPort that writes each message to the log and remembers the last."""

    def __init__(self) -> None:
        self.last_message: Optional[str] = None

    def publish(self, message: str) -> None:
        self.last_message = message
        LOGGER.info(" | ".join(line.strip() for line in message.splitlines() if line.strip()))
