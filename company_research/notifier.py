"""
End-of-run notifications.
"""

import logging

logger = logging.getLogger(__name__)


class LoggingNotifier:
    """Writes the notification to the log instead of sending it."""

    def __init__(self, level: int = logging.INFO):
        self.level = level
        self.sent: list[tuple[str, str]] = []

    def notify(self, subject: str, body: str) -> None:
        self.sent.append((subject, body))
        logger.log(self.level, "%s\n%s", subject, body)
