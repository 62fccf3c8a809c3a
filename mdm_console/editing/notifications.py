import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Where editors send user-facing notices (toasts in the web console)."""

    def info(self, message: str) -> None: ...

    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class LoggingNotifier:
    """Notifier used when no UI sink is attached"""

    def info(self, message: str) -> None:
        logger.info(message)

    def success(self, message: str) -> None:
        logger.info(message)

    def error(self, message: str) -> None:
        logger.error(message)
