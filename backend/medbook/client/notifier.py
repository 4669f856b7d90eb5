"""
User-facing notifications ("toasts") for the client controllers.
"""

from typing import Protocol

from medbook.core.logging import get_logger


class Notifier(Protocol):
    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class LogNotifier:
    """Default notifier: writes toasts to the structured log."""

    def __init__(self):
        self._logger = get_logger("medbook.client")

    def success(self, message: str) -> None:
        self._logger.info("toast_success", message=message)

    def error(self, message: str) -> None:
        self._logger.warning("toast_error", message=message)
