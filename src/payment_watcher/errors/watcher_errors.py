"""WatcherError — base exception class for all payment-watcher errors."""

from __future__ import annotations


class WatcherError(Exception):
    """Base error for all watcher operations.

    Attributes:
        message: Human-readable error description.
        status_code: Suggested HTTP status code.
        code: Machine-readable error code string.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int = 500,
        code: str = "watcher-error",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


class InvalidTransitionError(WatcherError):
    """Raised when a watch status change would leave a terminal state or regress."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=500, code="invalid-transition")
