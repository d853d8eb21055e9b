"""Ledger and delivery collaborator errors."""

from __future__ import annotations

from payment_watcher.errors.watcher_errors import WatcherError


class LedgerQueryError(WatcherError):
    """The node failed to answer a scan or a transaction lookup."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int = 502,
        rpc_code: int | None = None,
    ) -> None:
        super().__init__(message, status_code=status_code, code="ledger-query-failure")
        self.rpc_code = rpc_code


class DeliveryError(WatcherError):
    """A notification push to the webhook sink failed."""

    def __init__(self, message: str, *, status_code: int = 502) -> None:
        super().__init__(message, status_code=status_code, code="delivery-failure")
