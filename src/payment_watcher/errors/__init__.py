"""Error types for payment-watcher."""

from __future__ import annotations

from payment_watcher.errors.watcher_errors import WatcherError

__all__ = ["WatcherError"]
