"""Engine — shared ledger handle and watch supervisor."""

from __future__ import annotations

from payment_watcher.engine.client import WatcherEngine

__all__ = ["WatcherEngine"]
