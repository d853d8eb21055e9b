"""Watch — the per-request polling state machine."""

from __future__ import annotations

from payment_watcher.watch.aggregator import Aggregate, aggregate_confirmed
from payment_watcher.watch.loop import WatchLoop, start_watch
from payment_watcher.watch.models import (
    Status,
    TickOutcome,
    WatchRequest,
    WatchSnapshot,
    WatchState,
)

__all__ = [
    "Aggregate",
    "Status",
    "TickOutcome",
    "WatchLoop",
    "WatchRequest",
    "WatchSnapshot",
    "WatchState",
    "aggregate_confirmed",
    "start_watch",
]
