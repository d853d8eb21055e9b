"""Metrics collector — Prometheus counters, gauges, histograms.

- ``watcher_active_watches`` gauge
- ``watcher_notifications_total`` counter, by status
- ``watcher_watch_outcomes_total`` counter, by outcome
- ``watcher_ledger_query_histogram`` histogram, by operation
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import TYPE_CHECKING

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

if TYPE_CHECKING:
    from collections.abc import Iterator


_PREFIX = "watcher"


class MetricsCollector:
    """Low-level Prometheus collector that owns the registry.

    Use :class:`WatcherMetrics` for the high-level tracking interface.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or CollectorRegistry()

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._registry

    def gauge(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Gauge:
        """Register and return a Gauge."""
        return Gauge(name, doc, labels, registry=self._registry)

    def histogram(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Histogram:
        """Register and return a Histogram."""
        return Histogram(name, doc, labels, registry=self._registry)

    def counter(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Counter:
        """Register and return a Counter."""
        return Counter(name, doc, labels, registry=self._registry)


class WatcherMetrics:
    """High-level watch metrics.

    Histograms track ledger query duration in seconds.
    """

    def __init__(self, collector: MetricsCollector | None = None) -> None:
        self._collector = collector or MetricsCollector()

        self._active = self._collector.gauge(
            f"{_PREFIX}_active_watches",
            "Watches currently running",
        )
        self._notifications = self._collector.counter(
            f"{_PREFIX}_notifications",
            "Notifications delivered to the webhook sink",
            ("status",),
        )
        self._outcomes = self._collector.counter(
            f"{_PREFIX}_watch_outcomes",
            "Finished watches by how they ended",
            ("outcome",),
        )
        self._ledger_query = self._collector.histogram(
            f"{_PREFIX}_ledger_query_histogram",
            "Duration of ledger queries made by watches",
            ("operation",),
        )

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._collector.registry

    def watch_started(self) -> None:
        self._active.inc()

    def watch_finished(self, outcome: str) -> None:
        """Record a watch ending with *outcome* (``success``, ``expired``, ...)."""
        self._active.dec()
        self._outcomes.labels(outcome=outcome).inc()

    def notification_sent(self, status: str) -> None:
        self._notifications.labels(status=status).inc()

    @contextmanager
    def track_ledger_query(self, operation: str) -> Iterator[None]:
        """Track the duration of a ledger query (``scan`` or ``aggregate``)."""
        start = time.monotonic()
        try:
            yield
        finally:
            self._ledger_query.labels(operation=operation).observe(time.monotonic() - start)
