"""Metrics — Prometheus metrics collection and exposure."""

from __future__ import annotations

from payment_watcher.metrics.collector import MetricsCollector, WatcherMetrics

__all__ = ["MetricsCollector", "WatcherMetrics"]
