"""Prometheus HTTP request metrics middleware for the watcher API.

Tracks:
- ``watcher_http_requests_total`` (counter) — requests by method, route, status
- ``watcher_http_request_duration_seconds`` (histogram) — duration by method, route

Scrapes of ``/metrics`` are not counted.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware

if TYPE_CHECKING:
    from collections.abc import Callable

    from prometheus_client import CollectorRegistry
    from starlette.requests import Request
    from starlette.responses import Response

_SKIP_PATHS = frozenset({"/metrics"})


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Starlette middleware that records request count and duration per route."""

    def __init__(self, app: object, *, registry: CollectorRegistry) -> None:
        super().__init__(app)  # type: ignore[arg-type]
        self._requests = Counter(
            "watcher_http_requests",
            "HTTP requests handled by the watcher API",
            ("method", "route", "status_code"),
            registry=registry,
        )
        self._duration = Histogram(
            "watcher_http_request_duration_seconds",
            "HTTP request duration in seconds",
            ("method", "route"),
            registry=registry,
        )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:  # type: ignore[type-arg]
        """Time and count every request except metric scrapes."""
        if request.url.path in _SKIP_PATHS:
            return await call_next(request)

        start = time.monotonic()
        response: Response = await call_next(request)
        elapsed = time.monotonic() - start

        # Unmatched paths share one label value to keep cardinality bounded.
        route = request.scope.get("route")
        route_label = getattr(route, "path", "unmatched")

        self._requests.labels(
            method=request.method, route=route_label, status_code=str(response.status_code)
        ).inc()
        self._duration.labels(method=request.method, route=route_label).observe(elapsed)
        return response
