"""Webhook delivery — one-shot push of a watch snapshot.

Each call to ``WebhookSink.send`` is a single POST. Failures surface as
``DeliveryError`` and are never retried; the watch that sent it stops.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from payment_watcher.errors.chain_errors import DeliveryError

if TYPE_CHECKING:
    from payment_watcher.config.settings import NotifyConfig
    from payment_watcher.watch.models import WatchSnapshot

logger = logging.getLogger(__name__)


class WebhookSink:
    """Posts watch snapshots to a single webhook URL.

    Usage::

        sink = WebhookSink(config.notify)
        await sink.connect()
        try:
            await sink.send(state.snapshot())
        finally:
            await sink.close()
    """

    def __init__(self, config: NotifyConfig) -> None:
        self._config = config
        self._client: httpx.AsyncClient | None = None

    @property
    def url(self) -> str:
        """Return the webhook URL."""
        return self._config.url

    @property
    def is_connected(self) -> bool:
        """Check if the HTTP client is active."""
        return self._client is not None

    async def connect(self) -> None:
        """Create the underlying HTTP client."""
        headers: dict[str, str] = {}
        if self._config.token_header and self._config.token_value:
            headers[self._config.token_header] = self._config.token_value
        self._client = httpx.AsyncClient(headers=headers, timeout=self._config.timeout)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def send(self, snapshot: WatchSnapshot) -> None:
        """Push *snapshot* to the webhook.

        Raises:
            DeliveryError: On transport errors or a 4xx/5xx reply.
        """
        if self._client is None:
            msg = "Webhook sink not connected. Call connect() first."
            raise DeliveryError(msg, status_code=500)

        try:
            resp = await self._client.post(self._config.url, json=snapshot.to_dict())
        except httpx.HTTPError as exc:
            raise DeliveryError(f"Webhook {self._config.url} error: {exc}") from exc

        if resp.status_code >= 400:
            msg = f"Webhook {self._config.url} returned {resp.status_code}"
            raise DeliveryError(msg, status_code=resp.status_code)

        logger.debug(
            "Delivered %s for %s to %s", snapshot.status, snapshot.address, self._config.url
        )
