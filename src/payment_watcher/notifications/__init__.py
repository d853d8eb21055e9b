"""Notifications — push watch outcomes to the webhook sink."""

from __future__ import annotations

from payment_watcher.notifications.webhook import WebhookSink

__all__ = ["WebhookSink"]
