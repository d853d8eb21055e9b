"""payment-watcher: watch a Bitcoin address for an expected payment and push the outcome to a webhook."""

from __future__ import annotations

__version__ = "0.1.0"
