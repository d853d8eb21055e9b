"""Chain access — the Bitcoin Core node the watcher queries."""

from __future__ import annotations

from payment_watcher.chain.node import BitcoinRPCClient, ScanResult, Unspent, WalletTransaction

__all__ = ["BitcoinRPCClient", "ScanResult", "Unspent", "WalletTransaction"]
