"""Bitcoin Core JSON-RPC — UTXO scans, wallet transaction lookups, addresses."""

from payment_watcher.chain.node.client import BitcoinRPCClient
from payment_watcher.chain.node.models import ScanResult, Unspent, WalletTransaction

__all__ = ["BitcoinRPCClient", "ScanResult", "Unspent", "WalletTransaction"]
