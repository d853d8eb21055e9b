"""Confirmation-depth aggregation over a raw UTXO scan.

Reduces a ``ScanResult`` to ``(confirmed_amount, representative_confirmations)``
by resolving each owning transaction through the node's wallet.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from payment_watcher.errors.chain_errors import LedgerQueryError
from payment_watcher.utils.amounts import ZERO

if TYPE_CHECKING:
    from payment_watcher.chain.node.client import BitcoinRPCClient
    from payment_watcher.chain.node.models import ScanResult, WalletTransaction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Aggregate:
    """Depth-filtered view of a scan.

    ``confirmations`` is the integer mean of the retained transactions'
    confirmation counts. It is an approximation, not a minimum.
    """

    amount: Decimal = ZERO
    confirmations: int = 0


async def aggregate_confirmed(
    node: BitcoinRPCClient,
    scan: ScanResult,
    required_confirmations: int,
) -> Aggregate:
    """Sum the value of scanned transactions at or beyond the required depth.

    Each owning transaction is looked up once. Lookups that fail are skipped.
    The confirmation mean is taken per scanned output, so a transaction paying
    the address twice weighs twice; its amount is still counted once.

    Args:
        node: Node client used for ``gettransaction`` lookups.
        scan: Raw scan result for the watched address.
        required_confirmations: Minimum depth for a transaction to count.

    Returns:
        ``Aggregate(0, 0)`` when no transaction is deep enough.
    """
    found: dict[str, WalletTransaction] = {}
    for txid in scan.txids:
        try:
            found[txid] = await node.get_transaction(txid)
        except LedgerQueryError as exc:
            logger.debug("Skipping tx %s: %s", txid[:16], exc)
    per_output = [found[u.txid] for u in scan.unspents if u.txid in found]
    return reduce_transactions(per_output, required_confirmations)


def reduce_transactions(
    transactions: list[WalletTransaction],
    required_confirmations: int,
) -> Aggregate:
    """Apply the depth filter and summarize what survives.

    *transactions* may repeat a transaction once per output it pays. Repeats
    count toward the confirmation mean but not toward the amount.
    """
    retained = [tx for tx in transactions if tx.confirmations >= required_confirmations]
    if not retained:
        return Aggregate()

    distinct = {tx.txid: tx for tx in retained}
    amount = sum((tx.amount for tx in distinct.values()), ZERO)
    confirmations = sum(tx.confirmations for tx in retained) // len(retained)
    # Net wallet amounts can be negative for self-sends; never report below zero.
    return Aggregate(amount=max(amount, ZERO), confirmations=confirmations)
