"""Bitcoin Core RPC data models — scan results and wallet transactions.

Amounts are BTC ``Decimal`` values; the client parses RPC floats with
``parse_float=Decimal`` so no precision is lost on the way in.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from payment_watcher.utils.amounts import ZERO, to_btc

# ---------------------------------------------------------------------------
# scantxoutset
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Unspent:
    """A single unspent output returned by ``scantxoutset``.

    Attributes:
        txid: Owning transaction ID (hex).
        vout: Output index within the owning transaction.
        amount: Output value in BTC.
        height: Block height the output was mined at.
        descriptor: Descriptor that matched the output.
    """

    txid: str
    vout: int
    amount: Decimal
    height: int = 0
    descriptor: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Unspent:
        """Create from an RPC ``unspents`` entry."""
        return cls(
            txid=data["txid"],
            vout=data.get("vout", 0),
            amount=to_btc(data.get("amount", 0)),
            height=data.get("height", 0),
            descriptor=data.get("desc", ""),
        )


@dataclass(frozen=True)
class ScanResult:
    """Raw ``scantxoutset`` result for one address descriptor.

    ``total_amount`` counts every matching output regardless of depth.
    """

    total_amount: Decimal = ZERO
    unspents: list[Unspent] = field(default_factory=list)
    height: int = 0
    success: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ScanResult:
        """Create from an RPC ``scantxoutset`` result."""
        return cls(
            total_amount=to_btc(data.get("total_amount", 0)),
            unspents=[Unspent.from_dict(u) for u in data.get("unspents", [])],
            height=data.get("height", 0),
            success=data.get("success", True),
        )

    @property
    def txids(self) -> list[str]:
        """Distinct owning transaction IDs, in first-seen order."""
        return list(dict.fromkeys(u.txid for u in self.unspents))


# ---------------------------------------------------------------------------
# gettransaction
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WalletTransaction:
    """Wallet view of a transaction from ``gettransaction``.

    ``amount`` is the net wallet amount, negative for outgoing transactions.
    """

    txid: str
    amount: Decimal
    confirmations: int
    block_hash: str = ""
    block_height: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WalletTransaction:
        """Create from an RPC ``gettransaction`` result."""
        return cls(
            txid=data.get("txid", ""),
            amount=to_btc(data.get("amount", 0)),
            confirmations=data.get("confirmations", 0),
            block_hash=data.get("blockhash", ""),
            block_height=data.get("blockheight", 0),
        )
