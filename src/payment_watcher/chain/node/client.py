"""Bitcoin Core JSON-RPC client — UTXO scan, transaction lookup, addresses.

Async HTTP client for the node's JSON-RPC interface:
- ``scantxoutset start ["addr(<address>)"]`` — raw UTXO scan for an address
- ``gettransaction <txid>`` — wallet view incl. confirmation count
- ``getnewaddress`` / ``validateaddress`` — address plumbing
- ``loadwallet`` / ``unloadwallet`` / ``getblockchaininfo``

Wallet RPCs are sent to ``/wallet/<name>`` when a wallet is configured.
"""

from __future__ import annotations

import itertools
import json
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import httpx

from payment_watcher.chain.node.models import ScanResult, WalletTransaction
from payment_watcher.errors.chain_errors import LedgerQueryError

if TYPE_CHECKING:
    from payment_watcher.config.settings import NodeConfig


class BitcoinRPCClient:
    """Async JSON-RPC client for a Bitcoin Core node.

    Usage::

        node = BitcoinRPCClient(config.node)
        await node.connect()
        try:
            scan = await node.scan_address("bcrt1q...")
            tx = await node.get_transaction(scan.unspents[0].txid)
        finally:
            await node.close()
    """

    def __init__(self, config: NodeConfig) -> None:
        """Initialize the RPC client.

        Args:
            config: Node configuration (url, credentials, wallet, timeout).
        """
        self._config = config
        self._client: httpx.AsyncClient | None = None
        self._ids = itertools.count(1)

    async def connect(self) -> None:
        """Create the underlying HTTP client."""
        auth = None
        if self._config.rpc_user:
            auth = httpx.BasicAuth(self._config.rpc_user, self._config.rpc_password)
        self._client = httpx.AsyncClient(
            base_url=self._config.url.rstrip("/"),
            auth=auth,
            headers={"Content-Type": "application/json"},
            timeout=self._config.timeout,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def is_connected(self) -> bool:
        """Check if the HTTP client is active."""
        return self._client is not None

    @property
    def wallet(self) -> str:
        """Name of the configured wallet ("" for the default wallet)."""
        return self._config.wallet

    # ------------------------------------------------------------------
    # Ledger queries
    # ------------------------------------------------------------------

    async def scan_address(self, address: str) -> ScanResult:
        """Scan the UTXO set for outputs paying *address*.

        Blocks on the node until the scan completes.

        Raises:
            LedgerQueryError: If the RPC fails or the scan was aborted.
        """
        data = await self._call("scantxoutset", "start", [f"addr({address})"])
        result = ScanResult.from_dict(data)
        if not result.success:
            msg = f"scantxoutset for {address} did not complete"
            raise LedgerQueryError(msg)
        return result

    async def get_transaction(self, txid: str) -> WalletTransaction:
        """Look up a wallet transaction and its confirmation count.

        Raises:
            LedgerQueryError: If the node doesn't know the transaction.
        """
        data = await self._call("gettransaction", txid, wallet=True)
        return WalletTransaction.from_dict(data)

    # ------------------------------------------------------------------
    # Addresses
    # ------------------------------------------------------------------

    async def get_new_address(self) -> str:
        """Ask the wallet for a fresh receiving address."""
        return await self._call("getnewaddress", wallet=True)

    async def validate_address(self, address: str) -> bool:
        """Whether *address* is valid on the node's network."""
        data = await self._call("validateaddress", address)
        return bool(data.get("isvalid", False))

    # ------------------------------------------------------------------
    # Node / wallet management
    # ------------------------------------------------------------------

    async def get_blockchain_info(self) -> dict[str, Any]:
        """Return ``getblockchaininfo`` (chain name, height, ...)."""
        return await self._call("getblockchaininfo")

    async def load_wallet(self, name: str) -> None:
        """Load wallet *name* on the node."""
        await self._call("loadwallet", name)

    async def unload_wallet(self, name: str) -> None:
        """Unload wallet *name* from the node."""
        await self._call("unloadwallet", name)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _ensure_connected(self) -> httpx.AsyncClient:
        if self._client is None:
            msg = "Bitcoin RPC client not connected. Call connect() first."
            raise LedgerQueryError(msg, status_code=500)
        return self._client

    async def _call(self, method: str, *params: Any, wallet: bool = False) -> Any:
        """Send one JSON-RPC request and return its ``result``.

        Raises:
            LedgerQueryError: On transport errors, HTTP errors, or an RPC
                ``error`` object in the reply.
        """
        client = self._ensure_connected()
        path = f"/wallet/{self._config.wallet}" if wallet and self._config.wallet else "/"
        payload = {
            "jsonrpc": "1.0",
            "id": next(self._ids),
            "method": method,
            "params": list(params),
        }

        try:
            response = await client.post(path, json=payload)
        except httpx.HTTPError as exc:
            raise LedgerQueryError(f"RPC {method} failed: {exc}") from exc

        # bitcoind reports RPC errors with a 4xx/5xx status and a JSON body
        try:
            body = response.json(parse_float=Decimal)
        except json.JSONDecodeError:
            body = None

        if isinstance(body, dict) and body.get("error"):
            error = body["error"]
            if not isinstance(error, dict):
                error = {"message": str(error)}
            raise LedgerQueryError(
                f"RPC {method} error: {error.get('message', '')}",
                rpc_code=error.get("code"),
            )
        if response.status_code >= 400 or not isinstance(body, dict):
            msg = f"RPC {method} failed ({response.status_code}): {response.text[:200]}"
            raise LedgerQueryError(msg, status_code=response.status_code)

        return body.get("result")
