"""Shared test fixtures for the payment-watcher test suite."""

from __future__ import annotations

import asyncio
from decimal import Decimal

import pytest

from payment_watcher.chain.node.models import ScanResult, Unspent, WalletTransaction
from payment_watcher.config.settings import AppConfig, NotifyConfig, WatchConfig
from payment_watcher.engine.client import WatcherEngine
from payment_watcher.errors.chain_errors import DeliveryError, LedgerQueryError

ADDRESS = "bcrt1qxy2kgdygjrsqtzq2n0yrf2493p83kkfjhx0wlh"
NOW = 1_700_000_000


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeClock:
    """Unix clock that advances ``step`` seconds after every reading."""

    def __init__(self, now: float = NOW, step: float = 0.0) -> None:
        self.now = now
        self.step = step

    def __call__(self) -> float:
        current = self.now
        self.now += self.step
        return current


class FakeNode:
    """In-memory stand-in for ``BitcoinRPCClient``.

    ``scans[address]`` is consumed one entry per scan; the last entry repeats.
    Entries that are exceptions are raised instead of returned.
    """

    def __init__(self) -> None:
        self.scans: dict[str, list[ScanResult | Exception]] = {}
        self.transactions: dict[str, WalletTransaction | Exception] = {}
        self.scan_calls: list[str] = []
        self.tx_calls: list[str] = []
        self.wallet_calls: list[tuple[str, str]] = []
        self.new_addresses = ["bcrt1qfreshaddress0000000000000000000000000"]
        self.valid = True
        self.chain = "regtest"
        self.connected = False
        self.require_lock: asyncio.Lock | None = None

    async def connect(self) -> None:
        self.connected = True

    async def close(self) -> None:
        self.connected = False

    async def scan_address(self, address: str) -> ScanResult:
        self._check_lock()
        self.scan_calls.append(address)
        queue = self.scans[address]
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item

    async def get_transaction(self, txid: str) -> WalletTransaction:
        self._check_lock()
        self.tx_calls.append(txid)
        item = self.transactions.get(txid)
        if item is None:
            raise LedgerQueryError("Invalid or non-wallet transaction id", rpc_code=-5)
        if isinstance(item, Exception):
            raise item
        return item

    async def get_blockchain_info(self) -> dict:
        return {"chain": self.chain, "blocks": 150}

    async def load_wallet(self, name: str) -> None:
        self.wallet_calls.append(("load", name))

    async def unload_wallet(self, name: str) -> None:
        self.wallet_calls.append(("unload", name))
        raise LedgerQueryError("Requested wallet does not exist or is not loaded", rpc_code=-18)

    async def get_new_address(self) -> str:
        self._check_lock()
        return self.new_addresses.pop(0)

    async def validate_address(self, address: str) -> bool:
        return self.valid

    def _check_lock(self) -> None:
        if self.require_lock is not None:
            assert self.require_lock.locked(), "ledger query made without the ledger lock"


class FakeSink:
    """Records snapshots instead of posting them. Set ``error`` to fail sends."""

    def __init__(self) -> None:
        self.sent: list = []
        self.error: DeliveryError | None = None
        self.connected = False

    async def connect(self) -> None:
        self.connected = True

    async def close(self) -> None:
        self.connected = False

    async def send(self, snapshot) -> None:
        if self.error is not None:
            raise self.error
        self.sent.append(snapshot)

    @property
    def statuses(self) -> list[str]:
        return [s.status.value for s in self.sent]


def make_scan(total: str, *outputs: tuple[str, str]) -> ScanResult:
    """Build a scan result from ``(txid, amount)`` pairs."""
    return ScanResult(
        total_amount=Decimal(total),
        unspents=[
            Unspent(txid=txid, vout=i, amount=Decimal(amount))
            for i, (txid, amount) in enumerate(outputs)
        ],
    )


def make_tx(txid: str, amount: str, confirmations: int) -> WalletTransaction:
    return WalletTransaction(txid=txid, amount=Decimal(amount), confirmations=confirmations)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def app_config() -> AppConfig:
    """Provide a test AppConfig with a zero poll interval."""
    return AppConfig(
        watch=WatchConfig(poll_interval_seconds=0),
        notify=NotifyConfig(url="https://hooks.example.com/payments"),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_node() -> FakeNode:
    return FakeNode()


@pytest.fixture
def fake_sink() -> FakeSink:
    return FakeSink()


@pytest.fixture
def engine(app_config, fake_node, fake_sink, clock) -> WatcherEngine:
    """Engine wired to in-memory node and sink fakes (not initialized)."""
    return WatcherEngine(app_config, node=fake_node, sink=fake_sink, clock=clock)
