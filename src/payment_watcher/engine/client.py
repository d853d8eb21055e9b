"""WatcherEngine — shared ledger handle and supervisor for watch tasks."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING

from payment_watcher.chain.node.client import BitcoinRPCClient
from payment_watcher.errors.chain_errors import DeliveryError, LedgerQueryError
from payment_watcher.metrics.collector import WatcherMetrics
from payment_watcher.notifications.webhook import WebhookSink
from payment_watcher.watch.loop import start_watch

if TYPE_CHECKING:
    from collections.abc import Callable

    from payment_watcher.config.settings import AppConfig
    from payment_watcher.watch.loop import WatchLoop
    from payment_watcher.watch.models import WatchRequest

logger = logging.getLogger(__name__)

_ERR_NOT_INITIALIZED = "Engine not initialized. Call initialize() first."


class WatcherEngine:
    """Owns the node connection, the ledger lock and the webhook sink.

    One engine is shared by every watch in the process. Each watch tick holds
    ``ledger_lock`` for its node queries, so a single RPC connection serves
    all watches one query at a time.

    Usage::

        engine = WatcherEngine(config)
        await engine.initialize()
        try:
            engine.start_watch(request)
            ...
        finally:
            await engine.close()
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        node: BitcoinRPCClient | None = None,
        sink: WebhookSink | None = None,
        metrics: WatcherMetrics | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize engine with configuration.

        Args:
            config: Application configuration.
            node: Node client override (defaults to one built from ``config.node``).
            sink: Webhook sink override (defaults to one built from ``config.notify``).
            metrics: Metrics override.
            clock: Source of the current Unix time, checked against watch expiry.
        """
        self._config = config
        self._node = node or BitcoinRPCClient(config.node)
        self._sink = sink or WebhookSink(config.notify)
        self._metrics = metrics or WatcherMetrics()
        self._clock = clock
        self._ledger_lock = asyncio.Lock()
        self._watches: set[asyncio.Task[None]] = set()
        self._initialized = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Connect to the node and the sink, and (re)load the configured wallet.

        Raises:
            RuntimeError: If already initialized.
            LedgerQueryError: If the node can't be reached or the wallet won't load.
        """
        if self._initialized:
            msg = "Engine already initialized"
            raise RuntimeError(msg)

        await self._node.connect()
        await self._sink.connect()

        info = await self._node.get_blockchain_info()
        chain = info.get("chain", "")
        if chain != self._config.node.network.value:
            logger.warning(
                "Node reports chain %r but config expects %r",
                chain,
                self._config.node.network.value,
            )

        wallet = self._config.node.wallet
        if wallet:
            try:
                await self._node.unload_wallet(wallet)
            except LedgerQueryError:
                logger.debug("Wallet %s was not loaded", wallet)
            await self._node.load_wallet(wallet)
            logger.info("Loaded wallet %s", wallet)

        self._initialized = True
        logger.info("Watcher engine connected to %s (%s)", self._config.node.url, chain)

    async def close(self) -> None:
        """Cancel in-flight watches and close connections.

        Can be called multiple times (idempotent).
        """
        pending = list(self._watches)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.info("Cancelled %d in-flight watches", len(pending))
        self._watches.clear()

        await self._sink.close()
        await self._node.close()
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    # ------------------------------------------------------------------
    # Shared handle
    # ------------------------------------------------------------------

    @property
    def node(self) -> BitcoinRPCClient:
        return self._node

    @property
    def sink(self) -> WebhookSink:
        return self._sink

    @property
    def metrics(self) -> WatcherMetrics:
        return self._metrics

    @property
    def ledger_lock(self) -> asyncio.Lock:
        """Serializes node queries across all watches."""
        return self._ledger_lock

    @property
    def poll_interval(self) -> float:
        """Seconds each watch sleeps between ticks."""
        return self._config.watch.poll_interval_seconds

    def clock(self) -> float:
        """Current Unix time."""
        return self._clock()

    @property
    def active_watches(self) -> int:
        return len(self._watches)

    # ------------------------------------------------------------------
    # Watches
    # ------------------------------------------------------------------

    def start_watch(self, request: WatchRequest) -> asyncio.Task[None]:
        """Spawn a watch for *request*; see :func:`payment_watcher.watch.loop.start_watch`."""
        return start_watch(self, request)

    def supervise(self, loop: WatchLoop) -> asyncio.Task[None]:
        """Run *loop* as a background task whose failures stay contained."""
        task = asyncio.create_task(
            self._run_watch(loop), name=f"watch:{loop.state.address}"
        )
        self._watches.add(task)
        task.add_done_callback(self._watches.discard)
        return task

    async def _run_watch(self, loop: WatchLoop) -> None:
        address = loop.state.address
        outcome = "cancelled"
        self._metrics.watch_started()
        try:
            state = await loop.run()
            outcome = state.status.value.lower()
        except LedgerQueryError as exc:
            outcome = "ledger_failure"
            logger.warning("Watch for %s stopped: ledger query failed: %s", address, exc)
        except DeliveryError as exc:
            outcome = "delivery_failure"
            logger.warning("Watch for %s stopped: notification failed: %s", address, exc)
        except Exception:
            outcome = "error"
            logger.exception("Watch for %s crashed", address)
        finally:
            self._metrics.watch_finished(outcome)

    # ------------------------------------------------------------------
    # Address plumbing
    # ------------------------------------------------------------------

    async def new_address(self) -> str:
        """Generate a receiving address from the node wallet."""
        self._ensure_initialized()
        async with self._ledger_lock:
            return await self._node.get_new_address()

    async def is_valid_address(self, address: str) -> bool:
        """Whether the node accepts *address* on its network."""
        self._ensure_initialized()
        async with self._ledger_lock:
            return await self._node.validate_address(address)

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
