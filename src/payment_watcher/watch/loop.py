"""Watch loop — drive one ``WatchState`` from ``Waiting`` to a terminal status.

Per tick:

0. Already terminal → report the outcome again. No query, no notification.
1. Past expiry → ``Expired``, final notification, stop. No ledger query.
2. Scan the address (raw, any depth) under the shared ledger lock.
3. Raw total below target → first non-zero sighting moves to
   ``PartialPayment`` and notifies once; otherwise keep waiting.
4. Raw total at or above target → aggregate at the required depth.
5. Confirmed total at or above target → ``Success``, final notification, stop.

Ledger scan failures and delivery failures propagate out of ``run()``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from payment_watcher.utils.amounts import ZERO
from payment_watcher.watch.aggregator import aggregate_confirmed
from payment_watcher.watch.models import Status, TickOutcome, WatchState

if TYPE_CHECKING:
    from payment_watcher.engine.client import WatcherEngine
    from payment_watcher.watch.models import WatchRequest

logger = logging.getLogger(__name__)


class WatchLoop:
    """Polls the ledger for one watch request until it succeeds or expires.

    The loop owns its ``WatchState``; the engine supplies the shared node
    client, the ledger lock, the webhook sink and the clock.
    """

    def __init__(self, engine: WatcherEngine, request: WatchRequest) -> None:
        self._engine = engine
        self._state = WatchState(request)

    @property
    def state(self) -> WatchState:
        return self._state

    async def run(self) -> WatchState:
        """Tick until a terminal status is reached.

        Returns:
            The final state (``Success`` or ``Expired``).

        Raises:
            LedgerQueryError: If the address scan fails.
            DeliveryError: If a notification could not be delivered.
        """
        state = self._state
        logger.info(
            "Watching %s for %s BTC at %d confirmations until %d",
            state.address,
            state.required_amount,
            state.required_confirmations,
            state.expiry_timestamp,
        )
        while True:
            outcome = await self.tick()
            if outcome is not TickOutcome.NOT_REACHED_YET:
                return state
            await asyncio.sleep(self._engine.poll_interval)

    async def tick(self) -> TickOutcome:
        """Run one poll of the ledger and advance the status."""
        state = self._state
        engine = self._engine

        if state.status.is_terminal:
            return (
                TickOutcome.COMPLETED if state.status is Status.SUCCESS else TickOutcome.EXPIRED
            )

        if engine.clock() > state.expiry_timestamp:
            state.transition_to(Status.EXPIRED)
            logger.info("Watch for %s expired", state.address)
            await self._notify()
            return TickOutcome.EXPIRED

        async with engine.ledger_lock:
            with engine.metrics.track_ledger_query("scan"):
                scan = await engine.node.scan_address(state.address)

        state.observed_amount = scan.total_amount
        logger.debug(
            "Scan %s: %s BTC in %d outputs", state.address, scan.total_amount, len(scan.unspents)
        )

        if scan.total_amount < state.required_amount:
            if scan.total_amount > ZERO and state.status != Status.PARTIAL_PAYMENT:
                state.transition_to(Status.PARTIAL_PAYMENT)
                logger.info(
                    "Partial payment on %s: %s of %s BTC",
                    state.address,
                    scan.total_amount,
                    state.required_amount,
                )
                await self._notify()
            return TickOutcome.NOT_REACHED_YET

        async with engine.ledger_lock:
            with engine.metrics.track_ledger_query("aggregate"):
                confirmed = await aggregate_confirmed(
                    engine.node, scan, state.required_confirmations
                )

        if confirmed.amount < state.required_amount:
            logger.debug(
                "%s has %s BTC at %d+ confirmations, waiting for depth",
                state.address,
                confirmed.amount,
                state.required_confirmations,
            )
            return TickOutcome.NOT_REACHED_YET

        state.transition_to(Status.SUCCESS)
        state.observed_amount = confirmed.amount
        state.observed_confirmations = confirmed.confirmations
        logger.info(
            "Payment to %s complete: %s BTC, ~%d confirmations",
            state.address,
            confirmed.amount,
            confirmed.confirmations,
        )
        await self._notify()
        return TickOutcome.COMPLETED

    async def _notify(self) -> None:
        snapshot = self._state.snapshot()
        await self._engine.sink.send(snapshot)
        self._engine.metrics.notification_sent(snapshot.status.value)


def start_watch(engine: WatcherEngine, request: WatchRequest) -> asyncio.Task[None]:
    """Spawn a watch for *request* on *engine*.

    Fire-and-forget: the returned task always resolves to ``None``. The
    outcome of a watch is only ever visible through the webhook sink.
    """
    return engine.supervise(WatchLoop(engine, request))
