"""Tests for the watch loop state machine."""

from __future__ import annotations

from decimal import Decimal

import pytest
from conftest import ADDRESS, NOW, FakeClock, make_scan, make_tx

from payment_watcher.engine.client import WatcherEngine
from payment_watcher.errors.chain_errors import DeliveryError, LedgerQueryError
from payment_watcher.watch.loop import WatchLoop
from payment_watcher.watch.models import Status, TickOutcome, WatchRequest

# Progression index: statuses may only move to a higher index (terminals share one).
_PROGRESS = {
    Status.WAITING: 0,
    Status.PARTIAL_PAYMENT: 1,
    Status.SUCCESS: 2,
    Status.EXPIRED: 2,
}


def _request(
    amount: str = "1.0",
    confirmations: int = 3,
    expiry: int = NOW + 600,
) -> WatchRequest:
    return WatchRequest(
        address=ADDRESS,
        required_amount=Decimal(amount),
        required_confirmations=confirmations,
        expiry_timestamp=expiry,
    )


# ---------------------------------------------------------------------------
# Expiry
# ---------------------------------------------------------------------------


class TestExpiry:
    async def test_expired_on_first_tick_skips_scan(self, engine, fake_node, fake_sink) -> None:
        loop = WatchLoop(engine, _request(expiry=NOW - 1))

        outcome = await loop.tick()

        assert outcome is TickOutcome.EXPIRED
        assert loop.state.status is Status.EXPIRED
        assert fake_node.scan_calls == []
        assert fake_sink.statuses == ["Expired"]
        assert "amount" not in fake_sink.sent[0].to_dict()

    async def test_expiry_boundary_is_exclusive(self, engine, fake_node, fake_sink) -> None:
        fake_node.scans[ADDRESS] = [make_scan("0")]
        loop = WatchLoop(engine, _request(expiry=NOW))

        assert await loop.tick() is TickOutcome.NOT_REACHED_YET
        assert fake_node.scan_calls == [ADDRESS]

    async def test_expires_after_partial(self, app_config, fake_node, fake_sink) -> None:
        engine = WatcherEngine(
            app_config, node=fake_node, sink=fake_sink, clock=FakeClock(NOW, step=6)
        )
        fake_node.scans[ADDRESS] = [make_scan("0.4", ("a", "0.4"))]
        loop = WatchLoop(engine, _request(expiry=NOW + 10))

        state = await loop.run()

        assert state.status is Status.EXPIRED
        assert fake_sink.statuses == ["PartialPayment", "Expired"]
        assert len(fake_node.scan_calls) == 2
        # The final notification keeps the last raw observation
        assert fake_sink.sent[-1].observed_amount == Decimal("0.4")


# ---------------------------------------------------------------------------
# Partial payments
# ---------------------------------------------------------------------------


class TestPartialPayment:
    async def test_first_partial_notifies(self, engine, fake_node, fake_sink) -> None:
        fake_node.scans[ADDRESS] = [make_scan("0.4", ("a", "0.4"))]
        loop = WatchLoop(engine, _request())

        outcome = await loop.tick()

        assert outcome is TickOutcome.NOT_REACHED_YET
        assert loop.state.status is Status.PARTIAL_PAYMENT
        assert loop.state.observed_amount == Decimal("0.4")
        assert fake_sink.statuses == ["PartialPayment"]
        assert fake_sink.sent[0].to_dict()["amount"] == 40_000_000

    async def test_repeat_partials_notify_once(self, engine, fake_node, fake_sink) -> None:
        fake_node.scans[ADDRESS] = [
            make_scan("0.4", ("a", "0.4")),
            make_scan("0.4", ("a", "0.4")),
            make_scan("0.7", ("a", "0.4"), ("b", "0.3")),
        ]
        loop = WatchLoop(engine, _request())

        for _ in range(4):
            assert await loop.tick() is TickOutcome.NOT_REACHED_YET

        assert fake_sink.statuses == ["PartialPayment"]
        assert loop.state.observed_amount == Decimal("0.7")
        assert fake_node.tx_calls == []

    async def test_nothing_received_stays_waiting(self, engine, fake_node, fake_sink) -> None:
        fake_node.scans[ADDRESS] = [make_scan("0")]
        loop = WatchLoop(engine, _request())

        assert await loop.tick() is TickOutcome.NOT_REACHED_YET

        assert loop.state.status is Status.WAITING
        assert loop.state.observed_amount == Decimal(0)
        assert fake_sink.sent == []


# ---------------------------------------------------------------------------
# Confirmation accounting
# ---------------------------------------------------------------------------


class TestConfirmations:
    async def test_enough_raw_but_not_deep_enough(self, engine, fake_node, fake_sink) -> None:
        fake_node.scans[ADDRESS] = [make_scan("1.0", ("a", "0.6"), ("b", "0.4"))]
        fake_node.transactions = {"a": make_tx("a", "0.6", 4), "b": make_tx("b", "0.4", 1)}
        loop = WatchLoop(engine, _request())

        outcome = await loop.tick()

        assert outcome is TickOutcome.NOT_REACHED_YET
        assert loop.state.status is Status.WAITING
        assert loop.state.observed_amount == Decimal("1.0")
        assert loop.state.observed_confirmations is None
        assert fake_sink.sent == []

    async def test_success(self, engine, fake_node, fake_sink) -> None:
        fake_node.scans[ADDRESS] = [make_scan("1.0", ("a", "0.6"), ("b", "0.4"))]
        fake_node.transactions = {"a": make_tx("a", "0.6", 7), "b": make_tx("b", "0.4", 5)}
        loop = WatchLoop(engine, _request())

        outcome = await loop.tick()

        assert outcome is TickOutcome.COMPLETED
        assert loop.state.status is Status.SUCCESS
        assert fake_sink.statuses == ["Success"]
        payload = fake_sink.sent[0].to_dict()
        assert payload["amount"] == 100_000_000
        assert payload["confirmations_num"] == 6

    async def test_success_reports_confirmed_not_raw(self, engine, fake_node, fake_sink) -> None:
        fake_node.scans[ADDRESS] = [make_scan("1.5", ("a", "1.2"), ("b", "0.3"))]
        fake_node.transactions = {"a": make_tx("a", "1.2", 3), "b": make_tx("b", "0.3", 0)}
        loop = WatchLoop(engine, _request())

        assert await loop.tick() is TickOutcome.COMPLETED
        assert loop.state.observed_amount == Decimal("1.2")
        assert loop.state.observed_confirmations == 3

    async def test_zero_target_succeeds_immediately(self, engine, fake_node, fake_sink) -> None:
        fake_node.scans[ADDRESS] = [make_scan("0")]
        loop = WatchLoop(engine, _request(amount="0", confirmations=0))

        assert await loop.tick() is TickOutcome.COMPLETED
        assert fake_sink.sent[0].to_dict()["confirmations_num"] == 0


# ---------------------------------------------------------------------------
# Full runs
# ---------------------------------------------------------------------------


class TestRun:
    async def test_partial_then_success(self, engine, fake_node, fake_sink) -> None:
        fake_node.scans[ADDRESS] = [
            make_scan("0.4", ("a", "0.4")),
            make_scan("1.0", ("a", "0.4"), ("b", "0.6")),
            make_scan("1.0", ("a", "0.4"), ("b", "0.6")),
        ]
        fake_node.transactions = {"a": make_tx("a", "0.4", 9), "b": make_tx("b", "0.6", 3)}
        loop = WatchLoop(engine, _request())

        state = await loop.run()

        assert state.status is Status.SUCCESS
        assert fake_sink.statuses == ["PartialPayment", "Success"]
        assert len(fake_node.scan_calls) == 2
        assert state.observed_confirmations == 6

    async def test_waits_for_depth(self, engine, fake_node, fake_sink) -> None:
        fake_node.scans[ADDRESS] = [make_scan("1.0", ("a", "1.0"))]
        depths = iter([0, 1, 2, 3])

        async def deepening(txid: str):
            fake_node.tx_calls.append(txid)
            return make_tx("a", "1.0", next(depths))

        fake_node.get_transaction = deepening
        loop = WatchLoop(engine, _request())

        state = await loop.run()

        assert state.status is Status.SUCCESS
        assert len(fake_node.scan_calls) == 4
        assert fake_sink.statuses == ["Success"]

    async def test_no_queries_after_terminal(self, engine, fake_node, fake_sink) -> None:
        fake_node.scans[ADDRESS] = [make_scan("1.0", ("a", "1.0"))]
        fake_node.transactions = {"a": make_tx("a", "1.0", 3)}
        loop = WatchLoop(engine, _request())

        await loop.run()

        assert len(fake_node.scan_calls) == 1
        assert fake_node.tx_calls == ["a"]

    @pytest.mark.parametrize(
        "totals",
        [
            ["0", "0.2", "0.2", "0.5", "1.0"],
            ["0.9", "0", "0.9", "1.0"],
            ["1.0", "0.3", "1.0"],
            ["0", "0", "0", "0"],
        ],
    )
    async def test_status_never_regresses(self, engine, fake_node, fake_sink, totals) -> None:
        fake_node.scans[ADDRESS] = [make_scan(t, ("a", t)) for t in totals]
        # Never deep enough, so every tick exercises the non-terminal paths.
        fake_node.transactions = {"a": make_tx("a", "1.0", 0)}
        loop = WatchLoop(engine, _request())

        previous = loop.state.status
        for _ in totals:
            await loop.tick()
            assert _PROGRESS[loop.state.status] >= _PROGRESS[previous]
            previous = loop.state.status
        assert fake_sink.statuses.count("PartialPayment") <= 1


# ---------------------------------------------------------------------------
# Failures and locking
# ---------------------------------------------------------------------------


class TestFailures:
    async def test_scan_failure_propagates(self, engine, fake_node, fake_sink) -> None:
        fake_node.scans[ADDRESS] = [LedgerQueryError("RPC scantxoutset failed")]
        loop = WatchLoop(engine, _request())

        with pytest.raises(LedgerQueryError):
            await loop.run()
        assert fake_sink.sent == []
        assert loop.state.status is Status.WAITING

    async def test_partial_delivery_failure_stops(self, engine, fake_node, fake_sink) -> None:
        fake_node.scans[ADDRESS] = [make_scan("0.4", ("a", "0.4"))]
        fake_sink.error = DeliveryError("webhook returned 500")
        loop = WatchLoop(engine, _request())

        with pytest.raises(DeliveryError):
            await loop.run()
        assert len(fake_node.scan_calls) == 1

    async def test_final_delivery_failure_propagates(self, engine, fake_node, fake_sink) -> None:
        fake_sink.error = DeliveryError("connection refused")
        loop = WatchLoop(engine, _request(expiry=NOW - 60))

        with pytest.raises(DeliveryError):
            await loop.run()
        assert loop.state.status is Status.EXPIRED
        assert fake_node.scan_calls == []

    async def test_ledger_queries_hold_lock(self, engine, fake_node, fake_sink) -> None:
        fake_node.require_lock = engine.ledger_lock
        fake_node.scans[ADDRESS] = [make_scan("1.0", ("a", "1.0"))]
        fake_node.transactions = {"a": make_tx("a", "1.0", 3)}
        loop = WatchLoop(engine, _request())

        assert await loop.tick() is TickOutcome.COMPLETED
        assert not engine.ledger_lock.locked()

    async def test_tick_after_success_is_inert(self, engine, fake_node, fake_sink) -> None:
        fake_node.scans[ADDRESS] = [make_scan("1.0", ("a", "1.0"))]
        fake_node.transactions = {"a": make_tx("a", "1.0", 3)}
        loop = WatchLoop(engine, _request())
        assert await loop.tick() is TickOutcome.COMPLETED

        assert await loop.tick() is TickOutcome.COMPLETED
        assert len(fake_node.scan_calls) == 1
        assert fake_sink.statuses == ["Success"]

    async def test_tick_after_expiry_is_inert(self, engine, fake_node, fake_sink) -> None:
        loop = WatchLoop(engine, _request(expiry=NOW - 1))
        assert await loop.tick() is TickOutcome.EXPIRED

        assert await loop.tick() is TickOutcome.EXPIRED
        assert fake_node.scan_calls == []
        assert fake_sink.statuses == ["Expired"]
