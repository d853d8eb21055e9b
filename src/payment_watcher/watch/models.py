"""Watch data model — request, status machine, mutable state, snapshot.

A ``WatchState`` is owned by exactly one ``WatchLoop``. Every notification
sends a ``WatchSnapshot`` derived from it; the sink handle never lives in
either record.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from payment_watcher.errors.watcher_errors import InvalidTransitionError
from payment_watcher.utils.amounts import btc_to_sats

# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------


class Status(enum.StrEnum):
    """Watch status, serialized verbatim in notifications.

    Declaration order is the total order exposed by ``rank``.
    """

    SUCCESS = "Success"
    PARTIAL_PAYMENT = "PartialPayment"
    EXPIRED = "Expired"
    WAITING = "Waiting"

    @property
    def rank(self) -> int:
        """Position in declaration order."""
        return list(Status).index(self)

    @property
    def is_terminal(self) -> bool:
        """Whether this status ends the watch."""
        return self in (Status.SUCCESS, Status.EXPIRED)


# Allowed forward moves; anything else is a regression or leaves a terminal state.
_TRANSITIONS: dict[Status, frozenset[Status]] = {
    Status.WAITING: frozenset({Status.PARTIAL_PAYMENT, Status.SUCCESS, Status.EXPIRED}),
    Status.PARTIAL_PAYMENT: frozenset({Status.SUCCESS, Status.EXPIRED}),
    Status.SUCCESS: frozenset(),
    Status.EXPIRED: frozenset(),
}


class TickOutcome(enum.Enum):
    """What a single loop tick decided. Never leaves the loop."""

    NOT_REACHED_YET = "not_reached_yet"
    EXPIRED = "expired"
    COMPLETED = "completed"


# ---------------------------------------------------------------------------
# Request / state / snapshot
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WatchRequest:
    """An accepted watch request.

    Attributes:
        address: Address to watch.
        required_amount: BTC that must arrive.
        required_confirmations: Depth each counted transaction must reach.
        expiry_timestamp: Unix time after which the watch expires.
    """

    address: str
    required_amount: Decimal
    required_confirmations: int
    expiry_timestamp: int

    def __post_init__(self) -> None:
        if self.required_confirmations < 0:
            msg = "required_confirmations must be non-negative"
            raise ValueError(msg)
        if self.required_amount < 0:
            msg = "required_amount must be non-negative"
            raise ValueError(msg)


@dataclass(frozen=True)
class WatchSnapshot:
    """Immutable view of a ``WatchState`` at the moment of a notification."""

    status: Status
    address: str
    required_amount: Decimal
    required_confirmations: int
    expiry_timestamp: int
    observed_amount: Decimal | None = None
    observed_confirmations: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the notification payload.

        Amounts are integer satoshis. ``amount`` and ``confirmations_num``
        (the observed values) are omitted while unset.
        """
        payload: dict[str, Any] = {
            "expiry": self.expiry_timestamp,
            "status": self.status.value,
            "address": self.address,
            "required_amount": btc_to_sats(self.required_amount),
            "required_confirmations_num": self.required_confirmations,
        }
        if self.observed_amount is not None:
            payload["amount"] = btc_to_sats(self.observed_amount)
        if self.observed_confirmations is not None:
            payload["confirmations_num"] = self.observed_confirmations
        return payload


@dataclass
class WatchState:
    """Mutable record of one in-flight watch."""

    request: WatchRequest
    status: Status = Status.WAITING
    observed_amount: Decimal | None = None
    observed_confirmations: int | None = None

    @property
    def address(self) -> str:
        return self.request.address

    @property
    def required_amount(self) -> Decimal:
        return self.request.required_amount

    @property
    def required_confirmations(self) -> int:
        return self.request.required_confirmations

    @property
    def expiry_timestamp(self) -> int:
        return self.request.expiry_timestamp

    def transition_to(self, status: Status) -> None:
        """Move to *status*.

        Raises:
            InvalidTransitionError: If the move would regress or leave a
                terminal status.
        """
        if status == self.status:
            return
        if status not in _TRANSITIONS[self.status]:
            msg = f"cannot move watch for {self.address} from {self.status} to {status}"
            raise InvalidTransitionError(msg)
        self.status = status

    def snapshot(self) -> WatchSnapshot:
        """Freeze the current state for a notification."""
        return WatchSnapshot(
            status=self.status,
            address=self.request.address,
            required_amount=self.request.required_amount,
            required_confirmations=self.request.required_confirmations,
            expiry_timestamp=self.request.expiry_timestamp,
            observed_amount=self.observed_amount,
            observed_confirmations=self.observed_confirmations,
        )
