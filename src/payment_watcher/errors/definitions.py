"""Pre-defined request validation errors."""

from __future__ import annotations

from payment_watcher.errors.watcher_errors import WatcherError

# -- Validation ------------------------------------------------------------

ErrMissingAddress = WatcherError(
    "missing required field: address", status_code=400, code="missing-address"
)
ErrInvalidAddress = WatcherError(
    "address is not valid for the node's network", status_code=400, code="invalid-address"
)
ErrInvalidAmount = WatcherError(
    "amount_in_btc must be a non-negative BTC amount with at most 8 decimal places",
    status_code=400,
    code="invalid-amount",
)
ErrInvalidExpiry = WatcherError(
    "expiry_in_mins is outside the allowed range", status_code=400, code="invalid-expiry"
)
ErrInvalidConfirmations = WatcherError(
    "confirmations_num must be a non-negative integer",
    status_code=400,
    code="invalid-confirmations",
)

# -- Service ---------------------------------------------------------------

ErrEngineNotReady = WatcherError(
    "watcher engine is not initialized", status_code=503, code="engine-not-ready"
)
ErrAddressGeneration = WatcherError(
    "node failed to generate a new address", status_code=502, code="address-generation-failed"
)
