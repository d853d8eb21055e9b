"""BTC amount helpers — exact decimal arithmetic at satoshi precision."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

SATS_PER_BTC = 100_000_000
ONE_SAT = Decimal("0.00000001")
ZERO = Decimal(0)


def to_btc(value: Any) -> Decimal:
    """Coerce an RPC amount (Decimal, int, float or str) into a BTC ``Decimal``.

    Floats go through ``str`` so ``0.1`` stays ``Decimal("0.1")``.

    Raises:
        ValueError: If *value* is not a finite number.
    """
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except InvalidOperation as exc:
            msg = f"not a BTC amount: {value!r}"
            raise ValueError(msg) from exc
    if not result.is_finite():
        msg = f"not a BTC amount: {value!r}"
        raise ValueError(msg)
    return result


def parse_btc(text: str) -> Decimal:
    """Parse a user-supplied BTC amount string.

    Accepts at most 8 decimal places and rejects negatives.

    Raises:
        ValueError: On malformed, negative or over-precise input.
    """
    amount = to_btc(text.strip())
    if amount < 0:
        msg = f"negative amount: {text!r}"
        raise ValueError(msg)
    try:
        quantized = amount.quantize(ONE_SAT)
    except InvalidOperation as exc:
        msg = f"amount out of range: {text!r}"
        raise ValueError(msg) from exc
    if amount != quantized:
        msg = f"more than 8 decimal places: {text!r}"
        raise ValueError(msg)
    return quantized


def btc_to_sats(amount: Decimal) -> int:
    """Convert a BTC amount to whole satoshis (truncating sub-satoshi dust)."""
    return int(amount * SATS_PER_BTC)
