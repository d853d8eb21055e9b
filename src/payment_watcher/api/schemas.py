"""Request bodies for the watch endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field


class WaitOnRequest(BaseModel):
    """Body for ``/wait_on`` and ``/create_and_wait_on``.

    ``address`` is required by ``/wait_on`` and ignored by
    ``/create_and_wait_on``, which asks the node for a fresh one.
    """

    address: str | None = None
    amount_in_btc: str = Field(description="Exact BTC amount, e.g. '0.015'")
    confirmations_num: int = Field(description="Confirmations each payment must reach")
    expiry_in_mins: int = Field(description="Minutes from now until the watch expires")
