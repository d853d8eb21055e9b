"""Watch request routes.

- ``POST /wait_on`` — watch a caller-supplied address
- ``POST /create_and_wait_on`` — watch a fresh node-wallet address
- ``POST /test_webhook`` — local sink that logs what it receives
"""

from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import PlainTextResponse

from payment_watcher.api.dependencies import get_engine
from payment_watcher.api.schemas import WaitOnRequest  # noqa: TC001
from payment_watcher.config.settings import AppConfig  # noqa: TC001
from payment_watcher.engine.client import WatcherEngine  # noqa: TC001
from payment_watcher.errors.chain_errors import LedgerQueryError
from payment_watcher.errors.definitions import (
    ErrAddressGeneration,
    ErrInvalidAddress,
    ErrInvalidAmount,
    ErrInvalidConfirmations,
    ErrInvalidExpiry,
    ErrMissingAddress,
)
from payment_watcher.utils.amounts import parse_btc
from payment_watcher.watch.models import WatchRequest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["watch"])


def get_config(request: Request) -> AppConfig:
    """Retrieve the app config from ``app.state``."""
    return request.app.state.config


def _build_request(
    body: WaitOnRequest,
    address: str,
    engine: WatcherEngine,
    config: AppConfig,
) -> WatchRequest:
    """Validate the numeric fields of *body* and build a ``WatchRequest``."""
    try:
        amount = parse_btc(body.amount_in_btc)
    except ValueError:
        raise ErrInvalidAmount from None
    if body.confirmations_num < 0:
        raise ErrInvalidConfirmations
    if not 0 <= body.expiry_in_mins <= config.watch.max_expiry_minutes:
        raise ErrInvalidExpiry

    return WatchRequest(
        address=address,
        required_amount=amount,
        required_confirmations=body.confirmations_num,
        expiry_timestamp=int(engine.clock()) + body.expiry_in_mins * 60,
    )


@router.post("/wait_on", response_class=PlainTextResponse)
async def wait_on(
    body: WaitOnRequest,
    engine: Annotated[WatcherEngine, Depends(get_engine)],
    config: Annotated[AppConfig, Depends(get_config)],
) -> str:
    """Start watching ``body.address`` for the requested payment."""
    if not body.address:
        raise ErrMissingAddress
    request = _build_request(body, body.address, engine, config)
    if not await engine.is_valid_address(body.address):
        raise ErrInvalidAddress

    engine.start_watch(request)
    return "Being waited on"


@router.post("/create_and_wait_on", response_class=PlainTextResponse)
async def create_and_wait_on(
    body: WaitOnRequest,
    engine: Annotated[WatcherEngine, Depends(get_engine)],
    config: Annotated[AppConfig, Depends(get_config)],
) -> str:
    """Generate a node-wallet address, watch it, and return it."""
    # Reject bad input before the wallet hands out an address.
    _build_request(body, "", engine, config)
    try:
        address = await engine.new_address()
    except LedgerQueryError as exc:
        logger.warning("getnewaddress failed: %s", exc)
        raise ErrAddressGeneration from None

    engine.start_watch(_build_request(body, address, engine, config))
    return address


@router.post("/test_webhook", response_class=PlainTextResponse)
async def test_webhook(data: Annotated[Any, Body()]) -> str:
    """Log a webhook payload. Point ``WATCHER_NOTIFY__URL`` here for local runs."""
    logger.info("Test webhook received: %s", data)
    return "Test webhook"
