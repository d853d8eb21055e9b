"""Application entry point for the payment watcher server."""

from __future__ import annotations

import os

import uvicorn

from payment_watcher.config.settings import AppConfig


def main() -> None:
    """Start the payment watcher server."""
    config = AppConfig()
    reload = os.getenv("WATCHER_RELOAD", "false").lower() in ("1", "true", "yes")
    uvicorn.run(
        "payment_watcher.api.app:create_app",
        factory=True,
        host=config.server.host,
        port=config.server.port,
        reload=reload,
        log_level="debug" if config.debug else "info",
    )


if __name__ == "__main__":
    main()
