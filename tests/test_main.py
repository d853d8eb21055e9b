"""Tests for payment_watcher.main entry point."""

from __future__ import annotations

from unittest.mock import patch

import pytest


def test_main_calls_uvicorn_run() -> None:
    """Verify that main() delegates to uvicorn.run with expected args."""
    with patch("payment_watcher.main.uvicorn.run") as mock_run:
        from payment_watcher.main import main

        main()
        mock_run.assert_called_once()
        call_kwargs = mock_run.call_args
        assert call_kwargs[0][0] == "payment_watcher.api.app:create_app"
        assert call_kwargs[1]["factory"] is True
        assert call_kwargs[1]["port"] == 3000
        assert call_kwargs[1]["log_level"] == "info"


def test_main_reads_config(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WATCHER_SERVER__PORT", "8088")
    monkeypatch.setenv("WATCHER_DEBUG", "true")
    with patch("payment_watcher.main.uvicorn.run") as mock_run:
        from payment_watcher.main import main

        main()
        assert mock_run.call_args[1]["port"] == 8088
        assert mock_run.call_args[1]["log_level"] == "debug"
