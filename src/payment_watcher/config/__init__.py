"""Configuration — pydantic-settings models with YAML overlay."""

from __future__ import annotations

from payment_watcher.config.settings import AppConfig

__all__ = ["AppConfig"]
