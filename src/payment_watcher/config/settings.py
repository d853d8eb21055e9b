"""Application settings loaded from environment variables and config files.

Configuration is loaded from (highest priority first):
1. Environment variables (prefix: ``WATCHER_``, nested via ``__``)
2. YAML config file (``WATCHER_CONFIG_PATH`` env var or ``AppConfig.from_yaml``)
3. Defaults defined here
"""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Any, Self

import yaml
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Enums for validated choices
# ---------------------------------------------------------------------------


class Network(enum.StrEnum):
    """Bitcoin network the node is expected to run on."""

    MAIN = "main"
    TEST = "test"
    SIGNET = "signet"
    REGTEST = "regtest"


# ---------------------------------------------------------------------------
# Sub-config models
# ---------------------------------------------------------------------------


class ServerConfig(BaseSettings):
    """HTTP server settings."""

    model_config = SettingsConfigDict(
        env_prefix="WATCHER_SERVER__",
        case_sensitive=False,
    )

    host: str = "0.0.0.0"  # noqa: S104
    port: int = 3000


class NodeConfig(BaseSettings):
    """Bitcoin Core JSON-RPC settings."""

    model_config = SettingsConfigDict(
        env_prefix="WATCHER_NODE__",
        case_sensitive=False,
    )

    url: str = "http://127.0.0.1:8332"
    rpc_user: str = ""
    rpc_password: str = ""
    user_pass: str = Field(
        default="",
        description="Shorthand 'user:password'; fills rpc_user/rpc_password when set",
    )
    wallet: str = ""
    timeout: float = Field(
        default=300.0,
        description="Seconds to wait for an RPC reply; scantxoutset can be slow",
    )
    network: Network = Network.REGTEST

    @model_validator(mode="after")
    def _split_user_pass(self) -> Self:
        if self.user_pass and not self.rpc_user:
            user, sep, password = self.user_pass.partition(":")
            if not sep:
                msg = "user_pass must have the form 'user:password'"
                raise ValueError(msg)
            self.rpc_user = user
            self.rpc_password = password
        return self


class NotifyConfig(BaseSettings):
    """Webhook sink settings."""

    model_config = SettingsConfigDict(
        env_prefix="WATCHER_NOTIFY__",
        case_sensitive=False,
    )

    url: str = "http://127.0.0.1:3000/test_webhook"
    token_header: str = "Authorization"  # noqa: S105
    token_value: str = ""
    timeout: float = 10.0


class WatchConfig(BaseSettings):
    """Watch loop settings."""

    model_config = SettingsConfigDict(
        env_prefix="WATCHER_WATCH__",
        case_sensitive=False,
    )

    poll_interval_seconds: float = Field(default=30.0, ge=0)
    max_expiry_minutes: int = Field(default=10080, ge=0)


class MetricsConfig(BaseSettings):
    """Prometheus metrics settings."""

    model_config = SettingsConfigDict(
        env_prefix="WATCHER_METRICS__",
        case_sensitive=False,
    )

    enabled: bool = True


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


def _load_yaml(path: str | Path) -> dict[str, Any]:
    """Load a YAML configuration file and return its contents as a dict.

    Returns an empty dict if the file doesn't exist or is empty.
    """
    p = Path(path)
    if not p.exists():
        return {}
    text = p.read_text(encoding="utf-8")
    data = yaml.safe_load(text)
    return data if isinstance(data, dict) else {}


class AppConfig(BaseSettings):
    """Top-level application configuration.

    Loads settings from environment variables (``WATCHER_`` prefix),
    an optional YAML file, and built-in defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="WATCHER_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    debug: bool = False
    version: str = "0.1.0"
    config_path: str = ""

    server: ServerConfig = Field(default_factory=ServerConfig)
    node: NodeConfig = Field(default_factory=NodeConfig)
    notify: NotifyConfig = Field(default_factory=NotifyConfig)
    watch: WatchConfig = Field(default_factory=WatchConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)

    @model_validator(mode="before")
    @classmethod
    def _merge_yaml(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Merge YAML config file contents under the env var overrides."""
        config_path = values.get("config_path", "")
        if not config_path:
            return values
        yaml_data = _load_yaml(config_path)
        # YAML values serve as defaults; env vars (already in *values*) win.
        for key, val in yaml_data.items():
            if key not in values or values[key] is None:
                values[key] = val
            elif isinstance(val, dict) and isinstance(values.get(key), dict):
                values[key] = {**val, **values[key]}
        return values

    @classmethod
    def from_yaml(cls, path: str | Path) -> Self:
        """Construct ``AppConfig`` loading defaults from a YAML file.

        Environment variables still override YAML values.
        """
        return cls(config_path=str(path))
