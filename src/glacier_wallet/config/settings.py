"""Application settings loaded from environment variables and config files.

Configuration is loaded from (highest priority first):
1. Environment variables (prefix: ``GLACIER_``, nested via ``__``)
2. YAML config file (``GLACIER_CONFIG_PATH`` env var or :meth:`AppConfig.from_yaml`)
3. Defaults defined here
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Self

import yaml
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from glacier_wallet.btc.network import Network, NetworkParams, get_network_params

# ---------------------------------------------------------------------------
# Sub-config models
# ---------------------------------------------------------------------------


class ServerConfig(BaseSettings):
    """HTTP server settings."""

    model_config = SettingsConfigDict(
        env_prefix="GLACIER_SERVER__",
        case_sensitive=False,
    )

    host: str = "0.0.0.0"  # noqa: S104
    port: int = 3000


class ChainConfig(BaseSettings):
    """Esplora (mempool.space) chain-data API settings."""

    model_config = SettingsConfigDict(
        env_prefix="GLACIER_CHAIN__",
        case_sensitive=False,
    )

    base_url: str = Field(
        default="",
        description="Esplora REST base URL; empty selects the network default",
    )
    timeout: float = 30.0


class LockConfig(BaseSettings):
    """Time-lock policy."""

    model_config = SettingsConfigDict(
        env_prefix="GLACIER_LOCK__",
        case_sensitive=False,
    )

    fee_sats: int = Field(default=1000, ge=0, description="Flat fee per drafted transaction")
    lock_offset: int = Field(
        default=6, ge=2, le=6, description="Blocks ahead of the tip a new lock matures"
    )
    default_scan_count: int = Field(default=10, ge=1)
    max_scan_count: int = Field(default=100, ge=1)


class MetricsConfig(BaseSettings):
    """Prometheus metrics settings."""

    model_config = SettingsConfigDict(
        env_prefix="GLACIER_METRICS__",
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
    data = yaml.safe_load(p.read_text(encoding="utf-8"))
    return data if isinstance(data, dict) else {}


class AppConfig(BaseSettings):
    """Top-level application configuration.

    Loads settings from environment variables (``GLACIER_`` prefix),
    an optional YAML file, and built-in defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="GLACIER_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    debug: bool = False
    network: Network = Network.TESTNET4
    mnemonic: str = ""
    passphrase: str = ""
    config_path: str = ""

    server: ServerConfig = Field(default_factory=ServerConfig)
    chain: ChainConfig = Field(default_factory=ChainConfig)
    lock: LockConfig = Field(default_factory=LockConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)

    @model_validator(mode="before")
    @classmethod
    def _merge_yaml(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Merge YAML config file contents under the env var overrides."""
        config_path = values.get("config_path", "")
        if not config_path:
            return values
        for key, val in _load_yaml(config_path).items():
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

    @property
    def network_params(self) -> NetworkParams:
        """Encoding constants for the configured network."""
        return get_network_params(self.network)

    @property
    def explorer_url(self) -> str:
        """Chain-data base URL, falling back to the network default."""
        return self.chain.base_url or self.network_params.explorer_url
