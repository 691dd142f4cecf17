"""Application settings loaded from environment variables and config files.

Configuration is loaded from (highest priority first):
1. Environment variables (prefix: ``SAFEWALLET_``, nested via ``__``)
2. YAML config file (``config_path`` or ``SAFEWALLET_CONFIG_PATH`` env var)
3. Defaults defined here
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Self

import yaml
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Ledger limits on inputs per transaction and memo bytes
MAX_UTXO_COUNT = 256
MAX_EXTRA_SIZE = 512

# ---------------------------------------------------------------------------
# Sub-config models
# ---------------------------------------------------------------------------


class SequencerConfig(BaseSettings):
    """Remote sequencer API settings."""

    model_config = SettingsConfigDict(
        env_prefix="SAFEWALLET_SEQUENCER__",
        case_sensitive=False,
    )

    url: str = "https://api.mixin.one"
    token: str = Field(default="", description="Bearer token of an established session")
    user_id: str = Field(default="", description="User id of the session owner")
    timeout: float = 30.0


class UTXOConfig(BaseSettings):
    """Paging sizes and protocol limits for output handling.

    ``max_utxo_count`` and ``max_extra_size`` are imposed by the ledger;
    raising them produces transactions the sequencer rejects.
    """

    model_config = SettingsConfigDict(
        env_prefix="SAFEWALLET_UTXO__",
        case_sensitive=False,
    )

    balance_page_size: int = Field(default=500, ge=1, le=500)
    selection_page_size: int = Field(default=100, ge=1, le=500)
    max_utxo_count: int = Field(default=MAX_UTXO_COUNT, ge=1, le=MAX_UTXO_COUNT)
    max_extra_size: int = Field(default=MAX_EXTRA_SIZE, ge=0, le=MAX_EXTRA_SIZE)


class MetricsConfig(BaseSettings):
    """Prometheus metrics settings."""

    model_config = SettingsConfigDict(
        env_prefix="SAFEWALLET_METRICS__",
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

    Loads settings from environment variables (``SAFEWALLET_`` prefix),
    an optional YAML file, and built-in defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="SAFEWALLET_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    debug: bool = False
    version: str = "0.1.0"
    config_path: str = ""

    sequencer: SequencerConfig = Field(default_factory=SequencerConfig)
    utxo: UTXOConfig = Field(default_factory=UTXOConfig)
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
