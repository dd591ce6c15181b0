"""Configuration management and environment variable utilities."""

import os
import tomllib
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from miner_stats.helpers.constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_PARALLEL_FETCHES,
    DEFAULT_TIMEOUT,
    MAX_RETRIES,
    RETRY_BASE_DELAY,
)
from miner_stats.helpers.errors import ConfigurationError


# Load environment variables from .env file
load_dotenv()

RPC_URL_ENV = "MINER_STATS_RPC_URL"


def get_optional_env(key: str, default: str | None = None) -> str | None:
    """Get an optional environment variable with a default value.

    Args:
        key: Environment variable name
        default: Default value if not set

    Returns:
        Environment variable value or default
    """
    return os.getenv(key, default)


class MinerKeyEntry(BaseModel):
    """One ``[[ufvks]]`` table: a miner label and its viewing key."""

    label: str = Field(..., min_length=1, description="Miner label shown in reports")
    key: str = Field(..., min_length=1, description="Unified full viewing key")


class MinerStatsConfig(BaseModel):
    """Validated contents of the TOML configuration file."""

    start_height: int = Field(..., ge=0, description="First height to scan")
    chain: Literal["main", "test", "regtest"] = Field(
        ..., description="Network the viewing keys and addresses belong to"
    )
    rpc_url: str = Field(..., min_length=1, description="Node JSON-RPC endpoint")
    ufvks: list[MinerKeyEntry] = Field(..., description="Miners in report order")
    cache_file: Path = Field(..., description="SQLite block cache path")
    output_file: Path = Field(..., description="JSON report path")
    batch_size: int = Field(default=DEFAULT_BATCH_SIZE, gt=0)
    parallel_fetches: int = Field(default=DEFAULT_PARALLEL_FETCHES, gt=0)
    max_retries: int = Field(default=MAX_RETRIES, gt=0)
    retry_base_delay: float = Field(default=RETRY_BASE_DELAY, ge=0)
    request_timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)

    @field_validator("ufvks")
    @classmethod
    def _check_miners(cls, value: list[MinerKeyEntry]) -> list[MinerKeyEntry]:
        if not value:
            msg = "config must contain at least one UFVK entry"
            raise ValueError(msg)
        labels = [entry.label for entry in value]
        duplicates = sorted({label for label in labels if labels.count(label) > 1})
        if duplicates:
            msg = f"duplicate miner labels: {', '.join(duplicates)}"
            raise ValueError(msg)
        return value


def load_config(path: Path | str) -> MinerStatsConfig:
    """Read and validate the TOML configuration file.

    ``MINER_STATS_RPC_URL`` (environment or ``.env``) overrides ``rpc_url``.
    Parent directories of the cache and output files are created.

    Args:
        path: Path to the TOML file

    Returns:
        Validated configuration

    Raises:
        ConfigurationError: If the file is missing or unreadable, is not
            valid TOML, or fails validation

    Example:
        ```python
        from miner_stats.helpers.config import load_config

        config = load_config("miner-stats-config.toml")
        print(config.start_height, [m.label for m in config.ufvks])
        ```
    """
    path = Path(path)
    try:
        raw = tomllib.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        msg = f"config file {path} not found"
        raise ConfigurationError(msg) from e
    except tomllib.TOMLDecodeError as e:
        msg = f"parsing config file {path}: {e}"
        raise ConfigurationError(msg) from e
    except (OSError, UnicodeDecodeError) as e:
        msg = f"reading config file {path}: {e}"
        raise ConfigurationError(msg) from e

    env_rpc_url = get_optional_env(RPC_URL_ENV)
    if env_rpc_url:
        raw["rpc_url"] = env_rpc_url

    try:
        config = MinerStatsConfig.model_validate(raw)
    except ValidationError as e:
        msg = f"invalid config file {path}: {e}"
        raise ConfigurationError(msg) from e

    for target in (config.cache_file, config.output_file):
        if target.parent != Path():
            target.parent.mkdir(parents=True, exist_ok=True)

    return config


__all__ = [
    "RPC_URL_ENV",
    "MinerKeyEntry",
    "MinerStatsConfig",
    "get_optional_env",
    "load_config",
]
