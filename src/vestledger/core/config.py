"""
vestledger Configuration

Supports testnet and mainnet with separate configurations. All values come
from VESTLEDGER_* environment variables with safe testnet defaults.
"""

from __future__ import annotations

import logging
import os
from enum import Enum

from .vesting_exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class NetworkType(Enum):
    TESTNET = "testnet"
    MAINNET = "mainnet"


def _get_int_env(env_var: str, default: int, minimum: int | None = None) -> int:
    """Read an integer setting, rejecting malformed or out-of-range values."""
    raw = os.getenv(env_var, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(
            f"{env_var} must be an integer, got {raw!r}",
            details={"env_var": env_var},
        ) from exc
    if minimum is not None and value < minimum:
        raise ConfigurationError(
            f"{env_var} must be >= {minimum}, got {value}",
            details={"env_var": env_var},
        )
    return value


def _get_bool_env(env_var: str, default: bool) -> bool:
    raw = os.getenv(env_var, "").strip().lower()
    if not raw:
        return default
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off"):
        return False
    raise ConfigurationError(
        f"{env_var} must be a boolean flag, got {raw!r}",
        details={"env_var": env_var},
    )


# Get network type from environment variable
NETWORK = os.getenv("VESTLEDGER_NETWORK", "testnet")  # Default to testnet for safety

LOG_LEVEL = os.getenv("VESTLEDGER_LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("VESTLEDGER_LOG_FILE", "").strip()
LOG_DIR = os.getenv("VESTLEDGER_LOG_DIR", "").strip()
ENVIRONMENT = os.getenv("VESTLEDGER_ENVIRONMENT", "development")
METRICS_ENABLED = _get_bool_env("VESTLEDGER_METRICS_ENABLED", False)
DEFAULT_SLICE_PERIOD_SECONDS = _get_int_env("VESTLEDGER_DEFAULT_SLICE_SECONDS", 86400, minimum=1)
TOKEN_NAME = os.getenv("VESTLEDGER_TOKEN_NAME", "Vesting Token")
TOKEN_SYMBOL = os.getenv("VESTLEDGER_TOKEN_SYMBOL", "VEST")
TOKEN_DECIMALS = _get_int_env("VESTLEDGER_TOKEN_DECIMALS", 18, minimum=0)

if LOG_LEVEL not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
    raise ConfigurationError(
        f"VESTLEDGER_LOG_LEVEL must be a standard logging level, got {LOG_LEVEL!r}",
        details={"env_var": "VESTLEDGER_LOG_LEVEL"},
    )
if TOKEN_DECIMALS > 18:
    raise ConfigurationError("VESTLEDGER_TOKEN_DECIMALS must be <= 18")


class TestnetConfig:
    """Testnet Configuration (local experimentation, disposable state)"""

    NETWORK_TYPE = NetworkType.TESTNET

    # Files (separate from mainnet)
    STATE_FILE = os.getenv(
        "VESTLEDGER_STATE_FILE", os.path.join(os.getcwd(), "data_testnet", "vesting_state.json")
    )

    # Token defaults for `vestledger init`
    TOKEN_NAME = TOKEN_NAME
    TOKEN_SYMBOL = TOKEN_SYMBOL
    TOKEN_DECIMALS = TOKEN_DECIMALS
    INITIAL_SUPPLY = _get_int_env("VESTLEDGER_INITIAL_SUPPLY", 1_000_000 * 10**TOKEN_DECIMALS, minimum=0)

    DEFAULT_SLICE_PERIOD_SECONDS = DEFAULT_SLICE_PERIOD_SECONDS

    LOG_LEVEL = LOG_LEVEL
    LOG_FILE = LOG_FILE
    LOG_DIR = LOG_DIR
    ENVIRONMENT = ENVIRONMENT
    METRICS_ENABLED = METRICS_ENABLED

    # Fast reset (testnet only)
    ALLOW_STATE_RESET = True


class MainnetConfig:
    """Mainnet Configuration (production ledger)"""

    NETWORK_TYPE = NetworkType.MAINNET

    STATE_FILE = os.getenv(
        "VESTLEDGER_STATE_FILE", os.path.join(os.getcwd(), "data", "vesting_state.json")
    )

    TOKEN_NAME = TOKEN_NAME
    TOKEN_SYMBOL = TOKEN_SYMBOL
    TOKEN_DECIMALS = TOKEN_DECIMALS
    INITIAL_SUPPLY = _get_int_env("VESTLEDGER_INITIAL_SUPPLY", 0, minimum=0)

    DEFAULT_SLICE_PERIOD_SECONDS = DEFAULT_SLICE_PERIOD_SECONDS

    LOG_LEVEL = LOG_LEVEL
    LOG_FILE = LOG_FILE
    LOG_DIR = LOG_DIR
    ENVIRONMENT = "production"
    METRICS_ENABLED = METRICS_ENABLED

    # Never overwrite an existing mainnet ledger
    ALLOW_STATE_RESET = False


def select_config(network: str) -> type:
    """Return the configuration class for a network name."""
    normalized = (network or "").strip().lower()
    if normalized == NetworkType.MAINNET.value:
        return MainnetConfig
    if normalized == NetworkType.TESTNET.value:
        return TestnetConfig
    logger.error(
        "Unknown network configuration requested",
        extra={"event": "config.unknown_network", "network": network},
    )
    raise ConfigurationError(
        f"Unknown network {network!r}; expected 'testnet' or 'mainnet'",
        details={"env_var": "VESTLEDGER_NETWORK"},
    )


# Select config based on network
Config = select_config(NETWORK)

# Export config
__all__ = [
    "Config",
    "NetworkType",
    "TestnetConfig",
    "MainnetConfig",
    "select_config",
    "DEFAULT_SLICE_PERIOD_SECONDS",
]
