"""Configuration loading for tradeledger.

Settings come from a TOML file (``~/.config/tradeledger/config.toml`` by
default). A few values can be overridden from the environment so that
secrets need not live in the file.

Example::

    [database]
    path = "/var/lib/crm/ledger.db"

    [recalc]
    materiality_threshold = "0.01"
    quote_workers = 4
    live_quotes = true

    [twelvedata]
    api_key = "..."
    timeout = 10

    [instruments."US30"]
    kind = "index"
    contract_multiplier = "5"
    tick_size = "1"
    qty_step = "1"
    max_leverage = 100
"""

import os
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Optional

import toml

from tradeledger.errors import ConfigError

CONFIG_DIR = Path.home() / ".config" / "tradeledger"
DEFAULT_CONFIG_PATH = CONFIG_DIR / "config.toml"
DEFAULT_DB_PATH = CONFIG_DIR / "tradeledger.db"


def load_config(config_path: Optional[Path] = None) -> dict:
    """Load the configuration file.

    Args:
        config_path: Path to the TOML file. Defaults to DEFAULT_CONFIG_PATH.

    Returns:
        Parsed configuration, or an empty dict if the file does not exist.

    Raises:
        ConfigError: If the file exists but cannot be parsed.
    """
    config_path = config_path or DEFAULT_CONFIG_PATH
    if not config_path.exists():
        return {}

    try:
        return toml.load(config_path)
    except (toml.TomlDecodeError, OSError) as e:
        raise ConfigError(f"Could not read config file {config_path}: {e}") from e


def get_db_path(config: dict) -> Path:
    """Database path: TRADELEDGER_DB, then [database] path, then the default."""
    env_path = os.environ.get("TRADELEDGER_DB")
    if env_path:
        return Path(env_path).expanduser()
    path = config.get("database", {}).get("path")
    return Path(path).expanduser() if path else DEFAULT_DB_PATH


def get_materiality_threshold(config: dict) -> Decimal:
    """Materiality threshold in account currency (default 0.01)."""
    raw = config.get("recalc", {}).get("materiality_threshold", "0.01")
    try:
        threshold = Decimal(str(raw))
    except InvalidOperation as e:
        raise ConfigError(f"Invalid materiality_threshold: {raw!r}") from e
    if threshold < 0:
        raise ConfigError(f"materiality_threshold must not be negative, got {threshold}")
    return threshold


def get_quote_workers(config: dict) -> int:
    """Maximum concurrent quote fetches (default 4)."""
    workers = config.get("recalc", {}).get("quote_workers", 4)
    if not isinstance(workers, int) or workers < 1:
        raise ConfigError(f"quote_workers must be a positive integer, got {workers!r}")
    return workers


def get_live_quotes(config: dict) -> bool:
    """Whether open positions are valued at live quotes by default."""
    return bool(config.get("recalc", {}).get("live_quotes", True))


def get_twelvedata_settings(config: dict) -> dict[str, Any]:
    """TwelveData settings with environment overrides applied.

    Returns:
        Dict with ``api_key`` (may be empty), ``base_url`` and ``timeout``.
    """
    section = config.get("twelvedata", {})
    return {
        "api_key": os.environ.get("TWELVEDATA_API_KEY") or section.get("api_key", ""),
        "base_url": os.environ.get("TWELVEDATA_REST_URL")
        or section.get("base_url", "https://api.twelvedata.com"),
        "timeout": float(section.get("timeout", 10.0)),
    }


def get_instrument_overrides(config: dict) -> dict[str, dict]:
    """Per-symbol instrument definitions from the [instruments] section."""
    return dict(config.get("instruments", {}))
