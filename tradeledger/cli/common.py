"""Helpers shared by tradeledger commands."""

import click
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel

from tradeledger.errors import ConfigError

console = Console()


def fail(message: str) -> None:
    """Print an error panel and exit with status 1."""
    console.print(Panel(
        f"[red]{message}[/red]",
        title="[bold red]Error[/bold red]",
        border_style="red",
    ))
    raise SystemExit(1)


def get_config(ctx: click.Context) -> dict:
    """Load the config file named on the command line (or the default)."""
    from tradeledger.config import load_config

    obj = ctx.find_root().obj or {}
    if "config" not in obj:
        try:
            obj["config"] = load_config(obj.get("config_path"))
        except ConfigError as e:
            fail(str(e))
    return obj["config"]


def get_data_store(ctx: click.Context):
    """Get the data store for the configured database.

    The database must already exist; a mistyped path is an error rather
    than a new empty database.
    """
    from tradeledger.config import get_db_path
    from tradeledger.db.store import DataStore

    obj = ctx.find_root().obj or {}
    db_path = obj.get("db_path") or get_db_path(get_config(ctx))
    try:
        return DataStore(db_path, create=False)
    except FileNotFoundError as e:
        fail(str(e))


def get_registry(ctx: click.Context):
    """Build the instrument registry, merging config-file instruments."""
    from tradeledger.config import get_instrument_overrides
    from tradeledger.instruments import default_registry

    try:
        return default_registry(get_instrument_overrides(get_config(ctx)))
    except ValidationError as e:
        fail(f"Invalid [instruments] configuration:\n{e}")


def get_quote_provider(ctx: click.Context, data_store):
    """Build the live quote source.

    The market_data table is tried first, then TwelveData when an API key
    is configured.
    """
    from tradeledger.config import get_twelvedata_settings
    from tradeledger.quotes import FallbackQuoteProvider, MarketDataProvider, TwelveDataProvider

    providers = [MarketDataProvider(data_store)]
    settings = get_twelvedata_settings(get_config(ctx))
    if settings["api_key"]:
        providers.append(TwelveDataProvider(
            api_key=settings["api_key"],
            base_url=settings["base_url"],
            timeout_s=settings["timeout"],
        ))
    return FallbackQuoteProvider(providers)


def get_recalc_settings(ctx: click.Context) -> tuple:
    """Materiality threshold and quote worker count from the config."""
    from tradeledger.config import get_materiality_threshold, get_quote_workers

    config = get_config(ctx)
    try:
        return get_materiality_threshold(config), get_quote_workers(config)
    except ConfigError as e:
        fail(str(e))
