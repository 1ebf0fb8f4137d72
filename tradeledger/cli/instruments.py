"""Instrument lookup command for tradeledger CLI."""

import click
from rich.console import Console
from rich.table import Table

from tradeledger.cli.common import get_registry

console = Console()


@click.command("instrument")
@click.argument("symbol", required=False)
@click.option("--all", "show_all", is_flag=True, default=False, help="List every instrument.")
@click.pass_context
def instrument(ctx: click.Context, symbol: str | None, show_all: bool) -> None:
    """Show the contract parameters used for a symbol.

    Unknown symbols show the fallback config that P/L calculations
    would silently use for them.

    \b
    Examples:
      tradeledger instrument EUR/USD
      tradeledger instrument --all
    """
    registry = get_registry(ctx)

    if show_all or not symbol:
        configs = [registry.get_config(s) for s in registry.symbols()]
    else:
        configs = [registry.get_config(symbol)]

    table = Table(title="Instruments", show_header=True, header_style="bold cyan")
    table.add_column("Symbol", style="bold")
    table.add_column("Kind")
    table.add_column("Multiplier", justify="right")
    table.add_column("Lot Size", justify="right")
    table.add_column("Tick", justify="right")
    table.add_column("Qty Step", justify="right")
    table.add_column("Max Lev.", justify="right")

    for config in configs:
        table.add_row(
            config.symbol,
            config.kind,
            f"{config.contract_multiplier.normalize():f}",
            f"{config.lot_size.normalize():f}" if config.lot_size else "-",
            f"{config.tick_size.normalize():f}",
            f"{config.qty_step.normalize():f}",
            str(config.max_leverage),
        )

    console.print(table)

    if symbol and not show_all and symbol not in registry:
        console.print(
            f"[yellow]{symbol} is not in the registry; the fallback config above "
            f"would be used.[/yellow]"
        )
