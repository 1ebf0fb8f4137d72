"""Symbol format fix command for tradeledger CLI.

Finds positions stored under misspelled symbols (e.g. EURUSD instead of
EUR/USD), revalues them with the correct instrument config and renames
them.
"""

from contextlib import closing

import click
from rich.console import Console

from tradeledger.cli.common import (
    get_data_store,
    get_quote_provider,
    get_recalc_settings,
    get_registry,
)
from tradeledger.cli.recalc import render_report

console = Console()


@click.command("fix-symbols")
@click.option(
    "--execute",
    is_flag=True,
    default=False,
    help="Write fixes. Without this flag nothing is written.",
)
@click.pass_context
def fix_symbols(ctx: click.Context, execute: bool) -> None:
    """Rename misspelled position symbols and correct their P/L.

    Open positions are revalued at a live quote; positions whose quote
    cannot be fetched are skipped for manual review. Closed positions
    are revalued at their close price and the P/L difference is posted
    to the account's real balance.

    \b
    Examples:
      tradeledger fix-symbols            # Dry run
      tradeledger fix-symbols --execute  # Apply fixes
    """
    from tradeledger.ledger import PnlRecalculator, stored_symbol_mappings

    threshold, workers = get_recalc_settings(ctx)
    store = get_data_store(ctx)
    registry = get_registry(ctx)
    mappings = stored_symbol_mappings(store.get_position_symbols(), registry)

    console.print(f"[dim]Found {len(mappings)} misspelled symbol(s)[/dim]")
    for raw, canonical in sorted(mappings.items()):
        console.print(f"[dim]  {raw} -> {canonical}[/dim]")

    quotes = get_quote_provider(ctx, store)
    recalculator = PnlRecalculator(
        store,
        registry,
        quotes=quotes,
        threshold=threshold,
        max_workers=workers,
        label="Symbol format fix",
    )
    with closing(quotes):
        report = recalculator.run(execute=execute, symbol_map=mappings)
    render_report(report, "SYMBOL FORMAT FIX")
