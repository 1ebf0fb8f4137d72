"""P/L recalculation command for tradeledger CLI.

Recomputes every position's P/L from the instrument registry and posts
the differences on closed positions to account real balances.
"""

from decimal import Decimal
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from tradeledger.cli.common import (
    get_config,
    get_data_store,
    get_quote_provider,
    get_recalc_settings,
    get_registry,
)

console = Console()


def _pnl_text(value: Optional[Decimal]) -> str:
    if value is None:
        return "[dim]uncomputed[/dim]"
    return f"${value:,.2f}"


def _diff_text(value: Decimal) -> str:
    color = "green" if value >= 0 else "red"
    sign = "+" if value >= 0 else "-"
    return f"[{color}]{sign}${abs(value):,.2f}[/{color}]"


def render_report(report, title: str) -> None:
    """Print a recalculation report.

    Args:
        report: RecalcReport to print.
        title: Heading, e.g. 'P/L RECALCULATION'.
    """
    mode = "EXECUTION MODE" if report.executed else "DRY RUN MODE"
    console.print(Panel(f"[bold]{title} - {mode}[/bold]", border_style="cyan"))

    if report.corrections:
        table = Table(title="Position Corrections", show_header=True, header_style="bold cyan")
        table.add_column("Status", style="bold")
        table.add_column("Symbol")
        table.add_column("Position", style="dim", max_width=12)
        table.add_column("Units", justify="right")
        table.add_column("Mult.", justify="right")
        table.add_column("Exit Price", justify="right")
        table.add_column("Old P/L", justify="right")
        table.add_column("New P/L", justify="right")
        table.add_column("Difference", justify="right")

        for c in report.corrections:
            symbol = c.new_symbol if not c.symbol_changed else f"{c.old_symbol} → {c.new_symbol}"
            multiplier = f"{c.contract_multiplier.normalize():f}"
            if c.multiplier_changed:
                multiplier = f"[yellow]{c.stored_multiplier.normalize():f} → {multiplier}[/yellow]"
            table.add_row(
                c.status.upper(),
                symbol,
                c.position_id[:12],
                f"{c.units.normalize():f}",
                multiplier,
                f"{c.exit_price.normalize():f}",
                _pnl_text(c.old_pnl),
                _pnl_text(c.new_pnl),
                _diff_text(c.difference),
            )
        console.print(table)

    if report.skipped:
        table = Table(title="Skipped Positions", show_header=True, header_style="bold yellow")
        table.add_column("Position", style="dim")
        table.add_column("Symbol")
        table.add_column("Reason")
        for s in report.skipped:
            table.add_row(s.position_id, s.symbol, s.reason)
        console.print(table)

    if report.adjustments:
        table = Table(title="Balance Adjustments", show_header=True, header_style="bold cyan")
        table.add_column("Account", style="bold")
        table.add_column("Adjustment", justify="right")
        table.add_column("Old Real", justify="right")
        table.add_column("New Real", justify="right")
        table.add_column("Status")
        for a in report.adjustments:
            status_color = {"applied": "green", "planned": "cyan", "failed": "red"}[a.status]
            status = f"[{status_color}]{a.status}[/{status_color}]"
            if a.error:
                status += f" [dim]({a.error})[/dim]"
            table.add_row(
                a.account_id,
                _diff_text(a.delta),
                _pnl_text(a.old_real_balance) if a.old_real_balance is not None else "-",
                _pnl_text(a.new_real_balance) if a.new_real_balance is not None else "-",
                status,
            )
        console.print(table)

    total = report.total_balance_adjustment
    console.print(Panel(
        f"Total Positions:            {report.total_positions}\n"
        f"Positions with Corrections: {len(report.corrections)}\n"
        f"  - Open:   {len(report.open_corrections)}\n"
        f"  - Closed: {len(report.closed_corrections)}\n"
        f"Already Correct:            {report.unchanged}\n"
        f"Skipped:                    {len(report.skipped)}\n"
        f"Total Balance Adjustment:   {_diff_text(total)}",
        title="[bold]Summary[/bold]",
        border_style="cyan",
    ))

    if not report.corrections:
        console.print("[green]All positions already have correct P/L. Nothing to do.[/green]")
    elif report.executed:
        failed = len(report.failed_adjustments)
        if failed:
            console.print(f"[yellow]Completed with {failed} failed account adjustment(s).[/yellow]")
        else:
            console.print("[green]Corrections applied successfully.[/green]")
    else:
        console.print("[dim]This was a DRY RUN. No changes were made to the database.[/dim]")
        console.print("[dim]Run again with --execute to apply the corrections.[/dim]")


@click.command("recalc-pnl")
@click.option(
    "--execute",
    is_flag=True,
    default=False,
    help="Write corrections. Without this flag nothing is written.",
)
@click.option(
    "--live-quotes/--no-live-quotes",
    default=None,
    help="Value open positions at live quotes instead of stored prices.",
)
@click.pass_context
def recalc_pnl(ctx: click.Context, execute: bool, live_quotes: Optional[bool]) -> None:
    """Recalculate position P/L and correct account balances.

    Open positions get their unrealized P/L refreshed. Closed positions
    get their realized P/L corrected, and the difference is posted to
    the owning account's real balance with a profit/loss transaction.

    \b
    Examples:
      tradeledger recalc-pnl                    # Dry run
      tradeledger recalc-pnl --execute          # Apply corrections
      tradeledger recalc-pnl --no-live-quotes   # Use stored current prices
    """
    from tradeledger.config import get_live_quotes
    from tradeledger.ledger import PnlRecalculator

    threshold, workers = get_recalc_settings(ctx)
    if live_quotes is None:
        live_quotes = get_live_quotes(get_config(ctx))

    store = get_data_store(ctx)
    registry = get_registry(ctx)
    quotes = get_quote_provider(ctx, store) if live_quotes else None

    recalculator = PnlRecalculator(
        store,
        registry,
        quotes=quotes,
        threshold=threshold,
        max_workers=workers,
        label="P/L recalculation",
    )
    try:
        report = recalculator.run(execute=execute)
    finally:
        if quotes is not None:
            quotes.close()
    render_report(report, "P/L RECALCULATION")
