"""Account balance check command for tradeledger CLI."""

import click
from rich.console import Console
from rich.table import Table

from tradeledger.cli.common import get_data_store

console = Console()


@click.command("check-balances")
@click.pass_context
def check_balances(ctx: click.Context) -> None:
    """List accounts whose balance is not real + demo + bonus.

    Exits with status 1 when any account is out of balance.
    """
    store = get_data_store(ctx)
    accounts = store.get_accounts()
    broken = [a for a in accounts if not a.is_balanced]

    if not broken:
        console.print(f"[green]All {len(accounts)} accounts are balanced.[/green]")
        return

    table = Table(title="Unbalanced Accounts", show_header=True, header_style="bold red")
    table.add_column("Account", style="bold")
    table.add_column("Balance", justify="right")
    table.add_column("Real", justify="right")
    table.add_column("Demo", justify="right")
    table.add_column("Bonus", justify="right")
    table.add_column("Drift", justify="right")

    for account in broken:
        table.add_row(
            account.account_number,
            f"{account.balance:,.2f}",
            f"{account.real_balance:,.2f}",
            f"{account.demo_balance:,.2f}",
            f"{account.bonus_balance:,.2f}",
            f"[red]{account.balance - account.fund_total:,.8f}[/red]",
        )

    console.print(table)
    raise SystemExit(1)
