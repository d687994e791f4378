"""Account CLI commands."""

from __future__ import annotations

import click

from expensetracker.cli.common import get_client, parse_decimal


@click.group()
def account() -> None:
    """Account commands."""


@account.command("add")
@click.option("--name", required=True, help="Account name.")
@click.option("--currency", required=True, help="Account currency code.")
@click.option("--balance", "balance_value", default="0", help="Opening balance.")
@click.pass_context
def add_account(ctx: click.Context, name: str, currency: str, balance_value: str) -> None:
    """Add an account."""
    balance = parse_decimal(balance_value, "--balance")
    with get_client(ctx) as client:
        try:
            record = client.add_account(name, currency, balance)
        except ValueError as exc:
            raise click.ClickException(str(exc))
    click.echo(f"Added account {record.name}")


@account.command("list")
@click.option("--currency", default=None, help="Filter by currency code (e.g., USD, SGD).")
@click.pass_context
def list_accounts(ctx: click.Context, currency: str | None) -> None:
    """List all accounts with current balances."""
    with get_client(ctx) as client:
        accounts = client.list_accounts()
    if currency:
        accounts = [record for record in accounts if record.currency == currency.upper()]
    if not accounts:
        click.echo("No accounts found.")
        return
    click.echo(f"{'Name':<30} {'Balance':>15} {'Currency':<10}")
    click.echo("-" * 57)
    for record in accounts:
        click.echo(f"{record.name:<30} {record.balance:>15} {record.currency:<10}")
