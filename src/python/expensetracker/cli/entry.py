"""Expense and income entry CLI commands."""

from __future__ import annotations

from dataclasses import replace

import click

from expensetracker.cli.common import (
    get_client,
    parse_date,
    parse_decimal,
    run,
    with_snapshot_reset,
)
from expensetracker.dates import date_key
from expensetracker.exceptions import NotFoundError
from expensetracker.models import EntryType, LedgerEntry, account_key

ENTRY_TYPE_CHOICE = click.Choice([item.value for item in EntryType], case_sensitive=False)


def _entry_type(value: str) -> EntryType:
    return EntryType(value.capitalize())


def _format_entry(record: LedgerEntry) -> str:
    comment = record.comment or ""
    return (
        f"{record.id}\t{date_key(record.date)}\t{record.entry_type.value}\t{record.amount}"
        f"\t{record.currency}\t{record.account}\t{record.category}\t{comment}"
    )


@click.group()
def entry() -> None:
    """Expense and income commands."""


@entry.command("add")
@click.option("--account", required=True, help="Account name.")
@click.option("--amount", "amount_value", required=True, help="Entry amount.")
@click.option("--category", required=True, help="Entry category.")
@click.option("--type", "type_value", type=ENTRY_TYPE_CHOICE, default="Expense", help="Expense or Income.")
@click.option("--currency", default=None, help="Currency code (defaults to the account currency).")
@click.option("--date", "date_value", default=None, help="Entry date in YYYY-MM-DD (defaults to now).")
@click.option("--comment", default=None, help="Comment for the entry.")
@click.pass_context
def add_entry(
    ctx: click.Context,
    account: str,
    amount_value: str,
    category: str,
    type_value: str,
    currency: str | None,
    date_value: str | None,
    comment: str | None,
) -> None:
    """Add an expense or income entry."""
    amount = parse_decimal(amount_value, "--amount")
    date = parse_date(date_value, "--date")
    with get_client(ctx) as client:
        try:
            if currency is None:
                currency = client.get_account(account).currency
            values = dict(
                account=account,
                amount=amount,
                currency=currency,
                category=category,
                entry_type=_entry_type(type_value),
                comment=comment,
            )
            if date is not None:
                values["date"] = date
            record = run(client.add_entry(LedgerEntry(**values)))
        except NotFoundError as exc:
            raise click.ClickException(str(exc))
        except ValueError as exc:
            raise click.UsageError(str(exc))
    click.echo(f"Added {record.entry_type.value.lower()} {record.id}")


@entry.command("list")
@click.option("--start-date", default=None, help="Start date in YYYY-MM-DD.")
@click.option("--end-date", default=None, help="End date in YYYY-MM-DD.")
@click.option("--account", default=None, help="Filter by account name.")
@click.pass_context
def list_entries(
    ctx: click.Context,
    start_date: str | None,
    end_date: str | None,
    account: str | None,
) -> None:
    """List entries."""
    start = parse_date(start_date, "--start-date")
    end = parse_date(end_date, "--end-date")
    with get_client(ctx) as client:
        records = client.list_entries(start_date=start, end_date=end)
    if account:
        records = [record for record in records if account_key(record.account) == account_key(account)]
    for record in records:
        click.echo(_format_entry(record))


@entry.command("update")
@click.argument("entry_id", type=int)
@click.option("--account", default=None, help="Updated account name.")
@click.option("--amount", "amount_value", default=None, help="Updated amount.")
@click.option("--category", default=None, help="Updated category.")
@click.option("--type", "type_value", type=ENTRY_TYPE_CHOICE, default=None, help="Updated type.")
@click.option("--currency", default=None, help="Updated currency code.")
@click.option("--date", "date_value", default=None, help="Updated date in YYYY-MM-DD.")
@click.option("--comment", default=None, help="Updated comment.")
@click.pass_context
def update_entry(
    ctx: click.Context,
    entry_id: int,
    account: str | None,
    amount_value: str | None,
    category: str | None,
    type_value: str | None,
    currency: str | None,
    date_value: str | None,
    comment: str | None,
) -> None:
    """Update an entry; balances follow the change."""
    changes: dict[str, object] = {
        "account": account,
        "amount": parse_decimal(amount_value, "--amount"),
        "category": category,
        "entry_type": _entry_type(type_value) if type_value else None,
        "currency": currency,
        "date": parse_date(date_value, "--date"),
        "comment": comment,
    }
    changes = {key: value for key, value in changes.items() if value is not None}
    if not changes:
        raise click.UsageError(
            "Provide --account, --amount, --category, --type, --currency, --date, or --comment."
        )
    with get_client(ctx) as client:
        try:
            current = client.get_entry(entry_id)
            record = run(client.update_entry(replace(current, **with_snapshot_reset(changes))))
        except NotFoundError as exc:
            raise click.ClickException(str(exc))
        except ValueError as exc:
            raise click.UsageError(str(exc))
    click.echo(f"Updated entry {record.id}")


@entry.command("delete")
@click.argument("entry_id", type=int)
@click.option("--yes", is_flag=True, help="Skip delete confirmation.")
@click.pass_context
def delete_entry(ctx: click.Context, entry_id: int, yes: bool) -> None:
    """Delete an entry and revert its balance effect."""
    if not yes:
        confirm = click.confirm("Delete entry?", default=False)
        if not confirm:
            click.echo("Delete cancelled.")
            return
    with get_client(ctx) as client:
        try:
            run(client.delete_entry(entry_id))
        except NotFoundError as exc:
            raise click.ClickException(str(exc))
    click.echo(f"Deleted entry {entry_id}")
