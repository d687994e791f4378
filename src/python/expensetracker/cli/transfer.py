"""Transfer CLI commands."""

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
from expensetracker.models import Transfer


def _format_transfer(record: Transfer) -> str:
    comment = record.comment or ""
    destination_leg = ""
    if record.destination_amount is not None:
        destination_leg = f" ({record.destination_amount} {record.destination_currency})"
    return (
        f"{record.id}\t{date_key(record.date)}\t{record.amount}\t{record.currency}"
        f"\t{record.source_account} -> {record.destination_account}{destination_leg}\t{comment}"
    )


@click.group()
def transfer() -> None:
    """Transfer commands."""


@transfer.command("add")
@click.option("--from", "source_account", required=True, help="Source account name.")
@click.option("--to", "destination_account", required=True, help="Destination account name.")
@click.option("--amount", "amount_value", required=True, help="Transfer amount.")
@click.option("--currency", default=None, help="Currency code (defaults to the source account currency).")
@click.option("--destination-amount", default=None, help="Amount received for cross-currency transfers.")
@click.option("--destination-currency", default=None, help="Currency of the destination amount.")
@click.option("--date", "date_value", default=None, help="Transfer date in YYYY-MM-DD (defaults to now).")
@click.option("--comment", default=None, help="Comment for the transfer.")
@click.pass_context
def add_transfer(
    ctx: click.Context,
    source_account: str,
    destination_account: str,
    amount_value: str,
    currency: str | None,
    destination_amount: str | None,
    destination_currency: str | None,
    date_value: str | None,
    comment: str | None,
) -> None:
    """Add a transfer between two accounts."""
    amount = parse_decimal(amount_value, "--amount")
    to_amount = parse_decimal(destination_amount, "--destination-amount")
    date = parse_date(date_value, "--date")
    if (to_amount is None) != (destination_currency is None):
        raise click.UsageError(
            "Transfer add: Provide --destination-amount and --destination-currency together."
        )
    with get_client(ctx) as client:
        try:
            if currency is None:
                currency = client.get_account(source_account).currency
            values = dict(
                source_account=source_account,
                destination_account=destination_account,
                amount=amount,
                currency=currency,
                comment=comment,
                destination_amount=to_amount,
                destination_currency=destination_currency,
            )
            if date is not None:
                values["date"] = date
            record = run(client.add_transfer(Transfer(**values)))
        except NotFoundError as exc:
            raise click.ClickException(str(exc))
        except ValueError as exc:
            raise click.UsageError(str(exc))
    click.echo(f"Added transfer {record.id}")


@transfer.command("list")
@click.option("--start-date", default=None, help="Start date in YYYY-MM-DD.")
@click.option("--end-date", default=None, help="End date in YYYY-MM-DD.")
@click.pass_context
def list_transfers(ctx: click.Context, start_date: str | None, end_date: str | None) -> None:
    """List transfers."""
    start = parse_date(start_date, "--start-date")
    end = parse_date(end_date, "--end-date")
    with get_client(ctx) as client:
        records = client.list_transfers(start_date=start, end_date=end)
    for record in records:
        click.echo(_format_transfer(record))


@transfer.command("update")
@click.argument("transfer_id", type=int)
@click.option("--from", "source_account", default=None, help="Updated source account name.")
@click.option("--to", "destination_account", default=None, help="Updated destination account name.")
@click.option("--amount", "amount_value", default=None, help="Updated amount.")
@click.option("--currency", default=None, help="Updated currency code.")
@click.option("--date", "date_value", default=None, help="Updated date in YYYY-MM-DD.")
@click.option("--comment", default=None, help="Updated comment.")
@click.pass_context
def update_transfer(
    ctx: click.Context,
    transfer_id: int,
    source_account: str | None,
    destination_account: str | None,
    amount_value: str | None,
    currency: str | None,
    date_value: str | None,
    comment: str | None,
) -> None:
    """Update a transfer; both legs follow the change."""
    changes: dict[str, object] = {
        "source_account": source_account,
        "destination_account": destination_account,
        "amount": parse_decimal(amount_value, "--amount"),
        "currency": currency,
        "date": parse_date(date_value, "--date"),
        "comment": comment,
    }
    changes = {key: value for key, value in changes.items() if value is not None}
    if not changes:
        raise click.UsageError("Provide --from, --to, --amount, --currency, --date, or --comment.")
    with get_client(ctx) as client:
        try:
            current = client.get_transfer(transfer_id)
            record = run(
                client.update_transfer(replace(current, **with_snapshot_reset(changes)))
            )
        except NotFoundError as exc:
            raise click.ClickException(str(exc))
        except ValueError as exc:
            raise click.UsageError(str(exc))
    click.echo(f"Updated transfer {record.id}")


@transfer.command("delete")
@click.argument("transfer_id", type=int)
@click.option("--yes", is_flag=True, help="Skip delete confirmation.")
@click.pass_context
def delete_transfer(ctx: click.Context, transfer_id: int, yes: bool) -> None:
    """Delete a transfer and reverse its legs."""
    if not yes:
        confirm = click.confirm("Delete transfer?", default=False)
        if not confirm:
            click.echo("Delete cancelled.")
            return
    with get_client(ctx) as client:
        try:
            run(client.delete_transfer(transfer_id))
        except NotFoundError as exc:
            raise click.ClickException(str(exc))
    click.echo(f"Deleted transfer {transfer_id}")
