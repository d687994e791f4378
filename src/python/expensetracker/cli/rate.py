"""Exchange rate and reconciliation CLI commands."""

from __future__ import annotations

import click

from expensetracker.cli.common import format_rate, get_client, parse_date, parse_decimal, run
from expensetracker.dates import date_key, now_millis


@click.group()
def rate() -> None:
    """Exchange rate commands."""


@rate.command("get")
@click.argument("base")
@click.argument("quote")
@click.option("--date", "date_value", default=None, help="Rate date in YYYY-MM-DD (defaults to today).")
@click.option(
    "--historical",
    is_flag=True,
    help="Fall back to the nearest stored rate around the date.",
)
@click.pass_context
def get_rate(
    ctx: click.Context, base: str, quote: str, date_value: str | None, historical: bool
) -> None:
    """Resolve 1 BASE in QUOTE."""
    date = parse_date(date_value, "--date") or now_millis()
    with get_client(ctx) as client:
        try:
            if historical:
                result = run(client.get_historical_rate(base, quote, date))
            else:
                result = run(client.get_rate(base, quote, date))
        except ValueError as exc:
            raise click.UsageError(str(exc))
    click.echo(f"{base.upper()}->{quote.upper()}\t{date_key(date)}\t{format_rate(result)}")


@rate.command("set")
@click.argument("base")
@click.argument("quote")
@click.argument("rate_value")
@click.option("--date", "date_value", default=None, help="Rate date in YYYY-MM-DD (defaults to today).")
@click.pass_context
def set_rate(
    ctx: click.Context, base: str, quote: str, rate_value: str, date_value: str | None
) -> None:
    """Store 1 BASE = RATE_VALUE QUOTE."""
    value = parse_decimal(rate_value, "RATE_VALUE")
    date = parse_date(date_value, "--date") or now_millis()
    with get_client(ctx) as client:
        try:
            record = run(client.set_rate(base, quote, date, value))
        except ValueError as exc:
            raise click.UsageError(str(exc))
    click.echo(
        f"Stored {record.base_currency}->{record.quote_currency} "
        f"{record.rate} for {date_key(record.date)}"
    )


@rate.command("override")
@click.argument("currency")
@click.argument("rate_value")
@click.option("--date", "date_value", default=None, help="Rate date in YYYY-MM-DD (defaults to today).")
@click.pass_context
def override_rate(
    ctx: click.Context, currency: str, rate_value: str, date_value: str | None
) -> None:
    """Store 1 CURRENCY = RATE_VALUE in the default currency."""
    value = parse_decimal(rate_value, "RATE_VALUE")
    date = parse_date(date_value, "--date")
    with get_client(ctx) as client:
        try:
            record = run(client.set_rate_override(currency, value, date))
        except ValueError as exc:
            raise click.UsageError(str(exc))
    click.echo(
        f"Stored {record.base_currency}->{record.quote_currency} "
        f"{record.rate} for {date_key(record.date)}"
    )


@rate.command("list")
@click.option("--base", default=None, help="Filter by base currency code.")
@click.pass_context
def list_rates(ctx: click.Context, base: str | None) -> None:
    """List stored rates, newest first."""
    with get_client(ctx) as client:
        records = client.list_rates(base)
    if not records:
        click.echo("No rates stored.")
        return
    for record in records:
        click.echo(
            f"{date_key(record.date)}\t{record.base_currency}\t{record.quote_currency}\t{record.rate}"
        )


@click.command("reconcile")
@click.option("--default-currency", default=None, help="Currency for conversion snapshots.")
@click.pass_context
def reconcile(ctx: click.Context, default_currency: str | None) -> None:
    """Fill missing conversion snapshots on stored entries and transfers."""
    with get_client(ctx) as client:
        try:
            missing = run(client.reconcile_snapshots(default_currency))
        except ValueError as exc:
            raise click.UsageError(str(exc))
    if missing:
        click.echo(f"Reconciliation finished: {missing} records still need rates.")
    else:
        click.echo("Reconciliation finished: all records have conversion snapshots.")
