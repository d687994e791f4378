"""Expense tracker CLI entry point."""

from __future__ import annotations

from pathlib import Path

import click

from expensetracker.__version__ import __version__
from expensetracker.cli.account import account
from expensetracker.cli.entry import entry
from expensetracker.cli.rate import rate, reconcile
from expensetracker.cli.transfer import transfer


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="expensetracker")
@click.option(
    "--db",
    "db_path",
    type=click.Path(path_type=Path),
    help="Path to the expense tracker database.",
)
@click.pass_context
def main(ctx: click.Context, db_path: Path | None) -> None:
    """Expense tracker CLI entry point."""
    ctx.obj = {"db_path": db_path}


main.add_command(account)
main.add_command(entry)
main.add_command(transfer)
main.add_command(rate)
main.add_command(reconcile)


if __name__ == "__main__":
    main()
