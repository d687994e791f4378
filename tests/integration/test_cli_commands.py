"""Integration tests for the expensetracker CLI."""

from __future__ import annotations

import json
from decimal import Decimal
from pathlib import Path

import pytest
from click.testing import CliRunner

from expensetracker.cli.main import main
from tests.utils.database import count_rows, fetch_balance


@pytest.fixture()
def offline_env(tmp_path: Path) -> dict[str, str]:
    """Environment pointing the CLI at a config without network providers."""
    config_file = tmp_path / "config.json"
    config_file.write_text(
        json.dumps({"default_currency": "EUR", "rates": {"providers": ["offline"]}}),
        encoding="utf-8",
    )
    return {"EXPENSETRACKER_CONFIG": str(config_file)}


def _invoke(db_path: Path, env: dict[str, str], *args: str):
    runner = CliRunner()
    return runner.invoke(main, ["--db", str(db_path), *args], env=env)


@pytest.mark.sit
def test_account_add_and_list(empty_db_path: Path, offline_env: dict[str, str]) -> None:
    added = _invoke(
        empty_db_path, offline_env, "account", "add", "--name", "Travel", "--currency", "usd", "--balance", "12.5"
    )
    listed = _invoke(empty_db_path, offline_env, "account", "list", "--currency", "USD")

    assert added.exit_code == 0, added.output
    assert "Added account Travel" in added.output
    assert listed.exit_code == 0, listed.output
    assert "Travel" in listed.output
    assert "12.50" in listed.output


@pytest.mark.sit
def test_account_add_duplicate_fails(test_db_path: Path, offline_env: dict[str, str]) -> None:
    result = _invoke(
        test_db_path, offline_env, "account", "add", "--name", "wallet", "--currency", "EUR"
    )

    assert result.exit_code == 1
    assert "already exists" in result.output


@pytest.mark.sit
def test_entry_add_update_delete(test_db_path: Path, offline_env: dict[str, str]) -> None:
    added = _invoke(
        test_db_path,
        offline_env,
        "entry", "add",
        "--account", "Wallet",
        "--amount", "30.00",
        "--category", "Groceries",
        "--date", "2024-01-01",
    )
    assert added.exit_code == 0, added.output
    assert "Added expense 1" in added.output
    assert fetch_balance(test_db_path, "Wallet") == Decimal("70.00")

    updated = _invoke(test_db_path, offline_env, "entry", "update", "1", "--amount", "50.00")
    assert updated.exit_code == 0, updated.output
    assert fetch_balance(test_db_path, "Wallet") == Decimal("50.00")

    listed = _invoke(test_db_path, offline_env, "entry", "list", "--account", "WALLET")
    assert "2024-01-01\tExpense\t50.00\tEUR\tWallet\tGroceries" in listed.output

    deleted = _invoke(test_db_path, offline_env, "entry", "delete", "1", "--yes")
    assert deleted.exit_code == 0, deleted.output
    assert fetch_balance(test_db_path, "Wallet") == Decimal("100.00")
    assert count_rows(test_db_path, "expenses") == 0


@pytest.mark.sit
def test_entry_add_unknown_account(test_db_path: Path, offline_env: dict[str, str]) -> None:
    result = _invoke(
        test_db_path,
        offline_env,
        "entry", "add",
        "--account", "Nowhere",
        "--amount", "5",
        "--category", "Food",
    )

    assert result.exit_code == 1
    assert "Account 'Nowhere' not found" in result.output
    assert count_rows(test_db_path, "expenses") == 0


@pytest.mark.sit
def test_entry_update_requires_a_change(test_db_path: Path, offline_env: dict[str, str]) -> None:
    result = _invoke(test_db_path, offline_env, "entry", "update", "1")

    assert result.exit_code == 2
    assert "Provide --account" in result.output


@pytest.mark.sit
def test_entry_add_rejects_bad_date(test_db_path: Path, offline_env: dict[str, str]) -> None:
    result = _invoke(
        test_db_path,
        offline_env,
        "entry", "add",
        "--account", "Wallet",
        "--amount", "5",
        "--category", "Food",
        "--date", "01/02/2024",
    )

    assert result.exit_code == 2
    assert "YYYY-MM-DD" in result.output


@pytest.mark.sit
def test_transfer_add_and_delete(test_db_path: Path, offline_env: dict[str, str]) -> None:
    added = _invoke(
        test_db_path,
        offline_env,
        "transfer", "add",
        "--from", "A",
        "--to", "B",
        "--amount", "20",
        "--date", "2024-01-01",
    )
    assert added.exit_code == 0, added.output
    assert "Added transfer 1" in added.output
    assert fetch_balance(test_db_path, "A") == Decimal("80.00")
    assert fetch_balance(test_db_path, "B") == Decimal("70.00")

    listed = _invoke(test_db_path, offline_env, "transfer", "list")
    assert "A -> B" in listed.output

    deleted = _invoke(test_db_path, offline_env, "transfer", "delete", "1", "--yes")
    assert deleted.exit_code == 0, deleted.output
    assert fetch_balance(test_db_path, "A") == Decimal("100.00")
    assert fetch_balance(test_db_path, "B") == Decimal("50.00")


@pytest.mark.sit
def test_transfer_destination_leg_needs_both_options(
    test_db_path: Path, offline_env: dict[str, str]
) -> None:
    result = _invoke(
        test_db_path,
        offline_env,
        "transfer", "add",
        "--from", "A",
        "--to", "Dollars",
        "--amount", "20",
        "--destination-amount", "21.90",
    )

    assert result.exit_code == 2
    assert "together" in result.output
    assert count_rows(test_db_path, "transfer_history") == 0


@pytest.mark.sit
def test_transfer_unknown_destination(test_db_path: Path, offline_env: dict[str, str]) -> None:
    result = _invoke(
        test_db_path, offline_env, "transfer", "add", "--from", "A", "--to", "Nowhere", "--amount", "1"
    )

    assert result.exit_code == 1
    assert "Destination account 'Nowhere' not found" in result.output


@pytest.mark.sit
def test_rate_set_get_and_list(empty_db_path: Path, offline_env: dict[str, str]) -> None:
    stored = _invoke(empty_db_path, offline_env, "rate", "set", "usd", "eur", "0.9", "--date", "2024-01-01")
    found = _invoke(empty_db_path, offline_env, "rate", "get", "USD", "EUR", "--date", "2024-01-01")
    missing = _invoke(empty_db_path, offline_env, "rate", "get", "USD", "JPY", "--date", "2024-01-01")
    listed = _invoke(empty_db_path, offline_env, "rate", "list", "--base", "usd")

    assert stored.exit_code == 0, stored.output
    assert "Stored USD->EUR 0.9000000000 for 2024-01-01" in stored.output
    assert "USD->EUR\t2024-01-01\t0.9000000000" in found.output
    assert "USD->JPY\t2024-01-01\tunavailable" in missing.output
    assert "2024-01-01\tUSD\tEUR\t0.9000000000" in listed.output


@pytest.mark.sit
def test_rate_get_historical_uses_earlier_row(
    empty_db_path: Path, offline_env: dict[str, str]
) -> None:
    _invoke(empty_db_path, offline_env, "rate", "set", "USD", "EUR", "0.9", "--date", "2024-01-01")

    strict = _invoke(empty_db_path, offline_env, "rate", "get", "USD", "EUR", "--date", "2024-01-05")
    historical = _invoke(
        empty_db_path, offline_env, "rate", "get", "USD", "EUR", "--date", "2024-01-05", "--historical"
    )

    assert "unavailable" in strict.output
    assert "USD->EUR\t2024-01-05\t0.9000000000" in historical.output


@pytest.mark.sit
def test_rate_override_rejects_default_currency(
    empty_db_path: Path, offline_env: dict[str, str]
) -> None:
    result = _invoke(empty_db_path, offline_env, "rate", "override", "EUR", "1.1")

    assert result.exit_code == 2


@pytest.mark.sit
def test_rate_override_stores_pivot_pair(empty_db_path: Path, offline_env: dict[str, str]) -> None:
    result = _invoke(
        empty_db_path, offline_env, "rate", "override", "USD", "0.8", "--date", "2024-01-01"
    )

    assert result.exit_code == 0, result.output
    assert "Stored EUR->USD 1.2500000000 for 2024-01-01" in result.output


@pytest.mark.sit
def test_reconcile_reports_unresolved_records(
    test_db_path: Path, offline_env: dict[str, str]
) -> None:
    _invoke(
        test_db_path, offline_env,
        "entry", "add", "--account", "Wallet", "--amount", "5", "--category", "Food", "--date", "2024-01-01",
    )
    _invoke(
        test_db_path, offline_env,
        "entry", "add", "--account", "Dollars", "--amount", "5", "--category", "Food", "--date", "2024-01-01",
    )

    first = _invoke(test_db_path, offline_env, "reconcile")
    _invoke(test_db_path, offline_env, "rate", "set", "EUR", "USD", "1.25", "--date", "2024-01-01")
    second = _invoke(test_db_path, offline_env, "reconcile")

    assert first.exit_code == 0, first.output
    assert "1 records still need rates" in first.output
    assert second.exit_code == 0, second.output
    assert "all records have conversion snapshots" in second.output


@pytest.mark.sit
def test_missing_db_path_is_reported(tmp_path: Path, offline_env: dict[str, str]) -> None:
    runner = CliRunner()

    result = runner.invoke(main, ["account", "list"], env=offline_env)

    assert result.exit_code == 1
    assert "db_path is required" in result.output


@pytest.mark.sit
def test_entry_add_rejects_nan_amount(test_db_path: Path, offline_env: dict[str, str]) -> None:
    result = _invoke(
        test_db_path,
        offline_env,
        "entry", "add",
        "--account", "Wallet",
        "--amount", "NaN",
        "--category", "Food",
    )

    assert result.exit_code == 2
    assert "finite" in result.output
    assert count_rows(test_db_path, "expenses") == 0
