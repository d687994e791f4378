from __future__ import annotations

from dataclasses import replace
from decimal import Decimal
from pathlib import Path

import pytest

from expensetracker.exceptions import AccountNotFound, EntryNotFound
from expensetracker.ledger import LedgerEngine
from expensetracker.models import EntryType, LedgerEntry
from expensetracker.repository import Repository
from tests.utils.assertions import assert_two_places
from tests.utils.database import count_rows, fetch_balance

ENTRY_DATE = 1_704_067_200_000


def _make_entry(**overrides: object) -> LedgerEntry:
    values = dict(
        account="Wallet",
        amount=Decimal("30.00"),
        currency="EUR",
        category="Groceries",
        entry_type=EntryType.EXPENSE,
        date=ENTRY_DATE,
    )
    values.update(overrides)
    return LedgerEntry(**values)


@pytest.mark.sit
@pytest.mark.asyncio
async def test_add_update_delete_entry_scenario(repository: Repository, test_db_path: Path) -> None:
    ledger = LedgerEngine(repository)

    entry_id = await ledger.add_entry(_make_entry())
    assert fetch_balance(test_db_path, "Wallet") == Decimal("70.00")

    stored = ledger.get_entry(entry_id)
    await ledger.update_entry(replace(stored, amount=Decimal("50.00")))
    assert fetch_balance(test_db_path, "Wallet") == Decimal("50.00")

    await ledger.delete_entry(entry_id)
    assert fetch_balance(test_db_path, "Wallet") == Decimal("100.00")
    assert count_rows(test_db_path, "expenses") == 0


@pytest.mark.sit
@pytest.mark.asyncio
async def test_add_entry_resolves_account_ignoring_case(repository: Repository) -> None:
    ledger = LedgerEngine(repository)

    await ledger.add_entry(_make_entry(account="wALLET", entry_type=EntryType.INCOME))

    assert ledger.get_account_by_name("Wallet").balance == Decimal("130.00")


@pytest.mark.sit
@pytest.mark.asyncio
async def test_add_entry_rounds_balance_half_up(repository: Repository) -> None:
    ledger = LedgerEngine(repository)

    await ledger.add_entry(_make_entry(amount=Decimal("10.005"), entry_type=EntryType.INCOME))

    balance = ledger.get_account_by_name("Wallet").balance
    assert balance == Decimal("110.01")
    assert_two_places(balance)


@pytest.mark.sit
@pytest.mark.asyncio
async def test_add_entry_unknown_account_writes_nothing(
    repository: Repository, test_db_path: Path
) -> None:
    ledger = LedgerEngine(repository)

    with pytest.raises(AccountNotFound) as excinfo:
        await ledger.add_entry(_make_entry(account="Missing Account"))

    assert excinfo.value.name == "Missing Account"
    assert count_rows(test_db_path, "expenses") == 0
    assert repository.in_transaction is False


@pytest.mark.sit
@pytest.mark.asyncio
async def test_update_entry_moves_effect_between_accounts(
    repository: Repository, test_db_path: Path
) -> None:
    ledger = LedgerEngine(repository)
    entry_id = await ledger.add_entry(_make_entry(amount=Decimal("10.00")))

    stored = ledger.get_entry(entry_id)
    await ledger.update_entry(replace(stored, account="A"))

    assert fetch_balance(test_db_path, "Wallet") == Decimal("100.00")
    assert fetch_balance(test_db_path, "A") == Decimal("90.00")
    assert ledger.get_entry(entry_id).account == "A"


@pytest.mark.sit
@pytest.mark.asyncio
async def test_update_entry_switching_type_applies_both_sides(repository: Repository) -> None:
    ledger = LedgerEngine(repository)
    entry_id = await ledger.add_entry(_make_entry(amount=Decimal("10.00")))

    stored = ledger.get_entry(entry_id)
    await ledger.update_entry(replace(stored, entry_type=EntryType.INCOME))

    assert ledger.get_account_by_name("Wallet").balance == Decimal("110.00")


@pytest.mark.sit
@pytest.mark.asyncio
async def test_update_entry_to_unknown_account_rolls_back(
    repository: Repository, test_db_path: Path
) -> None:
    ledger = LedgerEngine(repository)
    entry_id = await ledger.add_entry(_make_entry(amount=Decimal("10.00")))

    stored = ledger.get_entry(entry_id)
    with pytest.raises(AccountNotFound):
        await ledger.update_entry(replace(stored, account="Nowhere", amount=Decimal("99")))

    assert fetch_balance(test_db_path, "Wallet") == Decimal("90.00")
    assert ledger.get_entry(entry_id).amount == Decimal("10.00")


@pytest.mark.sit
@pytest.mark.asyncio
async def test_update_and_delete_missing_entry_raise(repository: Repository) -> None:
    ledger = LedgerEngine(repository)

    with pytest.raises(EntryNotFound):
        await ledger.update_entry(_make_entry(id=404))
    with pytest.raises(EntryNotFound) as excinfo:
        await ledger.delete_entry(404)

    assert excinfo.value.entry_id == 404


@pytest.mark.sit
@pytest.mark.asyncio
async def test_balance_matches_sum_of_entries_after_every_operation(
    repository: Repository,
) -> None:
    ledger = LedgerEngine(repository)
    initial = Decimal("100.00")
    operations = [
        ("add", Decimal("12.34"), EntryType.EXPENSE),
        ("add", Decimal("100.10"), EntryType.INCOME),
        ("add", Decimal("0.99"), EntryType.EXPENSE),
        ("update", Decimal("45.00"), EntryType.INCOME),
        ("delete", None, None),
        ("add", Decimal("7.50"), EntryType.EXPENSE),
    ]
    ids: list[int] = []

    for action, amount, entry_type in operations:
        if action == "add":
            ids.append(
                await ledger.add_entry(_make_entry(amount=amount, entry_type=entry_type))
            )
        elif action == "update":
            stored = ledger.get_entry(ids[0])
            await ledger.update_entry(replace(stored, amount=amount, entry_type=entry_type))
        else:
            await ledger.delete_entry(ids.pop(1))

        expected = initial + sum(
            (entry.balance_delta for entry in ledger.list_entries()), Decimal(0)
        )
        assert ledger.get_account_by_name("Wallet").balance == expected


@pytest.mark.sit
@pytest.mark.asyncio
async def test_update_entry_snapshot_leaves_balance_and_fields(
    repository: Repository, test_db_path: Path
) -> None:
    ledger = LedgerEngine(repository)
    entry_id = await ledger.add_entry(_make_entry(amount=Decimal("10.00"), currency="USD"))

    await ledger.update_entry_snapshot(
        replace(
            ledger.get_entry(entry_id),
            amount=Decimal("999.00"),
            original_default_currency_code="EUR",
            exchange_rate_to_original_default=Decimal("0.8000000000"),
            amount_in_original_default=Decimal("8.00"),
        )
    )

    stored = ledger.get_entry(entry_id)
    assert stored.amount == Decimal("10.00")
    assert stored.original_default_currency_code == "EUR"
    assert stored.amount_in_original_default == Decimal("8.00")
    assert fetch_balance(test_db_path, "Wallet") == Decimal("90.00")


@pytest.mark.sit
@pytest.mark.asyncio
async def test_add_then_delete_sub_cent_entry_restores_balance(
    repository: Repository, test_db_path: Path
) -> None:
    ledger = LedgerEngine(repository)

    entry_id = await ledger.add_entry(
        _make_entry(amount=Decimal("10.005"), entry_type=EntryType.INCOME)
    )
    await ledger.delete_entry(entry_id)

    assert fetch_balance(test_db_path, "Wallet") == Decimal("100.00")
