from __future__ import annotations

from decimal import Decimal

import pytest

from expensetracker.ledger import DeltaMap
from expensetracker.models import (
    EntryType,
    LedgerEntry,
    Missing,
    Resolved,
    Transfer,
    account_key,
)

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


def test_entry_required_fields() -> None:
    entry = _make_entry()

    assert entry.id is None
    assert entry.comment is None
    assert entry.original_default_currency_code is None
    assert entry.has_snapshot is False
    assert entry.amount == Decimal("30.00")


def test_entry_validation() -> None:
    with pytest.raises(ValueError):
        _make_entry(category="")

    with pytest.raises(ValueError):
        _make_entry(amount=Decimal("0"))

    with pytest.raises(ValueError):
        _make_entry(currency="EURO")


def test_entry_normalizes_inputs() -> None:
    entry = _make_entry(amount="12.345", currency="usd", entry_type="Income")

    assert entry.amount == Decimal("12.345")
    assert entry.currency == "USD"
    assert entry.entry_type is EntryType.INCOME


def test_entry_balance_delta_sign() -> None:
    assert _make_entry().balance_delta == Decimal("-30.00")
    assert _make_entry(entry_type=EntryType.INCOME).balance_delta == Decimal("30.00")


def test_transfer_self_transfer_ignores_case() -> None:
    transfer = Transfer(
        source_account="Wallet",
        destination_account=" wallet ",
        amount=Decimal("5"),
        currency="EUR",
        date=ENTRY_DATE,
    )

    assert transfer.is_self_transfer is True
    assert account_key("  Main Account ") == "main account"


def test_transfer_snapshot_fields() -> None:
    transfer = Transfer(
        source_account="A",
        destination_account="B",
        amount=Decimal("10"),
        currency="USD",
        date=ENTRY_DATE,
        original_default_currency_code="eur",
        exchange_rate_to_original_default="0.9",
        amount_in_original_default="9.0",
        destination_amount="9.10",
        destination_currency="eur",
    )

    assert transfer.has_snapshot is True
    assert transfer.original_default_currency_code == "EUR"
    assert transfer.exchange_rate_to_original_default == Decimal("0.9")
    assert transfer.destination_amount == Decimal("9.10")
    assert transfer.destination_currency == "EUR"


def test_rate_result_variants() -> None:
    resolved = Resolved(Decimal("1.1"))

    assert resolved.value == Decimal("1.1")
    assert bool(Missing) is False
    assert repr(Missing) == "Missing"
    assert not isinstance(Missing, Resolved)


def test_delta_map_nets_same_account_case_insensitively() -> None:
    deltas = DeltaMap()
    deltas.add("Wallet", Decimal("30.00"))
    deltas.add("WALLET", Decimal("-50.00"))
    deltas.add("Savings", Decimal("0"))

    assert deltas.non_zero() == [("Wallet", Decimal("-20.00"))]


def test_delta_map_transfer_legs_cancel_on_revert() -> None:
    transfer = Transfer(
        source_account="A",
        destination_account="B",
        amount=Decimal("20.00"),
        currency="EUR",
        date=ENTRY_DATE,
    )
    deltas = DeltaMap()
    deltas.add_transfer(transfer, sign=-1)
    deltas.add_transfer(transfer)

    assert deltas.non_zero() == []


def test_entry_rejects_non_finite_amounts() -> None:
    with pytest.raises(ValueError):
        _make_entry(amount="NaN")

    with pytest.raises(ValueError):
        _make_entry(amount=Decimal("Infinity"))


def test_delta_map_rounds_transfer_legs_to_cents() -> None:
    transfer = Transfer(
        source_account="A",
        destination_account="B",
        amount=Decimal("0.005"),
        currency="EUR",
        date=ENTRY_DATE,
    )
    deltas = DeltaMap()
    deltas.add_transfer(transfer)

    assert deltas.non_zero() == [("A", Decimal("-0.01")), ("B", Decimal("0.01"))]
