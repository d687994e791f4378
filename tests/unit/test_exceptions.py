from __future__ import annotations

from expensetracker.exceptions import (
    AccountNotFound,
    EntryNotFound,
    NotFoundError,
    TransferNotFound,
)


def test_account_not_found_details() -> None:
    error = AccountNotFound("Wallet")

    assert isinstance(error, NotFoundError)
    assert error.name == "Wallet"
    assert error.role is None
    assert "Account 'Wallet' not found" in str(error)


def test_account_not_found_names_missing_side() -> None:
    error = AccountNotFound("Savings", role="destination")

    assert error.role == "destination"
    assert str(error) == "Destination account 'Savings' not found"


def test_entry_and_transfer_not_found_carry_id() -> None:
    entry_error = EntryNotFound(7)
    transfer_error = TransferNotFound(9)

    assert entry_error.entry_id == 7
    assert transfer_error.transfer_id == 9
    assert "id=7" in str(entry_error)
    assert "id=9" in str(transfer_error)
    assert isinstance(transfer_error, NotFoundError)
