"""Custom exception types for the expense tracker."""

from __future__ import annotations


class NotFoundError(Exception):
    """Raised when a requested record does not exist."""


class AccountNotFound(NotFoundError):
    """Raised when an account name does not resolve to a stored account."""

    def __init__(self, name: str, role: str | None = None) -> None:
        label = f"{role.capitalize()} account" if role else "Account"
        super().__init__(f"{label} {name!r} not found")
        self.name = name
        self.role = role


class EntryNotFound(NotFoundError):
    """Raised when a ledger entry id does not exist."""

    def __init__(self, entry_id: int) -> None:
        super().__init__(f"Entry with id={entry_id} not found")
        self.entry_id = entry_id


class TransferNotFound(NotFoundError):
    """Raised when a transfer id does not exist."""

    def __init__(self, transfer_id: int) -> None:
        super().__init__(f"Transfer with id={transfer_id} not found")
        self.transfer_id = transfer_id
