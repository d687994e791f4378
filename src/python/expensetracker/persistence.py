"""Persistence interfaces for expense tracker storage backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal
from pathlib import Path
from typing import Iterable

from expensetracker.models import Account, ExchangeRate, LedgerEntry, Transfer


class PersistenceBackend(ABC):
    """Abstract interface for repository backends.

    Account lookups by name are case-insensitive. Ledger writes are grouped
    by the caller between ``begin_transaction`` and ``commit``/``rollback``.
    """

    @abstractmethod
    def __init__(self, db_path: str | Path) -> None:
        """Initialize the backend with a storage path."""

    @abstractmethod
    def connect(self) -> None:
        """Establish a backend connection."""

    @abstractmethod
    def close(self) -> None:
        """Close the backend connection."""

    @abstractmethod
    def initialize_schema(self) -> None:
        """Create tables and indexes when missing."""

    @abstractmethod
    def begin_transaction(self) -> None:
        """Start a transaction."""

    @abstractmethod
    def commit(self) -> None:
        """Commit the active transaction."""

    @abstractmethod
    def rollback(self) -> None:
        """Rollback the active transaction."""

    # Accounts

    @abstractmethod
    def insert_account(self, name: str, currency: str, balance: Decimal) -> Account:
        """Insert an account row and return it."""

    @abstractmethod
    def get_account(self, account_id: int) -> Account | None:
        """Return the account with the given id, if any."""

    @abstractmethod
    def get_account_by_name(self, name: str) -> Account | None:
        """Return the account matching ``name`` ignoring case, if any."""

    @abstractmethod
    def list_accounts(self) -> list[Account]:
        """Return accounts ordered by name."""

    @abstractmethod
    def update_account_balance(self, account_id: int, balance: Decimal) -> None:
        """Persist a new balance for an account."""

    @abstractmethod
    def delete_account(self, account_id: int) -> None:
        """Delete an account row."""

    # Ledger entries

    @abstractmethod
    def insert_entry(self, entry: LedgerEntry) -> int:
        """Insert an entry row and return its id."""

    @abstractmethod
    def get_entry(self, entry_id: int) -> LedgerEntry | None:
        """Return the entry with the given id, if any."""

    @abstractmethod
    def list_entries(
        self, start_date: int | None = None, end_date: int | None = None
    ) -> list[LedgerEntry]:
        """Return entries, optionally within an inclusive millis range."""

    @abstractmethod
    def update_entry(self, entry: LedgerEntry) -> None:
        """Replace every column of an existing entry row."""

    @abstractmethod
    def delete_entry(self, entry_id: int) -> None:
        """Delete an entry row."""

    # Transfers

    @abstractmethod
    def insert_transfer(self, transfer: Transfer) -> int:
        """Insert a transfer row and return its id."""

    @abstractmethod
    def get_transfer(self, transfer_id: int) -> Transfer | None:
        """Return the transfer with the given id, if any."""

    @abstractmethod
    def list_transfers(
        self, start_date: int | None = None, end_date: int | None = None
    ) -> list[Transfer]:
        """Return transfers, optionally within an inclusive millis range."""

    @abstractmethod
    def update_transfer(self, transfer: Transfer) -> None:
        """Replace every column of an existing transfer row."""

    @abstractmethod
    def delete_transfer(self, transfer_id: int) -> None:
        """Delete a transfer row."""

    # Exchange rates

    @abstractmethod
    def get_rate(self, date: int, base: str, quote: str) -> ExchangeRate | None:
        """Point lookup by composite key."""

    @abstractmethod
    def get_most_recent_rate(self, date: int, base: str, quote: str) -> ExchangeRate | None:
        """Latest row for the pair dated on or before ``date``."""

    @abstractmethod
    def get_earliest_rate_on_or_after(
        self, date: int, base: str, quote: str
    ) -> ExchangeRate | None:
        """Earliest row for the pair dated on or after ``date``."""

    @abstractmethod
    def has_rate(self, date: int, base: str, quote: str) -> bool:
        """Return whether a row exists for the composite key."""

    @abstractmethod
    def upsert_rate(self, rate: ExchangeRate) -> None:
        """Insert or replace a rate row."""

    @abstractmethod
    def upsert_rates(self, rates: Iterable[ExchangeRate]) -> None:
        """Insert or replace several rate rows."""

    @abstractmethod
    def list_rates(self, base: str | None = None) -> list[ExchangeRate]:
        """Return rate rows ordered by date descending."""

    @abstractmethod
    def delete_all_rates(self) -> None:
        """Remove every stored rate."""
