"""SQLite repository implementation for the expense tracker."""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path
import sqlite3
from typing import Iterable

from expensetracker.models import Account, EntryType, ExchangeRate, LedgerEntry, Transfer
from expensetracker.persistence import PersistenceBackend
from expensetracker.schema import (
    ACCOUNT_COLUMNS,
    ENTRY_COLUMNS,
    EXCHANGE_RATE_COLUMNS,
    SCHEMA_STATEMENTS,
    TRANSFER_COLUMNS,
)


def _decimal_or_none(value: str | None) -> Decimal | None:
    return Decimal(value) if value is not None else None


def _text_or_none(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None


class Repository(PersistenceBackend):
    """SQLite-backed persistence implementation."""

    def __init__(self, db_path: str | Path) -> None:
        """Create a repository for the given database path."""
        self.db_path = Path(db_path) if str(db_path) != ":memory:" else db_path
        self.connection: sqlite3.Connection | None = None

    def connect(self) -> None:
        """Open the database connection."""
        if self.connection is None:
            # Autocommit mode; ledger units of work issue explicit BEGIN.
            self.connection = sqlite3.connect(self.db_path, isolation_level=None)
            self.connection.row_factory = sqlite3.Row

    def close(self) -> None:
        """Close the database connection."""
        if self.connection is not None:
            self.connection.close()
            self.connection = None

    def initialize_schema(self) -> None:
        """Create tables and indexes when missing."""
        self._ensure_connection()
        for statement in SCHEMA_STATEMENTS:
            self.connection.execute(statement)

    def begin_transaction(self) -> None:
        """Begin a write transaction."""
        self._ensure_connection()
        self.connection.execute("BEGIN IMMEDIATE")

    def commit(self) -> None:
        """Commit the current transaction."""
        self._ensure_connection()
        self.connection.commit()

    def rollback(self) -> None:
        """Rollback the current transaction."""
        self._ensure_connection()
        self.connection.rollback()

    @property
    def in_transaction(self) -> bool:
        return self.connection is not None and self.connection.in_transaction

    # Accounts

    def insert_account(self, name: str, currency: str, balance: Decimal) -> Account:
        """Insert an account row and return the record."""
        self._ensure_connection()
        cursor = self.connection.execute(
            "INSERT INTO accounts (name, currency, balance) VALUES (?, ?, ?)",
            (name, currency, str(balance)),
        )
        return Account(
            id=int(cursor.lastrowid),
            name=name,
            currency=currency,
            balance=Decimal(str(balance)),
        )

    def get_account(self, account_id: int) -> Account | None:
        """Fetch a single account by id."""
        self._ensure_connection()
        row = self.connection.execute(
            f"SELECT {', '.join(ACCOUNT_COLUMNS)} FROM accounts WHERE id = ? LIMIT 1",
            (account_id,),
        ).fetchone()
        return self._account_from_row(row) if row is not None else None

    def get_account_by_name(self, name: str) -> Account | None:
        """Fetch a single account by name, ignoring case."""
        self._ensure_connection()
        row = self.connection.execute(
            f"SELECT {', '.join(ACCOUNT_COLUMNS)} FROM accounts "
            "WHERE name = ? COLLATE NOCASE LIMIT 1",
            (name.strip(),),
        ).fetchone()
        return self._account_from_row(row) if row is not None else None

    def list_accounts(self) -> list[Account]:
        """Return accounts ordered by name."""
        self._ensure_connection()
        rows = self.connection.execute(
            f"SELECT {', '.join(ACCOUNT_COLUMNS)} FROM accounts ORDER BY name"
        ).fetchall()
        return [self._account_from_row(row) for row in rows]

    def update_account_balance(self, account_id: int, balance: Decimal) -> None:
        """Persist a new balance for an account."""
        self._ensure_connection()
        self.connection.execute(
            "UPDATE accounts SET balance = ? WHERE id = ?",
            (str(balance), account_id),
        )

    def delete_account(self, account_id: int) -> None:
        """Delete an account row."""
        self._ensure_connection()
        self.connection.execute("DELETE FROM accounts WHERE id = ?", (account_id,))

    # Ledger entries

    def insert_entry(self, entry: LedgerEntry) -> int:
        """Insert an entry row and return its id."""
        self._ensure_connection()
        columns = ENTRY_COLUMNS[1:]
        cursor = self.connection.execute(
            f"INSERT INTO expenses ({', '.join(columns)}) "
            f"VALUES ({', '.join('?' for _ in columns)})",
            self._entry_params(entry),
        )
        return int(cursor.lastrowid)

    def get_entry(self, entry_id: int) -> LedgerEntry | None:
        """Fetch a single entry by id."""
        self._ensure_connection()
        row = self.connection.execute(
            f"SELECT {', '.join(ENTRY_COLUMNS)} FROM expenses WHERE id = ? LIMIT 1",
            (entry_id,),
        ).fetchone()
        return self._entry_from_row(row) if row is not None else None

    def list_entries(
        self, start_date: int | None = None, end_date: int | None = None
    ) -> list[LedgerEntry]:
        """List entries, optionally filtered by date range."""
        self._ensure_connection()
        where_clause, params = self._date_filter("expenseDate", start_date, end_date)
        rows = self.connection.execute(
            f"""
            SELECT {', '.join(ENTRY_COLUMNS)} FROM expenses
            {where_clause}
            ORDER BY expenseDate DESC, id DESC
            """,
            params,
        ).fetchall()
        return [self._entry_from_row(row) for row in rows]

    def update_entry(self, entry: LedgerEntry) -> None:
        """Replace every column of an existing entry row."""
        self._ensure_connection()
        assignments = ", ".join(f"{column} = ?" for column in ENTRY_COLUMNS[1:])
        self.connection.execute(
            f"UPDATE expenses SET {assignments} WHERE id = ?",
            (*self._entry_params(entry), entry.id),
        )

    def delete_entry(self, entry_id: int) -> None:
        """Delete an entry row."""
        self._ensure_connection()
        self.connection.execute("DELETE FROM expenses WHERE id = ?", (entry_id,))

    # Transfers

    def insert_transfer(self, transfer: Transfer) -> int:
        """Insert a transfer row and return its id."""
        self._ensure_connection()
        columns = TRANSFER_COLUMNS[1:]
        cursor = self.connection.execute(
            f"INSERT INTO transfer_history ({', '.join(columns)}) "
            f"VALUES ({', '.join('?' for _ in columns)})",
            self._transfer_params(transfer),
        )
        return int(cursor.lastrowid)

    def get_transfer(self, transfer_id: int) -> Transfer | None:
        """Fetch a single transfer by id."""
        self._ensure_connection()
        row = self.connection.execute(
            f"SELECT {', '.join(TRANSFER_COLUMNS)} FROM transfer_history WHERE id = ? LIMIT 1",
            (transfer_id,),
        ).fetchone()
        return self._transfer_from_row(row) if row is not None else None

    def list_transfers(
        self, start_date: int | None = None, end_date: int | None = None
    ) -> list[Transfer]:
        """List transfers, optionally filtered by date range."""
        self._ensure_connection()
        where_clause, params = self._date_filter("date", start_date, end_date)
        rows = self.connection.execute(
            f"""
            SELECT {', '.join(TRANSFER_COLUMNS)} FROM transfer_history
            {where_clause}
            ORDER BY date DESC, id DESC
            """,
            params,
        ).fetchall()
        return [self._transfer_from_row(row) for row in rows]

    def update_transfer(self, transfer: Transfer) -> None:
        """Replace every column of an existing transfer row."""
        self._ensure_connection()
        assignments = ", ".join(f"{column} = ?" for column in TRANSFER_COLUMNS[1:])
        self.connection.execute(
            f"UPDATE transfer_history SET {assignments} WHERE id = ?",
            (*self._transfer_params(transfer), transfer.id),
        )

    def delete_transfer(self, transfer_id: int) -> None:
        """Delete a transfer row."""
        self._ensure_connection()
        self.connection.execute("DELETE FROM transfer_history WHERE id = ?", (transfer_id,))

    # Exchange rates

    def get_rate(self, date: int, base: str, quote: str) -> ExchangeRate | None:
        """Fetch the rate stored for an exact date and pair."""
        self._ensure_connection()
        row = self.connection.execute(
            f"""
            SELECT {', '.join(EXCHANGE_RATE_COLUMNS)} FROM exchange_rates
            WHERE date = ?
              AND baseCurrencyCode = ?
              AND quoteCurrencyCode = ?
            LIMIT 1
            """,
            (date, base, quote),
        ).fetchone()
        return self._rate_from_row(row) if row is not None else None

    def get_most_recent_rate(self, date: int, base: str, quote: str) -> ExchangeRate | None:
        """Fetch the latest rate for a pair dated on or before ``date``."""
        self._ensure_connection()
        row = self.connection.execute(
            f"""
            SELECT {', '.join(EXCHANGE_RATE_COLUMNS)} FROM exchange_rates
            WHERE baseCurrencyCode = ?
              AND quoteCurrencyCode = ?
              AND date <= ?
            ORDER BY date DESC
            LIMIT 1
            """,
            (base, quote, date),
        ).fetchone()
        return self._rate_from_row(row) if row is not None else None

    def get_earliest_rate_on_or_after(
        self, date: int, base: str, quote: str
    ) -> ExchangeRate | None:
        """Fetch the earliest rate for a pair dated on or after ``date``."""
        self._ensure_connection()
        row = self.connection.execute(
            f"""
            SELECT {', '.join(EXCHANGE_RATE_COLUMNS)} FROM exchange_rates
            WHERE baseCurrencyCode = ?
              AND quoteCurrencyCode = ?
              AND date >= ?
            ORDER BY date ASC
            LIMIT 1
            """,
            (base, quote, date),
        ).fetchone()
        return self._rate_from_row(row) if row is not None else None

    def has_rate(self, date: int, base: str, quote: str) -> bool:
        """Return whether a rate row exists for the composite key."""
        self._ensure_connection()
        row = self.connection.execute(
            """
            SELECT COUNT(*) > 0 FROM exchange_rates
            WHERE date = ?
              AND baseCurrencyCode = ?
              AND quoteCurrencyCode = ?
            """,
            (date, base, quote),
        ).fetchone()
        return bool(row[0])

    def upsert_rate(self, rate: ExchangeRate) -> None:
        """Insert or replace a rate row."""
        self.upsert_rates([rate])

    def upsert_rates(self, rates: Iterable[ExchangeRate]) -> None:
        """Insert or replace several rate rows."""
        self._ensure_connection()
        self.connection.executemany(
            f"""
            INSERT OR REPLACE INTO exchange_rates ({', '.join(EXCHANGE_RATE_COLUMNS)})
            VALUES (?, ?, ?, ?)
            """,
            [
                (rate.date, rate.base_currency, rate.quote_currency, str(rate.rate))
                for rate in rates
            ],
        )

    def list_rates(self, base: str | None = None) -> list[ExchangeRate]:
        """List stored rates, newest first."""
        self._ensure_connection()
        where_clause = ""
        params: list[object] = []
        if base is not None:
            where_clause = "WHERE baseCurrencyCode = ?"
            params.append(base)
        rows = self.connection.execute(
            f"""
            SELECT {', '.join(EXCHANGE_RATE_COLUMNS)} FROM exchange_rates
            {where_clause}
            ORDER BY date DESC, baseCurrencyCode, quoteCurrencyCode
            """,
            params,
        ).fetchall()
        return [self._rate_from_row(row) for row in rows]

    def delete_all_rates(self) -> None:
        """Delete every stored rate."""
        self._ensure_connection()
        self.connection.execute("DELETE FROM exchange_rates")

    def _ensure_connection(self) -> None:
        """Ensure the connection is initialized before use."""
        if self.connection is None:
            raise RuntimeError("Repository connection is not initialized")

    @staticmethod
    def _date_filter(
        column: str, start_date: int | None, end_date: int | None
    ) -> tuple[str, list[object]]:
        filters = []
        params: list[object] = []
        if start_date is not None:
            filters.append(f"{column} >= ?")
            params.append(start_date)
        if end_date is not None:
            filters.append(f"{column} <= ?")
            params.append(end_date)
        where_clause = ""
        if filters:
            where_clause = "WHERE " + " AND ".join(filters)
        return where_clause, params

    @staticmethod
    def _entry_params(entry: LedgerEntry) -> tuple[object, ...]:
        return (
            entry.account,
            str(entry.amount),
            entry.currency,
            entry.category,
            entry.date,
            entry.entry_type.value,
            entry.comment,
            entry.original_default_currency_code,
            _text_or_none(entry.exchange_rate_to_original_default),
            _text_or_none(entry.amount_in_original_default),
        )

    @staticmethod
    def _transfer_params(transfer: Transfer) -> tuple[object, ...]:
        return (
            transfer.date,
            transfer.source_account,
            transfer.destination_account,
            str(transfer.amount),
            transfer.currency,
            transfer.comment,
            transfer.original_default_currency_code,
            _text_or_none(transfer.exchange_rate_to_original_default),
            _text_or_none(transfer.amount_in_original_default),
            _text_or_none(transfer.destination_amount),
            transfer.destination_currency,
        )

    @staticmethod
    def _account_from_row(row: sqlite3.Row) -> Account:
        return Account(
            id=row["id"],
            name=row["name"],
            currency=row["currency"],
            balance=Decimal(row["balance"]),
        )

    @staticmethod
    def _entry_from_row(row: sqlite3.Row) -> LedgerEntry:
        return LedgerEntry(
            id=row["id"],
            account=row["account"],
            amount=Decimal(row["amount"]),
            currency=row["currency"],
            category=row["category"],
            date=row["expenseDate"],
            entry_type=EntryType(row["type"]),
            comment=row["comment"],
            original_default_currency_code=row["originalDefaultCurrencyCode"],
            exchange_rate_to_original_default=_decimal_or_none(
                row["exchangeRateToOriginalDefault"]
            ),
            amount_in_original_default=_decimal_or_none(row["amountInOriginalDefault"]),
        )

    @staticmethod
    def _transfer_from_row(row: sqlite3.Row) -> Transfer:
        return Transfer(
            id=row["id"],
            date=row["date"],
            source_account=row["sourceAccount"],
            destination_account=row["destinationAccount"],
            amount=Decimal(row["amount"]),
            currency=row["currency"],
            comment=row["comment"],
            original_default_currency_code=row["originalDefaultCurrencyCode"],
            exchange_rate_to_original_default=_decimal_or_none(
                row["exchangeRateToOriginalDefault"]
            ),
            amount_in_original_default=_decimal_or_none(row["amountInOriginalDefault"]),
            destination_amount=_decimal_or_none(row["destinationAmount"]),
            destination_currency=row["destinationCurrency"],
        )

    @staticmethod
    def _rate_from_row(row: sqlite3.Row) -> ExchangeRate:
        return ExchangeRate(
            date=row["date"],
            base_currency=row["baseCurrencyCode"],
            quote_currency=row["quoteCurrencyCode"],
            rate=Decimal(row["rate"]),
        )
