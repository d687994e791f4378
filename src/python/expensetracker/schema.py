"""Database schema constants."""

from __future__ import annotations

ENTRY_TYPE_EXPENSE = "Expense"
ENTRY_TYPE_INCOME = "Income"

ACCOUNT_COLUMNS = [
    "id",
    "name",
    "currency",
    "balance",
]

ENTRY_COLUMNS = [
    "id",
    "account",
    "amount",
    "currency",
    "category",
    "expenseDate",
    "type",
    "comment",
    "originalDefaultCurrencyCode",
    "exchangeRateToOriginalDefault",
    "amountInOriginalDefault",
]

TRANSFER_COLUMNS = [
    "id",
    "date",
    "sourceAccount",
    "destinationAccount",
    "amount",
    "currency",
    "comment",
    "originalDefaultCurrencyCode",
    "exchangeRateToOriginalDefault",
    "amountInOriginalDefault",
    "destinationAmount",
    "destinationCurrency",
]

EXCHANGE_RATE_COLUMNS = [
    "date",
    "baseCurrencyCode",
    "quoteCurrencyCode",
    "rate",
]

# Decimal columns are stored as TEXT so sqlite never rounds them through REAL.
SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS accounts (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL COLLATE NOCASE,
        currency TEXT NOT NULL,
        balance TEXT NOT NULL
    )
    """,
    "CREATE UNIQUE INDEX IF NOT EXISTS index_accounts_name ON accounts (name)",
    """
    CREATE TABLE IF NOT EXISTS expenses (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        account TEXT NOT NULL,
        amount TEXT NOT NULL,
        currency TEXT NOT NULL,
        category TEXT NOT NULL,
        expenseDate INTEGER NOT NULL,
        type TEXT NOT NULL,
        comment TEXT,
        originalDefaultCurrencyCode TEXT,
        exchangeRateToOriginalDefault TEXT,
        amountInOriginalDefault TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS transfer_history (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        date INTEGER NOT NULL,
        sourceAccount TEXT NOT NULL,
        destinationAccount TEXT NOT NULL,
        amount TEXT NOT NULL,
        currency TEXT NOT NULL,
        comment TEXT,
        originalDefaultCurrencyCode TEXT,
        exchangeRateToOriginalDefault TEXT,
        amountInOriginalDefault TEXT,
        destinationAmount TEXT,
        destinationCurrency TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS exchange_rates (
        date INTEGER NOT NULL,
        baseCurrencyCode TEXT NOT NULL,
        quoteCurrencyCode TEXT NOT NULL,
        rate TEXT NOT NULL,
        PRIMARY KEY (date, baseCurrencyCode, quoteCurrencyCode)
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS index_exchange_rates_pair_date
    ON exchange_rates (baseCurrencyCode, quoteCurrencyCode, date)
    """,
]
