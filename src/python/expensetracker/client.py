"""Client orchestration layer for the expense tracker."""

from __future__ import annotations

from decimal import Decimal
import logging
import os
from pathlib import Path

from expensetracker.config import AppConfig, load_config, resolve_db_path
from expensetracker.conversion import CurrencyConverter
from expensetracker.forex import ForexConfig, build_rate_source
from expensetracker.ledger import LedgerEngine
from expensetracker.models import (
    Account,
    EntryType,
    ExchangeRate,
    LedgerEntry,
    RateResult,
    Transfer,
    ensure_currency,
)
from expensetracker.money import round_balance, to_decimal
from expensetracker.persistence import PersistenceBackend
from expensetracker.rate_sources import RateSource
from expensetracker.repository import Repository

# Configure logging
logger = logging.getLogger("expensetracker")
log_level = os.environ.get("LOGGING_LEVEL", "INFO").upper()
logger.setLevel(getattr(logging, log_level, logging.INFO))
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(levelname)s - %(name)s - %(message)s"))
    logger.addHandler(handler)


class ExpenseTrackerClient:
    """Coordinate the repository, the ledger engine and the conversion engine."""

    def __init__(
        self,
        db_path: str | Path | None = None,
        repository: PersistenceBackend | None = None,
        rate_source: RateSource | None = None,
        config: AppConfig | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            db_path: Path to the SQLite database; overrides the config file
            repository: Optional custom persistence backend
            rate_source: Optional rate source; defaults to the configured chain
            config: Optional settings; loaded from the config file when omitted
        """
        self.config = config or load_config()
        if repository is None:
            repository = Repository(resolve_db_path(db_path, self.config))
        self.repository = repository
        self.default_currency = self.config.default_currency
        self.rate_source = rate_source or build_rate_source(
            self.config.rates.providers,
            ForexConfig(timeout_seconds=self.config.rates.timeout),
        )
        self.ledger = LedgerEngine(self.repository)
        self.converter = CurrencyConverter(self.repository, self.rate_source)

    def __enter__(self) -> "ExpenseTrackerClient":
        """Open the repository connection and ensure the schema exists."""
        self.repository.connect()
        self.repository.initialize_schema()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        """Close the repository connection."""
        self.close()

    def close(self) -> None:
        """Close the repository connection and drop session caches."""
        self.converter.clear_session_state()
        self.repository.close()

    # Accounts

    def add_account(
        self, name: str, currency: str, balance: Decimal | str | int = Decimal("0")
    ) -> Account:
        """Create an account with an opening balance."""
        name = name.strip()
        if not name:
            raise ValueError("Account name is required")
        if self.repository.get_account_by_name(name) is not None:
            raise ValueError(f"Account {name!r} already exists")
        account = self.repository.insert_account(
            name, ensure_currency(currency), round_balance(to_decimal(balance, "balance"))
        )
        logger.info(f"Added account {account.name} ({account.currency})")
        return account

    def get_account(self, name: str) -> Account:
        return self.ledger.get_account_by_name(name)

    def list_accounts(self) -> list[Account]:
        return self.ledger.list_accounts()

    # Entries

    async def add_entry(self, entry: LedgerEntry) -> LedgerEntry:
        """Add an entry and return the stored record."""
        entry_id = await self.ledger.add_entry(entry)
        return self.ledger.get_entry(entry_id)

    def get_entry(self, entry_id: int) -> LedgerEntry:
        return self.ledger.get_entry(entry_id)

    def list_entries(
        self, start_date: int | None = None, end_date: int | None = None
    ) -> list[LedgerEntry]:
        return self.ledger.list_entries(start_date=start_date, end_date=end_date)

    async def update_entry(self, entry: LedgerEntry) -> LedgerEntry:
        await self.ledger.update_entry(entry)
        return self.ledger.get_entry(entry.id)

    async def delete_entry(self, entry_id: int) -> None:
        await self.ledger.delete_entry(entry_id)

    # Transfers

    async def add_transfer(self, transfer: Transfer) -> Transfer:
        """Add a transfer and return the stored record."""
        transfer_id = await self.ledger.add_transfer(transfer)
        return self.ledger.get_transfer(transfer_id)

    def get_transfer(self, transfer_id: int) -> Transfer:
        return self.ledger.get_transfer(transfer_id)

    def list_transfers(
        self, start_date: int | None = None, end_date: int | None = None
    ) -> list[Transfer]:
        return self.ledger.list_transfers(start_date=start_date, end_date=end_date)

    async def update_transfer(self, transfer: Transfer) -> Transfer:
        await self.ledger.update_transfer(transfer)
        return self.ledger.get_transfer(transfer.id)

    async def delete_transfer(self, transfer_id: int) -> None:
        await self.ledger.delete_transfer(transfer_id)

    # Rates

    async def get_rate(self, base: str, quote: str, date: int) -> RateResult:
        return await self.converter.get_rate(
            ensure_currency(base), ensure_currency(quote), date
        )

    async def get_historical_rate(self, base: str, quote: str, date: int) -> RateResult:
        return await self.converter.get_most_recent_rate_on_or_before(
            ensure_currency(base), ensure_currency(quote), date
        )

    async def set_rate(
        self, base: str, quote: str, date: int, rate: Decimal | str
    ) -> ExchangeRate:
        return await self.converter.set_rate(base, quote, date, rate)

    async def set_rate_override(
        self, currency: str, currency_to_default_rate: Decimal | str, date: int | None = None
    ) -> ExchangeRate:
        """Record "1 currency = rate default-currency" as entered by the user."""
        return await self.converter.set_manual_rate_override(
            ensure_currency(currency),
            currency_to_default_rate,
            self.default_currency,
            date,
        )

    def list_rates(self, base: str | None = None) -> list[ExchangeRate]:
        return self.repository.list_rates(ensure_currency(base) if base else None)

    async def entries_total(
        self,
        entry_type: EntryType = EntryType.EXPENSE,
        start_date: int | None = None,
        end_date: int | None = None,
    ) -> RateResult:
        """Total of one entry type in the default currency, or ``Missing``."""
        entries = [
            entry
            for entry in self.list_entries(start_date=start_date, end_date=end_date)
            if entry.entry_type is EntryType(entry_type)
        ]
        return await self.converter.total_in_default(entries, self.default_currency)

    async def reconcile_snapshots(self, default_currency: str | None = None) -> int:
        """Fill conversion snapshots on stored records; return how many still lack one."""
        default_currency = ensure_currency(default_currency or self.default_currency)
        entries = [entry for entry in self.list_entries() if not entry.has_snapshot]
        transfers = [transfer for transfer in self.list_transfers() if not transfer.has_snapshot]
        if not entries and not transfers:
            logger.debug("No records need reconciliation")
            return 0
        return await self.converter.reconcile_rates_needed(
            entries,
            transfers,
            default_currency,
            self.ledger.update_entry_snapshot,
            self.ledger.update_transfer_snapshot,
        )
