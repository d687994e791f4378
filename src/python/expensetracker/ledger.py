"""Ledger engine: balance-consistent mutations of entries and transfers."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from decimal import Decimal
import logging
from typing import Callable, TypeVar

from expensetracker.exceptions import AccountNotFound, EntryNotFound, TransferNotFound
from expensetracker.models import Account, LedgerEntry, Transfer, account_key
from expensetracker.money import round_balance
from expensetracker.persistence import PersistenceBackend

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R", LedgerEntry, Transfer)


def _with_snapshot(current: R, source: R) -> R:
    """Copy the conversion snapshot of ``source`` onto ``current``."""
    return replace(
        current,
        original_default_currency_code=source.original_default_currency_code,
        exchange_rate_to_original_default=source.exchange_rate_to_original_default,
        amount_in_original_default=source.amount_in_original_default,
    )


class DeltaMap:
    """Per-account balance deltas keyed by normalized account name."""

    def __init__(self) -> None:
        self._deltas: dict[str, Decimal] = {}
        self._names: dict[str, str] = {}

    def add(self, account_name: str, delta: Decimal) -> None:
        key = account_key(account_name)
        self._names.setdefault(key, account_name)
        self._deltas[key] = self._deltas.get(key, Decimal(0)) + delta

    def add_transfer(self, transfer: Transfer, sign: int = 1) -> None:
        """Record a transfer's legs; ``sign=-1`` records the reversal."""
        if transfer.is_self_transfer:
            return
        amount = round_balance(transfer.amount)
        self.add(transfer.source_account, -sign * amount)
        self.add(transfer.destination_account, sign * amount)

    def non_zero(self) -> list[tuple[str, Decimal]]:
        """Return ``(account name, net delta)`` pairs that change a balance."""
        return [
            (self._names[key], delta)
            for key, delta in self._deltas.items()
            if delta != 0
        ]


class LedgerEngine:
    """Apply entry and transfer mutations together with their balance effects.

    Every public operation runs as one transaction: the row write and all
    balance writes commit together, or the transaction is rolled back and
    the error re-raised. Operations on one engine are serialized.
    """

    def __init__(self, repository: PersistenceBackend) -> None:
        self.repository = repository
        self._lock = asyncio.Lock()

    # Entries

    async def add_entry(self, entry: LedgerEntry) -> int:
        """Insert an entry, apply its delta to the account and return the new id."""

        def action() -> int:
            account = self._resolve_account(entry.account)
            self._apply_delta(account, entry.balance_delta)
            return self.repository.insert_entry(entry)

        entry_id = await self._run_transaction(action)
        logger.info(f"Added {entry.entry_type.value.lower()} id={entry_id} on {entry.account}")
        return entry_id

    async def update_entry(self, updated: LedgerEntry) -> None:
        """Replace an entry, moving its balance effect to the new values."""

        def action() -> None:
            prior = self._load_entry(updated.id)
            deltas = DeltaMap()
            deltas.add(prior.account, -prior.balance_delta)
            deltas.add(updated.account, updated.balance_delta)
            self._apply_deltas(deltas)
            self.repository.update_entry(updated)

        await self._run_transaction(action)
        logger.info(f"Updated entry id={updated.id}")

    async def delete_entry(self, entry_id: int) -> None:
        """Delete an entry and revert its effect on the account balance."""

        def action() -> None:
            entry = self._load_entry(entry_id)
            account = self._resolve_account(entry.account)
            self._apply_delta(account, -entry.balance_delta)
            self.repository.delete_entry(entry_id)

        await self._run_transaction(action)
        logger.info(f"Deleted entry id={entry_id}")

    # Transfers

    async def add_transfer(self, transfer: Transfer) -> int:
        """Insert a transfer, debit the source and credit the destination.

        A self-transfer is recorded without touching any balance.
        """

        def action() -> int:
            source = self._resolve_account(transfer.source_account, role="Source")
            destination = self._resolve_account(
                transfer.destination_account, role="Destination"
            )
            if not transfer.is_self_transfer:
                amount = round_balance(transfer.amount)
                self._apply_delta(source, -amount)
                self._apply_delta(destination, amount)
            return self.repository.insert_transfer(transfer)

        transfer_id = await self._run_transaction(action)
        logger.info(
            f"Added transfer id={transfer_id} "
            f"{transfer.source_account} -> {transfer.destination_account}"
        )
        return transfer_id

    async def update_transfer(self, updated: Transfer) -> None:
        """Replace a transfer, reverting the old legs and applying the new ones."""

        def action() -> None:
            prior = self._load_transfer(updated.id)
            deltas = DeltaMap()
            deltas.add_transfer(prior, sign=-1)
            deltas.add_transfer(updated)
            self._apply_deltas(deltas)
            self.repository.update_transfer(updated)

        await self._run_transaction(action)
        logger.info(f"Updated transfer id={updated.id}")

    async def delete_transfer(self, transfer_id: int) -> None:
        """Delete a transfer and reverse its legs."""

        def action() -> None:
            transfer = self._load_transfer(transfer_id)
            if not transfer.is_self_transfer:
                source = self._resolve_account(transfer.source_account, role="Source")
                destination = self._resolve_account(
                    transfer.destination_account, role="Destination"
                )
                amount = round_balance(transfer.amount)
                self._apply_delta(source, amount)
                self._apply_delta(destination, -amount)
            self.repository.delete_transfer(transfer_id)

        await self._run_transaction(action)
        logger.info(f"Deleted transfer id={transfer_id}")

    # Reads

    def get_account_by_name(self, name: str) -> Account:
        return self._resolve_account(name)

    def list_accounts(self) -> list[Account]:
        return self.repository.list_accounts()

    def get_entry(self, entry_id: int) -> LedgerEntry:
        return self._load_entry(entry_id)

    def get_transfer(self, transfer_id: int) -> Transfer:
        return self._load_transfer(transfer_id)

    def list_entries(
        self, start_date: int | None = None, end_date: int | None = None
    ) -> list[LedgerEntry]:
        return self.repository.list_entries(start_date=start_date, end_date=end_date)

    def list_transfers(
        self, start_date: int | None = None, end_date: int | None = None
    ) -> list[Transfer]:
        return self.repository.list_transfers(start_date=start_date, end_date=end_date)

    # Snapshot write-backs

    async def update_entry_snapshot(self, entry: LedgerEntry) -> None:
        """Persist conversion snapshot fields only; balances are untouched."""

        def action() -> None:
            current = self._load_entry(entry.id)
            self.repository.update_entry(_with_snapshot(current, entry))

        await self._run_transaction(action)

    async def update_transfer_snapshot(self, transfer: Transfer) -> None:
        """Persist conversion snapshot fields only; balances are untouched."""

        def action() -> None:
            current = self._load_transfer(transfer.id)
            self.repository.update_transfer(_with_snapshot(current, transfer))

        await self._run_transaction(action)

    async def _run_transaction(self, action: Callable[[], T]) -> T:
        """Run repository work inside a transaction.

        ``action`` is synchronous, so nothing can interleave between the
        first read and the commit.
        """
        async with self._lock:
            self.repository.begin_transaction()
            try:
                result = action()
                self.repository.commit()
                return result
            except BaseException:
                self.repository.rollback()
                raise

    def _resolve_account(self, name: str, role: str | None = None) -> Account:
        account = self.repository.get_account_by_name(name)
        if account is None:
            raise AccountNotFound(name, role=role)
        return account

    def _load_entry(self, entry_id: int | None) -> LedgerEntry:
        entry = self.repository.get_entry(entry_id) if entry_id is not None else None
        if entry is None:
            raise EntryNotFound(entry_id)
        return entry

    def _load_transfer(self, transfer_id: int | None) -> Transfer:
        transfer = self.repository.get_transfer(transfer_id) if transfer_id is not None else None
        if transfer is None:
            raise TransferNotFound(transfer_id)
        return transfer

    def _apply_delta(self, account: Account, delta: Decimal) -> None:
        balance = round_balance(account.balance + delta)
        self.repository.update_account_balance(account.id, balance)
        logger.debug(f"Balance {account.name}: {account.balance} -> {balance}")

    def _apply_deltas(self, deltas: DeltaMap) -> None:
        # Resolve everything first so a missing account aborts before any write.
        resolved = [(self._resolve_account(name), delta) for name, delta in deltas.non_zero()]
        for account, delta in resolved:
            self._apply_delta(account, delta)
