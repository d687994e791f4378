"""Currency conversion engine.

Resolves a rate for any currency pair and day through a single pivot
currency, caching every fetched rate in the exchange rate store. Lookups
that find nothing return ``Missing`` instead of raising.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import replace
from decimal import Decimal
import inspect
import logging
from typing import AsyncIterator, Awaitable, Callable, Iterable, Sequence, TypeVar, Union

from expensetracker.dates import date_key, now_millis, start_of_day
from expensetracker.forex import PIVOT_CURRENCY
from expensetracker.models import (
    ExchangeRate,
    LedgerEntry,
    Missing,
    RateResult,
    Resolved,
    Transfer,
    ensure_currency,
)
from expensetracker.money import divide_rate, invert_rate, quantize_rate, to_decimal
from expensetracker.persistence import PersistenceBackend
from expensetracker.rate_sources import OfflineRateSource, RateSource

logger = logging.getLogger(__name__)

R = TypeVar("R", LedgerEntry, Transfer)
RateLookup = Callable[[int, str, str], Union[ExchangeRate, None]]
WriteBack = Callable[[R], Union[Awaitable[None], None]]


class CurrencyConverter:
    """Resolve, cache and reconcile exchange rates.

    Session state (the in-flight fetch map here, and the rate / failed-date
    caches inside network sources) lives as long as the instance. Share an
    instance only within one event loop.
    """

    def __init__(
        self,
        store: PersistenceBackend,
        rate_source: RateSource | None = None,
        pivot: str = PIVOT_CURRENCY,
    ) -> None:
        self.store = store
        self.rate_source = rate_source or OfflineRateSource()
        self.pivot = pivot
        self._fetch_lock = asyncio.Lock()
        self._in_flight: dict[str, bool] = {}

    async def get_rate(self, base: str, quote: str, date: int) -> RateResult:
        """Return the rate for 1 ``base`` in ``quote`` on the day of ``date``."""
        if base == quote:
            return Resolved(Decimal(1))

        day = start_of_day(date)

        cached = self.store.get_rate(day, base, quote)
        if cached is not None:
            return Resolved(cached.rate)

        derived = self._derive_from_pivot(base, quote, day, self.store.get_rate)
        if derived is not None:
            return Resolved(derived)

        fetched = await self._fetch_rate(base, quote, day)
        if fetched is not None:
            self.store.upsert_rate(ExchangeRate(day, base, quote, fetched))
            return Resolved(fetched)

        logger.debug(f"No rate for {base}->{quote} on {date_key(day)}")
        return Missing

    async def get_rate_or_none(self, base: str, quote: str, date: int) -> Decimal | None:
        result = await self.get_rate(base, quote, date)
        return result.value if isinstance(result, Resolved) else None

    async def has_rate(self, base: str, quote: str, date: int) -> bool:
        """Same currency, a stored row, or derivable from stored pivot rows. No network."""
        if base == quote:
            return True
        day = start_of_day(date)
        if self.store.has_rate(day, base, quote):
            return True
        return self._derive_from_pivot(base, quote, day, self.store.get_rate) is not None

    async def set_rate(self, base: str, quote: str, date: int, rate: Decimal | str) -> ExchangeRate:
        """Store a rate for the day of ``date``, replacing any existing row."""
        row = ExchangeRate(
            date=start_of_day(date),
            base_currency=ensure_currency(base),
            quote_currency=ensure_currency(quote),
            rate=quantize_rate(to_decimal(rate, "rate")),
        )
        self.store.upsert_rate(row)
        return row

    async def get_most_recent_rate_on_or_before(
        self, base: str, quote: str, date: int
    ) -> RateResult:
        """Resolve a rate for a historical transaction.

        Tries stored rows on or before the day, then fetches missing pivot
        legs for the day, then accepts the earliest stored rows on or after
        the day (a rate entered today for a past transaction).
        """
        if base == quote:
            return Resolved(Decimal(1))

        day = start_of_day(date)
        on_or_before = self.store.get_most_recent_rate

        direct = on_or_before(day, base, quote)
        if direct is not None:
            return Resolved(direct.rate)
        derived = self._derive_from_pivot(base, quote, day, on_or_before)
        if derived is not None:
            return Resolved(derived)

        if await self._fetch_missing_pivot_legs(base, quote, day):
            derived = self._derive_from_pivot(base, quote, day, on_or_before)
            if derived is not None:
                return Resolved(derived)

        on_or_after = self.store.get_earliest_rate_on_or_after
        direct = on_or_after(day, base, quote)
        if direct is not None:
            return Resolved(direct.rate)
        derived = self._derive_from_pivot(base, quote, day, on_or_after)
        if derived is not None:
            return Resolved(derived)

        logger.debug(f"No historical rate for {base}->{quote} around {date_key(day)}")
        return Missing

    async def has_pivot_on_or_before(self, currency: str, date: int) -> bool:
        if currency == self.pivot:
            return True
        day = start_of_day(date)
        return self.store.get_most_recent_rate(day, self.pivot, currency) is not None

    async def fetch_and_store_pivot(self, currency: str, date: int) -> bool:
        """Fetch pivot->currency for the day and store it. Returns success."""
        if currency == self.pivot:
            return True
        day = start_of_day(date)
        rate = await self._fetch_rate(self.pivot, currency, day)
        if rate is None:
            return False
        self.store.upsert_rate(ExchangeRate(day, self.pivot, currency, rate))
        return True

    async def ensure_pivot_exists(self, currency: str, date: int | None = None) -> bool:
        """Guard for choosing a default currency: stored or fetchable pivot rate."""
        date = now_millis() if date is None else date
        if await self.has_pivot_on_or_before(currency, date):
            return True
        return await self.fetch_and_store_pivot(currency, date)

    async def set_manual_rate_override(
        self,
        currency: str,
        currency_to_default_rate: Decimal | str,
        default_currency: str,
        date: int | None = None,
    ) -> ExchangeRate:
        """Record "1 currency = rate default" as a pivot row where possible."""
        date = now_millis() if date is None else date
        rate = to_decimal(currency_to_default_rate, "rate")
        if rate <= 0:
            raise ValueError("rate must be greater than zero")
        if currency == default_currency:
            raise ValueError("Override currency must differ from the default currency")

        if currency == self.pivot:
            return await self.set_rate(self.pivot, default_currency, date, rate)
        if default_currency == self.pivot:
            return await self.set_rate(self.pivot, currency, date, invert_rate(rate))

        pivot_to_default = await self.get_most_recent_rate_on_or_before(
            self.pivot, default_currency, date
        )
        if isinstance(pivot_to_default, Resolved):
            return await self.set_rate(
                self.pivot, currency, date, divide_rate(pivot_to_default.value, rate)
            )
        return await self.set_rate(currency, default_currency, date, rate)

    async def account_conversion_rate(
        self, account_currency: str, default_currency: str, date: int | None = None
    ) -> RateResult:
        date = now_millis() if date is None else date
        return await self.get_most_recent_rate_on_or_before(
            account_currency, default_currency, date
        )

    async def amount_in_default(
        self, record: LedgerEntry | Transfer, current_default: str
    ) -> RateResult:
        """Express a record's amount in the current default currency.

        Uses the conversion snapshot when it was taken in the same default
        currency, rebases it when the default has changed since, and
        otherwise converts the raw amount.
        """
        if record.currency == current_default:
            return Resolved(record.amount)

        snapshot_amount = record.amount_in_original_default
        snapshot_currency = record.original_default_currency_code
        if snapshot_amount is not None and snapshot_currency == current_default:
            return Resolved(snapshot_amount)

        if snapshot_amount is not None and snapshot_currency is not None:
            rebase = await self.get_most_recent_rate_on_or_before(
                snapshot_currency, current_default, record.date
            )
            if isinstance(rebase, Resolved):
                return Resolved(snapshot_amount * rebase.value)
            return Missing

        rate = await self.get_most_recent_rate_on_or_before(
            record.currency, current_default, record.date
        )
        if isinstance(rate, Resolved):
            return Resolved(record.amount * rate.value)
        return Missing

    async def total_in_default(
        self, records: Iterable[LedgerEntry | Transfer], current_default: str
    ) -> RateResult:
        """Sum amounts in the default currency; ``Missing`` if any cannot convert."""
        total = Decimal(0)
        for record in records:
            converted = await self.amount_in_default(record, current_default)
            if not isinstance(converted, Resolved):
                return Missing
            total += converted.value
        return Resolved(total)

    async def has_all_rates_for_totals(
        self,
        entries: Iterable[LedgerEntry],
        transfers: Iterable[Transfer],
        current_default: str,
    ) -> bool:
        for record in [*entries, *transfers]:
            snapshot_currency = record.original_default_currency_code
            if snapshot_currency is None:
                needed_base = record.currency
            elif snapshot_currency != current_default:
                needed_base = snapshot_currency
            else:
                continue
            if not await self.has_rate(needed_base, current_default, record.date):
                return False
        return True

    async def reconcile_rates_needed(
        self,
        entries: Sequence[LedgerEntry],
        transfers: Sequence[Transfer],
        default_currency: str,
        on_entry_update: WriteBack[LedgerEntry],
        on_transfer_update: WriteBack[Transfer],
    ) -> int:
        """Fill conversion snapshots on records that lack one.

        Pivot rates needed for each day are fetched in one batch per day,
        then every pending record is resolved with ``get_rate`` and written
        back through the callbacks. Returns how many records still have no
        rate. Records that already carry a snapshot are skipped, so running
        this again is safe.
        """
        default_currency = ensure_currency(default_currency)
        pending_entries = [entry for entry in entries if not entry.has_snapshot]
        pending_transfers = [transfer for transfer in transfers if not transfer.has_snapshot]

        needs_by_day: dict[int, set[str]] = {}
        for record in [*pending_entries, *pending_transfers]:
            if record.currency == default_currency:
                continue
            needed = needs_by_day.setdefault(start_of_day(record.date), set())
            needed.add(record.currency)
            if default_currency != self.pivot:
                needed.add(default_currency)

        for day, currencies in sorted(needs_by_day.items()):
            symbols = {currency for currency in currencies if currency != self.pivot}
            if symbols:
                await self._batch_fetch_pivot_rates(day, symbols)

        missing = 0
        for entry in pending_entries:
            if await self._write_snapshot(entry, default_currency, on_entry_update):
                continue
            missing += 1
        for transfer in pending_transfers:
            if await self._write_snapshot(transfer, default_currency, on_transfer_update):
                continue
            missing += 1

        logger.info(
            f"Reconciled {len(pending_entries) + len(pending_transfers) - missing} records "
            f"into {default_currency}; {missing} still need rates"
        )
        return missing

    def clear_session_state(self) -> None:
        """Forget in-flight fetches and the sources' session caches."""
        self._in_flight.clear()
        self.rate_source.clear_cache()

    async def _write_snapshot(
        self, record: R, default_currency: str, callback: WriteBack[R]
    ) -> bool:
        result = await self.get_rate(record.currency, default_currency, record.date)
        if not isinstance(result, Resolved):
            logger.debug(
                f"No rate for {type(record).__name__} id={record.id} "
                f"{record.currency}->{default_currency}"
            )
            return False
        updated = replace(
            record,
            original_default_currency_code=default_currency,
            exchange_rate_to_original_default=result.value,
            amount_in_original_default=record.amount * result.value,
        )
        outcome = callback(updated)
        if inspect.isawaitable(outcome):
            await outcome
        return True

    async def _batch_fetch_pivot_rates(self, day: int, symbols: set[str]) -> None:
        async with self._claim_fetch(date_key(day)) as claimed:
            if not claimed:
                logger.debug(f"Fetch for {date_key(day)} already in flight, skipping")
                return
            try:
                rates = await self.rate_source.fetch_pivot_rates(self.pivot, day, symbols)
            except Exception as exc:
                logger.warning(f"Batch rate fetch failed for {date_key(day)}: {exc}")
                return
            rows = [
                ExchangeRate(day, self.pivot, quote, quantize_rate(rate))
                for quote, rate in rates.items()
                if quote != self.pivot
            ]
            if rows:
                self.store.upsert_rates(rows)

    @asynccontextmanager
    async def _claim_fetch(self, key: str) -> AsyncIterator[bool]:
        """Mark ``key`` as in flight for the duration of the block."""
        async with self._fetch_lock:
            claimed = not self._in_flight.get(key, False)
            if claimed:
                self._in_flight[key] = True
        try:
            yield claimed
        finally:
            if claimed:
                async with self._fetch_lock:
                    self._in_flight.pop(key, None)

    async def _fetch_rate(self, base: str, quote: str, day: int) -> Decimal | None:
        try:
            rate = await self.rate_source.fetch_rate(base, quote, day)
        except Exception as exc:
            logger.warning(f"Rate fetch failed for {base}->{quote} on {date_key(day)}: {exc}")
            return None
        return quantize_rate(rate) if rate is not None else None

    async def _fetch_missing_pivot_legs(self, base: str, quote: str, day: int) -> bool:
        fetched_any = False
        for currency in (base, quote):
            if currency == self.pivot:
                continue
            if self.store.get_most_recent_rate(day, self.pivot, currency) is not None:
                continue
            if await self.fetch_and_store_pivot(currency, day):
                fetched_any = True
        return fetched_any

    def _derive_from_pivot(
        self, base: str, quote: str, day: int, lookup: RateLookup
    ) -> Decimal | None:
        """Derive base->quote as (pivot->quote) / (pivot->base) from stored rows."""
        if base == self.pivot:
            row = lookup(day, self.pivot, quote)
            return row.rate if row is not None else None

        pivot_to_base = lookup(day, self.pivot, base)
        if pivot_to_base is None or not pivot_to_base.rate:
            return None
        if quote == self.pivot:
            return invert_rate(pivot_to_base.rate)

        pivot_to_quote = lookup(day, self.pivot, quote)
        if pivot_to_quote is None:
            return None
        return divide_rate(pivot_to_quote.rate, pivot_to_base.rate)
