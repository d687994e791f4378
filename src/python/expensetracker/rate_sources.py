"""Pluggable exchange rate sources and the fallback chain."""

from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal
import logging
from typing import Iterable, Sequence

logger = logging.getLogger(__name__)


class RateSource(ABC):
    """Source of exchange rates for a currency pair on a date.

    Dates are epoch milliseconds. Sources never persist anything; the
    conversion engine decides what to store.
    """

    name = "source"

    @abstractmethod
    async def fetch_rate(self, base: str, quote: str, date: int) -> Decimal | None:
        """Return 1 ``base`` in ``quote`` on ``date``, or None when unknown."""

    @abstractmethod
    async def fetch_rates(self, base: str, date: int) -> dict[str, Decimal]:
        """Return ``{quote: rate}`` for ``base`` on ``date``; empty when unknown."""

    async def fetch_pivot_rates(
        self, pivot: str, date: int, symbols: Iterable[str]
    ) -> dict[str, Decimal]:
        """Return ``{symbol: pivot->symbol rate}`` for the requested symbols.

        Sources able to query several symbols in one request override this;
        the default issues one ``fetch_rate`` per symbol.
        """
        rates: dict[str, Decimal] = {}
        for symbol in sorted(set(symbols)):
            if symbol == pivot:
                continue
            rate = await self.fetch_rate(pivot, symbol, date)
            if rate is not None:
                rates[symbol] = rate
        return rates

    def clear_cache(self) -> None:
        """Drop any session-scoped state. No-op by default."""


class OfflineRateSource(RateSource):
    """Source with no network access that only knows identity rates."""

    name = "offline"

    async def fetch_rate(self, base: str, quote: str, date: int) -> Decimal | None:
        return Decimal(1) if base == quote else None

    async def fetch_rates(self, base: str, date: int) -> dict[str, Decimal]:
        return {base: Decimal(1)}

    async def fetch_pivot_rates(
        self, pivot: str, date: int, symbols: Iterable[str]
    ) -> dict[str, Decimal]:
        return {}


class FallbackRateSource(RateSource):
    """Try sources in priority order and return the first usable answer.

    A source that raises or returns nothing is skipped; individual failure
    details never reach the caller.
    """

    name = "fallback"

    def __init__(self, sources: Sequence[RateSource]) -> None:
        self.sources = list(sources)

    async def fetch_rate(self, base: str, quote: str, date: int) -> Decimal | None:
        for index, source in enumerate(self.sources):
            try:
                rate = await source.fetch_rate(base, quote, date)
            except Exception as exc:
                logger.warning(f"Rate source {source.name} failed for {base}->{quote}: {exc}")
                continue
            if rate is not None:
                if index > 0:
                    logger.debug(f"Used fallback source {source.name} for {base}->{quote}")
                return rate
        return None

    async def fetch_rates(self, base: str, date: int) -> dict[str, Decimal]:
        for index, source in enumerate(self.sources):
            try:
                rates = await source.fetch_rates(base, date)
            except Exception as exc:
                logger.warning(f"Rate source {source.name} failed for {base} rates: {exc}")
                continue
            if rates:
                if index > 0:
                    logger.debug(f"Used fallback source {source.name} for {base} rates")
                return rates
        return {}

    async def fetch_pivot_rates(
        self, pivot: str, date: int, symbols: Iterable[str]
    ) -> dict[str, Decimal]:
        wanted = set(symbols)
        for source in self.sources:
            try:
                rates = await source.fetch_pivot_rates(pivot, date, wanted)
            except Exception as exc:
                logger.warning(f"Rate source {source.name} failed for {pivot} batch: {exc}")
                continue
            if rates:
                return rates
        return {}

    def clear_cache(self) -> None:
        for source in self.sources:
            source.clear_cache()
