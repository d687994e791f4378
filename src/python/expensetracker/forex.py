"""Network exchange rate sources built on a single pivot currency.

Both public APIs used here publish EUR->X rates per calendar day. Any
other pair is derived as A->B = (EUR->B) / (EUR->A). Each source keeps a
session cache of fetched days and a negative cache of days that returned
a client error, so an exhausted or unavailable service is not hammered.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
import logging
from typing import Any, Iterable, Sequence

import requests

from expensetracker.dates import date_key
from expensetracker.money import divide_rate, quantize_rate
from expensetracker.rate_sources import FallbackRateSource, OfflineRateSource, RateSource

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5
PIVOT_CURRENCY = "EUR"
FRANKFURTER_API_URL = "https://api.frankfurter.dev/v1"
FAWAZ_CDN_URL = (
    "https://cdn.jsdelivr.net/npm/@fawazahmed0/currency-api@{version}/v1/currencies/eur.json"
)
FAWAZ_PAGES_URL = "https://{version}.currency-api.pages.dev/v1/currencies/eur.json"
DEFAULT_PROVIDERS = ("frankfurter", "fawazahmed-cdn", "fawazahmed-pages")


@dataclass(frozen=True)
class ForexConfig:
    """Configuration for network rate fetching."""

    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS


def derive_pivot_rate(
    base: str,
    quote: str,
    pivot_rates: dict[str, Decimal],
    pivot: str = PIVOT_CURRENCY,
) -> Decimal | None:
    """Derive base->quote from a map of pivot->X rates."""
    if base == quote:
        return Decimal(1)
    if base == pivot:
        return pivot_rates.get(quote)
    pivot_to_base = pivot_rates.get(base)
    if not pivot_to_base:
        return None
    if quote == pivot:
        return divide_rate(Decimal(1), pivot_to_base)
    pivot_to_quote = pivot_rates.get(quote)
    if pivot_to_quote is None:
        return None
    return divide_rate(pivot_to_quote, pivot_to_base)


class PivotRateSource(RateSource):
    """Base class for HTTP sources that publish one pivot rate set per day."""

    supports_symbols = False

    def __init__(
        self,
        config: ForexConfig | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.config = config or ForexConfig()
        self.session = session or requests.Session()
        self._rates_cache: dict[str, dict[str, Decimal]] = {}
        self.failed_dates: set[str] = set()

    async def fetch_rate(self, base: str, quote: str, date: int) -> Decimal | None:
        if base == quote:
            return Decimal(1)
        rates = await self._get_or_fetch_rates(date_key(date))
        if rates is None:
            return None
        return derive_pivot_rate(base, quote, rates)

    async def fetch_rates(self, base: str, date: int) -> dict[str, Decimal]:
        rates = await self._get_or_fetch_rates(date_key(date))
        if rates is None:
            return {}
        if base == PIVOT_CURRENCY:
            return dict(rates)

        result = {base: Decimal(1)}
        for quote in rates:
            if quote == base:
                continue
            derived = derive_pivot_rate(base, quote, rates)
            if derived is not None:
                result[quote] = derived
        to_pivot = derive_pivot_rate(base, PIVOT_CURRENCY, rates)
        if to_pivot is not None:
            result[PIVOT_CURRENCY] = to_pivot
        return result

    async def fetch_pivot_rates(
        self, pivot: str, date: int, symbols: Iterable[str]
    ) -> dict[str, Decimal]:
        if pivot != PIVOT_CURRENCY:
            return await super().fetch_pivot_rates(pivot, date, symbols)
        wanted = {symbol for symbol in symbols if symbol != PIVOT_CURRENCY}
        if not wanted:
            return {}
        rates = await self._get_or_fetch_rates(
            date_key(date), wanted if self.supports_symbols else None
        )
        if rates is None:
            return {}
        return {symbol: rates[symbol] for symbol in wanted if symbol in rates}

    def clear_cache(self) -> None:
        """Clear the session rate cache and the failed-date set."""
        self._rates_cache.clear()
        self.failed_dates.clear()

    async def _get_or_fetch_rates(
        self, day: str, symbols: set[str] | None = None
    ) -> dict[str, Decimal] | None:
        if day in self.failed_dates:
            logger.debug(f"{self.name}: skipping fetch for failed date {day}")
            return None
        if symbols is None and day in self._rates_cache:
            return self._rates_cache[day]

        try:
            response = await asyncio.to_thread(self._request, day, symbols)
        except requests.RequestException as exc:
            logger.warning(f"{self.name}: network error fetching rates for {day}: {exc}")
            return None

        if not response.ok:
            logger.warning(f"{self.name}: HTTP {response.status_code} for date {day}")
            if 400 <= response.status_code < 500:
                self.failed_dates.add(day)
                logger.debug(f"{self.name}: marking {day} as failed")
            return None

        try:
            payload = response.json(parse_float=Decimal)
            actual_day, rates = self._parse_payload(payload)
        except (ValueError, TypeError, InvalidOperation) as exc:
            logger.warning(f"{self.name}: malformed rates payload for {day}: {exc}")
            return None

        if symbols is None:
            self._rates_cache[day] = rates
            if actual_day and actual_day != day:
                self._rates_cache[actual_day] = rates
        logger.debug(f"{self.name}: fetched {len(rates)} {PIVOT_CURRENCY} rates for {day}")
        return rates

    def _request(self, day: str, symbols: set[str] | None) -> requests.Response:
        raise NotImplementedError

    def _parse_payload(self, payload: Any) -> tuple[str | None, dict[str, Decimal]]:
        raise NotImplementedError


class FrankfurterRateSource(PivotRateSource):
    """Rates from the Frankfurter API (ECB reference rates, no API key)."""

    name = "frankfurter"
    supports_symbols = True

    def __init__(
        self,
        config: ForexConfig | None = None,
        session: requests.Session | None = None,
        base_url: str = FRANKFURTER_API_URL,
    ) -> None:
        super().__init__(config=config, session=session)
        self.base_url = base_url.rstrip("/")

    def _request(self, day: str, symbols: set[str] | None) -> requests.Response:
        params = {"base": PIVOT_CURRENCY}
        if symbols:
            params["symbols"] = ",".join(sorted(symbols))
        return self.session.get(
            f"{self.base_url}/{day}",
            params=params,
            timeout=self.config.timeout_seconds,
        )

    def _parse_payload(self, payload: Any) -> tuple[str | None, dict[str, Decimal]]:
        if not isinstance(payload, dict) or not isinstance(payload.get("rates"), dict):
            raise ValueError("missing rates object")
        rates = {
            code.upper(): quantize_rate(Decimal(str(value)))
            for code, value in payload["rates"].items()
        }
        return payload.get("date"), rates


class FawazAhmedRateSource(PivotRateSource):
    """Rates from the static fawazahmed0 currency-api files."""

    name = "fawazahmed"

    def __init__(
        self,
        url_template: str = FAWAZ_CDN_URL,
        config: ForexConfig | None = None,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(config=config, session=session)
        self.url_template = url_template

    def generate_url(self, day: str) -> str:
        return self.url_template.format(version=day)

    def _request(self, day: str, symbols: set[str] | None) -> requests.Response:
        return self.session.get(self.generate_url(day), timeout=self.config.timeout_seconds)

    def _parse_payload(self, payload: Any) -> tuple[str | None, dict[str, Decimal]]:
        if not isinstance(payload, dict):
            raise ValueError("payload is not an object")
        raw_rates = payload.get(PIVOT_CURRENCY.lower())
        if not isinstance(raw_rates, dict):
            raise ValueError("missing pivot rates object")
        rates: dict[str, Decimal] = {}
        for code, value in raw_rates.items():
            try:
                rates[code.upper()] = quantize_rate(Decimal(str(value)))
            except InvalidOperation:
                continue
        return payload.get("date"), rates


def build_rate_source(
    providers: Sequence[str] = DEFAULT_PROVIDERS,
    config: ForexConfig | None = None,
) -> RateSource:
    """Build the fallback chain for the configured provider names."""
    config = config or ForexConfig()
    sources: list[RateSource] = []
    for provider in providers:
        if provider == "frankfurter":
            sources.append(FrankfurterRateSource(config=config))
        elif provider == "fawazahmed-cdn":
            sources.append(FawazAhmedRateSource(FAWAZ_CDN_URL, config=config))
        elif provider == "fawazahmed-pages":
            sources.append(FawazAhmedRateSource(FAWAZ_PAGES_URL, config=config))
        elif provider == "offline":
            sources.append(OfflineRateSource())
        else:
            raise ValueError(f"Unknown rate provider: {provider}")
    if not sources:
        sources.append(OfflineRateSource())
    return FallbackRateSource(sources)
