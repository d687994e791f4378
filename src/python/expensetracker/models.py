"""Domain models and result variants."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
import re
from typing import Generic, TypeVar, Union

from expensetracker.dates import now_millis
from expensetracker.money import round_balance, to_decimal
from expensetracker.schema import ENTRY_TYPE_EXPENSE, ENTRY_TYPE_INCOME

CURRENCY_PATTERN = re.compile(r"^[A-Z]{3}$")

T = TypeVar("T")


def account_key(name: str) -> str:
    """Normalized lookup key for case-insensitive account matching."""
    return name.strip().lower()


def _ensure_non_empty(value: str, field_name: str) -> str:
    """Validate required text fields."""
    if not value or not value.strip():
        raise ValueError(f"{field_name} is required")
    return value.strip()


def _ensure_positive(value: Decimal | str | int | float, field_name: str) -> Decimal:
    """Parse and validate positive decimal values."""
    amount = to_decimal(value, field_name)
    if amount <= Decimal("0"):
        raise ValueError(f"{field_name} must be greater than zero")
    return amount


def _ensure_optional_decimal(
    value: Decimal | str | int | float | None, field_name: str
) -> Decimal | None:
    if value is None:
        return None
    return to_decimal(value, field_name)


def ensure_currency(code: str, field_name: str = "Currency") -> str:
    """Validate and upper-case a 3-letter currency code."""
    normalized = (code or "").strip().upper()
    if not CURRENCY_PATTERN.match(normalized):
        raise ValueError(f"Invalid {field_name.lower()} code: {code}")
    return normalized


def _ensure_optional_currency(code: str | None, field_name: str) -> str | None:
    if code is None:
        return None
    return ensure_currency(code, field_name)


class EntryType(str, Enum):
    """Direction of a single-account ledger entry."""

    EXPENSE = ENTRY_TYPE_EXPENSE
    INCOME = ENTRY_TYPE_INCOME


@dataclass(frozen=True)
class Account:
    """Stored account with its running balance."""
    id: int
    name: str
    currency: str
    balance: Decimal


class SnapshotMixin:
    """Conversion snapshot fields shared by entries and transfers."""

    original_default_currency_code: str | None
    exchange_rate_to_original_default: Decimal | None
    amount_in_original_default: Decimal | None

    def _validate_snapshot(self) -> None:
        object.__setattr__(
            self,
            "original_default_currency_code",
            _ensure_optional_currency(
                self.original_default_currency_code, "Original default currency"
            ),
        )
        object.__setattr__(
            self,
            "exchange_rate_to_original_default",
            _ensure_optional_decimal(
                self.exchange_rate_to_original_default, "exchange_rate_to_original_default"
            ),
        )
        object.__setattr__(
            self,
            "amount_in_original_default",
            _ensure_optional_decimal(
                self.amount_in_original_default, "amount_in_original_default"
            ),
        )

    @property
    def has_snapshot(self) -> bool:
        return self.amount_in_original_default is not None


@dataclass(frozen=True)
class LedgerEntry(SnapshotMixin):
    """Expense or income against a single account.

    ``account`` references ``Account.name`` case-insensitively. ``date`` is
    epoch milliseconds.
    """
    account: str
    amount: Decimal
    currency: str
    category: str
    entry_type: EntryType
    date: int = field(default_factory=now_millis)
    comment: str | None = None
    id: int | None = None
    original_default_currency_code: str | None = None
    exchange_rate_to_original_default: Decimal | None = None
    amount_in_original_default: Decimal | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "account", _ensure_non_empty(self.account, "Account"))
        object.__setattr__(self, "category", _ensure_non_empty(self.category, "Category"))
        object.__setattr__(self, "amount", _ensure_positive(self.amount, "Amount"))
        object.__setattr__(self, "currency", ensure_currency(self.currency))
        object.__setattr__(self, "entry_type", EntryType(self.entry_type))
        object.__setattr__(self, "date", int(self.date))
        self._validate_snapshot()

    @property
    def balance_delta(self) -> Decimal:
        """Signed effect of this entry on its account balance, at cent scale."""
        if self.entry_type is EntryType.EXPENSE:
            return -round_balance(self.amount)
        return round_balance(self.amount)


@dataclass(frozen=True)
class Transfer(SnapshotMixin):
    """Movement of money between two accounts referenced by name.

    ``destination_amount``/``destination_currency`` describe the destination
    leg of a cross-currency transfer and are informational only.
    """
    source_account: str
    destination_account: str
    amount: Decimal
    currency: str
    date: int = field(default_factory=now_millis)
    comment: str | None = None
    id: int | None = None
    original_default_currency_code: str | None = None
    exchange_rate_to_original_default: Decimal | None = None
    amount_in_original_default: Decimal | None = None
    destination_amount: Decimal | None = None
    destination_currency: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "source_account", _ensure_non_empty(self.source_account, "Source account")
        )
        object.__setattr__(
            self,
            "destination_account",
            _ensure_non_empty(self.destination_account, "Destination account"),
        )
        object.__setattr__(self, "amount", _ensure_positive(self.amount, "Amount"))
        object.__setattr__(self, "currency", ensure_currency(self.currency))
        object.__setattr__(self, "date", int(self.date))
        object.__setattr__(
            self,
            "destination_amount",
            _ensure_optional_decimal(self.destination_amount, "destination_amount"),
        )
        object.__setattr__(
            self,
            "destination_currency",
            _ensure_optional_currency(self.destination_currency, "Destination currency"),
        )
        self._validate_snapshot()

    @property
    def is_self_transfer(self) -> bool:
        return account_key(self.source_account) == account_key(self.destination_account)


@dataclass(frozen=True)
class ExchangeRate:
    """Stored rate: 1 ``base_currency`` = ``rate`` ``quote_currency`` on ``date``.

    ``date`` is epoch milliseconds at local midnight.
    """
    date: int
    base_currency: str
    quote_currency: str
    rate: Decimal


@dataclass(frozen=True)
class Resolved(Generic[T]):
    """A successfully resolved rate or converted amount."""
    value: T


@dataclass(frozen=True)
class _MissingType:
    """No rate available; not an error."""

    def __repr__(self) -> str:
        return "Missing"

    def __bool__(self) -> bool:
        return False


Missing = _MissingType()

RateResult = Union[Resolved[Decimal], _MissingType]
