"""Public expense tracker package exports."""

from __future__ import annotations

from expensetracker.__version__ import __version__
from expensetracker.client import ExpenseTrackerClient
from expensetracker.conversion import CurrencyConverter
from expensetracker.exceptions import (
    AccountNotFound,
    EntryNotFound,
    NotFoundError,
    TransferNotFound,
)
from expensetracker.ledger import LedgerEngine
from expensetracker.models import (
    Account,
    EntryType,
    ExchangeRate,
    LedgerEntry,
    Missing,
    RateResult,
    Resolved,
    Transfer,
)
from expensetracker.persistence import PersistenceBackend
from expensetracker.rate_sources import FallbackRateSource, OfflineRateSource, RateSource
from expensetracker.repository import Repository

__all__ = [
    "__version__",
    "ExpenseTrackerClient",
    "CurrencyConverter",
    "LedgerEngine",
    "NotFoundError",
    "AccountNotFound",
    "EntryNotFound",
    "TransferNotFound",
    "Account",
    "EntryType",
    "ExchangeRate",
    "LedgerEntry",
    "Transfer",
    "Resolved",
    "Missing",
    "RateResult",
    "PersistenceBackend",
    "Repository",
    "RateSource",
    "OfflineRateSource",
    "FallbackRateSource",
]
