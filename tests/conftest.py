"""Pytest configuration and fixtures for system integration tests.

Every fixture database is built from the schema DDL in a temporary
directory, so tests never touch a real ledger.
"""
from __future__ import annotations

from decimal import Decimal
from pathlib import Path
import sys

import pytest

SRC_DIR = Path(__file__).resolve().parents[1] / "src" / "python"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from expensetracker.repository import Repository  # noqa: E402
from tests.utils.database import build_schema_db  # noqa: E402

DB_FILE_NAME = "expenses.db"
SAMPLE_ACCOUNTS = (
    ("Wallet", "EUR", Decimal("100.00")),
    ("A", "EUR", Decimal("100.00")),
    ("B", "EUR", Decimal("50.00")),
    ("Dollars", "USD", Decimal("0.00")),
)


@pytest.fixture()
def empty_db_path(tmp_path: Path) -> Path:
    """Database with schema only."""
    return build_schema_db(tmp_path / DB_FILE_NAME)


@pytest.fixture()
def test_db_path(empty_db_path: Path) -> Path:
    """Database with the sample accounts."""
    repository = Repository(empty_db_path)
    repository.connect()
    try:
        for name, currency, balance in SAMPLE_ACCOUNTS:
            repository.insert_account(name, currency, balance)
    finally:
        repository.close()
    return empty_db_path


@pytest.fixture()
def repository(test_db_path: Path) -> Repository:
    repository = Repository(test_db_path)
    repository.connect()
    yield repository
    repository.close()


@pytest.fixture()
def empty_repository(empty_db_path: Path) -> Repository:
    repository = Repository(empty_db_path)
    repository.connect()
    yield repository
    repository.close()
