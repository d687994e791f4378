"""Configuration file loading."""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import os
from pathlib import Path

from expensetracker.forex import DEFAULT_PROVIDERS, DEFAULT_TIMEOUT_SECONDS, PIVOT_CURRENCY
from expensetracker.models import ensure_currency

CONFIG_ENV_VAR = "EXPENSETRACKER_CONFIG"
DEFAULT_CONFIG_PATH = Path.home() / ".expensetracker" / "config.json"


@dataclass(frozen=True)
class RatesConfig:
    providers: tuple[str, ...] = DEFAULT_PROVIDERS
    timeout: int = DEFAULT_TIMEOUT_SECONDS


@dataclass(frozen=True)
class AppConfig:
    """Settings read from the JSON config file."""

    db_path: Path | None = None
    default_currency: str = PIVOT_CURRENCY
    rates: RatesConfig = field(default_factory=RatesConfig)


def config_path() -> Path:
    """Return the config file location, honoring the environment override."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override)
    return DEFAULT_CONFIG_PATH


def load_config(path: Path | None = None) -> AppConfig:
    """Load config file if present, else return defaults."""
    path = path or config_path()
    if not path.exists():
        return AppConfig()
    with path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    if not isinstance(payload, dict):
        return AppConfig()

    rates_payload = payload.get("rates") or {}
    rates = RatesConfig(
        providers=tuple(rates_payload.get("providers") or DEFAULT_PROVIDERS),
        timeout=int(rates_payload.get("timeout") or DEFAULT_TIMEOUT_SECONDS),
    )
    db_path = payload.get("db_path")
    return AppConfig(
        db_path=Path(db_path) if db_path else None,
        default_currency=ensure_currency(payload.get("default_currency") or PIVOT_CURRENCY),
        rates=rates,
    )


def resolve_db_path(db_path: str | Path | None, config: AppConfig) -> Path:
    """Resolve the database path from arguments or config."""
    if db_path is not None:
        return Path(db_path)
    if config.db_path is None:
        raise ValueError("db_path is required when it is missing in the config file")
    return config.db_path
