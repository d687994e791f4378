"""Shared CLI helpers."""

from __future__ import annotations

import asyncio
import datetime as dt
from decimal import Decimal
from typing import Any, Coroutine, TypeVar

import click

from expensetracker.client import ExpenseTrackerClient
from expensetracker.dates import millis_from_date
from expensetracker.models import RateResult, Resolved

T = TypeVar("T")


def parse_date(value: str | None, field_name: str) -> int | None:
    """Parse an ISO date string into epoch millis at local midnight."""
    if value is None:
        return None
    try:
        return millis_from_date(dt.date.fromisoformat(value))
    except ValueError as exc:
        raise click.BadParameter("Use YYYY-MM-DD format.", param_hint=field_name) from exc


def parse_decimal(value: str | None, field_name: str) -> Decimal | None:
    """Parse a decimal string into a Decimal."""
    if value is None:
        return None
    try:
        return Decimal(value)
    except Exception as exc:
        raise click.BadParameter("Use a valid decimal value.", param_hint=field_name) from exc


def format_rate(result: RateResult) -> str:
    """Render a rate lookup; an unresolved rate is shown distinctly from zero."""
    if isinstance(result, Resolved):
        return str(result.value)
    return "unavailable"


def run(coroutine: Coroutine[Any, Any, T]) -> T:
    """Drive an engine coroutine to completion from a synchronous command."""
    return asyncio.run(coroutine)


def get_client(ctx: click.Context) -> ExpenseTrackerClient:
    """Build a client from Click context."""
    payload = ctx.obj or {}
    try:
        return ExpenseTrackerClient(db_path=payload.get("db_path"))
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc


def with_snapshot_reset(changes: dict[str, object]) -> dict[str, object]:
    """Clear the conversion snapshot when a field it was computed from changes."""
    if {"amount", "currency", "date"} & changes.keys():
        return {
            **changes,
            "original_default_currency_code": None,
            "exchange_rate_to_original_default": None,
            "amount_in_original_default": None,
        }
    return changes
