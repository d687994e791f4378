"""Decimal rounding rules shared by the ledger and conversion engines."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

BALANCE_QUANTUM = Decimal("0.01")
RATE_SCALE = 10
RATE_QUANTUM = Decimal(1).scaleb(-RATE_SCALE)


def to_decimal(value: Decimal | str | int | float, field_name: str = "value") -> Decimal:
    """Parse a decimal without going through binary floating point."""
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError) as exc:
            raise ValueError(f"{field_name} must be a decimal") from exc
    if not result.is_finite():
        raise ValueError(f"{field_name} must be a finite decimal")
    return result


def round_balance(amount: Decimal) -> Decimal:
    """Round to two fractional digits, half up."""
    return amount.quantize(BALANCE_QUANTUM, rounding=ROUND_HALF_UP)


def quantize_rate(rate: Decimal) -> Decimal:
    """Round a rate to the stored scale, half up."""
    return rate.quantize(RATE_QUANTUM, rounding=ROUND_HALF_UP)


def divide_rate(numerator: Decimal, denominator: Decimal) -> Decimal:
    """Divide two rates and round the quotient to the stored scale."""
    return quantize_rate(numerator / denominator)


def invert_rate(rate: Decimal) -> Decimal:
    """Return 1 / rate at the stored scale."""
    return divide_rate(Decimal(1), rate)
