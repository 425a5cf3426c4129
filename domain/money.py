"""
Domain: Monetary values.

All monetary amounts are fixed-point Decimals with two places, rounded
half-up. Floats never enter the arithmetic; values coming from the outside
(JSON numbers, database numerics) are converted through `str` first.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def to_money(value: Any) -> Decimal:
    """
    Convert a value to a 2-place Decimal.

    Raises:
        ValueError: If the value is not a finite number.
    """

    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value))
        except InvalidOperation:
            raise ValueError(f"Not a monetary amount: {value!r}") from None

    if not amount.is_finite():
        raise ValueError(f"Not a monetary amount: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_rate(value: Any) -> Decimal:
    """Convert a percentage rate to Decimal without rounding it."""

    if isinstance(value, Decimal):
        rate = value
    else:
        try:
            rate = Decimal(str(value))
        except InvalidOperation:
            raise ValueError(f"Not a rate: {value!r}") from None
    if not rate.is_finite():
        raise ValueError(f"Not a rate: {value!r}")
    return rate


def clamp_rate(rate: Decimal) -> Decimal:
    """Clamp a percentage rate into [0, 100]."""

    if rate < 0:
        return Decimal("0")
    if rate > HUNDRED:
        return HUNDRED
    return rate


def percentage_of(amount: Decimal, rate: Decimal) -> Decimal:
    """`amount * rate / 100`, rounded to cents."""

    return to_money(amount * rate / HUNDRED)


__all__ = [
    "CENT",
    "ZERO",
    "HUNDRED",
    "to_money",
    "to_rate",
    "clamp_rate",
    "percentage_of",
]
