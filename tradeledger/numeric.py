"""Decimal helpers shared by the registry, the ledger and the store."""

from decimal import ROUND_HALF_EVEN, Decimal
from typing import Union

Number = Union[Decimal, int, float, str]

# Monetary values are persisted with 8 fractional digits.
STORAGE_QUANTUM = Decimal("0.00000001")


def to_decimal(value: Number) -> Decimal:
    """Convert a number to Decimal without binary float artifacts.

    Floats go through ``str`` so that ``0.01`` becomes ``Decimal('0.01')``
    rather than its exact binary expansion.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def quantize(value: Decimal) -> Decimal:
    """Round to storage precision (8 places, banker's rounding)."""
    return value.quantize(STORAGE_QUANTUM, rounding=ROUND_HALF_EVEN)


def format_storage(value: Decimal) -> str:
    """Format a value the way it is written to the database."""
    return f"{quantize(value):.8f}"


def format_money(value: Decimal, signed: bool = False) -> str:
    """Format a value for display with two decimals and a dollar sign."""
    sign = ""
    if value < 0:
        sign = "-"
    elif signed:
        sign = "+"
    return f"{sign}${abs(value):,.2f}"
