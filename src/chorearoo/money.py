"""Utilities for working with monetary values in Chorearoo."""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

AmountLike = Union[Decimal, int, float, str]


def to_decimal(value: AmountLike) -> Decimal:
    """Convert ``value`` to a :class:`~decimal.Decimal` with two decimal places."""

    if isinstance(value, bool):
        raise TypeError(f"Unsupported amount type: {type(value)!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip().lstrip("$")
        if not text:
            raise ValueError("Amount must not be empty.")
        try:
            result = Decimal(text)
        except ArithmeticError as exc:
            raise ValueError(f"Amount '{value}' is not a number.") from exc
    else:
        raise TypeError(f"Unsupported amount type: {type(value)!r}")

    if not result.is_finite():
        raise ValueError("Amount must be a finite number.")
    return result.quantize(CENT, rounding=ROUND_HALF_UP)


def require_positive(amount: Decimal, *, allow_zero: bool = False) -> Decimal:
    """Ensure ``amount`` is positive (or non-negative when ``allow_zero`` is true)."""

    if allow_zero:
        if amount < Decimal("0"):
            raise ValueError("Amount must be zero or greater.")
    else:
        if amount <= Decimal("0"):
            raise ValueError("Amount must be greater than zero.")
    return amount


def to_cents(amount: AmountLike) -> int:
    """Return ``amount`` as an integer number of cents for storage."""

    return int(to_decimal(amount) * 100)


def from_cents(cents: int | None) -> Decimal:
    """Return a stored cent value as a two-place :class:`~decimal.Decimal`."""

    return (Decimal(int(cents or 0)) / 100).quantize(CENT)


def format_currency(amount: Decimal) -> str:
    """Return ``amount`` as a currency formatted string (e.g. ``$12.34``)."""

    quantized = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    if quantized < 0:
        return f"-${-quantized:,.2f}"
    return f"${quantized:,.2f}"
