"""
Ledger unit helpers.

Amounts travel as decimal strings of winston (10^-12 AR). These helpers
convert between AR and winston without relying on floats.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_DOWN
from typing import Any

from permaweave.core.constants import WINSTON_DECIMALS, WINSTON_PER_AR
from permaweave.core.exceptions import InvalidQuantityError

_QUANTIZER = Decimal(f"1e-{WINSTON_DECIMALS}")


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise InvalidQuantityError("Amount must be int, str, or Decimal")
    if isinstance(value, (int, float, str)):
        return Decimal(str(value).strip())
    raise InvalidQuantityError("Amount must be int, str, or Decimal")


def parse_winston(value: Any) -> int:
    """Parse a winston amount into an int.

    Fractional winston is truncated. Raises InvalidQuantityError for values
    that are not finite numbers.
    """
    try:
        dec = _to_decimal(value)
    except InvalidOperation as exc:
        raise InvalidQuantityError(f"Invalid winston amount: {value!r}") from exc

    if not dec.is_finite():
        raise InvalidQuantityError(f"Invalid winston amount: {value!r}")

    return int(dec.to_integral_value(rounding=ROUND_DOWN))


def is_positive_quantity(value: Any) -> bool:
    """Return True when ``value`` parses to a winston amount greater than zero."""
    if value is None or value == "":
        return False
    try:
        return parse_winston(value) > 0
    except InvalidQuantityError:
        return False


def ar_to_winston(value: Any) -> str:
    """Convert an AR amount to a winston string."""
    try:
        dec = _to_decimal(value)
    except InvalidOperation as exc:
        raise InvalidQuantityError(f"Invalid AR amount: {value!r}") from exc
    if not dec.is_finite():
        raise InvalidQuantityError(f"Invalid AR amount: {value!r}")
    winston = (dec * Decimal(WINSTON_PER_AR)).to_integral_value(rounding=ROUND_DOWN)
    return f"{winston:f}"


def winston_to_ar(value: Any) -> Decimal:
    """Convert a winston amount to a Decimal AR amount."""
    return (Decimal(parse_winston(value)) / Decimal(WINSTON_PER_AR)).quantize(
        _QUANTIZER, rounding=ROUND_DOWN
    )
