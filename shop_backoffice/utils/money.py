"""
utils/money.py

Cents-precision helpers shared by every reconciliation component.

- round_currency():  half-up rounding to 2 places (Decimal based, deterministic)
- monetary_equals(): tolerance comparison; never compare raw float sums with ==
- to_number():       the single adapter for loosely-typed money coming from the API

Pure functions; no Qt, no network.
"""
from __future__ import annotations

import logging
import math
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable

from ..constants import CURRENCY_PLACES, MONEY_TOLERANCE

__all__ = [
    "round_currency",
    "monetary_equals",
    "to_number",
    "clamp",
    "sum_money",
]

_log = logging.getLogger(__name__)

_CENTS = Decimal(1).scaleb(-CURRENCY_PLACES)  # Decimal("0.01")


def round_currency(x: float) -> float:
    """
    Round to cents using **half-up**.

    The float goes through str() first: that yields the shortest repr, so a
    value stored as 1.00499999... is read back as "1.005" and rounds to 1.01,
    and 19.999999999 rounds to 20.00.
    """
    try:
        dec = Decimal(str(x))
    except (InvalidOperation, ValueError, TypeError):
        return 0.0
    if not dec.is_finite():
        return 0.0
    return float(dec.quantize(_CENTS, rounding=ROUND_HALF_UP))


def monetary_equals(a: float, b: float, tol: float = MONEY_TOLERANCE) -> bool:
    """abs(a - b) <= tol, measured in whole cents."""
    return round_currency(abs(a - b)) <= tol


def clamp(x: float, lo: float, hi: float) -> float:
    if x < lo:
        return lo
    if x > hi:
        return hi
    return x


def sum_money(values: Iterable[float]) -> float:
    return round_currency(sum(values, 0.0))


def to_number(value: Any) -> float:
    """
    Normalize a monetary value from the server.

    Accepts numbers, numeric strings and decimal-like objects (anything with
    a ``to_number()`` method or ``__float__``). None becomes 0.0. Anything
    else is logged and becomes 0.0 so bad server data is visible in the logs.
    """
    if value is None:
        return 0.0
    try:
        if isinstance(value, (int, float)):
            num = float(value)
        elif isinstance(value, str):
            text = value.strip()
            num = float(text) if text else 0.0
        elif callable(getattr(value, "to_number", None)):
            num = float(value.to_number())
        else:
            num = float(value)
    except (TypeError, ValueError, ArithmeticError) as e:
        _log.warning("to_number: malformed monetary value %r (%s); using 0", value, e)
        return 0.0
    if math.isnan(num) or math.isinf(num):
        _log.warning("to_number: non-finite monetary value %r; using 0", value)
        return 0.0
    return num
