# utils/helpers.py
import logging
import uuid
from typing import Optional, Union

NumberLike = Union[float, int, str]

_log = logging.getLogger(__name__)


def new_entry_id() -> str:
    """Client-side id for a payment/refund row that has not been submitted yet."""
    return uuid.uuid4().hex


def fmt_money(
    v: NumberLike,
    places: int = 2,
    *,
    strict: bool = False,
    sentinel: Optional[str] = None,
) -> str:
    """
    Format a number as money with thousands separators and a fixed number of decimals.

    Behavior on parse failure:
      - By default returns str(v).
      - If `sentinel` is provided (e.g., "N/A"), returns that sentinel instead.
      - If `strict=True`, raises ValueError.
    """
    try:
        x = float(v)
    except (TypeError, ValueError) as e:
        _log.debug("fmt_money: failed to parse %r as float: %s", v, e)
        if strict:
            raise ValueError(f"Could not parse {v!r} as a number.") from e
        return str(sentinel) if sentinel is not None else str(v)
    return f"{x:,.{places}f}"


def fmt_date(value: Optional[str]) -> str:
    """ISO timestamp/date -> YYYY-MM-DD for display; '-' when missing."""
    if not value:
        return "-"
    return str(value)[:10]
