"""
modules/exchange/valuation.py

Return/exchange valuation:

    returned_total  = Σ unit_price × qty_return      (qty clamped to what is still returnable)
    delivered_total = Σ unit_price × qty             (new items handed to the customer)
    difference      = delivered_total − returned_total
                      > 0  customer pays the shop
                      < 0  shop refunds the customer (or issues store credit)

Also holds the pure transitions for the "new items" list of the exchange
dialog. Nothing here touches Qt or the network.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple

from ...errors import ValidationError
from ...repositories.products_repo import Product
from ...repositories.sales_repo import ReturnedItem, SaleExchange, SaleItem
from ...utils.money import round_currency

__all__ = [
    "NewItem",
    "ReturnLine",
    "ExchangeValuation",
    "already_returned_map",
    "max_returnable",
    "clamp_return_quantity",
    "set_return_quantity",
    "value_exchange",
    "add_product",
    "set_new_item_quantity",
    "set_new_item_price",
    "remove_new_item",
]


# -----------------------------
# Types
# -----------------------------

@dataclass(frozen=True)
class NewItem:
    product_id: str
    name: str
    quantity: int
    unit_price: float
    stock_quantity: Optional[int] = None
    barcode: Optional[str] = None

    @property
    def line_total(self) -> float:
        return round_currency(self.unit_price * self.quantity)

    def to_payload(self) -> dict:
        return {
            "productId": self.product_id,
            "quantity": self.quantity,
            "unitPrice": round_currency(self.unit_price),
        }


@dataclass(frozen=True)
class ReturnLine:
    sale_item_id: str
    product_id: str
    quantity: int
    unit_price: float

    @property
    def line_total(self) -> float:
        return round_currency(self.unit_price * self.quantity)

    def to_returned_item(self) -> ReturnedItem:
        return ReturnedItem(self.sale_item_id, self.product_id, self.quantity)


@dataclass(frozen=True)
class ExchangeValuation:
    returned_items: Tuple[ReturnLine, ...]
    returned_total: float
    delivered_total: float
    difference: float

    @property
    def has_returns(self) -> bool:
        return bool(self.returned_items)

    @property
    def amount_to_receive(self) -> float:
        return self.difference if self.difference > 0 else 0.0

    @property
    def amount_to_refund(self) -> float:
        return round_currency(-self.difference) if self.difference < 0 else 0.0


# -----------------------------
# Returned quantities
# -----------------------------

def already_returned_map(exchanges: Iterable[SaleExchange]) -> Dict[str, int]:
    """Sum of quantities already returned per sale item across prior exchanges."""
    out: Dict[str, int] = {}
    for ex in exchanges or ():
        for item in ex.returned_items:
            if item.sale_item_id:
                out[item.sale_item_id] = out.get(item.sale_item_id, 0) + int(item.quantity)
    return out


def max_returnable(item: SaleItem, already_returned: int = 0) -> int:
    return max(0, int(item.quantity) - int(already_returned or 0))


def clamp_return_quantity(value: float, maximum: int) -> int:
    """floor(value) clamped into [0, maximum]."""
    try:
        qty = math.floor(float(value))
    except (TypeError, ValueError, OverflowError):
        qty = 0
    return min(max(0, qty), max(0, int(maximum)))


def set_return_quantity(
    quantities: Mapping[str, int],
    item: SaleItem,
    value: float,
    already_returned: int = 0,
) -> Dict[str, int]:
    """New quantity map with `item` set to the clamped value."""
    updated = dict(quantities)
    updated[item.id] = clamp_return_quantity(value, max_returnable(item, already_returned))
    return updated


# -----------------------------
# Valuation
# -----------------------------

def value_exchange(
    sale_items: Sequence[SaleItem],
    returned_quantities: Mapping[str, float],
    new_items: Sequence[NewItem] = (),
    already_returned: Optional[Mapping[str, int]] = None,
) -> ExchangeValuation:
    """
    Compute returned/delivered totals and their signed difference.

    Requested return quantities are clamped again here; callers may pass raw
    user input. Items that end up at 0 are left out of the result.
    """
    already = already_returned or {}
    lines = []
    returned_sum = 0.0
    for item in sale_items:
        requested = returned_quantities.get(item.id, 0)
        qty = clamp_return_quantity(requested, max_returnable(item, already.get(item.id, 0)))
        if qty <= 0:
            continue
        lines.append(ReturnLine(item.id, item.product_id, qty, item.unit_price))
        returned_sum += item.unit_price * qty

    delivered_sum = 0.0
    for n in new_items:
        if n.quantity <= 0:
            continue
        delivered_sum += n.unit_price * n.quantity

    returned_total = round_currency(returned_sum)
    delivered_total = round_currency(delivered_sum)
    return ExchangeValuation(
        returned_items=tuple(lines),
        returned_total=returned_total,
        delivered_total=delivered_total,
        difference=round_currency(delivered_total - returned_total),
    )


# -----------------------------
# New items (delivered in exchange)
# -----------------------------

def add_product(items: Sequence[NewItem], product: Product) -> Tuple[NewItem, ...]:
    """
    Add one unit of `product`. A product already in the list gets +1, capped
    at its stock.
    """
    if product.stock_quantity <= 0:
        raise ValidationError("Product has no stock available.")

    out = []
    found = False
    for n in items:
        if n.product_id == product.id:
            found = True
            n = replace(
                n,
                quantity=min(n.quantity + 1, product.stock_quantity),
                stock_quantity=product.stock_quantity,
            )
        out.append(n)
    if not found:
        out.append(NewItem(
            product_id=product.id,
            name=product.name,
            quantity=1,
            unit_price=round_currency(product.price),
            stock_quantity=product.stock_quantity,
            barcode=product.barcode,
        ))
    return tuple(out)


def set_new_item_quantity(items: Sequence[NewItem], product_id: str, value: float) -> Tuple[NewItem, ...]:
    """Quantity is floored and kept within [1, stock]."""
    out = []
    for n in items:
        if n.product_id == product_id:
            cap = n.stock_quantity if n.stock_quantity is not None else math.inf
            try:
                qty = math.floor(float(value))
            except (TypeError, ValueError, OverflowError):
                qty = 1
            n = replace(n, quantity=int(max(1, min(qty, cap))))
        out.append(n)
    return tuple(out)


def set_new_item_price(items: Sequence[NewItem], product_id: str, value: float) -> Tuple[NewItem, ...]:
    out = []
    for n in items:
        if n.product_id == product_id:
            n = replace(n, unit_price=max(0.0, round_currency(value)))
        out.append(n)
    return tuple(out)


def remove_new_item(items: Sequence[NewItem], product_id: str) -> Tuple[NewItem, ...]:
    return tuple(n for n in items if n.product_id != product_id)
