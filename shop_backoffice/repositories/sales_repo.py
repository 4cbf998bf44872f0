from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..utils.money import to_number
from .http import ApiClient


@dataclass(frozen=True)
class SaleItem:
    id: str
    product_id: str
    quantity: int
    unit_price: float
    product_name: str = ""

    @classmethod
    def from_api(cls, row: Dict[str, Any]) -> "SaleItem":
        product = row.get("product") or {}
        return cls(
            id=str(row["id"]),
            product_id=str(row.get("productId") or product.get("id") or ""),
            quantity=int(to_number(row.get("quantity"))),
            unit_price=to_number(row.get("unitPrice")),
            product_name=str(row.get("productName") or product.get("name") or ""),
        )


@dataclass(frozen=True)
class ReturnedItem:
    sale_item_id: str
    product_id: str
    quantity: int

    @classmethod
    def from_api(cls, row: Dict[str, Any]) -> "ReturnedItem":
        return cls(
            sale_item_id=str(row.get("saleItemId") or ""),
            product_id=str(row.get("productId") or ""),
            quantity=int(to_number(row.get("quantity"))),
        )

    def to_payload(self) -> dict:
        return {
            "saleItemId": self.sale_item_id,
            "productId": self.product_id,
            "quantity": self.quantity,
        }


@dataclass(frozen=True)
class SaleExchange:
    returned_items: tuple[ReturnedItem, ...] = ()

    @classmethod
    def from_api(cls, row: Dict[str, Any]) -> "SaleExchange":
        return cls(returned_items=tuple(ReturnedItem.from_api(r) for r in row.get("returnedItems") or []))


@dataclass(frozen=True)
class Sale:
    id: str
    items: tuple[SaleItem, ...] = ()
    exchanges: tuple[SaleExchange, ...] = ()
    customer_name: Optional[str] = None
    total: float = 0.0

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Sale":
        customer = data.get("customer") or {}
        return cls(
            id=str(data["id"]),
            items=tuple(SaleItem.from_api(r) for r in data.get("items") or []),
            exchanges=tuple(SaleExchange.from_api(r) for r in data.get("exchanges") or []),
            customer_name=customer.get("name") or data.get("clientName"),
            total=to_number(data.get("total")),
        )


class SalesRepo:
    def __init__(self, api: ApiClient):
        self.api = api

    def get(self, sale_id: str) -> Sale:
        """Fetch a sale with its items and prior exchanges."""
        return Sale.from_api(self.api.get(f"/sale/{sale_id}"))
