from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..constants import MIN_PRODUCT_QUERY_LENGTH, PRODUCT_SEARCH_LIMIT
from ..utils.money import to_number
from .http import ApiClient


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    price: float
    stock_quantity: int
    barcode: Optional[str] = None

    @classmethod
    def from_api(cls, row: Dict[str, Any]) -> "Product":
        return cls(
            id=str(row["id"]),
            name=str(row.get("name") or ""),
            price=to_number(row.get("price")),
            stock_quantity=int(to_number(row.get("stockQuantity"))),
            barcode=row.get("barcode"),
        )


class ProductsRepo:
    def __init__(self, api: ApiClient):
        self.api = api

    def search(self, query: str, page: int = 1, limit: int = PRODUCT_SEARCH_LIMIT) -> List[Product]:
        """
        Free-text product search. Queries shorter than MIN_PRODUCT_QUERY_LENGTH
        return [] without touching the server.
        """
        term = (query or "").strip()
        if len(term) < MIN_PRODUCT_QUERY_LENGTH:
            return []
        data = self.api.get("/product", params={"search": term, "page": page, "limit": limit})
        # The endpoint has answered with {products: []}, {data: []} and a bare list.
        if isinstance(data, dict):
            rows = data.get("products") or data.get("data") or []
        else:
            rows = data or []
        if not isinstance(rows, list):
            return []
        return [Product.from_api(r) for r in rows]
