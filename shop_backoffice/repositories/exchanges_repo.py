from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..errors import BusinessRuleError
from ..utils.money import to_number
from .http import ApiClient


@dataclass(frozen=True)
class ExchangeResult:
    id: str
    store_credit_amount: float = 0.0
    has_voucher: bool = False
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "ExchangeResult":
        return cls(
            id=str(data["id"]),
            store_credit_amount=to_number(data.get("storeCreditAmount")),
            has_voucher=bool(data.get("storeCreditVoucherData")),
            raw=dict(data),
        )

    @property
    def issued_store_credit(self) -> bool:
        return self.store_credit_amount > 0


class ExchangesRepo:
    def __init__(self, api: ApiClient):
        self.api = api

    def submit(self, payload: dict) -> ExchangeResult:
        """
        POST a fully validated exchange. The server applies it atomically or
        rejects it (BusinessRuleError).
        """
        data = self.api.post("/sale/exchange", payload)
        if not isinstance(data, dict) or data.get("id") is None:
            raise BusinessRuleError("The server did not confirm the exchange.")
        return ExchangeResult.from_api(data)

    def print_credit_voucher(self, exchange_id: str) -> Optional[str]:
        """Printable store-credit voucher content, or None if the server printed it itself."""
        data = self.api.post(f"/sale/exchange/{exchange_id}/print-credit-voucher")
        if isinstance(data, dict):
            return data.get("content") or None
        return None
