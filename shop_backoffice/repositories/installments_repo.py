from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..utils.money import to_number
from .http import ApiClient


@dataclass(frozen=True)
class Installment:
    id: str
    amount: float
    remaining_amount: float
    due_date: Optional[str] = None
    installment_number: int = 1
    total_installments: int = 1
    customer_name: Optional[str] = None

    @classmethod
    def from_api(cls, row: Dict[str, Any]) -> "Installment":
        customer = row.get("customer") or {}
        return cls(
            id=str(row["id"]),
            amount=to_number(row.get("amount")),
            remaining_amount=to_number(row.get("remainingAmount")),
            due_date=row.get("dueDate"),
            installment_number=int(to_number(row.get("installmentNumber")) or 1),
            total_installments=int(to_number(row.get("totalInstallments")) or 1),
            customer_name=customer.get("name"),
        )

    @property
    def paid_amount(self) -> float:
        return max(0.0, self.amount - self.remaining_amount)


@dataclass(frozen=True)
class CustomerDebtSummary:
    total_debt: float = 0.0
    total_installments: int = 0
    overdue_installments: int = 0
    overdue_amount: float = 0.0
    installments: tuple[Installment, ...] = ()

    @classmethod
    def from_api(cls, data: Optional[Dict[str, Any]]) -> "CustomerDebtSummary":
        if not data:
            return cls()
        return cls(
            total_debt=to_number(data.get("totalDebt")),
            total_installments=int(to_number(data.get("totalInstallments"))),
            overdue_installments=int(to_number(data.get("overdueInstallments"))),
            overdue_amount=to_number(data.get("overdueAmount")),
            installments=tuple(Installment.from_api(r) for r in data.get("installments") or []),
        )


def _message(data: Any) -> Optional[str]:
    if isinstance(data, dict):
        return data.get("message") or None
    return None


class InstallmentsRepo:
    def __init__(self, api: ApiClient):
        self.api = api

    def get(self, installment_id: str) -> Installment:
        return Installment.from_api(self.api.get(f"/installment/{installment_id}"))

    def customer_summary(self, customer_id: str) -> CustomerDebtSummary:
        return CustomerDebtSummary.from_api(self.api.get(f"/installment/customer/{customer_id}/summary"))

    def pay_bulk(self, customer_id: str, payload: dict) -> Optional[str]:
        """
        Itemized ({installments: [...]}) or pay-all ({payAll: true}) payment.
        Returns the server's confirmation message, if any.
        """
        return _message(self.api.post(f"/installment/customer/{customer_id}/pay/bulk", payload))

    def pay(self, installment_id: str, payload: dict) -> Optional[str]:
        return _message(self.api.post(f"/installment/{installment_id}/pay", payload))
