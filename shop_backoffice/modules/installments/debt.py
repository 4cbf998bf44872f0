"""
modules/installments/debt.py

Customer debt aggregation and bulk payment allocation.

Selection model: an immutable mapping  installment_id -> SelectionEntry.
Every transition (toggle / set_amount / select_all / clear_selection) returns
a NEW mapping; the source installments are never touched.

Aggregates are always derived from the current mapping:
  total_remaining  Σ remaining over every unpaid installment (ignores selection)
  selected_count   number of selected entries
  total_to_pay     Σ amount over selected entries, rounded to cents
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional

from ...constants import INSTALLMENT_PAYMENT_METHODS
from ...errors import ValidationError
from ...repositories.installments_repo import Installment
from ...utils.money import clamp, round_currency, sum_money, to_number
from ...utils.validators import clean_text

__all__ = [
    "SelectionEntry",
    "DebtTotals",
    "seed_selection",
    "summarize",
    "total_remaining",
    "selected_count",
    "total_to_pay",
    "has_pending",
    "toggle",
    "set_amount",
    "select_all",
    "clear_selection",
    "build_payload",
    "validate_payload",
    "build_bulk_payment",
    "pay_all_payload",
]


@dataclass(frozen=True)
class SelectionEntry:
    selected: bool
    amount: float
    remaining: float


Selection = Mapping[str, SelectionEntry]


@dataclass(frozen=True)
class DebtTotals:
    total_remaining: float
    selected_count: int
    total_to_pay: float


def _freeze(entries: Dict[str, SelectionEntry]) -> Selection:
    return MappingProxyType(entries)


# -----------------------------
# Aggregator
# -----------------------------

def seed_selection(installments: Iterable[Installment]) -> Selection:
    """Every unpaid installment starts selected for its full remaining balance."""
    entries: Dict[str, SelectionEntry] = {}
    for inst in installments:
        remaining = to_number(inst.remaining_amount)
        if remaining <= 0:
            continue
        entries[inst.id] = SelectionEntry(selected=True, amount=round_currency(remaining), remaining=remaining)
    return _freeze(entries)


def total_remaining(selection: Selection) -> float:
    return sum_money(e.remaining for e in selection.values())


def selected_count(selection: Selection) -> int:
    return sum(1 for e in selection.values() if e.selected)


def total_to_pay(selection: Selection) -> float:
    return sum_money(e.amount for e in selection.values() if e.selected)


def has_pending(selection: Selection) -> bool:
    return any(e.remaining > 0 for e in selection.values())


def summarize(selection: Selection) -> DebtTotals:
    return DebtTotals(
        total_remaining=total_remaining(selection),
        selected_count=selected_count(selection),
        total_to_pay=total_to_pay(selection),
    )


# -----------------------------
# Allocator transitions
# -----------------------------

def toggle(selection: Selection, installment_id: str) -> Selection:
    """Flip `selected`; the edited amount is kept so re-selecting restores it."""
    current = selection.get(installment_id)
    if current is None:
        return selection
    entries = dict(selection)
    entries[installment_id] = replace(current, selected=not current.selected)
    return _freeze(entries)


def set_amount(selection: Selection, installment_id: str, value: float) -> Selection:
    """Amount is clamped to [0, remaining] and rounded to cents."""
    current = selection.get(installment_id)
    if current is None:
        return selection
    entries = dict(selection)
    amount = round_currency(clamp(to_number(value), 0.0, current.remaining))
    entries[installment_id] = replace(current, amount=amount)
    return _freeze(entries)


def select_all(selection: Selection) -> Selection:
    """Select everything for full payoff (partial edits are reset)."""
    return _freeze({
        key: replace(e, selected=True, amount=round_currency(e.remaining))
        for key, e in selection.items()
    })


def clear_selection(selection: Selection) -> Selection:
    return _freeze({
        key: replace(e, selected=False, amount=0.0)
        for key, e in selection.items()
    })


# -----------------------------
# Payloads
# -----------------------------

def build_payload(selection: Selection) -> List[dict]:
    return [
        {"installmentId": key, "amount": round_currency(e.amount)}
        for key, e in selection.items()
        if e.selected and e.amount > 0
    ]


def validate_payload(selection: Selection) -> List[dict]:
    """Itemized payload, or ValidationError when nothing payable is selected."""
    items = build_payload(selection)
    if not items or total_to_pay(selection) <= 0:
        raise ValidationError("Select at least one installment with an amount greater than zero.")
    return items


def _check_method(method: str) -> None:
    if method not in INSTALLMENT_PAYMENT_METHODS:
        raise ValidationError(f"Unsupported payment method: {method!r}.")


def build_bulk_payment(selection: Selection, payment_method: str, notes: Optional[str] = None) -> dict:
    """Itemized bulk payment; raises ValidationError when nothing payable is selected."""
    _check_method(payment_method)
    items = validate_payload(selection)
    payload: dict = {"paymentMethod": payment_method, "installments": items}
    cleaned = clean_text(notes)
    if cleaned:
        payload["notes"] = cleaned
    return payload


def pay_all_payload(payment_method: str, notes: Optional[str] = None, pending: bool = True) -> dict:
    """
    Settle everything the customer owes; the server computes the exact amounts.
    """
    _check_method(payment_method)
    if not pending:
        raise ValidationError("This customer has no pending debts.")
    payload: dict = {"paymentMethod": payment_method, "payAll": True}
    cleaned = clean_text(notes)
    if cleaned:
        payload["notes"] = cleaned
    return payload
