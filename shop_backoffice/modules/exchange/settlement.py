"""
modules/exchange/settlement.py

Match the valuation difference with concrete instruments.

  difference >  ε  → customer pays: Σ payments must equal the difference (± ε)
  difference < −ε  → shop refunds:
                       direct refund   Σ refunds must equal |difference| (± ε)
                       store credit    Σ refunds ≤ |difference|; the rest becomes credit
  |difference| ≤ ε → neutral, nothing required

Validation stops at the first failure (ValidationError). Pure functions; the
dialog only renders what these return.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional, Sequence, Tuple

from ...constants import DEFAULT_PAYMENT_METHOD, MIN_REASON_LENGTH, MONEY_TOLERANCE, PAYMENT_METHODS
from ...errors import ValidationError
from ...repositories.sales_repo import Sale
from ...utils.helpers import fmt_money, new_entry_id
from ...utils.money import monetary_equals, round_currency, sum_money
from ...utils.validators import clean_text, has_min_length
from .valuation import ExchangeValuation, NewItem

__all__ = [
    "PaymentEntry",
    "Settlement",
    "add_entry",
    "update_entry",
    "remove_entry",
    "entries_total",
    "store_credit_preview",
    "settle",
    "validate_exchange",
    "build_exchange_payload",
]

KIND_RECEIVE = "receive"
KIND_REFUND = "refund"
KIND_NEUTRAL = "neutral"


@dataclass(frozen=True)
class PaymentEntry:
    """One payment (customer → shop) or refund (shop → customer) row."""
    id: str
    method: str = DEFAULT_PAYMENT_METHOD
    amount: float = 0.0
    note: Optional[str] = None

    def to_payload(self) -> dict:
        out = {"method": self.method, "amount": round_currency(self.amount)}
        info = clean_text(self.note)
        if info:
            out["additionalInfo"] = info
        return out


@dataclass(frozen=True)
class Settlement:
    kind: str
    amount_to_receive: float = 0.0
    amount_to_refund: float = 0.0
    payments_total: float = 0.0
    refunds_total: float = 0.0
    store_credit: float = 0.0


# -----------------------------
# Entry list transitions
# -----------------------------

def add_entry(entries: Sequence[PaymentEntry], method: str = DEFAULT_PAYMENT_METHOD) -> Tuple[PaymentEntry, ...]:
    return tuple(entries) + (PaymentEntry(id=new_entry_id(), method=method, amount=0.0),)


def update_entry(entries: Sequence[PaymentEntry], entry_id: str, **changes) -> Tuple[PaymentEntry, ...]:
    """
    Replace fields of one entry. Amounts are kept at cents and never negative;
    unknown methods are refused.
    """
    if "method" in changes and changes["method"] not in PAYMENT_METHODS:
        raise ValidationError(f"Unknown payment method: {changes['method']!r}.")
    if "amount" in changes:
        changes["amount"] = max(0.0, round_currency(changes["amount"]))
    return tuple(replace(e, **changes) if e.id == entry_id else e for e in entries)


def remove_entry(entries: Sequence[PaymentEntry], entry_id: str) -> Tuple[PaymentEntry, ...]:
    return tuple(e for e in entries if e.id != entry_id)


def entries_total(entries: Sequence[PaymentEntry]) -> float:
    return sum_money(e.amount for e in entries)


# -----------------------------
# Settlement
# -----------------------------

def store_credit_preview(
    difference: float,
    refunds: Sequence[PaymentEntry],
    issue_store_credit: bool,
    tolerance: float = MONEY_TOLERANCE,
) -> float:
    """Credit that would be issued right now (0 unless refunding in credit mode)."""
    if difference >= -tolerance or not issue_store_credit:
        return 0.0
    return round_currency(max(0.0, round_currency(-difference) - entries_total(refunds)))


def settle(
    difference: float,
    payments: Sequence[PaymentEntry] = (),
    refunds: Sequence[PaymentEntry] = (),
    issue_store_credit: bool = False,
    tolerance: float = MONEY_TOLERANCE,
) -> Settlement:
    """Check the instruments against the difference; raises ValidationError on mismatch."""
    payments_total = entries_total(payments)
    refunds_total = entries_total(refunds)

    if difference > tolerance:
        due = round_currency(difference)
        if not payments:
            raise ValidationError("Add the payment methods used to receive the difference.")
        if not monetary_equals(payments_total, due, tolerance):
            raise ValidationError(
                f"Payments total ({fmt_money(payments_total)}) does not match "
                f"the amount due ({fmt_money(due)})."
            )
        return Settlement(KIND_RECEIVE, amount_to_receive=due, payments_total=payments_total)

    if difference < -tolerance:
        owed = round_currency(-difference)
        if issue_store_credit:
            if refunds_total > owed:
                raise ValidationError(
                    f"Refunds ({fmt_money(refunds_total)}) cannot exceed "
                    f"the amount to refund ({fmt_money(owed)})."
                )
            credit = round_currency(max(0.0, owed - refunds_total))
            return Settlement(
                KIND_REFUND, amount_to_refund=owed, refunds_total=refunds_total, store_credit=credit
            )
        if not refunds:
            raise ValidationError("Add the refund methods used to return the difference.")
        if not monetary_equals(refunds_total, owed, tolerance):
            raise ValidationError(
                f"Refunds total ({fmt_money(refunds_total)}) does not match "
                f"the amount to refund ({fmt_money(owed)})."
            )
        return Settlement(KIND_REFUND, amount_to_refund=owed, refunds_total=refunds_total)

    return Settlement(KIND_NEUTRAL, payments_total=payments_total, refunds_total=refunds_total)


def validate_exchange(
    sale: Optional[Sale],
    valuation: ExchangeValuation,
    reason: str,
    payments: Sequence[PaymentEntry] = (),
    refunds: Sequence[PaymentEntry] = (),
    issue_store_credit: bool = False,
) -> Settlement:
    """
    Full pre-submission check, first failure wins:
      sale loaded → at least one returned item → reason length → money.
    """
    if sale is None:
        raise ValidationError("Sale not found.")
    if not valuation.has_returns:
        raise ValidationError("Select at least one item to return.")
    if not has_min_length(reason, MIN_REASON_LENGTH):
        raise ValidationError(f"Enter a reason with at least {MIN_REASON_LENGTH} characters.")
    return settle(valuation.difference, payments, refunds, issue_store_credit)


def build_exchange_payload(
    sale: Sale,
    valuation: ExchangeValuation,
    reason: str,
    note: Optional[str] = None,
    new_items: Sequence[NewItem] = (),
    payments: Sequence[PaymentEntry] = (),
    refunds: Sequence[PaymentEntry] = (),
    issue_store_credit: bool = False,
) -> dict:
    """
    Validate and assemble the exchange submission. Optional sections are
    omitted rather than sent empty; inside the tolerance band no money
    section is sent at all, matching what settle() accepted.
    """
    validate_exchange(sale, valuation, reason, payments, refunds, issue_store_credit)

    payload: dict = {
        "originalSaleId": sale.id,
        "reason": reason.strip(),
        "returnedItems": [line.to_returned_item().to_payload() for line in valuation.returned_items],
    }
    cleaned_note = clean_text(note)
    if cleaned_note:
        payload["note"] = cleaned_note

    delivered = [n for n in new_items if n.quantity > 0]
    if delivered:
        payload["newItems"] = [n.to_payload() for n in delivered]

    if valuation.difference > MONEY_TOLERANCE and payments:
        payload["payments"] = [p.to_payload() for p in payments]

    if valuation.difference < -MONEY_TOLERANCE:
        if refunds:
            payload["refunds"] = [r.to_payload() for r in refunds]
        if issue_store_credit:
            payload["issueStoreCredit"] = True

    return payload
