from __future__ import annotations

from typing import Optional

from ...constants import INSTALLMENT_PAYMENT_METHODS
from ...errors import ValidationError
from ...repositories.installments_repo import Installment
from ...utils.money import round_currency
from ...utils.validators import clean_text

MODE_FULL = "full"
MODE_PARTIAL = "partial"


def default_amount(installment: Installment, mode: str) -> float:
    """Full mode pre-fills the remaining balance; partial starts empty."""
    if mode == MODE_FULL:
        return round_currency(installment.remaining_amount)
    return 0.0


def validate_single_payment(amount: float, remaining: float) -> float:
    value = round_currency(amount)
    if value <= 0:
        raise ValidationError("The amount must be greater than zero.")
    if value > round_currency(remaining):
        raise ValidationError("The amount cannot exceed the remaining balance.")
    return value


def build_single_payment(
    installment: Installment,
    amount: float,
    payment_method: str,
    notes: Optional[str] = None,
) -> dict:
    if payment_method not in INSTALLMENT_PAYMENT_METHODS:
        raise ValidationError(f"Unsupported payment method: {payment_method!r}.")
    payload: dict = {
        "amount": validate_single_payment(amount, installment.remaining_amount),
        "paymentMethod": payment_method,
    }
    cleaned = clean_text(notes)
    if cleaned:
        payload["notes"] = cleaned
    return payload
