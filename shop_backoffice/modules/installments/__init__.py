# shop_backoffice/modules/installments/__init__.py

from .actions import receive_bulk_payment, receive_installment_payment
from .debt import DebtTotals, SelectionEntry, seed_selection, summarize
from .debt_payment_dialog import CustomerDebtPaymentDialog
from .payment import MODE_FULL, MODE_PARTIAL, build_single_payment
from .payment_dialog import InstallmentPaymentDialog

__all__ = [
    "receive_bulk_payment",
    "receive_installment_payment",
    "SelectionEntry",
    "DebtTotals",
    "seed_selection",
    "summarize",
    "MODE_FULL",
    "MODE_PARTIAL",
    "build_single_payment",
    "CustomerDebtPaymentDialog",
    "InstallmentPaymentDialog",
]
