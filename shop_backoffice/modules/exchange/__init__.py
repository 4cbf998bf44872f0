# shop_backoffice/modules/exchange/__init__.py

"""
Exchange module package exports.

- valuation / settlement: pure rules (no Qt) for pricing and settling an exchange
- process_exchange: submit a validated payload, result as an ActionResult
- ExchangeDialog: the operator-facing dialog
"""

from .actions import process_exchange
from .dialog import ExchangeDialog
from .settlement import PaymentEntry, Settlement, build_exchange_payload, settle, validate_exchange
from .valuation import ExchangeValuation, NewItem, ReturnLine, value_exchange
from .voucher import VoucherOutcome, deliver_voucher, fetch_voucher

__all__ = [
    # actions
    "process_exchange",
    # rules
    "ExchangeValuation",
    "NewItem",
    "ReturnLine",
    "value_exchange",
    "PaymentEntry",
    "Settlement",
    "settle",
    "validate_exchange",
    "build_exchange_payload",
    # voucher
    "VoucherOutcome",
    "fetch_voucher",
    "deliver_voucher",
    # UI
    "ExchangeDialog",
]
