from __future__ import annotations

import logging
from typing import Optional

from ...errors import ReconciliationError
from ...repositories.installments_repo import InstallmentsRepo
from ...utils.loggers import get_audit_logger, log_event
from ..actions import ActionResult, failed

_log = logging.getLogger(__name__)


# ======================= Actions: Bulk payment ===============================

def receive_bulk_payment(
    *,
    repo: InstallmentsRepo,
    customer_id: str,
    payload: dict,
    audit: Optional[logging.Logger] = None,
) -> ActionResult:
    """
    POST a payload from debt.build_bulk_payment or debt.pay_all_payload.
    Worker-safe; failures are returned, not raised.
    """
    audit = audit or get_audit_logger()
    extra = {
        "customer_id": customer_id,
        "pay_all": bool(payload.get("payAll")),
        "items": len(payload.get("installments") or []),
    }
    log_event(audit, "bulk_payment", "submitted", "Bulk installment payment submitted", extra)
    try:
        message = repo.pay_bulk(customer_id, payload)
    except ReconciliationError as e:
        log_event(audit, "bulk_payment", "rejected", e.message, extra, level=logging.WARNING)
        return failed(e, payload)
    log_event(audit, "bulk_payment", "accepted", message or "Payments recorded", extra)
    return ActionResult(success=True, id=str(customer_id), message=message or "Payments recorded.", payload=payload)


# ======================= Actions: Single installment =========================

def receive_installment_payment(
    *,
    repo: InstallmentsRepo,
    installment_id: str,
    payload: dict,
    audit: Optional[logging.Logger] = None,
) -> ActionResult:
    audit = audit or get_audit_logger()
    extra = {"installment_id": installment_id, "amount": payload.get("amount")}
    log_event(audit, "installment_payment", "submitted", "Installment payment submitted", extra)
    try:
        message = repo.pay(installment_id, payload)
    except ReconciliationError as e:
        log_event(audit, "installment_payment", "rejected", e.message, extra, level=logging.WARNING)
        return failed(e, payload)
    log_event(audit, "installment_payment", "accepted", message or "Payment recorded", extra)
    _log.info("Installment %s paid %.2f", installment_id, payload["amount"])
    return ActionResult(success=True, id=installment_id, message=message or "Payment recorded.", payload=payload)
