from __future__ import annotations

import logging
from typing import Optional

from ...errors import ReconciliationError
from ...repositories.exchanges_repo import ExchangesRepo
from ...utils.loggers import get_audit_logger, log_event
from ..actions import ActionResult, failed

_log = logging.getLogger(__name__)


def process_exchange(
    *,
    repo: ExchangesRepo,
    payload: dict,
    audit: Optional[logging.Logger] = None,
) -> ActionResult:
    """
    Submit a payload built by settlement.build_exchange_payload.

    Network and business-rule failures come back as a failed ActionResult;
    the created ExchangeResult travels in ``payload`` on success. Safe to run
    on a worker thread.
    """
    audit = audit or get_audit_logger()
    sale_id = payload.get("originalSaleId")
    log_event(audit, "exchange", "submitted", "Exchange submitted", {"sale_id": sale_id})
    try:
        result = repo.submit(payload)
    except ReconciliationError as e:
        log_event(
            audit, "exchange", "rejected", e.message,
            {"sale_id": sale_id, "error": type(e).__name__}, level=logging.WARNING,
        )
        return failed(e, payload)

    log_event(
        audit, "exchange", "accepted", "Exchange processed",
        {"sale_id": sale_id, "exchange_id": result.id, "store_credit": result.store_credit_amount},
    )
    _log.info("Exchange %s processed for sale %s", result.id, sale_id)
    return ActionResult(success=True, id=result.id, message="Exchange processed.", payload=result)
