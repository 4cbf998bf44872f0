from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from ..errors import BusinessRuleError, ReconciliationError


@dataclass
class ActionResult:
    success: bool
    id: Optional[str] = None          # created exchange id / paid installment id
    message: Optional[str] = None     # user-facing message
    payload: Optional[Any] = None     # submitted payload or server result
    error: Optional[ReconciliationError] = None

    @property
    def stale(self) -> bool:
        """True when the server rejected the request against newer data; refetch before retrying."""
        return isinstance(self.error, BusinessRuleError)


def failed(error: ReconciliationError, payload: Any = None) -> ActionResult:
    return ActionResult(success=False, message=error.message, payload=payload, error=error)
