from __future__ import annotations

from typing import Optional

GENERIC_NETWORK_MESSAGE = "Could not reach the server. Check your connection and try again."
GENERIC_REMOTE_MESSAGE = "The server rejected the operation."


# Domain-level errors the dialogs can surface directly (message box / inline label)
class ReconciliationError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ReconciliationError, ValueError):
    """Local, pre-submission failure. Never reaches the network."""


class NetworkError(ReconciliationError):
    """The request could not complete (connectivity, timeout)."""

    def __init__(self, message: str = GENERIC_NETWORK_MESSAGE):
        super().__init__(message)


class BusinessRuleError(ReconciliationError):
    """
    The remote system refused the operation after submission.

    Recoverable: callers refetch current state and let the operator resubmit.
    """

    def __init__(
        self,
        message: str = GENERIC_REMOTE_MESSAGE,
        *,
        status: Optional[int] = None,
        code: Optional[str] = None,
    ):
        super().__init__(message)
        self.status = status
        self.code = code
