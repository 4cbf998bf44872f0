"""
utils/worker.py

Run a network submission off the UI thread and hand the outcome back through
Qt signals, so the slots execute on the thread that owns the dialog.

Public interface
----------------
- run_async(work, on_success, on_failure, pool=None) -> SubmitJob

`work` is a zero-argument callable. Its return value goes to on_success; any
exception it raises goes to on_failure (nothing is swallowed here).
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from PySide6.QtCore import QObject, QRunnable, QThreadPool, Signal, Slot

from ..errors import ReconciliationError

_log = logging.getLogger(__name__)


class _JobSignals(QObject):
    succeeded = Signal(object)
    failed = Signal(object)


class SubmitJob(QRunnable):
    """
    Thin QRunnable wrapper that executes a callable and always emits exactly
    one of `succeeded` / `failed`.
    """
    def __init__(self, work: Callable[[], Any]) -> None:
        super().__init__()
        self.setAutoDelete(False)
        self._work = work
        self.signals = _JobSignals()

    @Slot()
    def run(self) -> None:  # type: ignore[override]
        try:
            result = self._work()
        except ReconciliationError as e:
            self.signals.failed.emit(e)
            return
        except Exception as e:  # unexpected: log with traceback, still report to the UI
            _log.exception("Background submission crashed")
            self.signals.failed.emit(e)
            return
        self.signals.succeeded.emit(result)


def run_async(
    work: Callable[[], Any],
    on_success: Callable[[Any], None],
    on_failure: Callable[[BaseException], None],
    pool: Optional[QThreadPool] = None,
) -> SubmitJob:
    """Start `work` on the pool. Keep the returned job referenced until it reports back."""
    job = SubmitJob(work)
    job.signals.succeeded.connect(on_success)
    job.signals.failed.connect(on_failure)
    (pool or QThreadPool.globalInstance()).start(job)
    return job
