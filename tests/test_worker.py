# tests/test_worker.py
from __future__ import annotations

from PySide6.QtCore import QThreadPool

from shop_backoffice.errors import BusinessRuleError
from shop_backoffice.utils.worker import run_async


def test_run_async_reports_success(qtbot):
    got, errors = [], []
    pool = QThreadPool()
    # the local keeps the job referenced until it reports back
    job = run_async(lambda: 41 + 1, got.append, errors.append, pool=pool)
    qtbot.waitUntil(lambda: bool(got or errors), timeout=3000)
    pool.waitForDone()
    assert got == [42]
    assert errors == []


def test_run_async_reports_failures(qtbot):
    got, errors = [], []

    def boom():
        raise BusinessRuleError("Sale already fully returned", status=409)

    pool = QThreadPool()
    job = run_async(boom, got.append, errors.append, pool=pool)
    qtbot.waitUntil(lambda: bool(errors), timeout=3000)
    pool.waitForDone()
    assert got == []
    assert isinstance(errors[0], BusinessRuleError)
    assert errors[0].status == 409


def test_run_async_unexpected_exception_still_reported(qtbot):
    errors = []
    pool = QThreadPool()
    job = run_async(lambda: 1 / 0, lambda _r: None, errors.append, pool=pool)
    qtbot.waitUntil(lambda: bool(errors), timeout=3000)
    pool.waitForDone()
    assert isinstance(errors[0], ZeroDivisionError)
