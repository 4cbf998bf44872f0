# tests/conftest.py
# ---------------------------------------------------------------------
# Ground rules:
# - pytest-qt owns QApplication (use qapp/qtbot fixtures)
# - No network: repositories are replaced by in-memory fakes
# - Background submissions run through a synchronous (or deferred) runner
# - Message boxes never block; every call is recorded
# - The audit log is written under tmp_path, never into the repo
# - Silence benign Qt signal warnings
# ---------------------------------------------------------------------

from __future__ import annotations

import logging
import os
import re
from typing import Any, Callable, Dict, List, Optional

# Run headless when no display is available.
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PySide6 import QtCore
from PySide6.QtWidgets import QMessageBox

from shop_backoffice.constants import AUDIT_LOG_FILE
from shop_backoffice.repositories.exchanges_repo import ExchangeResult
from shop_backoffice.repositories.installments_repo import CustomerDebtSummary, Installment
from shop_backoffice.repositories.products_repo import Product
from shop_backoffice.repositories.sales_repo import ReturnedItem, Sale, SaleExchange, SaleItem
from shop_backoffice.utils.loggers import get_audit_logger


# ---------- Qt: let pytest-qt own the app ----------
@pytest.fixture(scope="session")
def app(qapp):  # alias to match code that expects an `app` fixture
    return qapp


# ---------- Silence benign Qt warnings ----------
_BENIGN_QT_PATTERNS = [
    r"^QObject::connect: .* already connected",
    r"^QObject::disconnect: Unexpected null parameter",
    r"^QBasicTimer::stop: Failed\. Platform timer not running\.",
]

@pytest.fixture(autouse=True, scope="session")
def _silence_benign_qt():
    """Filter common harmless Qt messages during tests."""
    original = QtCore.qInstallMessageHandler(None)
    rx = [re.compile(p) for p in _BENIGN_QT_PATTERNS]

    def handler(msg_type, context, message):
        text = str(message)
        for r in rx:
            if r.search(text):
                return  # swallow benign messages
        QtCore.qInstallMessageHandler(None)
        try:
            QtCore.qDebug(message)
        finally:
            QtCore.qInstallMessageHandler(handler)

    QtCore.qInstallMessageHandler(handler)
    try:
        yield
    finally:
        QtCore.qInstallMessageHandler(original)


# ---------- Audit log under tmp_path ----------
@pytest.fixture(autouse=True)
def audit_log_path(tmp_path):
    """Point the shared audit logger at tmp_path for the duration of a test."""
    logger = logging.getLogger("shop_backoffice.audit")
    saved = logger.handlers[:]
    for h in saved:
        logger.removeHandler(h)
    get_audit_logger(tmp_path)
    try:
        yield tmp_path / AUDIT_LOG_FILE
    finally:
        for h in logger.handlers[:]:
            h.close()
            logger.removeHandler(h)
        for h in saved:
            logger.addHandler(h)


# ---------- Message boxes ----------
class MessageBoxSpy:
    def __init__(self) -> None:
        self.calls: List[tuple] = []
        self.answer = QMessageBox.Yes

    def kinds(self) -> List[str]:
        return [c[0] for c in self.calls]

    def texts(self, kind: Optional[str] = None) -> List[str]:
        return [c[2] for c in self.calls if kind is None or c[0] == kind]


@pytest.fixture(autouse=True)
def message_boxes(monkeypatch) -> MessageBoxSpy:
    spy = MessageBoxSpy()

    def _record(kind: str):
        def fake(parent, title, text, *args, **kwargs):
            spy.calls.append((kind, title, text))
            return spy.answer if kind == "question" else QMessageBox.Ok
        return fake

    for kind in ("information", "critical", "warning", "question"):
        monkeypatch.setattr(QMessageBox, kind, _record(kind))
    return spy


# ---------- Runners ----------
def run_now(work: Callable[[], Any], on_success: Callable, on_failure: Callable):
    """Synchronous stand-in for utils.worker.run_async."""
    try:
        result = work()
    except Exception as e:  # mirror SubmitJob: every failure goes to on_failure
        on_failure(e)
        return None
    on_success(result)
    return None


class DeferredRunner:
    """Queue jobs; the test decides when (and whether) they report back."""

    def __init__(self) -> None:
        self.jobs: List[tuple] = []

    def __call__(self, work, on_success, on_failure):
        self.jobs.append((work, on_success, on_failure))
        return object()

    @property
    def pending(self) -> int:
        return len(self.jobs)

    def finish(self, index: int = -1) -> None:
        work, on_success, on_failure = self.jobs.pop(index)
        run_now(work, on_success, on_failure)


@pytest.fixture
def sync_runner():
    return run_now


@pytest.fixture
def deferred_runner() -> DeferredRunner:
    return DeferredRunner()


# ---------- Fake repositories ----------
class FakeSalesRepo:
    def __init__(self, sales: Dict[str, Sale]):
        self.sales = dict(sales)
        self.calls: List[str] = []

    def get(self, sale_id: str) -> Sale:
        self.calls.append(sale_id)
        return self.sales[sale_id]


class FakeProductsRepo:
    def __init__(self, products: List[Product]):
        self.products = list(products)
        self.queries: List[str] = []

    def search(self, query: str, page: int = 1, limit: int = 10) -> List[Product]:
        self.queries.append(query)
        term = query.strip().lower()
        return [p for p in self.products if term in p.name.lower()][:limit]


class FakeExchangesRepo:
    def __init__(self, result: Optional[ExchangeResult] = None, error: Optional[Exception] = None):
        self.result = result or ExchangeResult(id="ex-1")
        self.error = error
        self.submitted: List[dict] = []
        self.voucher_content: Optional[str] = "STORE CREDIT VOUCHER"
        self.voucher_error: Optional[Exception] = None
        self.voucher_requests: List[str] = []

    def submit(self, payload: dict) -> ExchangeResult:
        self.submitted.append(payload)
        if self.error is not None:
            raise self.error
        return self.result

    def print_credit_voucher(self, exchange_id: str) -> Optional[str]:
        self.voucher_requests.append(exchange_id)
        if self.voucher_error is not None:
            raise self.voucher_error
        return self.voucher_content


class FakeInstallmentsRepo:
    def __init__(self, summary: CustomerDebtSummary, error: Optional[Exception] = None):
        self.summary = summary
        self.error = error
        self.summary_calls: List[str] = []
        self.bulk: List[tuple] = []
        self.single: List[tuple] = []
        self.get_calls: List[str] = []

    def get(self, installment_id: str) -> Installment:
        self.get_calls.append(installment_id)
        return next(i for i in self.summary.installments if i.id == installment_id)

    def customer_summary(self, customer_id: str) -> CustomerDebtSummary:
        self.summary_calls.append(customer_id)
        return self.summary

    def pay_bulk(self, customer_id: str, payload: dict) -> Optional[str]:
        self.bulk.append((customer_id, payload))
        if self.error is not None:
            raise self.error
        return "Payments recorded."

    def pay(self, installment_id: str, payload: dict) -> Optional[str]:
        self.single.append((installment_id, payload))
        if self.error is not None:
            raise self.error
        return "Payment recorded."


# ---------- Sample data ----------
def make_sale(sale_id: str = "S1", exchanges=()) -> Sale:
    """
    Two lines: 2 × shirt @ 50.00 and 3 × socks @ 10.00 (total 130.00).
    """
    return Sale(
        id=sale_id,
        items=(
            SaleItem(id="i1", product_id="p-shirt", quantity=2, unit_price=50.0, product_name="Shirt"),
            SaleItem(id="i2", product_id="p-socks", quantity=3, unit_price=10.0, product_name="Socks"),
        ),
        exchanges=tuple(exchanges),
        customer_name="Maria",
        total=130.0,
    )


def prior_exchange(sale_item_id: str, product_id: str, quantity: int) -> SaleExchange:
    return SaleExchange(returned_items=(ReturnedItem(sale_item_id, product_id, quantity),))


def make_installment(iid: str, remaining: float, amount: Optional[float] = None, number: int = 1) -> Installment:
    return Installment(
        id=iid,
        amount=remaining if amount is None else amount,
        remaining_amount=remaining,
        due_date="2024-05-10T00:00:00.000Z",
        installment_number=number,
        total_installments=3,
        customer_name="Maria",
    )


def make_summary(*installments: Installment) -> CustomerDebtSummary:
    return CustomerDebtSummary(
        total_debt=sum(i.remaining_amount for i in installments),
        total_installments=len(installments),
        installments=tuple(installments),
    )


@pytest.fixture
def sale() -> Sale:
    return make_sale()


@pytest.fixture
def products() -> List[Product]:
    return [
        Product(id="p-jeans", name="Jeans", price=40.0, stock_quantity=5, barcode="789001"),
        Product(id="p-cap", name="Cap", price=15.0, stock_quantity=1),
        Product(id="p-belt", name="Belt", price=25.0, stock_quantity=0),
    ]
