from __future__ import annotations

import logging
from functools import partial
from typing import Callable, Dict, Optional

from PySide6.QtCore import Qt, Signal
from PySide6.QtWidgets import (
    QCheckBox,
    QComboBox,
    QDialog,
    QDoubleSpinBox,
    QFormLayout,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QPushButton,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
    QWidget,
)

from ...constants import INSTALLMENT_PAYMENT_METHODS, PAYMENT_METHODS
from ...errors import ReconciliationError, ValidationError
from ...repositories.installments_repo import CustomerDebtSummary, InstallmentsRepo
from ...utils.helpers import fmt_date, fmt_money
from ...utils.ui_helpers import confirm, error, info
from ...utils.worker import run_async
from ..actions import ActionResult
from .actions import receive_bulk_payment
from .debt import (
    Selection,
    build_bulk_payment,
    clear_selection,
    has_pending,
    pay_all_payload,
    seed_selection,
    select_all,
    set_amount,
    summarize,
    toggle,
)

_log = logging.getLogger(__name__)


def _ro_item(text: str, align_right: bool = False) -> QTableWidgetItem:
    it = QTableWidgetItem(text)
    it.setFlags(it.flags() & ~Qt.ItemIsEditable)
    if align_right:
        it.setTextAlignment(Qt.AlignRight | Qt.AlignVCenter)
    return it


class CustomerDebtPaymentDialog(QDialog):
    """
    Pay a customer's open installments in one go.

    Every unpaid installment starts selected for its full remaining balance;
    the operator can deselect rows or lower the amounts. "Pay all" ignores the
    selection and lets the server settle everything that is open.
    """

    paid = Signal(str)

    COLS = ["", "Installment", "Due", "Value", "Remaining", "Amount to pay"]

    def __init__(
        self,
        parent=None,
        *,
        customer_id: str,
        repo: InstallmentsRepo,
        customer_name: Optional[str] = None,
        runner: Callable = run_async,
    ):
        super().__init__(parent)
        self.customer_id = str(customer_id)
        self.repo = repo
        self._runner = runner
        self.setWindowTitle(f"Receive Payment — {customer_name or 'Customer ' + self.customer_id}")
        self.setModal(True)

        self._summary = CustomerDebtSummary()
        self._selection: Selection = seed_selection(())
        self._row_widgets: Dict[str, tuple] = {}
        self._active = True
        self._submitting = False
        self._job = None
        self._load_job = None

        self._build_ui()
        self._update_totals()
        self.load()
        self.resize(820, 560)

    # ---- UI ----

    def _build_ui(self) -> None:
        outer = QVBoxLayout(self)
        self.body = QWidget()
        lay = QVBoxLayout(self.body)
        lay.setContentsMargins(0, 0, 0, 0)
        outer.addWidget(self.body, 1)

        header = QHBoxLayout()
        self.lbl_total_debt = QLabel("Total debt: 0.00")
        self.lbl_overdue = QLabel("")
        self.lbl_overdue.setStyleSheet("color:#a22;")
        header.addWidget(self.lbl_total_debt)
        header.addSpacing(16)
        header.addWidget(self.lbl_overdue)
        header.addStretch(1)
        lay.addLayout(header)

        self.tbl = QTableWidget(0, len(self.COLS))
        self.tbl.setHorizontalHeaderLabels(self.COLS)
        self.tbl.verticalHeader().setVisible(False)
        lay.addWidget(self.tbl, 1)

        sel_row = QHBoxLayout()
        self.btn_select_all = QPushButton("Select all")
        self.btn_clear = QPushButton("Clear")
        self.btn_select_all.clicked.connect(self.select_all)
        self.btn_clear.clicked.connect(self.clear_selection)
        self.lbl_selected = QLabel("")
        self.lbl_to_pay = QLabel("")
        self.lbl_to_pay.setStyleSheet("font-weight:600;")
        sel_row.addWidget(self.btn_select_all)
        sel_row.addWidget(self.btn_clear)
        sel_row.addStretch(1)
        sel_row.addWidget(self.lbl_selected)
        sel_row.addSpacing(16)
        sel_row.addWidget(self.lbl_to_pay)
        lay.addLayout(sel_row)

        form = QFormLayout()
        self.cmb_method = QComboBox()
        for code in INSTALLMENT_PAYMENT_METHODS:
            self.cmb_method.addItem(PAYMENT_METHODS.get(code, code), code)
        self.edt_notes = QLineEdit()
        self.edt_notes.setPlaceholderText("Notes (optional)")
        form.addRow("Payment method", self.cmb_method)
        form.addRow("Notes", self.edt_notes)
        lay.addLayout(form)

        self.lbl_error = QLabel("")
        self.lbl_error.setStyleSheet("color:#a22;")
        self.lbl_error.setWordWrap(True)
        outer.addWidget(self.lbl_error)

        buttons = QHBoxLayout()
        self.btn_pay_all = QPushButton("Pay all")
        self.btn_pay_selected = QPushButton("Pay selected")
        self.btn_close = QPushButton("Close")
        self.btn_pay_selected.setDefault(True)
        self.btn_pay_all.clicked.connect(self.pay_all)
        self.btn_pay_selected.clicked.connect(self.pay_selected)
        self.btn_close.clicked.connect(self.reject)
        buttons.addWidget(self.btn_pay_all)
        buttons.addStretch(1)
        buttons.addWidget(self.btn_close)
        buttons.addWidget(self.btn_pay_selected)
        outer.addLayout(buttons)

    # ---- state ----

    @property
    def selection(self) -> Selection:
        return self._selection

    @property
    def summary(self) -> CustomerDebtSummary:
        return self._summary

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def is_submitting(self) -> bool:
        return self._submitting

    def payment_method(self) -> str:
        return self.cmb_method.currentData()

    # ---- loading ----

    def load(self) -> None:
        repo, cid = self.repo, self.customer_id
        self._load_job = self._runner(lambda: repo.customer_summary(cid), self._on_loaded, self._on_load_failed)

    def _on_loaded(self, summary: CustomerDebtSummary) -> None:
        self._load_job = None
        if not self._active:
            return
        self._summary = summary
        self._selection = seed_selection(summary.installments)
        self.lbl_total_debt.setText(f"Total debt: {fmt_money(summary.total_debt)}")
        if summary.overdue_installments:
            self.lbl_overdue.setText(
                f"{summary.overdue_installments} overdue ({fmt_money(summary.overdue_amount)})"
            )
        else:
            self.lbl_overdue.setText("")
        self._reload_table()

    def _on_load_failed(self, err: BaseException) -> None:
        self._load_job = None
        if not self._active:
            return
        msg = err.message if isinstance(err, ReconciliationError) else "Could not load the customer's debts."
        _log.warning("Debt summary for customer %s failed: %s", self.customer_id, err)
        self._show_error(msg)

    def _reload_table(self) -> None:
        rows = [i for i in self._summary.installments if i.id in self._selection]
        self._row_widgets = {}
        self.tbl.setRowCount(len(rows))
        for r, inst in enumerate(rows):
            entry = self._selection[inst.id]
            chk = QCheckBox()
            chk.setChecked(entry.selected)
            chk.toggled.connect(partial(self._on_toggled, inst.id))
            self.tbl.setCellWidget(r, 0, chk)
            self.tbl.setItem(r, 1, _ro_item(f"{inst.installment_number}/{inst.total_installments}"))
            self.tbl.setItem(r, 2, _ro_item(fmt_date(inst.due_date)))
            self.tbl.setItem(r, 3, _ro_item(fmt_money(inst.amount), True))
            self.tbl.setItem(r, 4, _ro_item(fmt_money(inst.remaining_amount), True))
            spin = QDoubleSpinBox()
            spin.setDecimals(2)
            spin.setRange(0.0, entry.remaining)
            spin.setValue(entry.amount)
            spin.setEnabled(entry.selected)
            spin.valueChanged.connect(partial(self.set_amount, inst.id))
            self.tbl.setCellWidget(r, 5, spin)
            self._row_widgets[inst.id] = (chk, spin)
        self.tbl.resizeColumnsToContents()
        self._update_totals()

    def _sync_rows(self) -> None:
        for key, (chk, spin) in self._row_widgets.items():
            entry = self._selection.get(key)
            if entry is None:
                continue
            for w in (chk, spin):
                w.blockSignals(True)
            chk.setChecked(entry.selected)
            spin.setValue(entry.amount)
            spin.setEnabled(entry.selected)
            for w in (chk, spin):
                w.blockSignals(False)

    def _update_totals(self) -> None:
        totals = summarize(self._selection)
        self.lbl_selected.setText(
            f"{totals.selected_count} selected of {fmt_money(totals.total_remaining)} remaining"
        )
        self.lbl_to_pay.setText(f"To pay: {fmt_money(totals.total_to_pay)}")
        self.btn_pay_all.setEnabled(has_pending(self._selection) and not self._submitting)
        self.btn_pay_selected.setEnabled(totals.total_to_pay > 0 and not self._submitting)

    # ---- selection ----

    def _on_toggled(self, installment_id: str, _checked: bool) -> None:
        self.toggle(installment_id)

    def toggle(self, installment_id: str) -> None:
        self._selection = toggle(self._selection, installment_id)
        self._sync_rows()
        self._update_totals()

    def set_amount(self, installment_id: str, value: float) -> None:
        self._selection = set_amount(self._selection, installment_id, value)
        self._sync_rows()
        self._update_totals()

    def select_all(self) -> None:
        self._selection = select_all(self._selection)
        self._sync_rows()
        self._update_totals()

    def clear_selection(self) -> None:
        self._selection = clear_selection(self._selection)
        self._sync_rows()
        self._update_totals()

    # ---- submission ----

    def pay_selected(self) -> bool:
        if self._submitting or not self._active:
            return False
        try:
            payload = build_bulk_payment(self._selection, self.payment_method(), self.edt_notes.text())
        except ValidationError as e:
            self._show_error(e.message)
            return False
        self._submit(payload)
        return True

    def pay_all(self) -> bool:
        if self._submitting or not self._active:
            return False
        try:
            payload = pay_all_payload(self.payment_method(), self.edt_notes.text(), has_pending(self._selection))
        except ValidationError as e:
            self._show_error(e.message)
            return False
        total = summarize(self._selection).total_remaining
        if not confirm(self, "Pay all", f"Settle every open installment ({fmt_money(total)})?"):
            return False
        self._submit(payload)
        return True

    def _submit(self, payload: dict) -> None:
        self._clear_error()
        self._set_busy(True)
        repo, cid = self.repo, self.customer_id
        self._job = self._runner(
            lambda: receive_bulk_payment(repo=repo, customer_id=cid, payload=payload),
            self._on_paid,
            self._on_pay_crashed,
        )

    def _on_paid(self, res: ActionResult) -> None:
        self._job = None
        if not self._active:
            _log.info("Bulk payment response for customer %s arrived after its dialog closed", self.customer_id)
            return
        self._set_busy(False)
        if not res.success:
            self._show_failure(res.message)
            if res.stale:
                self.load()
            return
        info(self, "Payment", res.message)
        self.paid.emit(self.customer_id)
        self.accept()

    def _on_pay_crashed(self, err: BaseException) -> None:
        self._job = None
        _log.error("Bulk payment for customer %s failed: %r", self.customer_id, err)
        if not self._active:
            return
        self._set_busy(False)
        self._show_failure("Unexpected error while recording the payment.")

    def _show_failure(self, msg: str) -> None:
        self._show_error(msg)
        error(self, "Payment", msg)

    def _set_busy(self, busy: bool) -> None:
        self._submitting = busy
        self.body.setEnabled(not busy)
        self.btn_pay_selected.setText("Processing…" if busy else "Pay selected")
        self._update_totals()

    def _show_error(self, msg: str) -> None:
        self.lbl_error.setText(msg)

    def _clear_error(self) -> None:
        self.lbl_error.setText("")

    def done(self, result: int) -> None:  # type: ignore[override]
        self._active = False
        super().done(result)
