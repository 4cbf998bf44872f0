from __future__ import annotations

import logging
from typing import Callable, Optional

from PySide6.QtCore import Signal
from PySide6.QtWidgets import (
    QButtonGroup,
    QComboBox,
    QDialog,
    QDialogButtonBox,
    QDoubleSpinBox,
    QFormLayout,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QRadioButton,
    QVBoxLayout,
    QWidget,
)

from ...constants import INSTALLMENT_PAYMENT_METHODS, PAYMENT_METHODS
from ...errors import ValidationError
from ...repositories.installments_repo import Installment, InstallmentsRepo
from ...utils.helpers import fmt_date, fmt_money
from ...utils.ui_helpers import error, info
from ...utils.worker import run_async
from ..actions import ActionResult
from .actions import receive_installment_payment
from .payment import MODE_FULL, MODE_PARTIAL, build_single_payment, default_amount

_log = logging.getLogger(__name__)


class InstallmentPaymentDialog(QDialog):
    """Pay one installment, either its whole remaining balance or a part of it."""

    paid = Signal(str)

    def __init__(
        self,
        parent=None,
        *,
        installment: Installment,
        repo: InstallmentsRepo,
        runner: Callable = run_async,
    ):
        super().__init__(parent)
        self.installment = installment
        self.repo = repo
        self._runner = runner
        self._active = True
        self._submitting = False
        self._job = None
        self._reload_job = None
        self.setWindowTitle(
            f"Pay Installment {installment.installment_number}/{installment.total_installments}"
        )
        self.setModal(True)

        outer = QVBoxLayout(self)
        self.body = QWidget()
        form = QFormLayout(self.body)
        form.setContentsMargins(0, 0, 0, 0)
        outer.addWidget(self.body)

        if installment.customer_name:
            form.addRow("Customer", QLabel(installment.customer_name))
        form.addRow("Due", QLabel(fmt_date(installment.due_date)))
        form.addRow("Value", QLabel(fmt_money(installment.amount)))
        self.lbl_paid = QLabel(fmt_money(installment.paid_amount))
        form.addRow("Paid", self.lbl_paid)
        self.lbl_remaining = QLabel(fmt_money(installment.remaining_amount))
        self.lbl_remaining.setStyleSheet("font-weight:600;")
        form.addRow("Remaining", self.lbl_remaining)

        mode_row = QHBoxLayout()
        self.rb_full = QRadioButton("Full payment")
        self.rb_partial = QRadioButton("Partial payment")
        self._modes = QButtonGroup(self)
        self._modes.addButton(self.rb_full)
        self._modes.addButton(self.rb_partial)
        mode_row.addWidget(self.rb_full)
        mode_row.addWidget(self.rb_partial)
        mode_row.addStretch(1)
        form.addRow("Mode", mode_row)

        self.spin_amount = QDoubleSpinBox()
        self.spin_amount.setDecimals(2)
        self.spin_amount.setRange(0.0, max(0.0, installment.remaining_amount))
        form.addRow("Amount", self.spin_amount)

        self.cmb_method = QComboBox()
        for code in INSTALLMENT_PAYMENT_METHODS:
            self.cmb_method.addItem(PAYMENT_METHODS.get(code, code), code)
        form.addRow("Payment method", self.cmb_method)

        self.edt_notes = QLineEdit()
        self.edt_notes.setPlaceholderText("Notes (optional)")
        form.addRow("Notes", self.edt_notes)

        self.lbl_error = QLabel("")
        self.lbl_error.setStyleSheet("color:#a22;")
        self.lbl_error.setWordWrap(True)
        outer.addWidget(self.lbl_error)

        bb = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel)
        self.btn_ok = bb.button(QDialogButtonBox.Ok)
        self.btn_ok.setText("Confirm Payment")
        self.btn_ok.clicked.connect(self.submit)
        bb.rejected.connect(self.reject)
        outer.addWidget(bb)

        self.rb_full.toggled.connect(self._on_mode_changed)
        self.rb_full.setChecked(True)

    @property
    def mode(self) -> str:
        return MODE_FULL if self.rb_full.isChecked() else MODE_PARTIAL

    @property
    def is_submitting(self) -> bool:
        return self._submitting

    def _on_mode_changed(self, _checked: bool) -> None:
        self.spin_amount.setValue(default_amount(self.installment, self.mode))
        # full mode pays exactly the remaining balance
        self.spin_amount.setReadOnly(self.mode == MODE_FULL)
        self.lbl_error.setText("")

    def submit(self) -> bool:
        if self._submitting or not self._active:
            return False
        try:
            payload = build_single_payment(
                self.installment,
                self.spin_amount.value(),
                self.cmb_method.currentData(),
                self.edt_notes.text(),
            )
        except ValidationError as e:
            self.lbl_error.setText(e.message)
            return False

        self.lbl_error.setText("")
        self._set_busy(True)
        repo, iid = self.repo, self.installment.id
        self._job = self._runner(
            lambda: receive_installment_payment(repo=repo, installment_id=iid, payload=payload),
            self._on_paid,
            self._on_crashed,
        )
        return True

    def _on_paid(self, res: ActionResult) -> None:
        self._job = None
        if not self._active:
            return
        self._set_busy(False)
        if not res.success:
            self._show_failure(res.message)
            if res.stale:
                self.reload_installment()
            return
        info(self, "Payment", res.message)
        self.paid.emit(self.installment.id)
        self.accept()

    def _on_crashed(self, err: BaseException) -> None:
        self._job = None
        _log.error("Installment %s payment failed: %r", self.installment.id, err)
        if not self._active:
            return
        self._set_busy(False)
        self._show_failure("Unexpected error while recording the payment.")

    def _show_failure(self, msg: str) -> None:
        self.lbl_error.setText(msg)
        error(self, "Payment", msg)

    # ---- refresh after a rejection ----

    def reload_installment(self) -> None:
        """Refetch the installment so the balance and amount limits match the server."""
        repo, iid = self.repo, self.installment.id
        self._reload_job = self._runner(lambda: repo.get(iid), self._on_installment_reloaded, self._on_reload_failed)

    def _on_installment_reloaded(self, installment: Installment) -> None:
        self._reload_job = None
        if not self._active:
            return
        self.installment = installment
        self.lbl_paid.setText(fmt_money(installment.paid_amount))
        self.lbl_remaining.setText(fmt_money(installment.remaining_amount))
        self.spin_amount.setRange(0.0, max(0.0, installment.remaining_amount))
        if self.mode == MODE_FULL:
            self.spin_amount.setValue(default_amount(installment, MODE_FULL))

    def _on_reload_failed(self, err: BaseException) -> None:
        self._reload_job = None
        _log.warning("Could not refresh installment %s: %s", self.installment.id, err)

    def _set_busy(self, busy: bool) -> None:
        self._submitting = busy
        self.body.setEnabled(not busy)
        self.btn_ok.setEnabled(not busy)
        self.btn_ok.setText("Processing…" if busy else "Confirm Payment")

    def done(self, result: int) -> None:  # type: ignore[override]
        self._active = False
        super().done(result)
