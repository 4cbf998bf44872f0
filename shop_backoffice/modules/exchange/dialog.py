from __future__ import annotations

import logging
from functools import partial
from typing import Callable, Dict, Optional

from PySide6.QtCore import Qt, QTimer, Signal
from PySide6.QtWidgets import (
    QAbstractItemView,
    QCheckBox,
    QComboBox,
    QDialog,
    QDialogButtonBox,
    QDoubleSpinBox,
    QFormLayout,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QListWidget,
    QListWidgetItem,
    QPushButton,
    QSpinBox,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
    QWidget,
)

from ...config import get_settings
from ...constants import MIN_PRODUCT_QUERY_LENGTH, MONEY_TOLERANCE, NON_SELECTABLE_METHODS, PAYMENT_METHODS
from ...errors import ReconciliationError, ValidationError
from ...repositories.exchanges_repo import ExchangeResult, ExchangesRepo
from ...repositories.products_repo import Product, ProductsRepo
from ...repositories.sales_repo import Sale, SalesRepo
from ...utils.helpers import fmt_money
from ...utils.ui_helpers import confirm, error, info
from ...utils.worker import run_async
from ..actions import ActionResult
from .actions import process_exchange
from .settlement import (
    PaymentEntry,
    add_entry,
    build_exchange_payload,
    entries_total,
    remove_entry,
    store_credit_preview,
    update_entry,
)
from .valuation import (
    ExchangeValuation,
    add_product,
    already_returned_map,
    max_returnable,
    remove_new_item,
    set_new_item_price,
    set_new_item_quantity,
    set_return_quantity,
    value_exchange,
)
from .voucher import deliver_voucher, fetch_voucher, print_voucher, voucher_failed, voucher_prompt, wants_voucher

_log = logging.getLogger(__name__)

PAYMENTS = "payments"
REFUNDS = "refunds"

_MONEY_MAX = 1_000_000_000.0


def _ro_item(text: str, align_right: bool = False) -> QTableWidgetItem:
    it = QTableWidgetItem(text)
    it.setFlags(it.flags() & ~Qt.ItemIsEditable)
    if align_right:
        it.setTextAlignment(Qt.AlignRight | Qt.AlignVCenter)
    return it


class ExchangeDialog(QDialog):
    """
    Exchange / return of items from a recorded sale.

    Totals shown in the footer:
      - Returned  Σ unit_price × qty_return (qty capped at what is still returnable)
      - Delivered Σ unit_price × qty of the new items
      - Difference delivered − returned: positive → receive, negative → refund/credit

    The dialog only collects input; valuation and settlement rules live in
    valuation.py / settlement.py. Submission and the voucher request run on a
    worker; until both are done every editing control is disabled, and a
    response that arrives after the dialog closed is ignored.
    """

    exchange_processed = Signal(object)

    def __init__(
        self,
        parent=None,
        *,
        sale: Sale,
        exchanges: ExchangesRepo,
        products: Optional[ProductsRepo] = None,
        sales: Optional[SalesRepo] = None,
        runner: Callable = run_async,
        print_content: Optional[Callable[[str], None]] = print_voucher,
        debounce_ms: Optional[int] = None,
    ):
        super().__init__(parent)
        self.setWindowTitle(f"Process Exchange — Sale {sale.id}")
        self.setModal(True)

        self._sale = sale
        self._exchanges = exchanges
        self._products = products
        self._sales = sales
        self._runner = runner
        self._print_content = print_content

        # state
        self._already: Dict[str, int] = already_returned_map(sale.exchanges)
        self._quantities: Dict[str, int] = {}
        self._new_items: tuple = ()
        self._entries: Dict[str, tuple] = {PAYMENTS: (), REFUNDS: ()}
        self._search_results: list[Product] = []
        self._qty_spins: Dict[str, QSpinBox] = {}
        self._new_widgets: Dict[str, tuple] = {}
        self._active = True
        self._submitting = False
        self._job = None
        self._search_job = None
        self._reload_job = None
        self._voucher_job = None
        self.result_exchange: Optional[ExchangeResult] = None

        self._build_ui()

        self._search_timer = QTimer(self)
        self._search_timer.setSingleShot(True)
        self._search_timer.setInterval(
            debounce_ms if debounce_ms is not None else get_settings().exchange_search_debounce_ms
        )
        self._search_timer.timeout.connect(self._run_search)
        self.edt_search.textChanged.connect(self._on_search_text)

        self._load_items()
        self._recalc()
        self.resize(1000, 720)

    # ------------------------------------------------------------------ #
    # UI
    # ------------------------------------------------------------------ #

    def _build_ui(self) -> None:
        outer = QVBoxLayout(self)

        # everything the operator can edit lives in body (disabled while submitting)
        self.body = QWidget()
        lay = QVBoxLayout(self.body)
        lay.setContentsMargins(0, 0, 0, 0)
        outer.addWidget(self.body, 1)

        form = QFormLayout()
        self.edt_reason = QLineEdit()
        self.edt_reason.setPlaceholderText("e.g. defective product, wrong size…")
        self.edt_note = QLineEdit()
        self.edt_note.setPlaceholderText("Internal notes (optional)")
        form.addRow("Reason", self.edt_reason)
        form.addRow("Notes", self.edt_note)
        lay.addLayout(form)

        # --- sale items ---
        box_items = QGroupBox("Sale items")
        items_lay = QVBoxLayout(box_items)
        self.tbl_items = QTableWidget(0, 7)
        self.tbl_items.setHorizontalHeaderLabels(
            ["Product", "Sold", "Returned", "Available", "Unit Price", "Qty Return", "Line Total"]
        )
        self.tbl_items.setSelectionBehavior(QAbstractItemView.SelectRows)
        self.tbl_items.verticalHeader().setVisible(False)
        items_lay.addWidget(self.tbl_items)
        self.chk_return_all = QCheckBox("Return everything still returnable")
        self.chk_return_all.toggled.connect(self._toggle_return_all)
        items_lay.addWidget(self.chk_return_all)
        lay.addWidget(box_items, 2)

        # --- new items ---
        box_new = QGroupBox("Items delivered to the customer")
        new_lay = QVBoxLayout(box_new)
        search_row = QHBoxLayout()
        self.edt_search = QLineEdit()
        self.edt_search.setPlaceholderText(f"Search products (min. {MIN_PRODUCT_QUERY_LENGTH} characters)…")
        self.btn_add_product = QPushButton("Add")
        self.btn_add_product.clicked.connect(self._add_selected_product)
        search_row.addWidget(self.edt_search, 1)
        search_row.addWidget(self.btn_add_product)
        new_lay.addLayout(search_row)
        self.lst_products = QListWidget()
        self.lst_products.setMaximumHeight(110)
        self.lst_products.itemDoubleClicked.connect(lambda _it: self._add_selected_product())
        new_lay.addWidget(self.lst_products)
        self.tbl_new = QTableWidget(0, 5)
        self.tbl_new.setHorizontalHeaderLabels(["Product", "Qty", "Unit Price", "Line Total", ""])
        self.tbl_new.verticalHeader().setVisible(False)
        new_lay.addWidget(self.tbl_new)
        lay.addWidget(box_new, 2)

        # --- totals ---
        totals = QHBoxLayout()
        self.lbl_returned = QLabel("0.00")
        self.lbl_delivered = QLabel("0.00")
        self.lbl_difference = QLabel("0.00")
        self.lbl_direction = QLabel("")
        totals.addWidget(QLabel("Returned:"))
        totals.addWidget(self.lbl_returned)
        totals.addSpacing(16)
        totals.addWidget(QLabel("Delivered:"))
        totals.addWidget(self.lbl_delivered)
        totals.addSpacing(16)
        totals.addWidget(QLabel("Difference:"))
        totals.addWidget(self.lbl_difference)
        totals.addSpacing(16)
        totals.addWidget(self.lbl_direction)
        totals.addStretch(1)
        lay.addLayout(totals)

        # --- payments (customer pays the difference) ---
        self.box_payments = QGroupBox("Receive from customer")
        pay_lay = QVBoxLayout(self.box_payments)
        self.tbl_payments = self._make_entries_table()
        pay_lay.addWidget(self.tbl_payments)
        pay_row = QHBoxLayout()
        self.btn_add_payment = QPushButton("Add payment")
        self.btn_add_payment.clicked.connect(partial(self._add_entry, PAYMENTS))
        self.lbl_payments_total = QLabel("Total: 0.00")
        pay_row.addWidget(self.btn_add_payment)
        pay_row.addStretch(1)
        pay_row.addWidget(self.lbl_payments_total)
        pay_lay.addLayout(pay_row)
        lay.addWidget(self.box_payments)

        # --- refunds (shop returns the difference) ---
        self.box_refunds = QGroupBox("Refund to customer")
        ref_lay = QVBoxLayout(self.box_refunds)
        self.chk_store_credit = QCheckBox("Issue store credit for the amount not refunded")
        self.chk_store_credit.toggled.connect(lambda _c: self._recalc())
        ref_lay.addWidget(self.chk_store_credit)
        self.tbl_refunds = self._make_entries_table()
        ref_lay.addWidget(self.tbl_refunds)
        ref_row = QHBoxLayout()
        self.btn_add_refund = QPushButton("Add refund")
        self.btn_add_refund.clicked.connect(partial(self._add_entry, REFUNDS))
        self.lbl_refunds_total = QLabel("Total: 0.00")
        self.lbl_store_credit = QLabel("")
        self.lbl_store_credit.setStyleSheet("color:#1a7f37;")
        ref_row.addWidget(self.btn_add_refund)
        ref_row.addStretch(1)
        ref_row.addWidget(self.lbl_store_credit)
        ref_row.addSpacing(16)
        ref_row.addWidget(self.lbl_refunds_total)
        ref_lay.addLayout(ref_row)
        lay.addWidget(self.box_refunds)

        # inline validation notice
        self.lbl_error = QLabel("")
        self.lbl_error.setStyleSheet("color:#a22;")
        self.lbl_error.setWordWrap(True)
        outer.addWidget(self.lbl_error)

        bb = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel)
        self.btn_ok = bb.button(QDialogButtonBox.Ok)
        self.btn_ok.setText("Process Exchange")
        self.btn_ok.clicked.connect(self.submit)
        bb.rejected.connect(self.reject)
        outer.addWidget(bb)

    @staticmethod
    def _make_entries_table() -> QTableWidget:
        t = QTableWidget(0, 4)
        t.setHorizontalHeaderLabels(["Method", "Amount", "Additional info", ""])
        t.verticalHeader().setVisible(False)
        t.setMaximumHeight(140)
        return t

    # ------------------------------------------------------------------ #
    # State accessors
    # ------------------------------------------------------------------ #

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def is_submitting(self) -> bool:
        return self._submitting

    @property
    def sale(self) -> Sale:
        return self._sale

    def valuation(self) -> ExchangeValuation:
        return value_exchange(self._sale.items, self._quantities, self._new_items, self._already)

    def entries(self, kind: str) -> tuple:
        return self._entries[kind]

    def new_items(self) -> tuple:
        return self._new_items

    # ------------------------------------------------------------------ #
    # Sale items / returned quantities
    # ------------------------------------------------------------------ #

    def _load_items(self) -> None:
        items = self._sale.items
        self._qty_spins = {}
        self.tbl_items.setRowCount(len(items))
        for r, it in enumerate(items):
            already = self._already.get(it.id, 0)
            available = max_returnable(it, already)
            self.tbl_items.setItem(r, 0, _ro_item(it.product_name or it.product_id))
            self.tbl_items.setItem(r, 1, _ro_item(str(it.quantity), True))
            self.tbl_items.setItem(r, 2, _ro_item(str(already), True))
            self.tbl_items.setItem(r, 3, _ro_item(str(available), True))
            self.tbl_items.setItem(r, 4, _ro_item(fmt_money(it.unit_price), True))
            spin = QSpinBox()
            spin.setRange(0, available)
            spin.setValue(min(self._quantities.get(it.id, 0), available))
            spin.setEnabled(available > 0)
            spin.valueChanged.connect(partial(self._on_return_qty_changed, it.id))
            self.tbl_items.setCellWidget(r, 5, spin)
            self.tbl_items.setItem(r, 6, _ro_item("0.00", True))
            self._qty_spins[it.id] = spin
        self.tbl_items.resizeColumnsToContents()

    def set_return_quantity(self, sale_item_id: str, value: float) -> int:
        """Set the quantity to return for one sale item; returns the clamped value kept."""
        item = next((i for i in self._sale.items if i.id == sale_item_id), None)
        if item is None:
            return 0
        self._quantities = set_return_quantity(
            self._quantities, item, value, self._already.get(item.id, 0)
        )
        kept = self._quantities[item.id]
        spin = self._qty_spins.get(item.id)
        if spin is not None and spin.value() != kept:
            spin.blockSignals(True)
            spin.setValue(kept)
            spin.blockSignals(False)
        self._recalc()
        return kept

    def _on_return_qty_changed(self, sale_item_id: str, value: int) -> None:
        self.set_return_quantity(sale_item_id, value)

    def _toggle_return_all(self, checked: bool) -> None:
        for it in self._sale.items:
            target = max_returnable(it, self._already.get(it.id, 0)) if checked else 0
            self.set_return_quantity(it.id, target)

    # ------------------------------------------------------------------ #
    # Product search / new items
    # ------------------------------------------------------------------ #

    def _on_search_text(self, _text: str) -> None:
        self._search_timer.start()

    def _run_search(self) -> None:
        term = self.edt_search.text().strip()
        if self._products is None or len(term) < MIN_PRODUCT_QUERY_LENGTH:
            self._show_products([])
            return
        products = self._products
        self._search_job = self._runner(
            lambda: (term, products.search(term)), self._on_products, self._on_search_failed
        )

    def _on_products(self, result) -> None:
        self._search_job = None
        if not self._active:
            return
        term, rows = result
        if term != self.edt_search.text().strip():
            return  # stale response for an older query
        self._show_products(rows)

    def _on_search_failed(self, err: BaseException) -> None:
        self._search_job = None
        if not self._active:
            return
        msg = err.message if isinstance(err, ReconciliationError) else "Product search failed."
        _log.warning("Product search failed: %s", err)
        self._show_error(msg)

    def _show_products(self, rows) -> None:
        self._search_results = list(rows)
        self.lst_products.clear()
        for p in self._search_results:
            label = f"{p.name}  —  {fmt_money(p.price)}  (stock: {p.stock_quantity})"
            item = QListWidgetItem(label)
            item.setData(Qt.UserRole, p.id)
            self.lst_products.addItem(item)

    def _add_selected_product(self) -> None:
        row = self.lst_products.currentRow()
        if 0 <= row < len(self._search_results):
            self.add_product(self._search_results[row])

    def add_product(self, product: Product) -> bool:
        try:
            self._new_items = add_product(self._new_items, product)
        except ValidationError as e:
            self._show_error(e.message)
            return False
        self._clear_error()
        self._reload_new_items()
        return True

    def set_new_item_quantity(self, product_id: str, value: float) -> None:
        self._new_items = set_new_item_quantity(self._new_items, product_id, value)
        self._sync_new_item_widgets(product_id)
        self._recalc()

    def set_new_item_price(self, product_id: str, value: float) -> None:
        self._new_items = set_new_item_price(self._new_items, product_id, value)
        self._sync_new_item_widgets(product_id)
        self._recalc()

    def remove_new_item(self, product_id: str) -> None:
        self._new_items = remove_new_item(self._new_items, product_id)
        self._reload_new_items()

    def _reload_new_items(self) -> None:
        self._new_widgets = {}
        self.tbl_new.setRowCount(len(self._new_items))
        for r, n in enumerate(self._new_items):
            self.tbl_new.setItem(r, 0, _ro_item(n.name or n.product_id))
            qty = QSpinBox()
            qty.setRange(1, n.stock_quantity if n.stock_quantity else 1_000_000)
            qty.setValue(n.quantity)
            qty.valueChanged.connect(partial(self.set_new_item_quantity, n.product_id))
            self.tbl_new.setCellWidget(r, 1, qty)
            price = QDoubleSpinBox()
            price.setDecimals(2)
            price.setRange(0.0, _MONEY_MAX)
            price.setValue(n.unit_price)
            price.valueChanged.connect(partial(self.set_new_item_price, n.product_id))
            self.tbl_new.setCellWidget(r, 2, price)
            self.tbl_new.setItem(r, 3, _ro_item(fmt_money(n.line_total), True))
            btn = QPushButton("Remove")
            btn.clicked.connect(lambda _checked=False, pid=n.product_id: self.remove_new_item(pid))
            self.tbl_new.setCellWidget(r, 4, btn)
            self._new_widgets[n.product_id] = (r, qty, price)
        self._recalc()

    def _sync_new_item_widgets(self, product_id: str) -> None:
        n = next((x for x in self._new_items if x.product_id == product_id), None)
        w = self._new_widgets.get(product_id)
        if n is None or w is None:
            return
        r, qty, price = w
        for spin, value in ((qty, n.quantity), (price, n.unit_price)):
            if spin.value() != value:
                spin.blockSignals(True)
                spin.setValue(value)
                spin.blockSignals(False)
        self.tbl_new.setItem(r, 3, _ro_item(fmt_money(n.line_total), True))

    # ------------------------------------------------------------------ #
    # Payment / refund entries
    # ------------------------------------------------------------------ #

    def _table_for(self, kind: str) -> QTableWidget:
        return self.tbl_payments if kind == PAYMENTS else self.tbl_refunds

    def _add_entry(self, kind: str, *_args) -> PaymentEntry:
        self._entries[kind] = add_entry(self._entries[kind])
        self._reload_entries(kind)
        return self._entries[kind][-1]

    def update_entry(self, kind: str, entry_id: str, **changes) -> None:
        try:
            self._entries[kind] = update_entry(self._entries[kind], entry_id, **changes)
        except ValidationError as e:
            self._show_error(e.message)
            return
        self._recalc()

    def remove_entry(self, kind: str, entry_id: str) -> None:
        self._entries[kind] = remove_entry(self._entries[kind], entry_id)
        self._reload_entries(kind)

    def _reload_entries(self, kind: str) -> None:
        table = self._table_for(kind)
        entries = self._entries[kind]
        table.setRowCount(len(entries))
        for r, e in enumerate(entries):
            combo = QComboBox()
            for code, label in PAYMENT_METHODS.items():
                combo.addItem(label, code)
                if code in NON_SELECTABLE_METHODS:
                    combo.model().item(combo.count() - 1).setEnabled(False)
            combo.setCurrentIndex(max(0, combo.findData(e.method)))
            combo.currentIndexChanged.connect(
                partial(self._on_entry_method, kind, e.id, combo)
            )
            table.setCellWidget(r, 0, combo)

            amount = QDoubleSpinBox()
            amount.setDecimals(2)
            amount.setRange(0.0, _MONEY_MAX)
            amount.setValue(e.amount)
            amount.valueChanged.connect(partial(self._on_entry_amount, kind, e.id))
            table.setCellWidget(r, 1, amount)

            note = QLineEdit(e.note or "")
            note.textChanged.connect(partial(self._on_entry_note, kind, e.id))
            table.setCellWidget(r, 2, note)

            btn = QPushButton("Remove")
            btn.clicked.connect(lambda _checked=False, eid=e.id: self.remove_entry(kind, eid))
            table.setCellWidget(r, 3, btn)
        self._recalc()

    def _on_entry_method(self, kind: str, entry_id: str, combo: QComboBox, _index: int) -> None:
        self.update_entry(kind, entry_id, method=combo.currentData())

    def _on_entry_amount(self, kind: str, entry_id: str, value: float) -> None:
        self.update_entry(kind, entry_id, amount=value)

    def _on_entry_note(self, kind: str, entry_id: str, text: str) -> None:
        self.update_entry(kind, entry_id, note=text)

    # ------------------------------------------------------------------ #
    # Totals
    # ------------------------------------------------------------------ #

    def _recalc(self) -> None:
        v = self.valuation()
        lines = {line.sale_item_id: line for line in v.returned_items}
        for r, it in enumerate(self._sale.items):
            line = lines.get(it.id)
            self.tbl_items.setItem(r, 6, _ro_item(fmt_money(line.line_total if line else 0.0), True))

        self.lbl_returned.setText(fmt_money(v.returned_total))
        self.lbl_delivered.setText(fmt_money(v.delivered_total))
        self.lbl_difference.setText(fmt_money(v.difference))

        receiving = v.difference > MONEY_TOLERANCE
        refunding = v.difference < -MONEY_TOLERANCE
        if receiving:
            self.lbl_direction.setText(f"Customer pays {fmt_money(v.amount_to_receive)}")
        elif refunding:
            self.lbl_direction.setText(f"Refund {fmt_money(v.amount_to_refund)} to the customer")
        else:
            self.lbl_direction.setText("No payment needed")
        self.box_payments.setVisible(receiving)
        self.box_refunds.setVisible(refunding)

        self.lbl_payments_total.setText(f"Total: {fmt_money(entries_total(self._entries[PAYMENTS]))}")
        self.lbl_refunds_total.setText(f"Total: {fmt_money(entries_total(self._entries[REFUNDS]))}")
        credit = store_credit_preview(v.difference, self._entries[REFUNDS], self.chk_store_credit.isChecked())
        self.lbl_store_credit.setText(f"Store credit: {fmt_money(credit)}" if credit > 0 else "")

    def store_credit_preview(self) -> float:
        return store_credit_preview(
            self.valuation().difference, self._entries[REFUNDS], self.chk_store_credit.isChecked()
        )

    # ------------------------------------------------------------------ #
    # Submission
    # ------------------------------------------------------------------ #

    def build_payload(self) -> dict:
        """Validated submission payload; raises ValidationError."""
        return build_exchange_payload(
            self._sale,
            self.valuation(),
            self.edt_reason.text(),
            self.edt_note.text(),
            self._new_items,
            self._entries[PAYMENTS],
            self._entries[REFUNDS],
            self.chk_store_credit.isChecked(),
        )

    def submit(self) -> bool:
        """Validate and start the submission. Returns False when nothing was sent."""
        if self._submitting or not self._active:
            return False
        try:
            payload = self.build_payload()
        except ValidationError as e:
            self._show_error(e.message)
            return False

        self._clear_error()
        self._set_busy(True)
        repo = self._exchanges
        self._job = self._runner(
            lambda: process_exchange(repo=repo, payload=payload), self._on_submitted, self._on_submit_crashed
        )
        return True

    def _on_submitted(self, res: ActionResult) -> None:
        self._job = None
        if not self._active:
            _log.info("Exchange response for sale %s arrived after its dialog closed; ignored", self._sale.id)
            return
        if not res.success:
            self._show_failure(res.message)
            if res.stale:
                self.reload_sale()
            return

        result: ExchangeResult = res.payload
        self.result_exchange = result
        # committed on the server: listeners refresh even if the voucher step is abandoned
        self.exchange_processed.emit(result)
        if wants_voucher(result) and confirm(self, "Store Credit", voucher_prompt(result)):
            repo, exchange_id = self._exchanges, result.id
            self._voucher_job = self._runner(
                lambda: fetch_voucher(repo, exchange_id), self._on_voucher_fetched, self._on_voucher_failed
            )
            return
        self._finish(None)

    def _on_submit_crashed(self, err: BaseException) -> None:
        self._job = None
        _log.error("Exchange submission for sale %s failed: %r", self._sale.id, err)
        if not self._active:
            return
        self._show_failure("Unexpected error while processing the exchange.")

    def _on_voucher_fetched(self, content: Optional[str]) -> None:
        self._voucher_job = None
        if not self._active:
            return
        outcome = deliver_voucher(self.result_exchange.id, content, self._print_content)
        self._finish(outcome.message)

    def _on_voucher_failed(self, err: BaseException) -> None:
        self._voucher_job = None
        outcome = voucher_failed(self.result_exchange.id, err)
        if not self._active:
            return
        self._finish(outcome.message)

    def _finish(self, voucher_message: Optional[str]) -> None:
        self._set_busy(False)
        message = "Exchange processed successfully."
        if voucher_message:
            message += f"\n{voucher_message}"
        info(self, "Exchange", message)
        self.accept()

    def _show_failure(self, msg: str) -> None:
        self._set_busy(False)
        self._show_error(msg)
        error(self, "Exchange", msg)

    def reload_sale(self) -> None:
        """Refetch the sale so the returnable quantities reflect the server's view."""
        if self._sales is None:
            return
        sales, sale_id = self._sales, self._sale.id
        self._reload_job = self._runner(lambda: sales.get(sale_id), self._on_sale_reloaded, self._on_reload_failed)

    def _on_sale_reloaded(self, sale: Sale) -> None:
        self._reload_job = None
        if not self._active:
            return
        self._sale = sale
        self._already = already_returned_map(sale.exchanges)
        # re-clamp what the operator had entered against the fresh limits
        requested = dict(self._quantities)
        self._quantities = {}
        for it in sale.items:
            if it.id in requested:
                self._quantities = set_return_quantity(
                    self._quantities, it, requested[it.id], self._already.get(it.id, 0)
                )
        self._load_items()
        self._recalc()

    def _on_reload_failed(self, err: BaseException) -> None:
        self._reload_job = None
        _log.warning("Could not refresh sale %s: %s", self._sale.id, err)

    def _set_busy(self, busy: bool) -> None:
        self._submitting = busy
        self.body.setEnabled(not busy)
        self.btn_ok.setEnabled(not busy)
        self.btn_ok.setText("Processing…" if busy else "Process Exchange")

    def _show_error(self, msg: str) -> None:
        self.lbl_error.setText(msg)

    def _clear_error(self) -> None:
        self.lbl_error.setText("")

    def done(self, result: int) -> None:  # type: ignore[override]
        # closing discards local state; late responses check _active
        self._active = False
        self._search_timer.stop()
        super().done(result)
