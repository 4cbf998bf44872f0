"""
Standalone launcher for the back-office dialogs.

    shop-backoffice exchange SALE_ID
    shop-backoffice debt CUSTOMER_ID
    shop-backoffice pay INSTALLMENT_ID

Connection settings come from SHOP_* environment variables (see config.py).
"""
from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence

from PySide6.QtWidgets import QApplication, QDialog, QMessageBox

from .config import get_settings
from .constants import APP_NAME
from .errors import ReconciliationError
from .repositories import ApiClient, ExchangesRepo, InstallmentsRepo, ProductsRepo, SalesRepo
from .utils.loggers import get_logger

_log = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="shop-backoffice", description=APP_NAME)
    sub = parser.add_subparsers(dest="command", required=True)

    p_ex = sub.add_parser("exchange", help="Exchange / return items of a sale")
    p_ex.add_argument("sale_id")

    p_debt = sub.add_parser("debt", help="Receive installment payments from a customer")
    p_debt.add_argument("customer_id")
    p_debt.add_argument("--name", dest="customer_name", default=None, help="Customer name for the title")

    p_pay = sub.add_parser("pay", help="Pay a single installment")
    p_pay.add_argument("installment_id")
    return parser


def create_dialog(args: argparse.Namespace, api: ApiClient) -> QDialog:
    """Fetch what the dialog needs and build it. Raises ReconciliationError."""
    # Imported here so `--help` does not pull in every dialog module
    if args.command == "exchange":
        from .modules.exchange import ExchangeDialog

        sales = SalesRepo(api)
        return ExchangeDialog(
            sale=sales.get(args.sale_id),
            exchanges=ExchangesRepo(api),
            products=ProductsRepo(api),
            sales=sales,
        )
    if args.command == "debt":
        from .modules.installments import CustomerDebtPaymentDialog

        return CustomerDebtPaymentDialog(
            customer_id=args.customer_id,
            customer_name=args.customer_name,
            repo=InstallmentsRepo(api),
        )
    from .modules.installments import InstallmentPaymentDialog

    repo = InstallmentsRepo(api)
    return InstallmentPaymentDialog(installment=repo.get(args.installment_id), repo=repo)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    get_logger()
    settings = get_settings()

    app = QApplication.instance() or QApplication(sys.argv)
    app.setApplicationName(APP_NAME)

    api = ApiClient.from_settings(settings)
    try:
        dlg = create_dialog(args, api)
    except ReconciliationError as e:
        _log.error("Could not open %s dialog: %s", args.command, e.message)
        QMessageBox.critical(None, APP_NAME, e.message)
        return 1

    return 0 if dlg.exec() == QDialog.Accepted else 1


if __name__ == "__main__":
    sys.exit(main())
