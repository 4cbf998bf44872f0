"""
Store-credit voucher printing after a successful exchange.

fetch_voucher is the network half and runs on a worker; deliver_voucher
prints on the GUI thread.

The exchange is already committed when this runs; a printing failure is
reported to the operator and logged, it never undoes the exchange.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from jinja2 import Template

from ...constants import APP_NAME
from ...repositories.exchanges_repo import ExchangeResult, ExchangesRepo
from ...utils.helpers import fmt_money

_log = logging.getLogger(__name__)

_VOUCHER_TEMPLATE = Template(
    """<html>
<body style="font-family: monospace; font-size: 10pt;">
  <h3 style="text-align:center; margin:0;">{{ title }}</h3>
  <pre>{{ content }}</pre>
</body>
</html>""",
    autoescape=True,
)


@dataclass(frozen=True)
class VoucherOutcome:
    printed: bool
    message: Optional[str] = None


def wants_voucher(result: ExchangeResult) -> bool:
    return bool(result.issued_store_credit and result.has_voucher)


def voucher_prompt(result: ExchangeResult) -> str:
    return (
        f"Store credit of {fmt_money(result.store_credit_amount)} issued.\n\n"
        "Print the voucher now?"
    )


def fetch_voucher(repo: ExchangesRepo, exchange_id: str) -> Optional[str]:
    """Ask the server for the voucher. Network call; run it on a worker."""
    return repo.print_credit_voucher(exchange_id)


def deliver_voucher(
    exchange_id: str,
    content: Optional[str],
    print_content: Optional[Callable[[str], None]] = None,
) -> VoucherOutcome:
    """
    Print the fetched content locally. No content means the server already
    routed the voucher to its own printer.
    """
    if not content or print_content is None:
        return VoucherOutcome(printed=True, message="Voucher sent to the printer.")
    try:
        print_content(content)
    except (OSError, RuntimeError) as e:
        return voucher_failed(exchange_id, e)
    return VoucherOutcome(printed=True, message="Voucher printed.")


def voucher_failed(exchange_id: str, err: BaseException) -> VoucherOutcome:
    _log.error("Voucher printing failed for exchange %s: %s", exchange_id, err)
    return VoucherOutcome(printed=False, message="Could not print the voucher. You can print it later.")


def render_voucher_html(content: str, title: str = APP_NAME) -> str:
    """Wrap the server's voucher text in the printable HTML page."""
    return _VOUCHER_TEMPLATE.render(title=title, content=content)


def print_voucher(content: str) -> None:
    """Send the voucher to the default system printer."""
    from PySide6.QtGui import QTextDocument
    from PySide6.QtPrintSupport import QPrinter, QPrinterInfo

    info = QPrinterInfo.defaultPrinter()
    if info.isNull():
        raise RuntimeError("No default printer configured.")
    printer = QPrinter(info)
    doc = QTextDocument()
    doc.setHtml(render_voucher_html(content))
    doc.print_(printer)
