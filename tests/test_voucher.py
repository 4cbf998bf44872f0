# tests/test_voucher.py
from __future__ import annotations

from unittest.mock import MagicMock

from conftest import FakeExchangesRepo
from shop_backoffice.modules.exchange.voucher import (
    deliver_voucher,
    fetch_voucher,
    render_voucher_html,
    voucher_failed,
    voucher_prompt,
    wants_voucher,
)
from shop_backoffice.repositories.exchanges_repo import ExchangeResult

CREDIT = ExchangeResult(id="ex-1", store_credit_amount=40.0, has_voucher=True)


def test_only_credit_with_voucher_is_offered():
    assert wants_voucher(CREDIT)
    assert not wants_voucher(ExchangeResult(id="ex-1"))
    assert not wants_voucher(ExchangeResult(id="ex-1", store_credit_amount=40.0, has_voucher=False))
    assert "40.00" in voucher_prompt(CREDIT)


def test_fetch_asks_the_server():
    repo = FakeExchangesRepo()
    assert fetch_voucher(repo, "ex-1") == "STORE CREDIT VOUCHER"
    assert repo.voucher_requests == ["ex-1"]


def test_deliver_prints_content():
    printer = MagicMock()
    out = deliver_voucher("ex-1", "STORE CREDIT VOUCHER", printer)
    assert out.printed
    assert out.message == "Voucher printed."
    printer.assert_called_once_with("STORE CREDIT VOUCHER")


def test_no_content_means_server_side_printing():
    printer = MagicMock()
    out = deliver_voucher("ex-1", None, printer)
    assert out.printed
    assert out.message == "Voucher sent to the printer."
    printer.assert_not_called()


def test_print_failure_is_reported_not_raised(caplog):
    printer = MagicMock(side_effect=RuntimeError("No default printer configured."))
    out = deliver_voucher("ex-1", "STORE CREDIT VOUCHER", printer)
    assert not out.printed
    assert "print it later" in out.message
    assert any("ex-1" in r.getMessage() for r in caplog.records)

    out = voucher_failed("ex-2", OSError("socket closed"))
    assert not out.printed


def test_render_voucher_html_escapes_content():
    html = render_voucher_html("CREDIT 40.00\n<Maria & Co>", title="Shop")
    assert "<h3" in html and "Shop" in html
    assert "&lt;Maria &amp; Co&gt;" in html
    assert "CREDIT 40.00\n" in html
