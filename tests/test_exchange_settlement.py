# tests/test_exchange_settlement.py
from __future__ import annotations

import pytest

from shop_backoffice.errors import ValidationError
from shop_backoffice.modules.exchange.settlement import (
    PaymentEntry,
    add_entry,
    build_exchange_payload,
    entries_total,
    remove_entry,
    settle,
    store_credit_preview,
    update_entry,
    validate_exchange,
)
from shop_backoffice.modules.exchange.valuation import NewItem, value_exchange


def _entry(amount: float, method: str = "cash", note=None, eid: str = None) -> PaymentEntry:
    return PaymentEntry(id=eid or f"e{amount}", method=method, amount=amount, note=note)


# --------------------------- entries ---------------------------

def test_entry_transitions():
    entries = add_entry(())
    assert len(entries) == 1
    e = entries[0]
    assert (e.method, e.amount) == ("cash", 0.0)
    assert len(e.id) == 32

    entries = update_entry(entries, e.id, amount=-5)
    assert entries[0].amount == 0.0
    entries = update_entry(entries, e.id, amount=12.345, method="pix", note="  ref 77 ")
    assert (entries[0].amount, entries[0].method) == (12.35, "pix")
    assert entries[0].to_payload() == {"method": "pix", "amount": 12.35, "additionalInfo": "ref 77"}

    with pytest.raises(ValidationError):
        update_entry(entries, e.id, method="cheque")

    assert remove_entry(entries, e.id) == ()


def test_entries_total_is_rounded():
    assert entries_total([_entry(0.1, eid="a"), _entry(0.2, eid="b")]) == 0.30


# --------------------------- settle: customer pays ---------------------------

def test_receive_requires_payments():
    with pytest.raises(ValidationError, match="payment"):
        settle(20.00)


@pytest.mark.parametrize("amounts", [[19.0], [10.0, 5.0], [20.02], [25.0]])
def test_receive_rejects_mismatched_payments(amounts):
    payments = [_entry(a, eid=str(i)) for i, a in enumerate(amounts)]
    with pytest.raises(ValidationError) as exc:
        settle(20.00, payments=payments)
    # message states both totals
    assert "20.00" in exc.value.message


def test_receive_accepts_exact_and_within_tolerance():
    s = settle(20.00, payments=[_entry(20.00)])
    assert s.kind == "receive"
    assert s.amount_to_receive == 20.00
    assert settle(20.00, payments=[_entry(19.99)]).payments_total == 19.99
    assert settle(20.00, payments=[_entry(12.50, eid="a"), _entry(7.51, "pix", eid="b")]).kind == "receive"


# --------------------------- settle: shop refunds ---------------------------

def test_store_credit_mode_issues_the_rest_as_credit():
    s = settle(-60.00, refunds=[_entry(20.00)], issue_store_credit=True)
    assert s.kind == "refund"
    assert s.amount_to_refund == 60.00
    assert s.store_credit == 40.00


def test_store_credit_mode_without_refunds_credits_everything():
    assert settle(-60.00, issue_store_credit=True).store_credit == 60.00


def test_store_credit_mode_rejects_refunds_above_amount():
    with pytest.raises(ValidationError, match="cannot exceed"):
        settle(-60.00, refunds=[_entry(60.01)], issue_store_credit=True)


def test_direct_refund_must_match():
    with pytest.raises(ValidationError) as exc:
        settle(-60.00, refunds=[_entry(59.00)])
    assert "59.00" in exc.value.message and "60.00" in exc.value.message

    with pytest.raises(ValidationError, match="refund"):
        settle(-60.00)

    s = settle(-60.00, refunds=[_entry(30.00, eid="a"), _entry(30.00, "pix", eid="b")])
    assert s.refunds_total == 60.00
    assert s.store_credit == 0.0


@pytest.mark.parametrize("difference", [0.0, 0.01, -0.01])
def test_neutral_needs_no_instruments(difference):
    assert settle(difference).kind == "neutral"


def test_store_credit_preview():
    assert store_credit_preview(-60.00, [_entry(20.00)], True) == 40.00
    assert store_credit_preview(-60.00, [_entry(20.00)], False) == 0.0
    assert store_credit_preview(-60.00, [_entry(80.00)], True) == 0.0
    assert store_credit_preview(20.00, [], True) == 0.0
    # inside the tolerance band there is nothing to refund
    assert store_credit_preview(-0.01, [], True) == 0.0
    assert store_credit_preview(-0.02, [], True) == 0.02


# --------------------------- validate / payload ---------------------------

def test_validation_order_first_failure_wins(sale):
    nothing = value_exchange(sale.items, {})
    with pytest.raises(ValidationError, match="Sale not found"):
        validate_exchange(None, nothing, "")
    # no returned items beats a short reason
    with pytest.raises(ValidationError, match="at least one item"):
        validate_exchange(sale, nothing, "")
    # reason beats the money check
    v = value_exchange(sale.items, {"i1": 1}, (NewItem("p-jeans", "Jeans", 2, 35.0),))
    with pytest.raises(ValidationError, match="reason"):
        validate_exchange(sale, v, "  ab  ")
    with pytest.raises(ValidationError, match="payment"):
        validate_exchange(sale, v, "wrong size")


def test_payload_customer_pays(sale):
    v = value_exchange(sale.items, {"i1": 1}, (NewItem("p-jeans", "Jeans", 2, 35.0),))
    payload = build_exchange_payload(
        sale, v, "  wrong size ", "  ",
        new_items=(NewItem("p-jeans", "Jeans", 2, 35.0),),
        payments=[_entry(20.00, "pix")],
        refunds=[_entry(5.00)],          # ignored: nothing to refund
        issue_store_credit=True,         # ignored as well
    )
    assert payload == {
        "originalSaleId": "S1",
        "reason": "wrong size",
        "returnedItems": [{"saleItemId": "i1", "productId": "p-shirt", "quantity": 1}],
        "newItems": [{"productId": "p-jeans", "quantity": 2, "unitPrice": 35.0}],
        "payments": [{"method": "pix", "amount": 20.0}],
    }


def test_payload_store_credit(sale):
    new = (NewItem("p-jeans", "Jeans", 1, 40.0),)
    v = value_exchange(sale.items, {"i1": 2}, new)
    payload = build_exchange_payload(
        sale, v, "defective", "customer kept the receipt",
        new_items=new, refunds=[_entry(20.00, note="drawer 2")], issue_store_credit=True,
    )
    assert payload["note"] == "customer kept the receipt"
    assert payload["refunds"] == [{"method": "cash", "amount": 20.0, "additionalInfo": "drawer 2"}]
    assert payload["issueStoreCredit"] is True
    assert "payments" not in payload


def test_payload_neutral_omits_money_sections(sale):
    new = (NewItem("p-shirt", "Shirt", 1, 50.0),)
    v = value_exchange(sale.items, {"i1": 1}, new)
    payload = build_exchange_payload(sale, v, "other size", new_items=new)
    assert set(payload) == {"originalSaleId", "reason", "returnedItems", "newItems"}


@pytest.mark.parametrize("price", [49.99, 50.01])
def test_payload_tolerance_band_drops_hidden_instruments(sale, price):
    new = (NewItem("p-shirt", "Shirt", 1, price),)
    v = value_exchange(sale.items, {"i1": 1}, new)
    assert abs(v.difference) == 0.01
    payload = build_exchange_payload(
        sale, v, "other size", new_items=new,
        payments=[_entry(0.01)], refunds=[_entry(0.01)], issue_store_credit=True,
    )
    assert "payments" not in payload
    assert "refunds" not in payload
    assert "issueStoreCredit" not in payload
