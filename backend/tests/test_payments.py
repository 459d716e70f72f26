import base64
import json
import os
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

import pytest

from storefront.adapters.esewa_payment import EsewaAdapter
from storefront.db import SessionLocal
from storefront.errors import ForbiddenError, InvalidCallbackError, InvalidSignatureError, ValidationError
from storefront.models.order import Order, OrderStatus
from storefront.models.payment import Payment, PaymentStatus
from storefront.services.order_service import OrderService
from storefront.services.payment_service import LOCK_BUCKETS, PaymentService

CALLBACK_SIGNED = "transaction_code,status,total_amount,transaction_uuid,product_code,signed_field_names"


def callback_payload(adapter, transaction_uuid, total_amount, status="COMPLETE", signed=CALLBACK_SIGNED):
    payload = {
        "transaction_code": "000AE01",
        "status": status,
        "total_amount": total_amount,
        "transaction_uuid": transaction_uuid,
        "product_code": adapter.merchant_code,
        "signed_field_names": signed,
    }
    payload["signature"] = adapter.sign(adapter.signing_message(payload, signed.split(",")))
    return payload


def encode(payload):
    return base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")


def query_of(url):
    return {k: v[0] for k, v in parse_qs(urlparse(url).query).items()}


@pytest.fixture
def pending_order(db, make_product, make_address, fill_cart):
    tea = make_product(price="250.00", tax_rate="13")
    address = make_address(user_id=1)
    cart = fill_cart(1, tea, quantity=2)
    return OrderService(db).create_order(1, cart.id, shipping_address_id=address.id)


@pytest.fixture
def initiated(db, pending_order):
    form = PaymentService(db).initiate_payment(pending_order.id, 1, "http://api.test/")
    return pending_order, form["formData"]


def test_initiate_builds_signed_form(db, pending_order):
    adapter = EsewaAdapter()
    form = PaymentService(db, gateway=adapter).initiate_payment(pending_order.id, 1, "http://api.test/")

    data = form["formData"]
    assert form["paymentUrl"] == adapter.payment_url
    assert data["total_amount"] == "665.00"
    assert data["amount"] == "500.00"
    assert data["tax_amount"] == "65.00"
    assert data["product_delivery_charge"] == "100.00"
    assert data["success_url"] == "http://api.test/api/payments/esewa/success"
    assert data["signed_field_names"] == "total_amount,transaction_uuid,product_code"
    expected = adapter.sign(
        f"total_amount=665.00,transaction_uuid={data['transaction_uuid']},product_code={adapter.merchant_code}"
    )
    assert data["signature"] == expected

    payment = db.get(Payment, data["transaction_uuid"])
    assert payment.status == PaymentStatus.PENDING
    assert payment.order_id == pending_order.id


def test_initiate_rejects_other_users_order(db, pending_order):
    with pytest.raises(ForbiddenError):
        PaymentService(db).initiate_payment(pending_order.id, 2, "http://api.test/")


def test_initiate_requires_pending_order(db, pending_order):
    pending_order.status = OrderStatus.CANCELLED
    db.commit()
    with pytest.raises(ValidationError):
        PaymentService(db).initiate_payment(pending_order.id, 1, "http://api.test/")


def test_initiate_requires_shipping_address(db, make_product, fill_cart):
    cart = fill_cart(1, make_product(), quantity=1)
    order = OrderService(db).create_order(1, cart.id)
    with pytest.raises(ValidationError):
        PaymentService(db).initiate_payment(order.id, 1, "http://api.test/")


def test_valid_callback_marks_order_paid(db, initiated):
    order, data = initiated
    adapter = EsewaAdapter()
    payload = callback_payload(adapter, data["transaction_uuid"], "665.0")

    target = PaymentService(db).handle_callback(encode(payload))

    assert urlparse(target).path == "/payment/success"
    assert query_of(target) == {"orderNumber": order.order_number, "orderId": str(order.id)}
    check = SessionLocal()
    try:
        assert check.get(Order, order.id).status == OrderStatus.PAID
        payment = check.get(Payment, data["transaction_uuid"])
        assert payment.status == PaymentStatus.COMPLETED
        assert payment.transaction_id == "000AE01"
        assert payment.response_data["status"] == "COMPLETE"
    finally:
        check.close()


def test_replayed_callback_is_idempotent(db, initiated):
    order, data = initiated
    encoded = encode(callback_payload(EsewaAdapter(), data["transaction_uuid"], "665.00"))

    PaymentService(db).handle_callback(encoded)
    first = SessionLocal()
    try:
        paid_at = first.get(Order, order.id).paid_at
    finally:
        first.close()
    assert paid_at is not None

    target = PaymentService(db).handle_callback(encoded)

    assert urlparse(target).path == "/payment/success"
    check = SessionLocal()
    try:
        again = check.get(Order, order.id)
        assert again.status == OrderStatus.PAID
        assert again.paid_at == paid_at
    finally:
        check.close()


def test_tampered_amount_is_rejected(db, initiated):
    order, data = initiated
    payload = callback_payload(EsewaAdapter(), data["transaction_uuid"], "665.00")
    payload["total_amount"] = "1.00"

    target = PaymentService(db).handle_callback(encode(payload))

    assert query_of(target) == {"error": "invalid_signature"}
    db.expire_all()
    assert db.get(Order, order.id).status == OrderStatus.PENDING


def test_signature_must_cover_required_fields():
    adapter = EsewaAdapter()
    payload = callback_payload(adapter, "abc", "665.00", signed="transaction_uuid,total_amount,product_code")
    with pytest.raises(InvalidSignatureError):
        adapter.verify_signature(payload)


def test_foreign_merchant_code_is_rejected():
    ours = EsewaAdapter()
    theirs = EsewaAdapter(merchant_code="OTHERSHOP", secret_key=ours.secret_key)
    payload = callback_payload(theirs, "abc", "665.00")
    with pytest.raises(InvalidSignatureError):
        ours.verify_signature(payload)


def test_wrong_secret_is_rejected():
    ours = EsewaAdapter()
    forged = callback_payload(EsewaAdapter(secret_key="not-the-secret"), "abc", "665.00")
    with pytest.raises(InvalidSignatureError):
        ours.verify_signature(forged)


def test_incomplete_callback_leaves_order_pending(db, initiated):
    order, data = initiated
    payload = callback_payload(EsewaAdapter(), data["transaction_uuid"], "665.00", status="CANCELED")

    target = PaymentService(db).handle_callback(encode(payload))

    assert urlparse(target).path == "/payment/failed"
    assert query_of(target) == {"error": "payment_incomplete"}
    db.expire_all()
    assert db.get(Order, order.id).status == OrderStatus.PENDING


def test_amount_mismatch_is_not_applied(db, initiated):
    order, data = initiated
    payload = callback_payload(EsewaAdapter(), data["transaction_uuid"], "10.00")

    target = PaymentService(db).handle_callback(encode(payload))

    assert query_of(target) == {"error": "amount_mismatch"}
    db.expire_all()
    assert db.get(Order, order.id).status == OrderStatus.PENDING
    assert db.get(Payment, data["transaction_uuid"]).status == PaymentStatus.PENDING


def test_verified_callback_for_unknown_payment(db):
    payload = callback_payload(EsewaAdapter(), "does-not-exist", "665.00")
    target = PaymentService(db).handle_callback(encode(payload))
    assert target == "http://shop.test/payment/success"


@pytest.mark.parametrize("encoded, reason", [(None, "missing_data"), ("", "missing_data"), ("%%%", "invalid_payload")])
def test_malformed_callbacks(db, encoded, reason):
    assert query_of(PaymentService(db).handle_callback(encoded)) == {"error": reason}


def test_decode_tolerates_spaces_and_missing_padding():
    adapter = EsewaAdapter()
    payload = callback_payload(adapter, "abc", "1,000.0")
    encoded = encode(payload).rstrip("=").replace("+", " ")
    assert adapter.decode_callback(encoded) == payload
    assert str(adapter.callback_amount(payload)) == "1000.0"


def test_decode_requires_callback_fields():
    adapter = EsewaAdapter()
    with pytest.raises(InvalidCallbackError):
        adapter.decode_callback(encode({"status": "COMPLETE"}))


def test_stale_payments_are_expired(db, initiated):
    order, data = initiated
    fresh = Payment(order_id=order.id, amount=order.total)
    db.add(fresh)
    stale = db.get(Payment, data["transaction_uuid"])
    stale.created_at = datetime.now(timezone.utc) - timedelta(hours=2)
    db.commit()

    expired = PaymentService(db).expire_stale_payments()

    assert expired == [stale.id]
    check = SessionLocal()
    try:
        assert check.get(Payment, stale.id).status == PaymentStatus.FAILED
        assert check.get(Payment, fresh.id).status == PaymentStatus.PENDING
        assert check.get(Order, order.id).status == OrderStatus.PENDING
    finally:
        check.close()


def test_failure_redirect(db):
    assert PaymentService(db).handle_failure() == "http://shop.test/payment/failed"


@pytest.mark.parametrize("signature", ["é", "ñ" * 44, 12345, None])
def test_malformed_signature_is_rejected(db, initiated, signature):
    order, data = initiated
    payload = callback_payload(EsewaAdapter(), data["transaction_uuid"], "665.00")
    payload["signature"] = signature

    target = PaymentService(db).handle_callback(encode(payload))

    assert query_of(target) == {"error": "invalid_signature"}
    db.expire_all()
    assert db.get(Order, order.id).status == OrderStatus.PENDING


def test_unexpected_error_redirects_to_failure(db, initiated, monkeypatch):
    order, data = initiated

    def boom(self, payload):
        raise RuntimeError("gateway adapter bug")

    monkeypatch.setattr(EsewaAdapter, "callback_amount", boom)
    payload = callback_payload(EsewaAdapter(), data["transaction_uuid"], "665.00")

    target = PaymentService(db).handle_callback(encode(payload))

    assert query_of(target) == {"error": "processing_error"}
    db.expire_all()
    assert db.get(Order, order.id).status == OrderStatus.PENDING


def test_callback_lock_files_stay_bounded(db, tmp_path):
    svc = PaymentService(db, lock_dir=str(tmp_path))
    for i in range(LOCK_BUCKETS * 4):
        with svc._lock(f"txn-{i}"):
            pass
    assert 0 < len(os.listdir(tmp_path)) <= LOCK_BUCKETS
    assert svc._lock("txn-1").lock_file == svc._lock("txn-1").lock_file
