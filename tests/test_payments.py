import hashlib
import hmac
import json

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from storefront.core.config import settings
from storefront.models.order import Order, OrderStatus, PaymentStatus
from storefront.models.payment import PaymentEvent, PaymentSource
from storefront.models.product import Product, ProductCategory, ProductQuality, ProductVariant
from storefront.services import payment_service
from storefront.services.order_service import cancel_order
from storefront.services.payment_service import merge_payment_status


def _create_variant(db: Session, stock: int = 10, price: float = 1100.0) -> ProductVariant:
    product = Product(name="Oud Royale", slug="oud-royale", category=ProductCategory.PERFUME)
    db.add(product)
    db.flush()
    variant = ProductVariant(
        product_id=product.id,
        product_quality=ProductQuality.STANDARD,
        price=price,
        mrp=price + 400,
        stock=stock,
        volume=50,
        sku="OUD-ROYALE-STD",
    )
    db.add(variant)
    db.commit()
    db.refresh(variant)
    return variant


def _create_online_order(
    client: TestClient,
    db: Session,
    variant: ProductVariant,
    quantity: int = 2,
    razorpay_order_id: str = "order_test_123",
) -> Order:
    response = client.post(
        "/api/v1/cart/items",
        json={"product_id": variant.product_id, "variant_id": variant.id, "quantity": quantity},
    )
    assert response.status_code == 201

    response = client.post(
        "/api/v1/orders",
        json={
            "first_name": "Zoya",
            "last_name": "Khan",
            "email": "zoya@example.com",
            "phone": "9123456780",
            "address": "44 Charminar Road, Old City",
            "city": "Hyderabad",
            "state": "Telangana",
            "pincode": "500002",
            "payment_method": "online",
        },
    )
    assert response.status_code == 201
    order = db.query(Order).filter(Order.order_number == response.json()["data"]["order_number"]).one()
    if razorpay_order_id:
        order.razorpay_order_id = razorpay_order_id
        db.commit()
    return order


def _payment_signature(razorpay_order_id: str, razorpay_payment_id: str) -> str:
    return hmac.new(
        settings.RAZORPAY_KEY_SECRET.encode(),
        f"{razorpay_order_id}|{razorpay_payment_id}".encode(),
        hashlib.sha256,
    ).hexdigest()


def _post_webhook(client: TestClient, event: dict, event_id: str = None, signature: str = None):
    payload = json.dumps(event)
    if signature is None:
        signature = hmac.new(
            settings.RAZORPAY_WEBHOOK_SECRET.encode(),
            payload.encode(),
            hashlib.sha256,
        ).hexdigest()

    headers = {"Content-Type": "application/json", "X-Razorpay-Signature": signature}
    if event_id:
        headers["X-Razorpay-Event-Id"] = event_id
    return client.post("/api/v1/payments/webhook", headers=headers, content=payload)


def _payment_event(event: str, razorpay_order_id: str = "order_test_123", payment_id: str = "pay_test_1") -> dict:
    return {
        "event": event,
        "payload": {
            "payment": {
                "entity": {
                    "id": payment_id,
                    "order_id": razorpay_order_id,
                    "amount": 220000,
                }
            }
        },
    }


@pytest.mark.parametrize(
    "current, incoming, source, expected",
    [
        (PaymentStatus.PENDING, PaymentStatus.PAID, PaymentSource.CLIENT, PaymentStatus.PAID),
        (PaymentStatus.PENDING, PaymentStatus.FAILED, PaymentSource.WEBHOOK, PaymentStatus.FAILED),
        (PaymentStatus.FAILED, PaymentStatus.PAID, PaymentSource.WEBHOOK, PaymentStatus.PAID),
        (PaymentStatus.PAID, PaymentStatus.FAILED, PaymentSource.WEBHOOK, PaymentStatus.PAID),
        (PaymentStatus.REFUNDED, PaymentStatus.PAID, PaymentSource.CLIENT, PaymentStatus.REFUNDED),
        (PaymentStatus.PAID, PaymentStatus.REFUNDED, PaymentSource.ADMIN, PaymentStatus.REFUNDED),
    ],
)
def test_merge_payment_status(current, incoming, source, expected):
    assert merge_payment_status(current, incoming, source) == expected


def test_signature_helpers_reject_missing_values():
    assert payment_service.verify_payment_signature("", "pay_1", "sig") is False
    assert payment_service.verify_webhook_signature(b"{}", None) is False
    assert payment_service.verify_webhook_signature(b"{}", "not-a-signature") is False


def test_razorpay_signature_tampering_rejection(client: TestClient, db_session: Session):
    variant = _create_variant(db_session)
    order = _create_online_order(client, db_session, variant)

    response = client.post(
        "/api/v1/payments/verify-payment",
        json={
            "razorpay_order_id": "order_test_123",
            "razorpay_payment_id": "pay_test_1",
            "razorpay_signature": "invalid_signature",
        },
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid payment signature"
    assert response.json()["data"] == {"verified": False}
    db_session.refresh(order)
    assert order.payment_status == PaymentStatus.PENDING
    assert db_session.query(PaymentEvent).count() == 0


def test_verify_payment_marks_paid_once(client: TestClient, db_session: Session):
    variant = _create_variant(db_session, stock=10)
    order = _create_online_order(client, db_session, variant, quantity=2)
    body = {
        "razorpay_order_id": "order_test_123",
        "razorpay_payment_id": "pay_test_1",
        "razorpay_signature": _payment_signature("order_test_123", "pay_test_1"),
    }

    first = client.post("/api/v1/payments/verify-payment", json=body)
    assert first.status_code == 200
    data = first.json()["data"]
    assert data["verified"] is True
    assert data["payment_status"] == "paid"
    assert data["order_status"] == "confirmed"

    second = client.post("/api/v1/payments/verify-payment", json=body)
    assert second.status_code == 200
    assert second.json()["data"]["payment_status"] == "paid"

    db_session.refresh(order)
    db_session.refresh(variant)
    assert order.razorpay_payment_id == "pay_test_1"
    assert order.payment_confirmed_by == "client"
    assert order.expires_at is None
    assert variant.stock == 8

    events = db_session.query(PaymentEvent).order_by(PaymentEvent.id).all()
    assert [event.applied for event in events] == [True, False]


def test_webhook_rejects_bad_or_missing_signature(client: TestClient, db_session: Session):
    event = _payment_event("payment.captured")

    invalid = _post_webhook(client, event, signature="invalid_signature")
    assert invalid.status_code == 400
    assert invalid.json()["message"] == "Invalid webhook signature"

    missing = client.post(
        "/api/v1/payments/webhook",
        headers={"Content-Type": "application/json"},
        content=json.dumps(event),
    )
    assert missing.status_code == 400


def test_webhook_retry_is_deduplicated(client: TestClient, db_session: Session):
    variant = _create_variant(db_session, stock=10)
    order = _create_online_order(client, db_session, variant, quantity=1)
    event = _payment_event("payment.captured")

    first = _post_webhook(client, event, event_id="evt_001")
    assert first.status_code == 200
    assert first.json()["data"] == {"status": "processed"}

    second = _post_webhook(client, event, event_id="evt_001")
    assert second.status_code == 200
    assert second.json()["data"] == {"status": "duplicate"}

    db_session.refresh(order)
    db_session.refresh(variant)
    assert order.payment_status == PaymentStatus.PAID
    assert order.status == OrderStatus.CONFIRMED
    assert order.payment_confirmed_by == "webhook"
    assert variant.stock == 9
    assert db_session.query(PaymentEvent).count() == 1


def test_failure_after_capture_is_ignored(client: TestClient, db_session: Session):
    variant = _create_variant(db_session)
    order = _create_online_order(client, db_session, variant)

    assert _post_webhook(client, _payment_event("payment.captured"), event_id="evt_cap").status_code == 200
    late_failure = _post_webhook(client, _payment_event("payment.failed"), event_id="evt_fail")
    assert late_failure.status_code == 200

    db_session.refresh(order)
    assert order.payment_status == PaymentStatus.PAID
    failure_event = db_session.query(PaymentEvent).filter(PaymentEvent.gateway_event_id == "evt_fail").one()
    assert failure_event.applied is False


def test_capture_after_failure_marks_paid(client: TestClient, db_session: Session):
    variant = _create_variant(db_session)
    order = _create_online_order(client, db_session, variant)

    _post_webhook(client, _payment_event("payment.failed", payment_id="pay_1"), event_id="evt_a")
    db_session.refresh(order)
    assert order.payment_status == PaymentStatus.FAILED
    assert order.status == OrderStatus.PENDING

    _post_webhook(client, _payment_event("payment.captured", payment_id="pay_2"), event_id="evt_b")
    db_session.refresh(order)
    assert order.payment_status == PaymentStatus.PAID
    assert order.razorpay_payment_id == "pay_2"


def test_capture_on_cancelled_order_keeps_it_cancelled(client: TestClient, db_session: Session):
    variant = _create_variant(db_session, stock=10)
    order = _create_online_order(client, db_session, variant, quantity=2)
    cancel_order(db_session, order)
    db_session.commit()

    response = _post_webhook(client, _payment_event("payment.captured"), event_id="evt_late")
    assert response.status_code == 200

    db_session.refresh(order)
    db_session.refresh(variant)
    assert order.payment_status == PaymentStatus.PAID
    assert order.status == OrderStatus.CANCELLED
    assert variant.stock == 10


def test_webhook_unknown_event_and_order(client: TestClient, db_session: Session):
    ignored = _post_webhook(client, _payment_event("refund.created"), event_id="evt_refund")
    assert ignored.json()["data"] == {"status": "ignored"}

    unknown = _post_webhook(client, _payment_event("payment.captured", razorpay_order_id="order_missing"))
    assert unknown.json()["data"] == {"status": "order_not_found"}


def test_capture_without_gateway_order_touches_nothing(client: TestClient, db_session: Session):
    variant = _create_variant(db_session, stock=10)
    order = _create_online_order(client, db_session, variant, quantity=2, razorpay_order_id=None)

    response = _post_webhook(
        client,
        _payment_event("payment.captured", razorpay_order_id=None, payment_id="pay_unrelated"),
        event_id="evt_no_order",
    )
    assert response.status_code == 200
    assert response.json()["data"] == {"status": "order_not_found"}

    db_session.refresh(order)
    db_session.refresh(variant)
    assert order.payment_status == PaymentStatus.PENDING
    assert order.status == OrderStatus.PENDING
    assert order.razorpay_payment_id is None
    assert variant.stock == 10
    assert db_session.query(PaymentEvent).count() == 0


@pytest.mark.parametrize(
    "body",
    [
        {"event": "payment.captured", "payload": None},
        {"event": "payment.captured", "payload": {"payment": None}},
        {"event": "payment.captured", "payload": {"payment": {"entity": ["pay_test_1"]}}},
    ],
)
def test_webhook_malformed_payload(client: TestClient, db_session: Session, body):
    response = _post_webhook(client, body)

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid webhook payload"


def test_create_payment_order(client: TestClient, db_session: Session, monkeypatch):
    variant = _create_variant(db_session)
    order = _create_online_order(client, db_session, variant, quantity=2, razorpay_order_id=None)
    captured = {}

    def fake_create(data):
        captured.update(data)
        return {"id": "order_gateway_1", "amount": data["amount"], "currency": data["currency"]}

    monkeypatch.setattr(payment_service.razorpay_client.order, "create", fake_create)

    mismatch = client.post(
        "/api/v1/payments/create-order",
        json={"amount": 100, "receipt": order.order_number},
    )
    assert mismatch.status_code == 409
    assert mismatch.json()["data"] == {"amount": 220000}

    response = client.post(
        "/api/v1/payments/create-order",
        json={"amount": 220000, "receipt": order.order_number},
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["razorpay_order_id"] == "order_gateway_1"
    assert data["razorpay_key_id"] == "rzp_test_storefront"
    assert captured["receipt"] == order.order_number

    db_session.refresh(order)
    assert order.razorpay_order_id == "order_gateway_1"
    assert order.payment_stage == "awaiting_gateway_confirmation"


def test_create_payment_order_gateway_failure(client: TestClient, db_session: Session, monkeypatch):
    variant = _create_variant(db_session)
    order = _create_online_order(client, db_session, variant, quantity=2, razorpay_order_id=None)

    def failing_create(data):
        raise RuntimeError("gateway down")

    monkeypatch.setattr(payment_service.razorpay_client.order, "create", failing_create)

    response = client.post(
        "/api/v1/payments/create-order",
        json={"amount": 220000, "receipt": order.order_number},
    )
    assert response.status_code == 502
    assert response.json()["message"] == "Payment gateway unavailable"


def test_create_payment_order_requires_owning_session(client: TestClient, db_session: Session):
    variant = _create_variant(db_session)
    order = _create_online_order(client, db_session, variant, quantity=2, razorpay_order_id=None)

    client.cookies.clear()
    response = client.post(
        "/api/v1/payments/create-order",
        json={"amount": 220000, "receipt": order.order_number},
    )
    assert response.status_code == 404
