import httpx
from fastapi.testclient import TestClient

from storefront.core.config import settings
from storefront.services import notification_service
from storefront.services.notification_service import (
    format_amount,
    format_business_message,
    format_customer_message,
    send_business_notification,
    send_order_notifications,
)
from storefront.utils.whatsapp import build_share_url, format_phone


def _payload(payment_mode: str = "cod") -> dict:
    return {
        "order_number": "HAF-20261019-AB12CD",
        "customer_name": "Ayaan Shaikh",
        "customer_phone": "9876543210",
        "items": [
            {"name": "Oud Royale", "quality": "Premium", "volume": 50, "quantity": 2, "price": 1100.0},
            {"name": "Rose Attar", "quality": "Standard", "volume": 6, "quantity": 1, "price": 399.5},
        ],
        "total_amount": 2599.5,
        "payment_mode": payment_mode,
        "shipping_address": {"city": "Mumbai", "pincode": "400003", "state": "Maharashtra"},
        "order_date": "19 Oct 2026, 10:30 AM",
    }


def test_format_amount():
    assert format_amount(2200.0) == "2,200"
    assert format_amount(1499.5) == "1,499.5"
    assert format_amount(100) == "100"


def test_format_phone():
    assert format_phone("9876543210") == "919876543210"
    assert format_phone("+91 98765 43210") == "919876543210"
    assert format_phone("91-98765-43210") == "919876543210"
    assert build_share_url("919876543210", "Hi there").endswith("?text=Hi%20there")


def test_business_message_lists_order():
    message = format_business_message(_payload())

    assert "NEW ORDER: #HAF-20261019-AB12CD" in message
    assert "- Oud Royale × 2 @ ₹1,100" in message
    assert "Total: ₹2,599.5" in message
    assert "Payment: COD" in message
    assert "Shipping: 400003, Mumbai" in message


def test_customer_message_payment_label():
    assert "Payment: Cash on Delivery" in format_customer_message(_payload("cod"))
    online = format_customer_message(_payload("online"))
    assert "Payment: Online Payment" in online
    assert "Order #HAF-20261019-AB12CD has been confirmed." in online
    assert settings.SUPPORT_PHONE in online


def test_missing_business_phone_is_reported(monkeypatch):
    monkeypatch.setattr(settings, "BUSINESS_PHONE", "")
    assert send_business_notification(_payload()) is False


def test_one_failed_recipient_does_not_block_the_other(monkeypatch):
    monkeypatch.setattr(settings, "BUSINESS_PHONE", "9000000000")
    sent = []

    def fake_relay(phone, message, message_type=None):
        if message_type == "business":
            raise RuntimeError("provider down")
        sent.append(phone)
        return {"delivered": True}

    monkeypatch.setattr(notification_service, "relay_message", fake_relay)

    assert send_order_notifications(_payload()) == {"business": False, "customer": True}
    assert sent == ["9876543210"]


def test_whatsapp_send_without_provider_returns_share_link(client: TestClient):
    response = client.post(
        "/api/v1/whatsapp/send",
        json={"phone": "9876543210", "message": "Your order is on the way", "type": "customer"},
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["delivered"] is False
    assert data["phone"] == "919876543210"
    assert data["url"].startswith("https://wa.me/919876543210?text=")


def test_whatsapp_send_anonymous_is_not_forwarded(client: TestClient, monkeypatch):
    monkeypatch.setattr(settings, "WHATSAPP_PROVIDER_URL", "https://whatsapp.example.com/messages")
    calls = []

    def recording_post(url, **kwargs):
        calls.append(kwargs["json"])
        return httpx.Response(200, request=httpx.Request("POST", url))

    monkeypatch.setattr(httpx, "post", recording_post)

    response = client.post(
        "/api/v1/whatsapp/send",
        json={"phone": "9876543210", "message": "Free perfume, click here"},
    )

    assert response.status_code == 200
    assert response.json()["data"]["delivered"] is False
    assert calls == []


def test_whatsapp_send_admin_is_forwarded(admin_client: TestClient, monkeypatch):
    monkeypatch.setattr(settings, "WHATSAPP_PROVIDER_URL", "https://whatsapp.example.com/messages")
    calls = []

    def recording_post(url, **kwargs):
        calls.append(kwargs["json"])
        return httpx.Response(200, request=httpx.Request("POST", url))

    monkeypatch.setattr(httpx, "post", recording_post)

    response = admin_client.post(
        "/api/v1/whatsapp/send",
        json={"phone": "9876543210", "message": "Your order is packed", "type": "customer"},
    )

    assert response.status_code == 200
    assert response.json()["data"]["delivered"] is True
    assert calls == [{"phone": "919876543210", "message": "Your order is packed", "type": "customer"}]


def test_whatsapp_send_provider_failure(admin_client: TestClient, monkeypatch):
    monkeypatch.setattr(settings, "WHATSAPP_PROVIDER_URL", "https://whatsapp.example.com/messages")

    def failing_post(*args, **kwargs):
        raise httpx.ConnectError("connection refused")

    monkeypatch.setattr(httpx, "post", failing_post)

    response = admin_client.post(
        "/api/v1/whatsapp/send",
        json={"phone": "9876543210", "message": "Hello"},
    )
    assert response.status_code == 502
    assert response.json()["message"] == "Failed to send WhatsApp message"
