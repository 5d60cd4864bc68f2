"""
WhatsApp order notifications.

An order is flattened into a plain payload once, so the Celery task can send
it without touching the database.
"""
from typing import Dict

import structlog

from storefront.core.config import settings
from storefront.models.order import Order, PaymentMethod
from storefront.utils.whatsapp import relay_message

logger = structlog.get_logger()

ORDER_DATE_FORMAT = "%d %b %Y, %I:%M %p"


def format_amount(amount: float) -> str:
    """2200.0 -> 2,200 and 1499.5 -> 1,499.5"""
    return f"{amount:,.2f}".rstrip("0").rstrip(".")


def build_order_notification(order: Order) -> dict:
    return {
        "order_number": order.order_number,
        "customer_name": order.customer_name,
        "customer_phone": order.customer_phone,
        "items": [
            {
                "name": item.product_name,
                "quality": item.product_quality,
                "volume": item.product_volume,
                "quantity": item.quantity,
                "price": item.unit_price,
            }
            for item in order.items
        ],
        "total_amount": order.total_amount,
        "payment_mode": order.payment_method.value,
        "shipping_address": {
            "city": order.customer_city,
            "pincode": order.customer_pincode,
            "state": order.customer_state,
        },
        "order_date": order.created_at.strftime(ORDER_DATE_FORMAT) if order.created_at else "",
    }


def format_business_message(payload: dict) -> str:
    items_list = "\n".join(
        f"- {item['name']} × {item['quantity']} @ ₹{format_amount(item['price'])}"
        for item in payload["items"]
    )
    shipping = payload["shipping_address"]
    return (
        f"🧾 NEW ORDER: #{payload['order_number']}\n"
        f"👤 Name: {payload['customer_name']}\n"
        f"📞 Phone: {payload['customer_phone']}\n"
        f"🛍️ Items:\n"
        f"{items_list}\n"
        f"💰 Total: ₹{format_amount(payload['total_amount'])}\n"
        f"🪙 Payment: {payload['payment_mode'].upper()}\n"
        f"📦 Shipping: {shipping['pincode']}, {shipping['city']}\n"
        f"📅 Placed: {payload['order_date']}"
    )


def format_customer_message(payload: dict) -> str:
    items_list = "\n".join(f"• {item['name']} × {item['quantity']}" for item in payload["items"])
    payment_label = "Cash on Delivery" if payload["payment_mode"] == PaymentMethod.COD.value else "Online Payment"
    return (
        "🎉 Thank you for your order!\n"
        "\n"
        f"Order #{payload['order_number']} has been confirmed.\n"
        "\n"
        "📦 Your Order:\n"
        f"{items_list}\n"
        "\n"
        f"💰 Total: ₹{format_amount(payload['total_amount'])}\n"
        f"🪙 Payment: {payment_label}\n"
        "\n"
        f"📅 Order Date: {payload['order_date']}\n"
        f"📞 Need help? Call us: {settings.SUPPORT_PHONE}\n"
        "\n"
        "We'll process your order within 24 hours and send you tracking details. "
        f"Thank you for choosing {settings.BUSINESS_NAME}! 🌸"
    )


def send_business_notification(payload: dict) -> bool:
    if not settings.BUSINESS_PHONE:
        logger.error("business_phone_not_configured", order_number=payload.get("order_number"))
        return False

    try:
        relay_message(settings.BUSINESS_PHONE, format_business_message(payload), message_type="business")
    except Exception:
        logger.exception("notification_failed", recipient="business", order_number=payload.get("order_number"))
        return False
    return True


def send_customer_notification(payload: dict) -> bool:
    try:
        relay_message(payload["customer_phone"], format_customer_message(payload), message_type="customer")
    except Exception:
        logger.exception("notification_failed", recipient="customer", order_number=payload.get("order_number"))
        return False
    return True


def send_order_notifications(payload: dict) -> Dict[str, bool]:
    """Send the business and customer messages; neither outcome affects the other."""
    results = {
        "business": send_business_notification(payload),
        "customer": send_customer_notification(payload),
    }
    logger.info("order_notifications_sent", order_number=payload.get("order_number"), **results)
    return results
