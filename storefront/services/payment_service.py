"""
Razorpay payments.

Payment state can be changed from three places: the checkout success
callback (client), the gateway webhook and the admin panel. All of them go
through merge_payment_status so that arrival order does not matter:

* paid and refunded are terminal for gateway signals
* failed -> paid is allowed (a retried payment succeeded)
* a failure reported after a capture is ignored
* a capture on a cancelled order is recorded, the order stays cancelled

Every signal is written to payment_events, applied or not.
"""
import hashlib
import hmac
from datetime import datetime
from typing import Optional

import razorpay
from razorpay.errors import SignatureVerificationError
import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.core.config import settings
from storefront.core.exceptions import APIError, OrderNotFound
from storefront.models.order import Order, OrderStatus, PaymentMethod, PaymentStatus
from storefront.models.payment import PaymentEvent, PaymentSource
from storefront.services.order_service import deduct_stock, dispatch_order_notifications
from storefront.utils.pricing import to_paise

razorpay_client = razorpay.Client(auth=(settings.RAZORPAY_KEY_ID, settings.RAZORPAY_KEY_SECRET))
logger = structlog.get_logger()

TERMINAL_PAYMENT_STATUSES = {PaymentStatus.PAID, PaymentStatus.REFUNDED}

EVENT_PAYMENT_CAPTURED = "payment.captured"
EVENT_PAYMENT_FAILED = "payment.failed"
EVENT_PAYMENT_VERIFIED = "payment.verified"
HANDLED_WEBHOOK_EVENTS = {EVENT_PAYMENT_CAPTURED, EVENT_PAYMENT_FAILED}


# --------------------------------------------------
# Signatures
# --------------------------------------------------

def verify_payment_signature(
    razorpay_order_id: str,
    razorpay_payment_id: str,
    razorpay_signature: str,
) -> bool:
    """Verify Razorpay payment signature."""
    if not razorpay_order_id or not razorpay_payment_id or not razorpay_signature:
        return False

    message = f"{razorpay_order_id}|{razorpay_payment_id}"

    generated_signature = hmac.new(
        settings.RAZORPAY_KEY_SECRET.encode(),
        message.encode(),
        hashlib.sha256,
    ).hexdigest()

    return hmac.compare_digest(generated_signature, razorpay_signature)


def verify_webhook_signature(payload: bytes, signature: Optional[str]) -> bool:
    if not signature:
        return False
    try:
        razorpay_client.utility.verify_webhook_signature(
            payload.decode(),
            signature,
            settings.RAZORPAY_WEBHOOK_SECRET,
        )
    except (SignatureVerificationError, UnicodeDecodeError):
        return False
    return True


# --------------------------------------------------
# State merge
# --------------------------------------------------

def merge_payment_status(
    current: PaymentStatus,
    incoming: PaymentStatus,
    source: PaymentSource,
) -> PaymentStatus:
    """Resulting payment status when `incoming` is reported by `source`."""
    if incoming == current:
        return current

    if source == PaymentSource.ADMIN:
        return incoming

    if current in TERMINAL_PAYMENT_STATUSES:
        return current

    if incoming == PaymentStatus.PAID:
        return PaymentStatus.PAID

    if incoming == PaymentStatus.FAILED and current == PaymentStatus.PENDING:
        return PaymentStatus.FAILED

    return current


def _record_event(
    db: Session,
    order: Order,
    source: PaymentSource,
    event: str,
    previous: PaymentStatus,
    resulting: PaymentStatus,
    gateway_event_id: Optional[str] = None,
    razorpay_payment_id: Optional[str] = None,
) -> PaymentEvent:
    payment_event = PaymentEvent(
        order_id=order.id,
        source=source,
        event=event,
        gateway_event_id=gateway_event_id,
        razorpay_order_id=order.razorpay_order_id,
        razorpay_payment_id=razorpay_payment_id,
        previous_status=previous.value,
        resulting_status=resulting.value,
        applied=previous != resulting,
    )
    db.add(payment_event)
    return payment_event


def mark_order_paid(
    db: Session,
    order: Order,
    source: PaymentSource,
    event: str,
    razorpay_payment_id: Optional[str] = None,
    gateway_event_id: Optional[str] = None,
) -> bool:
    """
    Apply a successful payment signal. The caller commits.

    Returns True when this call moved the order to paid.
    """
    previous = order.payment_status
    resulting = merge_payment_status(previous, PaymentStatus.PAID, source)
    _record_event(db, order, source, event, previous, resulting, gateway_event_id, razorpay_payment_id)

    if resulting == previous:
        logger.info(
            "payment_signal_ignored",
            order_id=order.id,
            source=source.value,
            payment_event=event,
            payment_status=previous.value,
        )
        return False

    order.payment_status = PaymentStatus.PAID
    if razorpay_payment_id:
        order.razorpay_payment_id = razorpay_payment_id
    order.paid_at = datetime.utcnow()
    order.payment_confirmed_by = source.value

    if order.status == OrderStatus.CANCELLED:
        logger.warning(
            "payment_captured_for_cancelled_order",
            order_id=order.id,
            order_number=order.order_number,
            payment_id=razorpay_payment_id,
            amount=order.total_amount,
            action="manual_refund_required",
        )
        return True

    deduct_stock(db, order)
    if order.status == OrderStatus.PENDING:
        order.status = OrderStatus.CONFIRMED
    order.expires_at = None

    logger.info(
        "payment_confirmed",
        order_id=order.id,
        order_number=order.order_number,
        source=source.value,
        payment_id=razorpay_payment_id,
        amount=order.total_amount,
    )
    return True


def mark_order_failed(
    db: Session,
    order: Order,
    source: PaymentSource,
    event: str,
    razorpay_payment_id: Optional[str] = None,
    gateway_event_id: Optional[str] = None,
) -> bool:
    """Apply a failed payment signal. The order stays pending so the customer can retry."""
    previous = order.payment_status
    resulting = merge_payment_status(previous, PaymentStatus.FAILED, source)
    _record_event(db, order, source, event, previous, resulting, gateway_event_id, razorpay_payment_id)

    if resulting == previous:
        logger.info(
            "payment_signal_ignored",
            order_id=order.id,
            source=source.value,
            payment_event=event,
            payment_status=previous.value,
        )
        return False

    order.payment_status = PaymentStatus.FAILED
    logger.error(
        "payment_failed",
        order_id=order.id,
        payment_id=razorpay_payment_id,
        amount=order.total_amount,
    )
    return True


def set_payment_status_by_admin(db: Session, order: Order, payment_status: PaymentStatus) -> bool:
    """Manual payment change from the admin panel. The caller commits."""
    if payment_status == PaymentStatus.PAID:
        return mark_order_paid(db, order, PaymentSource.ADMIN, "admin.payment_status")

    previous = order.payment_status
    resulting = merge_payment_status(previous, payment_status, PaymentSource.ADMIN)
    _record_event(db, order, PaymentSource.ADMIN, "admin.payment_status", previous, resulting)
    if resulting == previous:
        return False

    order.payment_status = resulting
    order.payment_confirmed_by = PaymentSource.ADMIN.value
    if resulting != PaymentStatus.PAID:
        order.paid_at = None
    logger.info(
        "payment_status_updated_by_admin",
        order_id=order.id,
        previous_status=previous.value,
        new_status=resulting.value,
    )
    return True


# --------------------------------------------------
# Gateway order
# --------------------------------------------------

def create_gateway_order(db: Session, receipt: str, amount: int, session_id: Optional[str] = None) -> dict:
    """
    Create the Razorpay order for a pending online order.

    `receipt` is the order number and `amount` is in paise; it must equal the
    stored order total.
    """
    query = db.query(Order).filter(Order.order_number == receipt)
    if session_id is not None:
        query = query.filter(Order.cart_session_id == session_id)
    order = query.first()
    if not order:
        raise OrderNotFound()

    if order.payment_status in TERMINAL_PAYMENT_STATUSES:
        raise APIError(409, "Payment already processed")
    if order.payment_method != PaymentMethod.ONLINE or order.status != OrderStatus.PENDING:
        raise APIError(400, "Payment can only be created for pending online orders")

    amount_paise = to_paise(order.total_amount)
    if amount != amount_paise:
        logger.warning(
            "payment_amount_mismatch",
            order_id=order.id,
            requested_amount=amount,
            expected_amount=amount_paise,
        )
        raise APIError(409, "Amount does not match order total", data={"amount": amount_paise})

    try:
        razorpay_order = razorpay_client.order.create(
            {
                "amount": amount_paise,
                "currency": settings.CURRENCY,
                "receipt": order.order_number,
                "notes": {
                    "order_id": order.id,
                    "order_number": order.order_number,
                    "customer_phone": order.customer_phone,
                },
            }
        )
    except Exception:
        logger.exception("razorpay_order_create_failed", order_id=order.id)
        raise APIError(502, "Payment gateway unavailable")

    order.razorpay_order_id = razorpay_order["id"]
    db.commit()

    logger.info(
        "razorpay_order_created",
        order_id=order.id,
        razorpay_order_id=razorpay_order["id"],
        amount=amount_paise,
    )
    return {
        "razorpay_order": razorpay_order,
        "razorpay_order_id": razorpay_order["id"],
        "razorpay_key_id": settings.RAZORPAY_KEY_ID,
        "amount": amount_paise,
        "currency": settings.CURRENCY,
        "order_number": order.order_number,
    }


# --------------------------------------------------
# Client verification
# --------------------------------------------------

def confirm_client_payment(
    db: Session,
    razorpay_order_id: str,
    razorpay_payment_id: str,
    razorpay_signature: str,
) -> Optional[Order]:
    """
    Verify the checkout callback and mark the order paid.

    Returns None, without touching any order, when the signature does not
    match. Repeat calls for an already paid order return it unchanged.
    """
    if not verify_payment_signature(razorpay_order_id, razorpay_payment_id, razorpay_signature):
        logger.warning(
            "payment_signature_mismatch",
            order_id=razorpay_order_id,
            payment_id=razorpay_payment_id,
        )
        return None

    try:
        order = (
            db.query(Order)
            .filter(Order.razorpay_order_id == razorpay_order_id)
            .with_for_update()
            .first()
        )
        if not order:
            raise OrderNotFound()

        transitioned = mark_order_paid(
            db,
            order,
            PaymentSource.CLIENT,
            EVENT_PAYMENT_VERIFIED,
            razorpay_payment_id=razorpay_payment_id,
        )
        db.commit()
        db.refresh(order)
    except Exception:
        db.rollback()
        raise

    if transitioned:
        dispatch_order_notifications(order)
    return order


# --------------------------------------------------
# Webhook
# --------------------------------------------------

def extract_payment_entity(event: dict) -> dict:
    """
    Return payload.payment.entity from a webhook body.

    Missing keys give an empty entity. A key holding anything other than an
    object raises ValueError.
    """
    entity = event
    for key in ("payload", "payment", "entity"):
        if key not in entity:
            return {}
        entity = entity[key]
        if not isinstance(entity, dict):
            raise ValueError(f"webhook {key} is not an object")
    return entity


def handle_webhook_event(db: Session, event: dict, gateway_event_id: Optional[str] = None) -> str:
    """
    Apply a verified webhook event.

    Returns one of: processed, duplicate, ignored, order_not_found.
    """
    event_type = event.get("event")
    payment_entity = extract_payment_entity(event)
    razorpay_order_id = payment_entity.get("order_id")
    razorpay_payment_id = payment_entity.get("id")

    if gateway_event_id:
        seen = db.query(PaymentEvent).filter(PaymentEvent.gateway_event_id == gateway_event_id).first()
        if seen:
            logger.info("webhook_duplicate", gateway_event_id=gateway_event_id, webhook_event=event_type)
            return "duplicate"

    if event_type not in HANDLED_WEBHOOK_EVENTS:
        logger.info("webhook_ignored", webhook_event=event_type)
        return "ignored"

    if not razorpay_order_id:
        logger.warning(
            "webhook_order_not_found",
            webhook_event=event_type,
            razorpay_order_id=razorpay_order_id,
            payment_id=razorpay_payment_id,
        )
        return "order_not_found"

    try:
        order = (
            db.query(Order)
            .filter(Order.razorpay_order_id == razorpay_order_id)
            .with_for_update()
            .first()
        )
        if not order:
            logger.warning(
                "webhook_order_not_found",
                webhook_event=event_type,
                razorpay_order_id=razorpay_order_id,
                payment_id=razorpay_payment_id,
            )
            return "order_not_found"

        if event_type == EVENT_PAYMENT_CAPTURED:
            transitioned = mark_order_paid(
                db,
                order,
                PaymentSource.WEBHOOK,
                event_type,
                razorpay_payment_id=razorpay_payment_id,
                gateway_event_id=gateway_event_id,
            )
        else:
            mark_order_failed(
                db,
                order,
                PaymentSource.WEBHOOK,
                event_type,
                razorpay_payment_id=razorpay_payment_id,
                gateway_event_id=gateway_event_id,
            )
            transitioned = False

        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info("webhook_duplicate", gateway_event_id=gateway_event_id, webhook_event=event_type)
        return "duplicate"
    except Exception:
        db.rollback()
        logger.exception("webhook_processing_failed", webhook_event=event_type, payment_id=razorpay_payment_id)
        raise

    logger.info(
        "webhook_processed",
        webhook_event=event_type,
        order_id=order.id,
        payment_status=order.payment_status.value,
    )
    if transitioned:
        dispatch_order_notifications(order)
    return "processed"
