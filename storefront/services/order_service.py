import random
import string
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

import structlog
from sqlalchemy import func, or_
from sqlalchemy.orm import Session, selectinload

from storefront.core.config import settings
from storefront.core.exceptions import APIError, CartEmpty, InsufficientStock, OrderNotFound
from storefront.models.cart import CartItem
from storefront.models.order import Order, OrderItem, OrderStatus, PaymentMethod, PaymentStatus
from storefront.models.product import ProductVariant
from storefront.schemas.checkout import CheckoutForm
from storefront.services.cart_service import load_cart
from storefront.services.notification_service import build_order_notification
from storefront.tasks.notification_tasks import send_order_notification_messages
from storefront.utils.pricing import calculate_shipping, calculate_total_with_shipping, round_money

logger = structlog.get_logger()

ORDER_NUMBER_PREFIX = "HAF"
LOW_STOCK_WARNING_THRESHOLD = 5
ACTIVE_STATUSES = {OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PROCESSING}


def _isoformat_or_none(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return f"{value.isoformat()}Z"


def generate_order_number(db: Session) -> str:
    """Generate a unique order number with bounded retries."""
    max_attempts = 10

    for _ in range(max_attempts):
        timestamp = datetime.utcnow().strftime("%Y%m%d")
        random_part = "".join(random.choices(string.ascii_uppercase + string.digits, k=6))
        order_number = f"{ORDER_NUMBER_PREFIX}-{timestamp}-{random_part}"

        existing = db.query(Order).filter(Order.order_number == order_number).first()
        if not existing:
            return order_number

    raise ValueError("Failed to generate unique order number")


# --------------------------------------------------
# Stock
# --------------------------------------------------

def lock_variants(db: Session, variant_ids: Iterable[int]) -> Dict[int, ProductVariant]:
    """Lock variants in deterministic order."""
    variant_ids = sorted({variant_id for variant_id in variant_ids if variant_id is not None})
    if not variant_ids:
        return {}
    return {
        variant.id: variant
        for variant in (
            db.query(ProductVariant)
            .filter(ProductVariant.id.in_(variant_ids))
            .order_by(ProductVariant.id)
            .with_for_update()
            .all()
        )
    }


def _log_stock_depletion_warning(variant: ProductVariant) -> None:
    if variant.stock <= LOW_STOCK_WARNING_THRESHOLD:
        logger.warning(
            "stock_depletion_warning",
            variant_id=variant.id,
            product_id=variant.product_id,
            stock=variant.stock,
        )
    if variant.stock <= 0:
        logger.warning(
            "stock_depleted",
            variant_id=variant.id,
            product_id=variant.product_id,
            stock=variant.stock,
        )


def deduct_stock(db: Session, order: Order) -> None:
    """Take the order's quantities out of stock once. Never goes below zero."""
    if order.stock_deducted:
        return

    locked_variants = lock_variants(db, (item.variant_id for item in order.items))
    for item in order.items:
        variant = locked_variants.get(item.variant_id)
        if variant is None:
            logger.warning("stock_deduction_variant_missing", order_id=order.id, product_name=item.product_name)
            continue
        if variant.stock < item.quantity:
            logger.warning(
                "stock_oversold",
                order_id=order.id,
                variant_id=variant.id,
                stock=variant.stock,
                requested=item.quantity,
            )
        variant.stock = max(0, variant.stock - item.quantity)
        _log_stock_depletion_warning(variant)

    order.stock_deducted = True


def restore_stock(db: Session, order: Order) -> None:
    if not order.stock_deducted:
        return

    locked_variants = lock_variants(db, (item.variant_id for item in order.items))
    for item in order.items:
        variant = locked_variants.get(item.variant_id)
        if variant:
            variant.stock += item.quantity
    order.stock_deducted = False


def cancel_order(db: Session, order: Order) -> None:
    """Cancel an order and restore stock once. The caller commits."""
    if order.status == OrderStatus.CANCELLED:
        return

    if order.status in ACTIVE_STATUSES:
        restore_stock(db, order)

    order.status = OrderStatus.CANCELLED
    order.expires_at = None


# --------------------------------------------------
# Checkout
# --------------------------------------------------

def _product_snapshot(variant: ProductVariant, image_url: Optional[str]) -> dict:
    product = variant.product
    return {
        "product_id": product.id,
        "product_slug": product.slug,
        "category": product.category.value,
        "fragrance_family": product.fragrance_family,
        "variant_id": variant.id,
        "product_quality": variant.product_quality.value,
        "volume": variant.volume,
        "sku": variant.sku,
        "price": variant.price,
        "mrp": variant.mrp,
        "image_url": image_url,
    }


def _find_by_idempotency_key(db: Session, session_id: str, idempotency_key: Optional[str]) -> Optional[Order]:
    if not idempotency_key:
        return None

    existing = db.query(Order).filter(Order.idempotency_key == idempotency_key).first()
    if existing and existing.cart_session_id != session_id:
        raise APIError(409, "Idempotency key already used")
    return existing


def create_order_from_cart(db: Session, session_id: str, form: CheckoutForm) -> Tuple[Order, bool]:
    """
    Turn the session cart into an order.

    Returns the order and whether it was created by this call. A replay with
    an already-used idempotency key returns the original order untouched.

    Item prices are re-read from the catalog. When the client sends the total
    it displayed and that differs from the server total, nothing is persisted
    and a 409 carrying the server totals is raised so the client can refresh.
    """
    existing = _find_by_idempotency_key(db, session_id, form.idempotency_key)
    if existing:
        return existing, False

    try:
        cart = load_cart(db, session_id)
        if not cart.lines:
            raise CartEmpty()

        requested_quantities: Dict[int, int] = {}
        for line in cart:
            requested_quantities[line.variant_id] = requested_quantities.get(line.variant_id, 0) + line.quantity

        locked_variants = lock_variants(db, requested_quantities.keys())

        for line in cart:
            variant = locked_variants.get(line.variant_id)
            if not variant or variant.product_id != line.product_id:
                raise APIError(400, f"{line.product_name} is no longer available")

        for variant_id, requested_qty in requested_quantities.items():
            variant = locked_variants[variant_id]
            if variant.stock < requested_qty:
                raise InsufficientStock(variant.product.name, variant.stock)

        subtotal = 0.0
        total_quantity = 0
        order_items: List[OrderItem] = []
        for line in cart:
            variant = locked_variants[line.variant_id]
            unit_price = variant.price
            total_price = round_money(unit_price * line.quantity)
            subtotal += total_price
            total_quantity += line.quantity
            order_items.append(
                OrderItem(
                    product_id=variant.product_id,
                    variant_id=variant.id,
                    product_name=variant.product.name,
                    product_quality=variant.product_quality.value,
                    product_volume=variant.volume,
                    product_sku=variant.sku,
                    unit_price=unit_price,
                    unit_mrp=variant.mrp,
                    quantity=line.quantity,
                    total_price=total_price,
                    product_snapshot=_product_snapshot(variant, line.image_url),
                )
            )

        subtotal = round_money(subtotal)
        shipping_amount = 0.0
        if settings.SHIPPING_CHARGES_ENABLED:
            shipping_amount = calculate_shipping(
                subtotal, total_quantity, settings.FREE_SHIPPING_THRESHOLD
            ).shipping_amount
        tax_amount = 0.0
        discount_amount = 0.0
        total_amount = calculate_total_with_shipping(subtotal, shipping_amount, tax_amount, discount_amount)

        if form.expected_total is not None and abs(round_money(form.expected_total) - total_amount) >= 0.01:
            logger.warning(
                "checkout_total_mismatch",
                expected_total=form.expected_total,
                server_total=total_amount,
            )
            raise APIError(
                409,
                "Cart prices have changed. Please review your order.",
                data={
                    "subtotal": subtotal,
                    "shipping_amount": shipping_amount,
                    "tax_amount": tax_amount,
                    "discount_amount": discount_amount,
                    "total_amount": total_amount,
                },
            )

        try:
            order_number = generate_order_number(db)
        except ValueError as exc:
            raise APIError(500, "Failed to generate order number") from exc

        is_cod = form.payment_method == PaymentMethod.COD.value
        order = Order(
            order_number=order_number,
            cart_session_id=session_id,
            idempotency_key=form.idempotency_key,
            customer_name=form.customer_name,
            customer_email=form.email,
            customer_phone=form.phone,
            customer_address=form.address,
            customer_city=form.city,
            customer_state=form.state,
            customer_pincode=form.pincode,
            subtotal=subtotal,
            tax_amount=tax_amount,
            shipping_amount=shipping_amount,
            discount_amount=discount_amount,
            total_amount=total_amount,
            payment_method=PaymentMethod(form.payment_method),
            payment_status=PaymentStatus.PENDING,
            status=OrderStatus.CONFIRMED if is_cod else OrderStatus.PENDING,
            expires_at=None if is_cod else datetime.utcnow() + timedelta(minutes=settings.ORDER_PAYMENT_WINDOW_MINUTES),
            notes=form.notes,
            stock_deducted=False,
            items=order_items,
        )
        db.add(order)
        db.flush()

        if is_cod:
            deduct_stock(db, order)

        db.query(CartItem).filter(CartItem.session_id == session_id).delete()
        db.commit()
        db.refresh(order)
    except Exception:
        db.rollback()
        raise

    logger.info(
        "order_created",
        order_id=order.id,
        order_number=order.order_number,
        payment_method=order.payment_method.value,
        total_amount=order.total_amount,
    )

    if is_cod:
        dispatch_order_notifications(order)

    return order, True


def dispatch_order_notifications(order: Order) -> None:
    try:
        send_order_notification_messages.delay(build_order_notification(order))
    except Exception:
        logger.exception("order_notification_queue_failed", order_id=getattr(order, "id", None))


def get_order_for_session(db: Session, order_number: str, session_id: Optional[str]) -> Order:
    if not session_id:
        raise OrderNotFound()

    order = (
        db.query(Order)
        .options(selectinload(Order.items))
        .filter(Order.order_number == order_number, Order.cart_session_id == session_id)
        .first()
    )
    if not order:
        raise OrderNotFound()
    return order


# --------------------------------------------------
# Expiry
# --------------------------------------------------

def expire_unpaid_orders(db: Session) -> int:
    """
    Cancel online orders still unpaid after the payment window.

    Args:
        db (Session): Database session

    Returns:
        int: Number of orders cancelled
    """
    now = datetime.utcnow()
    cutoff_time = now - timedelta(minutes=settings.ORDER_PAYMENT_WINDOW_MINUTES)

    pending_orders: List[Order] = (
        db.query(Order)
        .filter(
            Order.status == OrderStatus.PENDING,
            Order.payment_method == PaymentMethod.ONLINE,
            Order.payment_status.in_([PaymentStatus.PENDING, PaymentStatus.FAILED]),
        )
        .all()
    )

    cancelled_count = 0
    for order in pending_orders:
        if order.expires_at:
            is_expired = order.expires_at <= now
        else:
            is_expired = order.created_at < cutoff_time

        if not is_expired:
            continue

        cancel_order(db, order)
        logger.info(
            "order_expired",
            order_id=order.id,
            order_number=order.order_number,
            payment_status=order.payment_status.value,
        )
        cancelled_count += 1

    db.commit()
    return cancelled_count


# --------------------------------------------------
# Admin
# --------------------------------------------------

def list_orders(
    db: Session,
    page: int = 1,
    limit: int = 20,
    status: Optional[OrderStatus] = None,
    payment_status: Optional[PaymentStatus] = None,
    search: Optional[str] = None,
) -> Tuple[List[Order], int]:
    query = db.query(Order).options(selectinload(Order.items))

    if status is not None:
        query = query.filter(Order.status == status)
    if payment_status is not None:
        query = query.filter(Order.payment_status == payment_status)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(
                Order.order_number.ilike(pattern),
                Order.customer_name.ilike(pattern),
                Order.customer_phone.ilike(pattern),
                Order.customer_email.ilike(pattern),
            )
        )

    total = query.count()
    orders = query.order_by(Order.created_at.desc(), Order.id.desc()).offset((page - 1) * limit).limit(limit).all()
    return orders, total


def get_order(db: Session, order_id: int) -> Order:
    order = (
        db.query(Order)
        .options(selectinload(Order.items), selectinload(Order.payment_events))
        .filter(Order.id == order_id)
        .first()
    )
    if not order:
        raise OrderNotFound()
    return order


def update_order_status(
    db: Session,
    order: Order,
    new_status: Optional[OrderStatus] = None,
    admin_notes: Optional[str] = None,
) -> None:
    """Apply an admin status change. The caller commits."""
    previous_status = order.status

    if new_status is not None and new_status != previous_status:
        if previous_status == OrderStatus.CANCELLED:
            raise APIError(400, "Cancelled orders cannot be reopened")

        if new_status == OrderStatus.CANCELLED:
            cancel_order(db, order)
        else:
            if new_status != OrderStatus.PENDING:
                deduct_stock(db, order)
                order.expires_at = None
            order.status = new_status

        logger.info(
            "order_status_updated",
            order_id=order.id,
            previous_status=previous_status.value,
            new_status=new_status.value,
        )

    if admin_notes is not None:
        order.admin_notes = admin_notes


def order_statistics(db: Session) -> dict:
    not_cancelled = Order.status != OrderStatus.CANCELLED

    total_orders = db.query(func.count(Order.id)).filter(not_cancelled).scalar() or 0
    total_revenue = db.query(func.coalesce(func.sum(Order.total_amount), 0.0)).filter(not_cancelled).scalar()
    pending_orders = db.query(func.count(Order.id)).filter(Order.status == OrderStatus.PENDING).scalar() or 0
    delivered_orders = db.query(func.count(Order.id)).filter(Order.status == OrderStatus.DELIVERED).scalar() or 0
    cod_orders = (
        db.query(func.count(Order.id))
        .filter(not_cancelled, Order.payment_method == PaymentMethod.COD)
        .scalar()
        or 0
    )
    online_orders = (
        db.query(func.count(Order.id))
        .filter(not_cancelled, Order.payment_method == PaymentMethod.ONLINE)
        .scalar()
        or 0
    )

    return {
        "total_orders": total_orders,
        "total_revenue": round_money(total_revenue or 0),
        "pending_orders": pending_orders,
        "delivered_orders": delivered_orders,
        "cod_orders": cod_orders,
        "online_orders": online_orders,
    }


# --------------------------------------------------
# Serializers
# --------------------------------------------------

def serialize_order_item(item: OrderItem) -> dict:
    return {
        "id": item.id,
        "product_id": item.product_id,
        "variant_id": item.variant_id,
        "product_name": item.product_name,
        "product_quality": item.product_quality,
        "product_volume": item.product_volume,
        "product_sku": item.product_sku,
        "unit_price": item.unit_price,
        "unit_mrp": item.unit_mrp,
        "quantity": item.quantity,
        "total_price": item.total_price,
        "image_url": (item.product_snapshot or {}).get("image_url"),
    }


def serialize_order(order: Order, include_items: bool = True) -> dict:
    data = {
        "id": order.id,
        "order_number": order.order_number,
        "status": order.status.value,
        "payment_method": order.payment_method.value,
        "payment_status": order.payment_status.value,
        "payment_stage": order.payment_stage,
        "customer_name": order.customer_name,
        "customer_email": order.customer_email,
        "customer_phone": order.customer_phone,
        "shipping_address": {
            "address": order.customer_address,
            "city": order.customer_city,
            "state": order.customer_state,
            "pincode": order.customer_pincode,
        },
        "subtotal": order.subtotal,
        "tax_amount": order.tax_amount,
        "shipping_amount": order.shipping_amount,
        "discount_amount": order.discount_amount,
        "total_amount": order.total_amount,
        "razorpay_order_id": order.razorpay_order_id,
        "notes": order.notes,
        "item_count": sum(item.quantity for item in order.items),
        "created_at": order.created_at,
        "paid_at": order.paid_at,
        "expires_at": _isoformat_or_none(order.expires_at),
    }
    if include_items:
        data["items"] = [serialize_order_item(item) for item in order.items]
    return data


def serialize_admin_order(order: Order) -> dict:
    data = serialize_order(order)
    data.update(
        {
            "razorpay_payment_id": order.razorpay_payment_id,
            "payment_confirmed_by": order.payment_confirmed_by,
            "stock_deducted": order.stock_deducted,
            "admin_notes": order.admin_notes,
            "updated_at": order.updated_at,
            "payment_events": [
                {
                    "id": event.id,
                    "source": event.source.value,
                    "event": event.event,
                    "gateway_event_id": event.gateway_event_id,
                    "razorpay_payment_id": event.razorpay_payment_id,
                    "previous_status": event.previous_status,
                    "resulting_status": event.resulting_status,
                    "applied": event.applied,
                    "created_at": event.created_at,
                }
                for event in order.payment_events
            ],
        }
    )
    return data
