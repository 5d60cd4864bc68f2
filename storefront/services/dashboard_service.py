from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from storefront.models.order import Order, PaymentStatus
from storefront.models.product import Product


RECENT_ORDER_COUNT = 3
RECENT_PRODUCT_COUNT = 2
RECENT_ACTIVITY_LIMIT = 5


def dashboard_stats(db: Session) -> dict:
    total_products = db.query(func.count(Product.id)).scalar() or 0
    total_orders = db.query(func.count(Order.id)).scalar() or 0
    total_revenue = (
        db.query(func.coalesce(func.sum(Order.total_amount), 0.0))
        .filter(Order.payment_status == PaymentStatus.PAID)
        .scalar()
    )
    total_customers = (
        db.query(func.count(func.distinct(Order.customer_phone)))
        .filter(Order.customer_phone.isnot(None))
        .scalar()
        or 0
    )

    return {
        "total_products": total_products,
        "total_orders": total_orders,
        "total_revenue": round(total_revenue or 0),
        "total_customers": total_customers,
    }


def recent_activities(db: Session) -> list:
    """Latest orders and product updates, newest first."""
    activities = []

    recent_orders = (
        db.query(Order.order_number, Order.created_at, Order.status)
        .order_by(Order.created_at.desc())
        .limit(RECENT_ORDER_COUNT)
        .all()
    )
    for order_number, created_at, _ in recent_orders:
        activities.append(
            {
                "id": f"order-{order_number}",
                "type": "order",
                "message": f"New order #{order_number} received",
                "timestamp": created_at,
                "status": "success",
            }
        )

    recent_products = (
        db.query(Product.id, Product.name, Product.updated_at)
        .order_by(Product.updated_at.desc())
        .limit(RECENT_PRODUCT_COUNT)
        .all()
    )
    for product_id, name, updated_at in recent_products:
        activities.append(
            {
                "id": f"product-{product_id}",
                "type": "product",
                "message": f'Product "{name or "Unknown"}" updated',
                "timestamp": updated_at,
                "status": "info",
            }
        )

    activities.sort(key=lambda activity: activity["timestamp"] or datetime.min, reverse=True)
    return activities[:RECENT_ACTIVITY_LIMIT]


def dashboard_data(db: Session) -> dict:
    return {
        "stats": dashboard_stats(db),
        "recent_activities": recent_activities(db),
    }
