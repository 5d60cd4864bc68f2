from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from typing import Optional

from storefront.db.session import get_db
from storefront.api.deps import get_cart_session_id, get_existing_cart_session_id
from storefront.core.config import settings
from storefront.models.order import PaymentMethod
from storefront.schemas.checkout import CheckoutForm
from storefront.services.order_service import create_order_from_cart, get_order_for_session, serialize_order
from storefront.utils.pricing import to_paise
from storefront.utils.response import success
from storefront.core.rate_limiter import limiter


router = APIRouter()


@router.post(
    "",
    response_model=dict,
    status_code=status.HTTP_201_CREATED,
    summary="Create order from the session cart",
    description="""
Creates an order from the current cart session.

Process:
1. Returns the existing order when the idempotency key was already used
2. Validates cart is not empty
3. Locks variants and checks stock
4. Snapshots items at current catalog prices and calculates totals
5. Rejects with 409 when `expected_total` differs from the server total
6. Creates order and order items and clears the cart
7. For COD, confirms the order, deducts stock and sends notifications
""",
    responses={
        200: {"description": "Order already exists for this idempotency key"},
        201: {"description": "Order created successfully"},
        400: {"description": "Cart empty or insufficient stock"},
        409: {"description": "Cart total changed"},
        422: {"description": "Invalid checkout form"},
    },
    tags=["Orders"],
)
@limiter.limit("10/minute")
def create_order(
    request: Request,
    form: CheckoutForm,
    session_id: str = Depends(get_cart_session_id),
    db: Session = Depends(get_db),
):
    """Create order from cart"""
    order, created = create_order_from_cart(db, session_id, form)

    data = serialize_order(order)
    if order.payment_method == PaymentMethod.ONLINE:
        data["payment"] = {
            "amount": to_paise(order.total_amount),
            "currency": settings.CURRENCY,
            "receipt": order.order_number,
            "razorpay_key_id": settings.RAZORPAY_KEY_ID,
        }

    if not created:
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content=success(data=data, message="Order already exists"),
        )

    if order.payment_method == PaymentMethod.COD:
        return success(data=data, message="Order placed successfully. Pay on delivery.")
    return success(data=data, message="Order created successfully")


@router.get("/{order_number}", response_model=dict)
@limiter.limit("30/minute")
def get_order_detail(
    request: Request,
    order_number: str,
    session_id: Optional[str] = Depends(get_existing_cart_session_id),
    db: Session = Depends(get_db),
):
    """Order confirmation view, only for the cart session that placed it"""
    order = get_order_for_session(db, order_number, session_id)
    return success(data=serialize_order(order), message="Order detail retrieved")
