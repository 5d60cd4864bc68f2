from dataclasses import asdict

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session
import structlog

from storefront.db.session import get_db
from storefront.api.deps import get_cart_session_id
from storefront.schemas.cart import CartItemAdd, CartItemUpdate
from storefront.services.cart_service import load_cart, save_cart, serialize_cart, snapshot_line
from storefront.core.exceptions import APIError
from storefront.utils.response import success
from storefront.core.rate_limiter import limiter

router = APIRouter()
logger = structlog.get_logger()


@router.get("", response_model=dict)
@limiter.limit("120/minute")
def get_cart(
    request: Request,
    session_id: str = Depends(get_cart_session_id),
    db: Session = Depends(get_db),
):
    """Get the session cart with totals and a shipping quote"""
    cart = load_cart(db, session_id)
    return success(data=serialize_cart(cart), message="Cart retrieved")


@router.post("/items", response_model=dict, status_code=status.HTTP_201_CREATED)
@limiter.limit("60/minute")
def add_to_cart(
    request: Request,
    payload: CartItemAdd,
    session_id: str = Depends(get_cart_session_id),
    db: Session = Depends(get_db),
):
    """
    Add a variant to the cart.

    The quantity is truncated to the space left under the cart limit; the
    response reports how many units were added and how many were discarded.
    """
    line = snapshot_line(db, payload.product_id, payload.variant_id)
    cart = load_cart(db, session_id)
    result = cart.add(line, payload.quantity)

    if not result.success:
        logger.info("cart_limit_reached", requested=payload.quantity, max_items=cart.max_items)
        raise APIError(
            status.HTTP_400_BAD_REQUEST,
            f"Cart is full. Maximum {cart.max_items} items allowed",
            data={"result": asdict(result), "cart": serialize_cart(cart)},
        )

    save_cart(db, session_id, cart)
    db.commit()

    message = "Item added to cart"
    if result.discarded:
        logger.info(
            "cart_limit_reached",
            added=result.added,
            discarded=result.discarded,
            max_items=cart.max_items,
        )
        message = f"Only {result.added} item(s) added. Cart limit is {cart.max_items} items"

    return success(data={"result": asdict(result), "cart": serialize_cart(cart)}, message=message)


@router.put("/items/{product_id}/{variant_id}", response_model=dict)
@limiter.limit("60/minute")
def update_cart_item(
    request: Request,
    product_id: int,
    variant_id: int,
    payload: CartItemUpdate,
    session_id: str = Depends(get_cart_session_id),
    db: Session = Depends(get_db),
):
    """Set a line's quantity; it is clamped to what fits in the cart"""
    cart = load_cart(db, session_id)
    result = cart.update_quantity(product_id, variant_id, payload.quantity)
    if not result.success:
        raise APIError(status.HTTP_404_NOT_FOUND, "Cart item not found")

    save_cart(db, session_id, cart)
    db.commit()

    message = "Cart updated"
    if result.actual_quantity != payload.quantity:
        message = f"Quantity adjusted to {result.actual_quantity}. Cart limit is {cart.max_items} items"
    return success(data={"result": asdict(result), "cart": serialize_cart(cart)}, message=message)


@router.delete("/items/{product_id}/{variant_id}", response_model=dict)
@limiter.limit("60/minute")
def remove_cart_item(
    request: Request,
    product_id: int,
    variant_id: int,
    session_id: str = Depends(get_cart_session_id),
    db: Session = Depends(get_db),
):
    cart = load_cart(db, session_id)
    if not cart.remove(product_id, variant_id):
        raise APIError(status.HTTP_404_NOT_FOUND, "Cart item not found")

    save_cart(db, session_id, cart)
    db.commit()
    return success(data={"cart": serialize_cart(cart)}, message="Item removed from cart")


@router.delete("", response_model=dict)
@limiter.limit("30/minute")
def clear_cart(
    request: Request,
    session_id: str = Depends(get_cart_session_id),
    db: Session = Depends(get_db),
):
    cart = load_cart(db, session_id)
    cart.clear()
    save_cart(db, session_id, cart)
    db.commit()
    return success(data={"cart": serialize_cart(cart)}, message="Cart cleared")
