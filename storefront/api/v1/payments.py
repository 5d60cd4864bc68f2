import json

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session
import structlog

from storefront.db.session import get_db
from storefront.api.deps import get_existing_cart_session_id
from storefront.schemas.payment import CreatePaymentOrderRequest, VerifyPaymentRequest
from storefront.services import payment_service
from storefront.utils.response import error, success
from storefront.core.rate_limiter import limiter

router = APIRouter()

logger = structlog.get_logger()


@router.post(
    "/create-order",
    summary="Create Razorpay payment order",
    description="""
Creates a gateway order for a pending online order.

Process:
1. Looks up the order by its number (`receipt`) for the current cart session
2. Checks the amount in paise equals the stored order total
3. Creates the Razorpay order and stores its id on the order
4. Returns the gateway order and the public key id for checkout
""",
    responses={
        200: {"description": "Payment order created successfully"},
        404: {"description": "Order not found"},
        409: {"description": "Amount mismatch or payment already processed"},
        502: {"description": "Payment gateway unavailable"},
    },
    tags=["Payments"],
)
@limiter.limit("20/minute")
def create_payment_order(
    request: Request,
    payload: CreatePaymentOrderRequest,
    session_id: str = Depends(get_existing_cart_session_id),
    db: Session = Depends(get_db),
):
    """Create Razorpay order for payment"""
    if not session_id:
        raise HTTPException(status_code=404, detail="Order not found")

    data = payment_service.create_gateway_order(db, payload.receipt, payload.amount, session_id=session_id)
    return success(data=data, message="Payment order created")


@router.post("/verify-payment")
@limiter.limit("30/minute")
def verify_payment(
    request: Request,
    payload: VerifyPaymentRequest,
    db: Session = Depends(get_db),
):
    """Verify the checkout callback signature and confirm the order"""
    order = payment_service.confirm_client_payment(
        db,
        payload.razorpay_order_id,
        payload.razorpay_payment_id,
        payload.razorpay_signature,
    )
    if order is None:
        return error(
            message="Invalid payment signature",
            errors=[{"code": "PAYMENT_VERIFICATION_FAILED"}],
            status_code=400,
            data={"verified": False},
        )

    return success(
        data={
            "verified": True,
            "order_number": order.order_number,
            "payment_status": order.payment_status.value,
            "order_status": order.status.value,
        },
        message="Payment verified",
    )


@router.post("/webhook")
@limiter.limit("120/minute")
async def razorpay_webhook(request: Request, db: Session = Depends(get_db)):
    """Handle Razorpay webhooks"""
    payload = await request.body()
    signature = request.headers.get("X-Razorpay-Signature")
    event_id = request.headers.get("X-Razorpay-Event-Id")

    if not payment_service.verify_webhook_signature(payload, signature):
        logger.warning("webhook_signature_invalid", gateway_event_id=event_id)
        raise HTTPException(status_code=400, detail="Invalid webhook signature")

    try:
        event = json.loads(payload)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid webhook payload")
    if not isinstance(event, dict):
        raise HTTPException(status_code=400, detail="Invalid webhook payload")
    try:
        payment_entity = payment_service.extract_payment_entity(event)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid webhook payload")

    logger.info(
        "webhook_received",
        webhook_event=event.get("event"),
        gateway_event_id=event_id,
        payment_id=payment_entity.get("id"),
        order_id=payment_entity.get("order_id"),
        amount=payment_entity.get("amount"),
    )

    result = payment_service.handle_webhook_event(db, event, gateway_event_id=event_id)
    return success(data={"status": result}, message="Webhook processed")
