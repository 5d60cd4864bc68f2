from fastapi import APIRouter, Request
import structlog

from storefront.core.exceptions import APIError
from storefront.middleware.admin_auth import has_admin_session
from storefront.schemas.whatsapp import WhatsAppSendRequest
from storefront.utils.whatsapp import WhatsAppRelayError, relay_message
from storefront.utils.response import success
from storefront.core.rate_limiter import limiter

router = APIRouter()
logger = structlog.get_logger()


@router.post("/send", response_model=dict)
@limiter.limit("30/minute")
def send_whatsapp_message(request: Request, payload: WhatsAppSendRequest):
    """
    Relay a message to a WhatsApp number.

    Only an admin session reaches the provider. Anyone else gets the message
    logged and a share link back.
    """
    forward = has_admin_session(request)
    if not forward:
        logger.info("whatsapp_relay_unauthenticated", message_type=payload.type)

    try:
        result = relay_message(payload.phone, payload.message, message_type=payload.type, forward=forward)
    except WhatsAppRelayError:
        logger.exception("whatsapp_relay_failed", message_type=payload.type)
        raise APIError(502, "Failed to send WhatsApp message")

    return success(data=result, message="WhatsApp message sent successfully")
