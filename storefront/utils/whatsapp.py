import re
from typing import Optional
from urllib.parse import quote

import httpx
import structlog

from storefront.core.config import settings

logger = structlog.get_logger()

WHATSAPP_SHARE_URL = "https://wa.me/{phone}?text={text}"
COUNTRY_CODE = "91"


class WhatsAppRelayError(Exception):
    pass


def format_phone(phone: str) -> str:
    """Normalize an Indian mobile number to 91XXXXXXXXXX."""
    digits = re.sub(r"[^\d+]", "", phone or "").lstrip("+")
    if digits.startswith(COUNTRY_CODE) and len(digits) > 10:
        digits = digits[len(COUNTRY_CODE):]
    return f"{COUNTRY_CODE}{digits}"


def build_share_url(full_phone: str, message: str) -> str:
    return WHATSAPP_SHARE_URL.format(phone=full_phone, text=quote(message, safe=""))


def relay_message(
    phone: str,
    message: str,
    message_type: Optional[str] = None,
    forward: bool = True,
) -> dict:
    """
    Hand a message to the WhatsApp provider.

    Without WHATSAPP_PROVIDER_URL, or with forward=False, the message is only
    logged together with a share link that can be opened manually. Provider errors raise
    WhatsAppRelayError; callers decide whether that matters.
    """
    full_phone = format_phone(phone)
    share_url = build_share_url(full_phone, message)

    if not forward or not settings.WHATSAPP_PROVIDER_URL:
        logger.info(
            "whatsapp_message_logged",
            message_type=message_type,
            phone=full_phone,
            whatsapp_message=message,
            url=share_url,
        )
        return {"delivered": False, "phone": full_phone, "url": share_url}

    headers = {}
    if settings.WHATSAPP_PROVIDER_TOKEN:
        headers["Authorization"] = f"Bearer {settings.WHATSAPP_PROVIDER_TOKEN}"

    try:
        response = httpx.post(
            settings.WHATSAPP_PROVIDER_URL,
            json={"phone": full_phone, "message": message, "type": message_type},
            headers=headers,
            timeout=settings.WHATSAPP_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
    except httpx.HTTPError as exc:
        raise WhatsAppRelayError(f"WhatsApp provider request failed: {exc}") from exc

    logger.info("whatsapp_message_sent", message_type=message_type, phone=full_phone)
    return {"delivered": True, "phone": full_phone, "url": share_url}
