import re
import uuid
from typing import Optional

import structlog
from fastapi import HTTPException, Request, Response, status

from storefront.core.config import settings
from storefront.core.security import decode_admin_session_token

logger = structlog.get_logger()

CART_SESSION_RE = re.compile(r"^[0-9a-f]{32}$")


def _valid_cart_session(value: Optional[str]) -> bool:
    return bool(value) and CART_SESSION_RE.match(value) is not None


def set_cart_session_cookie(response: Response, session_id: str) -> None:
    response.set_cookie(
        key=settings.CART_SESSION_COOKIE,
        value=session_id,
        httponly=True,
        secure=settings.ENVIRONMENT == "production",
        samesite="lax",
        max_age=settings.CART_SESSION_MAX_AGE_DAYS * 24 * 60 * 60,
        path="/",
    )


def get_cart_session_id(request: Request, response: Response) -> str:
    """Cart session from the cookie, starting a new one on first use."""
    session_id = request.cookies.get(settings.CART_SESSION_COOKIE)
    if _valid_cart_session(session_id):
        return session_id

    session_id = uuid.uuid4().hex
    set_cart_session_cookie(response, session_id)
    logger.info("cart_session_started")
    return session_id


def get_existing_cart_session_id(request: Request) -> Optional[str]:
    session_id = request.cookies.get(settings.CART_SESSION_COOKIE)
    return session_id if _valid_cart_session(session_id) else None


def require_admin_session(request: Request) -> dict:
    payload = decode_admin_session_token(request.cookies.get(settings.ADMIN_SESSION_COOKIE))
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Admin authentication required",
        )

    logger.info("admin_action", action=f"{request.method} {request.url.path}")
    return payload
