from fastapi import Request

from storefront.core.config import settings
from storefront.core.security import decode_admin_session_token

ADMIN_PATH_PREFIX = f"{settings.API_V1_STR}/admin"
ADMIN_PUBLIC_PATHS = {f"{ADMIN_PATH_PREFIX}/login", f"{ADMIN_PATH_PREFIX}/logout"}


def requires_admin_session(request: Request) -> bool:
    """Every admin route except login and logout needs a valid session cookie."""
    if request.method == "OPTIONS":
        return False
    path = request.url.path.rstrip("/") or "/"
    if path != ADMIN_PATH_PREFIX and not path.startswith(f"{ADMIN_PATH_PREFIX}/"):
        return False
    return path not in ADMIN_PUBLIC_PATHS


def has_admin_session(request: Request) -> bool:
    token = request.cookies.get(settings.ADMIN_SESSION_COOKIE)
    return decode_admin_session_token(token) is not None
