import hashlib
import hmac
from datetime import datetime, timedelta
from typing import Optional

from jose import JWTError, jwt

from storefront.core.config import settings

ADMIN_TOKEN_TYPE = "admin_session"


def hash_password(password: str) -> str:
    """Hex SHA-256 digest, the format ADMIN_PASSWORD_HASH is stored in."""
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def verify_admin_password(password: str) -> bool:
    stored_hash = settings.ADMIN_PASSWORD_HASH
    if not stored_hash or not password:
        return False
    return hmac.compare_digest(hash_password(password), stored_hash)


def create_admin_session_token(expires_delta: timedelta = None) -> str:
    """Create the signed token stored in the admin session cookie"""
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(hours=settings.ADMIN_SESSION_EXPIRE_HOURS)

    to_encode = {"sub": "admin", "type": ADMIN_TOKEN_TYPE, "exp": expire}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_admin_session_token(token: Optional[str]) -> Optional[dict]:
    """Return the token payload, or None when it is missing, forged or expired."""
    if not token:
        return None
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    if payload.get("type") != ADMIN_TOKEN_TYPE:
        return None
    return payload
