"""
Storefront - Security Utilities
================================
Bearer JWT verification and anonymous cart tokens.

NOTE: tokens are issued elsewhere; create_token exists for tooling and tests.
"""

import logging
import uuid
from datetime import timedelta
from typing import Optional

from jose import jwt, JWTError

from config.settings import (
    SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES,
    COOKIE_SECURE, COOKIE_SAMESITE, CART_TOKEN_MAX_AGE_DAYS,
)
from common.helpers import now_utc

logger = logging.getLogger("shop.security")


# ==========================================
# JWT Tokens
# ==========================================

def create_token(data: dict) -> str:
    """Create a signed JWT carrying `data` (expects "sub" = user id)."""
    to_encode = data.copy()
    to_encode["exp"] = now_utc() + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Decode a JWT token. Returns payload or None."""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.debug("Rejected bearer token: %s", e)
        return None


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from an `Authorization: Bearer ...` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


# ==========================================
# Anonymous cart token
# ==========================================

def new_cart_token() -> str:
    """Generate an opaque per-browser cart token."""
    return str(uuid.uuid4())


def get_cart_cookie_kwargs() -> dict:
    """Cookie settings for the anonymous cart token (readable by the storefront JS)."""
    return dict(
        httponly=False,
        secure=COOKIE_SECURE,
        samesite=COOKIE_SAMESITE,
        max_age=CART_TOKEN_MAX_AGE_DAYS * 24 * 3600,
    )
