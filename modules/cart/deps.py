"""
Cart Module - Dependencies
===========================
Resolves the owner key of the current request.

Anonymous callers are identified by the X-Cart-Token header or the
cart_token cookie. When neither is present a fresh token is minted, set as
a cookie and echoed in the X-Cart-Token response header.
"""

from typing import Optional

from fastapi import Request, Response, Depends

from config.settings import CART_TOKEN_COOKIE, CART_TOKEN_HEADER
from common.security import new_cart_token, get_cart_cookie_kwargs
from modules.auth.deps import get_current_active_user
from modules.cart.owner import OwnerKey, resolve_owner_key


def request_cart_token(request: Request) -> Optional[str]:
    token = request.headers.get(CART_TOKEN_HEADER) or request.cookies.get(CART_TOKEN_COOKIE)
    token = (token or "").strip()
    return token or None


def get_owner_key(
    request: Request,
    response: Response,
    user=Depends(get_current_active_user),
) -> OwnerKey:
    """Owner key for cart operations; mints an anonymous token on first visit."""
    if user:
        return resolve_owner_key(user.id, None)

    token = request_cart_token(request)
    if not token:
        token = new_cart_token()
        response.set_cookie(CART_TOKEN_COOKIE, token, **get_cart_cookie_kwargs())
        response.headers[CART_TOKEN_HEADER] = token
    return resolve_owner_key(None, token)


def get_optional_owner_key(
    request: Request,
    user=Depends(get_current_active_user),
) -> Optional[OwnerKey]:
    """Owner key if the caller has one; never mints a token."""
    if user:
        return resolve_owner_key(user.id, None)
    token = request_cart_token(request)
    return resolve_owner_key(None, token) if token else None
