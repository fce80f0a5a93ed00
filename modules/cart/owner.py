"""
Cart Module - Owner Keys
==========================
A cart belongs to exactly one owner: a logged-in user or an anonymous
browser token. resolve_owner_key() is the single place that decides which.
"""

from dataclasses import dataclass
from typing import Optional, Union

from common.exceptions import AuthenticationError, ValidationError


@dataclass(frozen=True)
class UserKey:
    user_id: int

    def as_api(self) -> dict:
        return {"type": "user", "id": self.user_id}


@dataclass(frozen=True)
class AnonymousKey:
    token: str

    def as_api(self) -> dict:
        return {"type": "anonymous", "token": self.token}


OwnerKey = Union[UserKey, AnonymousKey]


def resolve_owner_key(user_id: Optional[int], cart_token: Optional[str]) -> OwnerKey:
    """Authenticated user wins; the anonymous token is used only without one."""
    if user_id is not None:
        return UserKey(int(user_id))
    token = (cart_token or "").strip()
    if not token:
        raise ValidationError("cart token is required for anonymous carts")
    return AnonymousKey(token)


def owner_user_id(owner: OwnerKey) -> Optional[int]:
    return owner.user_id if isinstance(owner, UserKey) else None


def require_user(owner: OwnerKey) -> UserKey:
    if not isinstance(owner, UserKey):
        raise AuthenticationError()
    return owner
