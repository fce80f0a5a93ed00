"""
Cart Routes
=============
JSON API for the storefront cart: items, coupon, merge on login, checkout.

Endpoints:
  GET    /api/v1/cart               : Priced cart (coupon revalidated)
  POST   /api/v1/cart/add           : Add product (clamped to stock)
  PATCH  /api/v1/cart/item          : Set absolute quantity (0 removes)
  DELETE /api/v1/cart/item          : Remove line (idempotent)
  POST   /api/v1/cart/clear         : Empty cart, drop coupon
  POST   /api/v1/cart/apply-coupon  : Apply code or report why not
  POST   /api/v1/cart/remove-coupon : Drop the applied code
  POST   /api/v1/cart/merge         : Fold the guest cart into the user's
  POST   /api/v1/cart/checkout      : Place order
"""

from typing import Optional

from fastapi import APIRouter, Request, Response, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from config.database import get_db
from config.settings import CART_TOKEN_COOKIE
from common.exceptions import ValidationError
from modules.auth.deps import require_login
from modules.cart.deps import get_owner_key, request_cart_token
from modules.cart.owner import OwnerKey, resolve_owner_key
from modules.cart.service import cart_service
from modules.order.service import order_service

router = APIRouter(prefix="/api/v1/cart", tags=["cart"])


# ==========================================
# Schemas
# ==========================================

class AddItemRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: int = Field(..., alias="productId")
    quantity: int = 1


class SetQuantityRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: int = Field(..., alias="productId")
    quantity: int


class CouponRequest(BaseModel):
    code: str = ""


class MergeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_cart_token: Optional[str] = Field(None, alias="fromCartToken")


class CheckoutRequest(BaseModel):
    """All optional here; the service reports the first missing field."""
    model_config = ConfigDict(populate_by_name=True)

    full_name: Optional[str] = Field(None, alias="fullName")
    phone: Optional[str] = None
    email: Optional[str] = None
    province: Optional[str] = None
    district: Optional[str] = None
    address: Optional[str] = None
    note: Optional[str] = ""
    payment_method: Optional[str] = Field(None, alias="paymentMethod")


# ==========================================
# Cart
# ==========================================

@router.get("")
async def get_cart(
    owner: OwnerKey = Depends(get_owner_key),
    db: Session = Depends(get_db),
):
    cart = cart_service.get_cart(db, owner)
    db.commit()
    return {"success": True, "data": cart.as_api()}


@router.post("/add")
async def add_item(
    body: AddItemRequest,
    owner: OwnerKey = Depends(get_owner_key),
    db: Session = Depends(get_db),
):
    cart = cart_service.add_item(db, owner, body.product_id, body.quantity)
    db.commit()
    return {"success": True, "message": "added to cart", "data": cart.as_api()}


@router.patch("/item")
async def set_item_quantity(
    body: SetQuantityRequest,
    owner: OwnerKey = Depends(get_owner_key),
    db: Session = Depends(get_db),
):
    cart = cart_service.set_item_quantity(db, owner, body.product_id, body.quantity)
    db.commit()
    return {"success": True, "data": cart.as_api()}


@router.delete("/item")
async def remove_item(
    product_id: int = Query(..., alias="productId"),
    owner: OwnerKey = Depends(get_owner_key),
    db: Session = Depends(get_db),
):
    cart = cart_service.remove_item(db, owner, product_id)
    db.commit()
    return {"success": True, "data": cart.as_api()}


@router.post("/clear")
async def clear_cart(
    owner: OwnerKey = Depends(get_owner_key),
    db: Session = Depends(get_db),
):
    cart = cart_service.clear_cart(db, owner)
    db.commit()
    return {"success": True, "data": cart.as_api()}


# ==========================================
# Coupon
# ==========================================

@router.post("/apply-coupon")
async def apply_coupon(
    body: CouponRequest,
    owner: OwnerKey = Depends(get_owner_key),
    db: Session = Depends(get_db),
):
    cart = cart_service.apply_coupon(db, owner, body.code)
    db.commit()
    return {"success": True, "message": "coupon applied", "data": cart.as_api()}


@router.post("/remove-coupon")
async def remove_coupon(
    owner: OwnerKey = Depends(get_owner_key),
    db: Session = Depends(get_db),
):
    cart = cart_service.remove_coupon(db, owner)
    db.commit()
    return {"success": True, "data": cart.as_api()}


# ==========================================
# Merge (after login)
# ==========================================

@router.post("/merge")
async def merge_carts(
    request: Request,
    response: Response,
    body: Optional[MergeRequest] = None,
    user=Depends(require_login),
    db: Session = Depends(get_db),
):
    """Guest token comes from the body, else from the X-Cart-Token header / cookie."""
    token = (body.from_cart_token if body else None) or request_cart_token(request)
    if not token:
        raise ValidationError("fromCartToken is required")

    cart = cart_service.merge_carts(
        db,
        resolve_owner_key(user.id, None),
        resolve_owner_key(None, token),
    )
    db.commit()
    response.delete_cookie(CART_TOKEN_COOKIE)
    return {"success": True, "message": "carts merged", "data": cart.as_api()}


# ==========================================
# Checkout
# ==========================================

@router.post("/checkout")
async def checkout(
    body: CheckoutRequest,
    owner: OwnerKey = Depends(get_owner_key),
    db: Session = Depends(get_db),
):
    order = order_service.checkout(db, owner, body.model_dump(by_alias=True))
    db.commit()
    return {"success": True, "message": "order placed", "data": order.as_api()}
