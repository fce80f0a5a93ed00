"""
Coupon Routes - Customer Facing
==================================
Quick coupon validation against the caller's cart (no side effects).
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from config.database import get_db
from modules.cart.deps import get_optional_owner_key
from modules.cart.owner import OwnerKey, owner_user_id
from modules.cart.service import cart_service
from modules.coupon.service import coupon_service

router = APIRouter(prefix="/api/v1/coupons", tags=["coupon"])


@router.get("/check")
async def check_coupon(
    code: str = Query(""),
    owner: Optional[OwnerKey] = Depends(get_optional_owner_key),
    db: Session = Depends(get_db),
):
    """Validate a coupon code against the current cart subtotal."""
    cart = cart_service.find_cart(db, owner, lock=False) if owner else None
    subtotal = cart.subtotal if cart else 0
    user_id = owner_user_id(owner) if owner else None

    result = coupon_service.quick_check(db, code, subtotal, user_id)
    return {"success": True, "data": result}
