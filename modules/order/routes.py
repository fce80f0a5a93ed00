"""
Order Routes - Customer Facing
=================================
Order lookup for the customer who placed it.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from config.database import get_db
from modules.auth.deps import get_current_active_user, require_login
from modules.cart.deps import get_optional_owner_key
from modules.cart.owner import OwnerKey
from modules.order.service import order_service

router = APIRouter(prefix="/api/v1/orders", tags=["order"])


@router.get("/mine")
async def my_orders(
    user=Depends(require_login),
    db: Session = Depends(get_db),
):
    orders = order_service.get_user_orders(db, user.id)
    return {"success": True, "data": [o.as_api() for o in orders]}


@router.get("/{order_code}")
async def get_order(
    order_code: str,
    owner: Optional[OwnerKey] = Depends(get_optional_owner_key),
    user=Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """Visible to the placing user, the placing cart token, or an admin."""
    is_admin = bool(user and user.is_admin)
    order = order_service.get_for_owner(db, order_code, owner, is_admin=is_admin)
    return {"success": True, "data": order.as_api()}
