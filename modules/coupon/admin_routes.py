"""
Coupon Admin Routes
=====================
Create, inspect, update, and delete coupons.
Payload keys are camelCase, as returned by Coupon.as_api().
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Body
from sqlalchemy.orm import Session

from config.database import get_db
from modules.auth.deps import require_admin
from modules.coupon.service import coupon_service

router = APIRouter(prefix="/api/v1/admin/coupons", tags=["admin-coupon"])


@router.post("", status_code=201)
async def create_coupon(
    payload: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    user=Depends(require_admin),
):
    coupon = coupon_service.create_coupon(db, payload)
    db.commit()
    return {"success": True, "message": "coupon created", "data": coupon.as_api()}


@router.get("/{coupon_id}")
async def get_coupon(
    coupon_id: int,
    db: Session = Depends(get_db),
    user=Depends(require_admin),
):
    coupon = coupon_service.get_coupon_by_id(db, coupon_id)
    return {"success": True, "data": coupon.as_api()}


@router.patch("/{coupon_id}")
async def update_coupon(
    coupon_id: int,
    payload: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    user=Depends(require_admin),
):
    coupon = coupon_service.update_coupon(db, coupon_id, payload)
    db.commit()
    return {"success": True, "message": "coupon updated", "data": coupon.as_api()}


@router.delete("/{coupon_id}")
async def delete_coupon(
    coupon_id: int,
    db: Session = Depends(get_db),
    user=Depends(require_admin),
):
    coupon_service.delete_coupon(db, coupon_id)
    db.commit()
    return {"success": True, "message": "coupon deleted"}
