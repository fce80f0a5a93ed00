"""
Order Module - Admin Routes
==============================
Order inspection and status changes for admin.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from config.database import get_db
from modules.auth.deps import require_admin
from modules.order.service import order_service

router = APIRouter(prefix="/api/v1/admin/orders", tags=["order-admin"])


class StatusUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: Optional[str] = None
    payment_status: Optional[str] = Field(None, alias="paymentStatus")


def _order_detail(order) -> dict:
    data = order.as_api()
    data["statusLogs"] = [
        {
            "field": log.field,
            "oldValue": log.old_value,
            "newValue": log.new_value,
            "changedBy": log.changed_by,
            "createdAt": log.created_at.isoformat() if log.created_at else None,
        }
        for log in order.status_logs
    ]
    return data


@router.get("/{order_id}")
async def admin_get_order(
    order_id: int,
    db: Session = Depends(get_db),
    user=Depends(require_admin),
):
    order = order_service.get_order_by_id(db, order_id)
    return {"success": True, "data": _order_detail(order)}


@router.patch("/{order_id}/status")
async def admin_update_status(
    order_id: int,
    body: StatusUpdateRequest,
    db: Session = Depends(get_db),
    user=Depends(require_admin),
):
    order = order_service.update_status(
        db, order_id,
        status=body.status,
        payment_status=body.payment_status,
        changed_by=user.id,
    )
    db.commit()
    return {"success": True, "message": "order updated", "data": _order_detail(order)}
