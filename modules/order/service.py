"""
Order Module - Service Layer
===============================
Checkout (cart -> immutable order), order lookup, and status management.

Checkout runs as ONE transaction: order + items, stock decrement, coupon
usage increment, usage audit row, and cart deletion either all land or
none do.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session
from sqlalchemy import desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from common.exceptions import (
    ValidationError, NotFoundError, BusinessRuleError, CouponRejectedError,
    InsufficientInventoryError, CartConflictError, CheckoutError,
)
from common.helpers import generate_code
from config.settings import ORDER_CODE_PREFIX, ORDER_CODE_LENGTH
from modules.cart.owner import OwnerKey, UserKey, AnonymousKey, owner_user_id
from modules.cart.service import cart_service
from modules.catalog.service import inventory_service
from modules.coupon.evaluator import AppliedCoupon
from modules.coupon.models import Coupon
from modules.coupon.service import coupon_service
from modules.order.models import (
    Order, OrderItem, OrderStatusLog, OrderStatus, PaymentStatus,
    ORDER_TRANSITIONS, PAYMENT_TRANSITIONS, PAYMENT_METHODS,
)

logger = logging.getLogger("shop.order")

# Checked in this order; the first blank one is reported
REQUIRED_CUSTOMER_FIELDS = ("fullName", "phone", "province", "district", "address")


def generate_unique_order_code(db: Session, max_attempts: int = 10) -> str:
    """Generate an order code that doesn't exist in DB yet."""
    for _ in range(max_attempts):
        code = f"{ORDER_CODE_PREFIX}{generate_code(ORDER_CODE_LENGTH)}"
        if not db.query(Order.id).filter(Order.order_code == code).first():
            return code
    raise CheckoutError()


def validate_customer_info(info: dict) -> dict:
    """Trimmed customer fields; raises ValidationError naming the first missing one."""
    info = info or {}
    for field in REQUIRED_CUSTOMER_FIELDS:
        if not str(info.get(field) or "").strip():
            raise ValidationError(f"missing field: {field}")

    payment_method = str(info.get("paymentMethod") or "cod").strip().lower()
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"unsupported payment method: {payment_method}")

    return {
        "full_name": str(info["fullName"]).strip(),
        "phone": str(info["phone"]).strip(),
        "email": str(info.get("email") or "").strip() or None,
        "province": str(info["province"]).strip(),
        "district": str(info["district"]).strip(),
        "address": str(info["address"]).strip(),
        "note": str(info.get("note") or "").strip(),
        "payment_method": payment_method,
    }


class OrderService:

    # ==========================================
    # Checkout
    # ==========================================

    def checkout(self, db: Session, owner: OwnerKey, customer_info: dict, now: Optional[datetime] = None) -> Order:
        """
        Convert the owner's cart into an order:
        1. Validate cart + customer fields
        2. Revalidate the coupon against the current cart
        3. Snapshot prices and create order + items
        4. Decrement stock per product (conditional; fails instead of overselling)
        5. Consume one coupon use (conditional; fails at the usage limit)
        6. Delete the cart

        Any failure in 3-6 rolls the whole transaction back and leaves the
        cart as it was.
        """
        cart = cart_service.find_cart(db, owner)
        if not cart or not cart.items:
            raise ValidationError("cart is empty")
        fields = validate_customer_info(customer_info)

        reason = cart_service.revalidate_coupon(db, cart, owner, now)
        if reason:
            raise CouponRejectedError(reason)

        cart_id = cart.id
        user_id = owner_user_id(owner)
        state = cart.coupon_state
        try:
            coupon = db.get(Coupon, state.coupon_id) if isinstance(state, AppliedCoupon) else None
            subtotal = cart.subtotal
            discount = int(cart.computed_discount or 0)

            order = Order(
                order_code=generate_unique_order_code(db),
                user_id=user_id,
                cart_token=owner.token if isinstance(owner, AnonymousKey) else None,
                subtotal=subtotal,
                discount=discount,
                total=max(subtotal - discount, 0),
                currency=cart.currency,
                status=OrderStatus.PENDING.value,
                payment_status=PaymentStatus.PENDING.value,
                **fields,
            )
            if coupon:
                order.coupon_id = coupon.id
                order.coupon_code = coupon.code
                order.coupon_discount_type = coupon.discount_type
                order.coupon_discount_value = coupon.discount_value

            for line in cart.items:
                order.items.append(OrderItem(
                    product_id=line.product_id,
                    sku=line.sku,
                    name=line.name,
                    image=line.image,
                    price=line.unit_price,
                    quantity=line.quantity,
                    line_total=line.line_total,
                ))
            db.add(order)
            db.flush()  # get order.id

            for line in cart.items:
                if not inventory_service.try_decrement(db, line.product_id, line.quantity):
                    raise InsufficientInventoryError(line.name)

            if coupon:
                if not coupon_service.try_consume(db, coupon.id):
                    raise CouponRejectedError("coupon usage limit exhausted")
                coupon_service.record_usage(db, coupon.id, user_id, order.id, discount)

            cart_service.delete_cart(db, cart)
            db.flush()
        except (InsufficientInventoryError, CouponRejectedError) as e:
            db.rollback()
            logger.warning("Checkout of cart %s aborted: %s", cart_id, e.message)
            raise
        except StaleDataError:
            db.rollback()
            logger.warning("Checkout of cart %s lost a race with another cart update", cart_id)
            raise CartConflictError()
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Checkout of cart %s failed", cart_id)
            raise CheckoutError()

        logger.info(
            "Order %s created from cart %s: subtotal=%s discount=%s total=%s",
            order.order_code, cart_id, order.subtotal, order.discount, order.total,
        )
        return order

    # ==========================================
    # Query
    # ==========================================

    def get_by_code(self, db: Session, order_code: str) -> Optional[Order]:
        code = str(order_code or "").strip().upper()
        return db.query(Order).filter(Order.order_code == code).first()

    def get_for_owner(self, db: Session, order_code: str, owner: Optional[OwnerKey], is_admin: bool = False) -> Order:
        """Order by code, visible to its owner (user or cart token) or an admin."""
        order = self.get_by_code(db, order_code)
        if not order:
            raise NotFoundError("order not found")
        if is_admin:
            return order
        if isinstance(owner, UserKey) and order.user_id == owner.user_id:
            return order
        if isinstance(owner, AnonymousKey) and order.cart_token and order.cart_token == owner.token:
            return order
        # Same answer as a missing order: codes are not enumerable
        raise NotFoundError("order not found")

    def get_user_orders(self, db: Session, user_id: int) -> List[Order]:
        return db.query(Order).filter(
            Order.user_id == user_id,
        ).order_by(desc(Order.created_at), desc(Order.id)).all()

    def get_order_by_id(self, db: Session, order_id: int) -> Order:
        order = db.get(Order, order_id)
        if not order:
            raise NotFoundError("order not found")
        return order

    # ==========================================
    # Status management (admin)
    # ==========================================

    def update_status(
        self,
        db: Session,
        order_id: int,
        status: Optional[str] = None,
        payment_status: Optional[str] = None,
        changed_by: Optional[int] = None,
    ) -> Order:
        """
        Move an order along ORDER_TRANSITIONS / PAYMENT_TRANSITIONS.
        Cancelling puts the ordered quantities back in stock.
        """
        if not status and not payment_status:
            raise ValidationError("status or paymentStatus is required")

        order = db.query(Order).filter(Order.id == order_id).with_for_update().first()
        if not order:
            raise NotFoundError("order not found")

        if status:
            status = status.strip().lower()
            if status not in ORDER_TRANSITIONS:
                raise ValidationError(f"unknown status: {status}")
            if status != order.status:
                if status not in ORDER_TRANSITIONS.get(order.status, set()):
                    raise BusinessRuleError(f"cannot change status from {order.status} to {status}")
                if status == OrderStatus.CANCELLED.value:
                    self._restock(db, order)
                self._log_change(db, order, "status", order.status, status, changed_by)
                order.status = status

        if payment_status:
            payment_status = payment_status.strip().lower()
            if payment_status not in PAYMENT_TRANSITIONS:
                raise ValidationError(f"unknown payment status: {payment_status}")
            if payment_status != order.payment_status:
                if payment_status not in PAYMENT_TRANSITIONS.get(order.payment_status, set()):
                    raise BusinessRuleError(
                        f"cannot change payment status from {order.payment_status} to {payment_status}"
                    )
                self._log_change(db, order, "payment_status", order.payment_status, payment_status, changed_by)
                order.payment_status = payment_status

        db.flush()
        return order

    # ==========================================
    # Private Helpers
    # ==========================================

    def _restock(self, db: Session, order: Order):
        for item in order.items:
            if item.product_id:
                inventory_service.restock(db, item.product_id, item.quantity)
        logger.info("Order %s cancelled, %d line(s) restocked", order.order_code, len(order.items))

    def _log_change(self, db: Session, order: Order, field: str, old: str, new: str, changed_by: Optional[int]):
        order.status_logs.append(OrderStatusLog(
            field=field,
            old_value=old,
            new_value=new,
            changed_by=changed_by,
        ))


# Singleton
order_service = OrderService()
