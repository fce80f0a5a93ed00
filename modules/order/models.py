"""
Order Module - Models
======================
Order with full price snapshot per item for audit trail.
Only status / payment_status change after creation.
"""

import enum
from sqlalchemy import (
    Column, Integer, String, BigInteger, Numeric, Text,
    ForeignKey, DateTime, CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from config.database import Base
from config.settings import CURRENCY


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPING = "shipping"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


PAYMENT_METHODS = ("cod", "banking")


# Allowed transitions (current -> next)
ORDER_TRANSITIONS = {
    OrderStatus.PENDING.value: {OrderStatus.CONFIRMED.value, OrderStatus.CANCELLED.value},
    OrderStatus.CONFIRMED.value: {OrderStatus.SHIPPING.value, OrderStatus.CANCELLED.value},
    OrderStatus.SHIPPING.value: {OrderStatus.COMPLETED.value},
    OrderStatus.COMPLETED.value: set(),
    OrderStatus.CANCELLED.value: set(),
}

PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING.value: {PaymentStatus.PAID.value, PaymentStatus.FAILED.value},
    PaymentStatus.FAILED.value: {PaymentStatus.PAID.value},
    PaymentStatus.PAID.value: {PaymentStatus.REFUNDED.value},
    PaymentStatus.REFUNDED.value: set(),
}


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_code = Column(String(32), unique=True, nullable=False, index=True)

    # Owner back-references (audit, not ownership)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    cart_token = Column(String(64), nullable=True)

    # Customer snapshot
    full_name = Column(String, nullable=False)
    phone = Column(String(30), nullable=False)
    email = Column(String, nullable=True)
    province = Column(String, nullable=False)
    district = Column(String, nullable=False)
    address = Column(Text, nullable=False)
    note = Column(Text, default="", nullable=False)

    # Money snapshot
    subtotal = Column(BigInteger, nullable=False)
    discount = Column(BigInteger, default=0, nullable=False)
    total = Column(BigInteger, nullable=False)
    currency = Column(String(8), default=CURRENCY, nullable=False)

    # Coupon snapshot
    coupon_id = Column(Integer, ForeignKey("coupons.id", ondelete="SET NULL"), nullable=True)
    coupon_code = Column(String(50), nullable=True)
    coupon_discount_type = Column(String, nullable=True)
    coupon_discount_value = Column(Numeric(12, 2), nullable=True)

    status = Column(String, default=OrderStatus.PENDING.value, nullable=False, index=True)
    payment_status = Column(String, default=PaymentStatus.PENDING.value, nullable=False)
    payment_method = Column(String, default="cod", nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.id")
    status_logs = relationship("OrderStatusLog", back_populates="order", cascade="all, delete-orphan", order_by="OrderStatusLog.id")

    __table_args__ = (
        CheckConstraint("subtotal >= 0 AND total >= 0 AND discount >= 0", name="ck_order_money"),
    )

    @property
    def total_payable(self) -> int:
        return self.total

    def as_api(self) -> dict:
        return {
            "id": self.id,
            "orderCode": self.order_code,
            "status": self.status,
            "paymentStatus": self.payment_status,
            "paymentMethod": self.payment_method,
            "customer": {
                "fullName": self.full_name,
                "phone": self.phone,
                "email": self.email,
                "province": self.province,
                "district": self.district,
                "address": self.address,
                "note": self.note or "",
            },
            "items": [it.as_api() for it in self.items],
            "subtotal": self.subtotal,
            "discount": self.discount,
            "total": self.total,
            "totalPayable": self.total_payable,
            "currency": self.currency,
            "coupon": (
                {
                    "code": self.coupon_code,
                    "discountType": self.coupon_discount_type,
                    "discountValue": float(self.coupon_discount_value or 0),
                }
                if self.coupon_code else None
            ),
            "userId": self.user_id,
            "cartToken": self.cart_token,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="SET NULL"), nullable=True)

    # Price snapshot at time of purchase
    sku = Column(String(64), default="", nullable=False)
    name = Column(String, nullable=False)
    image = Column(String, default="", nullable=False)
    price = Column(BigInteger, nullable=False)
    quantity = Column(Integer, nullable=False)
    line_total = Column(BigInteger, nullable=False)

    order = relationship("Order", back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_item_qty"),
    )

    def as_api(self) -> dict:
        return {
            "productId": self.product_id,
            "sku": self.sku,
            "name": self.name,
            "image": self.image,
            "price": self.price,
            "quantity": self.quantity,
            "lineTotal": self.line_total,
        }


class OrderStatusLog(Base):
    __tablename__ = "order_status_logs"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    field = Column(String(20), nullable=False)        # "status" | "payment_status"
    old_value = Column(String, nullable=True)
    new_value = Column(String, nullable=False)
    changed_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    order = relationship("Order", back_populates="status_logs")
