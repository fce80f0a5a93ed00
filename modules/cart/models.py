"""
Cart Module - Models
=====================
Shopping cart keyed by a user or an anonymous token, with one line per
product and a cached coupon discount.
"""

from sqlalchemy import (
    Column, Integer, String, BigInteger, ForeignKey, DateTime,
    UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from config.database import Base
from config.settings import CURRENCY
from modules.coupon.evaluator import NoCoupon, PendingCoupon, AppliedCoupon, CouponState
from modules.cart.owner import OwnerKey, UserKey, AnonymousKey


class Cart(Base):
    __tablename__ = "carts"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=True)
    cart_token = Column(String(64), unique=True, nullable=True)

    # Coupon snapshot (reference only; computed_discount is authoritative)
    coupon_code = Column(String(50), nullable=True)
    coupon_discount_type = Column(String, nullable=True)
    coupon_id = Column(Integer, ForeignKey("coupons.id", ondelete="SET NULL"), nullable=True)
    computed_discount = Column(BigInteger, default=0, nullable=False)

    currency = Column(String(8), default=CURRENCY, nullable=False)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now())

    items = relationship(
        "CartItem", back_populates="cart",
        cascade="all, delete-orphan", order_by="CartItem.id",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("(user_id IS NULL) <> (cart_token IS NULL)", name="ck_cart_single_owner"),
        CheckConstraint("computed_discount >= 0", name="ck_cart_discount"),
    )

    # ------------------------------------------
    # Derived totals
    # ------------------------------------------

    @property
    def subtotal(self) -> int:
        return sum(int(it.unit_price) * int(it.quantity) for it in self.items)

    @property
    def total_payable(self) -> int:
        return max(self.subtotal - int(self.computed_discount or 0), 0)

    def find_item(self, product_id: int):
        return next((it for it in self.items if it.product_id == product_id), None)

    # ------------------------------------------
    # Coupon state <-> columns
    # ------------------------------------------

    @property
    def coupon_state(self) -> CouponState:
        if not self.coupon_code:
            return NoCoupon()
        if self.coupon_id is None:
            return PendingCoupon(self.coupon_code)
        return AppliedCoupon(
            code=self.coupon_code,
            discount_type=self.coupon_discount_type,
            discount=int(self.computed_discount or 0),
            coupon_id=self.coupon_id,
        )

    @coupon_state.setter
    def coupon_state(self, state: CouponState):
        if isinstance(state, AppliedCoupon):
            self.coupon_code = state.code
            self.coupon_discount_type = state.discount_type
            self.coupon_id = state.coupon_id
            self.computed_discount = state.discount
        elif isinstance(state, PendingCoupon):
            self.coupon_code = state.code
            self.coupon_discount_type = None
            self.coupon_id = None
            self.computed_discount = 0
        else:
            self.coupon_code = None
            self.coupon_discount_type = None
            self.coupon_id = None
            self.computed_discount = 0

    @property
    def owner_key(self) -> OwnerKey:
        if self.user_id is not None:
            return UserKey(self.user_id)
        return AnonymousKey(self.cart_token)

    def as_api(self) -> dict:
        return {
            "id": self.id,
            "owner": self.owner_key.as_api(),
            "cartToken": self.cart_token,
            "items": [it.as_api() for it in self.items],
            "coupon": (
                {"code": self.coupon_code, "discountType": self.coupon_discount_type}
                if self.coupon_code else None
            ),
            "subtotal": self.subtotal,
            "computedDiscount": int(self.computed_discount or 0),
            "totalPayable": self.total_payable,
            "currency": self.currency,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


class CartItem(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True)
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)

    # Snapshot at add time
    sku = Column(String(64), default="", nullable=False)
    name = Column(String, nullable=False)
    image = Column(String, default="", nullable=False)
    unit_price = Column(BigInteger, nullable=False)

    quantity = Column(Integer, default=1, nullable=False)

    cart = relationship("Cart", back_populates="items")

    __table_args__ = (
        UniqueConstraint("cart_id", "product_id", name="uq_cart_product"),
        CheckConstraint("quantity >= 1", name="ck_cart_qty"),
        CheckConstraint("unit_price >= 0", name="ck_cart_price"),
    )

    @property
    def line_total(self) -> int:
        return int(self.unit_price) * int(self.quantity)

    def as_api(self) -> dict:
        return {
            "productId": self.product_id,
            "sku": self.sku,
            "name": self.name,
            "image": self.image,
            "price": int(self.unit_price),
            "quantity": self.quantity,
            "lineTotal": self.line_total,
        }
