"""
Coupon Module - Models
========================
Promotional discount codes and their usage audit trail.

Features:
  - Percentage (with optional cap) or fixed amount
  - Min/Max cart subtotal window
  - Date range (starts_at / ends_at)
  - Usage limits (global counter + per-user)
  - Login-required / first-order-only flags
  - SKU / category include & exclude lists (stored, not evaluated)
  - Active kill-switch
"""

import enum
from sqlalchemy import (
    Column, Integer, String, BigInteger, Boolean, Text, Numeric,
    DateTime, ForeignKey, Index, JSON, CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from config.database import Base


# ==========================================
# Enums
# ==========================================

class DiscountType(str, enum.Enum):
    PERCENT = "percent"
    AMOUNT = "amount"


# ==========================================
# Coupon
# ==========================================

class Coupon(Base):
    __tablename__ = "coupons"

    id = Column(Integer, primary_key=True)
    code = Column(String(50), unique=True, nullable=False, index=True)  # stored uppercase

    discount_type = Column(String, default=DiscountType.PERCENT.value, nullable=False)
    discount_value = Column(Numeric(12, 2), nullable=False)  # percent (e.g. 10) or amount
    max_discount = Column(BigInteger, nullable=True)          # cap, percent only

    # Eligibility window on cart subtotal
    min_subtotal = Column(BigInteger, nullable=True)
    max_subtotal = Column(BigInteger, nullable=True)

    # Date range
    starts_at = Column(DateTime(timezone=True), nullable=True)
    ends_at = Column(DateTime(timezone=True), nullable=True)

    # Usage limits
    usage_limit = Column(Integer, nullable=True)
    used_count = Column(Integer, default=0, server_default="0", nullable=False)
    per_user_limit = Column(Integer, nullable=True)

    # Identity flags
    require_logged_in = Column(Boolean, default=False, nullable=False)
    only_first_order = Column(Boolean, default=False, nullable=False)

    # Scoping lists
    include_skus = Column(JSON, nullable=True)
    exclude_skus = Column(JSON, nullable=True)
    include_categories = Column(JSON, nullable=True)
    exclude_categories = Column(JSON, nullable=True)

    active = Column(Boolean, default=True, nullable=False, index=True)
    note = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    usages = relationship("CouponUsage", back_populates="coupon", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("used_count >= 0", name="ck_coupon_used_count"),
        Index("ix_coupon_active_window", "active", "starts_at", "ends_at"),
    )

    @property
    def is_percent(self) -> bool:
        return self.discount_type == DiscountType.PERCENT.value

    def as_api(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "discountType": self.discount_type,
            "discountValue": float(self.discount_value) if self.discount_value is not None else None,
            "maxDiscount": self.max_discount,
            "minSubtotal": self.min_subtotal,
            "maxSubtotal": self.max_subtotal,
            "startsAt": self.starts_at.isoformat() if self.starts_at else None,
            "endsAt": self.ends_at.isoformat() if self.ends_at else None,
            "usageLimit": self.usage_limit,
            "usedCount": self.used_count,
            "perUserLimit": self.per_user_limit,
            "requireLoggedIn": self.require_logged_in,
            "onlyFirstOrder": self.only_first_order,
            "includeSkus": self.include_skus or [],
            "excludeSkus": self.exclude_skus or [],
            "includeCategories": self.include_categories or [],
            "excludeCategories": self.exclude_categories or [],
            "active": self.active,
            "note": self.note or "",
        }


# ==========================================
# CouponUsage (audit trail)
# ==========================================

class CouponUsage(Base):
    __tablename__ = "coupon_usages"

    id = Column(Integer, primary_key=True)
    coupon_id = Column(Integer, ForeignKey("coupons.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="SET NULL"), nullable=True)
    discount_amount = Column(BigInteger, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    coupon = relationship("Coupon", back_populates="usages")

    __table_args__ = (
        Index("ix_usage_coupon_user", "coupon_id", "user_id"),
    )
