"""
Coupon Evaluator
==================
Pure functions: no database, no clock, no side effects.

Validation chain (short-circuits on the first failure):
  1. Coupon exists & is active
  2. Date range (starts_at / ends_at)
  3. Global usage limit
  4. Identity (login required, per-user limit, first order only)
  5. Subtotal window (min / max)
  6. Discount amount (percent with cap, or fixed amount capped at subtotal)
  7. Discount must be > 0

SKU/category include/exclude lists on the coupon are not
consulted: the discount is always computed on the whole cart subtotal.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Tuple, Union

from common.helpers import as_utc, round_half_up
from modules.coupon.models import Coupon, DiscountType


def normalize_code(code) -> str:
    return str(code or "").strip().upper()


# ==========================================
# Evaluation result
# ==========================================

@dataclass(frozen=True)
class CouponRejected:
    reason: str
    valid: bool = False


@dataclass(frozen=True)
class CouponAccepted:
    discount_amount: int
    coupon: Coupon
    valid: bool = True


EvaluationResult = Union[CouponAccepted, CouponRejected]


def calculate_discount(coupon: Coupon, subtotal: int) -> int:
    """Raw discount in whole currency units, before the > 0 check."""
    value = Decimal(str(coupon.discount_value or 0))
    if coupon.discount_type == DiscountType.PERCENT.value:
        raw = round_half_up(Decimal(subtotal) * value / Decimal(100))
        if coupon.max_discount is not None:
            raw = min(raw, int(coupon.max_discount))
        return raw
    # Fixed amount - can't exceed what is being discounted
    return min(round_half_up(value), subtotal)


def evaluate(
    coupon: Optional[Coupon],
    subtotal: int,
    user_id: Optional[int],
    now: datetime,
    prior_uses: int = 0,
    prior_orders: int = 0,
) -> EvaluationResult:
    """
    Validate `coupon` against a cart subtotal for a caller at time `now`.

    `user_id` is None for anonymous carts. `prior_uses` is how many times this
    user already redeemed the coupon and `prior_orders` how many orders they
    placed; both are supplied by the caller and ignored for anonymous carts.
    """
    # 1. Exists & active
    if coupon is None or not coupon.active:
        return CouponRejected("coupon not found or inactive")

    # 2. Date range
    starts_at, ends_at = as_utc(coupon.starts_at), as_utc(coupon.ends_at)
    if starts_at and now < starts_at:
        return CouponRejected("coupon not yet started")
    if ends_at and now > ends_at:
        return CouponRejected("coupon expired")

    # 3. Global usage limit
    if coupon.usage_limit is not None and (coupon.used_count or 0) >= coupon.usage_limit:
        return CouponRejected("coupon usage limit exhausted")

    # 4. Identity
    if (coupon.require_logged_in or coupon.only_first_order) and user_id is None:
        return CouponRejected("login required")
    if user_id is not None:
        if coupon.per_user_limit is not None and prior_uses >= coupon.per_user_limit:
            return CouponRejected("per-user limit reached")
        if coupon.only_first_order and prior_orders > 0:
            return CouponRejected("coupon is valid on the first order only")

    # 5. Subtotal window
    if coupon.min_subtotal is not None and subtotal < coupon.min_subtotal:
        return CouponRejected(f"subtotal below minimum {coupon.min_subtotal}")
    if coupon.max_subtotal is not None and subtotal > coupon.max_subtotal:
        return CouponRejected(f"subtotal above maximum {coupon.max_subtotal}")

    # 6-7. Discount
    discount = calculate_discount(coupon, subtotal)
    if discount <= 0:
        return CouponRejected("no effective discount")

    return CouponAccepted(discount_amount=discount, coupon=coupon)


# ==========================================
# Cart coupon state
# ==========================================

@dataclass(frozen=True)
class NoCoupon:
    discount: int = 0


@dataclass(frozen=True)
class PendingCoupon:
    code: str
    discount: int = 0


@dataclass(frozen=True)
class AppliedCoupon:
    code: str
    discount_type: str
    discount: int
    coupon_id: int


CouponState = Union[NoCoupon, PendingCoupon, AppliedCoupon]


def recompute(
    state: CouponState,
    coupon: Optional[Coupon],
    subtotal: int,
    user_id: Optional[int],
    now: datetime,
    prior_uses: int = 0,
    prior_orders: int = 0,
) -> Tuple[CouponState, Optional[str]]:
    """
    Transition a cart's coupon state after a mutation.

    `coupon` is the record currently stored under the state's code (None if
    missing). Returns (new_state, rejection_reason); the reason is set only
    when a code was present and had to be dropped.
    """
    if isinstance(state, NoCoupon):
        return NoCoupon(), None

    result = evaluate(coupon, subtotal, user_id, now, prior_uses, prior_orders)
    if not result.valid:
        return NoCoupon(), result.reason

    return AppliedCoupon(
        code=state.code,
        discount_type=result.coupon.discount_type,
        discount=result.discount_amount,
        coupon_id=result.coupon.id,
    ), None
