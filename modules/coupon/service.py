"""
Coupon Service
================
Lookup, evaluate, consume, and administer coupons.

The rules themselves live in modules.coupon.evaluator (pure); this layer
fetches what the rules need from the database and owns the usage counter.
"""

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional, Dict, Any, Tuple

from sqlalchemy.orm import Session
from sqlalchemy import update, or_

from common.exceptions import ValidationError, NotFoundError, DuplicateError, BusinessRuleError
from common.helpers import now_utc, safe_int, as_utc
from modules.coupon.models import Coupon, CouponUsage, DiscountType
from modules.coupon.evaluator import evaluate, normalize_code, EvaluationResult
from modules.order.models import Order, OrderStatus

logger = logging.getLogger("shop.coupon")


class CouponService:

    # ------------------------------------------
    # Store
    # ------------------------------------------

    def get_by_code(self, db: Session, code: str) -> Optional[Coupon]:
        code = normalize_code(code)
        if not code:
            return None
        return db.query(Coupon).filter(Coupon.code == code).first()

    def usage_context(self, db: Session, coupon: Optional[Coupon], user_id: Optional[int]) -> Tuple[int, int]:
        """(prior uses of this coupon by the user, prior non-cancelled orders of the user)."""
        if coupon is None or user_id is None:
            return 0, 0
        prior_uses = 0
        if coupon.per_user_limit is not None:
            prior_uses = (
                db.query(CouponUsage)
                .filter(CouponUsage.coupon_id == coupon.id, CouponUsage.user_id == user_id)
                .count()
            )
        prior_orders = 0
        if coupon.only_first_order:
            prior_orders = (
                db.query(Order)
                .filter(Order.user_id == user_id, Order.status != OrderStatus.CANCELLED.value)
                .count()
            )
        return prior_uses, prior_orders

    def evaluate_code(
        self,
        db: Session,
        code: str,
        subtotal: int,
        user_id: Optional[int],
        now: Optional[datetime] = None,
    ) -> EvaluationResult:
        """Look up `code` and run the evaluator against a cart subtotal."""
        coupon = self.get_by_code(db, code)
        prior_uses, prior_orders = self.usage_context(db, coupon, user_id)
        return evaluate(coupon, subtotal, user_id, now or now_utc(), prior_uses, prior_orders)

    def quick_check(self, db: Session, code: str, subtotal: int, user_id: Optional[int]) -> Dict[str, Any]:
        """Validate without touching any cart. Used by the storefront's coupon box."""
        code = normalize_code(code)
        if not code:
            return {"valid": False, "code": code, "discount": 0, "reason": "coupon code is required"}
        if subtotal <= 0:
            return {"valid": False, "code": code, "discount": 0, "reason": "cart is empty"}

        result = self.evaluate_code(db, code, subtotal, user_id)
        if not result.valid:
            return {"valid": False, "code": code, "discount": 0, "reason": result.reason}
        return {
            "valid": True,
            "code": code,
            "discountType": result.coupon.discount_type,
            "discount": result.discount_amount,
            "totalPayable": max(subtotal - result.discount_amount, 0),
            "reason": None,
        }

    # ------------------------------------------
    # Usage counter (checkout)
    # ------------------------------------------

    def try_consume(self, db: Session, coupon_id: int) -> bool:
        """
        Increment used_count only while it is below usage_limit.
        Returns False when the coupon was exhausted (or deactivated) meanwhile.
        """
        result = db.execute(
            update(Coupon)
            .where(
                Coupon.id == coupon_id,
                Coupon.active.is_(True),
                or_(Coupon.usage_limit.is_(None), Coupon.used_count < Coupon.usage_limit),
            )
            .values(used_count=Coupon.used_count + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def record_usage(self, db: Session, coupon_id: int, user_id: Optional[int], order_id: int, amount: int) -> CouponUsage:
        usage = CouponUsage(
            coupon_id=coupon_id,
            user_id=user_id,
            order_id=order_id,
            discount_amount=amount,
        )
        db.add(usage)
        return usage

    # ------------------------------------------
    # Admin: CRUD
    # ------------------------------------------

    def get_coupon_by_id(self, db: Session, coupon_id: int) -> Coupon:
        coupon = db.get(Coupon, coupon_id)
        if not coupon:
            raise NotFoundError("coupon not found")
        return coupon

    def create_coupon(self, db: Session, data: Dict[str, Any]) -> Coupon:
        code = normalize_code(data.get("code"))
        if not code:
            raise ValidationError("missing field: code")
        if self.get_by_code(db, code):
            raise DuplicateError(f"coupon code {code} already exists")

        coupon = Coupon(code=code, used_count=0)
        self._apply_fields(coupon, data, creating=True)
        db.add(coupon)
        db.flush()
        logger.info("Coupon %s created (%s %s)", coupon.code, coupon.discount_type, coupon.discount_value)
        return coupon

    def update_coupon(self, db: Session, coupon_id: int, data: Dict[str, Any]) -> Coupon:
        coupon = self.get_coupon_by_id(db, coupon_id)
        if "code" in data:
            code = normalize_code(data["code"])
            if not code:
                raise ValidationError("code cannot be empty")
            other = self.get_by_code(db, code)
            if other and other.id != coupon.id:
                raise DuplicateError(f"coupon code {code} already exists")
            coupon.code = code
        self._apply_fields(coupon, data, creating=False)
        db.flush()
        return coupon

    def delete_coupon(self, db: Session, coupon_id: int) -> None:
        coupon = self.get_coupon_by_id(db, coupon_id)
        if coupon.used_count > 0:
            raise BusinessRuleError("coupon has already been used; deactivate it instead")
        db.delete(coupon)
        db.flush()

    # ------------------------------------------
    # Private helpers
    # ------------------------------------------

    _INT_FIELDS = {
        "maxDiscount": "max_discount",
        "minSubtotal": "min_subtotal",
        "maxSubtotal": "max_subtotal",
        "usageLimit": "usage_limit",
        "perUserLimit": "per_user_limit",
    }
    _BOOL_FIELDS = {
        "requireLoggedIn": "require_logged_in",
        "onlyFirstOrder": "only_first_order",
        "active": "active",
    }
    _LIST_FIELDS = {
        "includeSkus": "include_skus",
        "excludeSkus": "exclude_skus",
        "includeCategories": "include_categories",
        "excludeCategories": "exclude_categories",
    }

    def _apply_fields(self, coupon: Coupon, data: Dict[str, Any], creating: bool):
        if creating or "discountType" in data:
            dtype = str(data.get("discountType") or "").strip().lower()
            if dtype not in {t.value for t in DiscountType}:
                raise ValidationError("discountType must be 'percent' or 'amount'")
            coupon.discount_type = dtype

        if creating or "discountValue" in data:
            try:
                value = Decimal(str(data.get("discountValue")))
            except (InvalidOperation, ValueError):
                raise ValidationError("discountValue must be a number")
            if not value.is_finite():
                raise ValidationError("discountValue must be a number")
            coupon.discount_value = value

        for key, attr in self._INT_FIELDS.items():
            if key in data:
                raw = data[key]
                if raw is None or raw == "":
                    setattr(coupon, attr, None)
                    continue
                val = safe_int(raw)
                if val is None or val < 0:
                    raise ValidationError(f"{key} must be a non-negative integer")
                setattr(coupon, attr, val)

        for key, attr in self._BOOL_FIELDS.items():
            if key in data:
                setattr(coupon, attr, self._parse_bool(key, data[key]))
            elif creating:
                setattr(coupon, attr, key == "active")

        for key, attr in self._LIST_FIELDS.items():
            if key in data:
                items = data[key] or []
                if not isinstance(items, list):
                    raise ValidationError(f"{key} must be a list")
                setattr(coupon, attr, [str(x).strip() for x in items if str(x).strip()])

        for key, attr in (("startsAt", "starts_at"), ("endsAt", "ends_at")):
            if key in data:
                setattr(coupon, attr, self._parse_datetime(key, data[key]))

        if "note" in data:
            coupon.note = data["note"] or ""

        self._check_consistency(coupon)

    def _parse_bool(self, key: str, raw) -> bool:
        if isinstance(raw, bool):
            return raw
        if raw is None:
            return False
        s = str(raw).strip().lower()
        if s in ("true", "1"):
            return True
        if s in ("false", "0", ""):
            return False
        raise ValidationError(f"{key} must be true or false")

    def _parse_datetime(self, key: str, raw) -> Optional[datetime]:
        if raw in (None, ""):
            return None
        if isinstance(raw, datetime):
            return as_utc(raw)
        s = str(raw).strip()
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        try:
            return as_utc(datetime.fromisoformat(s))
        except ValueError:
            raise ValidationError(f"invalid datetime format for {key}")

    def _check_consistency(self, coupon: Coupon):
        value = Decimal(str(coupon.discount_value or 0))
        if value <= 0:
            raise ValidationError("discountValue must be > 0")
        if coupon.is_percent and value > 100:
            raise ValidationError("percent discountValue must be <= 100")
        if not coupon.is_percent and coupon.max_discount is not None:
            raise ValidationError("maxDiscount applies to percent coupons only")
        if (
            coupon.min_subtotal is not None and coupon.max_subtotal is not None
            and coupon.min_subtotal > coupon.max_subtotal
        ):
            raise ValidationError("minSubtotal must not exceed maxSubtotal")
        starts_at, ends_at = as_utc(coupon.starts_at), as_utc(coupon.ends_at)
        if starts_at and ends_at and starts_at >= ends_at:
            raise ValidationError("startsAt must be before endsAt")


# Singleton
coupon_service = CouponService()
