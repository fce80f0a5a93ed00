"""Coupon rules and coupon-state transitions. No database involved."""

from datetime import datetime, timedelta, timezone

from modules.coupon.evaluator import (
    evaluate, calculate_discount, recompute, normalize_code,
    NoCoupon, PendingCoupon, AppliedCoupon,
)
from modules.coupon.models import Coupon

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)


def coupon(**kwargs) -> Coupon:
    defaults = dict(
        id=1, code="SAVE10", discount_type="percent", discount_value=10,
        used_count=0, active=True, require_logged_in=False, only_first_order=False,
    )
    defaults.update(kwargs)
    return Coupon(**defaults)


class TestDiscountAmount:
    def test_percent_capped_by_max_discount(self):
        c = coupon(discount_value=10, max_discount=20000)
        assert calculate_discount(c, 500000) == 20000

    def test_amount_never_exceeds_subtotal(self):
        c = coupon(discount_type="amount", discount_value=50000)
        assert calculate_discount(c, 30000) == 30000

    def test_percent_rounds_half_up(self):
        assert calculate_discount(coupon(discount_value=10), 125) == 13
        assert calculate_discount(coupon(discount_value=10), 124) == 12

    def test_save10_on_200000(self):
        result = evaluate(coupon(), 200000, None, NOW)
        assert result.valid
        assert result.discount_amount == 20000


class TestRejections:
    def test_missing_coupon(self):
        assert evaluate(None, 100, None, NOW).reason == "coupon not found or inactive"

    def test_inactive_coupon(self):
        assert evaluate(coupon(active=False), 100000, None, NOW).reason == "coupon not found or inactive"

    def test_not_yet_started(self):
        c = coupon(starts_at=NOW + timedelta(hours=1))
        assert evaluate(c, 100000, None, NOW).reason == "coupon not yet started"

    def test_expired(self):
        c = coupon(ends_at=NOW - timedelta(seconds=1))
        assert evaluate(c, 100000, None, NOW).reason == "coupon expired"

    def test_naive_datetimes_are_utc(self):
        c = coupon(ends_at=datetime(2026, 5, 1, 11, 0))
        assert evaluate(c, 100000, None, NOW).reason == "coupon expired"

    def test_usage_exhausted(self):
        c = coupon(usage_limit=5, used_count=5)
        assert evaluate(c, 100000, None, NOW).reason == "coupon usage limit exhausted"

    def test_login_required_for_anonymous(self):
        c = coupon(require_logged_in=True)
        assert evaluate(c, 100000, None, NOW).reason == "login required"
        assert evaluate(c, 100000, 7, NOW).valid

    def test_first_order_needs_identity(self):
        c = coupon(only_first_order=True)
        assert evaluate(c, 100000, None, NOW).reason == "login required"
        assert evaluate(c, 100000, 7, NOW, prior_orders=0).valid
        assert evaluate(c, 100000, 7, NOW, prior_orders=1).reason == "coupon is valid on the first order only"

    def test_per_user_limit(self):
        c = coupon(per_user_limit=1)
        assert evaluate(c, 100000, 7, NOW, prior_uses=0).valid
        assert evaluate(c, 100000, 7, NOW, prior_uses=1).reason == "per-user limit reached"

    def test_subtotal_window(self):
        c = coupon(min_subtotal=300000, max_subtotal=900000)
        assert evaluate(c, 200000, None, NOW).reason == "subtotal below minimum 300000"
        assert evaluate(c, 1000000, None, NOW).reason == "subtotal above maximum 900000"
        assert evaluate(c, 300000, None, NOW).valid

    def test_no_effective_discount(self):
        assert evaluate(coupon(), 0, None, NOW).reason == "no effective discount"

    def test_first_failure_wins(self):
        c = coupon(active=True, ends_at=NOW - timedelta(days=1), usage_limit=1, used_count=1)
        assert evaluate(c, 100000, None, NOW).reason == "coupon expired"


class TestRecompute:
    def test_no_coupon_stays_neutral(self):
        state, reason = recompute(NoCoupon(), coupon(), 100000, None, NOW)
        assert state == NoCoupon()
        assert reason is None

    def test_pending_becomes_applied(self):
        state, reason = recompute(PendingCoupon("SAVE10"), coupon(), 200000, None, NOW)
        assert reason is None
        assert state == AppliedCoupon(code="SAVE10", discount_type="percent", discount=20000, coupon_id=1)

    def test_applied_follows_subtotal(self):
        applied = AppliedCoupon(code="SAVE10", discount_type="percent", discount=20000, coupon_id=1)
        state, _ = recompute(applied, coupon(), 100000, None, NOW)
        assert state.discount == 10000

    def test_invalid_coupon_falls_back_to_neutral(self):
        applied = AppliedCoupon(code="SAVE10", discount_type="percent", discount=20000, coupon_id=1)
        state, reason = recompute(applied, coupon(min_subtotal=150000), 100000, None, NOW)
        assert state == NoCoupon()
        assert reason == "subtotal below minimum 150000"

    def test_missing_record_drops_code(self):
        state, reason = recompute(PendingCoupon("GONE"), None, 100000, None, NOW)
        assert state == NoCoupon()
        assert reason == "coupon not found or inactive"


def test_normalize_code():
    assert normalize_code("  save10 ") == "SAVE10"
    assert normalize_code(None) == ""
