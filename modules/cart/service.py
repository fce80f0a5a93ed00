"""
Cart Module - Service Layer
==============================
One cart per owner key. Every mutation follows the same cycle:
locate-or-create -> mutate -> recompute coupon -> flush.

Lost updates between concurrent requests on the same cart are prevented by
the cart's version column (optimistic locking) plus SELECT ... FOR UPDATE
on databases that support it.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from common.exceptions import (
    ValidationError, NotFoundError, BusinessRuleError,
    CouponRejectedError, CartConflictError,
)
from common.helpers import now_utc, safe_int
from config.settings import CURRENCY
from modules.cart.models import Cart, CartItem
from modules.cart.owner import OwnerKey, UserKey, AnonymousKey, owner_user_id, require_user
from modules.catalog.service import inventory_service
from modules.coupon.evaluator import NoCoupon, PendingCoupon, normalize_code, recompute
from modules.coupon.service import coupon_service

logger = logging.getLogger("shop.cart")


class CartService:

    # ==========================================
    # Locate / create
    # ==========================================

    def find_cart(self, db: Session, owner: OwnerKey, lock: bool = True) -> Optional[Cart]:
        q = db.query(Cart)
        if isinstance(owner, UserKey):
            q = q.filter(Cart.user_id == owner.user_id)
        else:
            q = q.filter(Cart.cart_token == owner.token)
        if lock:
            q = q.with_for_update()
        return q.first()

    def get_or_create_cart(self, db: Session, owner: OwnerKey) -> Cart:
        """Get the owner's cart, creating an empty one on first access."""
        cart = self.find_cart(db, owner)
        if cart:
            return cart

        cart = Cart(
            user_id=owner.user_id if isinstance(owner, UserKey) else None,
            cart_token=owner.token if isinstance(owner, AnonymousKey) else None,
            currency=CURRENCY,
            computed_discount=0,
        )
        try:
            db.add(cart)
            db.flush()
            return cart
        except IntegrityError:
            db.rollback()
            # Race condition: a parallel request created this cart
            cart = self.find_cart(db, owner)
            if cart:
                return cart
            raise CartConflictError()

    def get_cart(self, db: Session, owner: OwnerKey, now: Optional[datetime] = None) -> Cart:
        """
        Priced cart for the owner. The coupon is revalidated on read so a code
        that expired (or ran out) since the last mutation is dropped here.
        """
        cart = self.get_or_create_cart(db, owner)
        before = cart.coupon_state
        reason = self._recompute(db, cart, owner, now)
        if cart.coupon_state != before:
            if reason:
                logger.info("Coupon %s dropped from cart %s: %s", before.code, cart.id, reason)
            cart.updated_at = now_utc()
            self._flush(db, cart)
        return cart

    # ==========================================
    # Items
    # ==========================================

    def add_item(self, db: Session, owner: OwnerKey, product_id, quantity) -> Cart:
        """Add `quantity` units; the line is clamped to the current stock."""
        qty = safe_int(quantity)
        if qty is None or qty <= 0:
            raise ValidationError("quantity must be a positive integer")

        product = inventory_service.get_product(db, product_id)
        if not product:
            raise NotFoundError("product not found")
        stock = inventory_service.stock_of(product)
        if stock <= 0:
            raise BusinessRuleError("out of stock")

        cart = self.get_or_create_cart(db, owner)
        item = cart.find_item(product.id)
        if item:
            item.quantity = min(item.quantity + qty, stock)
        else:
            cart.items.append(CartItem(
                product_id=product.id,
                sku=product.sku or "",
                name=product.name,
                image=product.image or "",
                unit_price=int(product.price),
                quantity=min(qty, stock),
            ))
        return self._save(db, cart, owner)

    def set_item_quantity(self, db: Session, owner: OwnerKey, product_id, quantity) -> Cart:
        """Set the absolute quantity of a line; 0 removes it."""
        qty = safe_int(quantity)
        if qty is None or qty < 0:
            raise ValidationError("quantity must be a non-negative integer")
        pid = safe_int(product_id)

        cart = self.get_or_create_cart(db, owner)
        item = cart.find_item(pid) if pid is not None else None
        if not item:
            raise NotFoundError("product not found in cart")

        if qty == 0:
            cart.items.remove(item)
        else:
            product = inventory_service.get_product(db, pid)
            if not product:
                raise NotFoundError("product not found")
            clamped = min(qty, inventory_service.stock_of(product))
            if clamped <= 0:
                cart.items.remove(item)
            else:
                item.quantity = clamped
        return self._save(db, cart, owner)

    def remove_item(self, db: Session, owner: OwnerKey, product_id) -> Cart:
        """Remove a line if present. Removing a missing line is not an error."""
        cart = self.get_or_create_cart(db, owner)
        pid = safe_int(product_id)
        item = cart.find_item(pid) if pid is not None else None
        if item:
            cart.items.remove(item)
        return self._save(db, cart, owner)

    def clear_cart(self, db: Session, owner: OwnerKey) -> Cart:
        cart = self.get_or_create_cart(db, owner)
        cart.items.clear()
        cart.coupon_state = NoCoupon()
        return self._save(db, cart, owner)

    # ==========================================
    # Coupon
    # ==========================================

    def apply_coupon(self, db: Session, owner: OwnerKey, code: str) -> Cart:
        """
        Apply a coupon code. On rejection the cart keeps the coupon it had
        before the attempt and CouponRejectedError carries the reason.
        """
        code = normalize_code(code)
        if not code:
            raise ValidationError("coupon code is required")

        cart = self.get_or_create_cart(db, owner)
        previous = cart.coupon_state
        cart.coupon_state = PendingCoupon(code)
        reason = self._recompute(db, cart, owner)
        if reason:
            cart.coupon_state = previous
            logger.info("Coupon %s rejected for cart %s: %s", code, cart.id, reason)
            raise CouponRejectedError(reason)

        logger.info("Coupon %s applied to cart %s (discount %s)", code, cart.id, cart.computed_discount)
        cart.updated_at = now_utc()
        self._flush(db, cart)
        return cart

    def remove_coupon(self, db: Session, owner: OwnerKey) -> Cart:
        cart = self.get_or_create_cart(db, owner)
        cart.coupon_state = NoCoupon()
        return self._save(db, cart, owner)

    # ==========================================
    # Merge (login)
    # ==========================================

    def merge_carts(self, db: Session, user_owner: OwnerKey, anonymous_owner: OwnerKey) -> Cart:
        """
        Fold the anonymous cart into the user's cart and delete it.
        Quantities are summed per product and reclamped to current stock.
        The user's coupon wins; the guest's code is adopted only if the user
        had none. Either way it is revalidated on the merged cart.
        """
        user_owner = require_user(user_owner)
        if not isinstance(anonymous_owner, AnonymousKey):
            raise ValidationError("anonymous cart token is required")

        target = self.get_or_create_cart(db, user_owner)
        source = self.find_cart(db, anonymous_owner)
        if source is None:
            return self._save(db, target, user_owner)

        for line in list(source.items):
            existing = target.find_item(line.product_id)
            product = inventory_service.get_product(db, line.product_id)
            if not product:
                if existing:
                    target.items.remove(existing)
                continue

            merged_qty = line.quantity + (existing.quantity if existing else 0)
            merged_qty = min(merged_qty, inventory_service.stock_of(product))
            if merged_qty <= 0:
                if existing:
                    target.items.remove(existing)
            elif existing:
                existing.quantity = merged_qty
            else:
                target.items.append(CartItem(
                    product_id=line.product_id,
                    sku=line.sku,
                    name=line.name,
                    image=line.image,
                    unit_price=line.unit_price,
                    quantity=merged_qty,
                ))

        if isinstance(target.coupon_state, NoCoupon) and source.coupon_code:
            target.coupon_state = PendingCoupon(source.coupon_code)

        db.delete(source)
        logger.info("Merged anonymous cart %s into cart %s (user %s)", source.id, target.id, user_owner.user_id)
        return self._save(db, target, user_owner)

    # ==========================================
    # Checkout support
    # ==========================================

    def revalidate_coupon(self, db: Session, cart: Cart, owner: OwnerKey, now: Optional[datetime] = None) -> Optional[str]:
        """Recompute the coupon in place without flushing; returns the rejection reason, if any."""
        return self._recompute(db, cart, owner, now)

    def delete_cart(self, db: Session, cart: Cart):
        db.delete(cart)

    # ==========================================
    # Private helpers
    # ==========================================

    def _recompute(self, db: Session, cart: Cart, owner: OwnerKey, now: Optional[datetime] = None) -> Optional[str]:
        state = cart.coupon_state
        user_id = owner_user_id(owner)
        coupon = None
        if not isinstance(state, NoCoupon):
            coupon = coupon_service.get_by_code(db, state.code)
        prior_uses, prior_orders = coupon_service.usage_context(db, coupon, user_id)
        new_state, reason = recompute(
            state, coupon, cart.subtotal, user_id, now or now_utc(),
            prior_uses, prior_orders,
        )
        cart.coupon_state = new_state
        return reason

    def _save(self, db: Session, cart: Cart, owner: OwnerKey) -> Cart:
        """Recompute the coupon (silently dropping an invalid one) and flush."""
        before = cart.coupon_state
        reason = self._recompute(db, cart, owner)
        if reason:
            logger.info("Coupon %s dropped from cart %s: %s", before.code, cart.id, reason)
        cart.updated_at = now_utc()
        self._flush(db, cart)
        return cart

    def _flush(self, db: Session, cart: Cart):
        # A failed flush expires the cart, so its id must be read first
        cart_id = cart.id
        try:
            db.flush()
        except StaleDataError:
            db.rollback()
            logger.warning("Concurrent modification of cart %s", cart_id)
            raise CartConflictError()


# Singleton
cart_service = CartService()
