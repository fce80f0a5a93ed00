"""
Catalog Module - Inventory Lookup
===================================
Product lookup by id and the atomic stock adjustments used by checkout
and order cancellation.
"""

from typing import Optional

from sqlalchemy.orm import Session
from sqlalchemy import update

from modules.catalog.models import Product


class InventoryService:

    def get_product(self, db: Session, product_id) -> Optional[Product]:
        """Active product by id, or None (also for ids that are not integers)."""
        try:
            pid = int(product_id)
        except (TypeError, ValueError):
            return None
        product = db.get(Product, pid)
        if not product or product.is_active is False:
            return None
        return product

    def stock_of(self, product: Product) -> int:
        return max(0, int(product.quantity or 0))

    def try_decrement(self, db: Session, product_id: int, quantity: int) -> bool:
        """
        Take `quantity` units out of stock and count them as sold, only if
        that many are still on hand. Returns False when stock is short.
        Single conditional UPDATE: concurrent checkouts cannot oversell.
        """
        result = db.execute(
            update(Product)
            .where(Product.id == product_id, Product.quantity >= quantity)
            .values(quantity=Product.quantity - quantity, sold=Product.sold + quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def restock(self, db: Session, product_id: int, quantity: int) -> None:
        """Put cancelled units back and reverse the sold counter."""
        db.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(quantity=Product.quantity + quantity, sold=Product.sold - quantity)
            .execution_options(synchronize_session=False)
        )


# Singleton
inventory_service = InventoryService()
