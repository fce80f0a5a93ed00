"""
Catalog Module - Models
========================
Product with price and stock. Managed by the back-office; the cart only
reads it and checkout decrements `quantity`.
"""

from sqlalchemy import (
    Column, Integer, String, BigInteger, Boolean, DateTime, CheckConstraint,
)
from sqlalchemy.sql import func
from config.database import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    sku = Column(String(64), nullable=True, index=True)
    category = Column(String, nullable=True)
    image = Column(String, nullable=True)

    price = Column(BigInteger, default=0, nullable=False)     # whole currency units
    quantity = Column(Integer, default=0, nullable=False)     # stock on hand
    sold = Column(Integer, default=0, nullable=False)

    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_product_stock"),
        CheckConstraint("price >= 0", name="ck_product_price"),
    )

    def __repr__(self):
        return f"<Product {self.name} ({self.quantity} in stock)>"
