"""
Storefront - Demo Data Seeder
===============================
Seeds users, products and coupons for local testing.

Usage:
    python scripts/seed.py          # Create missing demo rows
    python scripts/seed.py --reset  # Drop all tables and reseed

Seeded:
  1. Users (admin + customer), with printed bearer tokens
  2. Products (priced in whole currency units, with stock)
  3. Coupons (SAVE10, FLAT50K, WELCOME, EXPIRED)
"""

import sys
import os
from datetime import timedelta

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config.database import SessionLocal, Base, engine
from common.helpers import now_utc
from common.security import create_token
from modules.user.models import User
from modules.catalog.models import Product
from modules.coupon.models import Coupon, CouponUsage  # noqa: F401
from modules.cart.models import Cart, CartItem  # noqa: F401
from modules.order.models import Order, OrderItem, OrderStatusLog  # noqa: F401


USERS = [
    {"email": "admin@example.com", "full_name": "Shop Admin", "is_admin": True},
    {"email": "customer@example.com", "full_name": "Demo Customer", "phone": "0900000000"},
]

PRODUCTS = [
    {"sku": "TEA-001", "name": "Oolong Tea 200g", "category": "tea", "price": 100000, "quantity": 5},
    {"sku": "TEA-002", "name": "Jasmine Green Tea 100g", "category": "tea", "price": 65000, "quantity": 20},
    {"sku": "CUP-001", "name": "Ceramic Cup", "category": "teaware", "price": 45000, "quantity": 12},
    {"sku": "POT-001", "name": "Clay Teapot", "category": "teaware", "price": 350000, "quantity": 3},
    {"sku": "SET-001", "name": "Gift Set", "category": "gift", "price": 520000, "quantity": 0},
]


def _coupons():
    now = now_utc()
    return [
        {"code": "SAVE10", "discount_type": "percent", "discount_value": 10, "note": "10% off, no cap"},
        {
            "code": "FLAT50K", "discount_type": "amount", "discount_value": 50000,
            "min_subtotal": 200000, "usage_limit": 100, "note": "50k off orders over 200k",
        },
        {
            "code": "WELCOME", "discount_type": "percent", "discount_value": 15, "max_discount": 30000,
            "only_first_order": True, "per_user_limit": 1, "note": "first order only",
        },
        {
            "code": "EXPIRED", "discount_type": "percent", "discount_value": 20,
            "starts_at": now - timedelta(days=30), "ends_at": now - timedelta(days=1),
        },
    ]


def seed(reset: bool = False):
    if reset:
        print("Dropping all tables...")
        Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        print("\n[1/3] Users")
        for data in USERS:
            user = db.query(User).filter(User.email == data["email"]).first()
            if not user:
                user = User(**data)
                db.add(user)
                db.flush()
                print(f"  + {user.email}")
            else:
                print(f"  = exists: {user.email}")
            print(f"    token: {create_token({'sub': str(user.id)})}")

        print("\n[2/3] Products")
        for data in PRODUCTS:
            if db.query(Product).filter(Product.sku == data["sku"]).first():
                print(f"  = exists: {data['sku']}")
                continue
            db.add(Product(**data))
            print(f"  + {data['sku']} {data['name']} ({data['quantity']} in stock)")

        print("\n[3/3] Coupons")
        for data in _coupons():
            if db.query(Coupon).filter(Coupon.code == data["code"]).first():
                print(f"  = exists: {data['code']}")
                continue
            db.add(Coupon(used_count=0, active=True, **data))
            print(f"  + {data['code']}")

        db.commit()
        print("\nSeed complete.")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed(reset="--reset" in sys.argv)
