"""
Shared fixtures: in-memory SQLite, fresh schema per test, factories, auth headers.
"""

import os

# Must be set before config.settings is imported anywhere
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret")

import itertools  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import main  # noqa: E402  (registers every model on Base)
from config.database import Base, engine, SessionLocal  # noqa: E402
from common.security import create_token  # noqa: E402
from modules.cart.owner import UserKey, AnonymousKey  # noqa: E402
from modules.catalog.models import Product  # noqa: E402
from modules.coupon.models import Coupon  # noqa: E402
from modules.user.models import User  # noqa: E402

_seq = itertools.count(1)


@pytest.fixture(autouse=True)
def schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(schema):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def client(schema):
    with TestClient(main.app) as c:
        yield c


# ==========================================
# Factories
# ==========================================

@pytest.fixture
def make_user(db):
    def _make(is_admin=False, **kwargs):
        n = next(_seq)
        user = User(email=kwargs.pop("email", f"user{n}@example.com"), is_admin=is_admin, is_active=True, **kwargs)
        db.add(user)
        db.commit()
        return user
    return _make


@pytest.fixture
def make_product(db):
    def _make(price=100000, quantity=5, **kwargs):
        n = next(_seq)
        product = Product(
            name=kwargs.pop("name", f"Product {n}"),
            sku=kwargs.pop("sku", f"SKU-{n:03d}"),
            price=price,
            quantity=quantity,
            sold=0,
            is_active=kwargs.pop("is_active", True),
            **kwargs,
        )
        db.add(product)
        db.commit()
        return product
    return _make


@pytest.fixture
def make_coupon(db):
    def _make(code="SAVE10", discount_type="percent", discount_value=10, **kwargs):
        coupon = Coupon(
            code=code,
            discount_type=discount_type,
            discount_value=discount_value,
            used_count=kwargs.pop("used_count", 0),
            active=kwargs.pop("active", True),
            **kwargs,
        )
        db.add(coupon)
        db.commit()
        return coupon
    return _make


# ==========================================
# Owners & auth
# ==========================================

@pytest.fixture
def anon():
    return AnonymousKey(f"token-{next(_seq)}")


@pytest.fixture
def customer(make_user):
    return make_user(full_name="Demo Customer")


@pytest.fixture
def customer_key(customer):
    return UserKey(customer.id)


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {create_token({'sub': str(user.id)})}"}


CUSTOMER_INFO = {
    "fullName": "Nguyen Van A",
    "phone": "0901234567",
    "province": "Ha Noi",
    "district": "Ba Dinh",
    "address": "1 Dien Bien Phu",
}
