import os
import tempfile

# point settings at a throwaway database before the app is imported
_TMP = tempfile.mkdtemp(prefix="storefront-tests-")
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(_TMP, "test.db")
os.environ["LOCK_DIR"] = os.path.join(_TMP, "locks")
os.environ["ADMIN_API_KEY"] = "test-admin-key"
os.environ["FRONTEND_BASE_URL"] = "http://shop.test"

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from storefront.db import SessionLocal, init_db
from storefront.main import app
from storefront.models.address import Address
from storefront.models.coupon import PERCENTAGE, Coupon
from storefront.models.product import Product
from storefront.services.cart_service import CartService, UserOwner

ADMIN_HEADERS = {"X-Admin-Key": "test-admin-key"}


@pytest.fixture(autouse=True)
def setup_db():
    init_db(reset=True)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def make_product(db):
    def _make(slug="himalayan-tea", name="Himalayan Tea", price="250.00", tax_rate="13", stock=10, **extra):
        p = Product(slug=slug, name=name, price=Decimal(price), tax_rate=Decimal(tax_rate), stock=stock, **extra)
        db.add(p)
        db.commit()
        return p

    return _make


@pytest.fixture
def make_coupon(db):
    def _make(code="WELCOME10", discount_type=PERCENTAGE, discount_value="10", **extra):
        fields = {"min_order_amount": Decimal("200"), "max_discount": Decimal("500")}
        fields.update(extra)
        c = Coupon(code=code, discount_type=discount_type, discount_value=Decimal(discount_value), **fields)
        db.add(c)
        db.commit()
        return c

    return _make


@pytest.fixture
def make_address(db):
    def _make(user_id=1):
        a = Address(
            user_id=user_id,
            full_name="Sita Sharma",
            phone="9800000000",
            address_line_1="Durbar Marg 12",
            city="Kathmandu",
            state="Bagmati",
            postal_code="44600",
        )
        db.add(a)
        db.commit()
        return a

    return _make


@pytest.fixture
def fill_cart(db):
    """Put ``quantity`` of ``product`` in the cart of ``user_id`` and return the cart."""

    def _fill(user_id, product, quantity=2):
        svc = CartService(db)
        cart = svc.resolve_cart(UserOwner(user_id))
        svc.add_item(cart, product.id, None, quantity)
        return cart

    return _fill
