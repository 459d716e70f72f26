from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from storefront.errors import NotFoundError, ValidationError
from storefront.models.coupon import FIXED, Coupon
from storefront.models.product import ProductVariant
from storefront.services.cart_service import CartService, UserOwner
from storefront.services.pricing_service import PricingService


def test_quote_without_coupon(db, make_product, fill_cart):
    tea = make_product(price="250.00", tax_rate="13")
    cart = fill_cart(1, tea, quantity=2)

    totals = CartService(db).quote(cart)

    assert totals.subtotal == Decimal("500.00")
    assert totals.tax == Decimal("65.00")
    assert totals.shipping_cost == Decimal("100.00")
    assert totals.discount == Decimal("0")
    assert totals.total == Decimal("665.00")
    assert totals.as_dict()["total"] == "665.00"


def test_quote_with_percentage_coupon(db, make_product, make_coupon, fill_cart):
    tea = make_product(price="250.00", tax_rate="13")
    make_coupon()
    cart = fill_cart(1, tea, quantity=2)

    totals = CartService(db).quote(cart, "welcome10")

    assert totals.discount == Decimal("50.00")
    assert totals.total == Decimal("615.00")
    assert totals.coupon.code == "WELCOME10"


def test_total_identity_holds(db, make_product, make_coupon, fill_cart):
    p = make_product(price="333.33", tax_rate="7.5")
    make_coupon(code="SAVE15", discount_value="15", max_discount=None, min_order_amount=None)
    cart = fill_cart(1, p, quantity=3)

    t = CartService(db).quote(cart, "SAVE15")

    assert t.total == t.subtotal + t.tax + t.shipping_cost - t.discount
    for amount in (t.subtotal, t.tax, t.shipping_cost, t.discount, t.total):
        assert amount == amount.quantize(Decimal("0.01"))


def test_percentage_discount_is_capped(db, make_product, make_coupon, fill_cart):
    p = make_product(price="4000.00", tax_rate="0")
    make_coupon(code="BIG20", discount_value="20", max_discount=Decimal("500"))
    cart = fill_cart(1, p, quantity=1)

    assert CartService(db).quote(cart, "BIG20").discount == Decimal("500.00")


def test_fixed_discount_never_exceeds_subtotal(db):
    pricing = PricingService(db)
    coupon = Coupon(code="FLAT1000", discount_type=FIXED, discount_value=Decimal("1000"))

    assert pricing.coupon_discount(coupon, Decimal("300.00")) == Decimal("300.00")


def test_coupon_below_minimum_is_rejected(db, make_coupon):
    make_coupon()
    with pytest.raises(ValidationError) as exc:
        PricingService(db).validate_coupon("WELCOME10", Decimal("150.00"))
    assert exc.value.message == "Minimum order amount is Rs. 200.00"


def test_unknown_coupon(db):
    with pytest.raises(NotFoundError):
        PricingService(db).validate_coupon("NOPE", Decimal("500"))


@pytest.mark.parametrize(
    "extra",
    [
        {"is_active": False},
        {"expires_at": datetime.now(timezone.utc) - timedelta(days=1)},
        {"usage_limit": 3, "used_count": 3},
    ],
)
def test_ineligible_coupons(db, make_coupon, extra):
    make_coupon(**extra)
    with pytest.raises(ValidationError):
        PricingService(db).validate_coupon("WELCOME10", Decimal("500"))


def test_unknown_coupon_at_checkout_is_bad_input(db, make_product, fill_cart):
    p = make_product()
    cart = fill_cart(1, p)
    with pytest.raises(ValidationError):
        CartService(db).quote(cart, "NOPE")


def test_negative_total_is_rejected(db, make_product, fill_cart):
    p = make_product(price="10.00", tax_rate="0")
    cart = fill_cart(1, p, quantity=1)
    lines = CartService(db).lines(cart)
    with pytest.raises(ValidationError):
        PricingService(db, shipping_fee=Decimal("-50")).compute_totals(lines)


def test_variant_price_overrides_product_price(db, make_product):
    p = make_product(price="250.00", tax_rate="0")
    v = ProductVariant(product_id=p.id, name="500g tin", price=Decimal("900.00"))
    db.add(v)
    db.commit()

    svc = CartService(db)
    cart = svc.resolve_cart(UserOwner(1))
    svc.add_item(cart, p.id, v.id, 1)

    assert svc.quote(cart).subtotal == Decimal("900.00")
