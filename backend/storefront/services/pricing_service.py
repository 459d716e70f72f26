from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from storefront.config import settings
from storefront.errors import NotFoundError, ValidationError
from storefront.models.coupon import FIXED, PERCENTAGE, Coupon
from storefront.repositories.coupon_repo import CouponRepository
from storefront.utils.money import ZERO, money_str, quantize, to_decimal


@dataclass
class Totals:
    subtotal: Decimal
    tax: Decimal
    shipping_cost: Decimal
    discount: Decimal
    total: Decimal
    coupon: Optional[Coupon] = None

    def as_dict(self) -> dict:
        return {
            "subtotal": money_str(self.subtotal),
            "tax": money_str(self.tax),
            "shipping_cost": money_str(self.shipping_cost),
            "discount": money_str(self.discount),
            "total": money_str(self.total),
            "coupon_code": self.coupon.code if self.coupon else None,
        }


def _as_utc(dt: datetime) -> datetime:
    # SQLite hands back naive datetimes; they were written as UTC
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


class PricingService:
    """
    Computes subtotal, tax, shipping, coupon discount and grand total for a set
    of cart lines. The same computation backs the cart quote and the amount
    persisted on the order, so the buyer is charged what they were shown.

    Shipping is a flat fee (settings.SHIPPING_FLAT_FEE) regardless of subtotal.
    """

    def __init__(self, db: Session, shipping_fee: Optional[Decimal] = None):
        self.db = db
        self.coupons = CouponRepository(db)
        self.shipping_fee = to_decimal(settings.SHIPPING_FLAT_FEE if shipping_fee is None else shipping_fee)

    def subtotal(self, lines: Iterable) -> Decimal:
        return quantize(sum((to_decimal(l.price) * l.quantity for l in lines), Decimal("0")))

    def tax(self, lines: Iterable) -> Decimal:
        tax = Decimal("0")
        for l in lines:
            rate = to_decimal(getattr(l.product, "tax_rate", None))
            if rate:
                tax += to_decimal(l.price) * l.quantity * rate / Decimal("100")
        return quantize(tax)

    def validate_coupon(self, code: str, subtotal: Decimal, now: Optional[datetime] = None) -> Coupon:
        """Return the coupon if it can be applied to ``subtotal``; raise with the reason otherwise."""
        coupon = self.coupons.get_by_code(code)
        if not coupon:
            raise NotFoundError("Invalid coupon code")
        if not coupon.is_active:
            raise ValidationError("This coupon is no longer active")
        now = now or datetime.now(timezone.utc)
        if coupon.expires_at and _as_utc(coupon.expires_at) < now:
            raise ValidationError("This coupon has expired")
        if coupon.usage_limit is not None and (coupon.used_count or 0) >= coupon.usage_limit:
            raise ValidationError("This coupon has reached its usage limit")
        if coupon.min_order_amount is not None and to_decimal(subtotal) < to_decimal(coupon.min_order_amount):
            raise ValidationError(f"Minimum order amount is Rs. {money_str(coupon.min_order_amount)}")
        return coupon

    def coupon_discount(self, coupon: Coupon, subtotal: Decimal) -> Decimal:
        subtotal = to_decimal(subtotal)
        value = to_decimal(coupon.discount_value)
        if coupon.discount_type == PERCENTAGE:
            discount = subtotal * value / Decimal("100")
            if coupon.max_discount is not None:
                discount = min(discount, to_decimal(coupon.max_discount))
        elif coupon.discount_type == FIXED:
            discount = min(value, subtotal)
        else:
            raise ValidationError(f"Unknown discount type: {coupon.discount_type}")
        return quantize(max(discount, ZERO))

    def compute_totals(self, lines, coupon_code: Optional[str] = None) -> Totals:
        lines = list(lines)
        subtotal = self.subtotal(lines)
        tax = self.tax(lines)
        shipping_cost = quantize(self.shipping_fee)

        coupon = None
        discount = ZERO
        if coupon_code:
            try:
                coupon = self.validate_coupon(coupon_code, subtotal)
            except NotFoundError as e:
                # at checkout an unknown code is bad input, not a missing resource
                raise ValidationError(e.message)
            discount = self.coupon_discount(coupon, subtotal)

        total = subtotal + tax + shipping_cost - discount
        if total < 0:
            raise ValidationError("Order total cannot be negative")
        return Totals(
            subtotal=subtotal,
            tax=tax,
            shipping_cost=shipping_cost,
            discount=discount,
            total=quantize(total),
            coupon=coupon,
        )
