from decimal import Decimal
from typing import List, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.errors import ValidationError
from storefront.models.coupon import Coupon
from storefront.repositories.coupon_repo import CouponRepository
from storefront.services.pricing_service import PricingService
from storefront.utils.logging import get_logger

log = get_logger(__name__)


class CouponService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = CouponRepository(db)
        self.pricing = PricingService(db)

    def preview(self, code: str, subtotal: Decimal) -> Tuple[Coupon, Decimal]:
        """Check a code against a subtotal and return it with the discount it would give."""
        coupon = self.pricing.validate_coupon(code, subtotal)
        return coupon, self.pricing.coupon_discount(coupon, subtotal)

    def list(self) -> List[Coupon]:
        return self.repo.list()

    def create(self, **fields) -> Coupon:
        if self.repo.get_by_code(fields.get("code", "")):
            raise ValidationError("Coupon code already exists")
        try:
            coupon = self.repo.create(**fields)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ValidationError("Coupon code already exists")
        log.info("coupon %s created", coupon.code)
        return coupon
