from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from storefront.models.coupon import Coupon


class CouponRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_code(self, code: str) -> Optional[Coupon]:
        if not code:
            return None
        return self.db.query(Coupon).filter(Coupon.code == code.strip().upper()).first()

    def list(self) -> List[Coupon]:
        return self.db.query(Coupon).order_by(Coupon.created_at.desc(), Coupon.id.desc()).all()

    def create(self, **fields) -> Coupon:
        c = Coupon(**fields)
        self.db.add(c)
        self.db.flush()
        return c

    def increment_usage(self, coupon_id: int) -> None:
        """Relative increment evaluated by the database, never from the loaded value."""
        self.db.execute(
            update(Coupon)
            .where(Coupon.id == coupon_id)
            .values(used_count=Coupon.used_count + 1)
            .execution_options(synchronize_session=False)
        )
