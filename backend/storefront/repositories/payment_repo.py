from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from storefront.models.payment import Payment, PaymentStatus


class PaymentRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, payment: Payment) -> Payment:
        self.db.add(payment)
        self.db.flush()
        return payment

    def get_for_update(self, payment_id: str) -> Optional[Payment]:
        return self.db.query(Payment).filter(Payment.id == payment_id).with_for_update().first()

    def latest_for_order(self, order_id: int) -> Optional[Payment]:
        return (
            self.db.query(Payment)
            .filter(Payment.order_id == order_id)
            .order_by(Payment.created_at.desc())
            .first()
        )

    def pending_before(self, cutoff: datetime) -> List[Payment]:
        return (
            self.db.query(Payment)
            .filter(Payment.status == PaymentStatus.PENDING, Payment.created_at < cutoff)
            .all()
        )
