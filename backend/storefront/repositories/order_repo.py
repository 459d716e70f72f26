from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from storefront.models.address import Address
from storefront.models.order import Order, OrderLine, OrderStatus


class OrderRepository:
    def __init__(self, db: Session):
        self.db = db

    def add(self, order: Order, lines: List[OrderLine]) -> Order:
        self.db.add(order)
        self.db.flush()
        for ol in lines:
            ol.order_id = order.id
            self.db.add(ol)
        self.db.flush()
        return order

    def get(self, order_id: int) -> Optional[Order]:
        return self.db.query(Order).filter(Order.id == order_id).first()

    def get_for_update(self, order_id: int) -> Optional[Order]:
        return self.db.query(Order).filter(Order.id == order_id).with_for_update().first()

    def get_by_number(self, order_number: str) -> Optional[Order]:
        return self.db.query(Order).filter(Order.order_number == order_number).first()

    def list(self, user_id: Optional[int] = None) -> List[Order]:
        qry = self.db.query(Order)
        if user_id is not None:
            qry = qry.filter(Order.user_id == user_id)
        return qry.order_by(Order.created_at.desc(), Order.id.desc()).all()

    def lines(self, order_id: int) -> List[OrderLine]:
        return self.db.query(OrderLine).filter(OrderLine.order_id == order_id).order_by(OrderLine.id).all()

    def get_address(self, address_id: int) -> Optional[Address]:
        return self.db.query(Address).filter(Address.id == address_id).first()

    def paid_stats(self) -> Dict:
        count, revenue = (
            self.db.query(func.count(Order.id), func.coalesce(func.sum(Order.total), 0))
            .filter(Order.status == OrderStatus.PAID)
            .one()
        )
        customers = self.db.query(func.count(func.distinct(Order.user_id))).scalar() or 0
        return {
            "total_orders": int(count or 0),
            "total_revenue": Decimal(str(revenue or 0)).quantize(Decimal("0.01")),
            "total_customers": int(customers),
        }

    def recent(self, limit: int = 5) -> List[Order]:
        return self.db.query(Order).order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()
