from datetime import datetime, timezone
from typing import Optional, Union

from sqlalchemy.orm import Session

from storefront.errors import NotFoundError, ValidationError
from storefront.models.order import Order, OrderStatus
from storefront.repositories.order_repo import OrderRepository
from storefront.utils.logging import get_logger

log = get_logger(__name__)

# forward edges; CANCELLED is reachable from every non-terminal state
_FORWARD = {
    OrderStatus.PENDING: OrderStatus.PAID,
    OrderStatus.PAID: OrderStatus.PROCESSING,
    OrderStatus.PROCESSING: OrderStatus.SHIPPED,
    OrderStatus.SHIPPED: OrderStatus.DELIVERED,
}
TERMINAL = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})


def parse_status(value: Union[str, OrderStatus]) -> OrderStatus:
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(str(value).upper())
    except ValueError:
        raise ValidationError(f"Invalid order status: {value}")


def can_transition(current: OrderStatus, new: OrderStatus) -> bool:
    if current == new:
        return True
    if current in TERMINAL:
        return False
    if new == OrderStatus.CANCELLED:
        return True
    return _FORWARD.get(current) == new


class OrderStatusService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = OrderRepository(db)

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def _stamp(self, order: Order, attr: str, when: Optional[datetime]):
        # lifecycle timestamps are written once and never overwritten
        if getattr(order, attr) is None:
            setattr(order, attr, when or self._now())

    def mark_paid(self, order: Order, when: Optional[datetime] = None) -> bool:
        """Move a PENDING order to PAID. Returns False (and changes nothing) for any other state."""
        if order.status != OrderStatus.PENDING:
            return False
        order.status = OrderStatus.PAID
        self._stamp(order, "paid_at", when)
        return True

    def mark_shipped(self, order: Order, when: Optional[datetime] = None):
        order.status = OrderStatus.SHIPPED
        self._stamp(order, "shipped_at", when)

    def mark_delivered(self, order: Order, when: Optional[datetime] = None):
        order.status = OrderStatus.DELIVERED
        self._stamp(order, "delivered_at", when)

    def set_status(self, order_id: int, new_status: Union[str, OrderStatus]) -> Order:
        new = parse_status(new_status)
        order = self.repo.get_for_update(order_id)
        if not order:
            raise NotFoundError("Order not found")
        current = order.status
        if current == new:
            return order
        if not can_transition(current, new):
            raise ValidationError(f"Cannot change order status from {current.value} to {new.value}")

        if new == OrderStatus.PAID:
            self.mark_paid(order)
        elif new == OrderStatus.SHIPPED:
            self.mark_shipped(order)
        elif new == OrderStatus.DELIVERED:
            self.mark_delivered(order)
        else:
            order.status = new
        self.db.commit()
        self.db.refresh(order)
        log.info("order %s status %s -> %s", order.order_number, current.value, new.value)
        return order
