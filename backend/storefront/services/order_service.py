import secrets
import time
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.errors import EmptyCartError, ForbiddenError, NotFoundError, PersistenceError
from storefront.models.address import Address
from storefront.models.cart_item import CartItem
from storefront.models.order import Order, OrderLine, OrderStatus
from storefront.repositories.cart_repo import CartRepository
from storefront.repositories.coupon_repo import CouponRepository
from storefront.repositories.order_repo import OrderRepository
from storefront.repositories.product_repo import ProductRepository
from storefront.services.pricing_service import PricingService
from storefront.utils.logging import get_logger
from storefront.utils.money import quantize
from storefront.utils.transactions import smart_transaction

log = get_logger(__name__)

_BASE36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def _base36(n: int) -> str:
    out = ""
    while True:
        n, r = divmod(n, 36)
        out = _BASE36[r] + out
        if n == 0:
            return out


def generate_order_number() -> str:
    """ORD-<base36 microsecond timestamp>-<3 random bytes as upper hex>."""
    timestamp = _base36(time.time_ns() // 1000)
    return f"ORD-{timestamp}-{secrets.token_hex(3).upper()}"


def _snapshot_line(item: CartItem) -> OrderLine:
    price = quantize(item.price)
    return OrderLine(
        product_id=item.product_id,
        variant_id=item.variant_id,
        product_name=item.product.name,
        variant_name=item.variant.name if item.variant is not None else None,
        quantity=item.quantity,
        price=price,
        total=quantize(price * item.quantity),
    )


class OrderService:
    def __init__(self, db: Session):
        self.db = db
        self.orders = OrderRepository(db)
        self.carts = CartRepository(db)
        self.coupons = CouponRepository(db)
        self.pricing = PricingService(db)

    def create_order(
        self,
        user_id: int,
        cart_id: int,
        shipping_address_id: Optional[int] = None,
        coupon_code: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Order:
        """
        Turn the cart into a PENDING order in one transaction:
        price the cart lines, insert the order and its line snapshots,
        count the coupon use and empty the cart. On any failure nothing
        of this is persisted and the cart is left as it was.

        Unit prices come from the cart lines (captured at add time); only
        names are read from the live product rows.
        """
        try:
            with smart_transaction(self.db):
                cart = self.carts.get(cart_id)
                if not cart:
                    raise EmptyCartError()
                if cart.user_id != user_id:
                    raise ForbiddenError("Access denied")
                lines = self.carts.lines_with_products(cart_id)
                if not lines:
                    raise EmptyCartError()

                if shipping_address_id is not None:
                    address = self.orders.get_address(shipping_address_id)
                    if not address or address.user_id != user_id:
                        raise NotFoundError("Address not found")

                totals = self.pricing.compute_totals(lines, coupon_code)

                order = Order(
                    order_number=generate_order_number(),
                    user_id=user_id,
                    status=OrderStatus.PENDING,
                    subtotal=totals.subtotal,
                    tax=totals.tax,
                    shipping_cost=totals.shipping_cost,
                    discount=totals.discount,
                    total=totals.total,
                    coupon_id=totals.coupon.id if totals.coupon else None,
                    shipping_address_id=shipping_address_id,
                    notes=notes,
                )
                self.orders.add(order, [_snapshot_line(l) for l in lines])

                if totals.coupon:
                    self.coupons.increment_usage(totals.coupon.id)

                self.carts.clear(cart_id)
        except SQLAlchemyError:
            log.exception("order creation failed for cart %s; rolled back", cart_id)
            raise PersistenceError("Failed to create order")

        self.db.refresh(order)
        log.info(
            "order %s created for user %s: total=%s coupon=%s",
            order.order_number,
            user_id,
            order.total,
            coupon_code.upper() if coupon_code else None,
        )
        return order

    def get_order(self, order_id: int) -> Order:
        order = self.orders.get(order_id)
        if not order:
            raise NotFoundError("Order not found")
        return order

    def get_order_for_user(self, order_id: int, user_id: int, is_admin: bool = False) -> Order:
        order = self.get_order(order_id)
        if order.user_id != user_id and not is_admin:
            raise ForbiddenError("Access denied")
        return order

    def track_order(self, order_number: str) -> Order:
        order = self.orders.get_by_number(order_number)
        if not order:
            raise NotFoundError("Order not found")
        return order

    def list_orders(self, user_id: Optional[int] = None) -> List[Order]:
        return self.orders.list(user_id)

    def order_lines(self, order_id: int) -> List[OrderLine]:
        return self.orders.lines(order_id)

    def shipping_address(self, order: Order) -> Optional[Address]:
        if order.shipping_address_id is None:
            return None
        return self.orders.get_address(order.shipping_address_id)

    def dashboard_stats(self) -> Dict:
        stats = self.orders.paid_stats()
        stats["total_products"] = ProductRepository(self.db).count()
        stats["recent_orders"] = self.orders.recent(5)
        return stats
