from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from storefront.api.deps import cart_owner, http_error, is_admin, require_admin, require_user
from storefront.db import get_db
from storefront.errors import StorefrontError
from storefront.models.order import Order
from storefront.repositories.payment_repo import PaymentRepository
from storefront.schemas.order_schema import AddressOut, OrderDetailOut, OrderLineOut, OrderOut, PaymentOut
from storefront.services.cart_service import CartOwner, CartService
from storefront.services.order_service import OrderService
from storefront.services.order_status_service import OrderStatusService

router = APIRouter(tags=["orders"])


class CreateOrderIn(BaseModel):
    shipping_address_id: Optional[int] = None
    coupon_code: Optional[str] = Field(None, max_length=64)
    notes: Optional[str] = Field(None, max_length=2000)


class StatusIn(BaseModel):
    status: str


def order_detail(db: Session, order: Order, include_payment: bool = False) -> dict:
    svc = OrderService(db)
    address = svc.shipping_address(order)
    payment = PaymentRepository(db).latest_for_order(order.id) if include_payment else None
    detail = OrderDetailOut(
        **OrderOut.model_validate(order).model_dump(),
        items=[OrderLineOut.model_validate(l) for l in svc.order_lines(order.id)],
        shipping_address=AddressOut.model_validate(address) if address else None,
        payment=PaymentOut.model_validate(payment) if payment else None,
    )
    return detail.model_dump(mode="json")


@router.post("", status_code=status.HTTP_201_CREATED, summary="Create order from the cart (checkout)")
def create_order(
    payload: CreateOrderIn,
    user_id: int = Depends(require_user),
    owner: CartOwner = Depends(cart_owner),
    db: Session = Depends(get_db),
):
    cart = CartService(db).resolve_cart(owner)
    svc = OrderService(db)
    try:
        order = svc.create_order(
            user_id,
            cart.id,
            shipping_address_id=payload.shipping_address_id,
            coupon_code=payload.coupon_code,
            notes=payload.notes,
        )
    except StorefrontError as e:
        raise http_error(e)
    return order_detail(db, order)


@router.get("", summary="List orders (all orders for admins)")
def list_orders(
    user_id: int = Depends(require_user),
    admin: bool = Depends(is_admin),
    db: Session = Depends(get_db),
):
    svc = OrderService(db)
    orders = svc.list_orders(None if admin else user_id)
    return [order_detail(db, o) for o in orders]


@router.get("/track/{order_number}", summary="Public order tracking by order number")
def track_order(order_number: str, db: Session = Depends(get_db)):
    try:
        order = OrderService(db).track_order(order_number)
    except StorefrontError as e:
        raise http_error(e)
    return order_detail(db, order)


@router.get("/{order_id}", summary="Get order")
def get_order(
    order_id: int,
    user_id: int = Depends(require_user),
    admin: bool = Depends(is_admin),
    db: Session = Depends(get_db),
):
    try:
        order = OrderService(db).get_order_for_user(order_id, user_id, is_admin=admin)
    except StorefrontError as e:
        raise http_error(e)
    return order_detail(db, order, include_payment=True)


@router.patch("/{order_id}/status", summary="Update order status (admin)")
def update_status(
    order_id: int, payload: StatusIn, _: bool = Depends(require_admin), db: Session = Depends(get_db)
):
    try:
        order = OrderStatusService(db).set_status(order_id, payload.status)
    except StorefrontError as e:
        raise http_error(e)
    return OrderOut.model_validate(order).model_dump(mode="json")
