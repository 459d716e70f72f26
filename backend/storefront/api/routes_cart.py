from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from storefront.api.deps import cart_owner, http_error
from storefront.db import get_db
from storefront.errors import StorefrontError
from storefront.services.cart_service import CartOwner, CartService
from storefront.utils.money import money_str

router = APIRouter(prefix="/api/cart", tags=["cart"])


class AddItemIn(BaseModel):
    product_id: int
    variant_id: Optional[int] = None
    quantity: int = Field(1, gt=0)


class UpdateItemIn(BaseModel):
    quantity: int


def _line_to_dict(it):
    return {
        "id": it.id,
        "product_id": it.product_id,
        "variant_id": it.variant_id,
        "product_name": it.product.name,
        "variant_name": it.variant.name if it.variant is not None else None,
        "quantity": it.quantity,
        "price": money_str(it.price),
        "line_total": money_str(it.price * it.quantity),
    }


def _cart_view(svc: CartService, cart, coupon_code: Optional[str] = None):
    lines = svc.lines(cart)
    totals = svc.quote(cart, coupon_code) if lines else None
    return {
        "cart_id": cart.id,
        "items": [_line_to_dict(it) for it in lines],
        "totals": totals.as_dict() if totals else None,
    }


@router.get("", summary="Get cart with priced quote")
def get_cart(
    coupon_code: Optional[str] = None,
    owner: CartOwner = Depends(cart_owner),
    db: Session = Depends(get_db),
):
    svc = CartService(db)
    cart = svc.resolve_cart(owner)
    try:
        return _cart_view(svc, cart, coupon_code)
    except StorefrontError as e:
        raise http_error(e)


@router.post("/items", summary="Add item to cart")
def add_item(payload: AddItemIn, owner: CartOwner = Depends(cart_owner), db: Session = Depends(get_db)):
    svc = CartService(db)
    cart = svc.resolve_cart(owner)
    try:
        svc.add_item(cart, payload.product_id, payload.variant_id, payload.quantity)
    except StorefrontError as e:
        raise http_error(e)
    return _cart_view(svc, cart)


@router.patch("/items/{item_id}", summary="Change item quantity")
def update_item(
    item_id: int, payload: UpdateItemIn, owner: CartOwner = Depends(cart_owner), db: Session = Depends(get_db)
):
    svc = CartService(db)
    cart = svc.resolve_cart(owner)
    try:
        svc.update_item(cart, item_id, payload.quantity)
    except StorefrontError as e:
        raise http_error(e)
    return _cart_view(svc, cart)


@router.delete("/items/{item_id}", summary="Remove item")
def remove_item(item_id: int, owner: CartOwner = Depends(cart_owner), db: Session = Depends(get_db)):
    svc = CartService(db)
    cart = svc.resolve_cart(owner)
    try:
        svc.remove_item(cart, item_id)
    except StorefrontError as e:
        raise http_error(e)
    return _cart_view(svc, cart)
