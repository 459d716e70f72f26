from decimal import Decimal
from typing import List, Optional

from sqlalchemy import delete
from sqlalchemy.orm import Session, joinedload

from storefront.models.cart import Cart
from storefront.models.cart_item import CartItem


class CartRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, cart_id: int) -> Optional[Cart]:
        return self.db.query(Cart).filter(Cart.id == cart_id).first()

    def get_by_session(self, session_id: str) -> Optional[Cart]:
        return self.db.query(Cart).filter(Cart.session_id == session_id).first()

    def get_by_user(self, user_id: int) -> Optional[Cart]:
        return self.db.query(Cart).filter(Cart.user_id == user_id).first()

    def create(self, session_id: Optional[str] = None, user_id: Optional[int] = None) -> Cart:
        c = Cart(session_id=session_id, user_id=user_id)
        self.db.add(c)
        self.db.flush()
        return c

    def lines_with_products(self, cart_id: int) -> List[CartItem]:
        """Cart lines with their live product and variant rows loaded."""
        return (
            self.db.query(CartItem)
            .options(joinedload(CartItem.product), joinedload(CartItem.variant))
            .filter(CartItem.cart_id == cart_id)
            .order_by(CartItem.id)
            .all()
        )

    def find_item(self, cart_id: int, product_id: int, variant_id: Optional[int]) -> Optional[CartItem]:
        qry = self.db.query(CartItem).filter(CartItem.cart_id == cart_id, CartItem.product_id == product_id)
        if variant_id is None:
            qry = qry.filter(CartItem.variant_id.is_(None))
        else:
            qry = qry.filter(CartItem.variant_id == variant_id)
        return qry.first()

    def add_or_merge_item(
        self, cart: Cart, product_id: int, variant_id: Optional[int], quantity: int, price: Decimal
    ) -> CartItem:
        item = self.find_item(cart.id, product_id, variant_id)
        if item:
            item.quantity += quantity
        else:
            item = CartItem(
                cart_id=cart.id, product_id=product_id, variant_id=variant_id, quantity=quantity, price=price
            )
            self.db.add(item)
        self.db.flush()
        return item

    def get_item(self, cart: Cart, item_id: int) -> Optional[CartItem]:
        return self.db.query(CartItem).filter(CartItem.id == item_id, CartItem.cart_id == cart.id).first()

    def remove_item(self, cart: Cart, item_id: int) -> bool:
        it = self.get_item(cart, item_id)
        if not it:
            return False
        self.db.delete(it)
        self.db.flush()
        return True

    def clear(self, cart_id: int) -> int:
        """Delete every line of the cart; the cart row itself is kept for reuse."""
        res = self.db.execute(delete(CartItem).where(CartItem.cart_id == cart_id))
        return res.rowcount

    def merge_guest_into_user(self, guest_cart: Cart, user_cart: Cart) -> Cart:
        for git in self.lines_with_products(guest_cart.id):
            self.add_or_merge_item(user_cart, git.product_id, git.variant_id, git.quantity, git.price)
        self.clear(guest_cart.id)
        self.db.delete(guest_cart)
        self.db.flush()
        return user_cart
