import uuid
from dataclasses import dataclass
from typing import List, Optional, Union

from sqlalchemy.orm import Session

from storefront.errors import NotFoundError, ValidationError
from storefront.models.cart import Cart
from storefront.models.cart_item import CartItem
from storefront.repositories.cart_repo import CartRepository
from storefront.repositories.product_repo import ProductRepository
from storefront.services.pricing_service import PricingService, Totals
from storefront.utils.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class GuestOwner:
    session_id: str


@dataclass(frozen=True)
class UserOwner:
    user_id: int


CartOwner = Union[GuestOwner, UserOwner]


def new_session_id() -> str:
    return uuid.uuid4().hex


class CartService:
    def __init__(self, db: Session):
        self.db = db
        self.cart_repo = CartRepository(db)
        self.product_repo = ProductRepository(db)

    def resolve_cart(self, owner: CartOwner) -> Cart:
        """Return the owner's cart, creating an empty one on first use."""
        if isinstance(owner, UserOwner):
            c = self.cart_repo.get_by_user(owner.user_id)
            if c:
                return c
            c = self.cart_repo.create(user_id=owner.user_id)
        else:
            c = self.cart_repo.get_by_session(owner.session_id)
            if c:
                return c
            c = self.cart_repo.create(session_id=owner.session_id)
        self.db.commit()
        return c

    def migrate_guest_cart(self, session_id: str, user_id: int) -> Optional[Cart]:
        """
        Hand a guest cart over to a user after login. A user without a cart
        takes the guest cart as-is; otherwise the guest lines are merged into
        the user's cart and the guest cart is deleted.
        """
        guest = self.cart_repo.get_by_session(session_id)
        if not guest:
            return None
        user_cart = self.cart_repo.get_by_user(user_id)
        if not user_cart:
            guest.user_id = user_id
            guest.session_id = None
            self.db.commit()
            log.info("guest cart %s adopted by user %s", guest.id, user_id)
            return guest
        self.cart_repo.merge_guest_into_user(guest, user_cart)
        self.db.commit()
        log.info("guest cart merged into cart %s of user %s", user_cart.id, user_id)
        return user_cart

    def lines(self, cart: Cart) -> List[CartItem]:
        return self.cart_repo.lines_with_products(cart.id)

    def quote(self, cart: Cart, coupon_code: Optional[str] = None) -> Totals:
        return PricingService(self.db).compute_totals(self.lines(cart), coupon_code)

    def add_item(self, cart: Cart, product_id: int, variant_id: Optional[int], quantity: int) -> CartItem:
        if quantity <= 0:
            raise ValidationError("Quantity must be positive")
        product = self.product_repo.get(product_id)
        if not product:
            raise NotFoundError("Product not found")
        price = product.price
        if variant_id is not None:
            variant = self.product_repo.get_variant(product_id, variant_id)
            if not variant:
                raise NotFoundError("Variant not found")
            if variant.price is not None:
                price = variant.price
        item = self.cart_repo.add_or_merge_item(cart, product_id, variant_id, quantity, price)
        self.db.commit()
        return item

    def update_item(self, cart: Cart, item_id: int, quantity: int) -> Optional[CartItem]:
        """Set a line's quantity; zero or less removes the line."""
        item = self.cart_repo.get_item(cart, item_id)
        if not item:
            raise NotFoundError("Cart item not found")
        if quantity <= 0:
            self.cart_repo.remove_item(cart, item_id)
            self.db.commit()
            return None
        item.quantity = quantity
        self.db.commit()
        return item

    def remove_item(self, cart: Cart, item_id: int):
        if not self.cart_repo.remove_item(cart, item_id):
            raise NotFoundError("Cart item not found")
        self.db.commit()
