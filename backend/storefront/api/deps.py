import secrets
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from storefront.config import settings
from storefront.db import get_db
from storefront.errors import StorefrontError
from storefront.services.cart_service import CartOwner, CartService, GuestOwner, UserOwner, new_session_id

CART_COOKIE = "cart_session"


def http_error(e: StorefrontError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.message)


def current_user_id(x_user_id: Optional[int] = Header(None, alias="X-User-Id")) -> Optional[int]:
    """The authenticated user id, as established by the auth layer in front of us."""
    return x_user_id


def require_user(user_id: Optional[int] = Depends(current_user_id)) -> int:
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return user_id


def is_admin(x_admin_key: Optional[str] = Header(None, alias="X-Admin-Key")) -> bool:
    if not x_admin_key:
        return False
    return secrets.compare_digest(str(x_admin_key), str(settings.ADMIN_API_KEY))


def require_admin(admin: bool = Depends(is_admin)) -> bool:
    if not admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return True


def cart_owner(
    request: Request,
    response: Response,
    user_id: Optional[int] = Depends(current_user_id),
    db: Session = Depends(get_db),
) -> CartOwner:
    """
    Resolve who owns the cart for this request. A signed-in user owns their
    own cart (any guest cart from this browser is folded into it first);
    otherwise the guest cart cookie identifies the cart, and is issued here
    on first visit.
    """
    session_id = request.cookies.get(CART_COOKIE)
    if user_id is not None:
        if session_id:
            CartService(db).migrate_guest_cart(session_id, user_id)
        return UserOwner(user_id)
    if not session_id:
        session_id = new_session_id()
        response.set_cookie(CART_COOKIE, session_id, httponly=True, samesite="lax")
    return GuestOwner(session_id)
