from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from storefront.api.deps import http_error, require_user
from storefront.db import get_db
from storefront.errors import StorefrontError
from storefront.services.payment_service import PaymentService

router = APIRouter(prefix="/api/payments/esewa", tags=["payments"])


class InitiateIn(BaseModel):
    order_id: int


@router.post("/initiate", summary="Start an eSewa payment for an order")
def initiate(payload: InitiateIn, request: Request, user_id: int = Depends(require_user), db: Session = Depends(get_db)):
    svc = PaymentService(db)
    try:
        return svc.initiate_payment(payload.order_id, user_id, str(request.base_url))
    except StorefrontError as e:
        raise http_error(e)


@router.get("/success", summary="eSewa success redirect")
def success(data: Optional[str] = Query(None), db: Session = Depends(get_db)):
    target = PaymentService(db).handle_callback(data)
    return RedirectResponse(target, status_code=302)


@router.get("/failure", summary="eSewa failure redirect")
def failure(db: Session = Depends(get_db)):
    return RedirectResponse(PaymentService(db).handle_failure(), status_code=302)
