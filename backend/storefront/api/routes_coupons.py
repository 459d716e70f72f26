from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from storefront.api.deps import http_error
from storefront.db import get_db
from storefront.errors import StorefrontError
from storefront.schemas.coupon_schema import CouponOut
from storefront.services.coupon_service import CouponService
from storefront.utils.money import money_str

router = APIRouter(prefix="/api/coupons", tags=["coupons"])


class ValidateCouponIn(BaseModel):
    code: str
    subtotal: Decimal = Field(..., ge=0)


@router.post("/validate", summary="Check a coupon code and preview its discount")
def validate_coupon(payload: ValidateCouponIn, db: Session = Depends(get_db)):
    svc = CouponService(db)
    try:
        coupon, discount = svc.preview(payload.code, payload.subtotal)
    except StorefrontError as e:
        raise http_error(e)
    return {
        "coupon": CouponOut.model_validate(coupon).model_dump(mode="json"),
        "discount": money_str(discount),
    }
