from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from storefront.api.deps import http_error, require_admin
from storefront.api.routes_order import order_detail
from storefront.db import get_db
from storefront.errors import StorefrontError
from storefront.schemas.coupon_schema import CouponIn, CouponOut
from storefront.schemas.order_schema import OrderOut
from storefront.services.coupon_service import CouponService
from storefront.services.order_service import OrderService
from storefront.utils.money import money_str

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/dashboard", summary="Paid order totals and recent orders")
def dashboard(db: Session = Depends(get_db)):
    stats = OrderService(db).dashboard_stats()
    return {
        "total_orders": stats["total_orders"],
        "total_revenue": money_str(stats["total_revenue"]),
        "total_customers": stats["total_customers"],
        "total_products": stats["total_products"],
        "recent_orders": [OrderOut.model_validate(o).model_dump(mode="json") for o in stats["recent_orders"]],
    }


@router.get("/orders", summary="List all orders")
def list_orders(db: Session = Depends(get_db)):
    return [order_detail(db, o) for o in OrderService(db).list_orders()]


@router.get("/coupons", summary="List coupons")
def list_coupons(db: Session = Depends(get_db)):
    return [CouponOut.model_validate(c).model_dump(mode="json") for c in CouponService(db).list()]


@router.post("/coupons", status_code=status.HTTP_201_CREATED, summary="Create coupon")
def create_coupon(payload: CouponIn, db: Session = Depends(get_db)):
    try:
        coupon = CouponService(db).create(**payload.model_dump())
    except StorefrontError as e:
        raise http_error(e)
    return CouponOut.model_validate(coupon).model_dump(mode="json")
