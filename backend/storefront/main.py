from contextlib import asynccontextmanager

from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from storefront.api.health import router as health_router
from storefront.api.routes_admin import router as admin_router
from storefront.api.routes_cart import router as cart_router
from storefront.api.routes_catalogue import router as catalogue_router
from storefront.api.routes_coupons import router as coupons_router
from storefront.api.routes_order import router as order_router
from storefront.api.routes_payment import router as payment_router
from storefront.config import settings
from storefront.db import SessionLocal, init_db
from storefront.services.payment_service import PaymentService
from storefront.utils.logging import get_logger

log = get_logger(__name__)


def expire_payments_job():
    db = SessionLocal()
    try:
        PaymentService(db).expire_stale_payments()
    except Exception:
        log.exception("stale payment sweep failed")
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # startup
    init_db()

    scheduler = BackgroundScheduler()
    scheduler.add_job(
        expire_payments_job,
        "interval",
        seconds=settings.PAYMENT_SWEEP_INTERVAL_SECONDS,
        id="expire_stale_payments",
    )
    scheduler.start()

    try:
        yield
    finally:
        scheduler.shutdown(wait=False)


app = FastAPI(title="Storefront - Checkout Backend", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.FRONTEND_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router, prefix="/api", tags=["health"])

app.include_router(catalogue_router, prefix="/api/products", tags=["catalogue"])

app.include_router(cart_router, tags=["cart"])

app.include_router(coupons_router, tags=["coupons"])

app.include_router(order_router, prefix="/api/orders", tags=["orders"])

app.include_router(payment_router, tags=["payments"])

app.include_router(admin_router, tags=["admin"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("storefront.main:app", host=settings.APP_HOST, port=settings.APP_PORT)
