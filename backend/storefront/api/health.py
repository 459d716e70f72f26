from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from storefront.adapters.esewa_payment import EsewaAdapter
from storefront.db import engine
from storefront.utils.logging import get_logger

log = get_logger(__name__)

router = APIRouter()


@router.get("/health", tags=["health"])
def health():
    db_ok = False
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            db_ok = True
    except SQLAlchemyError:
        log.exception("health check: database unreachable")
    gateway_ok = EsewaAdapter().health_check()

    return {
        "status": "ok" if db_ok and gateway_ok else "degraded",
        "db": db_ok,
        "payment_gateway": gateway_ok,
    }
