from decimal import Decimal
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./dev.db"
    APP_HOST: str = "127.0.0.1"
    APP_PORT: int = 8000
    FRONTEND_ORIGINS: List[str] = ["http://localhost:3000"]
    # prefix for the browser redirects issued by the payment callbacks
    FRONTEND_BASE_URL: str = ""
    ADMIN_API_KEY: str = "change-this-admin-key"
    LOG_LEVEL: str = "INFO"

    ESEWA_MERCHANT_CODE: str = "EPAYTEST"
    ESEWA_SECRET_KEY: str = "8gBm/:&EnhH.1/q"
    ESEWA_PAYMENT_URL: str = "https://rc-epay.esewa.com.np/api/epay/main/v2/form"

    SHIPPING_FLAT_FEE: Decimal = Decimal("100.00")
    PAYMENT_TTL_SECONDS: int = 3600
    PAYMENT_SWEEP_INTERVAL_SECONDS: int = 60
    LOCK_DIR: str = ""

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
