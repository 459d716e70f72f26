import enum
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import JSON, Column, DateTime, Enum, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from storefront.db import Base

ESEWA = "esewa"


class PaymentStatus(enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


def _now():
    return datetime.now(timezone.utc)


class Payment(Base):
    __tablename__ = "payments"
    # also sent to the gateway as transaction_uuid
    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    method = Column(String(32), nullable=False, default=ESEWA)
    transaction_id = Column(String(128), nullable=True)  # gateway transaction_code
    amount = Column(Numeric(10, 2), nullable=False)
    status = Column(Enum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)
    response_data = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now, nullable=False)

    order = relationship("Order", back_populates="payments")
