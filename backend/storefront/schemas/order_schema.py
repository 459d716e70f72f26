from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from storefront.models.order import OrderStatus
from storefront.models.payment import PaymentStatus


class OrderLineOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    product_id: int
    variant_id: Optional[int] = None
    product_name: str
    variant_name: Optional[str] = None
    quantity: int
    price: Decimal
    total: Decimal


class AddressOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    full_name: str
    phone: str
    address_line_1: str
    address_line_2: Optional[str] = None
    city: str
    state: str
    postal_code: Optional[str] = None
    country: str


class PaymentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    method: str
    transaction_id: Optional[str] = None
    amount: Decimal
    status: PaymentStatus
    created_at: datetime


class OrderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    order_number: str
    user_id: int
    status: OrderStatus
    subtotal: Decimal
    tax: Decimal
    shipping_cost: Decimal
    discount: Decimal
    total: Decimal
    coupon_id: Optional[int] = None
    shipping_address_id: Optional[int] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    paid_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None


class OrderDetailOut(OrderOut):
    items: List[OrderLineOut] = []
    shipping_address: Optional[AddressOut] = None
    payment: Optional[PaymentOut] = None
