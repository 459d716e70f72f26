from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class VariantOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    size: Optional[str] = None
    color: Optional[str] = None
    price: Optional[Decimal] = None
    stock: int


class ProductOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    slug: str
    name: str
    description: Optional[str] = None
    price: Decimal
    tax_rate: Optional[Decimal] = None
    image: Optional[str] = None
    stock: int
    is_active: bool


class ProductDetailOut(ProductOut):
    variants: List[VariantOut] = []
