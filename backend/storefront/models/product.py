from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from storefront.db import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(256), nullable=False)
    slug = Column(String(256), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    tax_rate = Column(Numeric(5, 2), nullable=True, default=0)  # percent
    image = Column(String(512), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    stock = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    variants = relationship("ProductVariant", back_populates="product", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Product slug={self.slug} name={self.name}>"


class ProductVariant(Base):
    __tablename__ = "product_variants"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    name = Column(String(256), nullable=False)
    size = Column(String(64), nullable=True)
    color = Column(String(64), nullable=True)
    price = Column(Numeric(10, 2), nullable=True)  # falls back to the product price when null
    stock = Column(Integer, default=0, nullable=False)
    sku = Column(String(64), nullable=True)

    product = relationship("Product", back_populates="variants")
