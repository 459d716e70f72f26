from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from storefront.models.product import Product, ProductVariant


class ProductRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, product_id: int) -> Optional[Product]:
        return self.db.query(Product).filter(Product.id == product_id, Product.is_active == True).first()

    def get_by_slug(self, slug: str) -> Optional[Product]:
        return self.db.query(Product).filter(Product.slug == slug, Product.is_active == True).first()

    def get_variant(self, product_id: int, variant_id: int) -> Optional[ProductVariant]:
        return (
            self.db.query(ProductVariant)
            .filter(ProductVariant.id == variant_id, ProductVariant.product_id == product_id)
            .first()
        )

    def count(self) -> int:
        return self.db.query(func.count(Product.id)).scalar() or 0

    def list(self, q: Optional[str] = None, page: int = 1, size: int = 20) -> Tuple[List[Product], int]:
        query = self.db.query(Product).filter(Product.is_active == True)
        if q:
            like = f"%{q}%"
            query = query.filter((Product.name.ilike(like)) | (Product.description.ilike(like)))
        total = query.with_entities(func.count()).scalar() or 0
        items = query.order_by(Product.name).offset((page - 1) * size).limit(size).all()
        return items, total

    def create_or_update(
        self,
        slug: str,
        name: str,
        price: Decimal,
        tax_rate: Decimal = Decimal("0"),
        stock: int = 0,
        description: str = None,
        image: str = None,
    ) -> Product:
        p = self.db.query(Product).filter(Product.slug == slug).first()
        if p:
            p.name = name
            p.price = price
            p.tax_rate = tax_rate
            p.stock = stock
            p.description = description
            p.image = image
        else:
            p = Product(
                slug=slug,
                name=name,
                price=price,
                tax_rate=tax_rate,
                stock=stock,
                description=description,
                image=image,
            )
            self.db.add(p)
        self.db.flush()
        return p
