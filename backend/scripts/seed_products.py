#!/usr/bin/env python3
"""
Seed products (and the demo coupon) from a JSON file, or from the built-in
demo catalogue when no file is given.

The JSON may be a list of product entries or an object with an ``items``
list. Entries need at least a name and a price; the slug is derived from
the name when absent.

Usage:
    python scripts/seed_products.py
    python scripts/seed_products.py --file ../public/mock/catalogue.json
"""
import argparse
import json
import os
import re
import sys
from decimal import Decimal, InvalidOperation

# allow running from repo/scripts
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from storefront.db import SessionLocal, init_db
from storefront.models.coupon import PERCENTAGE
from storefront.repositories.coupon_repo import CouponRepository
from storefront.repositories.product_repo import ProductRepository

DEMO_PRODUCTS = [
    {"slug": "himalayan-tea-100g", "name": "Himalayan Tea 100g", "price": "250.00", "tax_rate": "13", "stock": 50},
    {"slug": "ilam-coffee-200g", "name": "Ilam Coffee 200g", "price": "600.00", "tax_rate": "13", "stock": 20},
    {"slug": "dhaka-topi", "name": "Dhaka Topi", "price": "450.00", "tax_rate": "0", "stock": 15},
    {"slug": "lokta-notebook", "name": "Lokta Paper Notebook", "price": "320.00", "tax_rate": "13", "stock": 40},
]

DEMO_COUPON = {
    "code": "WELCOME10",
    "description": "10% off your first order",
    "discount_type": PERCENTAGE,
    "discount_value": Decimal("10"),
    "min_order_amount": Decimal("200"),
    "max_discount": Decimal("500"),
}


def _slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def _decimal(value, default="0") -> Decimal:
    try:
        return Decimal(str(value if value is not None else default))
    except InvalidOperation:
        return Decimal(default)


def _normalize_entry(entry):
    """Return a normalized dict with keys: slug, name, price, tax_rate, stock, description, image"""
    name = entry.get("name") or entry.get("title") or ""
    slug = entry.get("slug") or _slugify(name)
    try:
        stock = int(entry.get("stock", entry.get("quantity", 0)) or 0)
    except (TypeError, ValueError):
        stock = 0

    image = entry.get("image")
    if not image:
        imgs = entry.get("images") or []
        image = imgs[0] if isinstance(imgs, (list, tuple)) and imgs else None

    return {
        "slug": slug,
        "name": name,
        "price": _decimal(entry.get("price", entry.get("amount"))),
        "tax_rate": _decimal(entry.get("tax_rate")),
        "stock": stock,
        "description": entry.get("description") or "",
        "image": image,
    }


def load_entries(path: str):
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except ValueError as e:
            raise RuntimeError(f"Failed to parse JSON from {path}: {e}")
    if isinstance(data, dict):
        source_list = data["items"] if isinstance(data.get("items"), list) else list(data.values())
    elif isinstance(data, list):
        source_list = data
    else:
        source_list = []
    return [_normalize_entry(e) for e in source_list]


def seed(entries):
    db = SessionLocal()
    repo = ProductRepository(db)
    coupons = CouponRepository(db)
    created = 0
    try:
        for entry in entries:
            if not entry.get("slug") or not entry.get("name"):
                continue
            repo.create_or_update(**entry)
            created += 1
        if not coupons.get_by_code(DEMO_COUPON["code"]):
            coupons.create(**DEMO_COUPON)
        db.commit()
        print("Seeded products:", created)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--file", "-f", default=None, help="Path to product json; the demo catalogue is used if omitted")
    args = parser.parse_args()
    if args.file and not os.path.exists(args.file):
        print("File not found:", args.file)
        sys.exit(1)
    init_db()
    entries = load_entries(args.file) if args.file else [_normalize_entry(e) for e in DEMO_PRODUCTS]
    seed(entries)
