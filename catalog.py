"""
Product catalog: admin CRUD plus the public filtered listing.

Price filters and the price sort work on the discounted price, the one
shoppers actually see.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from errors import InfrastructureError, NotFoundError, ValidationError
from models import Product
from pricing import apply_discount, exact_cents, to_cents
from schemas import ProductCreateRequest, ProductUpdateRequest

logger = logging.getLogger(__name__)

SORT_FIELDS = ("price", "date_added", "name")


@dataclass
class ProductFilters:
    q: Optional[str] = None
    pet_type: Optional[str] = None
    product_type: Optional[str] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    only_new: bool = False
    only_discounted: bool = False
    in_stock: bool = False
    sort: Optional[str] = None
    direction: str = "asc"


def final_price_cents(p: Product) -> int:
    return apply_discount(p.price_cents, p.discount)


def _sort_key(field: str):
    if field == "price":
        return final_price_cents
    if field == "date_added":
        return lambda p: (p.created_at, p.id)
    return lambda p: p.name.lower()


def list_products(db: Session, filters: Optional[ProductFilters] = None) -> List[Product]:
    f = filters or ProductFilters()
    if f.sort is not None and f.sort not in SORT_FIELDS:
        raise ValidationError(f"Unknown sort field '{f.sort}'")
    if f.direction not in ("asc", "desc"):
        raise ValidationError("Sort direction must be 'asc' or 'desc'")

    stmt = select(Product)
    if f.q:
        pattern = f"%{f.q.strip()}%"
        stmt = stmt.where(or_(Product.name.ilike(pattern), Product.description.ilike(pattern)))
    if f.pet_type:
        stmt = stmt.where(Product.pet_type == f.pet_type)
    if f.product_type:
        stmt = stmt.where(Product.product_type == f.product_type)
    if f.only_new:
        stmt = stmt.where(Product.is_new.is_(True))
    if f.only_discounted:
        stmt = stmt.where(Product.discount > 0)
    if f.in_stock:
        stmt = stmt.where(Product.in_stock.is_(True))
    products = list(db.scalars(stmt.order_by(Product.id)))

    if f.min_price is not None:
        lo = to_cents(f.min_price)
        products = [p for p in products if final_price_cents(p) >= lo]
    if f.max_price is not None:
        hi = to_cents(f.max_price)
        products = [p for p in products if final_price_cents(p) <= hi]

    if f.sort:
        products.sort(key=_sort_key(f.sort), reverse=f.direction == "desc")
    return products


def get_product(db: Session, product_id: int) -> Product:
    product = db.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    return product


def _save(db: Session, what: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("could not %s product", what)
        raise InfrastructureError(f"Could not {what} product") from exc


def _price_cents(price) -> int:
    try:
        cents = exact_cents(price)
    except ValueError as exc:
        raise ValidationError(f"Price {exc}") from None
    if cents <= 0:
        raise ValidationError("Price must be positive")
    return cents


def create_product(db: Session, body: ProductCreateRequest) -> Product:
    data = body.model_dump()
    price = data.pop("price")
    product = Product(price_cents=_price_cents(price), **data)
    db.add(product)
    _save(db, "create")
    logger.info("created product %s (%s)", product.id, product.name)
    return product


def update_product(db: Session, product_id: int, body: ProductUpdateRequest) -> Product:
    product = get_product(db, product_id)
    changes = {k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None}
    if "price" in changes:
        product.price_cents = _price_cents(changes.pop("price"))
    for field, value in changes.items():
        setattr(product, field, value)
    _save(db, "update")
    return product


def delete_product(db: Session, product_id: int) -> None:
    product = get_product(db, product_id)
    db.delete(product)
    _save(db, "delete")
    logger.info("deleted product %s", product_id)
