"""
Per-user cart lines. One row per (user, product); quantity never drops below 1.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from errors import InfrastructureError, NotFoundError, ValidationError
from models import MAX_ID, CartItem, Product
from pricing import MAX_QUANTITY

logger = logging.getLogger(__name__)


def _commit(db: Session) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("cart write failed")
        raise InfrastructureError("Could not update cart") from exc


def list_lines(db: Session, user_id: int) -> List[CartItem]:
    stmt = (
        select(CartItem)
        .options(joinedload(CartItem.product))
        .where(CartItem.user_id == user_id)
        .order_by(CartItem.created_at.desc(), CartItem.id.desc())
    )
    return list(db.scalars(stmt))


def _find_line(db: Session, user_id: int, product_id: int) -> Optional[CartItem]:
    stmt = select(CartItem).where(CartItem.user_id == user_id, CartItem.product_id == product_id)
    return db.scalars(stmt).first()


def _check_quantity(quantity: int) -> None:
    if quantity > MAX_QUANTITY:
        raise ValidationError(f"Quantity cannot exceed {MAX_QUANTITY}")


def _increment(db: Session, line: CartItem, quantity: int) -> CartItem:
    _check_quantity(line.quantity + quantity)
    line.quantity += quantity
    _commit(db)
    return line


def add(db: Session, user_id: int, product_id: int, quantity: int) -> Tuple[CartItem, bool]:
    """Add a product, or bump its quantity. Returns (line, created)."""
    if quantity is None or quantity < 1:
        raise ValidationError("Quantity must be at least 1")
    _check_quantity(quantity)
    if not 0 < product_id <= MAX_ID or db.get(Product, product_id) is None:
        raise NotFoundError("Product not found")

    line = _find_line(db, user_id, product_id)
    if line is not None:
        return _increment(db, line, quantity), False

    line = CartItem(user_id=user_id, product_id=product_id, quantity=quantity)
    db.add(line)
    try:
        db.commit()
    except IntegrityError as exc:
        # a concurrent add inserted the same (user, product) first
        db.rollback()
        line = _find_line(db, user_id, product_id)
        if line is None:
            logger.error("cart insert for user %s failed: %s", user_id, exc)
            raise InfrastructureError("Could not update cart") from exc
        return _increment(db, line, quantity), False
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("cart write failed")
        raise InfrastructureError("Could not update cart") from exc
    return line, True


def _own_line(db: Session, user_id: int, line_id: int) -> CartItem:
    line = db.get(CartItem, line_id) if 0 < line_id <= MAX_ID else None
    if line is None or line.user_id != user_id:
        raise NotFoundError("Cart item not found")
    return line


def update_quantity(db: Session, user_id: int, line_id: int, quantity: int) -> Optional[CartItem]:
    """Set a line's quantity. Zero removes the line and returns None."""
    if quantity is None or quantity < 0:
        raise ValidationError("Quantity cannot be negative")
    _check_quantity(quantity)
    line = _own_line(db, user_id, line_id)
    if quantity == 0:
        db.delete(line)
        _commit(db)
        return None
    line.quantity = quantity
    _commit(db)
    return line


def remove(db: Session, user_id: int, line_id: int) -> None:
    db.delete(_own_line(db, user_id, line_id))
    _commit(db)


def clear(db: Session, user_id: int) -> int:
    res = db.execute(delete(CartItem).where(CartItem.user_id == user_id))
    _commit(db)
    return res.rowcount
