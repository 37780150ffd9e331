"""
Order placement and order administration.

``place_order`` writes the order header and every order line in one
transaction. Either all rows commit or none do: a failure on any line rolls
back the header too, so no reader ever sees an order without its lines.

Line prices are taken from the request as-is and never recomputed from the
catalog afterwards; an order is a historical record.
"""

import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from errors import (
    AuthorizationError,
    InfrastructureError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from models import MAX_ID, Order, OrderItem, Product
from pricing import MAX_QUANTITY, exact_cents, line_total
from schemas import ORDER_STATUSES, TERMINAL_STATUSES, OrderItemIn, PlaceOrderRequest
from security import Identity

logger = logging.getLogger(__name__)

INITIAL_STATUS = "pending"


def _required(value, name: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"Shipping {name} is required")
    return str(value).strip()


def _amount(value, what: str) -> int:
    try:
        cents = exact_cents(value)
    except ValueError as exc:
        raise ValidationError(f"{what} {exc}") from None
    if cents <= 0:
        raise ValidationError(f"{what} must be positive")
    return cents


def _validate(req: PlaceOrderRequest) -> int:
    """Check the request before any write. Returns the total in cents."""
    if req.total is None:
        raise ValidationError("Order total is required")
    total_cents = _amount(req.total, "Order total")
    _required(req.shipping_street, "street")
    _required(req.shipping_city, "city")
    _required(req.shipping_postal_code, "postal code")
    if not req.items:
        raise ValidationError("Order must contain at least one item")

    expected = 0
    for item in req.items:
        if not 0 < item.product_id <= MAX_ID:
            raise ValidationError(f"Product {item.product_id} does not exist")
        if item.quantity is None or item.quantity < 1:
            raise ValidationError(f"Quantity for product {item.product_id} must be at least 1")
        if item.quantity > MAX_QUANTITY:
            raise ValidationError(f"Quantity for product {item.product_id} cannot exceed {MAX_QUANTITY}")
        price_cents = _amount(item.price, f"Price for product {item.product_id}")
        expected += line_total(item.quantity, price_cents)
    if expected != total_cents:
        raise ValidationError("Order total does not match the sum of its items")
    return total_cents


def _add_line(db: Session, order: Order, item: OrderItemIn) -> OrderItem:
    if db.get(Product, item.product_id) is None:
        raise ValidationError(f"Product {item.product_id} does not exist")
    line = OrderItem(
        order_id=order.id,
        product_id=item.product_id,
        quantity=item.quantity,
        price_cents=exact_cents(item.price),
    )
    db.add(line)
    db.flush()
    return line


def place_order(db: Session, user_id: int, req: PlaceOrderRequest) -> int:
    """Create an order and its lines atomically. Returns the new order id.

    Raises ``ValidationError`` for bad input (nothing written) and
    ``InfrastructureError`` when storage fails (everything rolled back). The
    caller's cart is left alone; clearing it is a separate call.
    """
    total_cents = _validate(req)

    try:
        order = Order(
            user_id=user_id,
            total_cents=total_cents,
            shipping_street=req.shipping_street.strip(),
            shipping_city=req.shipping_city.strip(),
            shipping_postal_code=req.shipping_postal_code.strip(),
            status=INITIAL_STATUS,
        )
        db.add(order)
        # header first, the lines need its id
        db.flush()
        for item in req.items:
            _add_line(db, order, item)
        db.commit()
    except StoreError:
        db.rollback()
        logger.warning("order for user %s rolled back: invalid item", user_id)
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("order for user %s rolled back: %s", user_id, exc)
        raise InfrastructureError("The order could not be placed, please try again") from exc

    logger.info("user %s placed order %s (%d lines, %d cents)", user_id, order.id, len(req.items), total_cents)
    return order.id


# ----------------------------------------------------------------------------
# Reads
# ----------------------------------------------------------------------------

def list_all(db: Session) -> List[Order]:
    return list(db.scalars(select(Order).order_by(Order.created_at.desc(), Order.id.desc())))


def list_for_user(db: Session, user_id: int) -> List[Order]:
    stmt = select(Order).where(Order.user_id == user_id).order_by(Order.created_at.desc(), Order.id.desc())
    return list(db.scalars(stmt))


def _load(db: Session, order_id: int) -> Order:
    order = db.scalars(
        select(Order).options(selectinload(Order.items)).where(Order.id == order_id)
    ).first()
    if order is None:
        raise NotFoundError("Order not found")
    return order


def get_order(db: Session, identity: Identity, order_id: int) -> Order:
    order = _load(db, order_id)
    if not identity.can_access(order.user_id):
        raise AuthorizationError("Access denied")
    return order


# ----------------------------------------------------------------------------
# Admin writes
# ----------------------------------------------------------------------------

def update_status(db: Session, order_id: int, status) -> Order:
    """Set an order's status.

    Any non-terminal status may move to any known status. Delivered and
    cancelled orders are frozen.
    """
    if not status:
        raise ValidationError("Order status is required")
    if status not in ORDER_STATUSES:
        raise ValidationError(f"Invalid order status '{status}'")
    order = _load(db, order_id)
    if order.status == status:
        return order
    if order.status in TERMINAL_STATUSES:
        raise ValidationError(f"Order is already {order.status}; its status can no longer change")

    previous = order.status
    order.status = status
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise InfrastructureError("Could not update order status") from exc
    logger.info("order %s status %s -> %s", order_id, previous, status)
    return order


def delete_order(db: Session, order_id: int) -> None:
    order = _load(db, order_id)
    db.delete(order)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise InfrastructureError("Could not delete order") from exc
    logger.info("deleted order %s", order_id)
