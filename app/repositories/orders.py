from sqlalchemy import update
from sqlalchemy.orm import selectinload
from sqlmodel import Session, select

from app.core.clock import utcnow
from app.core.exceptions import ConcurrentModification
from app.models import Order, OrderItem


def get_order(db: Session, order_id: int) -> Order | None:
    return db.get(Order, order_id)


def insert_with_items(db: Session, order: Order, items: list[OrderItem]) -> Order:
    """Stage the order and its items in the current transaction; the caller commits."""
    order.items = items
    db.add(order)
    db.flush()
    return order


def update_order(db: Session, order: Order, **values) -> Order:
    """
    Compare-and-set on orders.version. Raises ConcurrentModification when another writer
    changed the row since `order` was loaded. The caller commits.
    """
    db.flush()
    stmt = (
        update(Order)
        .where(Order.id == order.id, Order.version == order.version)
        .values(**values, version=Order.version + 1, updated_at=utcnow())
    )
    result = db.connection().execute(stmt)
    if result.rowcount != 1:
        raise ConcurrentModification()
    db.expire(order)
    return order


def get_with_details(db: Session, order_id: int) -> Order | None:
    """Order with items (and their products) and payment loaded, bypassing stale identity-map state."""
    stmt = (
        select(Order)
        .where(Order.id == order_id)
        .options(selectinload(Order.items).selectinload(OrderItem.product), selectinload(Order.payment))
        .execution_options(populate_existing=True)
    )
    return db.exec(stmt).first()
