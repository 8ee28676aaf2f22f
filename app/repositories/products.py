from collections.abc import Iterable
from decimal import Decimal

from sqlmodel import Session, select

from app.models import Product


def find_prices(db: Session, product_ids: Iterable[int]) -> dict[int, Decimal]:
    """Current unit price per product id; ids that do not exist are absent from the result."""
    ids = set(product_ids)
    if not ids:
        return {}
    rows = db.exec(select(Product.id, Product.price).where(Product.id.in_(ids))).all()
    return {pid: Decimal(price) for pid, price in rows}
