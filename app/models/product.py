from datetime import datetime
from decimal import Decimal

from sqlmodel import Field, SQLModel

from app.core.clock import utcnow


class Product(SQLModel, table=True):
    """Catalogue entry; only the price lookup is used by checkout."""

    __tablename__ = "products"

    id: int | None = Field(default=None, primary_key=True)
    name: str
    description: str | None = None
    sku: str | None = Field(default=None, index=True)
    price: Decimal = Field(default=Decimal("0"), max_digits=10, decimal_places=2)
    created_at: datetime | None = Field(default_factory=utcnow)
