from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlmodel import Field, Relationship, SQLModel

from app.core.clock import utcnow

if TYPE_CHECKING:
    from .payment import Payment
    from .product import Product


class OrderPaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    CANCELLED = "CANCELLED"
    CHARGED_BACK = "CHARGED_BACK"


class PaymentMethod(str, Enum):
    PIX = "PIX"
    MERCADO_PAGO = "MERCADO_PAGO"
    STRIPE = "STRIPE"
    CREDIT_CARD = "CREDIT_CARD"
    DEBIT_CARD = "DEBIT_CARD"


# PENDING -> PAID | CANCELLED, PAID -> CHARGED_BACK; CANCELLED and CHARGED_BACK are terminal
ORDER_TRANSITIONS: dict[OrderPaymentStatus, frozenset[OrderPaymentStatus]] = {
    OrderPaymentStatus.PENDING: frozenset({OrderPaymentStatus.PAID, OrderPaymentStatus.CANCELLED}),
    OrderPaymentStatus.PAID: frozenset({OrderPaymentStatus.CHARGED_BACK}),
    OrderPaymentStatus.CANCELLED: frozenset(),
    OrderPaymentStatus.CHARGED_BACK: frozenset(),
}


def can_transition(current: OrderPaymentStatus, target: OrderPaymentStatus) -> bool:
    return target in ORDER_TRANSITIONS[current]


class Order(SQLModel, table=True):
    __tablename__ = "orders"

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    payment_method: PaymentMethod
    payment_status: OrderPaymentStatus = Field(default=OrderPaymentStatus.PENDING, index=True)
    coupon_id: int | None = Field(default=None, foreign_key="coupons.id", ondelete="SET NULL", index=True)
    total: Decimal = Field(default=Decimal("0"), max_digits=10, decimal_places=2)
    discount: Decimal = Field(default=Decimal("0"), max_digits=10, decimal_places=2)
    paid_at: datetime | None = None
    # Optimistic concurrency: every state change is a compare-and-set on this column
    version: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime | None = None

    items: list["OrderItem"] = Relationship(
        back_populates="order",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "lazy": "selectin", "order_by": "OrderItem.id"},
    )
    payment: Optional["Payment"] = Relationship(
        back_populates="order",
        sa_relationship_kwargs={"uselist": False, "cascade": "all, delete-orphan", "lazy": "selectin"},
    )

    @property
    def subtotal(self) -> Decimal:
        return sum((item.price * item.quantity for item in self.items), Decimal("0"))


class OrderItem(SQLModel, table=True):
    """Line item; price is the unit price copied from the product when the order was placed."""

    __tablename__ = "order_items"

    id: int | None = Field(default=None, primary_key=True)
    order_id: int | None = Field(default=None, foreign_key="orders.id", ondelete="CASCADE", index=True)
    product_id: int = Field(foreign_key="products.id", index=True)
    quantity: int
    price: Decimal = Field(max_digits=10, decimal_places=2)
    created_at: datetime = Field(default_factory=utcnow)

    order: Order | None = Relationship(back_populates="items")
    product: Optional["Product"] = Relationship(sa_relationship_kwargs={"lazy": "selectin"})
