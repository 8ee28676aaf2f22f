"""initial schema

Users, products, coupons, orders, order items and payments.

"""
from typing import Sequence, Union

import sqlalchemy as sa
import sqlmodel  # noqa: F401
from alembic import op

revision: str = "0001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_str = sqlmodel.sql.sqltypes.AutoString
_money = sa.Numeric(precision=10, scale=2)

discount_type = sa.Enum("PERCENTAGE", "FIXED_AMOUNT", name="coupondiscounttype")
payment_method = sa.Enum("PIX", "MERCADO_PAGO", "STRIPE", "CREDIT_CARD", "DEBIT_CARD", name="paymentmethod")
order_status = sa.Enum("PENDING", "PAID", "CANCELLED", "CHARGED_BACK", name="orderpaymentstatus")
payment_status = sa.Enum("PENDING", "APPROVED", "CANCELLED", "REJECTED", "REFUNDED", name="paymentstatus")
provider_type = sa.Enum("MERCADO_PAGO", "STRIPE", name="paymentprovidertype")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", _str(), nullable=False),
        sa.Column("full_name", _str(), nullable=False),
        sa.Column("role", _str(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", _str(), nullable=False),
        sa.Column("description", _str(), nullable=True),
        sa.Column("sku", _str(), nullable=True),
        sa.Column("price", _money, nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_products_sku", "products", ["sku"])

    op.create_table(
        "coupons",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", _str(length=64), nullable=False),
        sa.Column("description", _str(), nullable=False),
        sa.Column("discount_type", discount_type, nullable=False),
        sa.Column("discount_value", _money, nullable=False),
        sa.Column("minimum_order_value", _money, nullable=False),
        sa.Column("maximum_discount", _money, nullable=True),
        sa.Column("usage_limit", sa.Integer(), nullable=True),
        sa.Column("usage_count", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("valid_from", sa.DateTime(), nullable=False),
        sa.Column("valid_until", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_coupons_code", "coupons", ["code"], unique=True)

    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("payment_method", payment_method, nullable=False),
        sa.Column("payment_status", order_status, nullable=False),
        sa.Column("coupon_id", sa.Integer(), sa.ForeignKey("coupons.id", ondelete="SET NULL"), nullable=True),
        sa.Column("total", _money, nullable=False),
        sa.Column("discount", _money, nullable=False),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_orders_user_id", "orders", ["user_id"])
    op.create_index("ix_orders_payment_status", "orders", ["payment_status"])
    op.create_index("ix_orders_coupon_id", "orders", ["coupon_id"])

    op.create_table(
        "order_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=True),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("price", _money, nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_order_items_order_id", "order_items", ["order_id"])
    op.create_index("ix_order_items_product_id", "order_items", ["product_id"])

    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("provider", provider_type, nullable=False),
        sa.Column("provider_id", _str(), nullable=False),
        sa.Column("status", payment_status, nullable=False),
        sa.Column("amount", _money, nullable=False),
        sa.Column("qr_code", _str(), nullable=True),
        sa.Column("qr_code_base64", _str(), nullable=True),
        sa.Column("provider_status", _str(), nullable=True),
        sa.Column("checkout_url", _str(length=500), nullable=True),
        sa.Column("preference_id", _str(length=500), nullable=True),
        sa.Column("init_point", _str(length=500), nullable=True),
        sa.Column("sandbox_init_point", _str(length=500), nullable=True),
        sa.Column("provider_metadata", sa.JSON(), nullable=True),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_payments_order_id", "payments", ["order_id"], unique=True)
    op.create_index("ix_payments_provider_id", "payments", ["provider_id"])


def downgrade() -> None:
    op.drop_table("payments")
    op.drop_table("order_items")
    op.drop_table("orders")
    op.drop_table("coupons")
    op.drop_table("products")
    op.drop_table("users")
    bind = op.get_bind()
    for enum in (provider_type, payment_status, order_status, payment_method, discount_type):
        enum.drop(bind, checkfirst=True)
