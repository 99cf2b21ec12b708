"""Baseline schema - users, products, orders and their child tables.

Revision ID: 0001_baseline
Revises: None
Create Date: 2026-10-19

Tables created (dependency order):
- users, products
- user_profiles, user_sessions
- product_inventories, product_reviews
- orders, order_items, order_status_histories
"""

from typing import List, Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_baseline"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

STRING_LIST = sa.JSON().with_variant(postgresql.ARRAY(sa.String(200)), "postgresql")
INTEGER_LIST = sa.JSON().with_variant(postgresql.ARRAY(sa.Integer()), "postgresql")
JSON_DOCUMENT = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")
ENUM = sa.String(20)


def _entity_columns() -> List[sa.Column]:
    return [
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    ]


def _address_columns(prefix: str) -> List[sa.Column]:
    return [
        sa.Column(f"{prefix}_street", sa.String(200), nullable=True),
        sa.Column(f"{prefix}_city", sa.String(100), nullable=True),
        sa.Column(f"{prefix}_state", sa.String(100), nullable=True),
        sa.Column(f"{prefix}_postal_code", sa.String(20), nullable=True),
        sa.Column(f"{prefix}_country", sa.String(100), nullable=True),
        sa.Column(f"{prefix}_latitude", sa.Numeric(10, 6), nullable=True),
        sa.Column(f"{prefix}_longitude", sa.Numeric(10, 6), nullable=True),
    ]


def _parent(column: str, target: str, ondelete: str, unique: bool = False) -> sa.Column:
    return sa.Column(column, sa.Uuid(), sa.ForeignKey(target, ondelete=ondelete), nullable=False, unique=unique)


def upgrade() -> None:
    """Create the baseline schema."""
    op.create_table(
        "users",
        *_entity_columns(),
        sa.Column("username", sa.String(100), nullable=False, unique=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("bio", sa.String(500)),
        sa.Column("last_login_at", sa.DateTime()),
        sa.Column("birth_date", sa.Date()),
        sa.Column("preferred_login_time", sa.Time()),
        sa.Column("metadata", JSON_DOCUMENT),
        sa.Column("tags", STRING_LIST, nullable=False),
        sa.Column("favorite_numbers", INTEGER_LIST, nullable=False),
        sa.Column("credit_score", sa.Numeric(18, 6)),
        sa.Column("balance", sa.Numeric(18, 2), nullable=False),
        sa.Column("status", ENUM, nullable=False),
        sa.Column("role", ENUM, nullable=False),
    )
    op.create_index("idx_users_status", "users", ["status"])
    op.create_index("idx_users_created", "users", ["created_at"])

    op.create_table(
        "products",
        *_entity_columns(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.String(1000)),
        sa.Column("sku", sa.String(100), nullable=False, unique=True),
        sa.Column("barcode", sa.String(50)),
        sa.Column("price", sa.Numeric(18, 4), nullable=False),
        sa.Column("sale_price", sa.Numeric(18, 4)),
        sa.Column("cost", sa.Numeric(18, 4)),
        sa.Column("specifications", JSON_DOCUMENT),
        sa.Column("tags", STRING_LIST, nullable=False),
        sa.Column("categories", STRING_LIST, nullable=False),
        sa.Column("image_urls", STRING_LIST, nullable=False),
        sa.Column("dimension_length", sa.Numeric(10, 2)),
        sa.Column("dimension_width", sa.Numeric(10, 2)),
        sa.Column("dimension_height", sa.Numeric(10, 2)),
        sa.Column("dimension_unit", sa.String(10)),
        sa.Column("weight_value", sa.Numeric(10, 3)),
        sa.Column("weight_unit", sa.String(10)),
        sa.Column("discontinued_at", sa.DateTime()),
        sa.Column("status", ENUM, nullable=False),
        sa.Column("type", ENUM, nullable=False),
        sa.CheckConstraint("sale_price IS NULL OR sale_price <= price", name="ck_products_sale_price"),
    )
    op.create_index("idx_products_status", "products", ["status"])

    op.create_table(
        "user_profiles",
        *_entity_columns(),
        _parent("user_id", "users.id", "CASCADE", unique=True),
        sa.Column("first_name", sa.String(100)),
        sa.Column("last_name", sa.String(100)),
        sa.Column("phone_number", sa.String(50)),
        sa.Column("anniversary", sa.Date()),
        *_address_columns("home"),
        *_address_columns("work"),
        sa.Column("preferences", JSON_DOCUMENT),
        sa.Column("skills", STRING_LIST, nullable=False),
        sa.Column("languages", STRING_LIST, nullable=False),
    )

    op.create_table(
        "user_sessions",
        *_entity_columns(),
        _parent("user_id", "users.id", "CASCADE"),
        sa.Column("session_token", sa.String(500), nullable=False),
        sa.Column("ip_address", sa.String(45)),
        sa.Column("user_agent", sa.String(500)),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("last_activity_at", sa.DateTime()),
        sa.Column("session_data", JSON_DOCUMENT),
        sa.Column("permissions", STRING_LIST, nullable=False),
        sa.Column("status", ENUM, nullable=False),
        sa.Column("type", ENUM, nullable=False),
    )
    op.create_index("ix_user_sessions_user_id", "user_sessions", ["user_id"])

    op.create_table(
        "product_inventories",
        *_entity_columns(),
        _parent("product_id", "products.id", "CASCADE"),
        sa.Column("warehouse_code", sa.String(100), nullable=False),
        sa.Column("location", sa.String(200)),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("reserved_quantity", sa.Integer()),
        sa.Column("available_quantity", sa.Integer()),
        sa.Column("unit_cost", sa.Numeric(18, 4)),
        sa.Column("unit_price", sa.Numeric(18, 4)),
        sa.Column("last_restocked_at", sa.DateTime()),
        sa.Column("expiry_date", sa.Date()),
        sa.Column("inventory_data", JSON_DOCUMENT),
        sa.Column("batch_numbers", STRING_LIST, nullable=False),
        sa.Column("serial_numbers", STRING_LIST, nullable=False),
        sa.Column("status", ENUM, nullable=False),
        sa.Column("type", ENUM, nullable=False),
        sa.UniqueConstraint("product_id", "warehouse_code", name="uq_product_inventories_warehouse"),
        sa.CheckConstraint(
            "reserved_quantity IS NULL OR reserved_quantity <= quantity",
            name="ck_product_inventories_reserved",
        ),
        sa.CheckConstraint(
            "available_quantity IS NULL OR reserved_quantity IS NULL "
            "OR available_quantity + reserved_quantity <= quantity",
            name="ck_product_inventories_available",
        ),
    )
    op.create_index("ix_product_inventories_product_id", "product_inventories", ["product_id"])

    op.create_table(
        "product_reviews",
        *_entity_columns(),
        _parent("product_id", "products.id", "CASCADE"),
        _parent("user_id", "users.id", "RESTRICT"),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("comment", sa.String(2000)),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("review_data", JSON_DOCUMENT),
        sa.Column("tags", STRING_LIST, nullable=False),
        sa.Column("status", ENUM, nullable=False),
        sa.Column("type", ENUM, nullable=False),
        sa.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_product_reviews_rating"),
    )
    op.create_index("ix_product_reviews_product_id", "product_reviews", ["product_id"])
    op.create_index("ix_product_reviews_user_id", "product_reviews", ["user_id"])

    op.create_table(
        "orders",
        *_entity_columns(),
        _parent("user_id", "users.id", "CASCADE"),
        sa.Column("order_number", sa.String(50), nullable=False, unique=True),
        sa.Column("shipped_at", sa.DateTime()),
        sa.Column("delivered_at", sa.DateTime()),
        sa.Column("subtotal", sa.Numeric(18, 2), nullable=False),
        sa.Column("tax_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("shipping_cost", sa.Numeric(18, 2), nullable=False),
        sa.Column("total", sa.Numeric(18, 2), nullable=False),
        sa.Column("order_data", JSON_DOCUMENT),
        sa.Column("tags", STRING_LIST, nullable=False),
        sa.Column("status", ENUM, nullable=False),
        sa.Column("payment_method", ENUM, nullable=False),
        *_address_columns("shipping"),
        *_address_columns("billing"),
    )
    op.create_index("ix_orders_user_id", "orders", ["user_id"])
    op.create_index("idx_orders_status", "orders", ["status"])
    op.create_index("idx_orders_created", "orders", ["created_at"])

    op.create_table(
        "order_items",
        *_entity_columns(),
        _parent("order_id", "orders.id", "CASCADE"),
        _parent("product_id", "products.id", "RESTRICT"),
        sa.Column("product_name", sa.String(200), nullable=False),
        sa.Column("product_description", sa.String(1000)),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(18, 4), nullable=False),
        sa.Column("total_price", sa.Numeric(18, 4), nullable=False),
        sa.Column("product_snapshot", JSON_DOCUMENT),
        sa.Column("attributes", STRING_LIST, nullable=False),
        sa.Column("categories", STRING_LIST, nullable=False),
        sa.UniqueConstraint("order_id", "product_id", name="uq_order_items_product"),
        sa.CheckConstraint("quantity > 0", name="ck_order_items_quantity"),
    )
    op.create_index("ix_order_items_order_id", "order_items", ["order_id"])
    op.create_index("ix_order_items_product_id", "order_items", ["product_id"])

    op.create_table(
        "order_status_histories",
        *_entity_columns(),
        _parent("order_id", "orders.id", "CASCADE"),
        sa.Column("old_status", ENUM, nullable=False),
        sa.Column("new_status", ENUM, nullable=False),
        sa.Column("changed_by", sa.String(100)),
        sa.Column("changed_at", sa.DateTime(), nullable=False),
        sa.Column("reason", sa.String(500)),
        sa.Column("notes", sa.String(1000)),
        sa.Column("change_data", JSON_DOCUMENT),
        sa.Column("tags", STRING_LIST, nullable=False),
    )
    op.create_index("ix_order_status_histories_order_id", "order_status_histories", ["order_id"])


def downgrade() -> None:
    """
    Drop every shopdb table.

    WARNING: This is destructive and will delete all data!
    """
    for table in (
        "order_status_histories",
        "order_items",
        "orders",
        "product_reviews",
        "product_inventories",
        "user_sessions",
        "user_profiles",
        "products",
        "users",
    ):
        op.drop_table(table)
