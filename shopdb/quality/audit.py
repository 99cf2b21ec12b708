"""
Data Integrity Audit

Loads every table into a polars frame and checks the stored data against
the model invariants: money arithmetic, rating and stock bounds, timestamp
ordering and parent references.
"""

from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Mapping, Type
import uuid

import polars as pl
import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shopdb.database.models import (
    Entity,
    Order,
    OrderItem,
    OrderStatus,
    OrderStatusHistory,
    PaymentMethod,
    Product,
    ProductInventory,
    ProductReview,
    ProductStatus,
    User,
    UserProfile,
    UserRole,
    UserSession,
    UserStatus,
)
from shopdb.quality.validators import DataValidator, ValidationResult, ValidationStatus

logger = structlog.get_logger(__name__)

MONEY_TOLERANCE = 0.005

_ENTITY_COLUMNS = {"id": pl.Utf8, "created_at": pl.Datetime, "updated_at": pl.Datetime}

# Columns loaded per table, with their frame types
AUDIT_COLUMNS: Dict[Type[Entity], Dict[str, Any]] = {
    User: {"username": pl.Utf8, "email": pl.Utf8, "status": pl.Utf8, "role": pl.Utf8},
    Product: {"sku": pl.Utf8, "price": pl.Float64, "sale_price": pl.Float64, "status": pl.Utf8},
    UserProfile: {"user_id": pl.Utf8},
    UserSession: {"user_id": pl.Utf8, "session_token": pl.Utf8},
    ProductInventory: {
        "product_id": pl.Utf8,
        "warehouse_code": pl.Utf8,
        "quantity": pl.Int64,
        "reserved_quantity": pl.Int64,
        "available_quantity": pl.Int64,
    },
    ProductReview: {"product_id": pl.Utf8, "user_id": pl.Utf8, "rating": pl.Int64},
    Order: {
        "user_id": pl.Utf8,
        "order_number": pl.Utf8,
        "subtotal": pl.Float64,
        "tax_amount": pl.Float64,
        "shipping_cost": pl.Float64,
        "total": pl.Float64,
        "status": pl.Utf8,
        "payment_method": pl.Utf8,
    },
    OrderItem: {
        "order_id": pl.Utf8,
        "product_id": pl.Utf8,
        "quantity": pl.Int64,
        "unit_price": pl.Float64,
        "total_price": pl.Float64,
    },
    OrderStatusHistory: {"order_id": pl.Utf8, "old_status": pl.Utf8, "new_status": pl.Utf8},
}


def _plain(value: Any) -> Any:
    """Database value to something polars stores natively"""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    return value


def to_frame(rows: List[Mapping[str, Any]], schema: Dict[str, Any]) -> pl.DataFrame:
    """Build a typed frame; an empty table still yields every column"""
    data = {column: [_plain(row[column]) for row in rows] for column in schema}
    return pl.DataFrame(data, schema=schema)


def _values(enum_cls: Type[Enum]) -> List[str]:
    return [member.value for member in enum_cls]


def _within(left: pl.Expr, right: pl.Expr) -> pl.Expr:
    return (left - right).abs() <= MONEY_TOLERANCE


def build_validators(frames: Dict[str, pl.DataFrame]) -> Dict[str, DataValidator]:
    """One validator per table, wired to the parent keys found in ``frames``"""
    ids = {table: frame["id"].to_list() for table, frame in frames.items()}

    validators = {
        "users": (
            DataValidator("users")
            .add_not_null_check("username", "email")
            .add_unique_check("username")
            .add_unique_check("email")
            .add_enum_check("status", _values(UserStatus))
            .add_enum_check("role", _values(UserRole))
        ),
        "products": (
            DataValidator("products")
            .add_unique_check("sku")
            .add_range_check("price", min_value=0)
            .add_enum_check("status", _values(ProductStatus))
            .add_rule_check("sale_price_not_above_price", pl.col("sale_price") <= pl.col("price"))
        ),
        "user_profiles": (
            DataValidator("user_profiles")
            .add_unique_check("user_id")
            .add_referential_integrity_check("user_id", ids["users"], "user")
        ),
        "user_sessions": (
            DataValidator("user_sessions")
            .add_not_null_check("session_token")
            .add_referential_integrity_check("user_id", ids["users"], "user")
        ),
        "product_inventories": (
            DataValidator("product_inventories")
            .add_unique_check("product_id", "warehouse_code")
            .add_range_check("quantity", min_value=0)
            .add_rule_check("reserved_within_quantity", pl.col("reserved_quantity") <= pl.col("quantity"))
            .add_rule_check(
                "available_plus_reserved_within_quantity",
                pl.col("available_quantity") + pl.col("reserved_quantity") <= pl.col("quantity"),
            )
            .add_referential_integrity_check("product_id", ids["products"], "product")
        ),
        "product_reviews": (
            DataValidator("product_reviews")
            .add_range_check("rating", min_value=1, max_value=5)
            .add_referential_integrity_check("product_id", ids["products"], "product")
            .add_referential_integrity_check("user_id", ids["users"], "user")
        ),
        "orders": (
            DataValidator("orders")
            .add_unique_check("order_number")
            .add_enum_check("status", _values(OrderStatus))
            .add_enum_check("payment_method", _values(PaymentMethod))
            .add_rule_check(
                "total_is_subtotal_plus_tax_plus_shipping",
                _within(pl.col("total"), pl.col("subtotal") + pl.col("tax_amount") + pl.col("shipping_cost")),
            )
            .add_referential_integrity_check("user_id", ids["users"], "user")
        ),
        "order_items": (
            DataValidator("order_items")
            .add_range_check("quantity", min_value=1)
            .add_unique_check("order_id", "product_id")
            .add_rule_check(
                "total_price_is_quantity_times_unit_price",
                _within(pl.col("total_price"), pl.col("quantity") * pl.col("unit_price")),
            )
            .add_referential_integrity_check("order_id", ids["orders"], "order")
            .add_referential_integrity_check("product_id", ids["products"], "product")
        ),
        "order_status_histories": (
            DataValidator("order_status_histories")
            .add_enum_check("new_status", _values(OrderStatus))
            .add_referential_integrity_check("order_id", ids["orders"], "order")
        ),
    }

    for validator in validators.values():
        validator.add_not_null_check("id", "created_at")
        validator.add_unique_check("id")
        validator.add_rule_check("updated_not_before_created", pl.col("updated_at") >= pl.col("created_at"))
    return validators


class DataIntegrityAuditor:
    """
    Audits the persisted dataset.

    Example:
        results = await DataIntegrityAuditor(session_factory).audit()
        failed = [table for table, r in results.items() if r.status != ValidationStatus.PASSED]
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def load_frames(self) -> Dict[str, pl.DataFrame]:
        frames = {}
        async with self._session_factory() as session:
            for model, columns in AUDIT_COLUMNS.items():
                schema = {**_ENTITY_COLUMNS, **columns}
                table = model.__table__
                result = await session.execute(select(*(table.c[name] for name in schema)))
                frames[table.name] = to_frame(list(result.mappings()), schema)
        return frames

    async def audit(self) -> Dict[str, ValidationResult]:
        frames = await self.load_frames()
        validators = build_validators(frames)
        results = {table: validators[table].validate(frame) for table, frame in frames.items()}

        failed = [table for table, result in results.items() if result.status == ValidationStatus.FAILED]
        logger.info(
            "Data integrity audit complete",
            tables=len(results),
            rows=sum(frame.height for frame in frames.values()),
            failed_tables=failed,
        )
        return results


def audit_passed(results: Dict[str, ValidationResult]) -> bool:
    return all(result.status == ValidationStatus.PASSED for result in results.values())
