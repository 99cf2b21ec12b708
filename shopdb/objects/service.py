"""
Database Objects Service

Typed access to the reporting views, scalar functions and stored procedures
provisioned by the object scripts.

Views exist on every supported dialect. Functions and procedures are
PostgreSQL only; calling them elsewhere raises
DatabaseObjectUnavailableError before any SQL is sent.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
import json
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar
import uuid

import structlog
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shopdb.data.generators import CENTS, TAX_RATE
from shopdb.database.models import Address, OrderStatus, PaymentMethod
from shopdb.exceptions import DatabaseObjectUnavailableError

logger = structlog.get_logger(__name__)

FLAT_SHIPPING = Decimal("10.00")

RowT = TypeVar("RowT", bound=BaseModel)


class ObjectKind(str, Enum):
    VIEW = "view"
    FUNCTION = "function"
    PROCEDURE = "procedure"
    TABLE_FUNCTION = "table_function"


# Dialects on which each kind of object is provisioned
_SUPPORTED = {
    ObjectKind.VIEW: {"postgresql", "sqlite"},
    ObjectKind.FUNCTION: {"postgresql"},
    ObjectKind.PROCEDURE: {"postgresql"},
    ObjectKind.TABLE_FUNCTION: {"postgresql"},
}


def build_call(dialect: str, kind: ObjectKind, name: str, arguments: Sequence[str] = ()) -> str:
    """
    Render the statement invoking a database object.

    ``arguments`` are SQL expressions, normally bind parameters such as
    ``":user_id"`` or ``"CAST(:items AS JSONB)"``.

    Raises:
        DatabaseObjectUnavailableError: The object kind is not provisioned
            on this dialect
    """
    if dialect not in _SUPPORTED[kind]:
        raise DatabaseObjectUnavailableError(
            f"{kind.value} '{name}' is not available on {dialect}",
            details={"object": name, "kind": kind.value, "dialect": dialect},
        )

    args = ", ".join(arguments)
    if kind == ObjectKind.VIEW:
        return f"SELECT * FROM {name}"
    if kind == ObjectKind.FUNCTION:
        return f"SELECT {name}({args}) AS value"
    if kind == ObjectKind.TABLE_FUNCTION:
        return f"SELECT * FROM {name}({args})"
    return f"CALL {name}({args})"


# =============================================================================
# ROW MODELS
# =============================================================================

class _Row(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class UserProfileSummary(_Row):
    user_id: uuid.UUID
    username: str
    email: str
    status: str
    role: str
    balance: Decimal
    credit_score: Optional[int] = None
    created_at: datetime
    last_login_at: Optional[datetime] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone_number: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    total_orders: int = 0
    total_spent: Optional[Decimal] = None


class ProductInventoryStatus(_Row):
    product_id: uuid.UUID
    product_name: str
    sku: str
    price: Decimal
    sale_price: Optional[Decimal] = None
    product_status: str
    product_type: str
    warehouse_code: Optional[str] = None
    quantity: Optional[int] = None
    available_quantity: Optional[int] = None
    reserved_quantity: Optional[int] = None
    inventory_status: Optional[str] = None
    last_updated: Optional[datetime] = None
    stock_level: str


class OrderDetailsSummary(_Row):
    order_id: uuid.UUID
    order_number: str
    user_id: uuid.UUID
    username: str
    email: str
    order_date: datetime
    order_status: str
    payment_method: str
    subtotal: Decimal
    tax_amount: Decimal
    shipping_cost: Decimal
    total: Decimal
    ship_to_city: Optional[str] = None
    ship_to_state: Optional[str] = None
    ship_to_country: Optional[str] = None
    total_items: int = 0
    total_quantity: Optional[int] = None


class SalesReportRow(_Row):
    order_date: date
    total_orders: int
    unique_customers: int
    total_revenue: Decimal
    average_order_value: Decimal
    total_tax: Decimal
    total_shipping: Decimal
    total_items_sold: int


class OrderItemRequest(BaseModel):
    """One line of an order placed through sp_CreateOrderWithItems"""
    product_id: uuid.UUID
    quantity: int = Field(gt=0)
    unit_price: Decimal = Field(ge=0)

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


def order_amounts(items: Sequence[OrderItemRequest]) -> Dict[str, Decimal]:
    """Subtotal, 8% tax and flat shipping for a set of order lines"""
    subtotal = sum((item.line_total for item in items), Decimal("0")).quantize(CENTS)
    tax_amount = (subtotal * TAX_RATE).quantize(CENTS)
    return {"subtotal": subtotal, "tax_amount": tax_amount, "shipping_cost": FLAT_SHIPPING}


# =============================================================================
# SERVICE
# =============================================================================

class DatabaseObjectsService:
    """
    Views, functions and procedures behind one session factory.

    Example:
        service = DatabaseObjectsService(session_factory)
        summaries = await service.get_user_profile_summaries()
        ltv = await service.calculate_user_lifetime_value(summaries[0].user_id)
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @staticmethod
    def _dialect(session: AsyncSession) -> str:
        return session.get_bind().dialect.name

    async def _rows(self, model: Type[RowT], kind: ObjectKind, name: str, arguments: Sequence[str] = (),
                    params: Optional[Dict[str, Any]] = None) -> List[RowT]:
        async with self._session_factory() as session:
            sql = build_call(self._dialect(session), kind, name, arguments)
            result = await session.execute(text(sql), params or {})
            rows = [model.model_validate(dict(row)) for row in result.mappings()]
        logger.debug("Object queried", object=name, rows=len(rows))
        return rows

    async def _scalar(self, name: str, arguments: Sequence[str], params: Dict[str, Any]) -> Any:
        async with self._session_factory() as session:
            sql = build_call(self._dialect(session), ObjectKind.FUNCTION, name, arguments)
            return await session.scalar(text(sql), params)

    async def _call(self, name: str, arguments: Sequence[str], params: Dict[str, Any]) -> Any:
        async with self._session_factory() as session:
            sql = build_call(self._dialect(session), ObjectKind.PROCEDURE, name, arguments)
            result = await session.execute(text(sql), params)
            value = result.scalar() if result.returns_rows else None
            await session.commit()
        logger.info("Procedure executed", procedure=name)
        return value

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    async def get_user_profile_summaries(self) -> List[UserProfileSummary]:
        return await self._rows(UserProfileSummary, ObjectKind.VIEW, "vw_UserProfileSummary")

    async def get_product_inventory_status(self) -> List[ProductInventoryStatus]:
        return await self._rows(ProductInventoryStatus, ObjectKind.VIEW, "vw_ProductInventoryStatus")

    async def get_order_details_summaries(self) -> List[OrderDetailsSummary]:
        return await self._rows(OrderDetailsSummary, ObjectKind.VIEW, "vw_OrderDetailsSummary")

    # -------------------------------------------------------------------------
    # Functions
    # -------------------------------------------------------------------------

    async def calculate_user_lifetime_value(self, user_id: uuid.UUID) -> Decimal:
        """Sum of order totals for a user, excluding cancelled and returned orders"""
        value = await self._scalar("fn_CalculateUserLifetimeValue", [":user_id"], {"user_id": user_id})
        return Decimal(value or 0)

    async def get_product_average_rating(self, product_id: uuid.UUID) -> Decimal:
        """Average approved review rating, 0 for unreviewed products"""
        value = await self._scalar("fn_GetProductAverageRating", [":product_id"], {"product_id": product_id})
        return Decimal(value or 0)

    # -------------------------------------------------------------------------
    # Procedures
    # -------------------------------------------------------------------------

    async def create_order_with_items(
        self,
        user_id: uuid.UUID,
        order_number: str,
        items: Sequence[OrderItemRequest],
        payment_method: PaymentMethod = PaymentMethod.CREDIT_CARD,
        shipping_address: Optional[Address] = None,
    ) -> uuid.UUID:
        """
        Create an order and its lines in one database call.

        Returns:
            Identity of the new order
        """
        if not items:
            raise ValueError("An order needs at least one item")

        amounts = order_amounts(items)
        address = shipping_address or Address()
        params = {
            "user_id": user_id,
            "order_number": order_number,
            "shipping_address": json.dumps({
                "street": address.street,
                "city": address.city,
                "state": address.state,
                "postal_code": address.postal_code,
                "country": address.country,
            }),
            "payment_method": PaymentMethod(payment_method).value,
            "items": json.dumps([item.model_dump(mode="json") for item in items]),
            **amounts,
        }
        arguments = [
            ":user_id",
            ":order_number",
            "CAST(:shipping_address AS JSONB)",
            ":payment_method",
            ":subtotal",
            ":tax_amount",
            ":shipping_cost",
            "CAST(:items AS JSONB)",
            "CAST(NULL AS UUID)",
        ]
        order_id = await self._call("sp_CreateOrderWithItems", arguments, params)
        return order_id if isinstance(order_id, uuid.UUID) else uuid.UUID(str(order_id))

    async def update_order_status(
        self,
        order_id: uuid.UUID,
        new_status: OrderStatus,
        updated_by: str,
        notes: Optional[str] = None,
    ) -> None:
        """Change an order's status and append the transition to its history"""
        await self._call(
            "sp_UpdateOrderStatus",
            [":order_id", ":new_status", ":updated_by", ":notes"],
            {
                "order_id": order_id,
                "new_status": OrderStatus(new_status).value,
                "updated_by": updated_by,
                "notes": notes,
            },
        )

    async def restock_product_inventory(
        self,
        product_id: uuid.UUID,
        warehouse_code: str,
        quantity: int,
        restocked_by: str,
    ) -> None:
        """Add stock to a warehouse, creating the inventory record if needed"""
        if quantity <= 0:
            raise ValueError("Restock quantity must be positive")
        await self._call(
            "sp_RestockProductInventory",
            [":product_id", ":warehouse_code", ":quantity", ":restocked_by"],
            {
                "product_id": product_id,
                "warehouse_code": warehouse_code,
                "quantity": quantity,
                "restocked_by": restocked_by,
            },
        )

    async def get_sales_report(
        self,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
        status: Optional[OrderStatus] = None,
    ) -> List[SalesReportRow]:
        """
        Daily sales aggregates.

        Dates default to the last 30 days; ``status`` narrows to one order status.
        """
        return await self._rows(
            SalesReportRow,
            ObjectKind.TABLE_FUNCTION,
            "sp_GetSalesReport",
            [":from_date", ":to_date", ":status"],
            {
                "from_date": from_date,
                "to_date": to_date,
                "status": OrderStatus(status).value if status is not None else None,
            },
        )
