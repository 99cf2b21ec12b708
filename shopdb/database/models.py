"""
Database Models - E-Commerce Entity Graph

This module defines the persisted entities and the foreign-key graph that
the seeder walks in dependency order:

Primary Tables:
- User: accounts, owning profile, sessions and orders
- Product: catalog entries, owning reviews and inventory records
- Order: purchases, owning items and status history

Child Tables:
- UserProfile, UserSession
- ProductReview, ProductInventory
- OrderItem, OrderStatusHistory

Owned children are removed by ON DELETE CASCADE. Cross references
(ProductReview -> User, OrderItem -> Product) are ON DELETE RESTRICT.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional
import uuid

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Time,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, composite, mapped_column, relationship


def utcnow() -> datetime:
    """Naive UTC timestamp used for every audit column"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# Portable column types: native arrays / JSONB on PostgreSQL, JSON elsewhere
StringList = JSON().with_variant(ARRAY(String(200)), "postgresql")
IntegerList = JSON().with_variant(ARRAY(Integer), "postgresql")
JsonDocument = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


# =============================================================================
# ENUMERATIONS
# =============================================================================

class UserStatus(str, Enum):
    """User account status"""
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
    PENDING = "pending"


class UserRole(str, Enum):
    """User authorization role"""
    USER = "user"
    ADMIN = "admin"
    MODERATOR = "moderator"
    SUPER_ADMIN = "super_admin"


class SessionStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED = "revoked"
    SUSPENDED = "suspended"


class SessionType(str, Enum):
    WEB = "web"
    MOBILE = "mobile"
    API = "api"
    DESKTOP = "desktop"


class ProductStatus(str, Enum):
    """Product catalog status"""
    ACTIVE = "active"
    INACTIVE = "inactive"
    DISCONTINUED = "discontinued"
    OUT_OF_STOCK = "out_of_stock"


class ProductType(str, Enum):
    PHYSICAL = "physical"
    DIGITAL = "digital"
    SERVICE = "service"
    SUBSCRIPTION = "subscription"


class InventoryStatus(str, Enum):
    IN_STOCK = "in_stock"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"
    DISCONTINUED = "discontinued"


class InventoryType(str, Enum):
    PHYSICAL = "physical"
    DIGITAL = "digital"
    CONSUMABLE = "consumable"


class ReviewStatus(str, Enum):
    """Review moderation status"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    HIDDEN = "hidden"


class ReviewType(str, Enum):
    PRODUCT = "product"
    SERVICE = "service"
    EXPERIENCE = "experience"


class OrderStatus(str, Enum):
    """Order status enumeration"""
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"


class PaymentMethod(str, Enum):
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    PAYPAL = "paypal"
    BANK_TRANSFER = "bank_transfer"
    CASH = "cash"


def enum_column(enum_cls: type) -> SQLEnum:
    """Store enum values as plain strings so views and scripts can compare them"""
    return SQLEnum(
        enum_cls,
        native_enum=False,
        length=20,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


# =============================================================================
# EMBEDDED VALUE OBJECTS
# =============================================================================

@dataclass
class Address:
    """Postal address stored inline in its owner's row"""
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    latitude: Optional[Decimal] = None
    longitude: Optional[Decimal] = None

    @property
    def is_empty(self) -> bool:
        return all(value is None for value in (
            self.street, self.city, self.state, self.postal_code,
            self.country, self.latitude, self.longitude,
        ))


@dataclass
class ProductDimensions:
    length: Optional[Decimal] = None
    width: Optional[Decimal] = None
    height: Optional[Decimal] = None
    unit: Optional[str] = None


@dataclass
class ProductWeight:
    value: Optional[Decimal] = None
    unit: Optional[str] = None


def address_columns(prefix: str):
    """Inline columns backing an Address composite"""
    return (
        mapped_column(f"{prefix}_street", String(200), nullable=True),
        mapped_column(f"{prefix}_city", String(100), nullable=True),
        mapped_column(f"{prefix}_state", String(100), nullable=True),
        mapped_column(f"{prefix}_postal_code", String(20), nullable=True),
        mapped_column(f"{prefix}_country", String(100), nullable=True),
        mapped_column(f"{prefix}_latitude", Numeric(10, 6), nullable=True),
        mapped_column(f"{prefix}_longitude", Numeric(10, 6), nullable=True),
    )


# =============================================================================
# ENTITY BASE
# =============================================================================

class Entity(Base):
    """Identity and audit columns shared by every table"""

    __abstract__ = True

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} id={self.id}>"


# =============================================================================
# USERS
# =============================================================================

class User(Entity):
    """User account"""

    __tablename__ = "users"

    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    bio: Mapped[Optional[str]] = mapped_column(String(500))
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    birth_date: Mapped[Optional[date]] = mapped_column(Date)
    preferred_login_time: Mapped[Optional[time]] = mapped_column(Time)

    # "metadata" is reserved by the declarative API
    user_metadata: Mapped[Optional[Dict[str, Any]]] = mapped_column("metadata", JsonDocument)
    tags: Mapped[List[str]] = mapped_column(StringList, default=list)
    favorite_numbers: Mapped[List[int]] = mapped_column(IntegerList, default=list)

    credit_score: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 6))
    balance: Mapped[Decimal] = mapped_column(Numeric(18, 2), default=Decimal("0.00"))

    status: Mapped[UserStatus] = mapped_column(enum_column(UserStatus), default=UserStatus.ACTIVE)
    role: Mapped[UserRole] = mapped_column(enum_column(UserRole), default=UserRole.USER)

    # Relationships (children are removed by the database)
    profile: Mapped[Optional["UserProfile"]] = relationship(
        back_populates="user", uselist=False, cascade="all, delete-orphan", passive_deletes=True
    )
    sessions: Mapped[List["UserSession"]] = relationship(
        back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    orders: Mapped[List["Order"]] = relationship(
        back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        Index("idx_users_status", "status"),
        Index("idx_users_created", "created_at"),
    )


class UserProfile(Entity):
    """Optional one-to-one personal details for a user"""

    __tablename__ = "user_profiles"

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    first_name: Mapped[Optional[str]] = mapped_column(String(100))
    last_name: Mapped[Optional[str]] = mapped_column(String(100))
    phone_number: Mapped[Optional[str]] = mapped_column(String(50))
    anniversary: Mapped[Optional[date]] = mapped_column(Date)

    home_address: Mapped[Address] = composite(Address, *address_columns("home"))
    work_address: Mapped[Address] = composite(Address, *address_columns("work"))

    preferences: Mapped[Optional[Dict[str, Any]]] = mapped_column(JsonDocument)
    skills: Mapped[List[str]] = mapped_column(StringList, default=list)
    languages: Mapped[List[str]] = mapped_column(StringList, default=list)

    user: Mapped["User"] = relationship(back_populates="profile")


class UserSession(Entity):
    """Authentication session"""

    __tablename__ = "user_sessions"

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    session_token: Mapped[str] = mapped_column(String(500), nullable=False)
    ip_address: Mapped[Optional[str]] = mapped_column(String(45))
    user_agent: Mapped[Optional[str]] = mapped_column(String(500))
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    last_activity_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    session_data: Mapped[Optional[Dict[str, Any]]] = mapped_column(JsonDocument)
    permissions: Mapped[List[str]] = mapped_column(StringList, default=list)

    status: Mapped[SessionStatus] = mapped_column(enum_column(SessionStatus), default=SessionStatus.ACTIVE)
    type: Mapped[SessionType] = mapped_column(enum_column(SessionType), default=SessionType.WEB)

    user: Mapped["User"] = relationship(back_populates="sessions")


# =============================================================================
# PRODUCTS
# =============================================================================

class Product(Entity):
    """Catalog product"""

    __tablename__ = "products"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(1000))
    sku: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    barcode: Mapped[Optional[str]] = mapped_column(String(50))

    price: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    sale_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 4))
    cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 4))

    specifications: Mapped[Optional[Dict[str, Any]]] = mapped_column(JsonDocument)
    tags: Mapped[List[str]] = mapped_column(StringList, default=list)
    categories: Mapped[List[str]] = mapped_column(StringList, default=list)
    image_urls: Mapped[List[str]] = mapped_column(StringList, default=list)

    dimensions: Mapped[ProductDimensions] = composite(
        ProductDimensions,
        mapped_column("dimension_length", Numeric(10, 2), nullable=True),
        mapped_column("dimension_width", Numeric(10, 2), nullable=True),
        mapped_column("dimension_height", Numeric(10, 2), nullable=True),
        mapped_column("dimension_unit", String(10), nullable=True),
    )
    weight: Mapped[ProductWeight] = composite(
        ProductWeight,
        mapped_column("weight_value", Numeric(10, 3), nullable=True),
        mapped_column("weight_unit", String(10), nullable=True),
    )

    discontinued_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    status: Mapped[ProductStatus] = mapped_column(enum_column(ProductStatus), default=ProductStatus.ACTIVE)
    type: Mapped[ProductType] = mapped_column(enum_column(ProductType), default=ProductType.PHYSICAL)

    # Relationships
    reviews: Mapped[List["ProductReview"]] = relationship(
        back_populates="product", cascade="all, delete-orphan", passive_deletes=True
    )
    inventory: Mapped[List["ProductInventory"]] = relationship(
        back_populates="product", cascade="all, delete-orphan", passive_deletes=True
    )
    # Restricted: the ORM never touches these rows when a product is deleted
    order_items: Mapped[List["OrderItem"]] = relationship(back_populates="product", passive_deletes="all")

    __table_args__ = (
        CheckConstraint("sale_price IS NULL OR sale_price <= price", name="ck_products_sale_price"),
        Index("idx_products_status", "status"),
    )

    @property
    def effective_price(self) -> Decimal:
        """Price charged per unit: sale price when present, else list price"""
        return self.sale_price if self.sale_price is not None else self.price


class ProductReview(Entity):
    """Customer review of a product"""

    __tablename__ = "product_reviews"

    product_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(String(2000))
    rating: Mapped[int] = mapped_column(Integer, nullable=False)

    review_data: Mapped[Optional[Dict[str, Any]]] = mapped_column(JsonDocument)
    tags: Mapped[List[str]] = mapped_column(StringList, default=list)

    status: Mapped[ReviewStatus] = mapped_column(enum_column(ReviewStatus), default=ReviewStatus.PENDING)
    type: Mapped[ReviewType] = mapped_column(enum_column(ReviewType), default=ReviewType.PRODUCT)

    product: Mapped["Product"] = relationship(back_populates="reviews")
    user: Mapped["User"] = relationship()

    __table_args__ = (
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_product_reviews_rating"),
    )


class ProductInventory(Entity):
    """Stock of one product in one warehouse"""

    __tablename__ = "product_inventories"

    product_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    warehouse_code: Mapped[str] = mapped_column(String(100), nullable=False)
    location: Mapped[Optional[str]] = mapped_column(String(200))

    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reserved_quantity: Mapped[Optional[int]] = mapped_column(Integer)
    available_quantity: Mapped[Optional[int]] = mapped_column(Integer)
    unit_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 4))
    unit_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 4))

    last_restocked_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    expiry_date: Mapped[Optional[date]] = mapped_column(Date)

    inventory_data: Mapped[Optional[Dict[str, Any]]] = mapped_column(JsonDocument)
    batch_numbers: Mapped[List[str]] = mapped_column(StringList, default=list)
    serial_numbers: Mapped[List[str]] = mapped_column(StringList, default=list)

    status: Mapped[InventoryStatus] = mapped_column(enum_column(InventoryStatus), default=InventoryStatus.IN_STOCK)
    type: Mapped[InventoryType] = mapped_column(enum_column(InventoryType), default=InventoryType.PHYSICAL)

    product: Mapped["Product"] = relationship(back_populates="inventory")

    __table_args__ = (
        UniqueConstraint("product_id", "warehouse_code", name="uq_product_inventories_warehouse"),
        CheckConstraint(
            "reserved_quantity IS NULL OR reserved_quantity <= quantity",
            name="ck_product_inventories_reserved",
        ),
        CheckConstraint(
            "available_quantity IS NULL OR reserved_quantity IS NULL "
            "OR available_quantity + reserved_quantity <= quantity",
            name="ck_product_inventories_available",
        ),
    )


# =============================================================================
# ORDERS
# =============================================================================

class Order(Entity):
    """Customer order"""

    __tablename__ = "orders"

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    order_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    shipped_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Financials (total = subtotal + tax_amount + shipping_cost)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal("0.00"))
    shipping_cost: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal("0.00"))
    total: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)

    order_data: Mapped[Optional[Dict[str, Any]]] = mapped_column(JsonDocument)
    tags: Mapped[List[str]] = mapped_column(StringList, default=list)

    status: Mapped[OrderStatus] = mapped_column(enum_column(OrderStatus), default=OrderStatus.PENDING)
    payment_method: Mapped[PaymentMethod] = mapped_column(
        enum_column(PaymentMethod), default=PaymentMethod.CREDIT_CARD
    )

    shipping_address: Mapped[Address] = composite(Address, *address_columns("shipping"))
    billing_address: Mapped[Address] = composite(Address, *address_columns("billing"))

    # Relationships
    user: Mapped["User"] = relationship(back_populates="orders")
    items: Mapped[List["OrderItem"]] = relationship(
        back_populates="order", cascade="all, delete-orphan", passive_deletes=True
    )
    status_history: Mapped[List["OrderStatusHistory"]] = relationship(
        back_populates="order", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        Index("idx_orders_status", "status"),
        Index("idx_orders_created", "created_at"),
    )

    @staticmethod
    def compute_total(subtotal: Decimal, tax_amount: Decimal, shipping_cost: Decimal) -> Decimal:
        return subtotal + tax_amount + shipping_cost


class OrderItem(Entity):
    """Line item within an order"""

    __tablename__ = "order_items"

    order_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("products.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    product_name: Mapped[str] = mapped_column(String(200), nullable=False)
    product_description: Mapped[Optional[str]] = mapped_column(String(1000))

    # total_price = quantity * unit_price
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)

    product_snapshot: Mapped[Optional[Dict[str, Any]]] = mapped_column(JsonDocument)
    attributes: Mapped[List[str]] = mapped_column(StringList, default=list)
    categories: Mapped[List[str]] = mapped_column(StringList, default=list)

    order: Mapped["Order"] = relationship(back_populates="items")
    product: Mapped["Product"] = relationship(back_populates="order_items")

    __table_args__ = (
        UniqueConstraint("order_id", "product_id", name="uq_order_items_product"),
        CheckConstraint("quantity > 0", name="ck_order_items_quantity"),
    )


class OrderStatusHistory(Entity):
    """Recorded status transition of an order"""

    __tablename__ = "order_status_histories"

    order_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    old_status: Mapped[OrderStatus] = mapped_column(enum_column(OrderStatus), nullable=False)
    new_status: Mapped[OrderStatus] = mapped_column(enum_column(OrderStatus), nullable=False)
    changed_by: Mapped[Optional[str]] = mapped_column(String(100))
    changed_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(String(500))
    notes: Mapped[Optional[str]] = mapped_column(String(1000))

    change_data: Mapped[Optional[Dict[str, Any]]] = mapped_column(JsonDocument)
    tags: Mapped[List[str]] = mapped_column(StringList, default=list)

    order: Mapped["Order"] = relationship(back_populates="status_history")


# Seeding / dependency order: parents before children
ENTITY_MODELS = (
    User,
    Product,
    UserProfile,
    UserSession,
    ProductInventory,
    ProductReview,
    Order,
    OrderItem,
    OrderStatusHistory,
)

PRIMARY_MODELS = (User, Product, Order)
