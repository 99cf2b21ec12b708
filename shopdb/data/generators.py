"""
Synthetic Data Generator

Generates coherent e-commerce entities for seeding and testing.
Includes:
- Users with profiles and sessions
- Products with inventory records and reviews
- Orders with line items and status history

Every generated record satisfies the model invariants: review ratings stay
within 1-5, reserved stock never exceeds quantity, line totals equal
quantity times unit price and order totals equal subtotal plus tax plus
shipping.
"""

import re
import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple, TypeVar

import numpy as np
from faker import Faker

from shopdb.database.models import (
    Address,
    InventoryStatus,
    InventoryType,
    Order,
    OrderItem,
    OrderStatus,
    OrderStatusHistory,
    PaymentMethod,
    Product,
    ProductDimensions,
    ProductInventory,
    ProductReview,
    ProductStatus,
    ProductType,
    ProductWeight,
    ReviewStatus,
    ReviewType,
    SessionStatus,
    SessionType,
    User,
    UserProfile,
    UserRole,
    UserSession,
    UserStatus,
    utcnow,
)

T = TypeVar("T")

CENTS = Decimal("0.01")
COORDINATE = Decimal("0.000001")
TAX_RATE = Decimal("0.08")
SALE_DISCOUNT = Decimal("0.8")


# =============================================================================
# CONFIGURATION
# =============================================================================

CATEGORIES = [
    ("electronics", ["Phones", "Laptops", "Tablets", "Headphones", "Cameras"]),
    ("clothing", ["Shirts", "Pants", "Dresses", "Shoes", "Jackets"]),
    ("home_garden", ["Furniture", "Kitchen", "Bedding", "Garden", "Decor"]),
    ("sports", ["Fitness", "Outdoor", "Team Sports", "Water Sports", "Cycling"]),
    ("beauty", ["Skincare", "Makeup", "Haircare", "Fragrance", "Tools"]),
    ("books", ["Fiction", "Non-Fiction", "Educational", "Children", "Comics"]),
]

BRANDS = [
    "TechPro", "StyleMax", "HomeEase", "SportFit", "BeautyGlow",
    "BookWorld", "GenericCo", "PremiumPlus", "ValueChoice", "EcoFriendly",
]

WAREHOUSES = [
    ("WH-NYC-01", "New York, NY"),
    ("WH-LAX-01", "Los Angeles, CA"),
    ("WH-CHI-01", "Chicago, IL"),
    ("WH-DAL-01", "Dallas, TX"),
    ("WH-SEA-01", "Seattle, WA"),
    ("WH-MIA-01", "Miami, FL"),
    ("WH-DEN-01", "Denver, CO"),
    ("WH-ATL-01", "Atlanta, GA"),
]

SKILLS = [
    "Python", "SQL", "Project Management", "Photography", "Cooking",
    "Design", "Marketing", "Writing", "Gardening", "Carpentry",
]
LANGUAGES = ["English", "Spanish", "French", "German", "Portuguese", "Japanese", "Arabic"]
USER_TAGS = ["early-adopter", "newsletter", "vip", "bargain-hunter", "reviewer", "mobile-first"]
PRODUCT_TAGS = ["new", "bestseller", "eco", "limited", "gift", "clearance"]
PERMISSIONS = ["read", "write", "checkout", "review", "manage-account"]

USER_STATUSES = [
    (UserStatus.ACTIVE, 0.80),
    (UserStatus.INACTIVE, 0.10),
    (UserStatus.SUSPENDED, 0.03),
    (UserStatus.PENDING, 0.07),
]
USER_ROLES = [
    (UserRole.USER, 0.92),
    (UserRole.MODERATOR, 0.05),
    (UserRole.ADMIN, 0.025),
    (UserRole.SUPER_ADMIN, 0.005),
]
PRODUCT_STATUSES = [
    (ProductStatus.ACTIVE, 0.85),
    (ProductStatus.INACTIVE, 0.05),
    (ProductStatus.DISCONTINUED, 0.04),
    (ProductStatus.OUT_OF_STOCK, 0.06),
]
PRODUCT_TYPES = [
    (ProductType.PHYSICAL, 0.80),
    (ProductType.DIGITAL, 0.10),
    (ProductType.SERVICE, 0.05),
    (ProductType.SUBSCRIPTION, 0.05),
]
REVIEW_STATUSES = [
    (ReviewStatus.APPROVED, 0.75),
    (ReviewStatus.PENDING, 0.15),
    (ReviewStatus.REJECTED, 0.05),
    (ReviewStatus.HIDDEN, 0.05),
]
RATINGS = [(1, 0.05), (2, 0.08), (3, 0.17), (4, 0.35), (5, 0.35)]
ORDER_STATUSES = [
    (OrderStatus.PENDING, 0.08),
    (OrderStatus.PROCESSING, 0.10),
    (OrderStatus.SHIPPED, 0.12),
    (OrderStatus.DELIVERED, 0.62),
    (OrderStatus.CANCELLED, 0.05),
    (OrderStatus.RETURNED, 0.03),
]
PAYMENT_METHODS = [
    (PaymentMethod.CREDIT_CARD, 0.50),
    (PaymentMethod.DEBIT_CARD, 0.20),
    (PaymentMethod.PAYPAL, 0.20),
    (PaymentMethod.BANK_TRANSFER, 0.07),
    (PaymentMethod.CASH, 0.03),
]
SHIPPING_COSTS = [Decimal("0.00"), Decimal("5.99"), Decimal("9.99"), Decimal("14.99")]

LOW_STOCK_THRESHOLD = 20


# =============================================================================
# HELPERS
# =============================================================================

def _token() -> str:
    """Random suffix keeping business keys unique across seeding runs"""
    return uuid.uuid4().hex[:10]


def _slug(value: str) -> str:
    return re.sub(r"[^a-z0-9]", "", value.lower())


def _money(value: float) -> Decimal:
    return Decimal(str(round(float(value), 2))).quantize(CENTS)


class _RandomMixin:
    """Shared Faker instance and numpy generator helpers"""

    def __init__(self, fake: Faker, rng: np.random.Generator):
        self.fake = fake
        self.rng = rng

    def weighted(self, table: Sequence[Tuple[T, float]]) -> T:
        weights = np.array([w for _, w in table], dtype=float)
        index = int(self.rng.choice(len(table), p=weights / weights.sum()))
        return table[index][0]

    def pick(self, items: Sequence[T]) -> T:
        return items[int(self.rng.integers(0, len(items)))]

    def sample(self, items: Sequence[T], k: int) -> List[T]:
        """k distinct items"""
        k = min(k, len(items))
        return [items[int(i)] for i in self.rng.choice(len(items), size=k, replace=False)]

    def between(self, start: datetime, end: datetime) -> datetime:
        if end <= start:
            return start
        return start + (end - start) * float(self.rng.random())

    def count(self, low: int, high: int) -> int:
        """Random integer in [low, high]"""
        return int(self.rng.integers(low, high + 1))

    def address(self) -> Address:
        return Address(
            street=self.fake.street_address(),
            city=self.fake.city(),
            state=self.fake.state(),
            postal_code=self.fake.postcode(),
            country="United States",
            latitude=Decimal(str(self.fake.latitude())).quantize(COORDINATE),
            longitude=Decimal(str(self.fake.longitude())).quantize(COORDINATE),
        )


# =============================================================================
# GENERATORS
# =============================================================================

class UserGenerator(_RandomMixin):
    """Generate users and their dependent profiles and sessions"""

    def generate(self, n: int, now: datetime) -> List[User]:
        users = []
        for _ in range(n):
            first, last = self.fake.first_name(), self.fake.last_name()
            handle = f"{_slug(first)}.{_slug(last)}.{_token()}"
            created_at = now - timedelta(days=float(self.rng.uniform(30, 730)))

            users.append(User(
                username=handle,
                email=f"{handle}@{self.fake.free_email_domain()}",
                bio=self.fake.sentence(nb_words=12) if self.rng.random() < 0.6 else None,
                last_login_at=self.between(created_at, now),
                birth_date=self.fake.date_of_birth(minimum_age=18, maximum_age=80),
                preferred_login_time=self.fake.time_object(),
                user_metadata={
                    "signup_source": self.pick(["web", "mobile", "referral", "campaign"]),
                    "marketing_opt_in": bool(self.rng.random() < 0.4),
                },
                tags=self.sample(USER_TAGS, self.count(0, 3)),
                favorite_numbers=[self.count(1, 99) for _ in range(self.count(0, 4))],
                credit_score=Decimal(self.count(300, 850)),
                balance=_money(self.rng.uniform(0, 5000)),
                status=self.weighted(USER_STATUSES),
                role=self.weighted(USER_ROLES),
                created_at=created_at,
            ))
        return users

    def generate_profiles(self, users: Sequence[User], probability: float, now: datetime) -> List[UserProfile]:
        profiles = []
        for user in users:
            if self.rng.random() >= probability:
                continue
            profiles.append(UserProfile(
                user_id=user.id,
                first_name=self.fake.first_name(),
                last_name=self.fake.last_name(),
                phone_number=self.fake.phone_number(),
                anniversary=self.fake.date_between(start_date="-20y", end_date="today")
                if self.rng.random() < 0.3 else None,
                home_address=self.address(),
                work_address=self.address() if self.rng.random() < 0.5 else Address(),
                preferences={
                    "theme": self.pick(["light", "dark", "system"]),
                    "currency": "USD",
                    "notifications": bool(self.rng.random() < 0.7),
                },
                skills=self.sample(SKILLS, self.count(0, 4)),
                languages=self.sample(LANGUAGES, self.count(1, 3)),
                created_at=self.between(user.created_at, now),
            ))
        return profiles

    def generate_sessions(self, users: Sequence[User], now: datetime) -> List[UserSession]:
        sessions = []
        for user in users:
            for _ in range(self.count(1, 5)):
                started = self.between(user.created_at, now)
                expires_at = started + timedelta(days=self.count(1, 30))
                status = SessionStatus.EXPIRED if expires_at < now else self.weighted([
                    (SessionStatus.ACTIVE, 0.85),
                    (SessionStatus.REVOKED, 0.10),
                    (SessionStatus.SUSPENDED, 0.05),
                ])
                sessions.append(UserSession(
                    user_id=user.id,
                    session_token=self.fake.sha256(),
                    ip_address=self.fake.ipv4(),
                    user_agent=self.fake.user_agent(),
                    expires_at=expires_at,
                    last_activity_at=self.between(started, min(expires_at, now)),
                    session_data={"login_method": self.pick(["password", "sso", "token"])},
                    permissions=self.sample(PERMISSIONS, self.count(1, 3)),
                    status=status,
                    type=self.pick(list(SessionType)),
                    created_at=started,
                ))
        return sessions


class ProductGenerator(_RandomMixin):
    """Generate products and their inventory records and reviews"""

    def generate(self, n: int, now: datetime) -> List[Product]:
        products = []
        for _ in range(n):
            category, subcategories = self.pick(CATEGORIES)
            subcategory = self.pick(subcategories)
            price = _money(self.rng.uniform(10, 1010))
            sale_price = (price * SALE_DISCOUNT).quantize(CENTS) if self.rng.random() < 0.3 else None
            status = self.weighted(PRODUCT_STATUSES)
            created_at = now - timedelta(days=float(self.rng.uniform(30, 730)))

            products.append(Product(
                name=f"{self.fake.word().title()} {subcategory}",
                description=self.fake.sentence(nb_words=15),
                sku=f"SKU-{_token().upper()}",
                barcode=self.fake.ean13(),
                price=price,
                sale_price=sale_price,
                cost=(price * Decimal(str(round(float(self.rng.uniform(0.3, 0.7)), 2)))).quantize(CENTS),
                specifications={
                    "brand": self.pick(BRANDS),
                    "color": self.fake.color_name(),
                    "warranty_months": self.pick([0, 6, 12, 24]),
                },
                tags=self.sample(PRODUCT_TAGS, self.count(0, 3)),
                categories=[category, subcategory],
                image_urls=[self.fake.image_url() for _ in range(self.count(1, 3))],
                dimensions=ProductDimensions(
                    length=_money(self.rng.uniform(1, 100)),
                    width=_money(self.rng.uniform(1, 100)),
                    height=_money(self.rng.uniform(1, 100)),
                    unit="cm",
                ),
                weight=ProductWeight(value=_money(self.rng.uniform(0.1, 25)), unit="kg"),
                discontinued_at=self.between(created_at, now) if status == ProductStatus.DISCONTINUED else None,
                status=status,
                type=self.weighted(PRODUCT_TYPES),
                created_at=created_at,
            ))
        return products

    def generate_inventories(self, products: Sequence[Product], now: datetime) -> List[ProductInventory]:
        inventories = []
        for product in products:
            for code, location in self.sample(WAREHOUSES, self.count(1, 3)):
                quantity = self.count(0, 999)
                available = int(quantity * float(self.rng.uniform(0.5, 1.0)))
                reserved = quantity - available
                if quantity == 0:
                    status = InventoryStatus.OUT_OF_STOCK
                elif quantity < LOW_STOCK_THRESHOLD:
                    status = InventoryStatus.LOW_STOCK
                else:
                    status = InventoryStatus.IN_STOCK
                created_at = self.between(product.created_at, now)

                inventories.append(ProductInventory(
                    product_id=product.id,
                    warehouse_code=code,
                    location=location,
                    quantity=quantity,
                    reserved_quantity=reserved,
                    available_quantity=available,
                    unit_cost=product.cost,
                    unit_price=product.price,
                    last_restocked_at=self.between(created_at, now),
                    expiry_date=(now + timedelta(days=self.count(30, 720))).date()
                    if self.rng.random() < 0.2 else None,
                    inventory_data={"bin": f"{self.pick('ABCDEF')}-{self.count(1, 40):02d}"},
                    batch_numbers=[f"B{self.count(10000, 99999)}" for _ in range(self.count(0, 2))],
                    serial_numbers=[],
                    status=status,
                    type=InventoryType.DIGITAL if product.type == ProductType.DIGITAL else InventoryType.PHYSICAL,
                    created_at=created_at,
                ))
        return inventories

    def generate_reviews(
        self, products: Sequence[Product], users: Sequence[User], now: datetime
    ) -> List[ProductReview]:
        reviews = []
        if not users:
            return reviews
        for product in products:
            for _ in range(self.count(0, 10)):
                author = self.pick(users)
                rating = self.weighted(RATINGS)
                reviews.append(ProductReview(
                    product_id=product.id,
                    user_id=author.id,
                    title=self.fake.sentence(nb_words=5).rstrip("."),
                    comment=self.fake.paragraph(nb_sentences=3),
                    rating=rating,
                    review_data={"verified_purchase": bool(self.rng.random() < 0.7), "helpful_votes": self.count(0, 50)},
                    tags=["positive"] if rating >= 4 else ["critical"] if rating <= 2 else [],
                    status=self.weighted(REVIEW_STATUSES),
                    type=self.weighted([(ReviewType.PRODUCT, 0.8), (ReviewType.SERVICE, 0.1), (ReviewType.EXPERIENCE, 0.1)]),
                    created_at=self.between(max(product.created_at, author.created_at), now),
                ))
        return reviews


class OrderGenerator(_RandomMixin):
    """Generate orders, line items and status history"""

    def generate(self, users: Sequence[User], n: int, now: datetime) -> List[Order]:
        orders = []
        if not users:
            return orders
        for _ in range(n):
            customer = self.pick(users)
            created_at = self.between(customer.created_at, now)
            status = self.weighted(ORDER_STATUSES)

            subtotal = _money(self.rng.uniform(20, 2000))
            tax_amount = (subtotal * TAX_RATE).quantize(CENTS)
            shipping_cost = Decimal("0.00") if subtotal > 100 else self.pick(SHIPPING_COSTS)

            shipped_at = delivered_at = None
            if status in (OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.RETURNED):
                shipped_at = min(created_at + timedelta(days=self.count(1, 5)), now)
            if status in (OrderStatus.DELIVERED, OrderStatus.RETURNED):
                delivered_at = min(shipped_at + timedelta(days=self.count(1, 7)), now)

            shipping_address = self.address()
            orders.append(Order(
                user_id=customer.id,
                order_number=f"ORD-{created_at:%Y%m%d}-{_token().upper()}",
                shipped_at=shipped_at,
                delivered_at=delivered_at,
                subtotal=subtotal,
                tax_amount=tax_amount,
                shipping_cost=shipping_cost,
                total=Order.compute_total(subtotal, tax_amount, shipping_cost),
                order_data={
                    "channel": self.pick(["web", "mobile", "marketplace"]),
                    "currency": "USD",
                },
                tags=["gift"] if self.rng.random() < 0.1 else [],
                status=status,
                payment_method=self.weighted(PAYMENT_METHODS),
                shipping_address=shipping_address,
                billing_address=shipping_address if self.rng.random() < 0.7 else self.address(),
                created_at=created_at,
            ))
        return orders

    def generate_items(self, orders: Sequence[Order], products: Sequence[Product]) -> List[OrderItem]:
        items = []
        if not products:
            return items
        for order in orders:
            # Distinct products within one order
            for product in self.sample(products, self.count(1, 5)):
                quantity = self.count(1, 5)
                unit_price = product.effective_price
                items.append(OrderItem(
                    order_id=order.id,
                    product_id=product.id,
                    product_name=product.name,
                    product_description=product.description,
                    quantity=quantity,
                    unit_price=unit_price,
                    total_price=unit_price * quantity,
                    product_snapshot={"sku": product.sku, "list_price": str(product.price)},
                    attributes=self.sample(["gift-wrap", "express", "fragile"], self.count(0, 1)),
                    categories=list(product.categories or []),
                    created_at=order.created_at,
                ))
        return items

    def generate_status_history(
        self, orders: Sequence[Order], users: Sequence[User], now: datetime
    ) -> List[OrderStatusHistory]:
        history = []
        for order in orders:
            previous = OrderStatus.PENDING
            changed_at = order.created_at
            entries = self.count(1, 4)
            for index in range(entries):
                # The last transition lands on the order's current status
                new_status = order.status if index == entries - 1 else self.weighted(ORDER_STATUSES)
                changed_at = self.between(changed_at, now)
                actor = self.pick(users).username if users else "system"
                history.append(OrderStatusHistory(
                    order_id=order.id,
                    old_status=previous,
                    new_status=new_status,
                    changed_by=actor,
                    changed_at=changed_at,
                    reason=self.pick(["customer request", "payment confirmed", "carrier update", "system"]),
                    notes=self.fake.sentence(nb_words=8) if self.rng.random() < 0.3 else None,
                    change_data={"source": self.pick(["api", "admin", "automation"])},
                    tags=[],
                    created_at=changed_at,
                ))
                previous = new_status
        return history


class DataGenerator:
    """
    Default data source for the seeder.

    Pass ``random_seed`` for reproducible record contents. Identities and
    business-key tokens stay random so repeated runs never collide.
    """

    def __init__(self, random_seed: Optional[int] = None, locale: str = "en_US"):
        self.fake = Faker(locale)
        if random_seed is not None:
            self.fake.seed_instance(random_seed)
        self.rng = np.random.default_rng(random_seed)

        self.users = UserGenerator(self.fake, self.rng)
        self.products = ProductGenerator(self.fake, self.rng)
        self.orders = OrderGenerator(self.fake, self.rng)

    def generate_users(self, count: int) -> List[User]:
        return self.users.generate(count, utcnow())

    def generate_products(self, count: int) -> List[Product]:
        return self.products.generate(count, utcnow())

    def generate_user_profiles(self, users: Sequence[User], probability: float = 0.8) -> List[UserProfile]:
        return self.users.generate_profiles(users, probability, utcnow())

    def generate_user_sessions(self, users: Sequence[User]) -> List[UserSession]:
        return self.users.generate_sessions(users, utcnow())

    def generate_product_inventories(self, products: Sequence[Product]) -> List[ProductInventory]:
        return self.products.generate_inventories(products, utcnow())

    def generate_product_reviews(self, products: Sequence[Product], users: Sequence[User]) -> List[ProductReview]:
        return self.products.generate_reviews(products, users, utcnow())

    def generate_orders(self, users: Sequence[User], count: int) -> List[Order]:
        return self.orders.generate(users, count, utcnow())

    def generate_order_items(self, orders: Sequence[Order], products: Sequence[Product]) -> List[OrderItem]:
        return self.orders.generate_items(orders, products)

    def generate_order_status_histories(
        self, orders: Sequence[Order], users: Sequence[User]
    ) -> List[OrderStatusHistory]:
        return self.orders.generate_status_history(orders, users, utcnow())
