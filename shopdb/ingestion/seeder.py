"""
Database Seeding

Populates the store with a coherent synthetic dataset in foreign-key
dependency order:

    users -> products -> profiles -> sessions -> inventory -> reviews
          -> orders -> order items -> status history

Every stage is saved on its own so progress is observable and a failure in
stage k leaves stages 1..k-1 committed. Pass ``atomic=True`` to run all
stages inside one explicit transaction instead.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Protocol, Sequence, Tuple
import uuid

import structlog

from shopdb.config import get_settings
from shopdb.database.models import (
    Order,
    OrderItem,
    OrderStatusHistory,
    Product,
    ProductInventory,
    ProductReview,
    User,
    UserProfile,
    UserSession,
    utcnow,
)
from shopdb.persistence.unit_of_work import UnitOfWork

logger = structlog.get_logger(__name__)


class EntityDataSource(Protocol):
    """Pluggable producer of not-yet-persisted entities, one method per stage"""

    def generate_users(self, count: int) -> List[User]: ...

    def generate_products(self, count: int) -> List[Product]: ...

    def generate_user_profiles(self, users: Sequence[User], probability: float = 0.8) -> List[UserProfile]: ...

    def generate_user_sessions(self, users: Sequence[User]) -> List[UserSession]: ...

    def generate_product_inventories(self, products: Sequence[Product]) -> List[ProductInventory]: ...

    def generate_product_reviews(self, products: Sequence[Product], users: Sequence[User]) -> List[ProductReview]: ...

    def generate_orders(self, users: Sequence[User], count: int) -> List[Order]: ...

    def generate_order_items(self, orders: Sequence[Order], products: Sequence[Product]) -> List[OrderItem]: ...

    def generate_order_status_histories(
        self, orders: Sequence[Order], users: Sequence[User]
    ) -> List[OrderStatusHistory]: ...


@dataclass
class SeedResult:
    """Rows inserted by one seeding run"""
    users: int = 0
    products: int = 0
    user_profiles: int = 0
    user_sessions: int = 0
    product_inventories: int = 0
    product_reviews: int = 0
    orders: int = 0
    order_items: int = 0
    order_status_histories: int = 0
    started_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None

    @property
    def total(self) -> int:
        return sum(self.counts().values())

    @property
    def duration_seconds(self) -> float:
        if self.completed_at is None:
            return 0.0
        return (self.completed_at - self.started_at).total_seconds()

    def counts(self) -> Dict[str, int]:
        values = asdict(self)
        values.pop("started_at")
        values.pop("completed_at")
        return values


@dataclass
class SampleRecords:
    """Identifiers created by DataSeeder.seed_sample_records"""
    user_id: uuid.UUID
    product_id: uuid.UUID
    order_id: uuid.UUID


class DataSeeder:
    """
    Seeds the store through a UnitOfWork.

    Example:
        async with UnitOfWork(session_factory) as uow:
            result = await DataSeeder(uow, DataGenerator(random_seed=7)).seed(count=100)
    """

    def __init__(
        self,
        unit_of_work: UnitOfWork,
        data_source: EntityDataSource,
        profile_probability: Optional[float] = None,
    ):
        settings = get_settings()
        self.uow = unit_of_work
        self.data_source = data_source
        self.profile_probability = (
            settings.seeding.profile_probability if profile_probability is None else profile_probability
        )
        self.default_count = settings.seeding.record_count

    async def _stage(self, name: str, repository, entities: list) -> int:
        logger.info(f"Seeding {name}...", count=len(entities))
        await repository.add_range(entities)
        await self.uow.save_changes()
        return len(entities)

    async def seed(self, count: Optional[int] = None, atomic: bool = False) -> SeedResult:
        """
        Generate and persist ``count`` users, products and orders plus their children.

        Args:
            count: Primary records per entity type (defaults to settings)
            atomic: Run every stage in a single explicit transaction

        Raises:
            ConstraintViolation / PersistenceError: From the failing stage
        """
        count = self.default_count if count is None else count
        if count < 1:
            raise ValueError("Seed count must be positive")

        uow, source = self.uow, self.data_source
        result = SeedResult()
        logger.info("Starting database seeding", count=count, atomic=atomic)

        if atomic:
            await uow.begin_transaction()
        try:
            users = source.generate_users(count)
            result.users = await self._stage("users", uow.users, users)

            products = source.generate_products(count)
            result.products = await self._stage("products", uow.products, products)

            result.user_profiles = await self._stage(
                "user profiles",
                uow.user_profiles,
                source.generate_user_profiles(users, self.profile_probability),
            )
            result.user_sessions = await self._stage(
                "user sessions", uow.user_sessions, source.generate_user_sessions(users)
            )
            result.product_inventories = await self._stage(
                "product inventories", uow.product_inventories, source.generate_product_inventories(products)
            )
            result.product_reviews = await self._stage(
                "product reviews", uow.product_reviews, source.generate_product_reviews(products, users)
            )

            orders = source.generate_orders(users, count)
            result.orders = await self._stage("orders", uow.orders, orders)

            result.order_items = await self._stage(
                "order items", uow.order_items, source.generate_order_items(orders, products)
            )
            result.order_status_histories = await self._stage(
                "order status histories",
                uow.order_status_histories,
                source.generate_order_status_histories(orders, users),
            )

            if atomic:
                await uow.commit_transaction()
        except Exception as e:
            logger.error("Seeding failed", error=str(e), completed=result.counts())
            await uow.rollback_transaction()
            raise

        result.completed_at = utcnow()
        logger.info(
            "Database seeding complete",
            total=result.total,
            duration_seconds=round(result.duration_seconds, 2),
            **result.counts(),
        )
        return result

    async def seed_sample_records(self) -> SampleRecords:
        """
        Insert one connected user / product / order graph.

        Used by quick tests to exercise every table without a full run.
        """
        uow, source = self.uow, self.data_source

        users = source.generate_users(1)
        products = source.generate_products(1)
        await uow.users.add_range(users)
        await uow.products.add_range(products)
        await uow.save_changes()

        await uow.user_profiles.add_range(source.generate_user_profiles(users, 1.0))
        await uow.product_inventories.add_range(source.generate_product_inventories(products))
        orders = source.generate_orders(users, 1)
        await uow.orders.add_range(orders)
        await uow.save_changes()

        await uow.order_items.add_range(source.generate_order_items(orders, products))
        await uow.order_status_histories.add_range(source.generate_order_status_histories(orders, users))
        await uow.save_changes()

        sample = SampleRecords(user_id=users[0].id, product_id=products[0].id, order_id=orders[0].id)
        logger.info("Sample records created", **{k: str(v) for k, v in asdict(sample).items()})
        return sample


def summarize(result: SeedResult) -> List[Tuple[str, int]]:
    """(label, count) rows for console output"""
    return [(name.replace("_", " ").title(), value) for name, value in result.counts().items()]
