"""
Unit of Work

One session, one repository per entity type, one transaction boundary.

Example:
    async with UnitOfWork(session_factory) as uow:
        await uow.users.add(user)
        await uow.orders.add_range(orders)
        await uow.save_changes()
"""

from typing import Dict, Optional, Type

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shopdb.database.models import (
    Entity,
    Order,
    OrderItem,
    OrderStatusHistory,
    Product,
    ProductInventory,
    ProductReview,
    User,
    UserProfile,
    UserSession,
)
from shopdb.exceptions import ConstraintViolation, PersistenceError
from shopdb.persistence.repository import EntityT, Repository

logger = structlog.get_logger(__name__)


class UnitOfWork:
    """
    Coordinates repositories sharing one session.

    Without ``begin_transaction`` every ``save_changes`` call commits on its
    own. With it, saves are flushed into the open transaction and only
    ``commit_transaction`` makes them durable. A save rejected inside the
    transaction discards only its own changes; the transaction stays open.
    A unit of work must not be shared between concurrently running tasks.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session: AsyncSession = session_factory()
        self._repositories: Dict[Type[Entity], Repository] = {}
        self._in_transaction = False
        # Set once a save has written rows inside the explicit transaction,
        # so the driver has a database transaction for savepoints to nest in
        self._holds_writes = False
        self._closed = False

    async def __aenter__(self) -> "UnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def session(self) -> AsyncSession:
        return self._session

    @property
    def has_active_transaction(self) -> bool:
        return self._in_transaction

    # -------------------------------------------------------------------------
    # Repositories
    # -------------------------------------------------------------------------

    def repository(self, model: Type[EntityT]) -> Repository[EntityT]:
        """Return the repository for ``model``, created on first access"""
        repo = self._repositories.get(model)
        if repo is None:
            repo = Repository(self._session, model)
            self._repositories[model] = repo
        return repo

    @property
    def users(self) -> Repository[User]:
        return self.repository(User)

    @property
    def user_profiles(self) -> Repository[UserProfile]:
        return self.repository(UserProfile)

    @property
    def user_sessions(self) -> Repository[UserSession]:
        return self.repository(UserSession)

    @property
    def products(self) -> Repository[Product]:
        return self.repository(Product)

    @property
    def product_reviews(self) -> Repository[ProductReview]:
        return self.repository(ProductReview)

    @property
    def product_inventories(self) -> Repository[ProductInventory]:
        return self.repository(ProductInventory)

    @property
    def orders(self) -> Repository[Order]:
        return self.repository(Order)

    @property
    def order_items(self) -> Repository[OrderItem]:
        return self.repository(OrderItem)

    @property
    def order_status_histories(self) -> Repository[OrderStatusHistory]:
        return self.repository(OrderStatusHistory)

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def _staged_count(self) -> int:
        session = self._session
        modified = [obj for obj in session.dirty if session.is_modified(obj)]
        return len(session.new) + len(modified) + len(session.deleted)

    async def _discard(self) -> None:
        await self._session.rollback()
        self._in_transaction = False
        self._holds_writes = False

    async def _flush(self) -> None:
        if self._holds_writes:
            # Earlier saves of this transaction survive a rejected flush
            async with self._session.begin_nested():
                await self._session.flush()
        else:
            await self._session.flush()

    async def _discard_failed_save(self) -> None:
        # A savepoint was already rolled back by begin_nested
        if not self._holds_writes:
            await self._session.rollback()

    async def save_changes(self) -> int:
        """
        Write every staged insert, update and delete.

        Each call is all-or-nothing. Outside an explicit transaction it
        commits; inside one, a failure rolls back this call's changes only
        and the transaction stays open.

        Returns:
            Number of staged records written

        Raises:
            ConstraintViolation: A unique, foreign key, check or not-null
                constraint rejected the changes
            PersistenceError: Any other database failure
        """
        self._ensure_open()
        affected = self._staged_count()
        try:
            await self._flush()
            if not self._in_transaction:
                await self._session.commit()
        except IntegrityError as e:
            await self._discard_failed_save()
            violation = ConstraintViolation.from_integrity_error(e)
            logger.warning("Save rejected by constraint", kind=violation.kind, error=str(e.orig))
            raise violation from e
        except SQLAlchemyError as e:
            await self._discard_failed_save()
            logger.error("Save failed, changes discarded", error=str(e), error_type=type(e).__name__)
            raise PersistenceError(f"Failed to save changes: {e}") from e

        if self._in_transaction and affected:
            self._holds_writes = True
        logger.debug("Changes saved", affected=affected, in_transaction=self._in_transaction)
        return affected

    async def begin_transaction(self) -> None:
        """Start an explicit transaction spanning subsequent saves"""
        self._ensure_open()
        if self._in_transaction:
            raise PersistenceError("A transaction is already active on this unit of work")
        self._in_transaction = True
        logger.debug("Transaction started")

    async def commit_transaction(self) -> int:
        """
        Save staged changes and commit the explicit transaction.

        On failure everything since ``begin_transaction`` is rolled back
        before the error propagates.
        """
        if not self._in_transaction:
            return await self.save_changes()

        try:
            affected = await self.save_changes()
            await self._session.commit()
        except PersistenceError:
            await self.rollback_transaction()
            raise
        except SQLAlchemyError as e:
            await self.rollback_transaction()
            raise PersistenceError(f"Failed to commit transaction: {e}") from e

        self._in_transaction = False
        self._holds_writes = False
        logger.debug("Transaction committed", affected=affected)
        return affected

    async def rollback_transaction(self) -> None:
        """Discard everything since ``begin_transaction``; no-op without one"""
        if not self._in_transaction:
            return
        await self._discard()
        logger.debug("Transaction rolled back")

    async def close(self) -> None:
        """Release the session, rolling back any open transaction"""
        if self._closed:
            return
        try:
            await self.rollback_transaction()
        finally:
            await self._session.close()
            self._closed = True

    def _ensure_open(self) -> None:
        if self._closed:
            raise PersistenceError("Unit of work has been closed")
