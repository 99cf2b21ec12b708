"""
Generic Repository

Single point of access to every instance of one entity type. Reads always
go to the database; writes are staged on the session and only reach the
database when the owning UnitOfWork saves.
"""

from typing import Any, Generic, Iterable, List, Optional, Type, TypeVar, Union
import uuid

import structlog
from sqlalchemy import func, inspect, select
from sqlalchemy.ext.asyncio import AsyncSession

from shopdb.database.models import Entity
from shopdb.exceptions import EntityNotFoundError
from shopdb.persistence.auditing import stamp_new, touch

logger = structlog.get_logger(__name__)

EntityT = TypeVar("EntityT", bound=Entity)

EntityId = Union[uuid.UUID, str]


def _coerce_id(entity_id: EntityId) -> uuid.UUID:
    return entity_id if isinstance(entity_id, uuid.UUID) else uuid.UUID(str(entity_id))


def _require_iterable(entities: Optional[Iterable[Any]], operation: str) -> List[Any]:
    if entities is None:
        raise ValueError(f"{operation} requires a sequence of entities, got None")
    return list(entities)


class Repository(Generic[EntityT]):
    """
    CRUD and query operations for one entity type.

    Criteria passed to ``find``, ``count`` and ``exists`` are SQLAlchemy
    column expressions, so any mapped attribute can be filtered on:

        await repo.find(User.status == UserStatus.ACTIVE, User.balance > 100)
        await repo.count(Product.price.between(10, 50))
    """

    def __init__(self, session: AsyncSession, model: Type[EntityT]):
        self._session = session
        self.model = model

    @property
    def entity_name(self) -> str:
        return self.model.__name__

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_by_id(self, entity_id: EntityId) -> Optional[EntityT]:
        """Return the entity with this identity, or None if it does not exist"""
        stmt = select(self.model).where(self.model.id == _coerce_id(entity_id))
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_all(self) -> List[EntityT]:
        result = await self._session.execute(select(self.model))
        return list(result.scalars().all())

    async def find(self, *criteria: Any) -> List[EntityT]:
        """Return all entities matching every criterion"""
        result = await self._session.execute(select(self.model).where(*criteria))
        return list(result.scalars().all())

    async def count(self, *criteria: Any) -> int:
        stmt = select(func.count()).select_from(self.model)
        if criteria:
            stmt = stmt.where(*criteria)
        return int(await self._session.scalar(stmt) or 0)

    async def exists(self, *criteria: Any) -> bool:
        stmt = select(self.model.id).where(*criteria).limit(1)
        return (await self._session.scalar(stmt)) is not None

    # -------------------------------------------------------------------------
    # Staged writes
    # -------------------------------------------------------------------------

    async def add(self, entity: EntityT) -> EntityT:
        """Stage an entity for insertion, assigning identity and creation time if absent"""
        if entity is None:
            raise ValueError(f"Cannot add None as {self.entity_name}")
        self._session.add(stamp_new(entity))
        return entity

    async def add_range(self, entities: Iterable[EntityT]) -> None:
        items = _require_iterable(entities, "add_range")
        if not items:
            return
        self._session.add_all([stamp_new(entity) for entity in items])
        logger.debug("Staged inserts", entity=self.entity_name, count=len(items))

    async def update(self, entity: EntityT) -> EntityT:
        """
        Stage a modification of a previously persisted entity.

        Entities loaded by another session, or built by hand with a known id,
        are merged into this unit of work.

        Raises:
            EntityNotFoundError: If the identity was never persisted
        """
        if entity is None:
            raise ValueError(f"Cannot update None as {self.entity_name}")
        if entity.id is None:
            raise EntityNotFoundError(self.entity_name, None)

        if entity in self._session:
            if not inspect(entity).persistent:
                # Staged for insert but never saved
                raise EntityNotFoundError(self.entity_name, entity.id)
            return touch(entity)

        existing = await self._session.get(self.model, entity.id, populate_existing=True)
        if existing is None:
            raise EntityNotFoundError(self.entity_name, entity.id)
        merged = await self._session.merge(entity)
        if merged.created_at is None:
            merged.created_at = existing.created_at
        return touch(merged)

    async def update_range(self, entities: Iterable[EntityT]) -> List[EntityT]:
        items = _require_iterable(entities, "update_range")
        return [await self.update(entity) for entity in items]

    async def delete(self, entity: EntityT) -> None:
        """
        Stage removal of an entity.

        Owned children go with it; referenced products or users with
        dependents are rejected by the database when the unit of work saves.
        """
        if entity is None:
            raise ValueError(f"Cannot delete None as {self.entity_name}")

        if entity in self._session:
            if inspect(entity).pending:
                # Never flushed, so there is nothing to delete
                self._session.expunge(entity)
            else:
                await self._session.delete(entity)
            return

        target = await self._session.get(self.model, entity.id, populate_existing=True)
        if target is None:
            raise EntityNotFoundError(self.entity_name, entity.id)
        await self._session.delete(target)

    async def delete_range(self, entities: Iterable[EntityT]) -> None:
        items = _require_iterable(entities, "delete_range")
        for entity in items:
            await self.delete(entity)
