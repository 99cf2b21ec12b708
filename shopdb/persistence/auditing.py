"""
Audit column maintenance.

Identity and creation time are assigned to new entities; modified entities
get a fresh update time that never precedes their creation time.
"""

import uuid

from sqlalchemy import event
from sqlalchemy.orm import Session

from shopdb.database.models import Entity, utcnow


def stamp_new(entity: Entity) -> Entity:
    """Assign identity and creation timestamp if absent"""
    if entity.id is None:
        entity.id = uuid.uuid4()
    if entity.created_at is None:
        entity.created_at = utcnow()
    return entity


def touch(entity: Entity) -> Entity:
    """Refresh the update timestamp"""
    now = utcnow()
    created_at = entity.created_at
    entity.updated_at = max(now, created_at) if created_at is not None else now
    return entity


@event.listens_for(Session, "before_flush")
def _stamp_audit_columns(session: Session, flush_context, instances) -> None:
    for obj in session.new:
        if isinstance(obj, Entity):
            stamp_new(obj)
    for obj in session.dirty:
        if isinstance(obj, Entity) and session.is_modified(obj, include_collections=False):
            touch(obj)
