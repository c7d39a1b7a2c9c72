"""
Audit trail: append-only writes and organization-scoped reads.

Audit writes are part of the guarded operation's transaction. A failed
write is raised as AuditWriteError, never logged-and-ignored, so a mutation
or a denial can't happen without its audit record.
"""
from typing import Any, Dict, Optional
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tenant_rbac.core.exceptions import AuditWriteError
from tenant_rbac.features.audit.models import ActivityEvent, ActivityType, EntityType
from tenant_rbac.features.audit.schemas import (
    ActivityEventCreate,
    ActivityEventResponse,
    ActivityEventPage,
    ActivityFilter,
)
from tenant_rbac.utils import get_logger


log = get_logger(__name__)


async def append(db: AsyncSession, event: ActivityEventCreate, commit: bool = True) -> ActivityEvent:
    """
    Append an audit event.

    Args:
        db: Database session
        event: Validated event payload
        commit: Commit immediately. Services pass False to keep the event in
            the same transaction as the mutation it records.

    Raises:
        AuditWriteError: the event could not be persisted
    """
    activity = ActivityEvent(
        organization_id=event.organization_id,
        entity_type=event.entity_type.value,
        entity_id=event.entity_id,
        actor_id=event.actor_id,
        type=event.type.value,
        description=event.description,
        event_metadata=event.metadata,
    )

    try:
        db.add(activity)
        await db.flush()
        if commit:
            await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        log.error(
            "Audit write failed: org=%s entity=%s:%s type=%s",
            event.organization_id, event.entity_type.value, event.entity_id, event.type.value,
        )
        raise AuditWriteError(
            "Failed to write audit event",
            details={"entity_type": event.entity_type.value, "type": event.type.value},
        ) from e

    log.info(
        f"Audit: actor={event.actor_id} type={event.type.value} "
        f"entity={event.entity_type.value}:{event.entity_id} org={event.organization_id}"
    )
    return activity


async def record(
    db: AsyncSession,
    organization_id: str,
    entity_type: EntityType,
    entity_id: str,
    actor_id: Optional[str],
    type: ActivityType,
    description: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> ActivityEvent:
    """Append an event inside the caller's transaction (no commit)."""
    return await append(
        db,
        ActivityEventCreate(
            organization_id=organization_id,
            entity_type=entity_type,
            entity_id=entity_id,
            actor_id=actor_id or "system",
            type=type,
            description=description,
            metadata=metadata or {},
        ),
        commit=False,
    )


async def query(
    db: AsyncSession,
    organization_id: str,
    filters: Optional[ActivityFilter] = None,
) -> ActivityEventPage:
    """List one organization's audit events, newest first."""
    filters = filters or ActivityFilter()
    stmt = select(ActivityEvent).where(ActivityEvent.organization_id == organization_id)

    if filters.entity_type:
        stmt = stmt.where(ActivityEvent.entity_type == filters.entity_type.value)
    if filters.entity_id:
        stmt = stmt.where(ActivityEvent.entity_id == filters.entity_id)
    if filters.actor_id:
        stmt = stmt.where(ActivityEvent.actor_id == filters.actor_id)
    if filters.type:
        stmt = stmt.where(ActivityEvent.type == filters.type.value)
    if filters.since:
        stmt = stmt.where(ActivityEvent.created_at >= filters.since)
    if filters.until:
        stmt = stmt.where(ActivityEvent.created_at < filters.until)

    # Get total count
    count_stmt = select(func.count()).select_from(stmt.subquery())
    total = (await db.execute(count_stmt)).scalar() or 0

    # Get paginated results
    limit = filters.limit
    stmt = stmt.order_by(ActivityEvent.created_at.desc(), ActivityEvent.id.desc())
    stmt = stmt.offset(filters.skip).limit(limit)
    result = await db.execute(stmt)
    events = result.scalars().all()

    return ActivityEventPage(
        items=[ActivityEventResponse.model_validate(event) for event in events],
        total=total,
        page=(filters.skip // limit) + 1,
        page_size=limit,
        pages=(total + limit - 1) // limit,
    )
