"""
Audit trail model.

Append-only record of every RBAC mutation and every denied authorization
decision. Rows are never updated or deleted by the core.
"""
import enum
from datetime import datetime
from typing import Any, Dict
from sqlalchemy import String, ForeignKey, JSON, Text, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column

from tenant_rbac.core.database.base import Base, UlidPrimaryKeyMixin, utcnow


class EntityType(str, enum.Enum):
    ROLE = "role"
    ROLE_PERMISSION = "role_permission"
    USER_ROLE = "user_role"
    PERMISSION = "permission"
    PERMISSION_CHECK = "permission_check"


class ActivityType(str, enum.Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    ASSIGNED = "assigned"
    REMOVED = "removed"
    REJECTED = "rejected"
    APPROVED = "approved"


class ActivityEvent(Base, UlidPrimaryKeyMixin):
    """
    Tracks who did what to the access-control graph, and who was refused.
    """
    __tablename__ = "activity_events"
    __table_args__ = (
        Index("ix_activity_events_entity", "entity_type", "entity_id"),
    )

    organization_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(255), nullable=False)
    actor_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # "metadata" is reserved on declarative classes, so the attribute is renamed
    event_metadata: Mapped[Dict[str, Any] | None] = mapped_column("metadata", JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True
    )

    def __repr__(self) -> str:
        return f"<ActivityEvent(id={self.id}, {self.entity_type}:{self.type}, org_id={self.organization_id})>"
