"""
User-role assignment model.

Links an actor to a role inside a specific organization. A user may hold
several roles in the same organization; the (user, role, organization)
triple is unique at the storage layer.
"""
from datetime import datetime
from sqlalchemy import String, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tenant_rbac.core.database.base import Base, UlidPrimaryKeyMixin, utcnow
from tenant_rbac.features.roles.models import Role


SYSTEM_ACTOR = "system"


class UserRole(Base, UlidPrimaryKeyMixin):
    __tablename__ = "user_roles"
    __table_args__ = (
        UniqueConstraint("user_id", "role_id", "organization_id", name="uq_user_roles_user_role_org"),
    )

    # Users live in the authentication collaborator, so no foreign key here
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    role_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("roles.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    organization_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Actor who granted the role, "system" for seed-time grants
    assigned_by_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    assigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    role: Mapped[Role] = relationship(Role, lazy="selectin", viewonly=True)

    def __repr__(self) -> str:
        return f"<UserRole(user_id={self.user_id}, role_id={self.role_id}, org_id={self.organization_id})>"
