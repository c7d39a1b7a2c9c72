"""
Role model and the role-permission association table.

Roles are organization-specific named collections of catalog permissions.
Default roles (Admin, Manager, Team Member, Client) exist in every
organization and can never be deleted.
"""
from sqlalchemy import String, ForeignKey, Table, Column, Text, Boolean, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tenant_rbac.core.database.base import Base, TimestampMixin, UlidPrimaryKeyMixin
from tenant_rbac.features.permissions.models import Permission


# Role-Permission relationship (composite key = one row per pair)
role_permissions = Table(
    "role_permissions",
    Base.metadata,
    Column("role_id", String(26), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("permission_id", String(26), ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True),
)


class Role(Base, UlidPrimaryKeyMixin, TimestampMixin):
    """
    Role model for grouping permissions within one organization.

    Examples: Admin, Manager, Team Member, Client, Project Manager
    """
    __tablename__ = "roles"
    __table_args__ = (
        UniqueConstraint("organization_id", "name", name="uq_roles_organization_id_name"),
    )

    organization_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    permissions: Mapped[list[Permission]] = relationship(
        Permission,
        secondary=role_permissions,
        lazy="selectin",
        order_by=[Permission.feature_area, Permission.permission_type],
        viewonly=True,
    )

    def __repr__(self) -> str:
        return f"<Role(id={self.id}, name={self.name!r}, org_id={self.organization_id})>"
