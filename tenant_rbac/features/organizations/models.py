"""
Organization model - the tenant root.

Organizations are created and destroyed by the host application. The RBAC
core only references their id; every role, assignment and audit event is
scoped to exactly one organization.
"""
from sqlalchemy import String, Boolean
from sqlalchemy.orm import Mapped, mapped_column

from tenant_rbac.core.database.base import Base, TimestampMixin, UlidPrimaryKeyMixin


class Organization(Base, UlidPrimaryKeyMixin, TimestampMixin):
    """Tenant isolation boundary."""
    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, slug={self.slug!r})>"
