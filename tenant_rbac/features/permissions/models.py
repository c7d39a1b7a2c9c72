"""
Permission catalog model.

Permissions are global (not organization-scoped). The pair
(feature_area, permission_type) is the semantic key of a permission.
"""
import enum
from sqlalchemy import String, Text, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from tenant_rbac.core.database.base import Base, TimestampMixin, UlidPrimaryKeyMixin


class PermissionType(str, enum.Enum):
    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"
    EXPORT = "export"


class Permission(Base, UlidPrimaryKeyMixin, TimestampMixin):
    """
    A single (feature_area, permission_type) grant that roles are built from.

    Examples:
    - feature_area="clients", permission_type="view"
    - feature_area="dashboard", permission_type="view"
    """
    __tablename__ = "permissions"
    __table_args__ = (
        UniqueConstraint("feature_area", "permission_type", name="uq_permissions_feature_area_type"),
    )

    feature_area: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    permission_type: Mapped[PermissionType] = mapped_column(
        SQLEnum(
            PermissionType,
            name="permission_type",
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
            native_enum=False,
            length=20,
        ),
        nullable=False,
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def key(self) -> tuple[str, str]:
        """Semantic identity used for deduplication."""
        return (self.feature_area, PermissionType(self.permission_type).value)

    def __repr__(self) -> str:
        return f"<Permission(id={self.id}, {self.feature_area}:{PermissionType(self.permission_type).value})>"
