"""
User-role assignment: granting, revoking and reading a user's roles
within one organization.
"""
from typing import Optional
import pydantic
from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tenant_rbac.core.database.errors import storage_errors
from tenant_rbac.core.exceptions import ConflictError, NotFoundError, ValidationError
from tenant_rbac.features.audit import service as audit
from tenant_rbac.features.audit.models import ActivityType, EntityType
from tenant_rbac.features.authorization.decision import merge_permissions
from tenant_rbac.features.permissions.models import Permission
from tenant_rbac.features.roles.models import Role, role_permissions
from tenant_rbac.features.roles.service import get_role
from tenant_rbac.features.user_roles.models import UserRole
from tenant_rbac.features.user_roles.schemas import AssignRoleToUser
from tenant_rbac.utils import get_logger


log = get_logger(__name__)


async def _find_assignment(
    db: AsyncSession, user_id: str, role_id: str, organization_id: str
) -> UserRole | None:
    result = await db.execute(
        select(UserRole).where(
            UserRole.user_id == user_id,
            UserRole.role_id == role_id,
            UserRole.organization_id == organization_id,
        )
    )
    return result.scalars().first()


@storage_errors
async def assign_role_to_user(
    db: AsyncSession,
    user_id: str,
    role_id: str,
    organization_id: str,
    assigned_by_id: Optional[str] = None,
) -> UserRole:
    """
    Assign a role to a user in an organization.

    The unique constraint on (user_id, role_id, organization_id) decides
    concurrent identical requests: one insert wins, the others fail with
    ConflictError.

    Raises:
        NotFoundError: role absent or in another organization
        ValidationError: blank user, role or organization id
        ConflictError: the user already holds this role here
    """
    try:
        AssignRoleToUser(
            user_id=user_id,
            role_id=role_id,
            organization_id=organization_id,
            assigned_by_id=assigned_by_id,
        )
    except pydantic.ValidationError as e:
        raise ValidationError(
            "Invalid role assignment",
            details={"fields": [".".join(map(str, err["loc"])) for err in e.errors()]},
        ) from e

    role = await get_role(db, role_id, organization_id)
    if role is None:
        raise NotFoundError("Role not found", details={"role_id": role_id})

    conflict = ConflictError(
        "Role already assigned to user",
        details={"user_id": user_id, "role_id": role_id},
    )
    if await _find_assignment(db, user_id, role_id, organization_id):
        raise conflict

    user_role = UserRole(
        user_id=user_id,
        role_id=role.id,
        organization_id=organization_id,
        assigned_by_id=assigned_by_id,
    )
    try:
        db.add(user_role)
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        log.debug(f"Concurrent duplicate assignment of role {role_id} to user {user_id}")
        raise conflict from e

    await audit.record(
        db,
        organization_id=organization_id,
        entity_type=EntityType.USER_ROLE,
        entity_id=user_role.id,
        actor_id=assigned_by_id,
        type=ActivityType.ASSIGNED,
        description=f"Role '{role.name}' assigned to user {user_id}",
        metadata={"user_id": user_id, "role_id": role.id, "role_name": role.name},
    )
    await db.commit()
    await db.refresh(user_role)

    log.info(f"Assigned role {role.id} to user {user_id} in org {organization_id}")
    return user_role


@storage_errors
async def remove_role_from_user(
    db: AsyncSession,
    user_id: str,
    role_id: str,
    organization_id: str,
    actor_id: Optional[str] = None,
) -> bool:
    """
    Remove a role from a user.

    Returns:
        True if an assignment was removed, False if there was none
    """
    assignment = await _find_assignment(db, user_id, role_id, organization_id)
    if assignment is None:
        return False

    assignment_id = assignment.id
    await db.execute(delete(UserRole).where(UserRole.id == assignment_id))

    await audit.record(
        db,
        organization_id=organization_id,
        entity_type=EntityType.USER_ROLE,
        entity_id=assignment_id,
        actor_id=actor_id,
        type=ActivityType.REMOVED,
        description=f"Role removed from user {user_id}",
        metadata={"user_id": user_id, "role_id": role_id},
    )
    await db.commit()

    log.info(f"Removed role {role_id} from user {user_id} in org {organization_id}")
    return True


async def get_user_assignments(db: AsyncSession, user_id: str, organization_id: str) -> list[UserRole]:
    """A user's assignment rows in one organization, oldest first."""
    result = await db.execute(
        select(UserRole)
        .join(Role, Role.id == UserRole.role_id)
        .where(
            UserRole.user_id == user_id,
            UserRole.organization_id == organization_id,
            Role.organization_id == organization_id,
        )
        .order_by(UserRole.assigned_at)
    )
    return list(result.scalars().all())


async def get_user_roles(db: AsyncSession, user_id: str, organization_id: str) -> list[Role]:
    """Roles a user holds in one organization."""
    result = await db.execute(
        select(Role)
        .join(UserRole, UserRole.role_id == Role.id)
        .where(
            UserRole.user_id == user_id,
            UserRole.organization_id == organization_id,
            Role.organization_id == organization_id,
        )
        .order_by(Role.name)
    )
    return list(result.scalars().unique().all())


async def get_user_permissions(db: AsyncSession, user_id: str, organization_id: str) -> list[Permission]:
    """
    The user's effective permission set in one organization.

    Union of the permissions of every role the user holds there,
    deduplicated by (feature_area, permission_type).
    """
    roles = await get_user_roles(db, user_id, organization_id)
    return await permissions_for_roles(db, roles)


async def permissions_for_roles(db: AsyncSession, roles: list[Role]) -> list[Permission]:
    """Deduplicated union of the given roles' permissions."""
    if not roles:
        return []

    result = await db.execute(
        select(role_permissions.c.role_id, Permission)
        .join(Permission, Permission.id == role_permissions.c.permission_id)
        .where(role_permissions.c.role_id.in_([role.id for role in roles]))
    )

    per_role: dict[str, list[Permission]] = {role.id: [] for role in roles}
    for role_id, permission in result.all():
        per_role[role_id].append(permission)

    return merge_permissions(per_role.values())
