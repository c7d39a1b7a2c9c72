"""
Role registry and role-permission assignment.

Every lookup is scoped by organization: a role that exists in another
organization is reported exactly like a role that doesn't exist at all.
Each public mutation runs as one transaction that includes its audit event.
"""
from typing import Any, Dict, Iterable, Optional
import pydantic
from sqlalchemy import select, delete, insert, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tenant_rbac.core.database.errors import storage_errors
from tenant_rbac.core.exceptions import (
    NotFoundError,
    ProtectedRoleError,
    DependencyExistsError,
    DuplicateRoleNameError,
    ValidationError,
)
from tenant_rbac.features.audit import service as audit
from tenant_rbac.features.audit.models import ActivityType, EntityType
from tenant_rbac.features.permissions.catalog import get_permissions
from tenant_rbac.features.permissions.models import Permission, PermissionType
from tenant_rbac.features.roles.defaults import DEFAULT_ROLES
from tenant_rbac.features.roles.models import Role, role_permissions
from tenant_rbac.features.roles.schemas import RoleCreate, RoleUpdate, SetRolePermissions
from tenant_rbac.features.user_roles.models import UserRole, SYSTEM_ACTOR
from tenant_rbac.utils import get_logger


log = get_logger(__name__)


def _validation_error(e: pydantic.ValidationError) -> ValidationError:
    return ValidationError(
        "Invalid role input",
        details={"errors": [{"field": ".".join(map(str, err["loc"])), "msg": err["msg"]} for err in e.errors()]},
    )


# ============================================================================
# Reads
# ============================================================================

async def get_role(db: AsyncSession, role_id: str, organization_id: str) -> Role | None:
    """Get a role by id within an organization, or None (absent or cross-tenant)."""
    result = await db.execute(
        select(Role).where(Role.id == role_id, Role.organization_id == organization_id)
    )
    return result.scalars().first()


async def get_role_with_permissions(db: AsyncSession, role_id: str, organization_id: str) -> Role | None:
    """Get a role with its permission set re-read from storage."""
    result = await db.execute(
        select(Role)
        .where(Role.id == role_id, Role.organization_id == organization_id)
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def list_roles(db: AsyncSession, organization_id: str) -> list[Role]:
    """All roles of one organization, default roles first."""
    result = await db.execute(
        select(Role)
        .where(Role.organization_id == organization_id)
        .order_by(Role.is_default.desc(), Role.name)
    )
    return list(result.scalars().all())


async def get_role_by_name(db: AsyncSession, organization_id: str, name: str) -> Role | None:
    result = await db.execute(
        select(Role).where(Role.organization_id == organization_id, Role.name == name)
    )
    return result.scalars().first()


async def count_role_assignments(db: AsyncSession, role_id: str, organization_id: str) -> int:
    """Number of user-role rows referencing the role."""
    result = await db.execute(
        select(func.count()).select_from(UserRole).where(
            UserRole.role_id == role_id,
            UserRole.organization_id == organization_id,
        )
    )
    return result.scalar() or 0


async def _role_permission_ids(db: AsyncSession, role_id: str) -> list[str]:
    result = await db.execute(
        select(role_permissions.c.permission_id).where(role_permissions.c.role_id == role_id)
    )
    return list(result.scalars().all())


# ============================================================================
# Role mutations
# ============================================================================

@storage_errors
async def create_role(
    db: AsyncSession,
    organization_id: str,
    name: str,
    description: Optional[str] = None,
    is_default: bool = False,
    actor_id: Optional[str] = None,
) -> Role:
    """
    Create a role in an organization.

    Raises:
        ValidationError: blank or oversized name
        DuplicateRoleNameError: name already used in this organization
    """
    try:
        data = RoleCreate(
            organization_id=organization_id,
            name=name,
            description=description,
            is_default=is_default,
        )
    except pydantic.ValidationError as e:
        raise _validation_error(e) from e

    if await get_role_by_name(db, organization_id, data.name):
        raise DuplicateRoleNameError(
            f"Role '{data.name}' already exists in this organization",
            details={"name": data.name},
        )

    role = Role(**data.model_dump())
    try:
        db.add(role)
        await db.flush()
    except IntegrityError as e:
        # Lost a race against a concurrent create with the same name
        await db.rollback()
        raise DuplicateRoleNameError(
            f"Role '{data.name}' already exists in this organization",
            details={"name": data.name},
        ) from e

    await audit.record(
        db,
        organization_id=organization_id,
        entity_type=EntityType.ROLE,
        entity_id=role.id,
        actor_id=actor_id,
        type=ActivityType.CREATED,
        description=f"Role '{role.name}' created",
        metadata={"name": role.name, "is_default": role.is_default},
    )
    await db.commit()
    await db.refresh(role)

    log.info(f"Created role '{role.name}' ({role.id}) in org {organization_id}")
    return role


@storage_errors
async def update_role(
    db: AsyncSession,
    role_id: str,
    organization_id: str,
    changes: RoleUpdate | Dict[str, Any],
    actor_id: Optional[str] = None,
) -> Role | None:
    """
    Partially update a role's name and/or description.

    Returns:
        The updated role, or None if it doesn't exist in this organization

    Raises:
        ProtectedRoleError: renaming a default role
        DuplicateRoleNameError: new name already used in this organization
    """
    if not isinstance(changes, RoleUpdate):
        try:
            changes = RoleUpdate.model_validate(changes)
        except pydantic.ValidationError as e:
            raise _validation_error(e) from e

    role = await get_role(db, role_id, organization_id)
    if role is None:
        return None

    update_data = changes.model_dump(exclude_unset=True)
    if update_data.get("name") is None:
        update_data.pop("name", None)

    new_name = update_data.get("name")
    if new_name is not None and new_name != role.name:
        if role.is_default:
            raise ProtectedRoleError(
                "Cannot rename a default role",
                details={"role_id": role.id, "name": role.name},
            )
        if await get_role_by_name(db, organization_id, new_name):
            raise DuplicateRoleNameError(
                f"Role '{new_name}' already exists in this organization",
                details={"name": new_name},
            )

    previous = {key: getattr(role, key) for key in update_data}
    for key, value in update_data.items():
        setattr(role, key, value)

    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        raise DuplicateRoleNameError(
            f"Role '{new_name}' already exists in this organization",
            details={"name": new_name},
        ) from e

    await audit.record(
        db,
        organization_id=organization_id,
        entity_type=EntityType.ROLE,
        entity_id=role.id,
        actor_id=actor_id,
        type=ActivityType.UPDATED,
        description=f"Role '{role.name}' updated",
        metadata={"changes": update_data, "previous": previous},
    )
    await db.commit()
    await db.refresh(role)
    return role


@storage_errors
async def delete_role(
    db: AsyncSession,
    role_id: str,
    organization_id: str,
    actor_id: Optional[str] = None,
) -> bool:
    """
    Delete a custom role that nobody holds.

    Raises:
        NotFoundError: role absent or in another organization
        ProtectedRoleError: role is a default role
        DependencyExistsError: role is still assigned to at least one user
    """
    role = await get_role(db, role_id, organization_id)
    if role is None:
        raise NotFoundError("Role not found", details={"role_id": role_id})

    if role.is_default:
        raise ProtectedRoleError(
            "Cannot delete a default role",
            details={"role_id": role.id, "name": role.name},
        )

    assignments = await count_role_assignments(db, role.id, organization_id)
    if assignments:
        raise DependencyExistsError(
            "Cannot delete a role that is assigned to users",
            details={"role_id": role.id, "assignments": assignments},
        )

    role_name = role.name
    try:
        await db.execute(delete(role_permissions).where(role_permissions.c.role_id == role_id))
        await db.execute(delete(Role).where(Role.id == role_id, Role.organization_id == organization_id))
    except IntegrityError as e:
        # An assignment committed after the count; user_roles.role_id is ON DELETE RESTRICT
        await db.rollback()
        log.debug(f"Delete of role {role_id} blocked by a concurrent assignment")
        raise DependencyExistsError(
            "Cannot delete a role that is assigned to users",
            details={"role_id": role_id},
        ) from e

    await audit.record(
        db,
        organization_id=organization_id,
        entity_type=EntityType.ROLE,
        entity_id=role_id,
        actor_id=actor_id,
        type=ActivityType.DELETED,
        description=f"Role '{role_name}' deleted",
        metadata={"name": role_name},
    )
    await db.commit()

    log.info(f"Deleted role '{role_name}' ({role_id}) in org {organization_id}")
    return True


# ============================================================================
# Role-permission assignment
# ============================================================================

async def _insert_grants(db: AsyncSession, role_id: str, permission_ids: Iterable[str]) -> None:
    rows = [{"role_id": role_id, "permission_id": permission_id} for permission_id in permission_ids]
    if rows:
        await db.execute(insert(role_permissions), rows)


@storage_errors
async def assign_role_permission(
    db: AsyncSession,
    role_id: str,
    permission_id: str,
    commit: bool = True,
) -> bool:
    """
    Additively grant one permission to a role (seed-time operation).

    Returns:
        True if the grant was added, False if the role already had it

    Raises:
        NotFoundError: role or catalog permission doesn't exist
    """
    role = (await db.execute(select(Role.id).where(Role.id == role_id))).first()
    if role is None:
        raise NotFoundError("Role not found", details={"role_id": role_id})

    permission = (await db.execute(select(Permission.id).where(Permission.id == permission_id))).first()
    if permission is None:
        raise NotFoundError("Permission not found", details={"permission_id": permission_id})

    existing = await db.execute(
        select(role_permissions).where(
            role_permissions.c.role_id == role_id,
            role_permissions.c.permission_id == permission_id,
        )
    )
    if existing.first():
        return False

    await _insert_grants(db, role_id, [permission_id])
    if commit:
        await db.commit()
    return True


@storage_errors
async def assign_permissions_to_role(
    db: AsyncSession,
    role_id: str,
    organization_id: str,
    permission_ids: list[str],
    actor_id: Optional[str] = None,
) -> Role:
    """
    Replace a role's permission set with exactly `permission_ids`.

    Delete and insert run in one transaction, so readers see either the old
    set or the new one.

    Raises:
        NotFoundError: role absent or in another organization
        ValidationError: one or more ids are not catalog permissions
    """
    try:
        wanted = SetRolePermissions(permission_ids=permission_ids).permission_ids
    except pydantic.ValidationError as e:
        raise _validation_error(e) from e

    role = await get_role(db, role_id, organization_id)
    if role is None:
        raise NotFoundError("Role not found", details={"role_id": role_id})

    if wanted:
        result = await db.execute(select(Permission.id).where(Permission.id.in_(wanted)))
        known = set(result.scalars().all())
        unknown = [permission_id for permission_id in wanted if permission_id not in known]
        if unknown:
            raise ValidationError(
                "Unknown permission ids",
                details={"permission_ids": unknown},
            )

    previous = set(await _role_permission_ids(db, role.id))

    await db.execute(delete(role_permissions).where(role_permissions.c.role_id == role.id))
    await _insert_grants(db, role.id, wanted)

    await audit.record(
        db,
        organization_id=organization_id,
        entity_type=EntityType.ROLE_PERMISSION,
        entity_id=role.id,
        actor_id=actor_id,
        type=ActivityType.UPDATED,
        description=f"Permissions of role '{role.name}' replaced",
        metadata={
            "permission_ids": wanted,
            "added": sorted(set(wanted) - previous),
            "removed": sorted(previous - set(wanted)),
        },
    )
    await db.commit()

    log.info(f"Set {len(wanted)} permissions on role {role.id} in org {organization_id}")
    return await get_role_with_permissions(db, role.id, organization_id)


@storage_errors
async def remove_role_permission(
    db: AsyncSession,
    role_id: str,
    organization_id: str,
    permission_id: str,
    actor_id: Optional[str] = None,
) -> bool:
    """Revoke one permission from a role. False if the role didn't have it."""
    role = await get_role(db, role_id, organization_id)
    if role is None:
        raise NotFoundError("Role not found", details={"role_id": role_id})

    if permission_id not in await _role_permission_ids(db, role.id):
        return False

    await db.execute(
        delete(role_permissions).where(
            role_permissions.c.role_id == role.id,
            role_permissions.c.permission_id == permission_id,
        )
    )

    await audit.record(
        db,
        organization_id=organization_id,
        entity_type=EntityType.ROLE_PERMISSION,
        entity_id=role.id,
        actor_id=actor_id,
        type=ActivityType.REMOVED,
        description=f"Permission removed from role '{role.name}'",
        metadata={"permission_id": permission_id},
    )
    await db.commit()
    return True


# ============================================================================
# Default roles
# ============================================================================

@storage_errors
async def seed_default_roles(db: AsyncSession, organization_id: str) -> list[Role]:
    """
    Create the default roles of an organization with their canonical grants.

    Idempotent: roles that already exist are kept as they are.
    The permission catalog must be seeded first.
    """
    catalog = await get_permissions(db)
    if not catalog:
        log.warning("Permission catalog is empty; default roles for org %s get no permissions", organization_id)

    roles = []
    for role_name, role_config in DEFAULT_ROLES.items():
        existing = await get_role_by_name(db, organization_id, role_name)
        if existing:
            log.debug(f"Role '{role_name}' already exists in org {organization_id}, skipping")
            roles.append(existing)
            continue

        role = Role(
            organization_id=organization_id,
            name=role_name,
            description=role_config["description"],
            is_default=True,
        )
        db.add(role)
        await db.flush()

        accepts = role_config["permissions"]
        granted = [
            permission.id
            for permission in catalog
            if accepts(permission.feature_area, PermissionType(permission.permission_type))
        ]
        for permission_id in granted:
            await assign_role_permission(db, role.id, permission_id, commit=False)

        await audit.record(
            db,
            organization_id=organization_id,
            entity_type=EntityType.ROLE,
            entity_id=role.id,
            actor_id=SYSTEM_ACTOR,
            type=ActivityType.CREATED,
            description=f"Default role '{role_name}' created",
            metadata={"name": role_name, "is_default": True, "permission_count": len(granted)},
        )
        log.info(f"Created default role '{role_name}' with {len(granted)} permissions in org {organization_id}")
        roles.append(role)

    await db.commit()
    for role in roles:
        await db.refresh(role)
    return roles
