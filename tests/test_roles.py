"""
Tests for the role registry, default roles and role-permission assignment.
"""

import asyncio

import pytest
from sqlalchemy import select

from tenant_rbac.core.exceptions import (
    ConflictError,
    DependencyExistsError,
    DuplicateRoleNameError,
    NotFoundError,
    ProtectedRoleError,
    ValidationError,
)
from tenant_rbac.features.audit.models import ActivityType, EntityType
from tenant_rbac.features.audit.schemas import ActivityFilter
from tenant_rbac.features.audit.service import query
from tenant_rbac.features.permissions.catalog import PERMISSION_SEEDS, get_permission_by_key
from tenant_rbac.features.roles.defaults import ADMIN, CLIENT, CLIENT_PORTAL_AREAS, MANAGER, TEAM_MEMBER
from tenant_rbac.features.roles import service as role_service
from tenant_rbac.features.roles.schemas import RoleUpdate, RoleWithPermissions
from tenant_rbac.features.roles.service import (
    assign_permissions_to_role,
    assign_role_permission,
    count_role_assignments,
    create_role,
    delete_role,
    get_role,
    get_role_with_permissions,
    list_roles,
    remove_role_permission,
    seed_default_roles,
    update_role,
)
from tenant_rbac.features.user_roles.models import UserRole
from tenant_rbac.features.user_roles.service import assign_role_to_user


async def _permission_ids(db, *pairs):
    return [(await get_permission_by_key(db, area, ptype)).id for area, ptype in pairs]


# ============================================================================
# Default roles
# ============================================================================

async def test_default_roles_canonical_grants(db, default_roles, org_a):
    roles = default_roles[org_a]
    assert set(roles) == {ADMIN, MANAGER, TEAM_MEMBER, CLIENT}
    assert all(role.is_default for role in roles.values())

    admin_keys = {p.key for p in roles[ADMIN].permissions}
    assert admin_keys == {seed.key for seed in PERMISSION_SEEDS}

    manager_keys = {p.key for p in roles[MANAGER].permissions}
    assert ("clients", "edit") in manager_keys
    assert not any(ptype == "delete" for _, ptype in manager_keys)
    assert not any(area == "roles" for area, _ in manager_keys)

    team_keys = {p.key for p in roles[TEAM_MEMBER].permissions}
    assert team_keys and all(ptype == "view" for _, ptype in team_keys)
    assert ("roles", "view") not in team_keys

    client_keys = {p.key for p in roles[CLIENT].permissions}
    assert client_keys == {(area, "view") for area in CLIENT_PORTAL_AREAS}


async def test_seed_default_roles_is_idempotent(db, default_roles, org_a):
    again = await seed_default_roles(db, org_a)

    assert {role.id for role in again} == {role.id for role in default_roles[org_a].values()}
    assert len(await list_roles(db, org_a)) == 4


async def test_default_roles_are_per_organization(db, default_roles, org_a, org_b):
    ids_a = {role.id for role in default_roles[org_a].values()}
    ids_b = {role.id for role in default_roles[org_b].values()}
    assert ids_a.isdisjoint(ids_b)


# ============================================================================
# Create / read
# ============================================================================

async def test_create_role(db, org_a):
    role = await create_role(db, org_a, "  Billing Specialist ", description="Handles invoices", actor_id="u1")

    assert role.name == "Billing Specialist"
    assert role.is_default is False
    assert role.permissions == []

    fetched = await get_role(db, role.id, org_a)
    assert fetched.id == role.id

    page = await query(db, org_a, ActivityFilter(entity_type=EntityType.ROLE, type=ActivityType.CREATED))
    assert page.total == 1
    assert page.items[0].actor_id == "u1"
    assert page.items[0].entity_id == role.id


async def test_create_role_duplicate_name(db, org_a, org_b):
    await create_role(db, org_a, "Auditor")

    with pytest.raises(DuplicateRoleNameError) as exc_info:
        await create_role(db, org_a, "Auditor")
    assert isinstance(exc_info.value, ConflictError)
    assert isinstance(exc_info.value, ValidationError)

    # Same name is fine in another organization
    other = await create_role(db, org_b, "Auditor")
    assert other.organization_id == org_b


@pytest.mark.parametrize("name", ["", "   ", "x" * 101])
async def test_create_role_invalid_name(db, org_a, name):
    with pytest.raises(ValidationError):
        await create_role(db, org_a, name)
    assert await list_roles(db, org_a) == []


async def test_get_role_cross_tenant_is_absent(db, org_a, org_b):
    role = await create_role(db, org_a, "Reviewer")

    assert await get_role(db, role.id, org_b) is None
    assert await get_role_with_permissions(db, role.id, org_b) is None
    assert await list_roles(db, org_b) == []


async def test_list_roles_default_first(db, default_roles, org_a):
    await create_role(db, org_a, "Accountant")

    roles = await list_roles(db, org_a)
    assert [role.is_default for role in roles] == [True, True, True, True, False]
    assert roles[-1].name == "Accountant"


async def test_role_response_schema(db, default_roles, org_a):
    admin = default_roles[org_a][ADMIN]
    body = RoleWithPermissions.model_validate(admin)

    assert body.name == ADMIN
    assert len(body.permissions) == len(PERMISSION_SEEDS)


# ============================================================================
# Update
# ============================================================================

async def test_update_role(db, org_a):
    role = await create_role(db, org_a, "Support")

    updated = await update_role(db, role.id, org_a, RoleUpdate(name="Customer Support"), actor_id="u2")
    assert updated.name == "Customer Support"
    assert updated.description is None

    updated = await update_role(db, role.id, org_a, {"description": "Front line"})
    assert updated.name == "Customer Support"
    assert updated.description == "Front line"


async def test_update_role_absent_returns_none(db, org_a, org_b):
    role = await create_role(db, org_a, "Support")

    assert await update_role(db, role.id, org_b, {"name": "Hijacked"}) is None
    assert (await get_role(db, role.id, org_a)).name == "Support"


async def test_update_role_duplicate_name(db, org_a):
    await create_role(db, org_a, "Support")
    other = await create_role(db, org_a, "Sales")

    with pytest.raises(DuplicateRoleNameError):
        await update_role(db, other.id, org_a, {"name": "Support"})


async def test_update_default_role(db, default_roles, org_a):
    admin = default_roles[org_a][ADMIN]

    with pytest.raises(ProtectedRoleError):
        await update_role(db, admin.id, org_a, {"name": "Superuser"})

    updated = await update_role(db, admin.id, org_a, {"description": "Owners and administrators"})
    assert updated.name == ADMIN
    assert updated.description == "Owners and administrators"


async def test_update_role_blank_name(db, org_a):
    role = await create_role(db, org_a, "Support")
    with pytest.raises(ValidationError):
        await update_role(db, role.id, org_a, {"name": "  "})


# ============================================================================
# Delete
# ============================================================================

async def test_delete_role(db, catalog, org_a):
    role = await create_role(db, org_a, "Temp")
    await assign_permissions_to_role(db, role.id, org_a, await _permission_ids(db, ("tasks", "view")))

    assert await delete_role(db, role.id, org_a, actor_id="u1") is True
    assert await get_role(db, role.id, org_a) is None

    page = await query(db, org_a, ActivityFilter(entity_id=role.id, type=ActivityType.DELETED))
    assert page.total == 1


async def test_delete_default_role_is_protected(db, default_roles, org_a):
    client = default_roles[org_a][CLIENT]

    with pytest.raises(ProtectedRoleError):
        await delete_role(db, client.id, org_a)
    assert await get_role(db, client.id, org_a) is not None


async def test_delete_assigned_role_is_blocked(db, org_a):
    role = await create_role(db, org_a, "Contractor")
    await assign_role_to_user(db, "user-1", role.id, org_a)

    with pytest.raises(DependencyExistsError) as exc_info:
        await delete_role(db, role.id, org_a)
    assert exc_info.value.details["assignments"] == 1
    assert await count_role_assignments(db, role.id, org_a) == 1


async def test_delete_role_not_found(db, org_a, org_b):
    role = await create_role(db, org_a, "Contractor")

    with pytest.raises(NotFoundError):
        await delete_role(db, role.id, org_b)
    with pytest.raises(NotFoundError):
        await delete_role(db, "01HZZZZZZZZZZZZZZZZZZZZZZZ", org_a)


# ============================================================================
# Role-permission assignment
# ============================================================================

async def test_replace_role_permissions(db, catalog, org_a):
    role = await create_role(db, org_a, "Bookkeeper")
    first = await _permission_ids(db, ("invoices", "view"), ("invoices", "create"))
    second = await _permission_ids(db, ("bills", "view"), ("invoices", "view"))

    role = await assign_permissions_to_role(db, role.id, org_a, first)
    assert {p.key for p in role.permissions} == {("invoices", "view"), ("invoices", "create")}

    role = await assign_permissions_to_role(db, role.id, org_a, second + second)
    assert {p.key for p in role.permissions} == {("bills", "view"), ("invoices", "view")}

    page = await query(db, org_a, ActivityFilter(entity_type=EntityType.ROLE_PERMISSION))
    assert page.total == 2
    latest = page.items[0].metadata
    assert latest["added"] == sorted(await _permission_ids(db, ("bills", "view")))
    assert latest["removed"] == sorted(await _permission_ids(db, ("invoices", "create")))

    role = await assign_permissions_to_role(db, role.id, org_a, [])
    assert role.permissions == []


async def test_replace_with_unknown_permission_changes_nothing(db, catalog, org_a):
    role = await create_role(db, org_a, "Bookkeeper")
    known = await _permission_ids(db, ("invoices", "view"))
    await assign_permissions_to_role(db, role.id, org_a, known)

    with pytest.raises(ValidationError) as exc_info:
        await assign_permissions_to_role(db, role.id, org_a, known + ["not-a-permission"])
    assert exc_info.value.details["permission_ids"] == ["not-a-permission"]

    role = await get_role_with_permissions(db, role.id, org_a)
    assert [p.id for p in role.permissions] == known


async def test_replace_permissions_cross_tenant(db, catalog, org_a, org_b):
    role = await create_role(db, org_a, "Bookkeeper")
    with pytest.raises(NotFoundError):
        await assign_permissions_to_role(db, role.id, org_b, await _permission_ids(db, ("invoices", "view")))


async def test_assign_role_permission_is_additive(db, catalog, org_a):
    role = await create_role(db, org_a, "Viewer")
    [view_id] = await _permission_ids(db, ("projects", "view"))

    assert await assign_role_permission(db, role.id, view_id) is True
    assert await assign_role_permission(db, role.id, view_id) is False

    role = await get_role_with_permissions(db, role.id, org_a)
    assert [p.key for p in role.permissions] == [("projects", "view")]

    with pytest.raises(NotFoundError):
        await assign_role_permission(db, role.id, "not-a-permission")


async def test_remove_role_permission(db, catalog, org_a):
    role = await create_role(db, org_a, "Viewer")
    ids = await _permission_ids(db, ("projects", "view"), ("tasks", "view"))
    await assign_permissions_to_role(db, role.id, org_a, ids)

    assert await remove_role_permission(db, role.id, org_a, ids[0], actor_id="u1") is True
    assert await remove_role_permission(db, role.id, org_a, ids[0]) is False

    # A no-op removal leaves the caller's loaded objects usable
    assert role.name == "Viewer"
    role = await get_role_with_permissions(db, role.id, org_a)
    assert [p.key for p in role.permissions] == [("tasks", "view")]

    page = await query(db, org_a, ActivityFilter(entity_type=EntityType.ROLE_PERMISSION, type=ActivityType.REMOVED))
    assert page.total == 1


async def test_delete_role_racing_an_assignment(db, session_factory, org_a, monkeypatch):
    role = await create_role(db, org_a, "Contractor")
    role_id = role.id
    count_before_delete = role_service.count_role_assignments

    async def count_then_assign(session, counted_role_id, organization_id):
        count = await count_before_delete(session, counted_role_id, organization_id)
        # Another request grants the role after the dependency check has passed
        async with session_factory() as other:
            await assign_role_to_user(other, "zoe", counted_role_id, organization_id)
        return count

    monkeypatch.setattr(role_service, "count_role_assignments", count_then_assign)

    with pytest.raises(DependencyExistsError):
        await delete_role(db, role_id, org_a)

    async with session_factory() as session:
        assert await get_role(session, role_id, org_a) is not None
        held = await session.execute(select(UserRole.user_id).where(UserRole.role_id == role_id))
        assert list(held.scalars()) == ["zoe"]


async def test_replace_set_is_atomic_for_readers(db, session_factory, catalog, org_a):
    role = await create_role(db, org_a, "Rotating")
    old_ids = await _permission_ids(db, ("invoices", "view"), ("invoices", "create"))
    new_ids = await _permission_ids(db, ("bills", "view"), ("bills", "edit"), ("tasks", "view"))
    await assign_permissions_to_role(db, role.id, org_a, old_ids)

    old_keys = frozenset({("invoices", "view"), ("invoices", "create")})
    new_keys = frozenset({("bills", "view"), ("bills", "edit"), ("tasks", "view")})
    seen = []
    writer_done = asyncio.Event()

    async def writer():
        async with session_factory() as session:
            for i in range(10):
                await assign_permissions_to_role(session, role.id, org_a, new_ids if i % 2 == 0 else old_ids)
                await asyncio.sleep(0)
        writer_done.set()

    async def reader():
        async with session_factory() as session:
            while not writer_done.is_set():
                current = await get_role_with_permissions(session, role.id, org_a)
                seen.append(frozenset(p.key for p in current.permissions))
                await asyncio.sleep(0)

    await asyncio.gather(writer(), reader())

    assert seen
    assert set(seen) <= {old_keys, new_keys}
