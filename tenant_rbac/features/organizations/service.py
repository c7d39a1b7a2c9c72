"""
Tenant bootstrap: what the RBAC core needs to exist when a new organization
is created by the host application.
"""
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from tenant_rbac.features.roles.defaults import ADMIN
from tenant_rbac.features.roles.models import Role
from tenant_rbac.features.roles.service import seed_default_roles
from tenant_rbac.features.user_roles.models import SYSTEM_ACTOR
from tenant_rbac.features.user_roles.service import assign_role_to_user, get_user_assignments
from tenant_rbac.utils import get_logger


log = get_logger(__name__)


async def bootstrap_organization(
    db: AsyncSession,
    organization_id: str,
    owner_user_id: Optional[str] = None,
) -> list[Role]:
    """
    Seed the default roles of an organization and make its owner an Admin.

    Safe to call again: existing default roles and an existing owner grant
    are left as they are.
    """
    roles = await seed_default_roles(db, organization_id)

    if owner_user_id:
        admin = next(role for role in roles if role.name == ADMIN)
        held = {assignment.role_id for assignment in await get_user_assignments(db, owner_user_id, organization_id)}
        if admin.id not in held:
            await assign_role_to_user(db, owner_user_id, admin.id, organization_id, assigned_by_id=SYSTEM_ACTOR)
            log.info(f"Owner {owner_user_id} of org {organization_id} granted '{ADMIN}'")

    return roles
