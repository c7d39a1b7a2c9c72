"""
Canonical default roles created in every organization.

Each role is granted the catalog permissions its filter accepts. Filters see
the permission's (feature_area, permission_type) pair only.
"""
from tenant_rbac.features.permissions.models import PermissionType


CLIENT_PORTAL_AREAS = frozenset({
    "clients", "contacts", "proposals", "contracts",
    "engagements", "files", "threads", "messages",
})

ADMIN = "Admin"
MANAGER = "Manager"
TEAM_MEMBER = "Team Member"
CLIENT = "Client"


DEFAULT_ROLES: dict[str, dict] = {
    ADMIN: {
        "description": "Full system access",
        "permissions": lambda area, ptype: True,
    },
    MANAGER: {
        "description": "Team management access",
        "permissions": lambda area, ptype: ptype is not PermissionType.DELETE and area != "roles",
    },
    TEAM_MEMBER: {
        "description": "Standard user access",
        "permissions": lambda area, ptype: ptype is PermissionType.VIEW and area != "roles",
    },
    CLIENT: {
        "description": "Client portal access",
        "permissions": lambda area, ptype: ptype is PermissionType.VIEW and area in CLIENT_PORTAL_AREAS,
    },
}
