"""
Pure decision logic, free of storage access.

Permissions are compared by their semantic key (feature_area,
permission_type), never by row identity.
"""
from typing import Iterable, Protocol, TypeVar

from tenant_rbac.features.authorization.schemas import Decision, DecisionReason, DecisionResult
from tenant_rbac.features.permissions.models import PermissionType


class PermissionLike(Protocol):
    feature_area: str
    permission_type: PermissionType | str


P = TypeVar("P", bound=PermissionLike)

_VALID_TYPES = {member.value for member in PermissionType}


def _type_value(permission_type: PermissionType | str | None) -> str:
    if isinstance(permission_type, PermissionType):
        return permission_type.value
    return permission_type or ""


def permission_key(permission: PermissionLike) -> tuple[str, str]:
    return (permission.feature_area, PermissionType(permission.permission_type).value)


def merge_permissions(permission_sets: Iterable[Iterable[P]]) -> list[P]:
    """
    Union several roles' permission sets.

    The first permission seen for a (feature_area, permission_type) pair
    wins; the result is sorted by that pair.
    """
    merged: dict[tuple[str, str], P] = {}
    for permissions in permission_sets:
        for permission in permissions:
            merged.setdefault(permission_key(permission), permission)
    return [merged[key] for key in sorted(merged)]


def deny(feature_area: str, permission_type: PermissionType | str, reason: DecisionReason) -> DecisionResult:
    return DecisionResult(
        decision=Decision.DENY,
        reason=reason,
        feature_area=feature_area or "",
        permission_type=_type_value(permission_type),
    )


def decide(
    effective: Iterable[PermissionLike],
    feature_area: str,
    permission_type: PermissionType | str,
    has_roles: bool = True,
) -> DecisionResult:
    """Allow iff the effective set contains the requested pair."""
    requested_type = _type_value(permission_type)

    if not feature_area or requested_type not in _VALID_TYPES:
        return deny(feature_area, requested_type, DecisionReason.INVALID_REQUEST)
    if not has_roles:
        return deny(feature_area, requested_type, DecisionReason.NO_ROLES)

    wanted = (feature_area, requested_type)
    if any(permission_key(permission) == wanted for permission in effective):
        return DecisionResult(
            decision=Decision.ALLOW,
            reason=DecisionReason.GRANTED,
            feature_area=feature_area,
            permission_type=requested_type,
        )
    return deny(feature_area, requested_type, DecisionReason.MISSING_PERMISSION)
