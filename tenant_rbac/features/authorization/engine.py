"""
Authorization decision engine.

The effective permission set is recomputed from storage on every query, so
removing a role or a grant takes effect on the next check. Evaluation is
kept apart from its audit side effect: `evaluate` only reads, `authorize`
evaluates and then records denials.
"""
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tenant_rbac.core import config
from tenant_rbac.features.audit import service as audit
from tenant_rbac.features.audit.models import ActivityType, EntityType
from tenant_rbac.features.authorization.decision import decide, deny
from tenant_rbac.features.authorization.schemas import Decision, DecisionReason, DecisionResult
from tenant_rbac.features.permissions.models import Permission, PermissionType
from tenant_rbac.features.roles.models import Role
from tenant_rbac.features.user_roles.service import get_user_roles, permissions_for_roles
from tenant_rbac.utils import get_logger


log = get_logger(__name__)


async def _load_grants(
    db: AsyncSession, user_id: str, organization_id: str
) -> tuple[list[Role], list[Permission]]:
    roles = await get_user_roles(db, user_id, organization_id)
    return roles, await permissions_for_roles(db, roles)


async def get_effective_permissions(db: AsyncSession, user_id: str, organization_id: str) -> list[Permission]:
    """Deduplicated union of the permissions of every role the user holds in the organization."""
    _, effective = await _load_grants(db, user_id, organization_id)
    return effective


async def evaluate(
    db: AsyncSession,
    user_id: str,
    organization_id: str,
    feature_area: str,
    permission_type: PermissionType | str,
    actor_organization_id: Optional[str] = None,
) -> DecisionResult:
    """
    Decide without writing anything.

    Any error while reading the access graph resolves to Deny. In that case
    the session is rolled back, discarding whatever the caller had pending.
    """
    if not user_id or not organization_id:
        return deny(feature_area, permission_type, DecisionReason.INVALID_REQUEST)

    if actor_organization_id is not None and actor_organization_id != organization_id:
        return deny(feature_area, permission_type, DecisionReason.ORGANIZATION_MISMATCH)

    try:
        roles, effective = await _load_grants(db, user_id, organization_id)
    except SQLAlchemyError:
        log.error(
            f"Permission evaluation failed for user {user_id} in org {organization_id}; denying",
            exc_info=True,
        )
        await db.rollback()
        return deny(feature_area, permission_type, DecisionReason.EVALUATION_ERROR)

    return decide(effective, feature_area, permission_type, has_roles=bool(roles))


async def authorize(
    db: AsyncSession,
    user_id: str,
    organization_id: str,
    feature_area: str,
    permission_type: PermissionType | str,
    actor_organization_id: Optional[str] = None,
) -> Decision:
    """
    May `user_id` perform `permission_type` on `feature_area` in `organization_id`?

    Every Deny is written to the organization's audit trail before it is
    returned. Allow decisions are audited only when AUDIT_ALLOWED_DECISIONS
    is enabled.

    The audit event is committed on `db` itself, so any work the caller has
    pending in that session is committed with it (or rolled back with it if
    evaluation or the audit write fails). Run checks on a session with no
    unrelated pending changes, as `require_permission` does.

    Raises:
        AuditWriteError: the mandated audit event could not be written
    """
    result = await evaluate(
        db, user_id, organization_id, feature_area, permission_type, actor_organization_id
    )

    if result.allowed:
        log.debug(f"User {user_id} granted {result.permission_type} on {feature_area} in org {organization_id}")
        if config.AUDIT_ALLOWED_DECISIONS:
            await _record_decision(db, user_id, organization_id, result, actor_organization_id)
        return result.decision

    log.debug(
        f"User {user_id} denied {result.permission_type} on {feature_area} "
        f"in org {organization_id} ({result.reason.value})"
    )
    if not organization_id:
        # No tenant to scope an audit event to
        log.warning(f"Denied permission check without organization context for user {user_id!r}")
        return result.decision

    await _record_decision(db, user_id, organization_id, result, actor_organization_id)
    return result.decision


async def _record_decision(
    db: AsyncSession,
    user_id: str,
    organization_id: str,
    result: DecisionResult,
    actor_organization_id: Optional[str],
) -> None:
    verb = "granted" if result.allowed else "denied"
    await audit.record(
        db,
        organization_id=organization_id,
        entity_type=EntityType.PERMISSION_CHECK,
        entity_id=user_id or "anonymous",
        actor_id=user_id or "anonymous",
        type=ActivityType.APPROVED if result.allowed else ActivityType.REJECTED,
        description=f"Permission {verb}: {result.permission_type} on {result.feature_area}",
        metadata={
            "user_id": user_id,
            "feature_area": result.feature_area,
            "permission_type": result.permission_type,
            "reason": result.reason.value,
            "actor_organization_id": actor_organization_id,
        },
    )
    await db.commit()
