"""
FastAPI dependencies that let a host application guard its routes.

The host must override `get_current_actor` with its authentication
collaborator:

    app.dependency_overrides[get_current_actor] = resolve_actor_from_session
"""
from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from tenant_rbac.core.database.engine import get_db
from tenant_rbac.features.authorization.engine import authorize
from tenant_rbac.features.authorization.schemas import Actor, Decision


async def get_current_actor() -> Actor:
    """Placeholder for the host's authentication collaborator."""
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="No authenticated actor",
    )


def require_permission(feature_area: str, action: str):
    """
    FastAPI dependency to require a specific permission in the actor's organization.

    Usage:
        @router.post("/clients")
        async def create_client(
            actor: Actor = Depends(require_permission("clients", "create"))
        ):
            # Actor may create clients in actor.organization_id
            pass

    Raises:
        HTTPException: 403 if the actor is denied
    """
    async def permission_dependency(
        db: AsyncSession = Depends(get_db),
        actor: Actor = Depends(get_current_actor),
    ) -> Actor:
        decision = await authorize(db, actor.user_id, actor.organization_id, feature_area, action)
        if decision is not Decision.ALLOW:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied: {action} on {feature_area}",
            )
        return actor

    return permission_dependency
