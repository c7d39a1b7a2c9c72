"""
Permission catalog: versioned seed definition, idempotent seeding and reads.

The catalog is never loaded once and cached. Every read goes to storage, and
new feature areas are introduced by extending PERMISSION_SEEDS, bumping
CATALOG_VERSION and re-running `seed_missing`.
"""
import time
from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tenant_rbac.features.permissions.models import Permission, PermissionType
from tenant_rbac.features.permissions.schemas import PermissionSeed
from tenant_rbac.utils import get_logger


log = get_logger(__name__)

CATALOG_VERSION = 2

ALL_TYPES = tuple(PermissionType)

# (feature_area, plural label, data label, supported permission types)
FEATURE_AREAS: tuple[tuple[str, str, str, tuple[PermissionType, ...]], ...] = (
    # CRM
    ("clients", "client companies", "client", ALL_TYPES),
    ("contacts", "contacts", "contact", ALL_TYPES),
    ("deals", "deals", "deal", ALL_TYPES),
    # Proposals & contracts
    ("proposals", "proposals", "proposal", ALL_TYPES),
    ("contracts", "contracts", "contract", ALL_TYPES),
    # Project management
    ("projects", "projects", "project", ALL_TYPES),
    ("tasks", "tasks", "task", ALL_TYPES),
    # Revenue
    ("invoices", "invoices", "invoice", ALL_TYPES),
    ("bills", "bills", "bill", ALL_TYPES),
    # Documents & communication
    ("files", "files", "file", ALL_TYPES),
    ("messages", "messages", "message", ALL_TYPES),
    ("threads", "communication threads", "thread", ALL_TYPES),
    # Analytics is read-only
    ("dashboard", "dashboard analytics and stats", "dashboard", (PermissionType.VIEW,)),
    ("engagements", "client engagements", "engagement", ALL_TYPES),
    ("vendors", "vendor records", "vendor", ALL_TYPES),
    # Access control administration
    ("roles", "roles", "role", ALL_TYPES),
)


def _describe(permission_type: PermissionType, label: str, data_label: str) -> str:
    if permission_type is PermissionType.EXPORT:
        return f"Export {data_label} data"
    return f"{permission_type.value.capitalize()} {label}"


PERMISSION_SEEDS: tuple[PermissionSeed, ...] = tuple(
    PermissionSeed(
        feature_area=area,
        permission_type=permission_type,
        description=_describe(permission_type, label, data_label),
    )
    for area, label, data_label, types in FEATURE_AREAS
    for permission_type in types
)


def list_seeds() -> list[PermissionSeed]:
    """Return the full intended catalog, in definition order."""
    return list(PERMISSION_SEEDS)


async def _existing_keys(db: AsyncSession) -> set[tuple[str, str]]:
    result = await db.execute(select(Permission.feature_area, Permission.permission_type))
    return {(area, PermissionType(ptype).value) for area, ptype in result.all()}


async def missing_seeds(db: AsyncSession) -> list[PermissionSeed]:
    """Seeds whose (feature_area, permission_type) pair is not stored yet."""
    existing = await _existing_keys(db)
    return [seed for seed in PERMISSION_SEEDS if seed.key not in existing]


async def seed_missing(db: AsyncSession) -> int:
    """
    Insert the catalog permissions that don't exist yet.

    Idempotent: pairs already present (including custom permissions outside
    the seed list) are left untouched, so a second run inserts nothing.

    Returns:
        Number of permissions inserted
    """
    started = time.monotonic()
    missing = await missing_seeds(db)

    for seed in missing:
        db.add(Permission(
            feature_area=seed.feature_area,
            permission_type=seed.permission_type,
            description=seed.description,
        ))
        log.debug("Seeding permission %s:%s", seed.feature_area, seed.permission_type.value)

    if missing:
        await db.commit()

    log.info(
        "Permission seeding completed: seeded=%d total=%d version=%d duration_ms=%d",
        len(missing), len(PERMISSION_SEEDS), CATALOG_VERSION, (time.monotonic() - started) * 1000,
    )
    return len(missing)


async def validate_complete(db: AsyncSession) -> bool:
    """True iff every seed pair exists in storage."""
    missing = await missing_seeds(db)
    if missing:
        log.warning(
            "Missing permissions detected: %s",
            [f"{seed.feature_area}:{seed.permission_type.value}" for seed in missing],
        )
        return False

    log.debug("All %d permission seeds validated", len(PERMISSION_SEEDS))
    return True


async def get_permissions(
    db: AsyncSession,
    feature_area: Optional[str] = None,
    permission_type: Optional[PermissionType] = None,
) -> list[Permission]:
    """The global catalog (not organization-scoped), optionally filtered."""
    stmt = select(Permission)

    if feature_area:
        stmt = stmt.where(Permission.feature_area == feature_area)
    if permission_type:
        stmt = stmt.where(Permission.permission_type == PermissionType(permission_type))

    stmt = stmt.order_by(Permission.feature_area, Permission.permission_type)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_permission(db: AsyncSession, permission_id: str) -> Permission | None:
    result = await db.execute(select(Permission).where(Permission.id == permission_id))
    return result.scalars().first()


async def get_permission_by_key(
    db: AsyncSession,
    feature_area: str,
    permission_type: PermissionType | str,
) -> Permission | None:
    result = await db.execute(
        select(Permission).where(
            Permission.feature_area == feature_area,
            Permission.permission_type == PermissionType(permission_type),
        )
    )
    return result.scalars().first()
