"""
Seed script to populate the permission catalog (and optionally the default
roles of one organization).

Safe to run repeatedly: only missing catalog permissions are inserted and
existing default roles are left untouched.

Usage:
    python -m scripts.seed_permissions
    python -m scripts.seed_permissions --organization <org_id> [--owner <user_id>]
"""
import argparse
import asyncio
import sys

from tenant_rbac.core.database.engine import AsyncSessionLocal, init_db
from tenant_rbac.features.organizations.service import bootstrap_organization
from tenant_rbac.features.permissions.catalog import CATALOG_VERSION, seed_missing, validate_complete
from tenant_rbac.utils import configure_logging, get_logger


log = get_logger("tenant_rbac.scripts.seed_permissions")


async def run(organization_id: str | None = None, owner_user_id: str | None = None) -> bool:
    """Seed the catalog, then re-validate it. Returns False if it is still incomplete."""
    log.info("Initializing database tables...")
    await init_db()

    async with AsyncSessionLocal() as db:
        try:
            if await validate_complete(db):
                log.info(f"All catalog permissions already exist (version {CATALOG_VERSION})")
            else:
                seeded = await seed_missing(db)
                if not await validate_complete(db):
                    log.error("Permission catalog still incomplete after seeding")
                    return False
                log.info(f"Permission seeding successful: {seeded} inserted")

            if organization_id:
                roles = await bootstrap_organization(db, organization_id, owner_user_id)
                log.info("Default roles for org %s:", organization_id)
                for role in roles:
                    log.info(f"  - {role.name}: {len(role.permissions)} permissions")

        except Exception as e:
            log.error(f"Error seeding permissions: {e}", exc_info=True)
            await db.rollback()
            raise

    return True


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Seed the RBAC permission catalog")
    parser.add_argument("--organization", help="also seed default roles for this organization id")
    parser.add_argument("--owner", help="user id to grant the Admin role in --organization")
    args = parser.parse_args(argv)

    configure_logging()
    ok = asyncio.run(run(args.organization, args.owner))
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
