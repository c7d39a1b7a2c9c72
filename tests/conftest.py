"""Pytest configuration and fixtures for tenant_rbac tests."""

import pytest
import pytest_asyncio

from tenant_rbac.core.database.engine import build_engine, build_session_factory, init_db
from tenant_rbac.features.organizations.models import Organization
from tenant_rbac.features.permissions.catalog import seed_missing
from tenant_rbac.features.roles.service import seed_default_roles


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Fresh file-backed SQLite database per test, so separate sessions use separate connections."""
    test_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'rbac.db'}")
    await init_db(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def org_a(db):
    org = Organization(name="Acme", slug="acme")
    db.add(org)
    await db.commit()
    return org.id


@pytest_asyncio.fixture
async def org_b(db):
    org = Organization(name="Globex", slug="globex")
    db.add(org)
    await db.commit()
    return org.id


@pytest_asyncio.fixture
async def catalog(db):
    """Seeded global permission catalog."""
    await seed_missing(db)


@pytest_asyncio.fixture
async def default_roles(db, catalog, org_a, org_b):
    """Default roles of both organizations, keyed by org id then role name."""
    roles = {}
    for org_id in (org_a, org_b):
        seeded = await seed_default_roles(db, org_id)
        roles[org_id] = {role.name: role for role in seeded}
    return roles
