"""
Seed script tests.
"""

from sqlmodel import select

from anuncios.core.auth import verify_password
from anuncios.models.addon import Addon
from anuncios.scripts.seed import ADDONS, PLANS, ensure_admin, seed_addons, seed_plans


class TestSeed:
    async def test_seeding_is_idempotent(self, session):
        assert await seed_addons(session) == len(ADDONS)
        assert await seed_plans(session) == len(PLANS)
        assert await seed_addons(session) == 0
        assert await seed_plans(session) == 0

        result = await session.execute(select(Addon.slug))
        assert set(result.scalars().all()) == {"flood", "financiamento"}

    async def test_existing_catalog_entry_is_kept(self, session, catalog):
        assert await seed_addons(session) == 0

    async def test_ensure_admin_creates_then_promotes(self, session, make_user):
        admin = await ensure_admin(session, "root@example.com", "s3cret-pass")
        assert admin.is_admin
        assert verify_password("s3cret-pass", admin.password_hash)

        user = await make_user("promover@example.com")
        promoted = await ensure_admin(session, "promover@example.com", "ignored")
        assert promoted.id == user.id
        assert promoted.is_admin
