"""
Tests for add-on entitlements.

Covers:
- Active filter (enabled, expiry, no expiry)
- Catalog enrichment, including grants whose catalog entry is gone
- Personal-then-organization access checks
- Grant upsert on (subject, slug)
- Admin, user and org-manager endpoints
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func
from sqlmodel import select

from anuncios.core.errors import NotFoundError
from anuncios.models.addon import UserAddon
from anuncios.services import addons as addon_service

NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Unit Tests: active filter
# ---------------------------------------------------------------------------

class TestActiveUserAddons:
    async def test_enabled_without_expiry_is_active(self, session, make_user, catalog):
        user = await make_user()
        await addon_service.grant_user_addon(user.id, "flood", session)

        active = await addon_service.active_user_addons(user.id, session, now=NOW)
        assert [a.addon_slug for a in active] == ["flood"]
        assert active[0].addon.name == "Risco de Enchente"
        assert active[0].subject_id == user.id

    async def test_disabled_grant_is_hidden(self, session, make_user, catalog):
        user = await make_user()
        await addon_service.grant_user_addon(user.id, "flood", session, enabled=False)

        assert await addon_service.active_user_addons(user.id, session, now=NOW) == []

    async def test_expired_grant_is_hidden(self, session, make_user, catalog):
        user = await make_user()
        await addon_service.grant_user_addon(user.id, "flood", session, expires_at=NOW - timedelta(seconds=1))

        assert await addon_service.active_user_addons(user.id, session, now=NOW) == []

    async def test_future_expiry_is_active(self, session, make_user, catalog):
        user = await make_user()
        await addon_service.grant_user_addon(user.id, "flood", session, expires_at=NOW + timedelta(days=1))

        active = await addon_service.active_user_addons(user.id, session, now=NOW)
        assert len(active) == 1
        assert active[0].expires_at == NOW + timedelta(days=1)

    async def test_other_users_grants_not_included(self, session, make_user, catalog):
        user = await make_user()
        other = await make_user()
        await addon_service.grant_user_addon(other.id, "flood", session)

        assert await addon_service.active_user_addons(user.id, session, now=NOW) == []

    async def test_missing_catalog_entry_keeps_grant(self, session, make_user, catalog):
        user = await make_user()
        await addon_service.grant_user_addon(user.id, "financiamento", session)
        await session.delete(catalog["financiamento"])
        await session.flush()

        active = await addon_service.active_user_addons(user.id, session, now=NOW)
        assert len(active) == 1
        assert active[0].addon_slug == "financiamento"
        assert active[0].addon is None


class TestActiveOrgAddons:
    async def test_org_filter(self, session, make_user, make_org, catalog):
        owner = await make_user()
        org = await make_org(owner)
        await addon_service.grant_org_addon(org.id, "flood", session)
        await addon_service.grant_org_addon(org.id, "financiamento", session, enabled=False)

        active = await addon_service.active_org_addons(org.id, session, now=NOW)
        assert [a.addon_slug for a in active] == ["flood"]
        assert active[0].subject_id == org.id


class TestHasAddonAccess:
    async def test_personal_grant(self, session, make_user, catalog):
        user = await make_user()
        await addon_service.grant_user_addon(user.id, "flood", session)
        assert await addon_service.has_addon_access(user.id, "flood", session, now=NOW)
        assert not await addon_service.has_addon_access(user.id, "financiamento", session, now=NOW)

    async def test_org_grant_only_counts_with_org_id(self, session, make_user, make_org, catalog):
        owner = await make_user()
        org = await make_org(owner)
        await addon_service.grant_org_addon(org.id, "flood", session)

        assert not await addon_service.has_addon_access(owner.id, "flood", session, now=NOW)
        assert await addon_service.has_addon_access(owner.id, "flood", session, org_id=org.id, now=NOW)

    async def test_expired_org_grant(self, session, make_user, make_org, catalog):
        owner = await make_user()
        org = await make_org(owner)
        await addon_service.grant_org_addon(org.id, "flood", session, expires_at=NOW - timedelta(days=1))

        assert not await addon_service.has_addon_access(owner.id, "flood", session, org_id=org.id, now=NOW)


# ---------------------------------------------------------------------------
# Unit Tests: mutations
# ---------------------------------------------------------------------------

class TestGrantMutations:
    async def test_regrant_updates_existing_row(self, session, make_user, catalog):
        user = await make_user()
        admin = await make_user(is_admin=True)
        first = await addon_service.grant_user_addon(user.id, "flood", session, enabled=False)
        second = await addon_service.grant_user_addon(
            user.id, "flood", session, granted_by=admin.id, expires_at=NOW + timedelta(days=10)
        )

        assert second.id == first.id
        assert second.enabled is True
        assert second.granted_by == admin.id
        assert second.expires_at == NOW + timedelta(days=10)

        count = await session.execute(
            select(func.count()).select_from(UserAddon).where(UserAddon.user_id == user.id)
        )
        assert count.scalar_one() == 1

    async def test_naive_expiry_is_treated_as_utc(self, session, make_user, catalog):
        user = await make_user()
        view = await addon_service.grant_user_addon(user.id, "flood", session, expires_at=datetime(2030, 1, 1))
        assert view.expires_at == datetime(2030, 1, 1, tzinfo=timezone.utc)

    async def test_unknown_slug_rejected(self, session, make_user, catalog):
        user = await make_user()
        with pytest.raises(NotFoundError):
            await addon_service.grant_user_addon(user.id, "teleporte", session)

    async def test_toggle(self, session, make_user, catalog):
        user = await make_user()
        await addon_service.grant_user_addon(user.id, "flood", session)

        view = await addon_service.set_user_addon_enabled(user.id, "flood", False, session)
        assert view.enabled is False
        assert await addon_service.active_user_addons(user.id, session) == []

    async def test_toggle_missing_grant(self, session, make_user, catalog):
        user = await make_user()
        with pytest.raises(NotFoundError):
            await addon_service.set_user_addon_enabled(user.id, "flood", True, session)

    async def test_revoke_deletes(self, session, make_user, catalog):
        user = await make_user()
        await addon_service.grant_user_addon(user.id, "flood", session)
        await addon_service.revoke_user_addon(user.id, "flood", session)

        assert await addon_service.list_user_grants(user.id, session) == []
        with pytest.raises(NotFoundError):
            await addon_service.revoke_user_addon(user.id, "flood", session)

    async def test_admin_view_includes_inactive(self, session, make_user, catalog):
        user = await make_user()
        await addon_service.grant_user_addon(user.id, "flood", session, enabled=False)
        await addon_service.grant_user_addon(user.id, "financiamento", session, expires_at=NOW - timedelta(days=1))

        grants = await addon_service.list_user_grants(user.id, session)
        assert {g.addon_slug for g in grants} == {"flood", "financiamento"}


# ---------------------------------------------------------------------------
# Integration Tests: endpoints
# ---------------------------------------------------------------------------

class TestUserAddonEndpoints:
    async def test_catalog(self, client, sign_in, make_user, catalog):
        sign_in(await make_user())
        resp = await client.get("/api/v1/addons")
        assert resp.status_code == 200
        assert {a["slug"] for a in resp.json()["addons"]} == {"flood", "financiamento"}

    async def test_my_addons_only_active(self, client, session, sign_in, make_user, catalog):
        user = await make_user()
        await addon_service.grant_user_addon(user.id, "flood", session)
        await addon_service.grant_user_addon(user.id, "financiamento", session, enabled=False)
        sign_in(user)

        resp = await client.get("/api/v1/user/addons")
        assert resp.status_code == 200
        addons = resp.json()["addons"]
        assert [a["addon_slug"] for a in addons] == ["flood"]
        assert addons[0]["addon"]["name"] == "Risco de Enchente"

    async def test_user_can_disable_own_grant(self, client, session, sign_in, make_user, catalog):
        user = await make_user()
        await addon_service.grant_user_addon(user.id, "flood", session)
        sign_in(user)

        resp = await client.patch("/api/v1/user/addons/flood", json={"enabled": False})
        assert resp.status_code == 200
        assert resp.json()["enabled"] is False
        assert (await client.get("/api/v1/user/addons")).json()["addons"] == []

    async def test_anonymous_is_401(self, client):
        resp = await client.get("/api/v1/user/addons")
        assert resp.status_code == 401


class TestAdminAddonEndpoints:
    async def test_non_admin_forbidden(self, client, sign_in, make_user, catalog):
        target = await make_user()
        sign_in(await make_user())

        resp = await client.post(f"/api/v1/admin/users/{target.id}/addons", json={"addon_slug": "flood"})
        assert resp.status_code == 403

    async def test_grant_then_regrant(self, client, sign_in, make_user, catalog):
        admin = await make_user(is_admin=True)
        target = await make_user()
        sign_in(admin)

        resp = await client.post(f"/api/v1/admin/users/{target.id}/addons", json={"addon_slug": "flood"})
        assert resp.status_code == 201
        first = resp.json()
        assert first["granted_by"] == str(admin.id)

        resp = await client.post(
            f"/api/v1/admin/users/{target.id}/addons",
            json={"addon_slug": "flood", "enabled": False},
        )
        assert resp.json()["id"] == first["id"]

        resp = await client.get(f"/api/v1/admin/users/{target.id}/addons")
        grants = resp.json()["addons"]
        assert len(grants) == 1
        assert grants[0]["enabled"] is False

    async def test_unknown_user(self, client, sign_in, make_user, catalog):
        sign_in(await make_user(is_admin=True))
        resp = await client.post(f"/api/v1/admin/users/{uuid.uuid4()}/addons", json={"addon_slug": "flood"})
        assert resp.status_code == 404

    async def test_unknown_slug(self, client, sign_in, make_user, catalog):
        target = await make_user()
        sign_in(await make_user(is_admin=True))
        resp = await client.post(f"/api/v1/admin/users/{target.id}/addons", json={"addon_slug": "nope"})
        assert resp.status_code == 404
        assert resp.json()["error"]["message"] == "Addon not found"

    async def test_revoke(self, client, session, sign_in, make_user, catalog):
        target = await make_user()
        await addon_service.grant_user_addon(target.id, "flood", session)
        sign_in(await make_user(is_admin=True))

        resp = await client.delete(f"/api/v1/admin/users/{target.id}/addons/flood")
        assert resp.json() == {"success": True}
        assert await addon_service.list_user_grants(target.id, session) == []

    async def test_org_grant(self, client, sign_in, make_user, make_org, catalog):
        owner = await make_user()
        org = await make_org(owner)
        sign_in(await make_user(is_admin=True))

        resp = await client.post(
            f"/api/v1/admin/organizations/{org.id}/addons",
            json={"addon_slug": "financiamento"},
        )
        assert resp.status_code == 201
        assert resp.json()["subject_id"] == str(org.id)


class TestOrgAddonEndpoints:
    async def test_member_sees_active_org_addons(self, client, session, sign_in, make_user, make_org, catalog):
        owner = await make_user()
        member = await make_user()
        org = await make_org(owner, members=[(member, "member")])
        await addon_service.grant_org_addon(org.id, "flood", session)
        sign_in(member)

        resp = await client.get(f"/api/v1/organizations/{org.id}/addons")
        assert resp.status_code == 200
        assert [a["addon_slug"] for a in resp.json()["addons"]] == ["flood"]

    async def test_member_cannot_toggle(self, client, session, sign_in, make_user, make_org, catalog):
        owner = await make_user()
        member = await make_user()
        org = await make_org(owner, members=[(member, "member")])
        await addon_service.grant_org_addon(org.id, "flood", session)
        sign_in(member)

        resp = await client.patch(f"/api/v1/organizations/{org.id}/addons/flood", json={"enabled": False})
        assert resp.status_code == 403

    async def test_admin_can_toggle_and_revoke(self, client, session, sign_in, make_user, make_org, catalog):
        owner = await make_user()
        org_admin = await make_user()
        org = await make_org(owner, members=[(org_admin, "admin")])
        await addon_service.grant_org_addon(org.id, "flood", session)
        sign_in(org_admin)

        resp = await client.patch(f"/api/v1/organizations/{org.id}/addons/flood", json={"enabled": False})
        assert resp.status_code == 200
        assert resp.json()["enabled"] is False

        resp = await client.delete(f"/api/v1/organizations/{org.id}/addons/flood")
        assert resp.status_code == 200
        assert await addon_service.list_org_grants(org.id, session) == []

    async def test_non_member_forbidden(self, client, sign_in, make_user, make_org, catalog):
        owner = await make_user()
        org = await make_org(owner)
        sign_in(await make_user())

        resp = await client.get(f"/api/v1/organizations/{org.id}/addons")
        assert resp.status_code == 403
