"""
Tests for organizations and membership.

Covers:
- Creating orgs (creator becomes owner, slug uniqueness)
- Role checks for updates and deletion
- Member management: owner-only promotion, last-owner protection, leaving
- The organizations feature flag
"""

from __future__ import annotations

import uuid

import pytest

from anuncios.core.errors import ConflictError, ForbiddenError, NotFoundError
from anuncios.models.collection import Collection
from anuncios.services import organizations as org_service
from anuncios_shared.schemas.common import OrgRole
from anuncios_shared.schemas.organizations import MemberAddRequest, OrgCreateRequest


# ---------------------------------------------------------------------------
# Unit Tests: service
# ---------------------------------------------------------------------------

class TestRequireOrgRole:
    async def test_missing_org(self, session, make_user):
        user = await make_user()
        with pytest.raises(NotFoundError):
            await org_service.require_org_role(uuid.uuid4(), user.id, session)

    async def test_non_member(self, session, make_user, make_org):
        owner = await make_user()
        org = await make_org(owner)
        stranger = await make_user()
        with pytest.raises(ForbiddenError):
            await org_service.require_org_role(org.id, stranger.id, session)

    async def test_role_filter(self, session, make_user, make_org):
        owner = await make_user()
        member = await make_user()
        org = await make_org(owner, members=[(member, "member")])

        _, membership = await org_service.require_org_role(org.id, owner.id, session, {OrgRole.OWNER})
        assert membership.role == "owner"
        with pytest.raises(ForbiddenError):
            await org_service.require_org_role(org.id, member.id, session, {OrgRole.OWNER, OrgRole.ADMIN})


class TestMembership:
    async def test_create_makes_creator_owner(self, session, make_user):
        user = await make_user()
        org = await org_service.create_org(OrgCreateRequest(name="Imobiliária Sul", slug="imob-sul"), user.id, session)

        membership = await org_service.get_membership(org.id, user.id, session)
        assert membership.role == "owner"
        assert org.owner_id == user.id

    async def test_duplicate_slug(self, session, make_user):
        user = await make_user()
        await org_service.create_org(OrgCreateRequest(name="A", slug="mesmo"), user.id, session)
        with pytest.raises(ConflictError):
            await org_service.create_org(OrgCreateRequest(name="B", slug="mesmo"), user.id, session)

    async def test_admin_cannot_add_owner(self, session, make_user, make_org):
        owner = await make_user()
        admin = await make_user()
        newcomer = await make_user("novo@example.com")
        org = await make_org(owner, members=[(admin, "admin")])

        with pytest.raises(ForbiddenError):
            await org_service.add_member(
                org.id, admin.id, MemberAddRequest(email=newcomer.email, role=OrgRole.OWNER), session
            )

    async def test_add_by_email(self, session, make_user, make_org):
        owner = await make_user()
        newcomer = await make_user("corretor@example.com")
        org = await make_org(owner)

        item = await org_service.add_member(org.id, owner.id, MemberAddRequest(email="corretor@example.com"), session)
        assert item["user_id"] == newcomer.id
        assert item["role"] == "member"

        with pytest.raises(ConflictError):
            await org_service.add_member(org.id, owner.id, MemberAddRequest(email="corretor@example.com"), session)

    async def test_add_unknown_email(self, session, make_user, make_org):
        owner = await make_user()
        org = await make_org(owner)
        with pytest.raises(NotFoundError):
            await org_service.add_member(org.id, owner.id, MemberAddRequest(email="ninguem@example.com"), session)

    async def test_last_owner_cannot_be_demoted(self, session, make_user, make_org):
        owner = await make_user()
        org = await make_org(owner)
        with pytest.raises(ConflictError):
            await org_service.update_member_role(org.id, owner.id, owner.id, OrgRole.ADMIN, session)

    async def test_owner_can_be_demoted_when_another_exists(self, session, make_user, make_org):
        owner = await make_user()
        co_owner = await make_user()
        org = await make_org(owner, members=[(co_owner, "owner")])

        member = await org_service.update_member_role(org.id, co_owner.id, owner.id, OrgRole.ADMIN, session)
        assert member.role == "admin"

    async def test_admin_cannot_change_owner(self, session, make_user, make_org):
        owner = await make_user()
        admin = await make_user()
        org = await make_org(owner, members=[(admin, "admin")])
        with pytest.raises(ForbiddenError):
            await org_service.update_member_role(org.id, admin.id, owner.id, OrgRole.MEMBER, session)

    async def test_member_can_leave(self, session, make_user, make_org):
        owner = await make_user()
        member = await make_user()
        org = await make_org(owner, members=[(member, "member")])

        await org_service.remove_member(org.id, member.id, member.id, session)
        assert await org_service.get_membership(org.id, member.id, session) is None

    async def test_member_cannot_remove_others(self, session, make_user, make_org):
        owner = await make_user()
        member = await make_user()
        other = await make_user()
        org = await make_org(owner, members=[(member, "member"), (other, "member")])
        with pytest.raises(ForbiddenError):
            await org_service.remove_member(org.id, member.id, other.id, session)

    async def test_last_owner_cannot_leave(self, session, make_user, make_org):
        owner = await make_user()
        org = await make_org(owner)
        with pytest.raises(ConflictError):
            await org_service.remove_member(org.id, owner.id, owner.id, session)

    async def test_admin_cannot_remove_owner(self, session, make_user, make_org):
        owner = await make_user()
        admin = await make_user()
        org = await make_org(owner, members=[(admin, "admin")])
        with pytest.raises(ForbiddenError):
            await org_service.remove_member(org.id, admin.id, owner.id, session)

    async def test_removed_member_loses_collection_access(self, session, make_user, make_org):
        from anuncios.services.collections import AccessOutcome, resolve_access

        owner = await make_user()
        member = await make_user()
        org = await make_org(owner, members=[(member, "member")])
        collection = Collection(name="Equipe", org_id=org.id)
        session.add(collection)
        await session.flush()

        await org_service.remove_member(org.id, owner.id, member.id, session)
        access = await resolve_access(collection.id, member.id, session)
        assert access.outcome is AccessOutcome.DENIED


class TestDeleteOrg:
    async def test_only_owner_deletes(self, session, make_user, make_org):
        owner = await make_user()
        admin = await make_user()
        org = await make_org(owner, members=[(admin, "admin")])
        with pytest.raises(ForbiddenError):
            await org_service.delete_org(org.id, admin.id, session)

    async def test_delete_removes_collections(self, session, make_user, make_org):
        owner = await make_user()
        org = await make_org(owner)
        collection = Collection(name="Equipe", org_id=org.id)
        session.add(collection)
        await session.flush()
        collection_id = collection.id
        session.expunge(collection)

        await org_service.delete_org(org.id, owner.id, session)
        assert await session.get(Collection, collection_id) is None
        assert await org_service.list_user_orgs(owner.id, session) == []


# ---------------------------------------------------------------------------
# Integration Tests: endpoints
# ---------------------------------------------------------------------------

class TestOrganizationEndpoints:
    async def test_create_and_list(self, client, sign_in, make_user):
        sign_in(await make_user())

        resp = await client.post("/api/v1/organizations", json={"name": "Imobiliária", "slug": "imobiliaria"})
        assert resp.status_code == 201
        assert resp.json()["user_role"] == "owner"

        resp = await client.get("/api/v1/organizations")
        assert [o["slug"] for o in resp.json()["data"]] == ["imobiliaria"]

    async def test_invalid_slug(self, client, sign_in, make_user):
        sign_in(await make_user())
        resp = await client.post("/api/v1/organizations", json={"name": "X", "slug": "Com Espaço"})
        assert resp.status_code == 422

    async def test_member_cannot_rename(self, client, sign_in, make_user, make_org):
        owner = await make_user()
        member = await make_user()
        org = await make_org(owner, members=[(member, "member")])
        sign_in(member)

        resp = await client.patch(f"/api/v1/organizations/{org.id}", json={"name": "Outra"})
        assert resp.status_code == 403

    async def test_members_list_and_add(self, client, sign_in, make_user, make_org):
        owner = await make_user()
        await make_user("novo@example.com")
        org = await make_org(owner)
        sign_in(owner)

        resp = await client.post(
            f"/api/v1/organizations/{org.id}/members",
            json={"email": "novo@example.com", "role": "admin"},
        )
        assert resp.status_code == 201
        assert resp.json()["role"] == "admin"

        resp = await client.get(f"/api/v1/organizations/{org.id}/members")
        assert {m["role"] for m in resp.json()["data"]} == {"owner", "admin"}

    async def test_leave(self, client, sign_in, make_user, make_org):
        owner = await make_user()
        member = await make_user()
        org = await make_org(owner, members=[(member, "member")])
        sign_in(member)

        resp = await client.delete(f"/api/v1/organizations/{org.id}/members/{member.id}")
        assert resp.json() == {"success": True}
        assert (await client.get(f"/api/v1/organizations/{org.id}")).status_code == 403


class TestOrganizationsDisabled:
    @pytest.fixture
    def flag_overrides(self):
        return {"organizations": False}

    async def test_create_hidden(self, client, sign_in, make_user):
        sign_in(await make_user())
        resp = await client.post("/api/v1/organizations", json={"name": "X", "slug": "xx"})
        assert resp.status_code == 404
