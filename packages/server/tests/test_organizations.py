"""
Integration tests for Organization endpoints and lifecycle.

Tests cover:
- Create with owner membership, list with role
- Deactivation (admin only) and its effect on connection requests
- Provider directory with the verified filter
- Settings blob validation
- Self-service creation limits (kind per account role, server-owned verification marker)
"""

from __future__ import annotations

import pytest

from cartcare_shared.schemas.common import OrgKind
from cartcare_shared.schemas.organizations import (
    ORG_TRANSITIONS,
    OrgCreateRequest,
    OrgSettings,
    OrgStatus,
    VerificationStatus,
)


# ---------------------------------------------------------------------------
# Schema validation tests (no DB needed)
# ---------------------------------------------------------------------------

class TestOrgSchemas:

    def test_settings_defaults(self):
        s = OrgSettings()
        assert s.verification_status == VerificationStatus.UNVERIFIED

    def test_settings_keep_unknown_keys(self):
        s = OrgSettings.model_validate({"verification_status": "verified", "hours": "9-5"})
        assert s.model_dump(mode="json")["hours"] == "9-5"

    def test_settings_reject_bad_marker(self):
        with pytest.raises(ValueError):
            OrgSettings(verification_status="maybe")

    def test_create_requires_kind(self):
        with pytest.raises(ValueError):
            OrgCreateRequest(name="Corner Shop")

    def test_deactivated_is_terminal(self):
        assert ORG_TRANSITIONS[OrgStatus.DEACTIVATED] == []
        assert OrgStatus.DEACTIVATED in ORG_TRANSITIONS[OrgStatus.ACTIVE]


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------

class TestOrgLifecycle:

    async def test_create_makes_caller_admin(self, client, seed, headers_for):
        user = await seed.user("maintenance")
        headers = headers_for(user)
        resp = await client.post(
            "/api/v1/orgs", json={"name": "Cold Chain Co", "kind": "provider"}, headers=headers
        )
        assert resp.status_code == 201
        org = resp.json()
        assert org["kind"] == "provider"
        assert org["status"] == "active"
        assert org["settings"]["verification_status"] == "unverified"

        listed = (await client.get("/api/v1/orgs", headers=headers)).json()["data"]
        assert [(o["id"], o["role"]) for o in listed] == [(org["id"], "provider_admin")]

    async def test_get_requires_membership(self, client, pair, headers_for):
        resp = await client.get(f"/api/v1/orgs/{pair.store.id}", headers=headers_for(pair.store_admin))
        assert resp.status_code == 200
        assert resp.json()["name"] == "S1 Market"

        resp = await client.get(
            f"/api/v1/orgs/{pair.store.id}", headers=headers_for(pair.provider_admin)
        )
        assert resp.status_code == 403

    async def test_deactivate_admin_only(self, client, seed, pair, headers_for):
        staff = await seed.user("store")
        await seed.member(staff, pair.store, "store_staff")
        resp = await client.post(
            f"/api/v1/orgs/{pair.store.id}/deactivate", headers=headers_for(staff)
        )
        assert resp.status_code == 403

        resp = await client.post(
            f"/api/v1/orgs/{pair.store.id}/deactivate", headers=headers_for(pair.store_admin)
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "deactivated"

    async def test_deactivated_provider_cannot_be_requested(self, client, pair, headers_for):
        resp = await client.post(
            f"/api/v1/orgs/{pair.provider.id}/deactivate", headers=headers_for(pair.provider_admin)
        )
        assert resp.status_code == 200

        resp = await client.post(
            "/api/v1/connections",
            json={"store_org_id": str(pair.store.id), "provider_org_id": str(pair.provider.id)},
            headers=headers_for(pair.store_admin),
        )
        assert resp.status_code == 404


class TestProviderDirectory:

    async def test_lists_active_providers_by_name(self, client, seed, pair, headers_for):
        await seed.org(OrgKind.PROVIDER, name="A1 Service")
        await seed.org(OrgKind.PROVIDER, name="Z9 Closed", status="deactivated")

        resp = await client.get("/api/v1/providers", headers=headers_for(pair.store_admin))
        assert resp.status_code == 200
        names = [p["name"] for p in resp.json()["data"]]
        assert names == ["A1 Service", "P1 Refrigeration"]

    async def test_verified_only(self, client, seed, pair, headers_for):
        await seed.org(OrgKind.PROVIDER, name="A1 Service")
        resp = await client.get(
            "/api/v1/providers", params={"verified_only": "true"}, headers=headers_for(pair.store_admin)
        )
        data = resp.json()["data"]
        assert [(p["name"], p["verification_status"]) for p in data] == [
            ("P1 Refrigeration", "verified")
        ]


class TestSelfServiceCreation:

    async def test_corporation_cannot_be_self_created(self, client, seed, headers_for):
        user = await seed.user("store")
        headers = headers_for(user)
        resp = await client.post(
            "/api/v1/orgs", json={"name": "Shadow Ops", "kind": "corporation"}, headers=headers
        )
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "FORBIDDEN"

        assert (await client.get("/api/v1/orgs", headers=headers)).json() == {"data": []}
        dest = (await client.get("/api/v1/me/destination", headers=headers)).json()
        assert dest["kind"] == "onboarding"
        assert dest["portal"] == "store"

    @pytest.mark.parametrize(
        "account_role, kind",
        [("store", "provider"), ("maintenance", "store")],
    )
    async def test_kind_must_match_account_role(self, client, seed, headers_for, account_role, kind):
        user = await seed.user(account_role)
        resp = await client.post(
            "/api/v1/orgs", json={"name": "Mismatch", "kind": kind}, headers=headers_for(user)
        )
        assert resp.status_code == 403

    async def test_verification_marker_is_server_owned(self, client, seed, pair, headers_for):
        user = await seed.user("maintenance")
        resp = await client.post(
            "/api/v1/orgs",
            json={
                "name": "Fake Co",
                "kind": "provider",
                "settings": {"verification_status": "verified", "region": "TX"},
            },
            headers=headers_for(user),
        )
        assert resp.status_code == 201
        settings = resp.json()["settings"]
        assert settings["verification_status"] == "unverified"
        assert settings["region"] == "TX"

        resp = await client.get(
            "/api/v1/providers", params={"verified_only": "true"}, headers=headers_for(pair.store_admin)
        )
        assert [p["name"] for p in resp.json()["data"]] == ["P1 Refrigeration"]
