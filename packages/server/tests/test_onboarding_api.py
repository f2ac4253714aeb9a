"""
Onboarding and destination endpoints over HTTP.
"""

from __future__ import annotations

from cartcare_shared.schemas.common import OrgKind


async def test_status_then_steps(client, seed, headers_for):
    user = await seed.user("store")
    headers = headers_for(user)

    resp = await client.get("/api/v1/onboarding/status", headers=headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["current_step"] == 1
    assert body["role"] == "store"
    assert body["total_steps"] == 4

    resp = await client.post(
        "/api/v1/onboarding/steps",
        json={"step_number": 1, "step_name": "email_verification"},
        headers=headers,
    )
    assert resp.json() == {"current_step": 2}

    resp = await client.post(
        "/api/v1/onboarding/steps",
        json={"step_number": 2, "step_name": "profile_details", "payload": {"phone": "555"}},
        headers=headers,
    )
    assert resp.json() == {"current_step": 3}

    body = (await client.get("/api/v1/onboarding/status", headers=headers)).json()
    assert body["profile_completed"] is True
    assert [s["step_number"] for s in body["steps"]] == [1, 2]


async def test_invalid_step_envelope(client, seed, headers_for):
    user = await seed.user("maintenance")
    resp = await client.post(
        "/api/v1/onboarding/steps",
        json={"step_number": 4, "step_name": "connect_provider"},
        headers=headers_for(user),
    )
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "INVALID_STEP"


async def test_complete_and_skip(client, seed, headers_for):
    user = await seed.user("store")
    resp = await client.post("/api/v1/onboarding/complete", headers=headers_for(user))
    assert resp.json() == {"completed": True}

    other = await seed.user("maintenance")
    resp = await client.post("/api/v1/onboarding/skip", headers=headers_for(other))
    assert resp.json() == {"skipped": True}
    body = (await client.get("/api/v1/onboarding/status", headers=headers_for(other))).json()
    assert body["is_finished"] is True
    assert body["skipped_at"] is not None


async def test_verified_claim_reflected_in_status(client, seed, headers_for):
    user = await seed.user("store")
    body = (
        await client.get("/api/v1/onboarding/status", headers=headers_for(user, email_verified=True))
    ).json()
    assert body["email_verified"] is True
    assert body["current_step"] == 2


async def test_destination_without_memberships(client, seed, headers_for):
    user = await seed.user("maintenance")
    resp = await client.get("/api/v1/me/destination", headers=headers_for(user))
    assert resp.status_code == 200
    assert resp.json() == {
        "kind": "onboarding",
        "portal": "provider",
        "path": "/onboarding/provider",
        "step": 1,
    }


async def test_destination_after_org_created(client, seed, headers_for):
    user = await seed.user("store")
    headers = headers_for(user, email_verified=True)
    assert (await client.get("/api/v1/me/destination", headers=headers)).json()["step"] == 2

    resp = await client.post(
        "/api/v1/orgs", json={"name": "Corner Shop", "kind": "store"}, headers=headers
    )
    assert resp.status_code == 201

    body = (await client.get("/api/v1/me/destination", headers=headers)).json()
    assert body == {
        "kind": "dashboard",
        "portal": "store",
        "path": "/store/dashboard",
        "step": None,
    }


async def test_deactivated_org_membership_routes_to_onboarding(client, seed, headers_for):
    user = await seed.user("maintenance")
    closed = await seed.org(OrgKind.PROVIDER, status="deactivated")
    await seed.member(user, closed, "provider_admin")

    resp = await client.get("/api/v1/me/destination", headers=headers_for(user))
    assert resp.json() == {
        "kind": "onboarding",
        "portal": "provider",
        "path": "/onboarding/provider",
        "step": 1,
    }


async def test_active_membership_still_wins_over_deactivated(client, seed, headers_for):
    user = await seed.user("store")
    closed = await seed.org(OrgKind.CORPORATION, status="deactivated")
    shop = await seed.org(OrgKind.STORE)
    await seed.member(user, closed, "corp_admin")
    await seed.member(user, shop, "store_staff")

    body = (await client.get("/api/v1/me/destination", headers=headers_for(user))).json()
    assert (body["kind"], body["portal"]) == ("dashboard", "store")


async def test_mismatched_step_name_rejected(client, seed, headers_for):
    user = await seed.user("store")
    resp = await client.post(
        "/api/v1/onboarding/steps",
        json={"step_number": 2, "step_name": "connect_provider"},
        headers=headers_for(user),
    )
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "INVALID_STEP"

    body = (await client.get("/api/v1/onboarding/status", headers=headers_for(user))).json()
    assert body["steps"] == []
    assert body["profile_completed"] is False
