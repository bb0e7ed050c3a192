"""Admin points endpoints."""

import pytest


class TestAwardPoints:
    @pytest.mark.asyncio
    async def test_award(self, client, auth_headers, make_user):
        admin = await make_user(is_admin=True)
        user = await make_user()
        resp = await client.post(
            "/api/v1/admin/gamification/points/award",
            json={"userId": user.id, "amount": 500},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["credited"] == 500
        assert data["available"] == 550

    @pytest.mark.asyncio
    async def test_bonus_cap(self, client, auth_headers, make_user):
        admin = await make_user(is_admin=True)
        resp = await client.post(
            "/api/v1/admin/gamification/points/award",
            json={"userId": admin.id, "amount": 60, "source": "STREAK_BONUS"},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_requires_admin(self, client, auth_headers, make_user):
        user = await make_user()
        resp = await client.post(
            "/api/v1/admin/gamification/points/award",
            json={"userId": user.id, "amount": 5},
            headers=auth_headers(user),
        )
        assert resp.status_code == 403


class TestSetPoints:
    @pytest.mark.asyncio
    async def test_set_exact(self, client, auth_headers, make_user):
        admin = await make_user(is_admin=True)
        user = await make_user()
        headers = auth_headers(admin)
        await client.post(
            "/api/v1/users/me/points/spend",
            json={"spendType": "BULK_APPLICATION"},
            headers=auth_headers(user),
        )

        resp = await client.post(
            "/api/v1/admin/gamification/points/set",
            json={"userId": user.id, "target": 100},
            headers=headers,
        )

        assert resp.status_code == 200
        assert resp.json()["delta"] == 60
        assert resp.json()["available"] == 100

    @pytest.mark.asyncio
    async def test_negative_target(self, client, auth_headers, make_user):
        admin = await make_user(is_admin=True)
        resp = await client.post(
            "/api/v1/admin/gamification/points/set",
            json={"userId": admin.id, "target": -5},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_user(self, client, auth_headers, make_user):
        admin = await make_user(is_admin=True)
        resp = await client.post(
            "/api/v1/admin/gamification/points/set",
            json={"userId": 9999, "target": 5},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 404
