"""Contract tests for the admin API: cookie sessions, 2FA login, user
management, maintenance switching and CSV exports."""

import pyotp
import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from duely.admin.auth import AdminAuthService
from duely.admin.session import SESSION_COOKIE_NAME
from duely.admin.two_factor import TwoFactorService

ADMIN_EMAIL = "ops@duely.com"
ADMIN_PASSWORD = "admin-pass1"


@pytest.fixture
async def admin(async_db_session: AsyncSession):
    return await AdminAuthService(async_db_session).create_admin(ADMIN_EMAIL, ADMIN_PASSWORD, "Ops")


async def login(client: AsyncClient) -> dict:
    response = await client.post(
        "/api/admin/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD}
    )
    assert response.status_code == 200
    return response.json()


@pytest.mark.contract
class TestAdminSession:
    """Contract tests for admin login and logout."""

    @pytest.mark.asyncio
    async def test_login_sets_session_cookie(self, client: AsyncClient, admin) -> None:
        data = await login(client)

        assert data["success"] is True
        assert data["admin"]["email"] == ADMIN_EMAIL
        assert SESSION_COOKIE_NAME in client.cookies

        check = await client.get("/api/admin/auth/check")
        assert check.status_code == 200
        assert check.json()["admin"]["id"] == str(admin.id)

        logs = await client.get("/api/admin/logs", params={"action": "login"})
        assert logs.json()["count"] == 1
        assert logs.json()["logs"][0]["target"] == ADMIN_EMAIL

    @pytest.mark.asyncio
    async def test_wrong_password(self, client: AsyncClient, admin) -> None:
        response = await client.post(
            "/api/admin/auth/login", json={"email": ADMIN_EMAIL, "password": "nope"}
        )

        assert response.status_code == 401
        assert SESSION_COOKIE_NAME not in client.cookies

    @pytest.mark.asyncio
    async def test_routes_require_session(self, client: AsyncClient) -> None:
        for path in ("/api/admin/users", "/api/admin/system/health", "/api/admin/export/users"):
            response = await client.get(path)
            assert response.status_code == 401, path

    @pytest.mark.asyncio
    async def test_forged_cookie_is_rejected(self, client: AsyncClient) -> None:
        client.cookies.set(SESSION_COOKIE_NAME, "forged.value")

        response = await client.get("/api/admin/auth/check")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_logout_clears_cookie(self, client: AsyncClient, admin) -> None:
        await login(client)

        response = await client.post("/api/admin/auth/logout")

        assert response.status_code == 200
        assert SESSION_COOKIE_NAME not in client.cookies
        assert (await client.get("/api/admin/auth/check")).status_code == 401

    @pytest.mark.asyncio
    async def test_login_with_two_factor(self, client: AsyncClient, async_db_session, admin) -> None:
        service = TwoFactorService(async_db_session)
        secret = (await service.begin_setup(admin.id))["secret"]
        backup_codes = await service.complete_setup(admin.id, secret, pyotp.TOTP(secret).now())

        first_step = await login(client)
        assert first_step["requires_2fa"] is True
        assert SESSION_COOKIE_NAME not in client.cookies

        wrong = await client.post(
            "/api/admin/auth/2fa/verify",
            json={"token": "000000", "pending_token": first_step["pending_token"]},
        )
        assert wrong.status_code == 401

        verified = await client.post(
            "/api/admin/auth/2fa/verify",
            json={
                "token": backup_codes[0],
                "pending_token": first_step["pending_token"],
                "is_backup_code": True,
            },
        )
        assert verified.status_code == 200
        assert SESSION_COOKIE_NAME in client.cookies

        remaining = await client.get("/api/admin/auth/2fa/backup-codes")
        assert remaining.json() == {"remaining": len(backup_codes) - 1}


@pytest.mark.contract
class TestAdminManagement:
    """Contract tests for user management and exports."""

    @pytest.mark.asyncio
    async def test_users_list_and_update(self, client: AsyncClient, admin, test_user) -> None:
        await login(client)

        listing = await client.get("/api/admin/users", params={"plan": "free"})
        assert listing.status_code == 200
        data = listing.json()
        assert data["pagination"]["total"] == 1
        assert data["users"][0]["email"] == test_user.email

        updated = await client.put(f"/api/admin/users/{test_user.id}", json={"subscription_plan": "pro"})
        assert updated.status_code == 200
        assert updated.json()["user"]["subscription_plan"] == "pro"

        detail = await client.get(f"/api/admin/users/{test_user.id}")
        assert detail.status_code == 200
        assert detail.json()["subscription_plan"] == "pro"

    @pytest.mark.asyncio
    async def test_unknown_user_is_404(self, client: AsyncClient, admin) -> None:
        await login(client)

        response = await client.get(f"/api/admin/users/{admin.id}")

        assert response.status_code == 404
        assert response.json()["error"]["type"] == "not_found"

    @pytest.mark.asyncio
    async def test_users_csv_export(self, client: AsyncClient, admin, test_user) -> None:
        await login(client)

        response = await client.get("/api/admin/export/users")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert response.headers["content-disposition"].startswith('attachment; filename="users-export-')
        lines = response.text.splitlines()
        assert lines[0].startswith("ID,Name,Username,Email")
        assert test_user.email in lines[1]

        logs = await client.get("/api/admin/logs", params={"action": "data_exported"})
        assert logs.json()["logs"][0]["target"] == "users"

    @pytest.mark.asyncio
    async def test_unknown_export_kind(self, client: AsyncClient, admin) -> None:
        await login(client)

        response = await client.get("/api/admin/export/payments")

        assert response.status_code == 404
        assert response.json() == {"detail": "Unknown export type"}


@pytest.mark.contract
class TestAdminMaintenance:
    """Contract tests for switching maintenance mode over HTTP."""

    @pytest.mark.asyncio
    async def test_toggle_gates_user_api(
        self, client: AsyncClient, admin, test_user, auth_headers
    ) -> None:
        await login(client)
        headers = auth_headers(test_user)

        enabled = await client.post(
            "/api/admin/maintenance",
            json={"enabled": True, "message": "Back soon", "estimated_minutes": 15},
        )
        assert enabled.status_code == 200
        assert enabled.json()["status"]["enabled"] is True

        blocked = await client.get("/api/dashboard/stats", headers=headers)
        assert blocked.status_code == 503
        assert blocked.json()["error"]["message"] == "Back soon"

        # Admin routes stay reachable during maintenance
        status_response = await client.get("/api/admin/maintenance")
        assert status_response.json()["message"] == "Back soon"

        disabled = await client.post("/api/admin/maintenance", json={"enabled": False, "reason": "done"})
        assert disabled.json()["status"]["enabled"] is False

        assert (await client.get("/api/dashboard/stats", headers=headers)).status_code == 200

        history = await client.get("/api/admin/maintenance/history")
        assert history.json()["history"][0]["reason"] == "done"

    @pytest.mark.asyncio
    async def test_invalid_estimate(self, client: AsyncClient, admin) -> None:
        await login(client)

        response = await client.post("/api/admin/maintenance", json={"enabled": True, "estimated_minutes": 0})

        assert response.status_code == 422
