"""Contract tests for the end-user API.

These tests verify status codes and response shapes of the user-facing
endpoints, including the error envelope and the maintenance gate.
"""

import uuid
from datetime import datetime, timedelta

import pytest
from httpx import AsyncClient

from duely.services.maintenance import MaintenanceService

SUBSCRIPTION = {
    "service_name": "  Netflix ",
    "amount": 186000,
    "billing_frequency": "monthly",
    "start_date": "2026-01-15T00:00:00",
    "next_billing": "2026-11-15T00:00:00",
}

REGISTRATION = {
    "name": "budi santoso",
    "username": "Budi_S",
    "email": "Budi@Example.com",
    "password": "rahasia123",
    "confirm_password": "rahasia123",
}


@pytest.mark.contract
class TestRootAndHealth:
    """Contract tests for unauthenticated informational endpoints."""

    @pytest.mark.asyncio
    async def test_root(self, client: AsyncClient) -> None:
        response = await client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "Duely"
        assert data["health"]["liveness"] == "/v1/liveness"

    @pytest.mark.asyncio
    async def test_liveness(self, client: AsyncClient) -> None:
        response = await client.get("/v1/liveness")

        assert response.status_code == 200
        assert response.json() == {"status": "alive"}

    @pytest.mark.asyncio
    async def test_health_shape(self, client: AsyncClient) -> None:
        response = await client.get("/v1/health")

        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "duely"
        assert set(data["checks"]) == {"database"}

    @pytest.mark.asyncio
    async def test_cron_info(self, client: AsyncClient) -> None:
        response = await client.get("/api/cron/generate-notifications")

        assert response.status_code == 200
        assert response.json()["method"] == "POST"


@pytest.mark.contract
class TestAuthContract:
    """Contract tests for registration, login and profile endpoints."""

    @pytest.mark.asyncio
    async def test_register_login_and_me(self, client: AsyncClient) -> None:
        response = await client.post("/api/auth/register", json=REGISTRATION)

        assert response.status_code == 201
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["user"]["email"] == "budi@example.com"
        assert data["user"]["username"] == "budi_s"
        assert data["user"]["name"] == "Budi Santoso"
        assert data["user"]["subscription_plan"] == "free"
        assert "password_hash" not in data["user"]

        login = await client.post(
            "/api/auth/login", json={"email": "budi@example.com", "password": "rahasia123"}
        )
        assert login.status_code == 200
        token = login.json()["access_token"]

        me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["user"]["id"] == data["user"]["id"]

    @pytest.mark.asyncio
    async def test_register_duplicate_is_conflict(self, client: AsyncClient) -> None:
        await client.post("/api/auth/register", json=REGISTRATION)

        response = await client.post("/api/auth/register", json=REGISTRATION)

        assert response.status_code == 409
        assert response.json() == {
            "error": {"type": "conflict", "message": "User with this email already exists"}
        }

    @pytest.mark.asyncio
    async def test_register_validation_envelope(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/auth/register", json={**REGISTRATION, "password": "short", "confirm_password": "short"}
        )

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["type"] == "validation_error"
        assert error["message"] == "Password must be at least 6 characters"
        assert isinstance(error["details"], list)

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, client: AsyncClient) -> None:
        await client.post("/api/auth/register", json=REGISTRATION)

        response = await client.post(
            "/api/auth/login", json={"email": "budi@example.com", "password": "wrong123"}
        )

        assert response.status_code == 401
        assert response.json() == {"detail": "Invalid email or password"}

    @pytest.mark.asyncio
    async def test_login_is_rate_limited(self, client: AsyncClient) -> None:
        payload = {"email": "nobody@example.com", "password": "wrong123"}
        statuses = [(await client.post("/api/auth/login", json=payload)).status_code for _ in range(6)]

        assert statuses[:5] == [401] * 5
        assert statuses[5] == 429

    @pytest.mark.asyncio
    async def test_forwarded_header_does_not_reset_limit(
        self, client: AsyncClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("TRUSTED_PROXIES", raising=False)
        payload = {"email": "nobody@example.com", "password": "wrong123"}

        statuses = [
            (
                await client.post(
                    "/api/auth/login", json=payload, headers={"x-forwarded-for": f"10.0.0.{i}"}
                )
            ).status_code
            for i in range(6)
        ]

        assert statuses[5] == 429

    @pytest.mark.asyncio
    async def test_trusted_proxy_forwards_client_address(
        self, client: AsyncClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        # ASGITransport reports the peer as 127.0.0.1
        monkeypatch.setenv("TRUSTED_PROXIES", "127.0.0.1")
        payload = {"email": "nobody@example.com", "password": "wrong123"}

        statuses = [
            (
                await client.post(
                    "/api/auth/login", json=payload, headers={"x-forwarded-for": f"10.0.0.{i}, 127.0.0.1"}
                )
            ).status_code
            for i in range(6)
        ]

        assert statuses == [401] * 6

    @pytest.mark.asyncio
    async def test_me_requires_bearer_token(self, client: AsyncClient) -> None:
        missing = await client.get("/api/auth/me")
        malformed = await client.get("/api/auth/me", headers={"Authorization": "Token abc"})
        invalid = await client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})

        assert missing.status_code == 401
        assert missing.headers["www-authenticate"] == "Bearer"
        assert missing.json() == {"detail": "Missing Authorization header"}
        assert malformed.status_code == 401
        assert invalid.json() == {"detail": "Invalid or expired token"}

    @pytest.mark.asyncio
    async def test_token_for_deleted_user(self, client: AsyncClient, auth_headers) -> None:
        class Ghost:
            id = uuid.uuid4()

        response = await client.get("/api/auth/me", headers=auth_headers(Ghost))

        assert response.status_code == 401


@pytest.mark.contract
class TestSubscriptionContract:
    """Contract tests for subscription CRUD endpoints."""

    @pytest.mark.asyncio
    async def test_crud_flow(self, client: AsyncClient, test_user, auth_headers) -> None:
        headers = auth_headers(test_user)

        created = await client.post("/api/subscriptions", json=SUBSCRIPTION, headers=headers)
        assert created.status_code == 201
        subscription = created.json()["subscription"]
        assert subscription["service_name"] == "Netflix"
        subscription_id = subscription["id"]

        listing = await client.get("/api/subscriptions", headers=headers)
        assert listing.status_code == 200
        assert listing.json()["count"] == 1
        assert listing.json()["subscriptions"][0]["id"] == subscription_id

        updated = await client.put(
            f"/api/subscriptions/{subscription_id}", json={"amount": 199000}, headers=headers
        )
        assert updated.status_code == 200
        assert updated.json()["subscription"]["amount"] == 199000

        renewed = await client.post(f"/api/subscriptions/{subscription_id}/renew", headers=headers)
        assert renewed.status_code == 200
        assert renewed.json()["subscription"]["next_billing"].startswith("2026-12-15")

        deleted = await client.delete(f"/api/subscriptions/{subscription_id}", headers=headers)
        assert deleted.status_code == 200
        assert deleted.json() == {"message": "Subscription deleted successfully"}

        missing = await client.get(f"/api/subscriptions/{subscription_id}", headers=headers)
        assert missing.status_code == 404
        assert missing.json() == {"error": {"type": "not_found", "message": "Subscription not found"}}

    @pytest.mark.asyncio
    async def test_utc_offset_timestamps(self, client: AsyncClient, test_user, auth_headers) -> None:
        headers = auth_headers(test_user)

        created = await client.post(
            "/api/subscriptions",
            json={**SUBSCRIPTION, "start_date": "2026-01-15T00:00:00Z", "next_billing": "2026-11-15T07:00:00+07:00"},
            headers=headers,
        )
        assert created.status_code == 201
        subscription = created.json()["subscription"]
        assert subscription["start_date"] == "2026-01-15T00:00:00"
        assert subscription["next_billing"] == "2026-11-15T00:00:00"

        updated = await client.put(
            f"/api/subscriptions/{subscription['id']}",
            json={"next_billing": "2026-12-15T00:00:00Z"},
            headers=headers,
        )
        assert updated.status_code == 200
        assert updated.json()["subscription"]["next_billing"] == "2026-12-15T00:00:00"

    @pytest.mark.asyncio
    async def test_requires_authentication(self, client: AsyncClient) -> None:
        response = await client.get("/api/subscriptions")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_other_users_subscription_is_forbidden(
        self, client: AsyncClient, test_user, user_factory, auth_headers
    ) -> None:
        other = await user_factory(email="other@example.com", username="other")
        created = await client.post("/api/subscriptions", json=SUBSCRIPTION, headers=auth_headers(test_user))

        response = await client.get(
            f"/api/subscriptions/{created.json()['subscription']['id']}", headers=auth_headers(other)
        )

        assert response.status_code == 403
        assert response.json()["error"]["type"] == "permission_denied"

    @pytest.mark.asyncio
    async def test_free_plan_limit(self, client: AsyncClient, test_user, auth_headers) -> None:
        headers = auth_headers(test_user)
        for name in ("Netflix", "Spotify", "Disney"):
            response = await client.post(
                "/api/subscriptions", json={**SUBSCRIPTION, "service_name": name}, headers=headers
            )
            assert response.status_code == 201

        response = await client.post("/api/subscriptions", json=SUBSCRIPTION, headers=headers)

        assert response.status_code == 403
        assert response.json()["error"]["type"] == "plan_limit"

    @pytest.mark.asyncio
    async def test_invalid_payload_and_query(self, client: AsyncClient, test_user, auth_headers) -> None:
        headers = auth_headers(test_user)

        bad_dates = await client.post(
            "/api/subscriptions",
            json={**SUBSCRIPTION, "next_billing": "2025-12-01T00:00:00"},
            headers=headers,
        )
        bad_status = await client.get("/api/subscriptions?status=deleted", headers=headers)
        bad_id = await client.get("/api/subscriptions/not-a-uuid", headers=headers)

        assert bad_dates.status_code == 422
        assert bad_status.status_code == 422
        assert bad_id.status_code == 422

    @pytest.mark.asyncio
    async def test_totals_shape(self, client: AsyncClient, test_user, auth_headers) -> None:
        headers = auth_headers(test_user)
        await client.post("/api/subscriptions", json=SUBSCRIPTION, headers=headers)

        response = await client.get("/api/subscriptions/totals", headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert data["monthly_total"] == 186000
        assert data["currency"] == "IDR"


@pytest.mark.contract
class TestMaintenanceGate:
    """Contract tests for the maintenance-mode middleware."""

    @pytest.mark.asyncio
    async def test_user_routes_answer_503(
        self, client: AsyncClient, async_db_session, test_user, auth_headers
    ) -> None:
        await MaintenanceService(async_db_session).activate(uuid.uuid4(), "Upgrading database", 30)

        response = await client.get("/api/subscriptions", headers=auth_headers(test_user))

        assert response.status_code == 503
        error = response.json()["error"]
        assert error["type"] == "maintenance"
        assert error["message"] == "Upgrading database"
        assert error["details"]["estimated_minutes"] in (29, 30)

    @pytest.mark.asyncio
    async def test_exempt_paths_stay_available(self, client: AsyncClient, async_db_session) -> None:
        await MaintenanceService(async_db_session).activate(uuid.uuid4(), None, None)

        info = await client.get("/api/maintenance/info")
        admin = await client.get("/api/admin/auth/check")
        liveness = await client.get("/v1/liveness")

        assert info.status_code == 200
        assert info.json()["enabled"] is True
        assert admin.status_code == 401
        assert liveness.status_code == 200

    @pytest.mark.asyncio
    async def test_info_when_off(self, client: AsyncClient) -> None:
        response = await client.get("/api/maintenance/info")

        assert response.json() == {"enabled": False}


@pytest.mark.contract
class TestWebhookContract:
    """Contract tests for payment webhook authentication."""

    @pytest.mark.asyncio
    async def test_stripe_requires_signature(self, client: AsyncClient) -> None:
        response = await client.post("/api/webhooks/stripe", content=b"{}")

        assert response.status_code == 400
        assert response.json() == {"detail": "Missing stripe-signature header"}

    @pytest.mark.asyncio
    async def test_stripe_requires_configured_secret(
        self, client: AsyncClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("STRIPE_WEBHOOK_SECRET", raising=False)

        response = await client.post(
            "/api/webhooks/stripe", content=b"{}", headers={"stripe-signature": "t=1,v1=abc"}
        )

        assert response.status_code == 500
        assert response.json() == {"detail": "Webhook secret not configured"}

    @pytest.mark.asyncio
    async def test_stripe_rejects_bad_signature(
        self, client: AsyncClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", "whsec_test")

        response = await client.post(
            "/api/webhooks/stripe", content=b"{}", headers={"stripe-signature": "t=1,v1=abc"}
        )

        assert response.status_code == 400
        assert response.json() == {"detail": "Invalid signature"}

    @pytest.mark.asyncio
    async def test_xendit_token_checks(self, client: AsyncClient, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("XENDIT_WEBHOOK_TOKEN", raising=False)
        unconfigured = await client.post("/api/webhooks/xendit", json={"status": "PAID"})

        monkeypatch.setenv("XENDIT_WEBHOOK_TOKEN", "callback-token")
        wrong = await client.post(
            "/api/webhooks/xendit", json={"status": "PAID"}, headers={"x-callback-token": "nope"}
        )
        accepted = await client.post(
            "/api/webhooks/xendit",
            json={"status": "PENDING", "external_id": "inv-1"},
            headers={"x-callback-token": "callback-token"},
        )

        assert unconfigured.status_code == 500
        assert wrong.status_code == 401
        assert accepted.status_code == 200
        assert accepted.json() == {"received": True}

    @pytest.mark.asyncio
    async def test_cron_requires_secret_when_configured(
        self, client: AsyncClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("CRON_SECRET", "cron-secret")

        response = await client.post("/api/cron/generate-notifications")

        assert response.status_code == 401
