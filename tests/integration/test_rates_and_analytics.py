"""Integration tests for exchange rates and per-user spending analytics."""

from datetime import datetime, timedelta

import httpx
import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from duely.models.payment import ExchangeRateDB
from duely.models.subscription import CategoryCreate, SubscriptionCreate
from duely.services.analytics import ANALYTICS_LOCKED_MESSAGE, AnalyticsService
from duely.services.categories import CategoryService
from duely.services.dates import start_of_day
from duely.services.errors import ExternalServiceError, PlanLimitError
from duely.services.exchange_rates import ExchangeRateService
from duely.services.subscriptions import SubscriptionService

NOW = datetime(2026, 6, 15, 10, 0)


def rate_api(payload: dict, status_code: int = 200) -> httpx.AsyncClient:
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status_code, json=payload)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client.requests = requests
    return client


async def store_rate(session: AsyncSession, base: str, target: str, rate: float, when: datetime) -> None:
    session.add(ExchangeRateDB(base_currency=base, target_currency=target, rate=rate, date=when))
    await session.commit()


@pytest.mark.integration
class TestRateLookup:
    """Tests for reading stored exchange rates."""

    @pytest.mark.asyncio
    async def test_same_currency(self, async_db_session: AsyncSession) -> None:
        assert await ExchangeRateService(async_db_session).get_rate("idr", "IDR") == 1.0

    @pytest.mark.asyncio
    async def test_todays_direct_rate(self, async_db_session: AsyncSession) -> None:
        await store_rate(async_db_session, "USD", "IDR", 16000, datetime.utcnow())

        assert await ExchangeRateService(async_db_session).get_rate("usd", "idr") == 16000

    @pytest.mark.asyncio
    async def test_todays_reverse_rate_is_inverted(self, async_db_session: AsyncSession) -> None:
        await store_rate(async_db_session, "EUR", "USD", 1.25, datetime.utcnow())

        assert await ExchangeRateService(async_db_session).get_rate("USD", "EUR") == pytest.approx(0.8)

    @pytest.mark.asyncio
    async def test_falls_back_to_latest_stored_rate(self, async_db_session: AsyncSession) -> None:
        today = start_of_day(datetime.utcnow())
        await store_rate(async_db_session, "USD", "IDR", 15500, today - timedelta(days=10))
        await store_rate(async_db_session, "USD", "IDR", 15800, today - timedelta(days=2))
        service = ExchangeRateService(async_db_session)

        assert await service.get_rate("USD", "IDR") == 15800
        assert await service.get_rate("IDR", "USD") is None

    @pytest.mark.asyncio
    async def test_convert_without_rate_keeps_amount(self, async_db_session: AsyncSession) -> None:
        service = ExchangeRateService(async_db_session)

        assert await service.convert_currency(100, "GBP", "JPY") == 100

        await store_rate(async_db_session, "GBP", "JPY", 190, datetime.utcnow())
        assert await service.convert_currency(100, "GBP", "JPY") == 19000

    @pytest.mark.asyncio
    async def test_load_converter(self, async_db_session: AsyncSession) -> None:
        await store_rate(async_db_session, "USD", "IDR", 16000, datetime.utcnow())

        converter = await ExchangeRateService(async_db_session).load_converter(
            ["usd", "IDR", "EUR", None], "IDR"
        )

        assert converter.convert(2, "USD", "IDR") == 32000
        assert converter.missing_pairs(["USD", "EUR"], "IDR") == ["EUR"]


@pytest.mark.integration
class TestRateRefresh:
    """Tests for pulling rates from the rate API."""

    @pytest.mark.asyncio
    async def test_requires_api_key(self, async_db_session: AsyncSession, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("EXCHANGE_RATE_API_KEY", raising=False)

        with pytest.raises(ExternalServiceError, match="EXCHANGE_RATE_API_KEY is not configured"):
            await ExchangeRateService(async_db_session).fetch_and_store_rates()

    @pytest.mark.asyncio
    async def test_stores_and_upserts_todays_rates(
        self, async_db_session: AsyncSession, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("EXCHANGE_RATE_API_KEY", "key123")
        client = rate_api(
            {"result": "success", "conversion_rates": {"USD": 1, "IDR": 16000, "EUR": 0.92, "CHF": 0.9}}
        )
        service = ExchangeRateService(async_db_session, http_client=client)

        result = await service.fetch_and_store_rates("usd")
        assert result["base_currency"] == "USD"
        assert result["stored"] == 3
        assert str(client.requests[0].url) == "https://v6.exchangerate-api.com/v6/key123/latest/USD"

        await service.fetch_and_store_rates("USD")
        count = await async_db_session.execute(select(func.count(ExchangeRateDB.id)))
        assert count.scalar_one() == 3
        assert await service.get_rate("USD", "IDR") == 16000

    @pytest.mark.asyncio
    async def test_api_error_result(self, async_db_session: AsyncSession, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("EXCHANGE_RATE_API_KEY", "bad")
        client = rate_api({"result": "error", "error-type": "invalid-key"})

        with pytest.raises(ExternalServiceError) as exc_info:
            await ExchangeRateService(async_db_session, http_client=client).fetch_and_store_rates()

        assert exc_info.value.details == {"error_type": "invalid-key"}
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_http_failure(self, async_db_session: AsyncSession, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("EXCHANGE_RATE_API_KEY", "key123")
        client = rate_api({}, status_code=503)

        with pytest.raises(ExternalServiceError, match="Failed to fetch exchange rates"):
            await ExchangeRateService(async_db_session, http_client=client).fetch_and_store_rates()


async def track(session: AsyncSession, user_id, name: str, amount: float, start: datetime, **fields):
    return await SubscriptionService(session).create(
        user_id,
        SubscriptionCreate(
            service_name=name,
            amount=amount,
            billing_frequency=fields.pop("billing_frequency", "monthly"),
            start_date=start,
            next_billing=NOW + timedelta(days=10),
            **fields,
        ),
    )


@pytest.mark.integration
class TestSpendingAnalytics:
    """Tests for analytics on paid plans."""

    @pytest.mark.asyncio
    async def test_free_plan_is_locked(self, async_db_session: AsyncSession, test_user) -> None:
        with pytest.raises(PlanLimitError, match=ANALYTICS_LOCKED_MESSAGE):
            await AnalyticsService(async_db_session).stats(test_user.id)

    @pytest.mark.asyncio
    async def test_trend_counts_from_start_month(self, async_db_session: AsyncSession, user_factory) -> None:
        user = await user_factory(plan="pro")
        await track(async_db_session, user.id, "Netflix", 10000, datetime(2026, 1, 1))
        await track(async_db_session, user.id, "Spotify", 20000, datetime(2026, 5, 10))

        trend = await AnalyticsService(async_db_session).monthly_spending_trend(user.id, months=3, now=NOW)

        assert trend == [
            {"month": "Apr 2026", "total": 10000},
            {"month": "May 2026", "total": 10000},
            {"month": "Jun 2026", "total": 30000},
        ]

    @pytest.mark.asyncio
    async def test_stats_and_distributions(self, async_db_session: AsyncSession, user_factory) -> None:
        user = await user_factory(plan="business")
        music = await CategoryService(async_db_session).create(
            user.id, CategoryCreate(name="Music", color="#10b981")
        )
        start = datetime(2026, 1, 1)
        await track(async_db_session, user.id, "Netflix", 150000, start)
        await track(async_db_session, user.id, "Spotify", 50000, start, category_id=music.id)
        await track(async_db_session, user.id, "Adobe", 1200000, start, billing_frequency="yearly")
        await track(async_db_session, user.id, "Old", 99000, start, status="canceled")
        service = AnalyticsService(async_db_session)

        stats = await service.stats(user.id)
        assert stats == {
            "currency": "IDR",
            "total_monthly": 300000,
            "total_annual": 3600000,
            "active_count": 3,
            "average_cost": 100000,
        }

        top = await service.top_services(user.id, limit=2)
        assert [s["service_name"] for s in top] == ["Netflix", "Adobe"]

        cycles = {c["frequency"]: c for c in await service.billing_cycle_distribution(user.id)}
        assert cycles["monthly"] == {"frequency": "monthly", "count": 2, "total_cost": 200000}
        assert cycles["yearly"]["total_cost"] == 100000

        breakdown = await service.category_breakdown(user.id)
        assert breakdown[0]["name"] == "Uncategorized"
        assert breakdown[0]["percentage"] == 83.3
        assert breakdown[1] == {
            "id": str(music.id),
            "name": "Music",
            "total": 50000,
            "count": 1,
            "percentage": 16.7,
            "color": "#10b981",
        }

    @pytest.mark.asyncio
    async def test_insights(self, async_db_session: AsyncSession, user_factory) -> None:
        user = await user_factory(plan="pro")
        start = datetime(2026, 1, 1)
        for name in ("A", "B", "C"):
            await track(async_db_session, user.id, name, 10000, start)
        await track(async_db_session, user.id, "D", 100000, start)

        insights = await AnalyticsService(async_db_session).insights(user.id, now=NOW)

        assert [i["id"] for i in insights] == ["high-cost-alert", "annual-savings"]
        assert "You have 1 subscription that cost" in insights[0]["description"]
        assert "You have 4 monthly subscriptions" in insights[1]["description"]

    @pytest.mark.asyncio
    async def test_spending_increase_insight(self, async_db_session: AsyncSession, user_factory) -> None:
        user = await user_factory(plan="pro")
        await track(async_db_session, user.id, "Netflix", 10000, datetime(2026, 1, 1))
        await track(async_db_session, user.id, "Spotify", 10000, datetime(2026, 5, 20))

        insights = await AnalyticsService(async_db_session).insights(user.id, now=NOW)

        assert [i["id"] for i in insights] == ["spending-increase"]
        assert "increased by 100%" in insights[0]["description"]
