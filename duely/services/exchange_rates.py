"""Exchange rate storage, lookup and refresh from exchangerate-api.com."""

import os
from collections.abc import Iterable
from datetime import datetime

import httpx
import structlog
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from duely.models.payment import ExchangeRateDB
from duely.services.currency import CurrencyConverter
from duely.services.dates import start_of_day
from duely.services.errors import ExternalServiceError

logger = structlog.get_logger(__name__)

EXCHANGE_RATE_API_URL = "https://v6.exchangerate-api.com/v6/{api_key}/latest/{base}"
TARGET_CURRENCIES = ["USD", "EUR", "GBP", "JPY", "IDR", "KRW", "CAD", "AUD", "INR"]


class ExchangeRateService:
    """Reads and refreshes the exchange_rates table."""

    def __init__(self, db_session: AsyncSession, http_client: httpx.AsyncClient | None = None):
        """Initialize exchange rate service.

        Args:
            db_session: Database session
            http_client: Client used for the rate API (created on demand)
        """
        self.db_session = db_session
        self.http_client = http_client

    async def _rate_on(self, base: str, target: str, day: datetime) -> float | None:
        query = select(ExchangeRateDB.rate).where(
            and_(
                ExchangeRateDB.base_currency == base,
                ExchangeRateDB.target_currency == target,
                ExchangeRateDB.date >= day,
            )
        )
        result = await self.db_session.execute(query.limit(1))
        return result.scalar_one_or_none()

    async def get_rate(self, from_currency: str, to_currency: str) -> float | None:
        """Look up the rate converting ``from_currency`` into ``to_currency``.

        Lookup order: today's direct rate, today's reverse rate (inverted),
        then the most recent direct rate stored for the pair.

        Returns:
            Rate, or None when the pair has never been stored
        """
        from_currency = from_currency.upper()
        to_currency = to_currency.upper()
        if from_currency == to_currency:
            return 1.0

        today = start_of_day(datetime.utcnow())

        rate = await self._rate_on(from_currency, to_currency, today)
        if rate is not None:
            return rate

        reverse = await self._rate_on(to_currency, from_currency, today)
        if reverse:
            return 1 / reverse

        result = await self.db_session.execute(
            select(ExchangeRateDB.rate)
            .where(
                and_(
                    ExchangeRateDB.base_currency == from_currency,
                    ExchangeRateDB.target_currency == to_currency,
                )
            )
            .order_by(ExchangeRateDB.date.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def convert_currency(self, amount: float, from_currency: str, to_currency: str) -> float:
        """Convert an amount, returning it unchanged when no rate is known."""
        rate = await self.get_rate(from_currency, to_currency)
        if rate is None:
            logger.warning(
                "exchange_rate_missing", from_currency=from_currency, to_currency=to_currency
            )
            return amount
        return amount * rate

    async def load_converter(self, currencies: Iterable[str], target: str) -> CurrencyConverter:
        """Preload the rates needed to convert every currency in ``currencies`` to ``target``."""
        converter = CurrencyConverter()
        for currency in {c.upper() for c in currencies if c}:
            rate = await self.get_rate(currency, target)
            if rate is not None:
                converter.add_rate(currency, target, rate)
        return converter

    async def fetch_and_store_rates(self, base_currency: str = "USD") -> dict:
        """Fetch the latest rates for ``base_currency`` and upsert today's rows.

        Returns:
            Dict with base currency, stored count and the rate date

        Raises:
            ExternalServiceError: If the API key is missing or the API call fails
        """
        api_key = os.getenv("EXCHANGE_RATE_API_KEY")
        if not api_key:
            raise ExternalServiceError("EXCHANGE_RATE_API_KEY is not configured")

        url = EXCHANGE_RATE_API_URL.format(api_key=api_key, base=base_currency.upper())
        client = self.http_client or httpx.AsyncClient(timeout=15.0)
        try:
            response = await client.get(url)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as e:
            logger.error("exchange_rate_fetch_failed", error=str(e))
            raise ExternalServiceError("Failed to fetch exchange rates") from e
        finally:
            if self.http_client is None:
                await client.aclose()

        if payload.get("result") != "success":
            logger.error("exchange_rate_api_error", error_type=payload.get("error-type"))
            raise ExternalServiceError(
                "Exchange rate API returned an error",
                details={"error_type": payload.get("error-type")},
            )

        rates = payload.get("conversion_rates", {})
        rate_date = start_of_day(datetime.utcnow()).replace(hour=12)
        stored = 0

        for target in TARGET_CURRENCIES:
            if target not in rates:
                continue

            result = await self.db_session.execute(
                select(ExchangeRateDB).where(
                    and_(
                        ExchangeRateDB.base_currency == base_currency.upper(),
                        ExchangeRateDB.target_currency == target,
                        ExchangeRateDB.date == rate_date,
                    )
                )
            )
            row = result.scalar_one_or_none()
            if row is None:
                self.db_session.add(
                    ExchangeRateDB(
                        base_currency=base_currency.upper(),
                        target_currency=target,
                        rate=float(rates[target]),
                        date=rate_date,
                    )
                )
            else:
                row.rate = float(rates[target])
            stored += 1

        await self.db_session.commit()
        logger.info("exchange_rates_stored", base_currency=base_currency, count=stored)

        return {
            "base_currency": base_currency.upper(),
            "stored": stored,
            "date": rate_date.isoformat(),
        }
