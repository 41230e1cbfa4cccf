"""Stripe checkout sessions and webhook signature verification.

The stripe SDK is synchronous, so network calls run in a worker thread.
"""

import asyncio
import os
from datetime import datetime

import stripe
import structlog

from duely.services.errors import DomainValidationError, ExternalServiceError

logger = structlog.get_logger(__name__)

STRIPE_PLANS = {
    "pro_monthly": {"amount": 9.99, "currency": "usd", "interval": "month"},
    "pro_yearly": {"amount": 99.99, "currency": "usd", "interval": "year"},
    "business_monthly": {"amount": 19.99, "currency": "usd", "interval": "month"},
    "business_yearly": {"amount": 199.99, "currency": "usd", "interval": "year"},
}


def price_id_for(plan_id: str) -> str | None:
    """Stripe price id for ``plan_id`` from ``STRIPE_<PLAN_ID>_PRICE_ID``."""
    return os.getenv(f"STRIPE_{plan_id.upper()}_PRICE_ID")


class StripeGateway:
    """Thin wrapper around the stripe SDK calls Duely needs."""

    provider = "stripe"

    def __init__(self, api_key: str | None = None):
        self.api_key = api_key or os.getenv("STRIPE_SECRET_KEY")

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def create_checkout(
        self,
        user_id: str,
        user_email: str,
        plan_id: str,
        success_url: str,
        cancel_url: str,
    ) -> dict:
        if plan_id not in STRIPE_PLANS:
            raise DomainValidationError(f"Unknown plan: {plan_id}")
        price_id = price_id_for(plan_id)
        if not price_id:
            raise DomainValidationError(f"Price ID not configured for plan: {plan_id}")

        metadata = {"userId": user_id, "planId": plan_id}
        try:
            session = await asyncio.to_thread(
                stripe.checkout.Session.create,
                api_key=self.api_key,
                customer_email=user_email,
                client_reference_id=user_id,
                mode="subscription",
                line_items=[{"price": price_id, "quantity": 1}],
                success_url=success_url,
                cancel_url=cancel_url,
                metadata=metadata,
                subscription_data={"metadata": metadata},
                payment_method_options={"card": {"request_three_d_secure": "automatic"}},
            )
        except stripe.StripeError as e:
            logger.error("stripe_checkout_failed", plan_id=plan_id, error=str(e))
            raise ExternalServiceError("Failed to create checkout session") from e

        logger.info("stripe_checkout_created", user_id=user_id, plan_id=plan_id)
        return {
            "provider": self.provider,
            "checkout_url": session.url,
            "transaction_id": session.id,
            "expires_at": (
                datetime.utcfromtimestamp(session.expires_at).isoformat()
                if getattr(session, "expires_at", None)
                else None
            ),
        }

    async def retrieve_subscription_period(self, subscription_id: str) -> tuple[datetime, datetime] | None:
        """Current period start and end of a Stripe subscription, if Stripe reports them."""
        try:
            subscription = await asyncio.to_thread(
                stripe.Subscription.retrieve, subscription_id, api_key=self.api_key
            )
        except stripe.StripeError as e:
            logger.error("stripe_subscription_lookup_failed", subscription_id=subscription_id, error=str(e))
            raise ExternalServiceError("Failed to retrieve subscription") from e

        start = getattr(subscription, "current_period_start", None)
        end = getattr(subscription, "current_period_end", None)
        if start is None or end is None:
            return None
        return datetime.utcfromtimestamp(start), datetime.utcfromtimestamp(end)

    @staticmethod
    def verify_webhook(payload: bytes, signature: str, secret: str) -> None:
        """Check the ``stripe-signature`` header.

        Raises:
            ValueError: If the payload or signature is invalid
        """
        try:
            stripe.Webhook.construct_event(payload, signature, secret)
        except stripe.SignatureVerificationError as e:
            raise ValueError("Invalid signature") from e
