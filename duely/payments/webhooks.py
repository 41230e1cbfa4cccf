"""Apply Stripe and Xendit payment events to users, payments and plan history.

Signature and token checks happen in the webhook routes; the handlers
here trust the payload they are given.
"""

import json
import uuid
from datetime import datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from duely.models.payment import PaymentDB, SubscriptionHistoryDB
from duely.models.user import UserDB
from duely.payments.stripe_gateway import StripeGateway
from duely.services.plans import plan_period_end

logger = structlog.get_logger(__name__)

INTERVAL_TO_CYCLE = {"month": "monthly", "year": "yearly", "monthly": "monthly", "yearly": "yearly"}


def _parse_user_id(value) -> uuid.UUID | None:
    if not value:
        return None
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def split_plan_id(plan_id: str) -> tuple[str, str]:
    """``"pro_yearly"`` -> ``("pro", "yearly")``."""
    tier, _, interval = plan_id.partition("_")
    return tier, INTERVAL_TO_CYCLE.get(interval, "monthly")


class PaymentWebhookService:
    """Handlers for payment provider callbacks."""

    def __init__(self, db_session: AsyncSession, stripe_gateway: StripeGateway | None = None):
        self.db_session = db_session
        self.stripe_gateway = stripe_gateway or StripeGateway()

    async def _get_user(self, user_id: uuid.UUID | None, event: str) -> UserDB | None:
        if user_id is None:
            logger.error("webhook_missing_user", event=event)
            return None
        user = await self.db_session.get(UserDB, user_id)
        if user is None:
            logger.error("webhook_unknown_user", event=event, user_id=str(user_id))
        return user

    def _record_history(self, user_id: uuid.UUID, action: str, from_plan: str | None, to_plan: str, when: datetime):
        self.db_session.add(
            SubscriptionHistoryDB(
                user_id=user_id, action=action, from_plan=from_plan, to_plan=to_plan, effective_date=when
            )
        )

    # ========== Stripe ==========

    async def handle_stripe_event(self, event: dict) -> bool:
        """Dispatch a verified Stripe event.

        Returns:
            False for event types Duely does not handle
        """
        handlers = {
            "checkout.session.completed": self._stripe_checkout_completed,
            "invoice.payment_succeeded": self._stripe_invoice_succeeded,
            "invoice.payment_failed": self._stripe_invoice_failed,
            "customer.subscription.updated": self._stripe_subscription_updated,
            "customer.subscription.deleted": self._stripe_subscription_deleted,
        }
        event_type = event.get("type")
        handler = handlers.get(event_type)
        if handler is None:
            logger.info("webhook_unhandled_event", provider="stripe", event_type=event_type)
            return False

        await handler(event.get("data", {}).get("object", {}))
        await self.db_session.commit()
        logger.info("webhook_event_processed", provider="stripe", event_type=event_type)
        return True

    async def _stripe_checkout_completed(self, session: dict) -> None:
        metadata = session.get("metadata") or {}
        plan_id = metadata.get("planId")
        user = await self._get_user(_parse_user_id(metadata.get("userId")), "checkout.session.completed")
        if user is None or not plan_id:
            return

        tier, billing_cycle = split_plan_id(plan_id)
        now = datetime.utcnow()
        period = None
        if session.get("subscription"):
            period = await self.stripe_gateway.retrieve_subscription_period(session["subscription"])
        start, end = period or (now, plan_period_end(now, billing_cycle))

        previous_plan = user.subscription_plan
        user.subscription_plan = tier
        user.subscription_status = "active"
        user.subscription_start_date = start
        user.subscription_end_date = end
        user.billing_cycle = billing_cycle
        if session.get("customer"):
            user.stripe_customer_id = session["customer"]

        self.db_session.add(
            PaymentDB(
                user_id=user.id,
                provider="stripe",
                provider_payment_id=session.get("payment_intent"),
                provider_customer_id=session.get("customer"),
                amount=(session.get("amount_total") or 0) / 100,
                currency=(session.get("currency") or "usd").upper(),
                status="completed",
                payment_method=(session.get("payment_method_types") or ["card"])[0],
                plan=plan_id,
                billing_period_start=start,
                billing_period_end=end,
                invoice_url=session.get("invoice"),
            )
        )
        self._record_history(user.id, "upgraded", previous_plan, tier, now)

    async def _stripe_invoice_succeeded(self, invoice: dict) -> None:
        metadata = (invoice.get("subscription_details") or {}).get("metadata") or {}
        user = await self._get_user(_parse_user_id(metadata.get("userId")), "invoice.payment_succeeded")
        if user is None:
            return

        self.db_session.add(
            PaymentDB(
                user_id=user.id,
                provider="stripe",
                provider_payment_id=invoice.get("payment_intent"),
                provider_customer_id=invoice.get("customer"),
                amount=(invoice.get("amount_paid") or 0) / 100,
                currency=(invoice.get("currency") or "usd").upper(),
                status="completed",
                plan=metadata.get("planId") or "unknown",
                invoice_url=invoice.get("hosted_invoice_url"),
                receipt_url=invoice.get("invoice_pdf"),
            )
        )

    async def _stripe_invoice_failed(self, invoice: dict) -> None:
        metadata = (invoice.get("subscription_details") or {}).get("metadata") or {}
        user = await self._get_user(_parse_user_id(metadata.get("userId")), "invoice.payment_failed")
        if user is None:
            return

        self.db_session.add(
            PaymentDB(
                user_id=user.id,
                provider="stripe",
                provider_payment_id=invoice.get("payment_intent"),
                provider_customer_id=invoice.get("customer"),
                amount=(invoice.get("amount_due") or 0) / 100,
                currency=(invoice.get("currency") or "usd").upper(),
                status="failed",
                plan=metadata.get("planId") or "unknown",
            )
        )
        logger.warning("payment_failed", provider="stripe", user_id=str(user.id))

    async def _stripe_subscription_updated(self, subscription: dict) -> None:
        metadata = subscription.get("metadata") or {}
        user = await self._get_user(_parse_user_id(metadata.get("userId")), "customer.subscription.updated")
        if user is None:
            return

        user.subscription_status = "active" if subscription.get("status") == "active" else "canceled"
        if subscription.get("current_period_end"):
            user.subscription_end_date = datetime.utcfromtimestamp(subscription["current_period_end"])

    async def _stripe_subscription_deleted(self, subscription: dict) -> None:
        metadata = subscription.get("metadata") or {}
        user = await self._get_user(_parse_user_id(metadata.get("userId")), "customer.subscription.deleted")
        if user is None:
            return

        previous_plan = user.subscription_plan
        user.subscription_plan = "free"
        user.subscription_status = "canceled"
        self._record_history(user.id, "canceled", previous_plan, "free", datetime.utcnow())

    # ========== Xendit ==========

    async def handle_xendit_callback(self, data: dict) -> bool:
        """Apply an invoice callback keyed on its ``status`` field.

        Returns:
            False for statuses Duely does not handle
        """
        status = data.get("status")
        if status in ("PAID", "SETTLED"):
            await self._xendit_paid(data)
        elif status == "EXPIRED":
            await self._xendit_failed(data, {"reason": "expired"})
        elif status == "FAILED":
            await self._xendit_failed(data, {"reason": data.get("failure_code") or "unknown"})
        else:
            logger.info("webhook_unhandled_event", provider="xendit", event_type=status)
            return False

        await self.db_session.commit()
        logger.info("webhook_event_processed", provider="xendit", event_type=status)
        return True

    async def _xendit_paid(self, data: dict) -> None:
        metadata = data.get("metadata") or {}
        plan_id = metadata.get("planId")
        user = await self._get_user(_parse_user_id(metadata.get("userId")), "xendit.paid")
        if user is None or not plan_id:
            return

        tier, billing_cycle = split_plan_id(plan_id)
        if metadata.get("interval"):
            billing_cycle = INTERVAL_TO_CYCLE.get(metadata["interval"], billing_cycle)
        start = datetime.utcnow()
        end = plan_period_end(start, billing_cycle)

        previous_plan = user.subscription_plan
        user.subscription_plan = tier
        user.subscription_status = "active"
        user.subscription_start_date = start
        user.subscription_end_date = end
        user.billing_cycle = billing_cycle

        self.db_session.add(
            PaymentDB(
                user_id=user.id,
                provider="xendit",
                provider_payment_id=data.get("id"),
                amount=data.get("amount") or 0,
                currency=data.get("currency") or "IDR",
                status="completed",
                payment_method=data.get("payment_method") or "qris",
                plan=plan_id,
                billing_period_start=start,
                billing_period_end=end,
                invoice_url=data.get("invoice_url"),
                payment_metadata={
                    "payment_channel": data.get("payment_channel"),
                    "payment_method": data.get("payment_method"),
                },
            )
        )
        self._record_history(user.id, "upgraded", previous_plan, tier, start)

    async def _xendit_failed(self, data: dict, metadata: dict) -> None:
        invoice_metadata = data.get("metadata") or {}
        user = await self._get_user(_parse_user_id(invoice_metadata.get("userId")), f"xendit.{data.get('status')}")
        if user is None:
            return

        self.db_session.add(
            PaymentDB(
                user_id=user.id,
                provider="xendit",
                provider_payment_id=data.get("id"),
                amount=data.get("amount") or 0,
                currency=data.get("currency") or "IDR",
                status="failed",
                plan=invoice_metadata.get("planId") or "unknown",
                payment_metadata=metadata,
            )
        )


def parse_webhook_body(body: bytes) -> dict:
    """Decode a JSON webhook body.

    Raises:
        ValueError: If the body is not a JSON object
    """
    data = json.loads(body)
    if not isinstance(data, dict):
        raise ValueError("Webhook body must be a JSON object")
    return data
