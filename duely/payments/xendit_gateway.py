"""Xendit invoices for Indonesian payment methods (QRIS, e-wallets, banks)."""

import os
import time

import httpx
import structlog

from duely.services.errors import DomainValidationError, ExternalServiceError

logger = structlog.get_logger(__name__)

XENDIT_INVOICE_URL = "https://api.xendit.co/v2/invoices"
INVOICE_DURATION_SECONDS = 86400
PAYMENT_METHODS = [
    "QRIS",
    "OVO",
    "DANA",
    "LINKAJA",
    "SHOPEEPAY",
    "BCA",
    "BNI",
    "BRI",
    "MANDIRI",
    "PERMATA",
]

XENDIT_PLANS = {
    "pro_monthly": {"amount": 149000, "currency": "IDR", "interval": "month"},
    "pro_yearly": {"amount": 1499000, "currency": "IDR", "interval": "year"},
    "business_monthly": {"amount": 299000, "currency": "IDR", "interval": "month"},
    "business_yearly": {"amount": 2999000, "currency": "IDR", "interval": "year"},
}


def external_id_for(user_id: str, plan_id: str, timestamp_ms: int | None = None) -> str:
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"duely-{user_id}-{plan_id}-{timestamp_ms}"


class XenditGateway:
    """Creates invoices through the Xendit REST API."""

    provider = "xendit"

    def __init__(self, secret_key: str | None = None, http_client: httpx.AsyncClient | None = None):
        self.secret_key = secret_key or os.getenv("XENDIT_SECRET_KEY")
        self.http_client = http_client

    @property
    def is_configured(self) -> bool:
        return bool(self.secret_key)

    async def create_checkout(
        self,
        user_id: str,
        user_email: str,
        plan_id: str,
        success_url: str,
        cancel_url: str,
    ) -> dict:
        plan = XENDIT_PLANS.get(plan_id)
        if plan is None:
            raise DomainValidationError(f"Unknown plan: {plan_id}")

        body = {
            "external_id": external_id_for(user_id, plan_id),
            "amount": plan["amount"],
            "payer_email": user_email,
            "description": f"Duely {plan_id.replace('_', ' ').upper()} Subscription",
            "invoice_duration": INVOICE_DURATION_SECONDS,
            "currency": plan["currency"],
            "success_redirect_url": success_url,
            "failure_redirect_url": cancel_url,
            "payment_methods": PAYMENT_METHODS,
            "metadata": {"userId": user_id, "planId": plan_id, "interval": plan["interval"]},
        }

        client = self.http_client or httpx.AsyncClient(timeout=15.0)
        try:
            response = await client.post(XENDIT_INVOICE_URL, json=body, auth=(self.secret_key or "", ""))
            response.raise_for_status()
            invoice = response.json()
        except httpx.HTTPError as e:
            logger.error("xendit_invoice_failed", plan_id=plan_id, error=str(e))
            raise ExternalServiceError("Failed to create invoice") from e
        finally:
            if self.http_client is None:
                await client.aclose()

        logger.info("xendit_invoice_created", user_id=user_id, plan_id=plan_id, invoice_id=invoice.get("id"))
        return {
            "provider": self.provider,
            "checkout_url": invoice.get("invoice_url"),
            "transaction_id": invoice.get("id"),
            "expires_at": invoice.get("expiry_date"),
        }
