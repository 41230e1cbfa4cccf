"""Pick a configured payment gateway and start a checkout."""

import os

from duely.payments.stripe_gateway import StripeGateway
from duely.payments.xendit_gateway import XenditGateway
from duely.services.errors import DomainValidationError


def build_gateways() -> dict:
    return {"stripe": StripeGateway(), "xendit": XenditGateway()}


def available_providers(gateways: dict) -> list[str]:
    return [name for name, gateway in gateways.items() if gateway.is_configured]


def checkout_urls() -> tuple[str, str]:
    base_url = os.getenv("APP_URL", "http://localhost:3000").rstrip("/")
    return (
        f"{base_url}/payment/success?session_id={{CHECKOUT_SESSION_ID}}",
        f"{base_url}/pricing?canceled=true",
    )


async def create_checkout(
    provider: str,
    user_id: str,
    user_email: str,
    plan_id: str,
    gateways: dict | None = None,
) -> dict:
    """Start a checkout with ``provider``.

    Raises:
        DomainValidationError: If the provider is unknown or not configured
    """
    gateways = gateways or build_gateways()
    gateway = gateways.get(provider)
    if gateway is None or not gateway.is_configured:
        available = ", ".join(available_providers(gateways)) or "none"
        raise DomainValidationError(
            f"Provider '{provider}' is not configured. Available providers: {available}"
        )

    success_url, cancel_url = checkout_urls()
    return await gateway.create_checkout(user_id, user_email, plan_id, success_url, cancel_url)
