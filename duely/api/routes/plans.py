"""Pricing, plan changes and checkout endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from duely.api.middleware.auth import get_current_user
from duely.models.payment import CheckoutRequest, PlanChangeRequest
from duely.models.user import UserDB
from duely.payments.checkout import create_checkout
from duely.services.database import get_db_session
from duely.services.plan_limits import get_plan_limits
from duely.services.plans import PlanService
from duely.services.pricing import PRICING_PLANS, yearly_savings

router = APIRouter(prefix="/api", tags=["plans"])


@router.get("/pricing")
async def pricing() -> dict:
    return {
        "plans": [
            {**plan.model_dump(), "yearly_savings": yearly_savings(plan.id)}
            for plan in PRICING_PLANS
        ]
    }


@router.get("/plan")
async def current_plan(
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    plan = await PlanService(db).get_current_plan(current_user.id)
    return {"plan": plan, "limits": get_plan_limits(plan["plan"]).model_dump()}


@router.post("/plan/upgrade")
async def upgrade_plan(
    request: PlanChangeRequest,
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Change plan directly; moving to ``free`` is a downgrade."""
    service = PlanService(db)
    if request.plan == "free":
        return await service.downgrade_to_free(current_user.id)
    return await service.upgrade_plan(current_user.id, request.plan, request.billing_cycle)


@router.post("/plan/cancel")
async def cancel_plan(
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await PlanService(db).cancel_plan(current_user.id)


@router.post("/plan/downgrade")
async def downgrade_plan(
    current_user: UserDB = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await PlanService(db).downgrade_to_free(current_user.id)


@router.post("/payment/create-checkout")
async def create_payment_checkout(
    request: CheckoutRequest,
    current_user: UserDB = Depends(get_current_user),
) -> dict:
    """Start a hosted checkout with the requested payment provider.

    Returns:
        Provider name, checkout URL, provider transaction id and expiry
    """
    return await create_checkout(
        provider=request.provider,
        user_id=str(current_user.id),
        user_email=current_user.email,
        plan_id=request.plan_id,
    )
