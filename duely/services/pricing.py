"""Public Duely price list."""

from pydantic import BaseModel


class PlanPrice(BaseModel):
    monthly: float
    yearly: float


class PricingPlan(BaseModel):
    """A plan as shown on the pricing page."""

    id: str
    name: str
    description: str
    price: PlanPrice
    currency: str = "IDR"
    features: list[str]
    highlighted: bool = False


PRICING_PLANS: list[PricingPlan] = [
    PricingPlan(
        id="free",
        name="Free",
        description="Perfect for trying out Duely",
        price=PlanPrice(monthly=0, yearly=0),
        features=[
            "Up to 3 subscriptions",
            "Up to 1 member",
            "Basic subscription tracking",
            "Email notifications",
        ],
    ),
    PricingPlan(
        id="pro",
        name="Pro",
        description="Best for individuals and small teams",
        price=PlanPrice(monthly=49000, yearly=490000),
        features=[
            "Unlimited subscriptions",
            "Advanced analytics & insights",
            "Custom categories",
            "Export to CSV",
            "Multi-currency support",
            "Spending insights & reports",
        ],
        highlighted=True,
    ),
    PricingPlan(
        id="business",
        name="Business",
        description="For teams and organizations",
        price=PlanPrice(monthly=99000, yearly=990000),
        features=[
            "Everything in Pro",
            "Team collaboration",
            "Shared subscription management",
            "API access",
        ],
    ),
]


def get_pricing_plan(plan_id: str) -> PricingPlan | None:
    return next((plan for plan in PRICING_PLANS if plan.id == plan_id), None)


def get_plan_price(plan_id: str, billing_cycle: str = "monthly") -> float:
    plan = get_pricing_plan(plan_id)
    if plan is None:
        raise ValueError(f"Unknown plan: {plan_id}")
    return plan.price.yearly if billing_cycle == "yearly" else plan.price.monthly


def yearly_savings(plan_id: str) -> dict:
    """Amount and percentage saved by paying yearly instead of monthly."""
    plan = get_pricing_plan(plan_id)
    if plan is None or plan.price.monthly == 0:
        return {"amount": 0, "percentage": 0}

    full_year = plan.price.monthly * 12
    saved = full_year - plan.price.yearly
    return {"amount": saved, "percentage": round(saved / full_year * 100)}


def format_price(amount: float, currency: str = "IDR") -> str:
    if amount == 0:
        return "Free"
    return f"{'Rp ' if currency == 'IDR' else currency + ' '}{amount:,.0f}".replace(",", ".")
