"""
Subscription plan catalog.

Plans are static; only the Stripe price ids come from configuration.
"""
from typing import Any, Dict, List, Optional

from edustream.core.config import settings


PLANS: Dict[str, Dict[str, Any]] = {
    "basic": {
        "name": "Basic Plan",
        "price": 0.01,
        "features": ["Access to basic courses", "Standard support"],
        "price_setting": "stripe_basic_price_id",
    },
    "premium": {
        "name": "Premium Plan",
        "price": 0.02,
        "features": ["Access to all courses", "Priority support", "Certificates"],
        "price_setting": "stripe_premium_price_id",
    },
    "enterprise": {
        "name": "Enterprise Plan",
        "price": 0.03,
        "features": ["Everything in Premium", "Team management", "Analytics"],
        "price_setting": "stripe_enterprise_price_id",
    },
}


def get_plan(plan_type: str) -> Optional[Dict[str, Any]]:
    """
    Look up a plan with its configured Stripe price id.

    Returns:
        Plan dict with plan_type, name, price, features and price_id, or None
    """
    config = PLANS.get(plan_type)
    if config is None:
        return None
    return {
        "plan_type": plan_type,
        "name": config["name"],
        "price": config["price"],
        "features": list(config["features"]),
        "price_id": getattr(settings, config["price_setting"]) or None,
    }


def list_plans() -> List[Dict[str, Any]]:
    return [get_plan(plan_type) for plan_type in PLANS]
