import calendar
from datetime import datetime
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)

class SubscriptionLevel:
    FREE = "free"
    SIMPLE = "simple"
    PREMIUM = "premium"

class SubscriptionStatus:
    PENDING = "pending"
    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"

# Monthly prices in the subscription currency
PLANS: Dict[str, Dict[str, Any]] = {
    SubscriptionLevel.FREE: {
        "name": "Grátis",
        "price": 0,
        "description": "Para quem está começando a se organizar",
    },
    SubscriptionLevel.SIMPLE: {
        "name": "Simples",
        "price": 39.90,
        "description": "O essencial para ter controle total",
    },
    SubscriptionLevel.PREMIUM: {
        "name": "Premium",
        "price": 59.90,
        "description": "Para famílias que buscam praticidade máxima",
    },
}

# Define subscription hierarchy (higher levels include lower level features)
SUBSCRIPTION_HIERARCHY = {
    SubscriptionLevel.FREE: 0,
    SubscriptionLevel.SIMPLE: 1,
    SubscriptionLevel.PREMIUM: 2
}

# Feature availability by subscription level
FEATURE_ACCESS = {
    "calorie_tracking": [SubscriptionLevel.SIMPLE, SubscriptionLevel.PREMIUM],
    "price_sum": [SubscriptionLevel.SIMPLE, SubscriptionLevel.PREMIUM],
    "exclusive_recipes": [SubscriptionLevel.SIMPLE, SubscriptionLevel.PREMIUM],
    "family_plan": [SubscriptionLevel.PREMIUM],
    "priority_support": [SubscriptionLevel.PREMIUM],
    "advanced_analysis": [SubscriptionLevel.PREMIUM]
}

DEVICE_LIMITS = {
    SubscriptionLevel.FREE: 1,
    SubscriptionLevel.SIMPLE: 2,
    SubscriptionLevel.PREMIUM: 6
}

def get_plan(plan: Optional[str]) -> Optional[Dict[str, Any]]:
    if not plan:
        return None
    return PLANS.get(plan)

def is_paid_plan(plan: str) -> bool:
    return has_access(plan, SubscriptionLevel.SIMPLE)

def has_access(user_level: str, required_level: str) -> bool:
    """
    Check if user subscription level meets the required level.

    Args:
        user_level: User's current subscription level
        required_level: Required subscription level

    Returns:
        True if user has access, False otherwise
    """
    user_rank = SUBSCRIPTION_HIERARCHY.get(user_level, 0)
    required_rank = SUBSCRIPTION_HIERARCHY.get(required_level, 0)
    return user_rank >= required_rank

def has_feature_access(user_level: str, feature: str) -> bool:
    allowed_levels = FEATURE_ACCESS.get(feature, [])
    return user_level in allowed_levels

def get_effective_plan(subscription: Optional[Dict[str, Any]]) -> str:
    """
    Plan the user is entitled to right now.

    Paid plans only count while the subscription is active; pending,
    cancelled or expired subscriptions fall back to the free plan.
    """
    if not subscription:
        return SubscriptionLevel.FREE

    plan = subscription.get("plan_type") or SubscriptionLevel.FREE
    if plan not in PLANS:
        logger.warning(f"Unknown plan_type {plan!r} on subscription {subscription.get('id')}")
        return SubscriptionLevel.FREE

    if is_paid_plan(plan) and subscription.get("status") != SubscriptionStatus.ACTIVE:
        return SubscriptionLevel.FREE
    return plan

def get_feature_map(plan: str) -> Dict[str, bool]:
    return {feature: has_feature_access(plan, feature) for feature in FEATURE_ACCESS}

def get_device_limit(plan: str) -> int:
    return DEVICE_LIMITS.get(plan, DEVICE_LIMITS[SubscriptionLevel.FREE])

# Mercado Pago preapproval status -> local subscription status
PREAPPROVAL_STATUS_MAP = {
    "authorized": SubscriptionStatus.ACTIVE,
    "cancelled": SubscriptionStatus.CANCELLED,
    "paused": SubscriptionStatus.CANCELLED,
}

def map_preapproval_status(processor_status: Optional[str], current_status: str) -> str:
    """Translate a preapproval status, keeping the current one for anything unmapped."""
    return PREAPPROVAL_STATUS_MAP.get(processor_status or "", current_status)

def add_months(value: datetime, months: int = 1) -> datetime:
    """Shift a datetime by whole months, clamping the day to the target month's length."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)
