"""
Subscription plans

- One active subscription per user, ending after its billing cycle
- Cancel and pause
- Plan benefits (free delivery, discount) while the subscription is live
"""

from .models import (
    PlanType,
    BillingCycle,
    SubscriptionStatus,
    SubscriptionRejection,
    Subscription,
    SubscriptionBenefits,
    SubscriptionResult,
    PLAN_BENEFITS,
)
from .service import SubscriptionService

__all__ = [
    "PlanType",
    "BillingCycle",
    "SubscriptionStatus",
    "SubscriptionRejection",
    "Subscription",
    "SubscriptionBenefits",
    "SubscriptionResult",
    "PLAN_BENEFITS",
    "SubscriptionService",
]
