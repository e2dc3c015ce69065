from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict


class PlanType(str, Enum):
    BASIC = "basic"
    BUBBLE_PASS = "bubble_pass"
    FAMILY_PASS = "family_pass"


class BillingCycle(str, Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class SubscriptionRejection(str, Enum):
    ALREADY_SUBSCRIBED = "already_subscribed"
    NO_ACTIVE_SUBSCRIPTION = "no_active_subscription"


class SubscriptionBenefits(BaseModel):
    free_delivery: bool = False
    discount_percent: Decimal = Decimal("0")
    priority_scheduling: bool = False
    reusable_bags: bool = False


NO_BENEFITS = SubscriptionBenefits()

PLAN_BENEFITS: dict[PlanType, SubscriptionBenefits] = {
    PlanType.BUBBLE_PASS: SubscriptionBenefits(
        free_delivery=True,
        discount_percent=Decimal("10"),
        priority_scheduling=True,
    ),
    PlanType.FAMILY_PASS: SubscriptionBenefits(
        free_delivery=True,
        discount_percent=Decimal("15"),
        priority_scheduling=True,
        reusable_bags=True,
    ),
}


class Subscription(BaseModel):
    id: UUID
    user_id: UUID
    plan_type: PlanType
    billing_cycle: BillingCycle
    status: SubscriptionStatus
    started_at: datetime
    ends_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    def is_active(self, now: datetime) -> bool:
        if self.status != SubscriptionStatus.ACTIVE:
            return False
        if self.ends_at is None:
            return True
        ends_at = self.ends_at
        if ends_at.tzinfo is None:
            ends_at = ends_at.replace(tzinfo=timezone.utc)
        return ends_at >= now

    def benefits(self, now: datetime) -> SubscriptionBenefits:
        if not self.is_active(now):
            return NO_BENEFITS
        return PLAN_BENEFITS.get(self.plan_type, NO_BENEFITS)


class CreateSubscriptionRequest(BaseModel):
    plan_type: PlanType
    billing_cycle: BillingCycle

    model_config = ConfigDict(json_schema_extra={
        "example": {"plan_type": "bubble_pass", "billing_cycle": "monthly"}
    })


class SubscriptionResult(BaseModel):
    success: bool
    message: str
    reason: Optional[SubscriptionRejection] = None
    subscription: Optional[Subscription] = None
