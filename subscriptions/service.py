import calendar
import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from storage import InMemoryStorage, Storage

from .models import (
    BillingCycle,
    PlanType,
    SubscriptionStatus,
    SubscriptionRejection,
    Subscription,
    SubscriptionBenefits,
    SubscriptionResult,
    NO_BENEFITS,
)

logger = logging.getLogger(__name__)

SUBSCRIPTIONS_TABLE = "subscriptions"


def add_months(start: datetime, months: int) -> datetime:
    """Same day `months` later, clamped to the last day of a shorter month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


def period_end(started_at: datetime, billing_cycle: BillingCycle) -> datetime:
    if BillingCycle(billing_cycle) == BillingCycle.MONTHLY:
        return add_months(started_at, 1)
    return add_months(started_at, 12)


class SubscriptionService:
    def __init__(self, storage: Optional[Storage] = None):
        self.storage = storage or InMemoryStorage()

    def _current_row(self, user_id: UUID) -> Optional[dict]:
        return self.storage.select_one(
            SUBSCRIPTIONS_TABLE,
            {"user_id": user_id, "status": SubscriptionStatus.ACTIVE.value},
            order_by="started_at",
            descending=True,
        )

    def get_active(self, user_id: UUID) -> Optional[Subscription]:
        """The user's subscription with status active, even if its period has run out."""
        row = self._current_row(user_id)
        return Subscription(**row) if row else None

    def has_active_subscription(self, user_id: UUID, now: Optional[datetime] = None) -> bool:
        subscription = self.get_active(user_id)
        return subscription is not None and subscription.is_active(now or datetime.now(timezone.utc))

    def get_benefits(self, user_id: UUID, now: Optional[datetime] = None) -> SubscriptionBenefits:
        subscription = self.get_active(user_id)
        if subscription is None:
            return NO_BENEFITS
        return subscription.benefits(now or datetime.now(timezone.utc))

    def create(
        self,
        user_id: UUID,
        plan_type: PlanType,
        billing_cycle: BillingCycle,
        now: Optional[datetime] = None,
    ) -> SubscriptionResult:
        started_at = now or datetime.now(timezone.utc)

        with self.storage.transaction():
            current = self.get_active(user_id)
            if current and current.is_active(started_at):
                return SubscriptionResult(
                    success=False,
                    reason=SubscriptionRejection.ALREADY_SUBSCRIBED,
                    message="You already have an active subscription",
                    subscription=current,
                )
            if current:
                # Period ran out without being renewed
                self.storage.update(
                    SUBSCRIPTIONS_TABLE,
                    {"status": SubscriptionStatus.EXPIRED.value, "updated_at": started_at},
                    {"id": current.id},
                )

            row = self.storage.insert(SUBSCRIPTIONS_TABLE, {
                "user_id": user_id,
                "plan_type": PlanType(plan_type).value,
                "billing_cycle": BillingCycle(billing_cycle).value,
                "status": SubscriptionStatus.ACTIVE.value,
                "started_at": started_at,
                "ends_at": period_end(started_at, billing_cycle),
                "updated_at": started_at,
            })

        logger.info(f"User {user_id} subscribed to {row['plan_type']} ({row['billing_cycle']})")
        return SubscriptionResult(
            success=True,
            message="Subscription activated!",
            subscription=Subscription(**row),
        )

    def cancel(self, user_id: UUID) -> SubscriptionResult:
        return self._set_status(user_id, SubscriptionStatus.CANCELLED, "Subscription cancelled.")

    def pause(self, user_id: UUID) -> SubscriptionResult:
        return self._set_status(user_id, SubscriptionStatus.PAUSED, "Subscription paused.")

    def _set_status(self, user_id: UUID, status: SubscriptionStatus, message: str) -> SubscriptionResult:
        with self.storage.transaction():
            row = self._current_row(user_id)
            if row is None:
                return SubscriptionResult(
                    success=False,
                    reason=SubscriptionRejection.NO_ACTIVE_SUBSCRIPTION,
                    message="No active subscription",
                )
            now = datetime.now(timezone.utc)
            self.storage.update(SUBSCRIPTIONS_TABLE, {"status": status.value, "updated_at": now}, {"id": row["id"]})
            row.update(status=status.value, updated_at=now)

        logger.info(f"Subscription {row['id']} for user {user_id} set to {status.value}")
        return SubscriptionResult(success=True, message=message, subscription=Subscription(**row))
