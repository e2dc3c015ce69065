from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, status

from api.deps import Services, get_services

from .models import CreateSubscriptionRequest, Subscription, SubscriptionBenefits, SubscriptionResult

router = APIRouter(tags=["Subscriptions"])


@router.get("/users/{user_id}/subscription", response_model=Subscription)
def get_subscription(user_id: UUID, services: Services = Depends(get_services)) -> Subscription:
    subscription = services.subscriptions.get_active(user_id)
    if subscription is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No active subscription")
    return subscription


@router.get("/users/{user_id}/subscription/benefits", response_model=SubscriptionBenefits)
def get_subscription_benefits(user_id: UUID, services: Services = Depends(get_services)) -> SubscriptionBenefits:
    return services.subscriptions.get_benefits(user_id)


@router.post("/users/{user_id}/subscription", response_model=SubscriptionResult)
def create_subscription(
    user_id: UUID,
    request: CreateSubscriptionRequest,
    services: Services = Depends(get_services),
) -> SubscriptionResult:
    return services.subscriptions.create(user_id, request.plan_type, request.billing_cycle)


@router.post("/users/{user_id}/subscription/cancel", response_model=SubscriptionResult)
def cancel_subscription(user_id: UUID, services: Services = Depends(get_services)) -> SubscriptionResult:
    return services.subscriptions.cancel(user_id)


@router.post("/users/{user_id}/subscription/pause", response_model=SubscriptionResult)
def pause_subscription(user_id: UUID, services: Services = Depends(get_services)) -> SubscriptionResult:
    return services.subscriptions.pause(user_id)
