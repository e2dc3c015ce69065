import logging
from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, status

from api.deps import Services, get_services

from .checkout import CheckoutQuote, CheckoutRequest, CheckoutResult
from .models import (
    AssignDriverRequest,
    CancelOrderRequest,
    CreateOrderRequest,
    Order,
    OrderActionResult,
    OrderDetails,
    StatusHistoryEntry,
    StatusUpdateRequest,
)
from .service import InvalidStateTransitionError, OrderCreationError, OrderNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Orders"])

ORDER_FAILED = "There was an error placing your order. Please try again."


@router.post("/users/{user_id}/checkout/quote", response_model=CheckoutQuote)
def quote_checkout(user_id: UUID, request: CheckoutRequest, services: Services = Depends(get_services)) -> CheckoutQuote:
    return services.checkout.quote(user_id, request)


@router.post("/users/{user_id}/checkout", response_model=CheckoutResult)
def place_order(user_id: UUID, request: CheckoutRequest, services: Services = Depends(get_services)) -> CheckoutResult:
    try:
        return services.checkout.place_order(user_id, request)
    except OrderCreationError:
        logger.exception(f"Checkout failed for user {user_id}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=ORDER_FAILED)


@router.post("/users/{user_id}/orders", response_model=Order, status_code=status.HTTP_201_CREATED)
def create_order(user_id: UUID, request: CreateOrderRequest, services: Services = Depends(get_services)) -> Order:
    try:
        return services.orders.create_order(user_id, request)
    except OrderCreationError:
        logger.exception(f"Order creation failed for user {user_id}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=ORDER_FAILED)


@router.get("/users/{user_id}/orders", response_model=list[OrderDetails])
def list_orders(user_id: UUID, active: bool = False, services: Services = Depends(get_services)) -> list[OrderDetails]:
    if active:
        return services.orders.get_active_orders(user_id)
    return services.orders.list_orders(user_id)


@router.get("/orders/{order_id}", response_model=OrderDetails)
def get_order(order_id: UUID, services: Services = Depends(get_services)) -> OrderDetails:
    try:
        return services.orders.get_details(order_id)
    except OrderNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Order {order_id} not found")


@router.post("/orders/{order_id}/status", response_model=Order)
def update_order_status(
    order_id: UUID,
    request: StatusUpdateRequest,
    services: Services = Depends(get_services),
) -> Order:
    try:
        return services.lifecycle.update_status(order_id, request.status, request.notes, request.changed_by)
    except OrderNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Order {order_id} not found")
    except InvalidStateTransitionError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/orders/{order_id}/cancel", response_model=OrderActionResult)
def cancel_order(
    order_id: UUID,
    request: CancelOrderRequest,
    services: Services = Depends(get_services),
) -> OrderActionResult:
    return services.lifecycle.cancel_order(order_id, request.user_id)


@router.post("/orders/{order_id}/driver", response_model=Order)
def assign_driver(order_id: UUID, request: AssignDriverRequest, services: Services = Depends(get_services)) -> Order:
    try:
        return services.lifecycle.assign_driver(order_id, request.driver_id, request.assigned_by)
    except OrderNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Order {order_id} not found")


@router.get("/orders/{order_id}/history", response_model=list[StatusHistoryEntry])
def get_order_history(order_id: UUID, services: Services = Depends(get_services)) -> list[StatusHistoryEntry]:
    return services.lifecycle.get_history(order_id)
