"""
Order accounting and lifecycle

- Pricing: service-type item rules, subtotal, promo and credit totals
- Creation: order, items, preferences, addons, payment and first status
  row written in one transaction
- Lifecycle: status changes, driver trips, customer cancellation, and
  the referral payout on first delivery
- Checkout: the full place-order flow including credit and promo usage
"""

from .models import (
    ServiceType,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    TripType,
    AddonType,
    ADDON_PRICES,
    CreateOrderRequest,
    Order,
    OrderTotals,
)
from .pricing import Catalog, ServiceSelection, build_items, calculate_subtotal, compute_totals, validate_selection
from .service import (
    OrderService,
    OrderServiceError,
    OrderNotFoundError,
    OrderCreationError,
    InvalidStateTransitionError,
)
from .lifecycle import OrderLifecycle
from .checkout import CheckoutService, CheckoutRequest, CheckoutResult

__all__ = [
    "ServiceType",
    "OrderStatus",
    "PaymentMethod",
    "PaymentStatus",
    "TripType",
    "AddonType",
    "ADDON_PRICES",
    "CreateOrderRequest",
    "Order",
    "OrderTotals",
    "Catalog",
    "ServiceSelection",
    "build_items",
    "calculate_subtotal",
    "compute_totals",
    "validate_selection",
    "OrderService",
    "OrderServiceError",
    "OrderNotFoundError",
    "OrderCreationError",
    "InvalidStateTransitionError",
    "OrderLifecycle",
    "CheckoutService",
    "CheckoutRequest",
    "CheckoutResult",
]
