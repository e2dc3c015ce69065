import logging
import random
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID

from ledger import CreditLedgerService
from storage import AppSettingsProvider, InMemoryStorage, Storage, StorageError

from .models import (
    ADDON_PRICES,
    AddonType,
    CreateOrderRequest,
    Order,
    OrderAddon,
    OrderDetails,
    OrderItem,
    OrderPreferences,
    OrderStatus,
    Payment,
    PaymentMethod,
    PaymentStatus,
    TERMINAL_STATUSES,
)

logger = logging.getLogger(__name__)

ORDERS_TABLE = "orders"
ITEMS_TABLE = "order_items"
PREFERENCES_TABLE = "order_preferences"
ADDONS_TABLE = "order_addons"
PAYMENTS_TABLE = "payments"
HISTORY_TABLE = "order_status_history"
TRIPS_TABLE = "driver_trips"


class OrderServiceError(Exception):
    pass


class OrderNotFoundError(OrderServiceError):
    pass


class InvalidStateTransitionError(OrderServiceError):
    pass


class OrderCreationError(OrderServiceError):
    def __init__(self, step: str, detail: str):
        self.step = step
        self.detail = detail
        super().__init__(f"Failed to {step}: {detail}")


class OrderService:
    def __init__(
        self,
        storage: Optional[Storage] = None,
        ledger: Optional[CreditLedgerService] = None,
        settings: Optional[AppSettingsProvider] = None,
        rng: Optional[random.Random] = None,
    ):
        self.storage = storage or InMemoryStorage()
        self.ledger = ledger or CreditLedgerService(self.storage)
        self.settings = settings or AppSettingsProvider(self.storage)
        self.rng = rng or random.Random()

    def create_order(self, user_id: UUID, data: CreateOrderRequest) -> Order:
        """
        Write an order with its items, preferences, addons, payment and
        first status row as one unit.

        Any failed write rolls back the rows already written and raises
        OrderCreationError naming the step.
        """
        today = date.today()

        with self.storage.transaction():
            order_number = self._next_order_number()

            order_row = self._write("create order", ORDERS_TABLE, {
                "user_id": user_id,
                "order_number": order_number,
                "service_type": data.service_type.value,
                "status": OrderStatus.PENDING.value,
                "subtotal": data.subtotal,
                "delivery_fee": data.delivery_fee,
                "discount": data.discount or Decimal("0"),
                "applied_credit": data.applied_credit or Decimal("0"),
                "promo_code": data.promo_code or None,
                "total": data.total,
                "pickup_address": data.pickup_address,
                "pickup_landmark": data.pickup_landmark or None,
                "pickup_slot_id": data.pickup_slot_id,
                "delivery_slot_id": data.delivery_slot_id,
                "pickup_date": data.pickup_date or today + timedelta(days=1),
                "delivery_date": data.delivery_date or today + timedelta(days=2),
                "driver_id": None,
            })
            order_id = order_row["id"]

            for item in data.items:
                self._write("add items", ITEMS_TABLE, {
                    "order_id": order_id,
                    "item_type": item.item_type,
                    "item_name": item.item_name,
                    "quantity": item.quantity,
                    "unit_price": item.unit_price,
                    "total_price": item.unit_price * item.quantity,
                })

            # Preferences are always stored, even when everything is default
            self._write("save preferences", PREFERENCES_TABLE, {
                "order_id": order_id,
                **data.preferences.model_dump(),
            })

            for addon in data.addons.selected():
                self._write("add addons", ADDONS_TABLE, {
                    "order_id": order_id,
                    "addon_type": addon.value,
                    "price": ADDON_PRICES[addon],
                    "notes": data.addons.stain_note if addon == AddonType.STAIN_TREATMENT else None,
                })

            payment_status = PaymentStatus.PENDING if data.payment_method == PaymentMethod.CASH else PaymentStatus.AUTHORIZED
            self._write("create payment", PAYMENTS_TABLE, {
                "order_id": order_id,
                "user_id": user_id,
                "amount": data.total,
                "payment_method": data.payment_method.value,
                "status": payment_status.value,
            })

            self._write("record status", HISTORY_TABLE, {
                "order_id": order_id,
                "status": OrderStatus.PENDING.value,
                "notes": "Order placed",
                "changed_by": user_id,
            })

        logger.info(f"Order {order_number} created for user {user_id}, total {data.total}")
        return Order(**order_row)

    def _write(self, step: str, table: str, row: dict) -> dict:
        try:
            return self.storage.insert(table, row)
        except StorageError as e:
            logger.error(f"Order creation failed at '{step}': {e}")
            raise OrderCreationError(step, str(e)) from e

    def _next_order_number(self) -> str:
        prefix = self.settings.get_string("order_number_prefix")
        attempts = int(self.settings.get_number("order_number_attempts"))
        year = datetime.now(timezone.utc).year

        for _ in range(max(attempts, 1)):
            candidate = f"{prefix}-{year}-{self.rng.randint(1000, 9999)}"
            if self.storage.select_one(ORDERS_TABLE, {"order_number": candidate}) is None:
                return candidate
            logger.warning(f"Order number {candidate} already taken, retrying")

        raise OrderCreationError("generate order number", f"no free number after {attempts} attempts")

    def get_order(self, order_id: UUID) -> Order:
        row = self.storage.select_one(ORDERS_TABLE, {"id": order_id})
        if not row:
            raise OrderNotFoundError(f"Order {order_id} not found")
        return Order(**row)

    def get_details(self, order_id: UUID) -> OrderDetails:
        order = self.get_order(order_id)
        applied = self.ledger.applied_credit_by_order([order.id])
        return self._details(order, applied)

    def list_orders(self, user_id: UUID) -> list[OrderDetails]:
        rows = self.storage.select(ORDERS_TABLE, {"user_id": user_id}, order_by="created_at", descending=True)
        orders = [Order(**r) for r in rows]
        applied = self.ledger.applied_credit_by_order(o.id for o in orders)
        return [self._details(o, applied) for o in orders]

    def get_active_orders(self, user_id: UUID) -> list[OrderDetails]:
        return [d for d in self.list_orders(user_id) if d.order.status not in TERMINAL_STATUSES]

    def _details(self, order: Order, applied: dict[UUID, Decimal]) -> OrderDetails:
        preferences = self.storage.select_one(PREFERENCES_TABLE, {"order_id": order.id})
        payment = self.storage.select_one(PAYMENTS_TABLE, {"order_id": order.id})
        return OrderDetails(
            order=order,
            items=[OrderItem(**r) for r in self.storage.select(ITEMS_TABLE, {"order_id": order.id})],
            preferences=OrderPreferences(**preferences) if preferences else None,
            addons=[OrderAddon(**r) for r in self.storage.select(ADDONS_TABLE, {"order_id": order.id})],
            payment=Payment(**payment) if payment else None,
            applied_credit=applied.get(order.id, Decimal("0")),
        )
