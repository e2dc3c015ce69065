import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from referrals import ReferralService
from storage import InMemoryStorage, Storage

from .models import (
    CANCELLABLE_STATUSES,
    STATUS_RANK,
    TERMINAL_STATUSES,
    DriverTrip,
    Order,
    OrderActionResult,
    OrderStatus,
    PaymentStatus,
    StatusHistoryEntry,
    TripType,
)
from .service import (
    HISTORY_TABLE,
    ORDERS_TABLE,
    PAYMENTS_TABLE,
    TRIPS_TABLE,
    InvalidStateTransitionError,
    OrderNotFoundError,
)

logger = logging.getLogger(__name__)


class OrderLifecycle:
    """Status changes, driver assignment and trip tracking for placed orders."""

    def __init__(self, storage: Optional[Storage] = None, referrals: Optional[ReferralService] = None):
        self.storage = storage or InMemoryStorage()
        self.referrals = referrals or ReferralService(self.storage)

    def _get_order_row(self, order_id: UUID, user_id: Optional[UUID] = None) -> dict:
        filters = {"id": order_id}
        if user_id is not None:
            filters["user_id"] = user_id
        row = self.storage.select_one(ORDERS_TABLE, filters)
        if not row:
            raise OrderNotFoundError(f"Order {order_id} not found")
        return row

    def _add_history(self, order_id: UUID, status: str, notes: str, changed_by: Optional[UUID] = None) -> None:
        self.storage.insert(HISTORY_TABLE, {
            "order_id": order_id,
            "status": status,
            "notes": notes,
            "changed_by": changed_by,
        })

    def update_status(
        self,
        order_id: UUID,
        new_status: OrderStatus,
        notes: Optional[str] = None,
        changed_by: Optional[UUID] = None,
    ) -> Order:
        new_status = OrderStatus(new_status)
        if new_status == OrderStatus.CANCELLED:
            raise InvalidStateTransitionError("Orders are cancelled through cancel_order, not a status update")

        with self.storage.transaction():
            row = self._get_order_row(order_id)
            current = OrderStatus(row["status"])
            if current in TERMINAL_STATUSES:
                raise InvalidStateTransitionError(f"Cannot change status of a {current.value} order")
            if STATUS_RANK[new_status] < STATUS_RANK[current]:
                raise InvalidStateTransitionError(
                    f"Cannot move order back from {current.value} to {new_status.value}"
                )

            now = datetime.now(timezone.utc)
            self.storage.update(ORDERS_TABLE, {"status": new_status.value, "updated_at": now}, {"id": order_id})
            self._add_history(order_id, new_status.value, notes or f"Status updated to {new_status.value}", changed_by)

            driver_id = row.get("driver_id")
            if new_status == OrderStatus.PICKED_UP:
                self.start_trip(order_id, driver_id, TripType.PICKUP)
            elif new_status == OrderStatus.AT_FACILITY:
                self.complete_trip(order_id, TripType.PICKUP)
            elif new_status == OrderStatus.OUT_FOR_DELIVERY:
                self.start_trip(order_id, driver_id, TripType.DELIVERY)
            elif new_status == OrderStatus.DELIVERED:
                self.complete_trip(order_id, TripType.DELIVERY)
                self.referrals.award_if_eligible(order_id)

            row.update(status=new_status.value, updated_at=now)

        logger.info(f"Order {row['order_number']} moved from {current.value} to {new_status.value}")
        return Order(**row)

    def cancel_order(self, order_id: UUID, user_id: UUID) -> OrderActionResult:
        with self.storage.transaction():
            try:
                row = self._get_order_row(order_id, user_id)
            except OrderNotFoundError:
                return OrderActionResult(success=False, message="Order not found")

            status = OrderStatus(row["status"])
            if status not in CANCELLABLE_STATUSES:
                return OrderActionResult(
                    success=False,
                    message=(
                        f'Cannot cancel order. Order is already "{status.value}". '
                        "Only pending, confirmed, or scheduled orders can be cancelled."
                    ),
                )

            now = datetime.now(timezone.utc)
            self.storage.update(
                ORDERS_TABLE,
                {"status": OrderStatus.CANCELLED.value, "updated_at": now},
                {"id": order_id, "user_id": user_id},
            )
            self._add_history(order_id, OrderStatus.CANCELLED.value, "Cancelled by customer", user_id)
            self.storage.update(
                PAYMENTS_TABLE,
                {"status": PaymentStatus.REFUNDED.value, "updated_at": now},
                {"order_id": order_id},
            )

        logger.info(f"Order {row['order_number']} cancelled by customer {user_id}")
        return OrderActionResult(success=True, message="Order cancelled successfully. Any payment will be refunded.")

    def assign_driver(self, order_id: UUID, driver_id: Optional[UUID], assigned_by: UUID) -> Order:
        with self.storage.transaction():
            row = self._get_order_row(order_id)
            patch = {
                "driver_id": driver_id,
                "assigned_at": datetime.now(timezone.utc) if driver_id else None,
                "assigned_by": assigned_by if driver_id else None,
            }
            self.storage.update(ORDERS_TABLE, patch, {"id": order_id})

            if driver_id:
                self._add_history(order_id, "driver_assigned", "Driver assigned", assigned_by)
                # Stub trip so the assignment shows in driver reports straight away
                self.start_trip(order_id, driver_id, TripType.PICKUP)
            else:
                self._add_history(order_id, "driver_unassigned", "Driver unassigned", assigned_by)

            row.update(patch)

        logger.info(f"Order {row['order_number']} driver set to {driver_id}")
        return Order(**row)

    def start_trip(self, order_id: UUID, driver_id: Optional[UUID], trip_type: TripType) -> Optional[DriverTrip]:
        if not driver_id:
            return None

        now = datetime.now(timezone.utc)
        open_trip = self.storage.select_one(
            TRIPS_TABLE,
            {"order_id": order_id, "trip_type": trip_type.value, "completed_at": None},
        )
        if open_trip:
            self.storage.update(TRIPS_TABLE, {"driver_id": driver_id, "started_at": now}, {"id": open_trip["id"]})
            open_trip.update(driver_id=driver_id, started_at=now)
            return DriverTrip(**open_trip)

        row = self.storage.insert(TRIPS_TABLE, {
            "order_id": order_id,
            "driver_id": driver_id,
            "trip_type": trip_type.value,
            "started_at": now,
            "completed_at": None,
        })
        return DriverTrip(**row)

    def complete_trip(self, order_id: UUID, trip_type: TripType) -> int:
        return self.storage.update(
            TRIPS_TABLE,
            {"completed_at": datetime.now(timezone.utc)},
            {"order_id": order_id, "trip_type": trip_type.value, "completed_at": None},
        )

    def get_trips(self, order_id: UUID) -> list[DriverTrip]:
        rows = self.storage.select(TRIPS_TABLE, {"order_id": order_id}, order_by="created_at")
        return [DriverTrip(**r) for r in rows]

    def get_history(self, order_id: UUID) -> list[StatusHistoryEntry]:
        rows = self.storage.select(HISTORY_TABLE, {"order_id": order_id}, order_by="created_at")
        return [StatusHistoryEntry(**r) for r in rows]

    def record_actual_time(self, order_id: UUID, trip_type: TripType) -> Order:
        column = "actual_pickup_time" if TripType(trip_type) == TripType.PICKUP else "actual_delivery_time"
        with self.storage.transaction():
            row = self._get_order_row(order_id)
            now = datetime.now(timezone.utc)
            self.storage.update(ORDERS_TABLE, {column: now}, {"id": order_id})
            row[column] = now
        return Order(**row)
