from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Literal, Optional
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict


class ServiceType(str, Enum):
    LAUNDRY = "laundry"
    SUIT = "suit"
    SHOE = "shoe"
    DRY_CLEAN = "dry-clean"
    MULTIPLE = "multiple"


class ItemCategory(str, Enum):
    LAUNDRY_BAG = "laundry_bag"
    ADDON = "addon"
    SUIT = "suit"
    SHOE = "shoe"
    DRY_CLEAN = "dry_clean"


class OrderStatus(str, Enum):
    PENDING = "pending"
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    PICKED_UP = "picked_up"
    AT_FACILITY = "at_facility"
    CLEANING = "cleaning"
    READY = "ready"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


CANCELLABLE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.SCHEDULED})
TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})

# Progress of an order through the facility; pre-pickup states share a rank
STATUS_RANK: dict[OrderStatus, int] = {
    OrderStatus.PENDING: 0,
    OrderStatus.SCHEDULED: 1,
    OrderStatus.CONFIRMED: 1,
    OrderStatus.PICKED_UP: 2,
    OrderStatus.AT_FACILITY: 3,
    OrderStatus.CLEANING: 4,
    OrderStatus.READY: 5,
    OrderStatus.OUT_FOR_DELIVERY: 6,
    OrderStatus.DELIVERED: 7,
}


class PaymentMethod(str, Enum):
    CARD = "card"
    CASH = "cash"
    WALLET = "wallet"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    AUTHORIZED = "authorized"
    COMPLETED = "completed"
    REFUNDED = "refunded"
    FAILED = "failed"


class TripType(str, Enum):
    PICKUP = "pickup"
    DELIVERY = "delivery"


class AddonType(str, Enum):
    STAIN_TREATMENT = "stain_treatment"
    WHITENING = "whitening"
    SCENT_BOOSTERS = "scent_boosters"
    REPAIRS = "repairs"


ADDON_PRICES: dict[AddonType, Decimal] = {
    AddonType.STAIN_TREATMENT: Decimal("3"),
    AddonType.WHITENING: Decimal("4"),
    AddonType.SCENT_BOOSTERS: Decimal("3"),
    AddonType.REPAIRS: Decimal("5"),
}


class OrderItemInput(BaseModel):
    item_type: str
    item_name: str
    quantity: int = Field(default=1, ge=1)
    unit_price: Decimal


class OrderPreferencesInput(BaseModel):
    detergent_type: Optional[Literal["standard", "hypoallergenic", "eco"]] = None
    fabric_softener: bool = False
    water_temp: Optional[Literal["cold", "warm"]] = None
    drying_heat: Optional[Literal["low", "medium"]] = None
    folding_style: Optional[Literal["square", "kondo", "rolled"]] = None
    shirts_hung: bool = False
    pants_creased: bool = False
    dropoff_instructions: Optional[str] = None
    custom_dropoff_instruction: Optional[str] = None
    packaging_type: Optional[Literal["plastic", "paper", "reusable"]] = None
    notification_style: Optional[Literal["whatsapp", "sms", "quiet"]] = None


class AddonSelection(BaseModel):
    stain_treatment: bool = False
    whitening: bool = False
    scent_boosters: bool = False
    repairs: bool = False
    stain_note: Optional[str] = None

    def selected(self) -> list[AddonType]:
        return [addon for addon in AddonType if getattr(self, addon.value)]


class CreateOrderRequest(BaseModel):
    service_type: ServiceType
    items: list[OrderItemInput] = Field(default_factory=list)
    preferences: OrderPreferencesInput = Field(default_factory=OrderPreferencesInput)
    addons: AddonSelection = Field(default_factory=AddonSelection)
    pickup_address: str
    pickup_landmark: Optional[str] = None
    pickup_slot_id: Optional[UUID] = None
    delivery_slot_id: Optional[UUID] = None
    pickup_date: Optional[date] = None
    delivery_date: Optional[date] = None
    payment_method: PaymentMethod
    subtotal: Decimal
    delivery_fee: Decimal
    discount: Decimal = Decimal("0")
    applied_credit: Decimal = Decimal("0")
    promo_code: Optional[str] = None
    total: Decimal


class Order(BaseModel):
    id: UUID
    user_id: UUID
    order_number: str
    service_type: ServiceType
    status: OrderStatus
    subtotal: Decimal
    delivery_fee: Decimal
    discount: Decimal = Decimal("0")
    applied_credit: Decimal = Decimal("0")
    promo_code: Optional[str] = None
    total: Decimal
    pickup_address: str
    pickup_landmark: Optional[str] = None
    pickup_date: Optional[date] = None
    delivery_date: Optional[date] = None
    driver_id: Optional[UUID] = None
    assigned_at: Optional[datetime] = None
    assigned_by: Optional[UUID] = None
    actual_pickup_time: Optional[datetime] = None
    actual_delivery_time: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    def can_cancel(self) -> bool:
        return self.status in CANCELLABLE_STATUSES


class OrderItem(BaseModel):
    id: UUID
    order_id: UUID
    item_type: str
    item_name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal


class OrderPreferences(OrderPreferencesInput):
    id: UUID
    order_id: UUID


class OrderAddon(BaseModel):
    id: UUID
    order_id: UUID
    addon_type: AddonType
    price: Decimal
    notes: Optional[str] = None


class Payment(BaseModel):
    id: UUID
    order_id: UUID
    user_id: UUID
    amount: Decimal
    payment_method: PaymentMethod
    status: PaymentStatus


class StatusHistoryEntry(BaseModel):
    id: UUID
    order_id: UUID
    status: str
    notes: Optional[str] = None
    changed_by: Optional[UUID] = None
    created_at: datetime


class DriverTrip(BaseModel):
    id: UUID
    order_id: UUID
    driver_id: UUID
    trip_type: TripType
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class OrderDetails(BaseModel):
    order: Order
    items: list[OrderItem]
    preferences: Optional[OrderPreferences] = None
    addons: list[OrderAddon]
    payment: Optional[Payment] = None
    applied_credit: Decimal = Decimal("0")


class OrderTotals(BaseModel):
    subtotal: Decimal
    order_delivery_fee: Decimal
    discount: Decimal
    total_before_credit: Decimal
    applied_credit: Decimal
    payable: Decimal
    max_credit: Decimal


class OrderActionResult(BaseModel):
    success: bool
    message: str


class StatusUpdateRequest(BaseModel):
    status: OrderStatus
    notes: Optional[str] = None
    changed_by: Optional[UUID] = None


class AssignDriverRequest(BaseModel):
    driver_id: Optional[UUID] = None
    assigned_by: UUID


class CancelOrderRequest(BaseModel):
    user_id: UUID
