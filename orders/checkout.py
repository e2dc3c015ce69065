import logging
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from addresses import AddressCreate, AddressService
from ledger import CreditLedgerService, SourceType
from promos import PromoService, PromoValidationResult
from storage import AppSettingsProvider, InMemoryStorage, Storage

from .models import (
    AddonSelection,
    CreateOrderRequest,
    Order,
    OrderItemInput,
    OrderPreferencesInput,
    OrderTotals,
    PaymentMethod,
)
from .pricing import Catalog, ServiceSelection, build_items, calculate_subtotal, compute_totals, validate_selection
from .service import OrderService

logger = logging.getLogger(__name__)

PRODUCTS_TABLE = "products"


class CheckoutRejection(str, Enum):
    INVALID_SELECTION = "invalid_selection"
    PROMO_REJECTED = "promo_rejected"
    CREDIT_REJECTED = "credit_rejected"


class CheckoutRequest(BaseModel):
    selection: ServiceSelection
    preferences: OrderPreferencesInput = Field(default_factory=OrderPreferencesInput)
    addons: AddonSelection = Field(default_factory=AddonSelection)
    pickup_address: str
    pickup_landmark: Optional[str] = None
    pickup_slot_id: Optional[UUID] = None
    delivery_slot_id: Optional[UUID] = None
    pickup_date: Optional[date] = None
    delivery_date: Optional[date] = None
    payment_method: PaymentMethod
    promo_code: Optional[str] = None
    apply_credit: bool = False
    credit_to_apply: Decimal = Decimal("0")
    save_address: bool = False
    address_label: Optional[str] = None


class CheckoutQuote(BaseModel):
    items: list[OrderItemInput]
    totals: OrderTotals
    credit_balance: Decimal
    promo: Optional[PromoValidationResult] = None


class CheckoutResult(BaseModel):
    success: bool
    message: str
    reason: Optional[CheckoutRejection] = None
    order: Optional[Order] = None
    quote: Optional[CheckoutQuote] = None


class _CheckoutAborted(Exception):
    def __init__(self, result: CheckoutResult):
        self.result = result
        super().__init__(result.message)


class CheckoutService:
    """
    Places an order the way the booking wizard does: price it, create it,
    spend the applied credit, count the promo use and remember the address.

    Everything happens in one store transaction, so a rejected debit or a
    failed write leaves no order behind.
    """

    def __init__(
        self,
        storage: Optional[Storage] = None,
        catalog: Optional[Catalog] = None,
        settings: Optional[AppSettingsProvider] = None,
        ledger: Optional[CreditLedgerService] = None,
        promos: Optional[PromoService] = None,
        orders: Optional[OrderService] = None,
        addresses: Optional[AddressService] = None,
    ):
        self.storage = storage or InMemoryStorage()
        self.catalog = catalog
        self.settings = settings or AppSettingsProvider(self.storage)
        self.ledger = ledger or CreditLedgerService(self.storage)
        self.promos = promos or PromoService(self.storage, self.settings)
        self.orders = orders or OrderService(self.storage, self.ledger, self.settings)
        self.addresses = addresses or AddressService(self.storage)

    def _catalog(self) -> Catalog:
        if self.catalog is not None:
            return self.catalog
        return Catalog.from_rows(self.storage.select(PRODUCTS_TABLE))

    def quote(self, user_id: UUID, request: CheckoutRequest) -> CheckoutQuote:
        catalog = self._catalog()
        items = build_items(request.selection, catalog)
        subtotal = calculate_subtotal(items, request.addons, catalog.addon_prices)
        delivery_fee = self.settings.get_number("delivery_fee")

        promo = None
        if request.promo_code and request.promo_code.strip():
            promo = self.promos.validate(request.promo_code, subtotal + delivery_fee, delivery_fee)

        applied_promo = promo.promo if promo and promo.valid else None
        balance = self.ledger.get_balance(user_id).current_balance
        totals = compute_totals(
            subtotal,
            delivery_fee,
            promo_discount=promo.discount_amount if applied_promo else Decimal("0"),
            promo_type=applied_promo.discount_type if applied_promo else None,
            apply_credit=request.apply_credit,
            credit_requested=request.credit_to_apply,
            credit_balance=balance,
        )
        return CheckoutQuote(items=items, totals=totals, credit_balance=balance, promo=promo)

    def place_order(self, user_id: UUID, request: CheckoutRequest) -> CheckoutResult:
        if not validate_selection(request.selection):
            return CheckoutResult(
                success=False,
                reason=CheckoutRejection.INVALID_SELECTION,
                message=f"Please choose at least one item for {request.selection.service_type.value} service.",
            )

        try:
            with self.storage.transaction():
                quote = self.quote(user_id, request)
                if quote.promo and not quote.promo.valid:
                    raise _CheckoutAborted(CheckoutResult(
                        success=False,
                        reason=CheckoutRejection.PROMO_REJECTED,
                        message=quote.promo.message,
                        quote=quote,
                    ))

                totals = quote.totals
                promo = quote.promo.promo if quote.promo else None
                order = self.orders.create_order(user_id, CreateOrderRequest(
                    service_type=request.selection.service_type,
                    items=quote.items,
                    preferences=request.preferences,
                    addons=request.addons,
                    pickup_address=request.pickup_address,
                    pickup_landmark=request.pickup_landmark,
                    pickup_slot_id=request.pickup_slot_id,
                    delivery_slot_id=request.delivery_slot_id,
                    pickup_date=request.pickup_date,
                    delivery_date=request.delivery_date,
                    payment_method=request.payment_method,
                    subtotal=totals.subtotal,
                    delivery_fee=totals.order_delivery_fee,
                    discount=totals.discount,
                    applied_credit=totals.applied_credit,
                    promo_code=promo.code if promo else None,
                    total=totals.payable,
                ))

                if totals.applied_credit > 0:
                    debit = self.ledger.debit(user_id, totals.applied_credit, SourceType.ORDER, order.id)
                    if not debit.success:
                        raise _CheckoutAborted(CheckoutResult(
                            success=False,
                            reason=CheckoutRejection.CREDIT_REJECTED,
                            message=debit.message,
                            quote=quote,
                        ))

                if promo:
                    self.promos.increment_usage(promo.id)

                if request.save_address and request.address_label and request.address_label.strip():
                    self.addresses.add_address(user_id, AddressCreate(
                        label=request.address_label,
                        address=request.pickup_address,
                        landmark=request.pickup_landmark or "",
                    ))
        except _CheckoutAborted as aborted:
            logger.warning(f"Checkout for user {user_id} rejected: {aborted.result.message}")
            return aborted.result

        return CheckoutResult(
            success=True,
            message="Order placed successfully!",
            order=order,
            quote=quote,
        )
