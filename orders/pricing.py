import logging
from decimal import Decimal
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from promos import DiscountType

from .models import (
    ADDON_PRICES,
    AddonSelection,
    AddonType,
    ItemCategory,
    OrderItemInput,
    OrderTotals,
    ServiceType,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

# Item categories a service type may put on an order
SERVICE_CATEGORIES: dict[ServiceType, frozenset[ItemCategory]] = {
    ServiceType.LAUNDRY: frozenset({ItemCategory.LAUNDRY_BAG}),
    ServiceType.SUIT: frozenset({ItemCategory.SUIT}),
    ServiceType.SHOE: frozenset({ItemCategory.SHOE}),
    ServiceType.DRY_CLEAN: frozenset({ItemCategory.DRY_CLEAN}),
    ServiceType.MULTIPLE: frozenset({
        ItemCategory.LAUNDRY_BAG,
        ItemCategory.SUIT,
        ItemCategory.SHOE,
        ItemCategory.DRY_CLEAN,
    }),
}


class CatalogProduct(BaseModel):
    id: str
    name: str
    price: Decimal
    category: ItemCategory


class Catalog(BaseModel):
    products: dict[str, CatalogProduct] = Field(default_factory=dict)
    addon_prices: dict[AddonType, Decimal] = Field(default_factory=lambda: dict(ADDON_PRICES))

    @classmethod
    def from_rows(cls, rows: Iterable[dict]) -> "Catalog":
        products = {}
        for row in rows:
            if not row.get("is_active", True):
                continue
            product = CatalogProduct(
                id=str(row["id"]),
                name=row["name"],
                price=row["price"],
                category=row["category"],
            )
            products[product.id] = product
        return cls(products=products)

    def get(self, product_id: Optional[str], category: ItemCategory) -> Optional[CatalogProduct]:
        product = self.products.get(product_id) if product_id else None
        if product is None or product.category != category:
            return None
        return product


class ServiceSelection(BaseModel):
    """What the customer picked in the booking wizard, by catalog product id."""

    service_type: ServiceType
    bag_product_id: Optional[str] = None
    hang_dry_product_id: Optional[str] = None
    suit_items: list[str] = Field(default_factory=list)
    shoe_items: list[str] = Field(default_factory=list)
    dry_clean_items: list[str] = Field(default_factory=list)

    def chosen(self, category: ItemCategory) -> list[str]:
        if category == ItemCategory.LAUNDRY_BAG:
            return [self.bag_product_id] if self.bag_product_id else []
        if category == ItemCategory.SUIT:
            return self.suit_items
        if category == ItemCategory.SHOE:
            return self.shoe_items
        if category == ItemCategory.DRY_CLEAN:
            return self.dry_clean_items
        return []


def validate_selection(selection: ServiceSelection) -> bool:
    """A service needs at least one item from one of its categories."""
    return any(selection.chosen(category) for category in SERVICE_CATEGORIES[selection.service_type])


def build_items(selection: ServiceSelection, catalog: Catalog) -> list[OrderItemInput]:
    items: list[OrderItemInput] = []
    categories = SERVICE_CATEGORIES[selection.service_type]

    for category in (ItemCategory.LAUNDRY_BAG, ItemCategory.SUIT, ItemCategory.SHOE, ItemCategory.DRY_CLEAN):
        if category not in categories:
            continue
        for product_id in selection.chosen(category):
            product = catalog.get(product_id, category)
            if product is None:
                logger.warning(f"Unknown {category.value} product {product_id!r} skipped")
                continue
            items.append(OrderItemInput(
                item_type=category.value,
                item_name=product.name,
                quantity=1,
                unit_price=product.price,
            ))

        # Hang dry only rides along with a laundry bag
        if category == ItemCategory.LAUNDRY_BAG and items and selection.hang_dry_product_id:
            hang_dry = catalog.get(selection.hang_dry_product_id, ItemCategory.ADDON)
            if hang_dry:
                items.append(OrderItemInput(
                    item_type=ItemCategory.ADDON.value,
                    item_name=hang_dry.name,
                    quantity=1,
                    unit_price=hang_dry.price,
                ))

    return items


def calculate_subtotal(
    items: Iterable[OrderItemInput],
    addons: Optional[AddonSelection] = None,
    addon_prices: Optional[dict[AddonType, Decimal]] = None,
) -> Decimal:
    prices = addon_prices or ADDON_PRICES
    subtotal = sum((item.unit_price * item.quantity for item in items), ZERO)
    if addons:
        subtotal += sum((prices[addon] for addon in addons.selected()), ZERO)
    return subtotal


def compute_totals(
    subtotal: Decimal,
    delivery_fee: Decimal,
    promo_discount: Decimal = ZERO,
    promo_type: Optional[DiscountType] = None,
    apply_credit: bool = False,
    credit_requested: Decimal = ZERO,
    credit_balance: Decimal = ZERO,
) -> OrderTotals:
    """
    Price an order from its parts.

    Credit can bring the payable amount down to zero but never below it,
    and never more than the customer's balance.
    """
    subtotal = Decimal(str(subtotal))
    discount = Decimal(str(promo_discount or ZERO))
    order_delivery_fee = ZERO if promo_type == DiscountType.FREE_DELIVERY else Decimal(str(delivery_fee))

    total_before_credit = subtotal + order_delivery_fee - discount
    max_credit = max(min(Decimal(str(credit_balance)), total_before_credit), ZERO)
    applied_credit = ZERO
    if apply_credit:
        applied_credit = min(max(Decimal(str(credit_requested or ZERO)), ZERO), max_credit)

    return OrderTotals(
        subtotal=subtotal,
        order_delivery_fee=order_delivery_fee,
        discount=discount,
        total_before_credit=total_before_credit,
        applied_credit=applied_credit,
        payable=max(ZERO, total_before_credit - applied_credit),
        max_credit=max_credit,
    )
