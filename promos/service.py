import logging
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
from uuid import UUID

from storage import AppSettingsProvider, InMemoryStorage, Storage

from .models import DiscountType, PromoRejection, PromoCode, PromoValidationResult

logger = logging.getLogger(__name__)

PROMO_TABLE = "promo_codes"
CENT = Decimal("0.01")


class PromoServiceError(Exception):
    pass


class PromoNotFoundError(PromoServiceError):
    pass


def normalize_code(code: str) -> str:
    return code.strip().upper()


def _rejected(reason: PromoRejection, message: str) -> PromoValidationResult:
    return PromoValidationResult(valid=False, reason=reason, message=message)


class PromoService:
    def __init__(self, storage: Optional[Storage] = None, settings: Optional[AppSettingsProvider] = None):
        self.storage = storage or InMemoryStorage()
        self.settings = settings or AppSettingsProvider(self.storage)

    def get_by_code(self, code: str) -> Optional[PromoCode]:
        row = self.storage.select_one(PROMO_TABLE, {"code": normalize_code(code)})
        return PromoCode(**row) if row else None

    def validate(
        self,
        code: str,
        order_total: Decimal,
        delivery_fee: Optional[Decimal] = None,
    ) -> PromoValidationResult:
        """
        Check a code against an order total that already includes delivery.

        Rules run in a fixed order and the first failure is returned. The
        promo's uses_count is left untouched; see increment_usage().
        """
        if not code or not code.strip():
            return _rejected(PromoRejection.BLANK_CODE, "Please enter a promo code")

        order_total = Decimal(str(order_total))
        if delivery_fee is None:
            delivery_fee = self.settings.get_number("delivery_fee")
        delivery_fee = Decimal(str(delivery_fee))

        promo = self.get_by_code(code)
        if promo is None:
            return _rejected(PromoRejection.NOT_FOUND, "Invalid promo code. Please check and try again.")

        if not promo.is_active:
            return _rejected(PromoRejection.INACTIVE, "This promo code is no longer active.")

        if promo.is_expired(datetime.now(timezone.utc)):
            return _rejected(PromoRejection.EXPIRED, "This promo code has expired.")

        if promo.is_exhausted():
            return _rejected(PromoRejection.MAX_USES_REACHED, "This promo code has reached its maximum uses.")

        if promo.min_order_amount and order_total < promo.min_order_amount:
            return _rejected(
                PromoRejection.BELOW_MINIMUM,
                f"Minimum order amount of ${promo.min_order_amount:.2f} required for this code.",
            )

        if promo.discount_type == DiscountType.PERCENTAGE:
            discount = order_total * promo.discount_value / 100
        elif promo.discount_type == DiscountType.FIXED:
            discount = promo.discount_value
        else:
            discount = delivery_fee

        return PromoValidationResult(
            valid=True,
            promo=promo,
            message=promo.success_message(),
            discount_amount=min(discount.quantize(CENT, rounding=ROUND_HALF_UP), order_total),
        )

    def increment_usage(self, promo_id: UUID) -> PromoCode:
        with self.storage.transaction():
            row = self.storage.select_one(PROMO_TABLE, {"id": promo_id})
            if row is None:
                raise PromoNotFoundError(f"Promo code {promo_id} not found")
            uses_count = (row.get("uses_count") or 0) + 1
            self.storage.update(PROMO_TABLE, {"uses_count": uses_count}, {"id": promo_id})

        row["uses_count"] = uses_count
        logger.info(f"Promo {row['code']} used {uses_count} time(s)")
        return PromoCode(**row)
