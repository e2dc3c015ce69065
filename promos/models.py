from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"
    FREE_DELIVERY = "free_delivery"


class PromoRejection(str, Enum):
    BLANK_CODE = "blank_code"
    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    EXPIRED = "expired"
    MAX_USES_REACHED = "max_uses_reached"
    BELOW_MINIMUM = "below_minimum"


def format_amount(value: Decimal) -> str:
    """Render 10 as "10" and 12.5 as "12.5"."""
    if value == value.to_integral_value():
        return str(int(value))
    return f"{value.normalize():f}"


class PromoCode(BaseModel):
    id: UUID
    code: str
    discount_type: DiscountType
    discount_value: Decimal
    min_order_amount: Optional[Decimal] = None
    max_uses: Optional[int] = None
    uses_count: int = 0
    expires_at: Optional[datetime] = None
    is_active: bool = True
    description: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    def is_expired(self, now: datetime) -> bool:
        if self.expires_at is None:
            return False
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at < now

    def is_exhausted(self) -> bool:
        return bool(self.max_uses) and self.uses_count >= self.max_uses

    def success_message(self) -> str:
        if self.discount_type == DiscountType.PERCENTAGE:
            return f"{format_amount(self.discount_value)}% discount applied!"
        if self.discount_type == DiscountType.FIXED:
            return f"${self.discount_value:.2f} discount applied!"
        return "Free delivery applied!"


class PromoValidationRequest(BaseModel):
    code: str
    order_total: Decimal = Field(..., description="Order total including the delivery fee")
    delivery_fee: Optional[Decimal] = None

    model_config = ConfigDict(json_schema_extra={
        "example": {"code": "WELCOME10", "order_total": 50.00}
    })


class PromoValidationResult(BaseModel):
    valid: bool
    message: str
    promo: Optional[PromoCode] = None
    discount_amount: Decimal = Decimal("0")
    reason: Optional[PromoRejection] = None
