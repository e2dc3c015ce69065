from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict


class CreditType(str, Enum):
    REFERRAL_BONUS = "referral_bonus"
    REFEREE_BONUS = "referee_bonus"
    USED = "used"
    PROMO = "promo"
    REFUND = "refund"
    ADMIN_ADJUSTMENT = "admin_adjustment"


class SourceType(str, Enum):
    ORDER = "order"
    REFERRAL = "referral"


class DebitRejection(str, Enum):
    INVALID_AMOUNT = "invalid_amount"
    INSUFFICIENT_CREDIT = "insufficient_credit"


class CreditEntry(BaseModel):
    id: UUID
    user_id: UUID
    amount: Decimal
    type: CreditType
    source_type: Optional[SourceType] = None
    source_id: Optional[UUID] = None
    description: str = ""
    expires_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    def is_expired(self, now: datetime) -> bool:
        if self.expires_at is None:
            return False
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at < now

    @property
    def delta(self) -> Decimal:
        # Older "used" rows store the debit as a positive magnitude
        if self.type == CreditType.USED and self.amount > 0:
            return -self.amount
        return self.amount

    @property
    def applied_amount(self) -> Decimal:
        """Amount this entry took off an order, zero for grants."""
        return -self.delta if self.delta < 0 else Decimal("0")


class CreditBalance(BaseModel):
    user_id: UUID
    current_balance: Decimal
    ledger_total: Decimal = Field(..., description="Unclamped sum of live entries")
    total_entries: int
    last_transaction_at: Optional[datetime] = None


class DebitRequest(BaseModel):
    amount: Decimal
    source_type: SourceType = SourceType.ORDER
    source_id: Optional[UUID] = None
    description: Optional[str] = None

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "amount": 8.00,
            "source_type": "order",
            "source_id": "550e8400-e29b-41d4-a716-446655440000",
        }
    })


class DebitResult(BaseModel):
    success: bool
    message: str
    reason: Optional[DebitRejection] = None
    entry: Optional[CreditEntry] = None
    available_balance: Decimal = Decimal("0")


class CreditHistoryResponse(BaseModel):
    user_id: UUID
    entries: list[CreditEntry]
    total_count: int
    current_balance: Decimal
