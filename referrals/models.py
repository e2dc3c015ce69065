from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict


class ReferralStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    EXPIRED = "expired"


class ReferralRejection(str, Enum):
    INVALID_CODE = "invalid_code"
    MAX_USES_REACHED = "max_uses_reached"
    ALREADY_REFERRED = "already_referred"
    SELF_REFERRAL = "self_referral"


class ReferralCode(BaseModel):
    id: UUID
    user_id: UUID
    code: str
    is_active: bool = True
    max_uses: Optional[int] = None
    uses_count: int = 0
    reward_amount: Optional[Decimal] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    def is_exhausted(self) -> bool:
        return bool(self.max_uses) and self.uses_count >= self.max_uses


class Referral(BaseModel):
    id: UUID
    referrer_id: UUID
    referee_id: UUID
    referral_code_id: Optional[UUID] = None
    code_used: str
    status: ReferralStatus = ReferralStatus.PENDING
    referrer_credited: bool = False
    referee_credited: bool = False
    referrer_credit_amount: Optional[Decimal] = None
    referee_credit_amount: Optional[Decimal] = None
    completed_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    def can_complete(self) -> bool:
        return self.status == ReferralStatus.PENDING and not self.referrer_credited


class ApplyReferralRequest(BaseModel):
    code: str
    user_id: UUID


class ReferralCodeCheck(BaseModel):
    valid: bool
    message: str
    reason: Optional[ReferralRejection] = None
    bonus_amount: Decimal = Decimal("0")


class ReferralResult(BaseModel):
    success: bool
    message: str
    reason: Optional[ReferralRejection] = None
    credit_amount: Decimal = Decimal("0")
    referral: Optional[Referral] = None


class ReferralStats(BaseModel):
    user_id: UUID
    total_referrals: int
    pending_referrals: int
    completed_referrals: int
    total_earned: Decimal
    credit_balance: Decimal
