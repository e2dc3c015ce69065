import logging
import random
import re
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID

from ledger import CreditEntry, CreditLedgerService, CreditType, SourceType
from storage import AppSettingsProvider, InMemoryStorage, Storage

from .models import (
    ReferralStatus,
    ReferralRejection,
    ReferralCode,
    Referral,
    ReferralCodeCheck,
    ReferralResult,
    ReferralStats,
)

logger = logging.getLogger(__name__)

USERS_TABLE = "users"
CODES_TABLE = "referral_codes"
REFERRALS_TABLE = "referrals"
ORDERS_TABLE = "orders"

DELIVERED = "delivered"
FALLBACK_PREFIX = "BUBBLE"
DEFAULT_REFERRER_BONUS = Decimal("10")
CODE_ATTEMPTS = 10


def generate_code(full_name: Optional[str], rng: random.Random = random) -> str:
    """Six letters of the user's name plus two digits, or BUBBLE plus four digits."""
    name_part = re.sub(r"[^a-zA-Z]", "", full_name or "")[:6].upper()
    if name_part:
        return f"{name_part}{rng.randint(0, 99):02d}"
    return f"{FALLBACK_PREFIX}{rng.randint(0, 9999):04d}"


class ReferralService:
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

    @property
    def referrer_bonus(self) -> Decimal:
        bonus = self.settings.get_number("referral_referrer_bonus")
        return bonus if bonus > 0 else DEFAULT_REFERRER_BONUS

    @property
    def referee_bonus(self) -> Decimal:
        return self.settings.get_number("referral_referee_bonus")

    def get_code(self, user_id: UUID) -> Optional[ReferralCode]:
        row = self.storage.select_one(CODES_TABLE, {"user_id": user_id})
        return ReferralCode(**row) if row else None

    def issue_code(self, user_id: UUID) -> ReferralCode:
        with self.storage.transaction():
            existing = self.get_code(user_id)
            if existing:
                return existing

            user = self.storage.select_one(USERS_TABLE, {"id": user_id}) or {}
            code = generate_code(user.get("full_name"), self.rng)
            for _ in range(CODE_ATTEMPTS):
                if self.storage.select_one(CODES_TABLE, {"code": code}) is None:
                    break
                code = generate_code(user.get("full_name"), self.rng)

            row = self.storage.insert(CODES_TABLE, {
                "user_id": user_id,
                "code": code,
                "is_active": True,
                "max_uses": None,
                "uses_count": 0,
                "reward_amount": None,
            })

        logger.info(f"Issued referral code {code} to user {user_id}")
        return ReferralCode(**row)

    def _find_active_code(self, code: str) -> Optional[ReferralCode]:
        if not code or not code.strip():
            return None
        row = self.storage.select_one(CODES_TABLE, {"code": code.strip().upper(), "is_active": True})
        return ReferralCode(**row) if row else None

    def validate(self, code: str) -> ReferralCodeCheck:
        referral_code = self._find_active_code(code)
        if referral_code is None:
            return ReferralCodeCheck(
                valid=False,
                reason=ReferralRejection.INVALID_CODE,
                message="Invalid referral code",
            )

        if referral_code.is_exhausted():
            return ReferralCodeCheck(
                valid=False,
                reason=ReferralRejection.MAX_USES_REACHED,
                message="This referral code has reached its maximum uses",
            )

        bonus = self.referee_bonus
        return ReferralCodeCheck(
            valid=True,
            bonus_amount=bonus,
            message=f"Valid referral code! You'll get ${bonus:.2f} credit.",
        )

    def apply(self, code: str, new_user_id: UUID) -> ReferralResult:
        with self.storage.transaction():
            if self.storage.select_one(REFERRALS_TABLE, {"referee_id": new_user_id}):
                return ReferralResult(
                    success=False,
                    reason=ReferralRejection.ALREADY_REFERRED,
                    message="You have already used a referral code",
                )

            referral_code = self._find_active_code(code)
            if referral_code is None:
                return ReferralResult(
                    success=False,
                    reason=ReferralRejection.INVALID_CODE,
                    message="Invalid or expired referral code",
                )

            if referral_code.user_id == new_user_id:
                logger.warning(f"User {new_user_id} tried to use their own referral code")
                return ReferralResult(
                    success=False,
                    reason=ReferralRejection.SELF_REFERRAL,
                    message="You cannot use your own referral code",
                )

            if referral_code.is_exhausted():
                return ReferralResult(
                    success=False,
                    reason=ReferralRejection.MAX_USES_REACHED,
                    message="This referral code has reached its maximum uses",
                )

            referrer_amount = referral_code.reward_amount
            if referrer_amount is None:
                referrer_amount = self.referrer_bonus
            referee_amount = max(self.referee_bonus, Decimal("0"))
            referee_credited = referee_amount > 0

            row = self.storage.insert(REFERRALS_TABLE, {
                "referrer_id": referral_code.user_id,
                "referee_id": new_user_id,
                "referral_code_id": referral_code.id,
                "code_used": referral_code.code,
                "status": ReferralStatus.PENDING.value,
                "referee_credited": referee_credited,
                "referrer_credited": False,
                "referrer_credit_amount": referrer_amount,
                "referee_credit_amount": referee_amount,
                "completed_at": None,
            })

            self.storage.update(
                CODES_TABLE,
                {"uses_count": referral_code.uses_count + 1},
                {"id": referral_code.id},
            )

            # A zero welcome bonus leaves the referral in place without a ledger row
            if referee_credited:
                self.ledger.record_credit(
                    new_user_id,
                    referee_amount,
                    CreditType.REFEREE_BONUS,
                    source_type=SourceType.REFERRAL,
                    source_id=row["id"],
                    description=f"Welcome bonus for using referral code {referral_code.code}",
                )

            self.storage.update(
                USERS_TABLE,
                {"referred_by": referral_code.user_id, "referral_code_used": referral_code.code},
                {"id": new_user_id},
            )

        logger.info(f"User {new_user_id} referred by {referral_code.user_id} with code {referral_code.code}")
        message = "Referral code applied!"
        if referee_credited:
            message = f"Referral code applied! You received ${referee_amount:.2f} credit."
        return ReferralResult(
            success=True,
            message=message,
            credit_amount=referee_amount,
            referral=Referral(**row),
        )

    def award_if_eligible(self, order_id: UUID) -> Optional[CreditEntry]:
        """
        Credit the referrer once the referee's first order is delivered.

        Called after the order has been marked delivered, so a delivered
        count above one means an earlier order already qualified.
        """
        with self.storage.transaction():
            order = self.storage.select_one(ORDERS_TABLE, {"id": order_id})
            if not order or not order.get("user_id"):
                return None
            user_id = order["user_id"]

            delivered_count = self.storage.count(ORDERS_TABLE, {"user_id": user_id, "status": DELIVERED})
            if delivered_count > 1:
                return None

            rows = self.storage.select(
                REFERRALS_TABLE,
                {"referee_id": user_id, "status": ReferralStatus.PENDING.value},
                order_by="created_at",
                limit=1,
            )
            if not rows:
                return None

            referral = Referral(**rows[0])
            if not referral.can_complete():
                return None

            amount = referral.referrer_credit_amount or Decimal("0")
            if amount <= 0:
                amount = self.referrer_bonus

            entry = self.ledger.record_credit(
                referral.referrer_id,
                amount,
                CreditType.REFERRAL_BONUS,
                source_type=SourceType.REFERRAL,
                source_id=referral.id,
                description=f"Referral bonus for order {order_id}",
            )

            self.storage.update(
                REFERRALS_TABLE,
                {
                    "status": ReferralStatus.COMPLETED.value,
                    "referrer_credited": True,
                    "referrer_credit_amount": amount,
                    "completed_at": datetime.now(timezone.utc),
                },
                {"id": referral.id},
            )

        logger.info(f"Referrer {referral.referrer_id} credited {amount} for referee {user_id}")
        return entry

    def list_referrals(self, user_id: UUID) -> list[Referral]:
        rows = self.storage.select(
            REFERRALS_TABLE,
            {"referrer_id": user_id},
            order_by="created_at",
            descending=True,
        )
        return [Referral(**r) for r in rows]

    def get_stats(self, user_id: UUID) -> ReferralStats:
        referrals = self.list_referrals(user_id)
        completed = [r for r in referrals if r.status == ReferralStatus.COMPLETED]
        fallback = self.referrer_bonus

        return ReferralStats(
            user_id=user_id,
            total_referrals=len(referrals),
            pending_referrals=sum(1 for r in referrals if r.status == ReferralStatus.PENDING),
            completed_referrals=len(completed),
            total_earned=sum((r.referrer_credit_amount or fallback for r in completed), Decimal("0")),
            credit_balance=self.ledger.get_balance(user_id).current_balance,
        )

    def share_url(self, user_id: UUID, base_url: Optional[str] = None) -> str:
        code = self.issue_code(user_id)
        base_url = (base_url or self.settings.get_string("share_base_url")).rstrip("/")
        return f"{base_url}?ref={code.code}"

    def share_message(self, user_id: UUID, base_url: Optional[str] = None) -> str:
        code = self.issue_code(user_id)
        return (
            f"Get ${self.referee_bonus:.2f} off your first laundry order at The Bubble Box! "
            f"Use my code: {code.code} or sign up here: {self.share_url(user_id, base_url)}"
        )
