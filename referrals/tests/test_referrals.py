"""
Unit Tests for the Referral Engine

Tests cover:
1. Code generation and issuing
2. Code validation
3. Applying a code at signup
4. Referrer award on first delivered order
5. Stats and share links
"""

import random
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from uuid import UUID, uuid4

from ledger import CreditType
from referrals.models import ReferralRejection, ReferralStatus
from referrals.service import (
    CODES_TABLE,
    ORDERS_TABLE,
    REFERRALS_TABLE,
    USERS_TABLE,
    ReferralService,
    generate_code,
)
from storage import AppSettingsProvider, InMemoryStorage


# Test constants
REFERRER_ID = UUID("550e8400-e29b-41d4-a716-446655440000")
REFEREE_ID = UUID("660e8400-e29b-41d4-a716-446655440001")
OTHER_REFEREE_ID = UUID("770e8400-e29b-41d4-a716-446655440002")


def make_service(code="JANEDO42", **code_fields):
    storage = InMemoryStorage()
    storage.insert(USERS_TABLE, {"id": REFERRER_ID, "full_name": "Jane Doe"})
    storage.insert(USERS_TABLE, {"id": REFEREE_ID, "full_name": "Sam Lee"})
    storage.insert(USERS_TABLE, {"id": OTHER_REFEREE_ID, "full_name": "Ana Ruiz"})
    row = {
        "user_id": REFERRER_ID,
        "code": code,
        "is_active": True,
        "max_uses": None,
        "uses_count": 0,
        "reward_amount": None,
    }
    row.update(code_fields)
    storage.insert(CODES_TABLE, row)
    return ReferralService(storage, rng=random.Random(7)), storage


def deliver_order(storage, user_id):
    return storage.insert(ORDERS_TABLE, {"user_id": user_id, "status": "delivered"})


class TestCodeGeneration:
    """Tests for referral code generation."""

    def test_code_from_name(self):
        """Test letters of the name are upper-cased and followed by two digits."""
        code = generate_code("Jane Doe-Smith", random.Random(1))

        assert code.startswith("JANEDO")
        assert len(code) == 8
        assert code[6:].isdigit()

    def test_code_without_letters(self):
        """Test a name with no letters falls back to BUBBLE plus four digits."""
        code = generate_code("1234 !!", random.Random(1))

        assert code.startswith("BUBBLE")
        assert len(code) == 10

    def test_code_without_name(self):
        """Test a missing name also uses the fallback."""
        assert generate_code(None, random.Random(1)).startswith("BUBBLE")

    def test_issue_code_is_idempotent(self):
        """Test a user keeps the code issued first."""
        service, _ = make_service()

        first = service.issue_code(REFEREE_ID)
        second = service.issue_code(REFEREE_ID)

        assert first.id == second.id
        assert first.code.startswith("SAMLEE")

    def test_existing_code_returned(self):
        """Test issuing for a user who already has a code returns it."""
        service, _ = make_service()

        assert service.issue_code(REFERRER_ID).code == "JANEDO42"


class TestValidateCode:
    """Tests for checking a code before signup."""

    def test_valid_code(self):
        """Test a usable code reports the referee bonus."""
        service, _ = make_service()

        check = service.validate("janedo42")

        assert check.valid is True
        assert check.bonus_amount == Decimal("10")
        assert check.message == "Valid referral code! You'll get $10.00 credit."

    def test_unknown_code(self):
        """Test an unknown code is invalid."""
        service, _ = make_service()

        check = service.validate("NOBODY11")

        assert check.valid is False
        assert check.reason == ReferralRejection.INVALID_CODE
        assert check.message == "Invalid referral code"

    def test_inactive_code(self):
        """Test a deactivated code is invalid."""
        service, _ = make_service(is_active=False)

        assert service.validate("JANEDO42").reason == ReferralRejection.INVALID_CODE

    def test_max_uses_reached(self):
        """Test a code at its use limit."""
        service, _ = make_service(max_uses=1, uses_count=1)

        check = service.validate("JANEDO42")

        assert check.valid is False
        assert "reached its maximum uses" in check.message


class TestApplyReferral:
    """Tests for applying a code at signup."""

    def test_apply_success(self):
        """Test a new user gets the referee bonus and a pending referral."""
        service, storage = make_service()

        result = service.apply("JANEDO42", REFEREE_ID)

        assert result.success is True
        assert result.credit_amount == Decimal("10")
        assert result.message == "Referral code applied! You received $10.00 credit."
        assert result.referral.status == ReferralStatus.PENDING
        assert result.referral.referee_credited is True
        assert result.referral.referrer_credited is False

        # Verify side effects
        assert service.ledger.get_balance(REFEREE_ID).current_balance == Decimal("10")
        assert storage.select_one(CODES_TABLE, {"code": "JANEDO42"})["uses_count"] == 1
        user = storage.select_one(USERS_TABLE, {"id": REFEREE_ID})
        assert user["referred_by"] == REFERRER_ID
        assert user["referral_code_used"] == "JANEDO42"

    def test_apply_twice_rejected(self):
        """Test a user can only ever be referred once."""
        service, storage = make_service()
        service.apply("JANEDO42", REFEREE_ID)

        result = service.apply("JANEDO42", REFEREE_ID)

        assert result.success is False
        assert result.reason == ReferralRejection.ALREADY_REFERRED
        assert storage.count(REFERRALS_TABLE) == 1
        assert service.ledger.get_balance(REFEREE_ID).current_balance == Decimal("10")

    def test_self_referral_rejected(self):
        """Test the owner cannot use their own code."""
        service, storage = make_service()

        result = service.apply("JANEDO42", REFERRER_ID)

        assert result.success is False
        assert result.reason == ReferralRejection.SELF_REFERRAL
        assert storage.count(REFERRALS_TABLE) == 0

    def test_invalid_code_rejected(self):
        """Test an unknown code writes nothing."""
        service, storage = make_service()

        result = service.apply("BOGUS", REFEREE_ID)

        assert result.success is False
        assert result.message == "Invalid or expired referral code"
        assert service.ledger.get_balance(REFEREE_ID).current_balance == Decimal("0")

    def test_single_use_code(self):
        """Test a code with max_uses=1 cannot be used by a second user."""
        service, _ = make_service(max_uses=1)

        first = service.apply("JANEDO42", REFEREE_ID)
        second = service.apply("JANEDO42", OTHER_REFEREE_ID)

        assert first.success is True
        assert second.success is False
        assert second.reason == ReferralRejection.MAX_USES_REACHED

    def test_bonus_from_app_settings(self):
        """Test the referee bonus follows the app setting."""
        service, storage = make_service()
        AppSettingsProvider(storage).set("referral_referee_bonus", "15")

        result = service.apply("JANEDO42", REFEREE_ID)

        assert result.credit_amount == Decimal("15")

    def test_code_reward_amount_used_for_referrer(self):
        """Test a per-code reward overrides the referrer bonus."""
        service, _ = make_service(reward_amount=Decimal("25"))

        result = service.apply("JANEDO42", REFEREE_ID)

        assert result.referral.referrer_credit_amount == Decimal("25")

    def test_zero_referee_bonus(self):
        """Test a zero welcome bonus still links the referral without a credit entry."""
        service, storage = make_service()
        AppSettingsProvider(storage).set("referral_referee_bonus", "0")

        result = service.apply("JANEDO42", REFEREE_ID)

        assert result.success is True
        assert result.credit_amount == Decimal("0")
        assert result.referral.referee_credited is False
        assert service.ledger.get_history(REFEREE_ID).total_count == 0
        assert storage.select_one(USERS_TABLE, {"id": REFEREE_ID})["referred_by"] == REFERRER_ID


class TestAwardReferrer:
    """Tests for crediting the referrer after the first delivery."""

    def test_first_delivery_awards_referrer(self):
        """Test the referrer is credited once the referee's first order is delivered."""
        service, storage = make_service()
        service.apply("JANEDO42", REFEREE_ID)
        order = deliver_order(storage, REFEREE_ID)

        entry = service.award_if_eligible(order["id"])

        assert entry is not None
        assert entry.type == CreditType.REFERRAL_BONUS
        assert entry.amount == Decimal("10")
        assert entry.user_id == REFERRER_ID
        assert service.ledger.get_balance(REFERRER_ID).current_balance == Decimal("10")

        referral = service.list_referrals(REFERRER_ID)[0]
        assert referral.status == ReferralStatus.COMPLETED
        assert referral.referrer_credited is True
        assert referral.completed_at is not None

    def test_second_delivery_is_noop(self):
        """Test nothing is awarded when the user already has a delivered order."""
        service, storage = make_service()
        service.apply("JANEDO42", REFEREE_ID)
        deliver_order(storage, REFEREE_ID)
        order = deliver_order(storage, REFEREE_ID)

        assert service.award_if_eligible(order["id"]) is None
        assert service.ledger.get_balance(REFERRER_ID).current_balance == Decimal("0")

    def test_award_runs_once(self):
        """Test a completed referral is not credited again."""
        service, storage = make_service()
        service.apply("JANEDO42", REFEREE_ID)
        order = deliver_order(storage, REFEREE_ID)

        service.award_if_eligible(order["id"])
        again = service.award_if_eligible(order["id"])

        assert again is None
        assert service.ledger.get_balance(REFERRER_ID).current_balance == Decimal("10")

    def test_no_referral_is_noop(self):
        """Test a user who signed up without a code triggers nothing."""
        service, storage = make_service()
        order = deliver_order(storage, REFEREE_ID)

        assert service.award_if_eligible(order["id"]) is None

    def test_unknown_order_is_noop(self):
        """Test a missing order is ignored."""
        service, _ = make_service()

        assert service.award_if_eligible(uuid4()) is None


    def test_zero_referrer_bonus_falls_back(self):
        """Test a zero referrer bonus setting pays the default instead of failing."""
        service, storage = make_service()
        AppSettingsProvider(storage).set("referral_referrer_bonus", "0")
        applied = service.apply("JANEDO42", REFEREE_ID)
        storage.update(REFERRALS_TABLE, {"referrer_credit_amount": None}, {"id": applied.referral.id})

        entry = service.award_if_eligible(deliver_order(storage, REFEREE_ID)["id"])

        assert applied.referral.referrer_credit_amount == Decimal("10")
        assert entry.amount == Decimal("10")
        assert service.ledger.get_balance(REFERRER_ID).current_balance == Decimal("10")


class TestConcurrentReferrals:
    """Tests for referral writes racing each other."""

    def test_concurrent_apply_same_referee(self):
        """Test racing applies for one referee produce a single referral."""
        service, storage = make_service()

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(lambda _: service.apply("JANEDO42", REFEREE_ID), range(4)))

        assert sum(1 for r in results if r.success) == 1
        assert storage.count(REFERRALS_TABLE) == 1
        assert storage.select_one(CODES_TABLE, {"code": "JANEDO42"})["uses_count"] == 1
        assert service.ledger.get_balance(REFEREE_ID).current_balance == Decimal("10")

    def test_concurrent_award(self):
        """Test racing awards for one delivered order credit the referrer once."""
        service, storage = make_service()
        service.apply("JANEDO42", REFEREE_ID)
        order = deliver_order(storage, REFEREE_ID)

        with ThreadPoolExecutor(max_workers=4) as pool:
            entries = list(pool.map(lambda _: service.award_if_eligible(order["id"]), range(4)))

        assert sum(1 for e in entries if e is not None) == 1
        assert service.ledger.get_balance(REFERRER_ID).current_balance == Decimal("10")


class TestReferralStats:
    """Tests for referrer stats and share links."""

    def test_stats(self):
        """Test counts and earnings across pending and completed referrals."""
        service, storage = make_service()
        service.apply("JANEDO42", REFEREE_ID)
        service.apply("JANEDO42", OTHER_REFEREE_ID)
        service.award_if_eligible(deliver_order(storage, REFEREE_ID)["id"])

        stats = service.get_stats(REFERRER_ID)

        assert stats.total_referrals == 2
        assert stats.pending_referrals == 1
        assert stats.completed_referrals == 1
        assert stats.total_earned == Decimal("10")
        assert stats.credit_balance == Decimal("10")

    def test_share_url(self):
        """Test the share link carries the user's code."""
        service, _ = make_service()

        assert service.share_url(REFERRER_ID, "https://example.com/") == "https://example.com?ref=JANEDO42"

    def test_share_message(self):
        """Test the share message mentions the bonus and the code."""
        service, _ = make_service()

        message = service.share_message(REFERRER_ID)

        assert "$10.00" in message
        assert "JANEDO42" in message
