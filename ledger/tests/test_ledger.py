"""
Unit Tests for the Credit Ledger

Tests cover:
1. Recording grants and debits
2. Balance calculation (expiry, clamping)
3. Debit rejections
4. History and per-order applied credit
"""

import pytest
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import UUID

from ledger.models import CreditType, SourceType, DebitRejection
from ledger.service import CREDITS_TABLE, CreditLedgerService, CreditLedgerError
from storage import InMemoryStorage


# Test constants
USER_ID = UUID("550e8400-e29b-41d4-a716-446655440000")
OTHER_USER_ID = UUID("660e8400-e29b-41d4-a716-446655440001")
ORDER_ID = UUID("22222222-2222-2222-2222-222222222222")
SECOND_ORDER_ID = UUID("33333333-3333-3333-3333-333333333333")


class TestRecordCredit:
    """Tests for appending ledger entries."""

    def test_record_grant(self):
        """Test a positive grant is stored with its type and source."""
        service = CreditLedgerService()

        entry = service.record_credit(
            USER_ID,
            Decimal("10.00"),
            CreditType.REFEREE_BONUS,
            source_type=SourceType.REFERRAL,
            description="Welcome bonus",
        )

        assert entry.amount == Decimal("10.00")
        assert entry.type == CreditType.REFEREE_BONUS
        assert entry.source_type == SourceType.REFERRAL
        assert entry.description == "Welcome bonus"

    def test_zero_amount_rejected(self):
        """Test that a zero entry is never written."""
        storage = InMemoryStorage()
        service = CreditLedgerService(storage)

        with pytest.raises(CreditLedgerError):
            service.record_credit(USER_ID, Decimal("0"), CreditType.PROMO)

        assert storage.count(CREDITS_TABLE) == 0


class TestBalance:
    """Tests for balance derivation."""

    def test_empty_ledger(self):
        """Test a user with no entries has a zero balance."""
        service = CreditLedgerService()

        balance = service.get_balance(USER_ID)

        assert balance.current_balance == Decimal("0")
        assert balance.total_entries == 0
        assert balance.last_transaction_at is None

    def test_grants_and_debits_sum(self):
        """Test balance is the signed sum of entries."""
        service = CreditLedgerService()
        service.record_credit(USER_ID, Decimal("10"), CreditType.REFEREE_BONUS)
        service.record_credit(USER_ID, Decimal("5"), CreditType.PROMO)
        service.record_credit(USER_ID, Decimal("-3"), CreditType.USED)

        balance = service.get_balance(USER_ID)

        assert balance.current_balance == Decimal("12")
        assert balance.total_entries == 3
        assert balance.last_transaction_at is not None

    def test_expired_credit_excluded(self):
        """Test entries past their expiry do not count toward the balance."""
        service = CreditLedgerService()
        now = datetime.now(timezone.utc)
        service.record_credit(USER_ID, Decimal("10"), CreditType.PROMO, expires_at=now - timedelta(days=1))
        service.record_credit(USER_ID, Decimal("4"), CreditType.PROMO, expires_at=now + timedelta(days=1))

        balance = service.get_balance(USER_ID)

        assert balance.current_balance == Decimal("4")
        # Expired entries still show in the entry count
        assert balance.total_entries == 2

    def test_legacy_positive_used_entry_is_a_debit(self):
        """Test a 'used' row stored as a positive magnitude still reduces the balance."""
        storage = InMemoryStorage()
        service = CreditLedgerService(storage)
        service.record_credit(USER_ID, Decimal("10"), CreditType.REFEREE_BONUS)
        storage.insert(CREDITS_TABLE, {"user_id": USER_ID, "amount": Decimal("4"), "type": "used"})

        assert service.get_balance(USER_ID).current_balance == Decimal("6")

    def test_negative_sum_clamped(self):
        """Test a ledger summing below zero reports a zero balance."""
        storage = InMemoryStorage()
        service = CreditLedgerService(storage)
        storage.insert(CREDITS_TABLE, {"user_id": USER_ID, "amount": Decimal("-7"), "type": "used"})

        balance = service.get_balance(USER_ID)

        assert balance.current_balance == Decimal("0")
        assert balance.ledger_total == Decimal("-7")

    def test_balances_are_per_user(self):
        """Test entries for another user are not counted."""
        service = CreditLedgerService()
        service.record_credit(USER_ID, Decimal("10"), CreditType.PROMO)
        service.record_credit(OTHER_USER_ID, Decimal("25"), CreditType.PROMO)

        assert service.get_balance(USER_ID).current_balance == Decimal("10")


class TestDebit:
    """Tests for spending credit."""

    def test_debit_success(self):
        """Test a debit within the balance writes a negative 'used' entry."""
        service = CreditLedgerService()
        service.record_credit(USER_ID, Decimal("20"), CreditType.REFEREE_BONUS)

        result = service.debit(USER_ID, Decimal("8"), SourceType.ORDER, ORDER_ID)

        assert result.success is True
        assert result.message == "Applied $8.00 credit to your order"
        assert result.entry.amount == Decimal("-8")
        assert result.entry.type == CreditType.USED
        assert result.entry.source_id == ORDER_ID
        assert result.available_balance == Decimal("12")
        assert service.get_balance(USER_ID).current_balance == Decimal("12")

    def test_debit_insufficient(self):
        """Test a debit above the balance is rejected without writing."""
        storage = InMemoryStorage()
        service = CreditLedgerService(storage)
        service.record_credit(USER_ID, Decimal("5"), CreditType.PROMO)

        result = service.debit(USER_ID, Decimal("8"), SourceType.ORDER, ORDER_ID)

        assert result.success is False
        assert result.reason == DebitRejection.INSUFFICIENT_CREDIT
        assert result.message == "Insufficient credits. You have $5.00 available."
        assert storage.count(CREDITS_TABLE) == 1

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-2")])
    def test_debit_invalid_amount(self, amount):
        """Test non-positive debit amounts are rejected."""
        service = CreditLedgerService()
        service.record_credit(USER_ID, Decimal("5"), CreditType.PROMO)

        result = service.debit(USER_ID, amount)

        assert result.success is False
        assert result.reason == DebitRejection.INVALID_AMOUNT
        assert service.get_balance(USER_ID).current_balance == Decimal("5")

    def test_debit_exact_balance(self):
        """Test the full balance can be spent."""
        service = CreditLedgerService()
        service.record_credit(USER_ID, Decimal("5"), CreditType.PROMO)

        result = service.debit(USER_ID, Decimal("5"), SourceType.ORDER, ORDER_ID)

        assert result.success is True
        assert service.get_balance(USER_ID).current_balance == Decimal("0")

    def test_second_debit_sees_first(self):
        """Test two debits cannot spend the same credit."""
        service = CreditLedgerService()
        service.record_credit(USER_ID, Decimal("10"), CreditType.PROMO)

        first = service.debit(USER_ID, Decimal("8"), SourceType.ORDER, ORDER_ID)
        second = service.debit(USER_ID, Decimal("8"), SourceType.ORDER, SECOND_ORDER_ID)

        assert first.success is True
        assert second.success is False
        assert service.get_balance(USER_ID).current_balance == Decimal("2")


class TestConcurrentDebits:
    """Tests for debits racing on one balance."""

    def test_only_one_racing_debit_succeeds(self):
        """Test eight simultaneous debits of 8 against a balance of 10."""
        service = CreditLedgerService()
        service.record_credit(USER_ID, Decimal("10"), CreditType.REFEREE_BONUS)

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(
                lambda _: service.debit(USER_ID, Decimal("8"), SourceType.ORDER, ORDER_ID),
                range(8),
            ))

        assert sum(1 for r in results if r.success) == 1
        assert all(r.reason == DebitRejection.INSUFFICIENT_CREDIT for r in results if not r.success)
        assert service.get_balance(USER_ID).current_balance == Decimal("2")

    def test_racing_small_debits_never_overspend(self):
        """Test many small debits stop exactly at the balance."""
        service = CreditLedgerService()
        service.record_credit(USER_ID, Decimal("5"), CreditType.PROMO)

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(
                lambda _: service.debit(USER_ID, Decimal("1"), SourceType.ORDER, ORDER_ID),
                range(20),
            ))

        assert sum(1 for r in results if r.success) == 5
        assert service.get_balance(USER_ID).ledger_total == Decimal("0")


class TestHistory:
    """Tests for history and applied credit lookups."""

    def test_history_newest_first_and_paginated(self):
        """Test history is ordered newest first and honours limit/offset."""
        storage = InMemoryStorage()
        service = CreditLedgerService(storage)
        start = datetime(2025, 1, 1, tzinfo=timezone.utc)
        for day, amount in enumerate(("1", "2", "3")):
            storage.insert(CREDITS_TABLE, {
                "user_id": USER_ID,
                "amount": Decimal(amount),
                "type": "promo",
                "created_at": start + timedelta(days=day),
            })

        history = service.get_history(USER_ID, limit=2)

        assert history.total_count == 3
        assert [e.amount for e in history.entries] == [Decimal("3"), Decimal("2")]
        assert history.current_balance == Decimal("6")

        tail = service.get_history(USER_ID, limit=2, offset=2)
        assert [e.amount for e in tail.entries] == [Decimal("1")]

    def test_applied_credit_by_order(self):
        """Test applied credit is summed per order from debit entries."""
        service = CreditLedgerService()
        service.record_credit(USER_ID, Decimal("20"), CreditType.REFEREE_BONUS)
        service.debit(USER_ID, Decimal("3"), SourceType.ORDER, ORDER_ID)
        service.debit(USER_ID, Decimal("2"), SourceType.ORDER, ORDER_ID)
        service.debit(USER_ID, Decimal("4"), SourceType.ORDER, SECOND_ORDER_ID)

        applied = service.applied_credit_by_order([ORDER_ID])

        assert applied == {ORDER_ID: Decimal("5")}

    def test_applied_credit_empty_input(self):
        """Test an empty order list returns an empty mapping."""
        service = CreditLedgerService()

        assert service.applied_credit_by_order([]) == {}
