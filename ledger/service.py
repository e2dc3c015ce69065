import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

from storage import InMemoryStorage, Storage

from .models import (
    CreditType,
    SourceType,
    DebitRejection,
    CreditEntry,
    CreditBalance,
    DebitResult,
    CreditHistoryResponse,
)

logger = logging.getLogger(__name__)

CREDITS_TABLE = "user_credits"


class CreditLedgerError(Exception):
    pass


class CreditLedgerService:
    def __init__(self, storage: Optional[Storage] = None):
        self.storage = storage or InMemoryStorage()

    def record_credit(
        self,
        user_id: UUID,
        amount: Decimal,
        credit_type: CreditType,
        source_type: Optional[SourceType] = None,
        source_id: Optional[UUID] = None,
        description: str = "",
        expires_at: Optional[datetime] = None,
    ) -> CreditEntry:
        amount = Decimal(str(amount))
        if amount == 0 or not amount.is_finite():
            raise CreditLedgerError(f"Cannot record a credit entry of {amount}")

        row = self.storage.insert(CREDITS_TABLE, {
            "user_id": user_id,
            "amount": amount,
            "type": CreditType(credit_type).value,
            "source_type": SourceType(source_type).value if source_type else None,
            "source_id": source_id,
            "description": description,
            "expires_at": expires_at,
        })
        logger.info(f"Recorded {row['type']} entry of {row['amount']} for user {user_id}")
        return CreditEntry(**row)

    def get_balance(self, user_id: UUID) -> CreditBalance:
        now = datetime.now(timezone.utc)
        entries = [CreditEntry(**r) for r in self.storage.select(CREDITS_TABLE, {"user_id": user_id})]
        live = [e for e in entries if not e.is_expired(now)]

        total = sum((e.delta for e in live), Decimal("0"))
        if total < 0:
            logger.warning(f"Credit ledger for user {user_id} sums to {total}; reporting 0")

        last_entry = max(entries, key=lambda e: e.created_at) if entries else None
        return CreditBalance(
            user_id=user_id,
            current_balance=max(total, Decimal("0")),
            ledger_total=total,
            total_entries=len(entries),
            last_transaction_at=last_entry.created_at if last_entry else None,
        )

    def debit(
        self,
        user_id: UUID,
        amount: Decimal,
        source_type: SourceType = SourceType.ORDER,
        source_id: Optional[UUID] = None,
        description: Optional[str] = None,
    ) -> DebitResult:
        amount = Decimal(str(amount))
        if amount <= 0:
            return DebitResult(
                success=False,
                reason=DebitRejection.INVALID_AMOUNT,
                message="Credit amount must be greater than zero.",
                available_balance=self.get_balance(user_id).current_balance,
            )

        # Balance read and debit insert share one transaction so two
        # concurrent debits cannot both spend the same credit.
        with self.storage.transaction():
            balance = self.get_balance(user_id).current_balance
            if balance < amount:
                logger.warning(f"Insufficient credit for user {user_id}: available={balance}, requested={amount}")
                return DebitResult(
                    success=False,
                    reason=DebitRejection.INSUFFICIENT_CREDIT,
                    message=f"Insufficient credits. You have ${balance:.2f} available.",
                    available_balance=balance,
                )

            entry = self.record_credit(
                user_id,
                -amount,
                CreditType.USED,
                source_type=source_type,
                source_id=source_id,
                description=description or f"Credits applied to order {source_id}",
            )

        return DebitResult(
            success=True,
            message=f"Applied ${amount:.2f} credit to your order",
            entry=entry,
            available_balance=balance - amount,
        )

    def get_history(self, user_id: UUID, limit: int = 50, offset: int = 0) -> CreditHistoryResponse:
        all_entries = [CreditEntry(**r) for r in self.storage.select(CREDITS_TABLE, {"user_id": user_id})]
        all_entries.sort(key=lambda e: e.created_at, reverse=True)
        paginated = all_entries[offset:offset + limit]
        balance = self.get_balance(user_id)

        return CreditHistoryResponse(
            user_id=user_id,
            entries=paginated,
            total_count=len(all_entries),
            current_balance=balance.current_balance,
        )

    def applied_credit_by_order(self, order_ids: Iterable[UUID]) -> dict[UUID, Decimal]:
        wanted = set(order_ids)
        applied: dict[UUID, Decimal] = {}
        if not wanted:
            return applied

        rows = self.storage.select(CREDITS_TABLE, {"source_type": SourceType.ORDER.value})
        for entry in (CreditEntry(**r) for r in rows):
            if entry.source_id in wanted:
                applied[entry.source_id] = applied.get(entry.source_id, Decimal("0")) + entry.applied_amount
        return applied
