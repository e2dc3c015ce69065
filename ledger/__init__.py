"""
Credit Ledger

This module provides:
- Append-only signed credit entries (grants positive, debits negative)
- Balance derived from live entries, expired credits excluded
- Debits that re-check the balance inside a store transaction
- Per-order applied credit lookup
"""

from .models import (
    CreditType,
    SourceType,
    DebitRejection,
    CreditEntry,
    CreditBalance,
    DebitResult,
)
from .service import CreditLedgerService, CreditLedgerError

__all__ = [
    "CreditType",
    "SourceType",
    "DebitRejection",
    "CreditEntry",
    "CreditBalance",
    "DebitResult",
    "CreditLedgerService",
    "CreditLedgerError",
]
