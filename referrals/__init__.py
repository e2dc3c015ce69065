"""
Referral programme

- One lazily issued code per user
- Referee credited when the code is applied at signup
- Referrer credited once, when the referee's first order is delivered
"""

from .models import (
    ReferralStatus,
    ReferralRejection,
    ReferralCode,
    Referral,
    ReferralCodeCheck,
    ReferralResult,
    ReferralStats,
)
from .service import ReferralService

__all__ = [
    "ReferralStatus",
    "ReferralRejection",
    "ReferralCode",
    "Referral",
    "ReferralCodeCheck",
    "ReferralResult",
    "ReferralStats",
    "ReferralService",
]
