"""
Promo code validation and usage counting.
"""

from .models import DiscountType, PromoRejection, PromoCode, PromoValidationResult
from .service import PromoService, PromoServiceError, PromoNotFoundError

__all__ = [
    "DiscountType",
    "PromoRejection",
    "PromoCode",
    "PromoValidationResult",
    "PromoService",
    "PromoServiceError",
    "PromoNotFoundError",
]
