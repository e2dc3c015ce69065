from fastapi import APIRouter, Depends

from api.deps import Services, get_services

from .models import PromoValidationRequest, PromoValidationResult

router = APIRouter(tags=["Promo codes"])


@router.post("/promos/validate", response_model=PromoValidationResult)
def validate_promo(request: PromoValidationRequest, services: Services = Depends(get_services)) -> PromoValidationResult:
    return services.promos.validate(request.code, request.order_total, request.delivery_fee)
