from uuid import UUID
from fastapi import APIRouter, Depends

from api.deps import Services, get_services

from .models import ApplyReferralRequest, Referral, ReferralCode, ReferralCodeCheck, ReferralResult, ReferralStats

router = APIRouter(tags=["Referrals"])


@router.get("/users/{user_id}/referral-code", response_model=ReferralCode)
def get_referral_code(user_id: UUID, services: Services = Depends(get_services)) -> ReferralCode:
    return services.referrals.issue_code(user_id)


@router.get("/referrals/validate/{code}", response_model=ReferralCodeCheck)
def validate_referral_code(code: str, services: Services = Depends(get_services)) -> ReferralCodeCheck:
    return services.referrals.validate(code)


@router.post("/referrals/apply", response_model=ReferralResult)
def apply_referral_code(request: ApplyReferralRequest, services: Services = Depends(get_services)) -> ReferralResult:
    return services.referrals.apply(request.code, request.user_id)


@router.get("/users/{user_id}/referrals", response_model=list[Referral])
def list_referrals(user_id: UUID, services: Services = Depends(get_services)) -> list[Referral]:
    return services.referrals.list_referrals(user_id)


@router.get("/users/{user_id}/referrals/stats", response_model=ReferralStats)
def get_referral_stats(user_id: UUID, services: Services = Depends(get_services)) -> ReferralStats:
    return services.referrals.get_stats(user_id)
