from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, status

from api.deps import Services, get_services

from .models import CreditBalance, CreditHistoryResponse, DebitRequest, DebitResult
from .service import CreditLedgerError

router = APIRouter(tags=["Credits"])


@router.get("/users/{user_id}/credits/balance", response_model=CreditBalance)
def get_credit_balance(user_id: UUID, services: Services = Depends(get_services)) -> CreditBalance:
    return services.ledger.get_balance(user_id)


@router.get("/users/{user_id}/credits", response_model=CreditHistoryResponse)
def get_credit_history(
    user_id: UUID,
    limit: int = 50,
    offset: int = 0,
    services: Services = Depends(get_services),
) -> CreditHistoryResponse:
    return services.ledger.get_history(user_id, limit, offset)


@router.post("/users/{user_id}/credits/debit", response_model=DebitResult)
def debit_credits(user_id: UUID, request: DebitRequest, services: Services = Depends(get_services)) -> DebitResult:
    try:
        return services.ledger.debit(
            user_id,
            request.amount,
            request.source_type,
            request.source_id,
            request.description,
        )
    except CreditLedgerError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
