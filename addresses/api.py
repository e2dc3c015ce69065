from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, Response, status

from api.deps import Services, get_services

from .models import Address, AddressCreate, AddressUpdate
from .service import AddressNotFoundError

router = APIRouter(tags=["Addresses"])


@router.get("/users/{user_id}/addresses", response_model=list[Address])
def list_addresses(user_id: UUID, services: Services = Depends(get_services)) -> list[Address]:
    return services.addresses.list_addresses(user_id)


@router.post("/users/{user_id}/addresses", response_model=Address, status_code=status.HTTP_201_CREATED)
def add_address(user_id: UUID, request: AddressCreate, services: Services = Depends(get_services)) -> Address:
    return services.addresses.add_address(user_id, request)


@router.patch("/users/{user_id}/addresses/{address_id}", response_model=Address)
def update_address(
    user_id: UUID,
    address_id: UUID,
    request: AddressUpdate,
    services: Services = Depends(get_services),
) -> Address:
    try:
        return services.addresses.update_address(address_id, user_id, request)
    except AddressNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Address {address_id} not found")


@router.post("/users/{user_id}/addresses/{address_id}/default", response_model=Address)
def set_default_address(user_id: UUID, address_id: UUID, services: Services = Depends(get_services)) -> Address:
    try:
        return services.addresses.set_default(address_id, user_id)
    except AddressNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Address {address_id} not found")


@router.delete("/users/{user_id}/addresses/{address_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_address(user_id: UUID, address_id: UUID, services: Services = Depends(get_services)) -> Response:
    try:
        services.addresses.delete_address(address_id, user_id)
    except AddressNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Address {address_id} not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
