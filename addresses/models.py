from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field


class AddressCreate(BaseModel):
    label: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    landmark: str = ""
    is_default: bool = False
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class AddressUpdate(BaseModel):
    label: Optional[str] = None
    address: Optional[str] = None
    landmark: Optional[str] = None
    is_default: Optional[bool] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class Address(BaseModel):
    id: UUID
    user_id: UUID
    label: str
    address: str
    landmark: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    is_default: bool = False
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
