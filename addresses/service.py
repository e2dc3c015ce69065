import logging
from typing import Optional
from uuid import UUID

from storage import InMemoryStorage, Storage

from .models import Address, AddressCreate, AddressUpdate

logger = logging.getLogger(__name__)

ADDRESSES_TABLE = "user_addresses"


class AddressNotFoundError(Exception):
    pass


class AddressService:
    def __init__(self, storage: Optional[Storage] = None):
        self.storage = storage or InMemoryStorage()

    def list_addresses(self, user_id: UUID) -> list[Address]:
        rows = self.storage.select(ADDRESSES_TABLE, {"user_id": user_id}, order_by="created_at", descending=True)
        # Default first, then newest first
        rows.sort(key=lambda r: not r.get("is_default"))
        return [Address(**r) for r in rows]

    def add_address(self, user_id: UUID, data: AddressCreate) -> Address:
        with self.storage.transaction():
            is_first = self.storage.count(ADDRESSES_TABLE, {"user_id": user_id}) == 0
            if data.is_default:
                self.storage.update(ADDRESSES_TABLE, {"is_default": False}, {"user_id": user_id})

            row = self.storage.insert(ADDRESSES_TABLE, {
                "user_id": user_id,
                "label": data.label.strip(),
                "address": data.address,
                "landmark": data.landmark or "",
                "latitude": data.latitude,
                "longitude": data.longitude,
                "is_default": data.is_default or is_first,
            })

        logger.info(f"Saved address {row['label']!r} for user {user_id}")
        return Address(**row)

    def update_address(self, address_id: UUID, user_id: UUID, data: AddressUpdate) -> Address:
        patch = data.model_dump(exclude_unset=True)
        with self.storage.transaction():
            row = self._get_row(address_id, user_id)
            if patch.get("is_default"):
                self.storage.update(ADDRESSES_TABLE, {"is_default": False}, {"user_id": user_id})
            self.storage.update(ADDRESSES_TABLE, patch, {"id": address_id, "user_id": user_id})
            row.update(patch)
        return Address(**row)

    def set_default(self, address_id: UUID, user_id: UUID) -> Address:
        return self.update_address(address_id, user_id, AddressUpdate(is_default=True))

    def delete_address(self, address_id: UUID, user_id: UUID) -> None:
        with self.storage.transaction():
            row = self._get_row(address_id, user_id)
            self.storage.delete(ADDRESSES_TABLE, {"id": address_id, "user_id": user_id})

            # Keep one default while the user still has addresses
            if row.get("is_default"):
                remaining = self.storage.select(
                    ADDRESSES_TABLE, {"user_id": user_id}, order_by="created_at", descending=True, limit=1
                )
                if remaining:
                    self.storage.update(ADDRESSES_TABLE, {"is_default": True}, {"id": remaining[0]["id"]})

    def _get_row(self, address_id: UUID, user_id: UUID) -> dict:
        row = self.storage.select_one(ADDRESSES_TABLE, {"id": address_id, "user_id": user_id})
        if not row:
            raise AddressNotFoundError(f"Address {address_id} not found")
        return row
