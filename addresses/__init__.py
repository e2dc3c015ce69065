from .models import Address, AddressCreate, AddressUpdate
from .service import AddressService, AddressNotFoundError

__all__ = ["Address", "AddressCreate", "AddressUpdate", "AddressService", "AddressNotFoundError"]
