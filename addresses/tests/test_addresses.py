"""
Unit Tests for Saved Addresses
"""

import pytest
from uuid import UUID, uuid4

from addresses.models import AddressCreate, AddressUpdate
from addresses.service import AddressNotFoundError, AddressService


# Test constants
USER_ID = UUID("550e8400-e29b-41d4-a716-446655440000")
OTHER_USER_ID = UUID("660e8400-e29b-41d4-a716-446655440001")


class TestAddresses:
    """Tests for address book operations."""

    def test_first_address_is_default(self):
        """Test the first saved address becomes the default."""
        service = AddressService()

        address = service.add_address(USER_ID, AddressCreate(label="Home", address="12 Palm Street"))

        assert address.is_default is True

    def test_later_address_not_default(self):
        """Test later addresses are not default unless asked."""
        service = AddressService()
        service.add_address(USER_ID, AddressCreate(label="Home", address="12 Palm Street"))

        office = service.add_address(USER_ID, AddressCreate(label="Office", address="1 Tower Road"))

        assert office.is_default is False

    def test_new_default_clears_old(self):
        """Test only one address is default at a time."""
        service = AddressService()
        service.add_address(USER_ID, AddressCreate(label="Home", address="12 Palm Street"))
        service.add_address(USER_ID, AddressCreate(label="Office", address="1 Tower Road", is_default=True))

        addresses = service.list_addresses(USER_ID)

        assert [a.label for a in addresses if a.is_default] == ["Office"]
        assert addresses[0].label == "Office"

    def test_set_default(self):
        """Test switching the default address."""
        service = AddressService()
        service.add_address(USER_ID, AddressCreate(label="Home", address="12 Palm Street"))
        office = service.add_address(USER_ID, AddressCreate(label="Office", address="1 Tower Road"))

        service.set_default(office.id, USER_ID)

        defaults = [a.label for a in service.list_addresses(USER_ID) if a.is_default]
        assert defaults == ["Office"]

    def test_update_only_given_fields(self):
        """Test a partial update leaves other fields alone."""
        service = AddressService()
        home = service.add_address(USER_ID, AddressCreate(label="Home", address="12 Palm Street", landmark="Blue gate"))

        updated = service.update_address(home.id, USER_ID, AddressUpdate(label="House"))

        assert updated.label == "House"
        assert updated.landmark == "Blue gate"
        assert updated.is_default is True

    def test_delete_default_promotes_remaining(self):
        """Test deleting the default hands it to a remaining address."""
        service = AddressService()
        home = service.add_address(USER_ID, AddressCreate(label="Home", address="12 Palm Street"))
        service.add_address(USER_ID, AddressCreate(label="Office", address="1 Tower Road"))

        service.delete_address(home.id, USER_ID)

        addresses = service.list_addresses(USER_ID)
        assert len(addresses) == 1
        assert addresses[0].is_default is True

    def test_other_users_address_not_found(self):
        """Test users cannot touch each other's addresses."""
        service = AddressService()
        home = service.add_address(USER_ID, AddressCreate(label="Home", address="12 Palm Street"))

        with pytest.raises(AddressNotFoundError):
            service.delete_address(home.id, OTHER_USER_ID)

        with pytest.raises(AddressNotFoundError):
            service.update_address(uuid4(), USER_ID, AddressUpdate(label="X"))
