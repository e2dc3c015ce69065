from functools import lru_cache
from typing import Optional

from addresses import AddressService
from ledger import CreditLedgerService
from orders import CheckoutService, OrderLifecycle, OrderService
from promos import PromoService
from referrals import ReferralService
from storage import AppSettingsProvider, InMemoryStorage, Storage
from subscriptions import SubscriptionService


class Services:
    """All services wired to one store."""

    def __init__(self, storage: Optional[Storage] = None):
        self.storage = storage or InMemoryStorage()
        self.settings = AppSettingsProvider(self.storage)
        self.ledger = CreditLedgerService(self.storage)
        self.promos = PromoService(self.storage, self.settings)
        self.referrals = ReferralService(self.storage, self.ledger, self.settings)
        self.orders = OrderService(self.storage, self.ledger, self.settings)
        self.lifecycle = OrderLifecycle(self.storage, self.referrals)
        self.addresses = AddressService(self.storage)
        self.subscriptions = SubscriptionService(self.storage)
        self.checkout = CheckoutService(
            self.storage,
            settings=self.settings,
            ledger=self.ledger,
            promos=self.promos,
            orders=self.orders,
            addresses=self.addresses,
        )


@lru_cache
def get_services() -> Services:
    return Services()
