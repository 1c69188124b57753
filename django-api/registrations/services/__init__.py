"""Service wiring.

Services depend only on the store interface; ``build_engine`` assembles them
around one store so they share its transactions.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from django.utils import timezone

from registrations.conf import RegistrationConfig
from registrations.services.capacity import CapacityLedger
from registrations.services.discount import DiscountResult, calculate_discount
from registrations.services.orders import (
    OrderItemRequest,
    OrderLifecycle,
    OrderRequest,
    Placement,
    validate_payment_proof,
)
from registrations.services.roles import RoleAssignmentValidator
from registrations.services.waitlist import WaitlistManager
from registrations.stores.interfaces import RegistrationStore


@dataclass(frozen=True)
class RegistrationEngine:
    store: RegistrationStore
    config: RegistrationConfig
    ledger: CapacityLedger
    roles: RoleAssignmentValidator
    waitlist: WaitlistManager
    orders: OrderLifecycle


def build_engine(
    store: RegistrationStore | None = None,
    config: RegistrationConfig | None = None,
    clock: Callable[[], datetime] = timezone.now,
) -> RegistrationEngine:
    if store is None:
        from registrations.stores.django_store import DjangoRegistrationStore

        store = DjangoRegistrationStore()
    if config is None:
        config = RegistrationConfig.from_settings()
    ledger = CapacityLedger(store)
    roles = RoleAssignmentValidator(store)
    waitlist = WaitlistManager(store, ledger, config, clock)
    orders = OrderLifecycle(store, ledger, roles, waitlist, config, clock)
    return RegistrationEngine(
        store=store,
        config=config,
        ledger=ledger,
        roles=roles,
        waitlist=waitlist,
        orders=orders,
    )


__all__ = [
    "CapacityLedger",
    "DiscountResult",
    "OrderItemRequest",
    "OrderLifecycle",
    "OrderRequest",
    "Placement",
    "RegistrationEngine",
    "RoleAssignmentValidator",
    "WaitlistManager",
    "build_engine",
    "calculate_discount",
    "validate_payment_proof",
]
