from registrations.domain.models import (
    Addon,
    CharacterRole,
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    ReservationToken,
    RoleAvailability,
    Session,
    SessionAvailability,
    SessionStatus,
    WaitlistEntry,
    WaitlistStatus,
)
from registrations.domain.value_objects import (
    Capacity,
    Money,
    OrderId,
    SessionId,
    WaitlistEntryId,
)

__all__ = [
    "Addon",
    "CharacterRole",
    "Order",
    "OrderItem",
    "OrderStatus",
    "PaymentMethod",
    "ReservationToken",
    "RoleAvailability",
    "Session",
    "SessionAvailability",
    "SessionStatus",
    "WaitlistEntry",
    "WaitlistStatus",
    "SessionId",
    "OrderId",
    "WaitlistEntryId",
    "Money",
    "Capacity",
]
