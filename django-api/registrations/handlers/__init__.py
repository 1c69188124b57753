from registrations.handlers.views import (
    OrderCancelView,
    OrderConfirmView,
    OrderDetailView,
    OrderListView,
    PaymentProofView,
    RoleAvailabilityView,
    SessionDetailView,
    SessionListView,
    WaitlistClaimView,
    WaitlistEntryView,
    WaitlistView,
)

__all__ = [
    "OrderCancelView",
    "OrderConfirmView",
    "OrderDetailView",
    "OrderListView",
    "PaymentProofView",
    "RoleAvailabilityView",
    "SessionDetailView",
    "SessionListView",
    "WaitlistClaimView",
    "WaitlistEntryView",
    "WaitlistView",
]
