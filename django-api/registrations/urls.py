from django.urls import path

from registrations.handlers import (
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

urlpatterns = [
    path("sessions", SessionListView.as_view(), name="session-list"),
    path("sessions/<str:session_id>", SessionDetailView.as_view(), name="session-detail"),
    path(
        "sessions/<str:session_id>/roles",
        RoleAvailabilityView.as_view(),
        name="session-roles",
    ),
    path("orders", OrderListView.as_view(), name="order-list"),
    path("orders/<str:order_number>", OrderDetailView.as_view(), name="order-detail"),
    path(
        "orders/<str:order_number>/payment-proof",
        PaymentProofView.as_view(),
        name="order-payment-proof",
    ),
    path("orders/<str:order_number>/confirm", OrderConfirmView.as_view(), name="order-confirm"),
    path("orders/<str:order_number>/cancel", OrderCancelView.as_view(), name="order-cancel"),
    path("waitlist", WaitlistView.as_view(), name="waitlist"),
    path("waitlist/<str:entry_id>", WaitlistEntryView.as_view(), name="waitlist-entry"),
    path("waitlist/<str:entry_id>/claim", WaitlistClaimView.as_view(), name="waitlist-claim"),
]
