"""Django ORM models (persistence layer).

These models handle database concerns. Domain logic lives in domain/models.py.
"""

import uuid

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from registrations.domain import OrderStatus, PaymentMethod, SessionStatus, WaitlistStatus


def _choices(enum) -> list[tuple[str, str]]:
    return [(member.value, member.value.replace("_", " ")) for member in enum]


class Session(models.Model):
    """Persistence model for course sessions."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    title = models.CharField(max_length=255)
    starts_at = models.DateTimeField(null=True, blank=True)
    price = models.DecimalField(max_digits=10, decimal_places=2)
    capacity = models.PositiveIntegerField()
    hidden_buffer = models.PositiveIntegerField(default=0)
    current_registrations = models.PositiveIntegerField(default=0)
    status = models.CharField(
        max_length=20, choices=_choices(SessionStatus), default=SessionStatus.ACTIVE.value
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["starts_at"]
        indexes = [
            models.Index(fields=["status", "starts_at"], name="registratio_status_7c1e2a_idx"),
        ]

    def __str__(self) -> str:
        return self.title


class CharacterRole(models.Model):
    """Persistence model for per-session character roles."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    session = models.ForeignKey(Session, on_delete=models.CASCADE, related_name="roles")
    key = models.SlugField(max_length=50)
    name = models.CharField(max_length=100)
    capacity = models.PositiveIntegerField(
        default=4, validators=[MinValueValidator(1), MaxValueValidator(15)]
    )
    assigned = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["key"]
        constraints = [
            models.UniqueConstraint(fields=["session", "key"], name="unique_role_per_session"),
        ]

    def __str__(self) -> str:
        return f"{self.session.title} - {self.name}"


class Addon(models.Model):
    """Persistence model for purchasable extras."""

    key = models.SlugField(max_length=50, primary_key=True)
    name = models.CharField(max_length=255)
    price = models.DecimalField(max_digits=10, decimal_places=2)
    max_per_session = models.PositiveIntegerField(default=4)

    def __str__(self) -> str:
        return self.name


class Order(models.Model):
    """Persistence model for orders."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order_number = models.CharField(max_length=20, unique=True)
    parent_id = models.CharField(max_length=64, db_index=True)
    status = models.CharField(max_length=20, choices=_choices(OrderStatus))
    total_amount = models.DecimalField(max_digits=10, decimal_places=2)
    discount_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    final_amount = models.DecimalField(max_digits=10, decimal_places=2)
    group_code = models.CharField(max_length=50, blank=True, null=True)
    payment_method = models.CharField(max_length=20, choices=_choices(PaymentMethod))
    payment_proof_url = models.CharField(max_length=500, blank=True, null=True)
    payment_deadline = models.DateTimeField()
    notes = models.TextField(blank=True, null=True)
    confirmed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.CharField(max_length=255, blank=True, null=True)
    created_at = models.DateTimeField()
    updated_at = models.DateTimeField()

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "payment_deadline"], name="registratio_status_3f9d41_idx"),
        ]

    def __str__(self) -> str:
        return self.order_number


class OrderItem(models.Model):
    """Persistence model for order lines."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    session = models.ForeignKey(Session, on_delete=models.PROTECT, related_name="order_items")
    child_id = models.CharField(max_length=64)
    role_key = models.SlugField(max_length=50, blank=True, null=True)
    addon = models.ForeignKey(
        Addon, on_delete=models.PROTECT, related_name="order_items", null=True, blank=True
    )
    price = models.DecimalField(max_digits=10, decimal_places=2)
    discount_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    position = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["position"]
        indexes = [
            models.Index(fields=["session", "addon"], name="registratio_session_8a2b57_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.order.order_number} - {self.child_id}"


class WaitlistEntry(models.Model):
    """Persistence model for waitlist entries."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    session = models.ForeignKey(Session, on_delete=models.CASCADE, related_name="waitlist")
    parent_id = models.CharField(max_length=64, db_index=True)
    child_id = models.CharField(max_length=64)
    role_key = models.SlugField(max_length=50, blank=True, null=True)
    status = models.CharField(
        max_length=20, choices=_choices(WaitlistStatus), default=WaitlistStatus.WAITING.value
    )
    offered_at = models.DateTimeField(null=True, blank=True)
    expires_at = models.DateTimeField(null=True, blank=True)
    claimed_order = models.ForeignKey(
        Order, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    created_at = models.DateTimeField()
    # Join order within the session; breaks ties between equal timestamps.
    sequence = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["created_at", "sequence"]
        verbose_name_plural = "waitlist entries"
        indexes = [
            models.Index(fields=["session", "status", "created_at"], name="registratio_session_d41f90_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.session.title} - {self.child_id} ({self.status})"
