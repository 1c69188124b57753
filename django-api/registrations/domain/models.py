"""Domain models representing persisted state.

These are pure domain objects with no API input rules.
Django ORM models are in registrations/models.py (persistence layer).
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum

from registrations.domain.errors import InvalidStateTransitionError
from registrations.domain.value_objects import (
    Capacity,
    Money,
    OrderId,
    SessionId,
    WaitlistEntryId,
)


class SessionStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class OrderStatus(str, Enum):
    PENDING_PAYMENT = "pending_payment"
    PAYMENT_SUBMITTED = "payment_submitted"
    CONFIRMED = "confirmed"
    CANCELLED_TIMEOUT = "cancelled_timeout"
    CANCELLED_MANUAL = "cancelled_manual"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_ORDER_STATUSES


TERMINAL_ORDER_STATUSES = frozenset(
    {OrderStatus.CONFIRMED, OrderStatus.CANCELLED_TIMEOUT, OrderStatus.CANCELLED_MANUAL}
)

# Every legal lifecycle edge. Anything else is an InvalidStateTransitionError.
ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING_PAYMENT: frozenset(
        {
            OrderStatus.PAYMENT_SUBMITTED,
            OrderStatus.CANCELLED_TIMEOUT,
            OrderStatus.CANCELLED_MANUAL,
        }
    ),
    OrderStatus.PAYMENT_SUBMITTED: frozenset(
        {OrderStatus.CONFIRMED, OrderStatus.CANCELLED_MANUAL}
    ),
    OrderStatus.CONFIRMED: frozenset(),
    OrderStatus.CANCELLED_TIMEOUT: frozenset(),
    OrderStatus.CANCELLED_MANUAL: frozenset(),
}


class PaymentMethod(str, Enum):
    BANK_TRANSFER = "bank_transfer"
    LINE_PAY = "line_pay"


class WaitlistStatus(str, Enum):
    WAITING = "waiting"
    OFFERED = "offered"
    CLAIMED = "claimed"
    EXPIRED = "expired"


@dataclass(frozen=True)
class CharacterRole:
    """A sub-resource of a session with its own capacity."""

    session_id: SessionId
    key: str
    name: str
    capacity: Capacity
    assigned: int = 0

    @property
    def available(self) -> int:
        return max(0, self.capacity.value - self.assigned)


@dataclass(frozen=True)
class Addon:
    """Purchasable extra that is scheduled against a session.

    Addons never consume session or role capacity.
    """

    key: str
    name: str
    price: Money
    max_per_session: int


@dataclass(frozen=True)
class Session:
    """Domain representation of a Session.

    ``hidden_buffer`` is read only by the ledger's override admission path.
    """

    id: SessionId
    title: str
    price: Money
    capacity: Capacity
    hidden_buffer: Capacity
    current_registrations: int
    status: SessionStatus
    starts_at: datetime | None = None
    roles: tuple[CharacterRole, ...] = ()

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE

    @property
    def public_remaining(self) -> int:
        return self.capacity.value - self.current_registrations

    @property
    def hard_limit(self) -> int:
        return self.capacity.value + self.hidden_buffer.value

    def role(self, key: str) -> CharacterRole | None:
        for role in self.roles:
            if role.key == key:
                return role
        return None


@dataclass(frozen=True)
class SessionAvailability:
    """Public availability figures. Never carries the hidden buffer."""

    session_id: SessionId
    title: str
    status: SessionStatus
    capacity: int
    registered: int

    @property
    def available(self) -> int:
        return max(0, self.capacity - self.registered)

    @property
    def is_waitlist_only(self) -> bool:
        return self.registered >= self.capacity


@dataclass(frozen=True)
class RoleAvailability:
    key: str
    name: str
    capacity: int
    assigned: int

    @property
    def available(self) -> int:
        return max(0, self.capacity - self.assigned)


@dataclass(frozen=True)
class ReservationToken:
    """Proof that the ledger admitted ``count`` registrants."""

    session_id: SessionId
    role_key: str | None
    count: int
    override: bool = False


@dataclass(frozen=True)
class OrderItem:
    """A single registrant (or addon) line of an order."""

    session_id: SessionId
    child_id: str
    price: Money
    discount_amount: Money = field(default_factory=Money.zero)
    role_key: str | None = None
    addon_key: str | None = None

    @property
    def is_addon(self) -> bool:
        return self.addon_key is not None


@dataclass(frozen=True)
class Order:
    """Domain representation of an Order."""

    id: OrderId
    order_number: str
    parent_id: str
    status: OrderStatus
    total_amount: Money
    discount_amount: Money
    final_amount: Money
    payment_deadline: datetime
    payment_method: PaymentMethod
    created_at: datetime
    updated_at: datetime
    items: tuple[OrderItem, ...] = ()
    group_code: str | None = None
    notes: str | None = None
    payment_proof_url: str | None = None
    confirmed_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None

    def is_overdue(self, now: datetime) -> bool:
        return self.status == OrderStatus.PENDING_PAYMENT and now > self.payment_deadline

    def transition(self, target: OrderStatus, now: datetime, **changes) -> "Order":
        """Return a copy moved to ``target``.

        Raises:
            InvalidStateTransitionError: If the edge is not in ORDER_TRANSITIONS.
        """
        if target not in ORDER_TRANSITIONS[self.status]:
            raise InvalidStateTransitionError(self.status.value, target.value)
        return replace(self, status=target, updated_at=now, **changes)

    @property
    def capacity_items(self) -> tuple[OrderItem, ...]:
        """Items that hold a session (and maybe role) slot."""
        return tuple(item for item in self.items if not item.is_addon)


@dataclass(frozen=True)
class WaitlistEntry:
    """Domain representation of a waitlist entry.

    An ``offered`` entry holds one reserved slot in the ledger.
    """

    id: WaitlistEntryId
    session_id: SessionId
    parent_id: str
    child_id: str
    status: WaitlistStatus
    created_at: datetime
    role_key: str | None = None
    offered_at: datetime | None = None
    expires_at: datetime | None = None
    claimed_order_id: OrderId | None = None

    @property
    def is_live(self) -> bool:
        return self.status in (WaitlistStatus.WAITING, WaitlistStatus.OFFERED)

    def offer_lapsed(self, now: datetime) -> bool:
        return (
            self.status == WaitlistStatus.OFFERED
            and self.expires_at is not None
            and now > self.expires_at
        )
