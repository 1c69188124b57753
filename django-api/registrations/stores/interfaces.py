"""Store interfaces (repository pattern).

Stores must be swappable and return domain models.

Every mutating call is expected to run inside ``store.atomic()``. Reads with
``for_update=True`` lock the row until the surrounding transaction ends, which
is what serializes concurrent admissions against the same session.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from contextlib import AbstractContextManager
from datetime import datetime

from registrations.domain import (
    Addon,
    Order,
    OrderStatus,
    Session,
    SessionId,
    WaitlistEntry,
    WaitlistEntryId,
    WaitlistStatus,
)

# Orders in these states hold their reserved capacity.
ACTIVE_ORDER_STATUSES = frozenset(
    {OrderStatus.PENDING_PAYMENT, OrderStatus.PAYMENT_SUBMITTED, OrderStatus.CONFIRMED}
)


class RegistrationStore(ABC):
    """Interface for session, order and waitlist persistence."""

    @abstractmethod
    def atomic(self) -> AbstractContextManager:
        """Return a context manager for one all-or-nothing unit of work."""
        ...

    @abstractmethod
    def on_commit(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` after the current unit of work commits."""
        ...

    # Sessions and roles

    @abstractmethod
    def get_session(self, session_id: SessionId, *, for_update: bool = False) -> Session | None:
        """Return a session with its roles, or None if not found."""
        ...

    @abstractmethod
    def list_sessions(self) -> list[Session]:
        """Return all sessions ordered by starts_at ascending."""
        ...

    @abstractmethod
    def set_session_registrations(self, session_id: SessionId, value: int) -> None:
        ...

    @abstractmethod
    def set_role_assigned(self, session_id: SessionId, role_key: str, value: int) -> None:
        ...

    # Addons

    @abstractmethod
    def get_addon(self, key: str) -> Addon | None:
        ...

    @abstractmethod
    def count_addon_items(self, session_id: SessionId, addon_key: str) -> int:
        """Count addon items of orders still holding their place."""
        ...

    # Orders

    @abstractmethod
    def order_number_exists(self, order_number: str) -> bool:
        ...

    @abstractmethod
    def add_order(self, order: Order) -> None:
        """Persist a new order together with its items."""
        ...

    @abstractmethod
    def get_order(self, order_number: str, *, for_update: bool = False) -> Order | None:
        ...

    @abstractmethod
    def save_order(self, order: Order) -> None:
        """Persist status, payment and audit fields of an existing order."""
        ...

    @abstractmethod
    def list_orders(self, parent_id: str, status: OrderStatus | None = None) -> list[Order]:
        """Return a parent's orders, newest first."""
        ...

    @abstractmethod
    def list_overdue_order_numbers(self, now: datetime) -> list[str]:
        """Return numbers of pending_payment orders whose deadline has passed."""
        ...

    # Waitlist

    @abstractmethod
    def add_waitlist_entry(self, entry: WaitlistEntry) -> None:
        ...

    @abstractmethod
    def get_waitlist_entry(
        self, entry_id: WaitlistEntryId, *, for_update: bool = False
    ) -> WaitlistEntry | None:
        ...

    @abstractmethod
    def save_waitlist_entry(self, entry: WaitlistEntry) -> None:
        ...

    @abstractmethod
    def list_waitlist(
        self,
        *,
        session_id: SessionId | None = None,
        parent_id: str | None = None,
        statuses: Iterable[WaitlistStatus] | None = None,
    ) -> list[WaitlistEntry]:
        """Return matching entries in FIFO (created_at ascending) order."""
        ...

    @abstractmethod
    def list_lapsed_offer_ids(self, now: datetime) -> list[WaitlistEntryId]:
        """Return ids of offered entries whose claim window has closed."""
        ...
