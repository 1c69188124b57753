"""In-process implementation of the RegistrationStore.

A single re-entrant lock serializes every unit of work, and the outermost
``atomic()`` block snapshots the tables so a failure restores them untouched.
Used by service unit tests and for running the engine without a database.
"""

import threading
from collections.abc import Callable, Iterable
from dataclasses import replace
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
from registrations.stores.interfaces import ACTIVE_ORDER_STATUSES, RegistrationStore


class _Transaction:
    def __init__(self, store: "InMemoryRegistrationStore") -> None:
        self._store = store

    def __enter__(self) -> "_Transaction":
        store = self._store
        store._lock.acquire()
        if store._depth == 0:
            store._snapshot = store._copy_tables()
            store._pending_callbacks = []
        store._depth += 1
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        store = self._store
        store._depth -= 1
        callbacks: list[Callable[[], None]] = []
        if store._depth == 0:
            if exc_type is not None:
                store._restore_tables(store._snapshot)
            else:
                callbacks = store._pending_callbacks
            store._snapshot = None
            store._pending_callbacks = []
        store._lock.release()
        for callback in callbacks:
            callback()
        return False


class InMemoryRegistrationStore(RegistrationStore):
    """Thread-safe dictionary-backed store."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._depth = 0
        self._snapshot: dict | None = None
        self._pending_callbacks: list[Callable[[], None]] = []
        self._sessions: dict[SessionId, Session] = {}
        self._addons: dict[str, Addon] = {}
        self._orders: dict[str, Order] = {}
        self._waitlist: dict[WaitlistEntryId, WaitlistEntry] = {}

    def _copy_tables(self) -> dict:
        return {
            "_sessions": dict(self._sessions),
            "_addons": dict(self._addons),
            "_orders": dict(self._orders),
            "_waitlist": dict(self._waitlist),
        }

    def _restore_tables(self, snapshot: dict) -> None:
        for name, table in snapshot.items():
            setattr(self, name, table)

    def atomic(self) -> _Transaction:
        return _Transaction(self)

    def on_commit(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if self._depth == 0:
                callback()
            else:
                self._pending_callbacks.append(callback)

    # Seeding

    def add_session(self, session: Session) -> None:
        with self._lock:
            self._sessions[session.id] = session

    def add_addon(self, addon: Addon) -> None:
        with self._lock:
            self._addons[addon.key] = addon

    # Sessions and roles

    def get_session(self, session_id: SessionId, *, for_update: bool = False) -> Session | None:
        with self._lock:
            return self._sessions.get(session_id)

    def list_sessions(self) -> list[Session]:
        with self._lock:
            sessions = list(self._sessions.values())
        return sorted(sessions, key=lambda s: (s.starts_at is None, s.starts_at or datetime.min))

    def set_session_registrations(self, session_id: SessionId, value: int) -> None:
        with self._lock:
            session = self._sessions[session_id]
            self._sessions[session_id] = replace(session, current_registrations=value)

    def set_role_assigned(self, session_id: SessionId, role_key: str, value: int) -> None:
        with self._lock:
            session = self._sessions[session_id]
            roles = tuple(
                replace(role, assigned=value) if role.key == role_key else role
                for role in session.roles
            )
            self._sessions[session_id] = replace(session, roles=roles)

    # Addons

    def get_addon(self, key: str) -> Addon | None:
        with self._lock:
            return self._addons.get(key)

    def count_addon_items(self, session_id: SessionId, addon_key: str) -> int:
        with self._lock:
            return sum(
                1
                for order in self._orders.values()
                if order.status in ACTIVE_ORDER_STATUSES
                for item in order.items
                if item.session_id == session_id and item.addon_key == addon_key
            )

    # Orders

    def order_number_exists(self, order_number: str) -> bool:
        with self._lock:
            return order_number in self._orders

    def add_order(self, order: Order) -> None:
        with self._lock:
            self._orders[order.order_number] = order

    def get_order(self, order_number: str, *, for_update: bool = False) -> Order | None:
        with self._lock:
            return self._orders.get(order_number)

    def save_order(self, order: Order) -> None:
        with self._lock:
            stored = self._orders[order.order_number]
            self._orders[order.order_number] = replace(order, items=stored.items)

    def list_orders(self, parent_id: str, status: OrderStatus | None = None) -> list[Order]:
        with self._lock:
            orders = [
                order
                for order in self._orders.values()
                if order.parent_id == parent_id and (status is None or order.status == status)
            ]
        return sorted(orders, key=lambda o: o.created_at, reverse=True)

    def list_overdue_order_numbers(self, now: datetime) -> list[str]:
        with self._lock:
            return [
                order.order_number
                for order in sorted(self._orders.values(), key=lambda o: o.payment_deadline)
                if order.is_overdue(now)
            ]

    # Waitlist

    def add_waitlist_entry(self, entry: WaitlistEntry) -> None:
        with self._lock:
            self._waitlist[entry.id] = entry

    def get_waitlist_entry(
        self, entry_id: WaitlistEntryId, *, for_update: bool = False
    ) -> WaitlistEntry | None:
        with self._lock:
            return self._waitlist.get(entry_id)

    def save_waitlist_entry(self, entry: WaitlistEntry) -> None:
        with self._lock:
            self._waitlist[entry.id] = entry

    def list_waitlist(
        self,
        *,
        session_id: SessionId | None = None,
        parent_id: str | None = None,
        statuses: Iterable[WaitlistStatus] | None = None,
    ) -> list[WaitlistEntry]:
        wanted = set(statuses) if statuses is not None else None
        with self._lock:
            entries = [
                entry
                for entry in self._waitlist.values()
                if (session_id is None or entry.session_id == session_id)
                and (parent_id is None or entry.parent_id == parent_id)
                and (wanted is None or entry.status in wanted)
            ]
        return sorted(entries, key=lambda e: e.created_at)

    def list_lapsed_offer_ids(self, now: datetime) -> list[WaitlistEntryId]:
        with self._lock:
            lapsed = [entry for entry in self._waitlist.values() if entry.offer_lapsed(now)]
        return [entry.id for entry in sorted(lapsed, key=lambda e: e.expires_at)]
