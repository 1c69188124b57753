"""Waitlist for fully booked sessions.

Entries move ``waiting -> offered -> claimed`` or ``offered -> expired``.
An offered entry holds one reserved place in the ledger, so a freed place can
only ever be claimed once. Promotion is FIFO by ``created_at`` and always runs
inside the same unit of work as the release that freed the place.
"""

import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime

from django.utils import timezone

from registrations.conf import RegistrationConfig
from registrations.domain import (
    OrderId,
    SessionId,
    WaitlistEntry,
    WaitlistEntryId,
    WaitlistStatus,
)
from registrations.domain.errors import (
    AlreadyWaitlistedError,
    CapacityExceededError,
    DomainError,
    InvalidStateTransitionError,
    OfferExpiredError,
    RoleFullError,
    RoleNotFoundError,
    RoleNotRequiredError,
    SessionInactiveError,
    SessionNotFoundError,
    WaitlistEntryNotFoundError,
    WaitlistNotNeededError,
)
from registrations.services.capacity import CapacityLedger
from registrations.services.notifications import (
    notify_after_commit,
    waitlist_entry_expired,
    waitlist_offer_made,
)
from registrations.services.roles import resolve_role
from registrations.stores.interfaces import RegistrationStore

logger = logging.getLogger(__name__)

LIVE_STATUSES = (WaitlistStatus.WAITING, WaitlistStatus.OFFERED)


class WaitlistManager:
    """Owns waitlist entry status."""

    def __init__(
        self,
        store: RegistrationStore,
        ledger: CapacityLedger,
        config: RegistrationConfig | None = None,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._config = config or RegistrationConfig()
        self._clock = clock

    def _locked_entry(self, entry_id: WaitlistEntryId) -> WaitlistEntry:
        entry = self._store.get_waitlist_entry(entry_id, for_update=True)
        if entry is None:
            raise WaitlistEntryNotFoundError(str(entry_id))
        return entry

    def join(
        self,
        session_id: SessionId,
        parent_id: str,
        child_id: str,
        role_key: str | None = None,
    ) -> WaitlistEntry:
        """Queue a registrant for a full session or role.

        Raises:
            WaitlistNotNeededError: If the session and role still have room.
            AlreadyWaitlistedError: If the child already has a live entry.
        """
        with self._store.atomic():
            session = self._store.get_session(session_id, for_update=True)
            if session is None:
                raise SessionNotFoundError(str(session_id))
            if not session.is_active:
                raise SessionInactiveError(str(session_id), session.status.value)

            role_full = False
            if role_key is not None:
                try:
                    resolve_role(session, role_key)
                except RoleFullError:
                    role_full = True
            if session.public_remaining > 0 and not role_full:
                raise WaitlistNotNeededError(str(session_id))

            live = self._store.list_waitlist(session_id=session_id, statuses=LIVE_STATUSES)
            if any(entry.child_id == child_id for entry in live):
                raise AlreadyWaitlistedError(str(session_id), child_id)

            entry = WaitlistEntry(
                id=WaitlistEntryId.new(),
                session_id=session_id,
                parent_id=parent_id,
                child_id=child_id,
                status=WaitlistStatus.WAITING,
                created_at=self._clock(),
                role_key=role_key,
            )
            self._store.add_waitlist_entry(entry)

        logger.info("Waitlist entry %s created for session %s", entry.id, session_id)
        return entry

    def promote(self, session_id: SessionId) -> list[WaitlistEntry]:
        """Offer free places to waiting entries in FIFO order.

        Entries whose role is still full stay waiting; promotion stops as soon
        as the session itself has no room left.
        """
        offered: list[WaitlistEntry] = []
        with self._store.atomic():
            waiting = self._store.list_waitlist(
                session_id=session_id, statuses=(WaitlistStatus.WAITING,)
            )
            for entry in waiting:
                try:
                    self._ledger.check_and_reserve(session_id, entry.role_key)
                except RoleFullError:
                    continue
                except CapacityExceededError:
                    break
                except SessionInactiveError:
                    break
                except (RoleNotFoundError, RoleNotRequiredError):
                    logger.warning(
                        "Waitlist entry %s references role %s no longer offered by session %s",
                        entry.id,
                        entry.role_key,
                        session_id,
                    )
                    continue

                now = self._clock()
                entry = replace(
                    entry,
                    status=WaitlistStatus.OFFERED,
                    offered_at=now,
                    expires_at=now + self._config.offer_window,
                )
                self._store.save_waitlist_entry(entry)
                notify_after_commit(self._store, waitlist_offer_made, sender=self.__class__, entry=entry)
                offered.append(entry)

        for entry in offered:
            logger.info(
                "Waitlist entry %s offered a place in session %s until %s",
                entry.id,
                session_id,
                entry.expires_at.isoformat(),
            )
        return offered

    def claim(self, entry_id: WaitlistEntryId, order_id: OrderId) -> WaitlistEntry:
        """Mark an offer claimed; the held place passes to ``order_id``.

        Call inside the unit of work that creates the order.

        Raises:
            OfferExpiredError: If the claim window has closed.
            InvalidStateTransitionError: If the entry is not offered.
        """
        with self._store.atomic():
            entry = self._locked_entry(entry_id)
            if entry.status != WaitlistStatus.OFFERED:
                raise InvalidStateTransitionError(entry.status.value, WaitlistStatus.CLAIMED.value)
            if entry.offer_lapsed(self._clock()):
                raise OfferExpiredError(str(entry_id))
            entry = replace(entry, status=WaitlistStatus.CLAIMED, claimed_order_id=order_id)
            self._store.save_waitlist_entry(entry)
        logger.info("Waitlist entry %s claimed by order %s", entry_id, order_id)
        return entry

    def expire_offer(self, entry_id: WaitlistEntryId) -> bool:
        """Expire a lapsed offer, free its place and offer it onward."""
        with self._store.atomic():
            entry = self._locked_entry(entry_id)
            if not entry.offer_lapsed(self._clock()):
                return False
            self._close(entry)
        logger.info("Waitlist offer %s expired", entry_id)
        return True

    def expire_lapsed_offers(self) -> int:
        """Sweep every lapsed offer. Returns how many were expired."""
        expired = 0
        for entry_id in self._store.list_lapsed_offer_ids(self._clock()):
            try:
                if self.expire_offer(entry_id):
                    expired += 1
            except DomainError:
                logger.exception("Could not expire waitlist offer %s", entry_id)
        if expired:
            logger.info("Expired %d lapsed waitlist offer(s)", expired)
        return expired

    def withdraw(self, entry_id: WaitlistEntryId, parent_id: str | None = None) -> WaitlistEntry:
        """Remove a live entry at the parent's request."""
        with self._store.atomic():
            entry = self._locked_entry(entry_id)
            if parent_id is not None and entry.parent_id != parent_id:
                raise WaitlistEntryNotFoundError(str(entry_id))
            if not entry.is_live:
                raise InvalidStateTransitionError(entry.status.value, WaitlistStatus.EXPIRED.value)
            entry = self._close(entry)
        logger.info("Waitlist entry %s withdrawn", entry_id)
        return entry

    def _close(self, entry: WaitlistEntry) -> WaitlistEntry:
        held_place = entry.status == WaitlistStatus.OFFERED
        entry = replace(entry, status=WaitlistStatus.EXPIRED)
        self._store.save_waitlist_entry(entry)
        notify_after_commit(self._store, waitlist_entry_expired, sender=self.__class__, entry=entry)
        if held_place:
            self._ledger.release(entry.session_id, entry.role_key)
            self.promote(entry.session_id)
        return entry

    def get(self, entry_id: WaitlistEntryId) -> WaitlistEntry:
        entry = self._store.get_waitlist_entry(entry_id)
        if entry is None:
            raise WaitlistEntryNotFoundError(str(entry_id))
        return entry

    def list_for_session(self, session_id: SessionId) -> list[WaitlistEntry]:
        return self._store.list_waitlist(session_id=session_id)

    def list_for_parent(self, parent_id: str) -> list[WaitlistEntry]:
        return self._store.list_waitlist(parent_id=parent_id)

    def position(self, entry_id: WaitlistEntryId) -> int | None:
        """1-based queue position of a waiting entry, None otherwise."""
        entry = self.get(entry_id)
        if entry.status != WaitlistStatus.WAITING:
            return None
        waiting = self._store.list_waitlist(
            session_id=entry.session_id, statuses=(WaitlistStatus.WAITING,)
        )
        for index, other in enumerate(waiting, start=1):
            if other.id == entry.id:
                return index
        return None
