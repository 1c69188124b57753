"""Session and role capacity ledger.

The ledger is the only writer of ``current_registrations`` and role
``assigned`` counters. Admission is a single locked read-check-increment, so
two requests racing for the last place cannot both succeed.
"""

import logging

from registrations.domain import (
    Addon,
    ReservationToken,
    RoleAvailability,
    Session,
    SessionAvailability,
    SessionId,
)
from registrations.domain.errors import (
    AddonLimitReachedError,
    AddonNotFoundError,
    CapacityExceededError,
    SessionInactiveError,
    SessionNotFoundError,
)
from registrations.services.roles import resolve_role
from registrations.stores.interfaces import RegistrationStore

logger = logging.getLogger(__name__)


def _availability(session: Session) -> SessionAvailability:
    return SessionAvailability(
        session_id=session.id,
        title=session.title,
        status=session.status,
        capacity=session.capacity.value,
        registered=session.current_registrations,
    )


class CapacityLedger:
    """Authoritative admission control for sessions and character roles."""

    def __init__(self, store: RegistrationStore) -> None:
        self._store = store

    def _locked_session(self, session_id: SessionId) -> Session:
        session = self._store.get_session(session_id, for_update=True)
        if session is None:
            raise SessionNotFoundError(str(session_id))
        return session

    def check_and_reserve(
        self,
        session_id: SessionId,
        role_key: str | None = None,
        count: int = 1,
        *,
        override: bool = False,
    ) -> ReservationToken:
        """Admit ``count`` registrants into a session (and role) or fail.

        The public path admits up to ``capacity``. ``override`` is for
        administrative bookings and may also use the hidden buffer.

        Raises:
            SessionNotFoundError: If the session does not exist.
            SessionInactiveError: If the session is cancelled or completed.
            CapacityExceededError: If the session has no room.
            RoleFullError: If the role has no room.
            RoleNotFoundError: If the role is not configured for the session.
            RoleNotRequiredError: If the session has no roles.
        """
        if count < 1:
            raise ValueError("count must be positive")

        with self._store.atomic():
            session = self._locked_session(session_id)
            if not session.is_active:
                raise SessionInactiveError(str(session_id), session.status.value)

            limit = session.hard_limit if override else session.capacity.value
            remaining = limit - session.current_registrations
            if count > remaining:
                logger.info(
                    "Admission rejected for session %s: %d requested, %d remaining",
                    session_id,
                    count,
                    max(0, remaining),
                )
                raise CapacityExceededError(
                    str(session_id),
                    remaining=max(0, remaining),
                    requested=count,
                    role_key=role_key,
                )

            role = None
            if role_key is not None:
                role = resolve_role(session, role_key, count)

            self._store.set_session_registrations(
                session_id, session.current_registrations + count
            )
            if role is not None:
                self._store.set_role_assigned(session_id, role.key, role.assigned + count)

        logger.info(
            "Reserved %d place(s) in session %s%s%s",
            count,
            session_id,
            f" role {role_key}" if role_key else "",
            " (override)" if override else "",
        )
        return ReservationToken(
            session_id=session_id, role_key=role_key, count=count, override=override
        )

    def release(self, session_id: SessionId, role_key: str | None = None, count: int = 1) -> None:
        """Give back ``count`` places. Counters never drop below zero."""
        with self._store.atomic():
            session = self._locked_session(session_id)
            if count > session.current_registrations:
                logger.warning(
                    "Release of %d exceeds %d registrations in session %s",
                    count,
                    session.current_registrations,
                    session_id,
                )
            self._store.set_session_registrations(
                session_id, max(0, session.current_registrations - count)
            )
            if role_key is not None:
                role = session.role(role_key)
                if role is not None:
                    self._store.set_role_assigned(session_id, role_key, max(0, role.assigned - count))
        logger.info(
            "Released %d place(s) in session %s%s",
            count,
            session_id,
            f" role {role_key}" if role_key else "",
        )

    def release_token(self, token: ReservationToken) -> None:
        self.release(token.session_id, token.role_key, token.count)

    def reserve_addon(self, session_id: SessionId, addon_key: str, count: int = 1) -> Addon:
        """Check the per-session addon limit under the session lock.

        Addons never touch the registration counters; the caller must persist
        the addon items in the same unit of work.
        """
        with self._store.atomic():
            session = self._locked_session(session_id)
            if not session.is_active:
                raise SessionInactiveError(str(session_id), session.status.value)
            addon = self._store.get_addon(addon_key)
            if addon is None:
                raise AddonNotFoundError(addon_key)
            used = self._store.count_addon_items(session_id, addon_key)
            if used + count > addon.max_per_session:
                raise AddonLimitReachedError(str(session_id), addon_key)
        return addon

    def session_availability(self, session_id: SessionId) -> SessionAvailability:
        session = self._store.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(str(session_id))
        return _availability(session)

    def list_session_availability(self) -> list[SessionAvailability]:
        return [_availability(session) for session in self._store.list_sessions()]

    def role_availability(self, session_id: SessionId) -> list[RoleAvailability]:
        session = self._store.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(str(session_id))
        return [
            RoleAvailability(
                key=role.key,
                name=role.name,
                capacity=role.capacity.value,
                assigned=role.assigned,
            )
            for role in session.roles
        ]
