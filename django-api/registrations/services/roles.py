"""Character role validation.

Checks that a requested role belongs to the session and still has room
before it is attached to an order item.
"""

import logging
from collections import Counter
from collections.abc import Iterable

from registrations.domain import CharacterRole, Session, SessionId
from registrations.domain.errors import (
    RoleFullError,
    RoleNotFoundError,
    RoleNotRequiredError,
    SessionNotFoundError,
)
from registrations.stores.interfaces import RegistrationStore

logger = logging.getLogger(__name__)


def resolve_role(session: Session, role_key: str, requested: int = 1) -> CharacterRole:
    """Return the role if ``requested`` more registrants fit into it.

    Raises:
        RoleNotRequiredError: If the session has no configured roles.
        RoleNotFoundError: If ``role_key`` is not one of the session's roles.
        RoleFullError: If the role lacks room for ``requested`` registrants.
    """
    if not session.roles:
        raise RoleNotRequiredError(str(session.id))
    role = session.role(role_key)
    if role is None:
        raise RoleNotFoundError(str(session.id), role_key)
    if role.assigned + requested > role.capacity.value:
        raise RoleFullError(str(session.id), role_key, remaining=role.available, requested=requested)
    return role


class RoleAssignmentValidator:
    """Referential and capacity checks for role assignments."""

    def __init__(self, store: RegistrationStore) -> None:
        self._store = store

    def _session(self, session_id: SessionId) -> Session:
        session = self._store.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(str(session_id))
        return session

    def requires_role(self, session_id: SessionId) -> bool:
        return bool(self._session(session_id).roles)

    def validate(self, session_id: SessionId, role_key: str) -> CharacterRole:
        return resolve_role(self._session(session_id), role_key)

    def validate_all(self, assignments: Iterable[tuple[SessionId, str | None]]) -> None:
        """Validate a whole order's assignments, failing on the first bad one.

        Repeated requests for the same role within the batch count against
        its capacity together.
        """
        requested: Counter[tuple[SessionId, str]] = Counter()
        sessions: dict[SessionId, Session] = {}
        for session_id, role_key in assignments:
            if role_key is None:
                continue
            if session_id not in sessions:
                sessions[session_id] = self._session(session_id)
            requested[(session_id, role_key)] += 1
            try:
                resolve_role(sessions[session_id], role_key, requested[(session_id, role_key)])
            except (RoleNotRequiredError, RoleNotFoundError, RoleFullError) as exc:
                logger.info("Role assignment rejected for session %s: %s", session_id, exc)
                raise
