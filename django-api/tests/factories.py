"""Builders for domain objects used across the test suite."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from registrations.domain import (
    Capacity,
    CharacterRole,
    Money,
    Session,
    SessionId,
    SessionStatus,
)

START = datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc)


class FakeClock:
    """Injectable clock that only moves when told to."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


def make_session(
    capacity: int = 10,
    *,
    hidden_buffer: int = 0,
    registered: int = 0,
    price: str = "2800",
    roles: dict[str, int] | None = None,
    status: SessionStatus = SessionStatus.ACTIVE,
    title: str = "Voice acting workshop",
) -> Session:
    session_id = SessionId(uuid4())
    return Session(
        id=session_id,
        title=title,
        price=Money(Decimal(price)),
        capacity=Capacity(capacity),
        hidden_buffer=Capacity(hidden_buffer),
        current_registrations=registered,
        status=status,
        starts_at=START + timedelta(days=14),
        roles=tuple(
            CharacterRole(session_id=session_id, key=key, name=key.title(), capacity=Capacity(cap))
            for key, cap in (roles or {}).items()
        ),
    )
