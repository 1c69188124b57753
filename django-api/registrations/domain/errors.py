"""Domain error codes for the registrations module."""

from dataclasses import dataclass
from enum import Enum


class ErrorCode(Enum):
    """Domain error codes."""

    INVALID_ID = "INVALID_ID"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    SESSION_INACTIVE = "SESSION_INACTIVE"
    CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"
    ROLE_FULL = "ROLE_FULL"
    ROLE_NOT_FOUND = "ROLE_NOT_FOUND"
    ROLE_NOT_REQUIRED = "ROLE_NOT_REQUIRED"
    ADDON_NOT_FOUND = "ADDON_NOT_FOUND"
    ADDON_LIMIT_REACHED = "ADDON_LIMIT_REACHED"
    EMPTY_ORDER = "EMPTY_ORDER"
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    ORDER_EXPIRED = "ORDER_EXPIRED"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"
    PAYMENT_PROOF_INVALID = "PAYMENT_PROOF_INVALID"
    WAITLIST_ENTRY_NOT_FOUND = "WAITLIST_ENTRY_NOT_FOUND"
    WAITLIST_NOT_NEEDED = "WAITLIST_NOT_NEEDED"
    ALREADY_WAITLISTED = "ALREADY_WAITLISTED"
    OFFER_EXPIRED = "OFFER_EXPIRED"


@dataclass(frozen=True)
class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class InvalidIdError(DomainError):
    """Raised when an identifier is malformed."""

    def __init__(self, kind: str = "resource") -> None:
        super().__init__(
            code=ErrorCode.INVALID_ID,
            message=f"Invalid {kind} ID format",
        )


class SessionNotFoundError(DomainError):
    """Raised when a session does not exist."""

    def __init__(self, session_id: str) -> None:
        super().__init__(
            code=ErrorCode.SESSION_NOT_FOUND,
            message="Session not found",
        )
        object.__setattr__(self, "session_id", session_id)


class SessionInactiveError(DomainError):
    """Raised when a session is cancelled or completed."""

    def __init__(self, session_id: str, status: str) -> None:
        super().__init__(
            code=ErrorCode.SESSION_INACTIVE,
            message=f"Session is {status} and no longer accepts registrations",
        )
        object.__setattr__(self, "session_id", session_id)


class CapacityExceededError(DomainError):
    """Raised when a session or role has no room for the requested count.

    Recoverable: the caller may offer the waitlist instead.
    """

    def __init__(
        self,
        session_id: str,
        remaining: int,
        requested: int,
        role_key: str | None = None,
        code: ErrorCode = ErrorCode.CAPACITY_EXCEEDED,
        message: str | None = None,
    ) -> None:
        if message is None:
            if remaining <= 0:
                message = "This session is fully booked"
            else:
                message = f"Only {remaining} places remaining, {requested} requested"
        super().__init__(code=code, message=message)
        object.__setattr__(self, "session_id", session_id)
        object.__setattr__(self, "role_key", role_key)
        object.__setattr__(self, "remaining", remaining)
        object.__setattr__(self, "requested", requested)


class RoleFullError(CapacityExceededError):
    """Raised when a character role has no free sub-capacity."""

    def __init__(self, session_id: str, role_key: str, remaining: int = 0, requested: int = 1) -> None:
        super().__init__(
            session_id=session_id,
            remaining=remaining,
            requested=requested,
            role_key=role_key,
            code=ErrorCode.ROLE_FULL,
            message=f"Role {role_key} is fully booked. Please select a different character.",
        )


class RoleNotFoundError(DomainError):
    """Raised when a role is not configured for the session."""

    def __init__(self, session_id: str, role_key: str) -> None:
        super().__init__(
            code=ErrorCode.ROLE_NOT_FOUND,
            message=f"Invalid role: {role_key} is not available for this session",
        )
        object.__setattr__(self, "session_id", session_id)
        object.__setattr__(self, "role_key", role_key)


class RoleNotRequiredError(DomainError):
    """Raised when a role is supplied for a session without roles."""

    def __init__(self, session_id: str) -> None:
        super().__init__(
            code=ErrorCode.ROLE_NOT_REQUIRED,
            message="This session does not require role selection",
        )
        object.__setattr__(self, "session_id", session_id)


class AddonNotFoundError(DomainError):
    """Raised when an addon key is unknown."""

    def __init__(self, addon_key: str) -> None:
        super().__init__(
            code=ErrorCode.ADDON_NOT_FOUND,
            message=f"Unknown addon: {addon_key}",
        )


class AddonLimitReachedError(DomainError):
    """Raised when an addon is sold out for a session."""

    def __init__(self, session_id: str, addon_key: str) -> None:
        super().__init__(
            code=ErrorCode.ADDON_LIMIT_REACHED,
            message=f"Addon {addon_key} is sold out for this session",
        )
        object.__setattr__(self, "session_id", session_id)


class EmptyOrderError(DomainError):
    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.EMPTY_ORDER,
            message="Order must contain at least one item",
        )


class OrderNotFoundError(DomainError):
    def __init__(self, order_number: str) -> None:
        super().__init__(
            code=ErrorCode.ORDER_NOT_FOUND,
            message="Order not found",
        )
        object.__setattr__(self, "order_number", order_number)


class OrderExpiredError(DomainError):
    """Raised when payment arrives after the deadline.

    The reserved capacity has already been released when this is raised.
    """

    def __init__(self, order_number: str) -> None:
        super().__init__(
            code=ErrorCode.ORDER_EXPIRED,
            message="The payment deadline for this order has passed",
        )
        object.__setattr__(self, "order_number", order_number)


class InvalidStateTransitionError(DomainError):
    """Raised on an illegal lifecycle transition."""

    def __init__(self, current: str, target: str) -> None:
        super().__init__(
            code=ErrorCode.INVALID_STATE_TRANSITION,
            message=f"Cannot move from {current} to {target}",
        )
        object.__setattr__(self, "current", current)
        object.__setattr__(self, "target", target)


class PaymentProofInvalidError(DomainError):
    def __init__(self, reason: str) -> None:
        super().__init__(
            code=ErrorCode.PAYMENT_PROOF_INVALID,
            message=reason,
        )


class WaitlistEntryNotFoundError(DomainError):
    def __init__(self, entry_id: str) -> None:
        super().__init__(
            code=ErrorCode.WAITLIST_ENTRY_NOT_FOUND,
            message="Waitlist entry not found",
        )
        object.__setattr__(self, "entry_id", entry_id)


class WaitlistNotNeededError(DomainError):
    """Raised when joining the waitlist of a session that still has room."""

    def __init__(self, session_id: str) -> None:
        super().__init__(
            code=ErrorCode.WAITLIST_NOT_NEEDED,
            message="Session still has available spots",
        )
        object.__setattr__(self, "session_id", session_id)


class AlreadyWaitlistedError(DomainError):
    def __init__(self, session_id: str, child_id: str) -> None:
        super().__init__(
            code=ErrorCode.ALREADY_WAITLISTED,
            message="This child is already on the waitlist for this session",
        )
        object.__setattr__(self, "session_id", session_id)
        object.__setattr__(self, "child_id", child_id)


class OfferExpiredError(DomainError):
    def __init__(self, entry_id: str) -> None:
        super().__init__(
            code=ErrorCode.OFFER_EXPIRED,
            message="The waitlist offer has expired",
        )
        object.__setattr__(self, "entry_id", entry_id)
