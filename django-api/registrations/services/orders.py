"""Order lifecycle - the only writer of order status.

    pending_payment --proof--> payment_submitted --admin--> confirmed
    pending_payment --deadline--> cancelled_timeout
    pending_payment | payment_submitted --admin--> cancelled_manual

An order is created in one unit of work: role validation, capacity
reservation for every item, pricing and persistence either all happen or
none do. Cancellation releases exactly the reserved places and runs waitlist
promotion in the same unit of work.
"""

import logging
import secrets
from collections import Counter
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime

from django.utils import timezone

from registrations.conf import RegistrationConfig
from registrations.domain import (
    Money,
    Order,
    OrderId,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    Session,
    SessionId,
    WaitlistEntry,
    WaitlistEntryId,
)
from registrations.domain.errors import (
    AlreadyWaitlistedError,
    CapacityExceededError,
    DomainError,
    EmptyOrderError,
    OfferExpiredError,
    OrderExpiredError,
    OrderNotFoundError,
    PaymentProofInvalidError,
    SessionNotFoundError,
    WaitlistNotNeededError,
)
from registrations.services.capacity import CapacityLedger
from registrations.services.discount import calculate_discount
from registrations.services.notifications import notify_after_commit, order_status_changed
from registrations.services.roles import RoleAssignmentValidator
from registrations.services.waitlist import WaitlistManager
from registrations.stores.interfaces import RegistrationStore

logger = logging.getLogger(__name__)

_ORDER_NUMBER_ATTEMPTS = 20


@dataclass(frozen=True)
class OrderItemRequest:
    session_id: SessionId
    child_id: str
    role_key: str | None = None
    addon_key: str | None = None


@dataclass(frozen=True)
class OrderRequest:
    parent_id: str
    items: tuple[OrderItemRequest, ...]
    payment_method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    group_code: str | None = None
    notes: str | None = None
    join_waitlist: bool = False
    # Administrative bookings may also use the hidden buffer.
    override: bool = False


@dataclass(frozen=True)
class Placement:
    """Outcome of ``place_order``: exactly one of order or waitlist_entry."""

    order: Order | None = None
    waitlist_entry: WaitlistEntry | None = None
    reason: CapacityExceededError | None = None


def validate_payment_proof(content_type: str, size: int, config: RegistrationConfig) -> None:
    """Raise PaymentProofInvalidError unless the file is a small enough image."""
    if content_type not in config.proof_content_types:
        raise PaymentProofInvalidError("Payment proof must be an image file (JPEG, PNG, or WebP)")
    if size <= 0:
        raise PaymentProofInvalidError("Payment proof file is empty")
    if size > config.proof_max_bytes:
        limit_mb = config.proof_max_bytes // (1024 * 1024)
        raise PaymentProofInvalidError(f"Payment proof file size must be less than {limit_mb}MB")


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


class OrderLifecycle:
    """Creates orders and drives them to a terminal state."""

    def __init__(
        self,
        store: RegistrationStore,
        ledger: CapacityLedger,
        validator: RoleAssignmentValidator,
        waitlist: WaitlistManager,
        config: RegistrationConfig | None = None,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._validator = validator
        self._waitlist = waitlist
        self._config = config or RegistrationConfig()
        self._clock = clock

    # Creation

    def create_order(self, request: OrderRequest) -> Order:
        """Admit, price and persist an order in ``pending_payment``.

        Raises:
            EmptyOrderError: If the request has no items.
            SessionNotFoundError, SessionInactiveError: For unusable sessions.
            CapacityExceededError, RoleFullError: If any place is unavailable.
            RoleNotFoundError, RoleNotRequiredError: For bad role references.
            AddonNotFoundError, AddonLimitReachedError: For unavailable addons.
        """
        if not request.items:
            raise EmptyOrderError()

        registrants = [item for item in request.items if item.addon_key is None]
        addons = [item for item in request.items if item.addon_key is not None]

        with self._store.atomic():
            self._validator.validate_all((item.session_id, item.role_key) for item in registrants)

            # Sessions are locked in a stable order so concurrent orders
            # spanning several sessions cannot deadlock.
            places = Counter((item.session_id, item.role_key) for item in registrants)
            for (session_id, role_key), count in sorted(
                places.items(), key=lambda kv: (str(kv[0][0]), kv[0][1] or "")
            ):
                self._ledger.check_and_reserve(
                    session_id, role_key, count, override=request.override
                )

            addon_prices: dict[str, Money] = {}
            extras = Counter((item.session_id, item.addon_key) for item in addons)
            for (session_id, addon_key), count in sorted(
                extras.items(), key=lambda kv: (str(kv[0][0]), kv[0][1])
            ):
                addon = self._ledger.reserve_addon(session_id, addon_key, count)
                addon_prices[addon.key] = addon.price

            sessions = self._sessions({item.session_id for item in registrants})
            pricing = calculate_discount(sessions[item.session_id].price for item in registrants)
            items = [
                OrderItem(
                    session_id=item.session_id,
                    child_id=item.child_id,
                    price=sessions[item.session_id].price,
                    discount_amount=discount,
                    role_key=item.role_key,
                )
                for item, discount in zip(registrants, pricing.item_discounts)
            ]
            items.extend(
                OrderItem(
                    session_id=item.session_id,
                    child_id=item.child_id,
                    price=addon_prices[item.addon_key],
                    addon_key=item.addon_key,
                )
                for item in addons
            )

            order = self._new_order(
                parent_id=request.parent_id,
                items=items,
                discount=pricing.discount_amount,
                payment_method=request.payment_method,
                group_code=_clean(request.group_code),
                notes=_clean(request.notes),
            )

        logger.info(
            "Order %s created for parent %s: %d item(s), tier %s, final %s, due %s",
            order.order_number,
            order.parent_id,
            len(order.items),
            pricing.tier,
            order.final_amount,
            order.payment_deadline.isoformat(),
        )
        return order

    def place_order(self, request: OrderRequest) -> Placement:
        """Create the order, or queue the full item when the parent opted in.

        An order that only overshoots the remaining places is not queued;
        the capacity error is raised so the caller can report what is left.
        """
        try:
            return Placement(order=self.create_order(request))
        except CapacityExceededError as exc:
            if not request.join_waitlist:
                raise
            item = self._rejected_item(request, exc)
            try:
                entry = self._waitlist.join(
                    item.session_id, request.parent_id, item.child_id, item.role_key
                )
            except (WaitlistNotNeededError, AlreadyWaitlistedError):
                raise exc from None
            logger.info(
                "Order for parent %s rejected for capacity, waitlisted as %s",
                request.parent_id,
                entry.id,
            )
            return Placement(waitlist_entry=entry, reason=exc)

    def claim_waitlist_offer(
        self,
        entry_id: WaitlistEntryId,
        payment_method: PaymentMethod = PaymentMethod.BANK_TRANSFER,
        notes: str | None = None,
        group_code: str | None = None,
    ) -> Order:
        """Turn an offered waitlist place into a ``pending_payment`` order.

        The place was reserved when the offer was made, so it is not
        reserved again here.
        """
        order_id = OrderId.new()
        try:
            with self._store.atomic():
                entry = self._waitlist.claim(entry_id, order_id)
                session = self._sessions({entry.session_id})[entry.session_id]
                pricing = calculate_discount([session.price])
                item = OrderItem(
                    session_id=entry.session_id,
                    child_id=entry.child_id,
                    price=session.price,
                    discount_amount=pricing.item_discounts[0],
                    role_key=entry.role_key,
                )
                order = self._new_order(
                    parent_id=entry.parent_id,
                    items=[item],
                    discount=pricing.discount_amount,
                    payment_method=payment_method,
                    group_code=_clean(group_code),
                    notes=_clean(notes),
                    order_id=order_id,
                )
        except OfferExpiredError:
            self._waitlist.expire_offer(entry_id)
            raise
        logger.info("Order %s created from waitlist entry %s", order.order_number, entry_id)
        return order

    # Transitions

    def submit_payment(self, order_number: str, proof_url: str) -> Order:
        """Record the stored proof reference and move to ``payment_submitted``.

        Raises:
            OrderExpiredError: If the deadline passed; places are released first.
            InvalidStateTransitionError: If the order is not awaiting payment.
        """
        self.ensure_payable(order_number)
        now = self._clock()
        with self._store.atomic():
            order = self._locked_order(order_number)
            if order.is_overdue(now):
                expired = True
            else:
                expired = False
                updated = order.transition(
                    OrderStatus.PAYMENT_SUBMITTED, now, payment_proof_url=proof_url
                )
                self._store.save_order(updated)
                self._notify(updated, order.status)
        if expired:
            self.expire_order(order_number)
            raise OrderExpiredError(order_number)
        logger.info("Payment proof submitted for order %s", order_number)
        return updated

    def ensure_payable(self, order_number: str) -> Order:
        """Fail early, before any file is stored, if payment cannot be accepted."""
        order = self._get(order_number)
        if order.status == OrderStatus.CANCELLED_TIMEOUT:
            raise OrderExpiredError(order_number)
        if order.is_overdue(self._clock()):
            self.expire_order(order_number)
            raise OrderExpiredError(order_number)
        if order.status != OrderStatus.PENDING_PAYMENT:
            # Let the domain produce the precise error.
            order.transition(OrderStatus.PAYMENT_SUBMITTED, self._clock())
        return order

    def confirm(self, order_number: str) -> Order:
        now = self._clock()
        with self._store.atomic():
            order = self._locked_order(order_number)
            updated = order.transition(OrderStatus.CONFIRMED, now, confirmed_at=now)
            self._store.save_order(updated)
            self._notify(updated, order.status)
        logger.info("Order %s confirmed", order_number)
        return updated

    def cancel(self, order_number: str, reason: str | None = None) -> Order:
        """Administrative cancellation of any non-terminal order."""
        now = self._clock()
        with self._store.atomic():
            order = self._locked_order(order_number)
            updated = self._cancel(order, OrderStatus.CANCELLED_MANUAL, now, _clean(reason))
        logger.info("Order %s cancelled manually", order_number)
        return updated

    def expire_order(self, order_number: str) -> bool:
        """Cancel one overdue ``pending_payment`` order. False if not overdue."""
        now = self._clock()
        with self._store.atomic():
            order = self._locked_order(order_number)
            if not order.is_overdue(now):
                return False
            self._cancel(order, OrderStatus.CANCELLED_TIMEOUT, now, "payment deadline passed")
        logger.info("Order %s cancelled after payment deadline", order_number)
        return True

    def expire_overdue(self) -> int:
        """Sweep every overdue order. Returns how many were cancelled."""
        expired = 0
        for order_number in self._store.list_overdue_order_numbers(self._clock()):
            try:
                if self.expire_order(order_number):
                    expired += 1
            except DomainError:
                logger.exception("Could not expire order %s", order_number)
        if expired:
            logger.info("Cancelled %d overdue order(s)", expired)
        return expired

    # Queries

    def get_order(self, order_number: str) -> Order:
        order = self._get(order_number)
        if order.is_overdue(self._clock()) and self.expire_order(order_number):
            order = self._get(order_number)
        return order

    def list_orders(self, parent_id: str, status: OrderStatus | None = None) -> list[Order]:
        return self._store.list_orders(parent_id, status)

    # Helpers

    def _cancel(
        self, order: Order, target: OrderStatus, now: datetime, reason: str | None
    ) -> Order:
        updated = order.transition(target, now, cancelled_at=now, cancellation_reason=reason)
        self._store.save_order(updated)
        self._release(order.capacity_items)
        self._notify(updated, order.status)
        return updated

    def _release(self, items: Iterable[OrderItem]) -> None:
        places = Counter((item.session_id, item.role_key) for item in items)
        for (session_id, role_key), count in sorted(
            places.items(), key=lambda kv: (str(kv[0][0]), kv[0][1] or "")
        ):
            self._ledger.release(session_id, role_key, count)
        for session_id in sorted({session_id for session_id, _ in places}, key=str):
            self._waitlist.promote(session_id)

    def _sessions(self, session_ids: Iterable[SessionId]) -> dict[SessionId, Session]:
        sessions = {}
        for session_id in session_ids:
            session = self._store.get_session(session_id)
            if session is None:
                raise SessionNotFoundError(str(session_id))
            sessions[session_id] = session
        return sessions

    def _new_order(
        self,
        *,
        parent_id: str,
        items: list[OrderItem],
        discount: Money,
        payment_method: PaymentMethod,
        group_code: str | None,
        notes: str | None,
        order_id: OrderId | None = None,
    ) -> Order:
        now = self._clock()
        total = sum((item.price for item in items), Money.zero())
        order = Order(
            id=order_id or OrderId.new(),
            order_number=self._new_order_number(now),
            parent_id=parent_id,
            status=OrderStatus.PENDING_PAYMENT,
            total_amount=total,
            discount_amount=discount,
            final_amount=total.minus_floored(discount),
            payment_deadline=now + self._config.payment_window,
            payment_method=payment_method,
            created_at=now,
            updated_at=now,
            items=tuple(items),
            group_code=group_code,
            notes=notes,
        )
        self._store.add_order(order)
        self._notify(order, None)
        return order

    def _new_order_number(self, now: datetime) -> str:
        for _ in range(_ORDER_NUMBER_ATTEMPTS):
            number = f"{self._config.order_number_prefix}{now:%Y%m%d}-{secrets.randbelow(10000):04d}"
            if not self._store.order_number_exists(number):
                return number
        raise RuntimeError(f"Could not allocate an order number for {now:%Y-%m-%d}")

    def _get(self, order_number: str) -> Order:
        order = self._store.get_order(order_number)
        if order is None:
            raise OrderNotFoundError(order_number)
        return order

    def _locked_order(self, order_number: str) -> Order:
        order = self._store.get_order(order_number, for_update=True)
        if order is None:
            raise OrderNotFoundError(order_number)
        return order

    def _notify(self, order: Order, previous: OrderStatus | None) -> None:
        notify_after_commit(
            self._store,
            order_status_changed,
            sender=self.__class__,
            order=order,
            previous_status=previous,
        )

    @staticmethod
    def _rejected_item(request: OrderRequest, exc: CapacityExceededError) -> OrderItemRequest:
        candidates = [
            item
            for item in request.items
            if item.addon_key is None and str(item.session_id) == exc.session_id
        ]
        for item in candidates:
            if item.role_key == exc.role_key:
                return item
        return candidates[0]
