"""Django ORM implementation of the RegistrationStore.

Row locks come from ``select_for_update()``; callers must already be inside
``atomic()`` when passing ``for_update=True``.
"""

from collections.abc import Callable, Iterable
from datetime import datetime

from django.db import transaction
from django.db.models import Max

from registrations import models
from registrations.domain import (
    Addon,
    Capacity,
    CharacterRole,
    Money,
    Order,
    OrderId,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    Session,
    SessionId,
    SessionStatus,
    WaitlistEntry,
    WaitlistEntryId,
    WaitlistStatus,
)
from registrations.stores.interfaces import ACTIVE_ORDER_STATUSES, RegistrationStore


def _to_role(row: models.CharacterRole) -> CharacterRole:
    return CharacterRole(
        session_id=SessionId(row.session_id),
        key=row.key,
        name=row.name,
        capacity=Capacity(row.capacity),
        assigned=row.assigned,
    )


def _to_session(row: models.Session, roles: Iterable[models.CharacterRole]) -> Session:
    return Session(
        id=SessionId(row.pk),
        title=row.title,
        price=Money(row.price),
        capacity=Capacity(row.capacity),
        hidden_buffer=Capacity(row.hidden_buffer),
        current_registrations=row.current_registrations,
        status=SessionStatus(row.status),
        starts_at=row.starts_at,
        roles=tuple(_to_role(role) for role in roles),
    )


def _to_item(row: models.OrderItem) -> OrderItem:
    return OrderItem(
        session_id=SessionId(row.session_id),
        child_id=row.child_id,
        price=Money(row.price),
        discount_amount=Money(row.discount_amount),
        role_key=row.role_key or None,
        addon_key=row.addon_id,
    )


def _to_order(row: models.Order) -> Order:
    return Order(
        id=OrderId(row.pk),
        order_number=row.order_number,
        parent_id=row.parent_id,
        status=OrderStatus(row.status),
        total_amount=Money(row.total_amount),
        discount_amount=Money(row.discount_amount),
        final_amount=Money(row.final_amount),
        payment_deadline=row.payment_deadline,
        payment_method=PaymentMethod(row.payment_method),
        created_at=row.created_at,
        updated_at=row.updated_at,
        items=tuple(_to_item(item) for item in row.items.all()),
        group_code=row.group_code,
        notes=row.notes,
        payment_proof_url=row.payment_proof_url,
        confirmed_at=row.confirmed_at,
        cancelled_at=row.cancelled_at,
        cancellation_reason=row.cancellation_reason,
    )


def _to_entry(row: models.WaitlistEntry) -> WaitlistEntry:
    return WaitlistEntry(
        id=WaitlistEntryId(row.pk),
        session_id=SessionId(row.session_id),
        parent_id=row.parent_id,
        child_id=row.child_id,
        status=WaitlistStatus(row.status),
        created_at=row.created_at,
        role_key=row.role_key or None,
        offered_at=row.offered_at,
        expires_at=row.expires_at,
        claimed_order_id=OrderId(row.claimed_order_id) if row.claimed_order_id else None,
    )


class DjangoRegistrationStore(RegistrationStore):
    """PostgreSQL-backed registration store using Django ORM."""

    def atomic(self):
        return transaction.atomic()

    def on_commit(self, callback: Callable[[], None]) -> None:
        transaction.on_commit(callback)

    # Sessions and roles

    def get_session(self, session_id: SessionId, *, for_update: bool = False) -> Session | None:
        sessions = models.Session.objects.all()
        roles = models.CharacterRole.objects.filter(session_id=session_id.value)
        if for_update:
            sessions = sessions.select_for_update()
            roles = roles.select_for_update()
        row = sessions.filter(pk=session_id.value).first()
        if row is None:
            return None
        return _to_session(row, roles)

    def list_sessions(self) -> list[Session]:
        rows = models.Session.objects.prefetch_related("roles").order_by("starts_at")
        return [_to_session(row, row.roles.all()) for row in rows]

    def set_session_registrations(self, session_id: SessionId, value: int) -> None:
        row = models.Session.objects.get(pk=session_id.value)
        row.current_registrations = value
        row.save(update_fields=["current_registrations", "updated_at"])

    def set_role_assigned(self, session_id: SessionId, role_key: str, value: int) -> None:
        row = models.CharacterRole.objects.get(session_id=session_id.value, key=role_key)
        row.assigned = value
        row.save(update_fields=["assigned"])

    # Addons

    def get_addon(self, key: str) -> Addon | None:
        row = models.Addon.objects.filter(pk=key).first()
        if row is None:
            return None
        return Addon(
            key=row.key,
            name=row.name,
            price=Money(row.price),
            max_per_session=row.max_per_session,
        )

    def count_addon_items(self, session_id: SessionId, addon_key: str) -> int:
        return models.OrderItem.objects.filter(
            session_id=session_id.value,
            addon_id=addon_key,
            order__status__in=[status.value for status in ACTIVE_ORDER_STATUSES],
        ).count()

    # Orders

    def order_number_exists(self, order_number: str) -> bool:
        return models.Order.objects.filter(order_number=order_number).exists()

    def add_order(self, order: Order) -> None:
        row = models.Order.objects.create(
            id=order.id.value,
            order_number=order.order_number,
            parent_id=order.parent_id,
            status=order.status.value,
            total_amount=order.total_amount.amount,
            discount_amount=order.discount_amount.amount,
            final_amount=order.final_amount.amount,
            group_code=order.group_code,
            payment_method=order.payment_method.value,
            payment_proof_url=order.payment_proof_url,
            payment_deadline=order.payment_deadline,
            notes=order.notes,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )
        models.OrderItem.objects.bulk_create(
            [
                models.OrderItem(
                    order=row,
                    session_id=item.session_id.value,
                    child_id=item.child_id,
                    role_key=item.role_key,
                    addon_id=item.addon_key,
                    price=item.price.amount,
                    discount_amount=item.discount_amount.amount,
                    position=position,
                )
                for position, item in enumerate(order.items)
            ]
        )

    def get_order(self, order_number: str, *, for_update: bool = False) -> Order | None:
        orders = models.Order.objects.all()
        if for_update:
            orders = orders.select_for_update()
        row = orders.filter(order_number=order_number).first()
        return _to_order(row) if row is not None else None

    def save_order(self, order: Order) -> None:
        models.Order.objects.filter(order_number=order.order_number).update(
            status=order.status.value,
            payment_proof_url=order.payment_proof_url,
            confirmed_at=order.confirmed_at,
            cancelled_at=order.cancelled_at,
            cancellation_reason=order.cancellation_reason,
            updated_at=order.updated_at,
        )

    def list_orders(self, parent_id: str, status: OrderStatus | None = None) -> list[Order]:
        rows = models.Order.objects.filter(parent_id=parent_id).prefetch_related("items")
        if status is not None:
            rows = rows.filter(status=status.value)
        return [_to_order(row) for row in rows.order_by("-created_at")]

    def list_overdue_order_numbers(self, now: datetime) -> list[str]:
        return list(
            models.Order.objects.filter(
                status=OrderStatus.PENDING_PAYMENT.value,
                payment_deadline__lt=now,
            )
            .order_by("payment_deadline")
            .values_list("order_number", flat=True)
        )

    # Waitlist

    def add_waitlist_entry(self, entry: WaitlistEntry) -> None:
        # Callers hold the session row lock, so sequences are unique per session.
        last = models.WaitlistEntry.objects.filter(session_id=entry.session_id.value).aggregate(
            last=Max("sequence")
        )["last"]
        models.WaitlistEntry.objects.create(
            id=entry.id.value,
            session_id=entry.session_id.value,
            parent_id=entry.parent_id,
            child_id=entry.child_id,
            role_key=entry.role_key,
            status=entry.status.value,
            offered_at=entry.offered_at,
            expires_at=entry.expires_at,
            created_at=entry.created_at,
            sequence=(last or 0) + 1,
        )

    def get_waitlist_entry(
        self, entry_id: WaitlistEntryId, *, for_update: bool = False
    ) -> WaitlistEntry | None:
        entries = models.WaitlistEntry.objects.all()
        if for_update:
            entries = entries.select_for_update()
        row = entries.filter(pk=entry_id.value).first()
        return _to_entry(row) if row is not None else None

    def save_waitlist_entry(self, entry: WaitlistEntry) -> None:
        models.WaitlistEntry.objects.filter(pk=entry.id.value).update(
            status=entry.status.value,
            offered_at=entry.offered_at,
            expires_at=entry.expires_at,
            claimed_order_id=entry.claimed_order_id.value if entry.claimed_order_id else None,
        )

    def list_waitlist(
        self,
        *,
        session_id: SessionId | None = None,
        parent_id: str | None = None,
        statuses: Iterable[WaitlistStatus] | None = None,
    ) -> list[WaitlistEntry]:
        rows = models.WaitlistEntry.objects.all()
        if session_id is not None:
            rows = rows.filter(session_id=session_id.value)
        if parent_id is not None:
            rows = rows.filter(parent_id=parent_id)
        if statuses is not None:
            rows = rows.filter(status__in=[status.value for status in statuses])
        return [_to_entry(row) for row in rows.order_by("created_at", "sequence")]

    def list_lapsed_offer_ids(self, now: datetime) -> list[WaitlistEntryId]:
        rows = (
            models.WaitlistEntry.objects.filter(
                status=WaitlistStatus.OFFERED.value,
                expires_at__lt=now,
            )
            .order_by("expires_at")
            .values_list("id", flat=True)
        )
        return [WaitlistEntryId(pk) for pk in rows]
