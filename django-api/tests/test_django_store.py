"""Integration tests for the ORM-backed store.

These run the services against the test database.
Run with: pytest tests/test_django_store.py -v
"""

from datetime import timedelta
from decimal import Decimal
from io import StringIO

import pytest
from django.core.management import call_command

from registrations import models
from registrations.conf import RegistrationConfig
from registrations.domain import OrderStatus, SessionId, WaitlistStatus
from registrations.domain.errors import CapacityExceededError, RoleFullError
from registrations.services import OrderItemRequest, OrderRequest, build_engine
from registrations.services.notifications import order_status_changed
from registrations.stores.django_store import DjangoRegistrationStore
from tests.factories import START, FakeClock


@pytest.fixture
def db_engine(db, clock: FakeClock):
    return build_engine(store=DjangoRegistrationStore(), clock=clock)


def create_session(capacity=4, *, hidden_buffer=0, roles=None, title="Radio drama", price="2800"):
    session = models.Session.objects.create(
        title=title,
        starts_at=START + timedelta(days=7),
        price=Decimal(price),
        capacity=capacity,
        hidden_buffer=hidden_buffer,
    )
    for key, cap in (roles or {}).items():
        models.CharacterRole.objects.create(session=session, key=key, name=key.title(), capacity=cap)
    return session


def _request(session, *children, parent="p1", role=None):
    return OrderRequest(
        parent_id=parent,
        items=tuple(OrderItemRequest(SessionId(session.pk), child, role) for child in children),
    )


@pytest.mark.django_db
class TestDjangoRegistrationStore:
    def test_order_round_trips_through_database(self, db_engine):
        session = create_session(roles={"aileen": 2})

        created = db_engine.orders.create_order(_request(session, "c1", "c2", role="aileen"))
        loaded = db_engine.orders.get_order(created.order_number)

        assert loaded == created
        session.refresh_from_db()
        assert session.current_registrations == 2
        assert session.roles.get(key="aileen").assigned == 2
        assert models.OrderItem.objects.filter(order_id=created.id.value).count() == 2

    def test_failed_order_rolls_back_everything(self, db_engine):
        session = create_session(capacity=1)
        other = create_session(capacity=5)

        with pytest.raises(CapacityExceededError):
            db_engine.orders.create_order(
                OrderRequest(
                    parent_id="p1",
                    items=(
                        OrderItemRequest(SessionId(other.pk), "c1"),
                        OrderItemRequest(SessionId(session.pk), "c1"),
                        OrderItemRequest(SessionId(session.pk), "c2"),
                    ),
                )
            )

        other.refresh_from_db()
        session.refresh_from_db()
        assert other.current_registrations == 0
        assert session.current_registrations == 0
        assert not models.Order.objects.exists()

    def test_role_full_is_checked_against_database(self, db_engine):
        session = create_session(roles={"aileen": 1})
        db_engine.orders.create_order(_request(session, "c1", role="aileen"))

        with pytest.raises(RoleFullError):
            db_engine.orders.create_order(_request(session, "c2", role="aileen", parent="p2"))

    def test_timeout_sweep_releases_capacity(self, db_engine, clock):
        session = create_session(capacity=1)
        order = db_engine.orders.create_order(_request(session, "c1"))
        clock.advance(hours=120, minutes=1)

        assert db_engine.orders.expire_overdue() == 1

        session.refresh_from_db()
        assert session.current_registrations == 0
        row = models.Order.objects.get(order_number=order.order_number)
        assert row.status == OrderStatus.CANCELLED_TIMEOUT.value
        assert row.cancelled_at == clock.now

    def test_cancellation_promotes_waitlist(self, db_engine, clock):
        session = create_session(capacity=1)
        order = db_engine.orders.create_order(_request(session, "c1"))
        entry = db_engine.waitlist.join(SessionId(session.pk), "p2", "c2")

        db_engine.orders.cancel(order.order_number, "changed plans")

        row = models.WaitlistEntry.objects.get(pk=entry.id.value)
        assert row.status == WaitlistStatus.OFFERED.value
        assert row.expires_at == clock.now + timedelta(hours=24)
        session.refresh_from_db()
        assert session.current_registrations == 1

    def test_claim_links_order_to_entry(self, db_engine):
        session = create_session(capacity=1)
        order = db_engine.orders.create_order(_request(session, "c1"))
        entry = db_engine.waitlist.join(SessionId(session.pk), "p2", "c2")
        db_engine.orders.cancel(order.order_number)

        claimed = db_engine.orders.claim_waitlist_offer(entry.id)

        row = models.WaitlistEntry.objects.get(pk=entry.id.value)
        assert row.status == WaitlistStatus.CLAIMED.value
        assert row.claimed_order_id == claimed.id.value

    def test_list_orders_newest_first(self, db_engine, clock):
        session = create_session()
        first = db_engine.orders.create_order(_request(session, "c1"))
        clock.advance(minutes=1)
        second = db_engine.orders.create_order(_request(session, "c2"))

        listed = db_engine.orders.list_orders("p1")

        assert [o.order_number for o in listed] == [second.order_number, first.order_number]

    def test_waitlist_keeps_join_order_for_equal_timestamps(self, db_engine):
        session = create_session(capacity=1)
        db_engine.orders.create_order(_request(session, "c1"))
        # The clock does not move, so every entry shares one created_at.
        joined = [db_engine.waitlist.join(SessionId(session.pk), f"p{n}", f"c{n}") for n in range(2, 7)]

        listed = db_engine.waitlist.list_for_session(SessionId(session.pk))

        assert [entry.id for entry in listed] == [entry.id for entry in joined]
        assert [db_engine.waitlist.position(entry.id) for entry in joined] == [1, 2, 3, 4, 5]
        assert list(
            models.WaitlistEntry.objects.filter(session=session).values_list("sequence", flat=True)
        ) == [1, 2, 3, 4, 5]

    def test_status_notification_waits_for_commit(self, db_engine, django_capture_on_commit_callbacks):
        session = create_session()
        seen = []

        def receiver(sender, order, previous_status, **kwargs):
            seen.append(order.status)

        order_status_changed.connect(receiver)
        try:
            with django_capture_on_commit_callbacks(execute=False) as callbacks:
                db_engine.orders.create_order(_request(session, "c1"))
            assert seen == []
            for callback in callbacks:
                callback()
        finally:
            order_status_changed.disconnect(receiver)

        assert seen == [OrderStatus.PENDING_PAYMENT]


@pytest.mark.django_db
class TestExpireRegistrationsCommand:
    def test_sweep_cancels_overdue_orders(self):
        session = create_session(capacity=1)
        # The fixed clock is in the past, so the order is already overdue.
        past = build_engine(store=DjangoRegistrationStore(), clock=FakeClock(START - timedelta(days=30)))
        order = past.orders.create_order(_request(session, "c1"))
        out = StringIO()

        call_command("expire_registrations", stdout=out)

        assert "Cancelled 1 overdue order(s)" in out.getvalue()
        row = models.Order.objects.get(order_number=order.order_number)
        assert row.status == OrderStatus.CANCELLED_TIMEOUT.value


class TestRegistrationConfig:
    def test_reads_windows_from_settings(self, settings):
        settings.REGISTRATION_PAYMENT_WINDOW_HOURS = 72
        settings.REGISTRATION_WAITLIST_OFFER_HOURS = 12

        config = RegistrationConfig.from_settings()

        assert config.payment_window == timedelta(hours=72)
        assert config.offer_window == timedelta(hours=12)
        assert "image/webp" in config.proof_content_types
