"""Integration tests for the registration HTTP API.

Run with: pytest tests/test_registration_api.py -v
"""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from rest_framework.test import APIClient

from registrations import models
from registrations.domain import SessionId
from registrations.services import OrderItemRequest, OrderRequest, build_engine
from registrations.stores.django_store import DjangoRegistrationStore
from tests.factories import START, FakeClock

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def create_session(capacity=4, *, hidden_buffer=0, roles=None, price="2800"):
    session = models.Session.objects.create(
        title="Voice acting workshop",
        starts_at=START + timedelta(days=7),
        price=Decimal(price),
        capacity=capacity,
        hidden_buffer=hidden_buffer,
    )
    for key, cap in (roles or {}).items():
        models.CharacterRole.objects.create(session=session, key=key, name=key.title(), capacity=cap)
    return session


def order_payload(session, *children, parent="p1", **extra):
    payload = {
        "parent_id": parent,
        "items": [{"session_id": str(session.pk), "child_id": child} for child in children],
    }
    payload.update(extra)
    return payload


def place(api_client, session, *children, **extra):
    response = api_client.post("/api/orders", order_payload(session, *children, **extra), format="json")
    assert response.status_code == 201, response.data
    return response.data


@pytest.fixture
def staff_client(django_user_model) -> APIClient:
    user = django_user_model.objects.create_user(username="office", password="secret", is_staff=True)
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.mark.django_db
class TestSessionAvailability:
    """Tests for GET /api/sessions and /api/sessions/{id}"""

    def test_list_hides_buffer(self, api_client: APIClient):
        """Given sessions exist, returns public figures only."""
        create_session(capacity=10, hidden_buffer=3)

        response = api_client.get("/api/sessions")

        assert response.status_code == 200
        [session] = response.data["results"]
        assert session["capacity"] == 10
        assert session["available"] == 10
        assert "hidden_buffer" not in session

    def test_detail_reports_waitlist_only(self, api_client: APIClient):
        """Given a full session, it is flagged waitlist-only."""
        session = create_session(capacity=1)
        place(api_client, session, "c1")

        response = api_client.get(f"/api/sessions/{session.pk}")

        assert response.status_code == 200
        assert response.data["available"] == 0
        assert response.data["is_waitlist_only"] is True

    def test_detail_not_found(self, api_client: APIClient):
        """Given session does not exist, returns 404."""
        response = api_client.get(f"/api/sessions/{uuid4()}")
        assert response.status_code == 404
        assert response.data["error"]["code"] == "SESSION_NOT_FOUND"

    def test_detail_invalid_id_format(self, api_client: APIClient):
        """Given invalid UUID, returns 400."""
        response = api_client.get("/api/sessions/not-a-uuid")
        assert response.status_code == 400
        assert response.data["error"]["code"] == "INVALID_ID"

    def test_cached_availability_refreshes_after_order(self, api_client: APIClient):
        """Placing an order invalidates the cached figures."""
        session = create_session(capacity=3)
        assert api_client.get(f"/api/sessions/{session.pk}").data["available"] == 3

        place(api_client, session, "c1")

        assert api_client.get(f"/api/sessions/{session.pk}").data["available"] == 2

    def test_roles(self, api_client: APIClient):
        """Returns per-role availability."""
        session = create_session(roles={"aileen": 2, "litt": 3})
        place(api_client, session, parent="p1", items=[
            {"session_id": str(session.pk), "child_id": "c1", "role_key": "aileen"},
        ])

        response = api_client.get(f"/api/sessions/{session.pk}/roles")

        roles = {role["key"]: role for role in response.data["results"]}
        assert roles["aileen"]["available"] == 1
        assert roles["litt"]["available"] == 3


@pytest.mark.django_db
class TestOrderCreate:
    """Tests for POST /api/orders"""

    def test_create_applies_sibling_discount(self, api_client: APIClient):
        """Given two registrants, each gets the 300 discount."""
        session = create_session()

        data = place(api_client, session, "c1", "c2", notes="  ")

        assert data["status"] == "pending_payment"
        assert data["total_amount"] == "5600.00"
        assert data["discount_amount"] == "600.00"
        assert data["final_amount"] == "5000.00"
        assert data["notes"] is None
        assert data["order_number"].startswith("SW")

    def test_full_session_returns_409(self, api_client: APIClient):
        """Given no remaining places, returns capacity details."""
        session = create_session(capacity=1)
        place(api_client, session, "c1")

        response = api_client.post("/api/orders", order_payload(session, "c2", parent="p2"), format="json")

        assert response.status_code == 409
        error = response.data["error"]
        assert error["code"] == "CAPACITY_EXCEEDED"
        assert error["details"]["remaining"] == 0
        assert error["details"]["requested"] == 1

    def test_full_session_with_waitlist_opt_in_returns_202(self, api_client: APIClient):
        """Given opt-in, the parent is queued instead."""
        session = create_session(capacity=1)
        place(api_client, session, "c1")

        response = api_client.post(
            "/api/orders",
            order_payload(session, "c2", parent="p2", join_waitlist=True),
            format="json",
        )

        assert response.status_code == 202
        assert response.data["error"]["code"] == "CAPACITY_EXCEEDED"
        assert response.data["waitlist_entry"]["status"] == "waiting"
        assert not models.Order.objects.filter(parent_id="p2").exists()

    def test_empty_items(self, api_client: APIClient):
        session = create_session()
        response = api_client.post("/api/orders", order_payload(session), format="json")
        assert response.status_code == 400
        assert response.data["error"]["code"] == "EMPTY_ORDER"

    def test_malformed_body(self, api_client: APIClient):
        response = api_client.post("/api/orders", {"items": "nope"}, format="json")
        assert response.status_code == 400
        assert response.data["error"]["code"] == "VALIDATION_ERROR"

    def test_unknown_role(self, api_client: APIClient):
        session = create_session(roles={"aileen": 2})
        response = api_client.post(
            "/api/orders",
            order_payload(session, items=[
                {"session_id": str(session.pk), "child_id": "c1", "role_key": "litt"},
            ]),
            format="json",
        )
        assert response.status_code == 400
        assert response.data["error"]["code"] == "ROLE_NOT_FOUND"

    def test_partial_capacity_with_opt_in_returns_409(self, api_client: APIClient):
        """Given fewer places than children, the capacity error is reported, not queued."""
        session = create_session(capacity=3)
        place(api_client, session, "c1", "c2")

        response = api_client.post(
            "/api/orders",
            order_payload(session, "c3", "c4", parent="p2", join_waitlist=True),
            format="json",
        )

        assert response.status_code == 409
        assert response.data["error"]["code"] == "CAPACITY_EXCEEDED"
        assert response.data["error"]["details"]["remaining"] == 1
        assert response.data["error"]["details"]["requested"] == 2
        assert not models.WaitlistEntry.objects.exists()

    def test_override_requires_staff(self, api_client: APIClient):
        session = create_session(capacity=1, hidden_buffer=1)
        place(api_client, session, "c1")

        response = api_client.post(
            "/api/orders", order_payload(session, "c2", parent="p2", override=True), format="json"
        )

        assert response.status_code == 403
        session.refresh_from_db()
        assert session.current_registrations == 1

    def test_staff_override_uses_hidden_buffer(self, api_client: APIClient, staff_client: APIClient):
        """Given a full session, staff may book into the reserved places."""
        session = create_session(capacity=1, hidden_buffer=1)
        place(api_client, session, "c1")

        response = staff_client.post(
            "/api/orders", order_payload(session, "c2", parent="p2", override=True), format="json"
        )

        assert response.status_code == 201
        session.refresh_from_db()
        assert session.current_registrations == 2
        public = api_client.get(f"/api/sessions/{session.pk}").data
        assert public["available"] == 0
        assert public["capacity"] == 1


@pytest.mark.django_db
class TestOrderQueries:
    """Tests for GET /api/orders and /api/orders/{number}"""

    def test_list_requires_parent(self, api_client: APIClient):
        response = api_client.get("/api/orders")
        assert response.status_code == 400

    def test_list_by_parent_and_status(self, api_client: APIClient, staff_client: APIClient):
        session = create_session()
        first = place(api_client, session, "c1")
        place(api_client, session, "c2")
        staff_client.post(f"/api/orders/{first['order_number']}/cancel", {}, format="json")

        everything = api_client.get("/api/orders", {"parent_id": "p1", "status": "all"})
        pending = api_client.get("/api/orders", {"parent_id": "p1", "status": "pending_payment"})

        assert len(everything.data["results"]) == 2
        assert [o["child_id"] for o in pending.data["results"][0]["items"]] == ["c2"]

    def test_detail_not_found(self, api_client: APIClient):
        response = api_client.get("/api/orders/SW20260301-0000")
        assert response.status_code == 404


@pytest.mark.django_db
class TestPaymentProof:
    """Tests for POST /api/orders/{number}/payment-proof"""

    @pytest.fixture(autouse=True)
    def media_root(self, settings, tmp_path):
        settings.MEDIA_ROOT = str(tmp_path)

    def test_upload_moves_order_to_submitted(self, api_client: APIClient, tmp_path):
        """Given a pending order and an image, stores it and submits payment."""
        order = place(api_client, create_session(), "c1")
        upload = SimpleUploadedFile("receipt.PNG", PNG_BYTES, content_type="image/png")

        response = api_client.post(
            f"/api/orders/{order['order_number']}/payment-proof", {"file": upload}, format="multipart"
        )

        assert response.status_code == 201
        assert response.data["order"]["status"] == "payment_submitted"
        assert response.data["file_url"].endswith(".png")
        assert list((tmp_path / "payment-proofs").iterdir())

    def test_rejects_non_image(self, api_client: APIClient, tmp_path):
        order = place(api_client, create_session(), "c1")
        upload = SimpleUploadedFile("receipt.pdf", b"%PDF-1.4", content_type="application/pdf")

        response = api_client.post(
            f"/api/orders/{order['order_number']}/payment-proof", {"file": upload}, format="multipart"
        )

        assert response.status_code == 422
        assert response.data["error"]["code"] == "PAYMENT_PROOF_INVALID"
        assert not (tmp_path / "payment-proofs").exists()

    def test_missing_file(self, api_client: APIClient):
        order = place(api_client, create_session(), "c1")
        response = api_client.post(f"/api/orders/{order['order_number']}/payment-proof", {}, format="multipart")
        assert response.status_code == 400

    def test_overdue_order_is_gone(self, api_client: APIClient, tmp_path):
        """Given the deadline passed, returns 410 and frees the place."""
        session = create_session(capacity=1)
        # Created at a fixed instant far enough in the past to be overdue now.
        engine = build_engine(store=DjangoRegistrationStore(), clock=FakeClock(START - timedelta(days=30)))
        order = engine.orders.create_order(
            OrderRequest(parent_id="p1", items=(OrderItemRequest(SessionId(session.pk), "c1"),))
        )
        upload = SimpleUploadedFile("receipt.png", PNG_BYTES, content_type="image/png")

        response = api_client.post(
            f"/api/orders/{order.order_number}/payment-proof", {"file": upload}, format="multipart"
        )

        assert response.status_code == 410
        assert response.data["error"]["code"] == "ORDER_EXPIRED"
        session.refresh_from_db()
        assert session.current_registrations == 0
        assert not (tmp_path / "payment-proofs").exists()


@pytest.mark.django_db
class TestAdminTransitions:
    """Tests for POST /api/orders/{number}/confirm and /cancel"""

    def test_requires_staff(self, api_client: APIClient):
        order = place(api_client, create_session(), "c1")
        response = api_client.post(f"/api/orders/{order['order_number']}/confirm")
        assert response.status_code in (401, 403)

    def test_confirm_pending_order_conflicts(self, api_client: APIClient, staff_client: APIClient):
        order = place(api_client, create_session(), "c1")
        response = staff_client.post(f"/api/orders/{order['order_number']}/confirm")
        assert response.status_code == 409
        assert response.data["error"]["code"] == "INVALID_STATE_TRANSITION"

    def test_cancel_releases_place(self, api_client: APIClient, staff_client: APIClient):
        session = create_session(capacity=1)
        order = place(api_client, session, "c1")

        response = staff_client.post(
            f"/api/orders/{order['order_number']}/cancel", {"reason": "duplicate"}, format="json"
        )

        assert response.status_code == 200
        assert response.data["status"] == "cancelled_manual"
        assert response.data["cancellation_reason"] == "duplicate"
        assert api_client.get(f"/api/sessions/{session.pk}").data["available"] == 1


@pytest.mark.django_db
class TestWaitlist:
    """Tests for /api/waitlist endpoints"""

    def test_join_reports_position(self, api_client: APIClient):
        session = create_session(capacity=1)
        place(api_client, session, "c1")

        response = api_client.post(
            "/api/waitlist",
            {"session_id": str(session.pk), "parent_id": "p2", "child_id": "c2"},
            format="json",
        )

        assert response.status_code == 201
        assert response.data["status"] == "waiting"
        assert response.data["position"] == 1

    def test_join_open_session_conflicts(self, api_client: APIClient):
        session = create_session(capacity=2)
        response = api_client.post(
            "/api/waitlist",
            {"session_id": str(session.pk), "parent_id": "p2", "child_id": "c2"},
            format="json",
        )
        assert response.status_code == 409
        assert response.data["error"]["code"] == "WAITLIST_NOT_NEEDED"

    def test_offer_and_claim(self, api_client: APIClient, staff_client: APIClient):
        """Given a cancellation, the first entry is offered and can claim."""
        session = create_session(capacity=1)
        order = place(api_client, session, "c1")
        joined = api_client.post(
            "/api/waitlist",
            {"session_id": str(session.pk), "parent_id": "p2", "child_id": "c2"},
            format="json",
        ).data
        staff_client.post(f"/api/orders/{order['order_number']}/cancel", {}, format="json")

        entry = api_client.get(f"/api/waitlist/{joined['id']}")
        assert entry.data["status"] == "offered"
        assert entry.data["position"] is None

        claimed = api_client.post(f"/api/waitlist/{joined['id']}/claim", {}, format="json")

        assert claimed.status_code == 201
        assert claimed.data["parent_id"] == "p2"
        assert claimed.data["status"] == "pending_payment"

    def test_list_requires_filter(self, api_client: APIClient):
        response = api_client.get("/api/waitlist")
        assert response.status_code == 400

    def test_withdraw(self, api_client: APIClient):
        session = create_session(capacity=1)
        place(api_client, session, "c1")
        joined = api_client.post(
            "/api/waitlist",
            {"session_id": str(session.pk), "parent_id": "p2", "child_id": "c2"},
            format="json",
        ).data

        wrong = api_client.delete(f"/api/waitlist/{joined['id']}?parent_id=p3")
        right = api_client.delete(f"/api/waitlist/{joined['id']}?parent_id=p2")

        assert wrong.status_code == 404
        assert right.status_code == 200
        assert right.data["status"] == "expired"
        listed = api_client.get("/api/waitlist", {"parent_id": "p2"})
        assert [e["status"] for e in listed.data["results"]] == ["expired"]
