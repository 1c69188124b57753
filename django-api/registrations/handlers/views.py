"""HTTP handlers (views) - handle HTTP concerns only.

Handlers:
- Parse requests and validate input format
- Call services for business logic
- Map domain errors to HTTP responses
- Never contain business logic
- Never expose internal error details
"""

import logging
import os

from django.core.cache import cache
from django.core.files.storage import default_storage
from django.utils import timezone
from rest_framework import status
from rest_framework.exceptions import PermissionDenied
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.permissions import IsAdminUser
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from registrations.domain import OrderStatus, PaymentMethod, SessionId, WaitlistEntryId
from registrations.domain.errors import DomainError, InvalidIdError
from registrations.handlers import cache as cache_keys
from registrations.handlers.errors import error_body, error_response, validation_response
from registrations.handlers.serializers import (
    OrderCancelSerializer,
    OrderCreateSerializer,
    OrderListQuerySerializer,
    OrderSerializer,
    RoleAvailabilitySerializer,
    SessionAvailabilitySerializer,
    WaitlistClaimSerializer,
    WaitlistEntrySerializer,
    WaitlistJoinSerializer,
)
from registrations.services import OrderItemRequest, OrderRequest, build_engine, validate_payment_proof

logger = logging.getLogger(__name__)


def _session_id(value: str) -> SessionId:
    try:
        return SessionId.from_string(value)
    except ValueError:
        raise InvalidIdError("session")


def _entry_id(value: str) -> WaitlistEntryId:
    try:
        return WaitlistEntryId.from_string(value)
    except ValueError:
        raise InvalidIdError("waitlist entry")


class EngineView(APIView):
    """Base view that maps domain errors to HTTP responses."""

    def handle_exception(self, exc):
        if isinstance(exc, DomainError):
            return error_response(exc)
        return super().handle_exception(exc)

    @property
    def engine(self):
        if not hasattr(self, "_engine"):
            self._engine = build_engine()
        return self._engine


class SessionListView(EngineView):
    """Handler for GET /api/sessions"""

    def get(self, request: Request) -> Response:
        data = cache.get(cache_keys.SESSION_LIST_KEY)
        if data is None:
            availability = self.engine.ledger.list_session_availability()
            data = SessionAvailabilitySerializer(availability, many=True).data
            cache.set(cache_keys.SESSION_LIST_KEY, data, self.engine.config.availability_cache_seconds)
        return Response({"results": data})


class SessionDetailView(EngineView):
    """Handler for GET /api/sessions/{session_id}"""

    def get(self, request: Request, session_id: str) -> Response:
        sid = _session_id(session_id)
        key = cache_keys.session_key(sid)
        data = cache.get(key)
        if data is None:
            data = SessionAvailabilitySerializer(self.engine.ledger.session_availability(sid)).data
            cache.set(key, data, self.engine.config.availability_cache_seconds)
        return Response(data)


class RoleAvailabilityView(EngineView):
    """Handler for GET /api/sessions/{session_id}/roles"""

    def get(self, request: Request, session_id: str) -> Response:
        sid = _session_id(session_id)
        key = cache_keys.roles_key(sid)
        data = cache.get(key)
        if data is None:
            roles = self.engine.ledger.role_availability(sid)
            data = RoleAvailabilitySerializer(roles, many=True).data
            cache.set(key, data, self.engine.config.availability_cache_seconds)
        return Response({"results": data})


class OrderListView(EngineView):
    """Handler for GET/POST /api/orders"""

    def get(self, request: Request) -> Response:
        query = OrderListQuerySerializer(data=request.query_params)
        if not query.is_valid():
            return validation_response(query.errors)
        wanted = query.validated_data.get("status")
        order_status = OrderStatus(wanted) if wanted and wanted != "all" else None
        orders = self.engine.orders.list_orders(query.validated_data["parent_id"], order_status)
        return Response({"results": OrderSerializer(orders, many=True).data})

    def post(self, request: Request) -> Response:
        payload = OrderCreateSerializer(data=request.data)
        if not payload.is_valid():
            return validation_response(payload.errors)
        data = payload.validated_data
        if data["override"] and not request.user.is_staff:
            raise PermissionDenied("Only staff may book into the reserved places.")
        order_request = OrderRequest(
            parent_id=data["parent_id"],
            items=tuple(
                OrderItemRequest(
                    session_id=SessionId(item["session_id"]),
                    child_id=item["child_id"],
                    role_key=item.get("role_key") or None,
                    addon_key=item.get("addon_key") or None,
                )
                for item in data["items"]
            ),
            payment_method=PaymentMethod(data["payment_method"]),
            group_code=data.get("group_code"),
            notes=data.get("notes"),
            join_waitlist=data["join_waitlist"],
            override=data["override"],
        )
        placement = self.engine.orders.place_order(order_request)
        if placement.order is None:
            body = error_body(placement.reason)
            body["waitlist_entry"] = WaitlistEntrySerializer(placement.waitlist_entry).data
            return Response(body, status=status.HTTP_202_ACCEPTED)
        return Response(OrderSerializer(placement.order).data, status=status.HTTP_201_CREATED)


class OrderDetailView(EngineView):
    """Handler for GET /api/orders/{order_number}"""

    def get(self, request: Request, order_number: str) -> Response:
        order = self.engine.orders.get_order(order_number)
        return Response(OrderSerializer(order).data)


class PaymentProofView(EngineView):
    """Handler for POST /api/orders/{order_number}/payment-proof"""

    parser_classes = [MultiPartParser, FormParser]

    def post(self, request: Request, order_number: str) -> Response:
        upload = request.FILES.get("file")
        if upload is None:
            return validation_response({"file": ["This field is required."]})
        validate_payment_proof(upload.content_type, upload.size, self.engine.config)
        self.engine.orders.ensure_payable(order_number)

        extension = os.path.splitext(upload.name)[1].lower()
        stamp = timezone.now().strftime("%Y%m%d%H%M%S")
        path = default_storage.save(f"payment-proofs/{order_number}-{stamp}{extension}", upload)
        proof_url = default_storage.url(path)

        order = self.engine.orders.submit_payment(order_number, proof_url)
        return Response(
            {"file_url": proof_url, "order": OrderSerializer(order).data},
            status=status.HTTP_201_CREATED,
        )


class OrderConfirmView(EngineView):
    """Handler for POST /api/orders/{order_number}/confirm (admin)"""

    permission_classes = [IsAdminUser]

    def post(self, request: Request, order_number: str) -> Response:
        order = self.engine.orders.confirm(order_number)
        return Response(OrderSerializer(order).data)


class OrderCancelView(EngineView):
    """Handler for POST /api/orders/{order_number}/cancel (admin)"""

    permission_classes = [IsAdminUser]

    def post(self, request: Request, order_number: str) -> Response:
        payload = OrderCancelSerializer(data=request.data)
        if not payload.is_valid():
            return validation_response(payload.errors)
        order = self.engine.orders.cancel(order_number, payload.validated_data.get("reason"))
        return Response(OrderSerializer(order).data)


class WaitlistView(EngineView):
    """Handler for GET/POST /api/waitlist"""

    def get(self, request: Request) -> Response:
        session_id = request.query_params.get("session_id")
        parent_id = request.query_params.get("parent_id")
        if session_id:
            entries = self.engine.waitlist.list_for_session(_session_id(session_id))
        elif parent_id:
            entries = self.engine.waitlist.list_for_parent(parent_id)
        else:
            return validation_response({"non_field_errors": ["Missing session_id or parent_id parameter"]})
        return Response({"results": WaitlistEntrySerializer(entries, many=True).data})

    def post(self, request: Request) -> Response:
        payload = WaitlistJoinSerializer(data=request.data)
        if not payload.is_valid():
            return validation_response(payload.errors)
        data = payload.validated_data
        entry = self.engine.waitlist.join(
            SessionId(data["session_id"]),
            data["parent_id"],
            data["child_id"],
            data.get("role_key") or None,
        )
        body = WaitlistEntrySerializer(entry).data
        body["position"] = self.engine.waitlist.position(entry.id)
        return Response(body, status=status.HTTP_201_CREATED)


class WaitlistEntryView(EngineView):
    """Handler for GET/DELETE /api/waitlist/{entry_id}"""

    def get(self, request: Request, entry_id: str) -> Response:
        eid = _entry_id(entry_id)
        body = WaitlistEntrySerializer(self.engine.waitlist.get(eid)).data
        body["position"] = self.engine.waitlist.position(eid)
        return Response(body)

    def delete(self, request: Request, entry_id: str) -> Response:
        parent_id = request.query_params.get("parent_id")
        entry = self.engine.waitlist.withdraw(_entry_id(entry_id), parent_id)
        return Response(WaitlistEntrySerializer(entry).data)


class WaitlistClaimView(EngineView):
    """Handler for POST /api/waitlist/{entry_id}/claim"""

    def post(self, request: Request, entry_id: str) -> Response:
        payload = WaitlistClaimSerializer(data=request.data)
        if not payload.is_valid():
            return validation_response(payload.errors)
        data = payload.validated_data
        order = self.engine.orders.claim_waitlist_offer(
            _entry_id(entry_id),
            PaymentMethod(data["payment_method"]),
            notes=data.get("notes"),
            group_code=data.get("group_code"),
        )
        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)
