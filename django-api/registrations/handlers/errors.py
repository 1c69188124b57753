"""Mapping of domain errors to HTTP responses."""

import logging

from rest_framework import status
from rest_framework.response import Response

from registrations.domain.errors import CapacityExceededError, DomainError, ErrorCode

logger = logging.getLogger(__name__)

STATUS_BY_CODE = {
    ErrorCode.INVALID_ID: status.HTTP_400_BAD_REQUEST,
    ErrorCode.SESSION_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.SESSION_INACTIVE: status.HTTP_409_CONFLICT,
    ErrorCode.CAPACITY_EXCEEDED: status.HTTP_409_CONFLICT,
    ErrorCode.ROLE_FULL: status.HTTP_409_CONFLICT,
    ErrorCode.ROLE_NOT_FOUND: status.HTTP_400_BAD_REQUEST,
    ErrorCode.ROLE_NOT_REQUIRED: status.HTTP_400_BAD_REQUEST,
    ErrorCode.ADDON_NOT_FOUND: status.HTTP_400_BAD_REQUEST,
    ErrorCode.ADDON_LIMIT_REACHED: status.HTTP_409_CONFLICT,
    ErrorCode.EMPTY_ORDER: status.HTTP_400_BAD_REQUEST,
    ErrorCode.ORDER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.ORDER_EXPIRED: status.HTTP_410_GONE,
    ErrorCode.INVALID_STATE_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorCode.PAYMENT_PROOF_INVALID: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.WAITLIST_ENTRY_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.WAITLIST_NOT_NEEDED: status.HTTP_409_CONFLICT,
    ErrorCode.ALREADY_WAITLISTED: status.HTTP_409_CONFLICT,
    ErrorCode.OFFER_EXPIRED: status.HTTP_410_GONE,
}


def error_body(exc: DomainError) -> dict:
    body = {"code": exc.code.value, "message": exc.message}
    if isinstance(exc, CapacityExceededError):
        body["details"] = {
            "session_id": exc.session_id,
            "role_key": exc.role_key,
            "remaining": exc.remaining,
            "requested": exc.requested,
        }
    return {"error": body}


def error_response(exc: DomainError) -> Response:
    if exc.code == ErrorCode.INVALID_STATE_TRANSITION:
        logger.error("Illegal lifecycle transition reached the API: %s", exc)
    return Response(error_body(exc), status=STATUS_BY_CODE.get(exc.code, status.HTTP_400_BAD_REQUEST))


def validation_response(errors) -> Response:
    return Response(
        {"error": {"code": "VALIDATION_ERROR", "message": "Invalid request", "details": errors}},
        status=status.HTTP_400_BAD_REQUEST,
    )
