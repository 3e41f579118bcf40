# ctam_core/common/api/exceptions.py

from __future__ import annotations

import logging
import uuid
from typing import Any

from django.http import Http404
from rest_framework import status
from rest_framework.exceptions import APIException, NotAuthenticated, NotFound, PermissionDenied, ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


def ensure_request_id(request) -> str:
    """
    Request id for log lines and error bodies; assigned on first use and
    stored on the request so every later caller sees the same value.
    """
    if request is None:
        return uuid.uuid4().hex
    rid = getattr(request, "request_id", None)
    if not rid:
        rid = uuid.uuid4().hex
        request.request_id = rid
    return rid


def build_error_envelope(*, request=None, code: str, message: str, details: Any = None) -> dict[str, Any]:
    """
    {"error": {code, message, details, request_id}}; shared by the DRF
    handler and plain Django middleware responses.
    """
    return {
        "error": {
            "code": code,
            "message": message,
            "details": details,
            "request_id": ensure_request_id(request),
        }
    }


# -------------------------------------------------------------------
# Domain exception taxonomy
# -------------------------------------------------------------------

class ConflictError(APIException):
    """
    409 Conflict that still flows through the global exception handler.
    Raised when the row changed underneath the caller (stale status);
    clients should reload rather than blindly retry.
    """
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflict."
    default_code = "conflict"

    def __init__(self, detail=None, code=None):
        super().__init__(detail=detail or self.default_detail, code=code or self.default_code)


class ReconciliationError(APIException):
    """
    A multi-row write could not be completed as a unit. Never retried
    automatically; an operator has to look at it.
    """
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "The change could not be recorded consistently and needs reconciliation."
    default_code = "reconciliation_required"


class BackendUnavailable(APIException):
    """
    Transient backend failure after retries were exhausted (or not applicable).
    """
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Backend is temporarily unavailable. Please try again shortly."
    default_code = "backend_unavailable"


class EvidenceSaveError(APIException):
    """
    Terminal failure while storing evidence. Partial writes were cleaned up.
    """
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "Evidence file could not be saved."
    default_code = "save_failed"


class EvidenceNotFound(NotFound):
    default_detail = "Evidence file not found in storage."
    default_code = "evidence_not_found"


# Checked in order.
_CODES_BY_TYPE: tuple[tuple[type, str], ...] = (
    (ValidationError, "validation_error"),
    (NotAuthenticated, "not_authenticated"),
    (PermissionDenied, "permission_denied"),
    (Http404, "not_found"),
)


def _code_for(exc: Exception, http_status: int) -> str:
    for exc_type, code in _CODES_BY_TYPE:
        if isinstance(exc, exc_type):
            return code
    if isinstance(exc, APIException):
        return exc.default_code or "api_error"
    return "server_error" if http_status >= 500 else "error"


def _split_detail(data: Any) -> tuple[str, Any]:
    """
    DRF payload -> (message, details). A "detail" key becomes the message
    and any sibling keys the details; field-error dicts stay as details.
    """
    if not isinstance(data, dict) or "detail" not in data:
        return "Request failed.", data
    extra = {k: v for k, v in data.items() if k != "detail"}
    return str(data["detail"]), extra or None


def api_exception_handler(exc: Exception, context: dict[str, Any]):
    request = context.get("request")
    response = drf_exception_handler(exc, context)

    if response is None:
        logger.exception("Unhandled API error request_id=%s", ensure_request_id(request), exc_info=exc)
        body = build_error_envelope(request=request, code="server_error", message="Unexpected server error.")
        return Response(body, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    code = _code_for(exc, response.status_code)
    if response.status_code >= 500:
        logger.error("API error code=%s request_id=%s: %s", code, ensure_request_id(request), exc)

    message, details = _split_detail(response.data)
    return Response(
        build_error_envelope(request=request, code=code, message=message, details=details),
        status=response.status_code,
        headers=response.headers,
    )
