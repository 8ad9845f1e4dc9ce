"""Response envelope and DRF exception handler.

Every API response shares one shape::

    {"success": true, "message": "...", "data": ...}
    {"success": false, "message": "...", "error": "CODE", "details": ...}

``api_exception_handler`` is installed as ``REST_FRAMEWORK
["EXCEPTION_HANDLER"]`` and maps domain errors, pydantic validation errors,
DRF errors and database integrity errors to that shape.
"""

import logging

import pydantic
from django.core.exceptions import PermissionDenied
from django.db import IntegrityError
from django.http import Http404
from rest_framework import exceptions as drf_exceptions
from rest_framework import status
from rest_framework.response import Response

from apps.orders.errors import OrderError

logger = logging.getLogger(__name__)

DRF_CODES = {
    400: "VALIDATION_ERROR",
    401: "UNAUTHENTICATED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    415: "UNSUPPORTED_MEDIA_TYPE",
    429: "THROTTLED",
}


def success(data=None, message: str = "OK", status_code: int = status.HTTP_200_OK) -> Response:
    return Response({"success": True, "message": message, "data": data}, status=status_code)


def failure(code: str, message: str, status_code: int, details=None, headers=None) -> Response:
    body = {"success": False, "message": message, "error": code}
    if details is not None:
        body["details"] = details
    return Response(body, status=status_code, headers=headers)


def _pydantic_details(exc: pydantic.ValidationError):
    return [
        {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"], "type": err["type"]}
        for err in exc.errors(include_url=False, include_context=False, include_input=False)
    ]


def api_exception_handler(exc, context):
    """Translate an exception raised by a view into an enveloped response.

    Args:
        exc: The exception raised while handling the request.
        context: DRF handler context (view, request, ...).

    Returns:
        Response: Always a response; unknown exceptions become a generic 500.
    """
    if isinstance(exc, Http404):
        exc = drf_exceptions.NotFound()
    elif isinstance(exc, PermissionDenied):
        exc = drf_exceptions.PermissionDenied()

    if isinstance(exc, OrderError):
        return failure(exc.code, exc.message, exc.http_status, exc.details)

    if isinstance(exc, pydantic.ValidationError):
        return failure("VALIDATION_ERROR", "Invalid request data", status.HTTP_400_BAD_REQUEST, _pydantic_details(exc))

    if isinstance(exc, drf_exceptions.APIException):
        headers = {}
        if getattr(exc, "auth_header", None):
            headers["WWW-Authenticate"] = exc.auth_header
        if getattr(exc, "wait", None) is not None:
            headers["Retry-After"] = "%d" % exc.wait
        detail = exc.detail
        message = detail if isinstance(detail, str) else "Invalid request data"
        details = None if isinstance(detail, str) else detail
        code = DRF_CODES.get(exc.status_code, "ERROR")
        return failure(code, str(message), exc.status_code, details, headers or None)

    if isinstance(exc, IntegrityError):
        logger.warning("integrity error", extra={"error": str(exc)})
        return failure("CONFLICT", "Resource conflicts with existing data", status.HTTP_409_CONFLICT)

    view = context.get("view") if context else None
    logger.exception("unhandled error", extra={"view": type(view).__name__ if view else None})
    return failure("INTERNAL_ERROR", "Internal server error", status.HTTP_500_INTERNAL_SERVER_ERROR)
