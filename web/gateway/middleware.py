"""Gateway middleware: request correlation and payload size limits.

``RequestIdMiddleware`` makes sure every request carries an identifier. It
reuses the client's ``X-Request-Id`` header when present and generates a
UUIDv4 otherwise. The id is kept on ``request.request_id`` and in
``REQUEST_ID_CTX`` so log filters and the payment client can read it without
the request object. Responses echo it in ``X-Request-ID``.

``ApiSizeLimitMiddleware`` rejects ``/api/`` requests whose declared body
is larger than ``settings.API_MAX_BYTES`` before any parsing happens.
"""

import contextvars
import uuid

from django.conf import settings
from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin

REQUEST_ID_CTX = contextvars.ContextVar("request_id", default="-")
DEFAULT_MAX_API_BYTES = 1 * 1024 * 1024


class RequestIdMiddleware(MiddlewareMixin):
    """Set and return a per-request identifier.

    Attributes:
        HEADER (str): Incoming header name as found in ``request.META``.
        RESPONSE_HEADER (str): Header added to outgoing responses.
    """

    HEADER = "HTTP_X_REQUEST_ID"
    RESPONSE_HEADER = "X-Request-ID"

    def process_request(self, request):
        rid = request.META.get(self.HEADER) or str(uuid.uuid4())
        request.request_id = rid
        request._request_id_token = REQUEST_ID_CTX.set(rid)

    def process_response(self, request, response):
        """Add the request id header and reset the ContextVar.

        Falls back to the ContextVar value when the request never went
        through ``process_request`` (e.g. short-circuited by an earlier
        middleware).
        """
        rid = getattr(request, "request_id", REQUEST_ID_CTX.get())
        response[self.RESPONSE_HEADER] = rid
        token = getattr(request, "_request_id_token", None)
        if token is not None:
            REQUEST_ID_CTX.reset(token)
            request._request_id_token = None
        return response


class ApiSizeLimitMiddleware(MiddlewareMixin):
    def process_request(self, request):
        if not request.path.startswith("/api/"):
            return None
        limit = getattr(settings, "API_MAX_BYTES", DEFAULT_MAX_API_BYTES)
        clen = request.META.get("CONTENT_LENGTH")
        if clen and clen.isdigit() and int(clen) > limit:
            return JsonResponse(
                {"success": False, "message": "Request body too large", "error": "PAYLOAD_TOO_LARGE"},
                status=413,
            )
        return None
