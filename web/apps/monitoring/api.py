import logging

from django.db import DatabaseError, connection
from django.http import JsonResponse

from apps.orders.http_adapters import payments_cb

logger = logging.getLogger(__name__)


def health_view(_request):
    """Report database reachability and the payment circuit breaker state.

    Only the database decides the status code; an open circuit is reported
    but the service keeps answering reads.
    """
    db_ok = False
    try:
        with connection.cursor() as cur:
            cur.execute("SELECT 1;")
        db_ok = True
    except DatabaseError:
        logger.exception("health check: database unavailable")

    breaker = payments_cb.state
    return JsonResponse(
        {
            "ok": db_ok,
            "components": {
                "db": {"ok": db_ok},
                "payments": {"ok": breaker != "OPEN", "circuit": breaker},
            },
        },
        status=200 if db_ok else 503,
    )
