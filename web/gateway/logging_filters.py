"""Logging filters for enriching log records with request context.

Adding ``RequestIdFilter`` to a handler lets the JSON formatter emit the
current request id on every record, so the log lines of one request can be
correlated without touching individual log statements.
"""

from logging import Filter, LogRecord

from .middleware import REQUEST_ID_CTX


class RequestIdFilter(Filter):
    """Attach a ``request_id`` attribute to log records.

    Records logged outside a request get ``"-"``.
    """

    def filter(self, record: LogRecord) -> bool:
        if not getattr(record, "request_id", None):
            record.request_id = REQUEST_ID_CTX.get()
        return True
