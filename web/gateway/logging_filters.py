"""Logging filters for enriching log records with request context.

Adding ``RequestIdFilter`` to a handler stamps every record with the id of
the HTTP request being served, so the JSON log lines of one create-order
or verify-payment call can be correlated.
"""

from logging import Filter, LogRecord

from .middleware import REQUEST_ID_CTX


class RequestIdFilter(Filter):
    """Attach a ``request_id`` attribute to log records.

    The value comes from ``REQUEST_ID_CTX``, set by ``RequestIdMiddleware``;
    outside a request it is a hyphen ("-") so formatters can always
    reference ``%(request_id)s``.
    """

    def filter(self, record: LogRecord) -> bool:
        record.request_id = REQUEST_ID_CTX.get()
        return True
