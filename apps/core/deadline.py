"""
Per-request deadline for database calls.

When a tenant context carries a deadline, every SQL statement issued inside
``QueryDeadline(context)`` first checks the remaining budget and fails fast
with ``QueryDeadlineExceeded`` once it is spent. On PostgreSQL the remaining
budget is also handed to the server as ``statement_timeout`` so a statement
that starts in time cannot run past the deadline.
"""
import logging
from django.db import DEFAULT_DB_ALIAS, DatabaseError, OperationalError, connections
from django.db.transaction import TransactionManagementError
from apps.core.exceptions import QueryDeadlineExceeded

logger = logging.getLogger(__name__)

# SQLSTATE query_canceled, raised when statement_timeout fires
QUERY_CANCELED = '57014'


class QueryDeadline:
    """Context manager installing a deadline check as a DB execute wrapper."""

    def __init__(self, context, using=DEFAULT_DB_ALIAS):
        self.context = context
        self.using = using
        self._wrapper = None
        self._timeout_pushed = False

    def __enter__(self):
        if self.context is not None and self.context.deadline is not None:
            self._wrapper = connections[self.using].execute_wrapper(self)
            self._wrapper.__enter__()
        return self

    def __exit__(self, exc_type, exc, tb):
        if self._wrapper is not None:
            self._wrapper.__exit__(exc_type, exc, tb)
            self._wrapper = None
        if self._timeout_pushed:
            self._reset_timeout()
        return False

    def __call__(self, execute, sql, params, many, context):
        remaining = self.context.remaining()
        if remaining is not None and remaining <= 0:
            self._log_exceeded("Query deadline exceeded before statement execution")
            raise QueryDeadlineExceeded()

        if remaining is None or context['connection'].vendor != 'postgresql':
            return execute(sql, params, many, context)

        timeout_ms = max(1, int(remaining * 1000))
        execute(f"SET statement_timeout = {timeout_ms}", None, False, context)
        self._timeout_pushed = True
        try:
            return execute(sql, params, many, context)
        except OperationalError as exc:
            if _sqlstate(exc.__cause__) != QUERY_CANCELED:
                raise
            self._log_exceeded("Statement cancelled by statement_timeout")
            raise QueryDeadlineExceeded() from exc

    def _reset_timeout(self):
        self._timeout_pushed = False
        connection = connections[self.using]
        try:
            with connection.cursor() as cursor:
                cursor.execute('RESET statement_timeout')
        except (DatabaseError, TransactionManagementError) as exc:
            # A pooled connection must not keep the request's timeout.
            logger.warning(
                "Could not reset statement_timeout, closing connection",
                extra={'alias': self.using, 'error': str(exc)},
            )
            connection.close()

    def _log_exceeded(self, message):
        tenant = self.context.tenant
        logger.warning(
            message,
            extra={'tenant_id': str(tenant.pk) if tenant is not None else None},
        )


def _sqlstate(error):
    # psycopg2 exposes pgcode, psycopg 3 exposes sqlstate
    return getattr(error, 'pgcode', None) or getattr(error, 'sqlstate', None)


class QueryDeadlineMiddleware:
    """Run the rest of the request under the tenant context's deadline."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        context = getattr(request, 'tenant_context', None)
        if context is None or context.deadline is None:
            return self.get_response(request)
        with QueryDeadline(context):
            return self.get_response(request)
