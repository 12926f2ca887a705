"""
Request correlation for logs.

Each request gets an id, taken from ``X-Request-ID`` when the caller sends
one. The id and, once resolved, the tenant id live in context variables for
the duration of the request so ``LoggingFilter`` can stamp every log record
without the request object being passed around.
"""
import contextvars
import logging
import uuid

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = 'HTTP_X_REQUEST_ID'
MAX_REQUEST_ID_LENGTH = 128

request_id_var = contextvars.ContextVar('request_id', default=None)
tenant_id_var = contextvars.ContextVar('tenant_id', default=None)


def bind_tenant_id(tenant_id):
    """Record the resolved tenant for log records emitted later in this request."""
    tenant_id_var.set(str(tenant_id) if tenant_id is not None else None)


class RequestIDMiddleware:
    """Assign a request id, expose it as ``request.request_id`` and echo it back."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request_id = self._incoming_id(request) or str(uuid.uuid4())
        request.request_id = request_id

        request_token = request_id_var.set(request_id)
        tenant_token = tenant_id_var.set(None)
        try:
            response = self.get_response(request)
        finally:
            tenant_id_var.reset(tenant_token)
            request_id_var.reset(request_token)

        response['X-Request-ID'] = request_id
        return response

    def _incoming_id(self, request):
        value = request.META.get(REQUEST_ID_HEADER, '').strip()
        if not value or len(value) > MAX_REQUEST_ID_LENGTH:
            return None
        return value


class LoggingFilter(logging.Filter):
    """Fill ``request_id`` and ``tenant_id`` on records that do not carry them."""

    def filter(self, record):
        if not getattr(record, 'request_id', None):
            record.request_id = request_id_var.get()
        if not getattr(record, 'tenant_id', None):
            record.tenant_id = tenant_id_var.get()
        return True
