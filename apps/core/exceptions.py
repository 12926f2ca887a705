"""
Domain exceptions and the DRF exception handler.

Every platform error carries a stable machine-readable ``code`` and an HTTP
``status_code`` so middleware and views can render the same error envelope:

    {"error": {"code": ..., "message": ..., "details": {...}}, "request_id": ...}
"""
import logging
from rest_framework import exceptions as drf_exceptions
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class PlatformException(Exception):
    """Base exception for clinic platform errors."""

    status_code = 400
    code = 'ERROR'
    default_message = 'Request could not be processed'

    def __init__(self, message=None, details=None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def as_error(self):
        """Return the ``error`` member of the response envelope."""
        error = {
            'code': self.code,
            'message': self.message,
        }
        if self.details:
            error['details'] = self.details
        return error


class ResolutionError(PlatformException):
    """Raised when a request cannot be bound to a tenant."""


class TenantNotFound(ResolutionError):
    """No tenant could be resolved, or the named tenant does not exist."""

    status_code = 404
    code = 'TENANT_NOT_FOUND'
    default_message = 'Tenant not found'


class TenantInactive(ResolutionError):
    """The tenant exists but is deactivated or its subscription lapsed."""

    status_code = 403
    code = 'TENANT_INACTIVE'
    default_message = 'Tenant account is inactive'


class AuthenticationError(PlatformException):
    """Raised when a bearer token is missing, expired or invalid."""

    status_code = 401
    code = 'UNAUTHENTICATED'
    default_message = 'Authentication credentials were not provided or are invalid'


class AuthorizationError(PlatformException):
    """Raised when a principal is not allowed to perform an ability."""

    status_code = 403
    code = 'FORBIDDEN'
    default_message = 'You do not have permission to perform this action'

    def __init__(self, message=None, details=None, ability=None):
        self.ability = ability
        super().__init__(message, details)

    def as_error(self):
        error = super().as_error()
        if self.ability:
            error['ability'] = self.ability
        return error


class ResourceNotFound(PlatformException):
    """Missing resource, also used to hide resources owned by another tenant."""

    status_code = 404
    code = 'NOT_FOUND'
    default_message = 'Resource not found'


class InvalidArgument(PlatformException):
    """Raised when a caller supplies a value it is not allowed to set."""

    status_code = 400
    code = 'INVALID_ARGUMENT'
    default_message = 'Invalid argument'


class ResourceConflict(PlatformException):
    """The operation conflicts with the current state of the resource."""

    status_code = 409
    code = 'RESOURCE_CONFLICT'
    default_message = 'Resource is in a conflicting state'


class PlanLimitExceeded(PlatformException):
    """The tenant's subscription plan does not allow another record."""

    status_code = 403
    code = 'PLAN_LIMIT_EXCEEDED'
    default_message = 'Your subscription plan limit has been reached'


class ConfigurationError(PlatformException):
    """Programming or deployment fault; surfaced at startup where possible."""

    status_code = 500
    code = 'CONFIGURATION_ERROR'
    default_message = 'Platform is misconfigured'


class TenantScopeRequired(ConfigurationError):
    """A tenant-owned model was queried without a tenant context or bypass."""

    code = 'TENANT_SCOPE_REQUIRED'
    default_message = 'Tenant-owned data must be queried through a tenant context'


class QueryDeadlineExceeded(PlatformException):
    """The request deadline passed before or during a storage call."""

    status_code = 504
    code = 'DEADLINE_EXCEEDED'
    default_message = 'Request deadline exceeded'


def _drf_error_code(exc):
    """Map DRF's built-in exceptions to the platform's error codes."""
    if isinstance(exc, drf_exceptions.ValidationError):
        return 'INVALID_ARGUMENT'
    if isinstance(exc, (drf_exceptions.NotAuthenticated, drf_exceptions.AuthenticationFailed)):
        return 'UNAUTHENTICATED'
    if isinstance(exc, drf_exceptions.PermissionDenied):
        return 'FORBIDDEN'
    if isinstance(exc, drf_exceptions.NotFound):
        return 'NOT_FOUND'
    return str(getattr(exc, 'default_code', 'error')).upper()


def custom_exception_handler(exc, context):
    """
    Render platform and DRF exceptions with the shared error envelope.

    Unexpected exceptions are logged with a traceback and returned as a
    generic 500 so internals never leak to clients.
    """
    request = context.get('request')
    request_id = getattr(request, 'request_id', None) if request else None
    log_extra = {
        'request_id': request_id,
        'path': request.path if request else None,
        'method': request.method if request else None,
    }

    if isinstance(exc, PlatformException):
        level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
        logger.log(
            level,
            f"Platform exception: {exc.code}",
            extra={**log_extra, 'error_code': exc.code},
        )
        return Response(
            {'error': exc.as_error(), 'request_id': request_id},
            status=exc.status_code,
        )

    response = exception_handler(exc, context)

    if response is None:
        logger.error(
            f"API Exception: {exc.__class__.__name__}",
            extra={**log_extra, 'exception': str(exc)},
            exc_info=True,
        )
        return Response(
            {
                'error': {
                    'code': 'INTERNAL_ERROR',
                    'message': 'An unexpected error occurred',
                },
                'request_id': request_id,
            },
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    logger.info(
        f"API Exception: {exc.__class__.__name__}",
        extra={**log_extra, 'status_code': response.status_code},
    )

    error = {
        'code': _drf_error_code(exc),
        'message': str(getattr(exc, 'detail', exc))
        if not isinstance(exc, drf_exceptions.ValidationError)
        else 'Request validation failed',
    }
    if isinstance(exc, drf_exceptions.ValidationError):
        error['details'] = response.data
    response.data = {'error': error, 'request_id': request_id}
    return response
