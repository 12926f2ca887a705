"""
Tenant context middleware for multi-tenant isolation.

Binds every request to exactly one tenant before any view runs. The bound
``TenantContext`` is available as ``request.tenant_context`` for the lifetime
of the request.
"""
import logging
from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin
from apps.core.exceptions import ResolutionError
from apps.core.logging import SecurityLogger
from apps.core.middleware import bind_tenant_id
from apps.tenants.context import TenantContext
from apps.tenants.resolver import TenantResolver

logger = logging.getLogger(__name__)


class TenantContextMiddleware(MiddlewareMixin):
    """
    Resolve and bind the tenant for each request.

    - Public paths (schema, login, current principal) carry no tenant context.
    - Platform paths require a principal without a tenant and get the
      platform context.
    - Everything else goes through ``TenantResolver``; failures are rendered
      as ``TENANT_NOT_FOUND`` (404) or ``TENANT_INACTIVE`` (403).
    """

    PUBLIC_PATHS = [
        '/schema',
        '/v1/auth/',
    ]
    PLATFORM_PATHS = [
        '/v1/platform/',
    ]

    resolver_class = TenantResolver

    def process_request(self, request):
        request.tenant_context = None

        if self._matches(request.path, self.PUBLIC_PATHS):
            return None

        principal = getattr(request, 'user', None)
        if principal is not None and not principal.is_authenticated:
            principal = None

        if self._matches(request.path, self.PLATFORM_PATHS):
            if principal is None or principal.tenant_id is not None:
                return self._error_response(
                    'FORBIDDEN',
                    'Platform endpoints are restricted to platform operators',
                    status=403,
                    request=request,
                )
            request.tenant_context = TenantContext.platform()
            return None

        try:
            request.tenant_context = self.resolver_class().resolve(request, principal)
        except ResolutionError as exc:
            SecurityLogger.log_tenant_resolution_failed(
                exc.code,
                request.path,
                ip_address=request.META.get('REMOTE_ADDR'),
            )
            return self._error_response(
                exc.code,
                exc.message,
                status=exc.status_code,
                details=exc.details,
                request=request,
            )

        tenant = request.tenant_context.tenant
        bind_tenant_id(tenant.pk)
        logger.debug(
            f"Tenant context set: {tenant.slug} ({tenant.pk}) via {request.tenant_context.source}"
        )
        return None

    def _matches(self, path, prefixes):
        return any(path.startswith(prefix) for prefix in prefixes)

    def _error_response(self, code, message, status=400, details=None, request=None):
        """Generate standardized error response."""
        error_data = {
            'error': {
                'code': code,
                'message': message,
            },
            'request_id': getattr(request, 'request_id', None),
        }
        if details:
            error_data['error']['details'] = details
        return JsonResponse(error_data, status=status)
