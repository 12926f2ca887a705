"""
Bearer-token authentication middleware.

Sets ``request.user`` from an ``Authorization: Bearer <jwt>`` header before
tenant resolution runs, so the resolver can fall back to the principal's
own tenant. Requests without a header continue as anonymous.
"""
import logging
from django.contrib.auth.models import AnonymousUser
from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin
from apps.core.exceptions import AuthenticationError
from apps.rbac.services import AuthService

logger = logging.getLogger(__name__)


class JWTAuthenticationMiddleware(MiddlewareMixin):
    """Resolve the principal from a bearer token."""

    keyword = 'Bearer'

    def process_request(self, request):
        request.user = AnonymousUser()
        request.auth_claims = None

        header = request.META.get('HTTP_AUTHORIZATION', '')
        if not header:
            return None

        parts = header.split()
        if len(parts) != 2 or parts[0] != self.keyword:
            return self._unauthenticated(request, 'Malformed Authorization header')

        claims = AuthService.validate_jwt(parts[1])
        user = AuthService.user_for_claims(claims)
        if user is None:
            return self._unauthenticated(request, 'Invalid or expired token')

        request.user = user
        request.auth_claims = claims
        return None

    def _unauthenticated(self, request, message):
        error = AuthenticationError(message)
        logger.info(
            f"Authentication failed: {message}",
            extra={'request_id': getattr(request, 'request_id', None), 'path': request.path},
        )
        response = JsonResponse(
            {'error': error.as_error(), 'request_id': getattr(request, 'request_id', None)},
            status=error.status_code,
        )
        response['WWW-Authenticate'] = self.keyword
        return response
